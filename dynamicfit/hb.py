"""
Dynamic fit index cutoffs for multi-factor CFA models.

:func:`cfa_hb` generalizes the Hu & Bentler (1999) thresholds to the model at
hand: it adds cross-loadings of fixed magnitude to the user's standardized
model, simulates data from the true and each misspecified population, refits
the user's model to every sample and reports, per level, the SRMR, RMSEA and
CFI thresholds that best separate correct from misspecified fit.
"""

import warnings
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .core.misspecification import MisspecificationLevel, generate_levels
from .core.model_spec import ModelSpec, resolve_model_input
from .core.results import CutoffRow, build_cutoff_table, build_replication_data, derive_cutoffs
from .core.simulation import SimulationRun, SimulationRunner, effective_sample_size
from .errors import InvalidSettingError, UnsupportedEstimatorError
from .progress import ProgressReporter, compute_total_replications
from .stats.covariance import implied_covariance
from .utils.formatters import _format_results
from .utils.validators import (
    _resolve_estimator,
    _validate_estimator,
    _validate_max_failed,
    _validate_model,
    _validate_parallel_settings,
    _validate_reps,
    _validate_sample_size,
    _validate_seed,
)

__all__ = ["cfa_hb", "CfaHBResult"]


@dataclass
class CfaHBResult:
    """Outcome of a dynamic cutoff analysis.

    Attributes:
        cutoffs: Display table (``pandas.DataFrame`` of strings).
        fit: One-row empirical fit summary for fitted-model input, else
            ``None``.
        data: Every simulated fit (``pandas.DataFrame``), one row per
            (level, replication) for levels 1 .. K-1.
        rows: ``CutoffRow`` per level, level 0 first.
        plots: matplotlib figures (one per level >= 1) when requested.
        model: Standardized population model the cutoffs were derived for.
        levels: Population model of every level.
        runs: Raw ``SimulationRun`` per level.
        n: Sample size used for each simulated dataset.
    """

    cutoffs: object
    fit: Optional[object]
    data: object
    rows: List[CutoffRow]
    plots: List = field(default_factory=list)
    model: Optional[ModelSpec] = field(default=None, repr=False)
    levels: List[MisspecificationLevel] = field(default_factory=list, repr=False)
    runs: List[SimulationRun] = field(default_factory=list, repr=False)
    n: Optional[int] = None

    def __str__(self) -> str:
        return _format_results(self)


def _resolve_parallel(parallel, n_cores):
    """Validate parallel settings, falling back to sequential without joblib."""
    settings, result = _validate_parallel_settings(parallel, n_cores)
    result.raise_if_invalid(InvalidSettingError)
    enable, n_cores = settings
    if not enable:
        return False, 1
    try:
        import joblib  # noqa: F401 (availability check only)
    except ImportError:
        print("Warning: joblib not available. Install with: pip install joblib")
        print("Warning: Continuing with sequential processing.")
        return False, 1
    return True, n_cores


def _fit_summary(fit):
    import pandas as pd

    measures = fit.fit_measures()
    return pd.DataFrame(
        [[measures[key] for key in ("chisq", "df", "pvalue", "srmr", "rmsea", "cfi")]],
        columns=["Chi-Square", "df", "p-value", "SRMR", "RMSEA", "CFI"],
    ).round(3)


def cfa_hb(
    model,
    n: Optional[int] = None,
    plot: bool = False,
    manual: bool = False,
    estimator: str = "ML",
    reps: int = 500,
    seed: Optional[int] = 649364,
    parallel: bool = False,
    n_cores: Optional[int] = None,
    max_failed_replications: float = 0.10,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
    verbose: bool = True,
) -> CfaHBResult:
    """Compute dynamic fit index cutoffs for a multi-factor CFA model.

    Args:
        model: A fitted model from :func:`dynamicfit.fit_cfa`, or (with
            ``manual=True``) lavaan-style syntax carrying a standardized
            value on every loading and correlation.
        n: Sample size; required with manual input.
        plot: Build one distribution figure per misspecification level.
        manual: Whether *model* is manually entered syntax.
        estimator: ``"ML"``, ``"GLS"``, ``"ULS"``, ``"DWLS"`` or ``"WLS"``.
            Robust variants (``"WLSMV"``, ``"ULSMV"``, ...) are fitted with
            their base estimator.
        reps: Replications per level.
        seed: Run seed; ``None`` gives fresh randomness.
        parallel: Fan replications out over worker processes (joblib).
        n_cores: Worker processes (default: half the CPUs).
        max_failed_replications: Maximum proportion of non-converged
            replications tolerated per level.
        progress_callback: Called as ``callback(current, total)``.
        cancel_check: Returns ``True`` to abort the simulation.
        verbose: Print status lines.

    Returns:
        ``CfaHBResult``.

    Raises:
        InputMismatchError: Input kind and ``manual`` flag disagree, or
            manual input lacks *n*.
        ModelSyntaxError: Manual syntax cannot be parsed.
        InvalidParameterError: A standardized value has magnitude >= 1.
        InvalidSettingError: A run setting (reps, n, seed, parallel options,
            failure threshold) is invalid.
        UnsupportedModelError: Fewer than two factors.
        IdentificationError: No residual degrees of freedom.
        InsufficientCandidatesError: Too few free items for every level.
        UnsupportedEstimatorError: ``MLR`` or an unknown estimator.
        PopulationModelError: A population covariance is not valid.
        SimulationReliabilityError: Too many failed replications.
        SimulationCancelled: *cancel_check* returned ``True``.
    """
    spec, n = resolve_model_input(model, n, manual)
    _validate_model(spec)

    est_result = _validate_estimator(estimator)
    for warning in est_result.warnings:
        warnings.warn(warning, UserWarning, stacklevel=2)
    est_result.raise_if_invalid(UnsupportedEstimatorError)
    requested = estimator.upper()
    estimator = _resolve_estimator(estimator)

    for result in (_validate_reps(reps), _validate_seed(seed), _validate_max_failed(max_failed_replications)):
        for warning in result.warnings:
            warnings.warn(warning, UserWarning, stacklevel=2)
        result.raise_if_invalid(InvalidSettingError)
    _validate_sample_size(n, spec.n_items).raise_if_invalid(InvalidSettingError)
    parallel, n_cores = _resolve_parallel(parallel, n_cores)

    # Every population must be valid before any replication runs
    levels = generate_levels(spec)
    covariances = [implied_covariance(level.model) for level in levels]

    if verbose:
        print(f"Model: {spec.n_factors} factors, {spec.n_items} items, df = {spec.degrees_of_freedom()}")
        for level in levels[1:]:
            print(f"Level {level.level}: {level.candidate}")
        sample_size = effective_sample_size(n)
        capped = f" (capped from {n})" if sample_size != n else ""
        fitted_with = f" (fitted with {estimator})" if estimator != requested else ""
        print(f"Simulating {reps} replications per level at n = {sample_size}{capped}, estimator {requested}{fitted_with}")

    progress = None
    if progress_callback is not None:
        progress = ProgressReporter(compute_total_replications(reps, spec.n_factors), progress_callback, n_levels=spec.n_factors)
        progress.start()

    runner = SimulationRunner(
        reps=reps,
        seed=seed,
        estimator=estimator,
        parallel=parallel,
        n_cores=n_cores,
        max_failed_replications=max_failed_replications,
    )
    runs = runner.run(spec.structure(), covariances, n, progress=progress, cancel_check=cancel_check)
    if progress is not None:
        progress.finish()

    rows = derive_cutoffs(runs, [level.magnitude for level in levels])

    plots = []
    if plot:
        from .utils.visualization import _create_distribution_plots

        plots = _create_distribution_plots(runs, rows)

    return CfaHBResult(
        cutoffs=build_cutoff_table(rows),
        fit=None if manual else _fit_summary(model),
        data=build_replication_data(runs),
        rows=rows,
        plots=plots,
        model=spec,
        levels=levels,
        runs=runs,
        n=effective_sample_size(n),
    )
