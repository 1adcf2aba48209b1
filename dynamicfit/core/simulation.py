"""
Simulation execution for DynamicFit.

Runs the Monte Carlo part of the cutoff pipeline: for every misspecification
level and replication, a sample is drawn from that level's population
covariance and the analysis model (the user's structure) is refitted to it.
The true-model distribution (level 0) is simulated once and shared by every
level.
"""

import warnings
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import SimulationReliabilityError
from ..stats.cfa import FitIndices, fit_data
from ..stats.data_generation import cholesky_factor, generate_sample, replication_seed
from ..tables import FIT_INDEX_NAMES, MAX_SIMULATED_N

__all__ = ["SimulationRun", "SimulationRunner", "effective_sample_size"]


def effective_sample_size(n: int) -> int:
    """Sample size used for each simulated dataset (capped at 10000)."""
    return min(int(n), MAX_SIMULATED_N)


@dataclass
class SimulationRun:
    """All replications of one level.

    Attributes:
        level: Misspecification level (0 = true model).
        values: ``(reps, 3)`` array of SRMR, RMSEA and CFI in replication
            order; rows of failed replications are ``NaN``.
    """

    level: int
    values: np.ndarray

    @property
    def reps(self) -> int:
        return self.values.shape[0]

    @property
    def usable(self) -> np.ndarray:
        """Boolean mask of replications with finite fit indices."""
        return np.isfinite(self.values).all(axis=1)

    @property
    def n_used(self) -> int:
        return int(self.usable.sum())

    @property
    def n_failed(self) -> int:
        return self.reps - self.n_used

    @property
    def failure_rate(self) -> float:
        return self.n_failed / self.reps if self.reps else 0.0

    def index(self, name: str) -> np.ndarray:
        """Usable values of one fit index (``"SRMR"``, ``"RMSEA"`` or ``"CFI"``)."""
        column = FIT_INDEX_NAMES.index(name)
        return self.values[self.usable, column]


def _indices_row(indices: FitIndices) -> Tuple[float, float, float]:
    if not indices.is_usable():
        return (np.nan, np.nan, np.nan)
    return (indices.srmr, indices.rmsea, indices.cfi)


def _simulate_batch(
    structure,
    chol: np.ndarray,
    sample_size: int,
    estimator: str,
    level: int,
    replications: Sequence[int],
    seed: Optional[int],
    reps: int,
) -> List[Tuple[int, int, Tuple[float, float, float]]]:
    """Simulate and refit a batch of replications of one level.

    Module-level so that joblib can pickle it for worker processes.

    Returns:
        ``(level, replication, (srmr, rmsea, cfi))`` tuples.
    """
    out = []
    for rep in replications:
        data = generate_sample(chol, sample_size, seed=replication_seed(seed, level, rep, reps))
        out.append((level, rep, _indices_row(fit_data(structure, data, estimator))))
    return out


class SimulationRunner:
    """Executes the Monte Carlo replications of every level.

    Each replication seeds its own ``RandomState`` from the run seed and the
    (level, replication) pair, so sequential and parallel runs produce the
    same numbers. Replications that do not converge are excluded; the run
    aborts if the failure rate of a level exceeds the configured threshold.
    """

    def __init__(
        self,
        reps: int,
        seed: Optional[int] = 649364,
        estimator: str = "ML",
        parallel: bool = False,
        n_cores: int = 1,
        max_failed_replications: float = 0.10,
    ):
        """Initialise the simulation runner.

        Args:
            reps: Replications per level.
            seed: Run seed (``None`` for fresh randomness). Replication
                ``r`` of level ``k`` uses ``seed + 4 * (k * reps + r)``.
            estimator: Estimator used to refit every sample.
            parallel: Fan batches out with joblib (loky backend).
            n_cores: Number of worker processes when *parallel* is set.
            max_failed_replications: Maximum acceptable proportion of failed
                replications per level (0-1).
        """
        self.reps = reps
        self.seed = seed
        self.estimator = estimator
        self.parallel = parallel
        self.n_cores = n_cores
        self.max_failed_replications = max_failed_replications

    def run(
        self,
        structure,
        covariances: Sequence[np.ndarray],
        n: int,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> List[SimulationRun]:
        """Run every replication of every level.

        Args:
            structure: Analysis model fitted to every sample.
            covariances: Population covariance of level 0, 1, ..., K-1.
            n: Sample size of the empirical study (capped at 10000).
            progress: Optional ``ProgressReporter`` (advanced once per
                replication).
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            One ``SimulationRun`` per level, level 0 first.

        Raises:
            SimulationReliabilityError: If a level has no usable replication
                or its failure rate exceeds ``max_failed_replications``.
            SimulationCancelled: If *cancel_check* returns ``True``.
        """
        sample_size = effective_sample_size(n)
        chols = [cholesky_factor(sigma) for sigma in covariances]
        n_levels = len(chols)

        values = {level: np.full((self.reps, len(FIT_INDEX_NAMES)), np.nan) for level in range(n_levels)}

        if self.parallel and self.n_cores > 1:
            results = self._run_parallel(structure, chols, sample_size, progress, cancel_check)
        else:
            results = self._run_sequential(structure, chols, sample_size, progress, cancel_check)

        for level, rep, row in results:
            values[level][rep] = row

        runs = [SimulationRun(level, values[level]) for level in range(n_levels)]
        self._check_failures(runs)
        return runs

    # ------------------------------------------------------------------
    # Execution strategies
    # ------------------------------------------------------------------

    def _batches(self, n_levels: int) -> List[Tuple[int, List[int]]]:
        """Split every level into contiguous replication batches."""
        size = max(1, int(np.ceil(self.reps / max(1, self.n_cores))))
        return [(level, list(range(start, min(start + size, self.reps)))) for level in range(n_levels) for start in range(0, self.reps, size)]

    def _run_sequential(self, structure, chols, sample_size, progress, cancel_check):
        from ..progress import SimulationCancelled

        results = []
        for level, chol in enumerate(chols):
            for rep in range(self.reps):
                if cancel_check is not None and cancel_check():
                    raise SimulationCancelled("Simulation cancelled by user")
                results.extend(_simulate_batch(structure, chol, sample_size, self.estimator, level, [rep], self.seed, self.reps))
                if progress is not None:
                    progress.advance(1)
        return results

    def _run_parallel(self, structure, chols, sample_size, progress, cancel_check):
        from ..progress import SimulationCancelled

        try:
            from joblib import Parallel, delayed

            batches = self._batches(len(chols))
            batch_results = Parallel(
                n_jobs=self.n_cores,
                backend="loky",
                verbose=0,
                return_as="generator",
            )(
                delayed(_simulate_batch)(structure, chols[level], sample_size, self.estimator, level, reps, self.seed, self.reps)
                for level, reps in batches
            )
            results = []
            for batch in batch_results:
                if cancel_check is not None and cancel_check():
                    raise SimulationCancelled("Simulation cancelled by user")
                results.extend(batch)
                if progress is not None:
                    progress.advance(len(batch))
            return results
        except Exception as e:
            if isinstance(e, SimulationCancelled):
                raise
            print(f"Warning: Parallel execution failed ({e}). Falling back to sequential.")
            if progress is not None:
                progress.start()
            return self._run_sequential(structure, chols, sample_size, progress, cancel_check)

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    def _check_failures(self, runs: List[SimulationRun]) -> None:
        failed: Dict[int, int] = {}
        for run in runs:
            if run.n_used == 0:
                raise SimulationReliabilityError(f"All {run.reps} replications of level {run.level} failed to converge")
            if run.failure_rate > self.max_failed_replications:
                raise SimulationReliabilityError(
                    f"Too many failed replications at level {run.level}: {run.n_failed}/{run.reps} "
                    f"({run.failure_rate:.1%}), threshold: {self.max_failed_replications:.1%}"
                )
            if run.n_failed:
                failed[run.level] = run.n_failed

        if failed:
            detail = ", ".join(f"level {level}: {count}" for level, count in failed.items())
            warnings.warn(
                f"Some replications did not converge and were excluded ({detail} of {self.reps} each)",
                UserWarning,
                stacklevel=3,
            )
