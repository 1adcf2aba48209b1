"""
Validation utilities for DynamicFit.

This module provides validation functions for run settings (replications,
sample size, seed, parallel options, estimator) and the model preconditions
checked before any simulation starts.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Type, Union

import numpy as np

from ..errors import (
    IdentificationError,
    InsufficientCandidatesError,
    InvalidParameterError,
    UnsupportedModelError,
)

__all__ = []

_SUPPORTED_ESTIMATORS = ("ML", "GLS", "ULS", "DWLS", "WLS")

# Robust-test variants share the point estimates of their base estimator
_ESTIMATOR_ALIASES = {
    "WLSM": "DWLS",
    "WLSMV": "DWLS",
    "WLSMVS": "DWLS",
    "ULSM": "ULS",
    "ULSMV": "ULS",
    "ULSMVS": "ULS",
}


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self, error_cls: Type[Exception] = ValueError):
        """Raise *error_cls* (``ValueError`` by default) if the validation failed."""
        if not self.is_valid:
            if len(self.errors) == 1:
                raise error_cls(self.errors[0])
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise error_cls(error_msg)


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type (``bool`` never counts as a number)."""
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
    ) -> Optional[str]:
        """Check if value is within range."""
        if min_val is not None and value < min_val:
            return f"{name} must be >= {min_val}, got {value}"
        if max_val is not None and value > max_val:
            return f"{name} must be <= {max_val}, got {value}"
        return None


_validator = _Validator()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        return _ValidationResult(False, [type_error], [])

    range_error = _validator._check_range(value, min_val, max_val, name)
    if range_error:
        errors.append(range_error)

    return _ValidationResult(len(errors) == 0, errors, [])


# ----------------------------------------------------------------------
# Run settings
# ----------------------------------------------------------------------


def _validate_reps(reps: Any) -> _ValidationResult:
    """Validate the number of replications per level."""
    result = _validate_numeric_parameter(reps, "reps", expected_types=(int, np.integer), min_val=2)
    if result.is_valid and reps < 100:
        result.warnings.append(f"Low replication count ({reps}). Cutoffs are usually derived from 500 replications.")
    return result


def _validate_sample_size(n: Any, n_items: Optional[int] = None) -> _ValidationResult:
    """Validate the sample size of the empirical study.

    Requires a positive integer; when *n_items* is given, ``n`` must exceed
    it so every simulated covariance matrix can be positive definite.
    """
    result = _validate_numeric_parameter(n, "n", expected_types=(int, np.integer), min_val=1)
    if result.is_valid and n_items is not None and n <= n_items:
        result.errors.append(f"n ({n}) must be larger than the number of items ({n_items})")
        result.is_valid = False
    return result


def _validate_seed(seed: Any) -> _ValidationResult:
    """Validate the run seed (``None`` or a non-negative integer below 2**32)."""
    if seed is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(seed, "seed", expected_types=(int, np.integer), min_val=0, max_val=2**32 - 1)


def _validate_max_failed(value: Any) -> _ValidationResult:
    """Validate the tolerated proportion of failed replications."""
    return _validate_numeric_parameter(value, "max_failed_replications", min_val=0, max_val=1)


def _validate_parallel_settings(enable: Any, n_cores: Optional[int]) -> Tuple[Tuple[bool, int], _ValidationResult]:
    """Validate parallel processing settings.

    Args:
        enable: ``True`` or ``False``.
        n_cores: Number of CPU cores (positive int or None for half the CPUs).

    Returns:
        ((enable, n_cores), ValidationResult)
    """
    import multiprocessing as mp

    errors = []

    if enable not in (True, False):
        errors.append(f"parallel must be True or False, got {enable!r}")
        return (False, 1), _ValidationResult(False, errors, [])

    max_cores = mp.cpu_count() or 1
    validated_n_cores = max(1, max_cores // 2)

    if n_cores is not None:
        if isinstance(n_cores, bool) or not isinstance(n_cores, int) or n_cores <= 0:
            errors.append(f"n_cores must be a positive integer, got {n_cores}")
        else:
            validated_n_cores = min(n_cores, max_cores)

    return (bool(enable), validated_n_cores), _ValidationResult(len(errors) == 0, errors, [])


def _validate_estimator(estimator: Any) -> _ValidationResult:
    """Validate the estimator name.

    ``MLR`` is rejected because data are simulated from multivariate-normal
    populations. ULS / WLS family names are allowed with a warning.
    """
    if not isinstance(estimator, str):
        return _ValidationResult(False, [f"estimator must be a string, got {type(estimator).__name__}"], [])

    name = estimator.upper()
    errors: List[str] = []
    warnings: List[str] = []

    if name == "MLR":
        errors.append(
            "Data are generated from multivariate normal distributions, so the MLR estimator is "
            "equivalent to the ML estimator. Change the estimator to ML."
        )
        return _ValidationResult(False, errors, warnings)

    if name.startswith("U") or name.startswith("W"):
        warnings.append(
            "Cutoffs are interpretable if normality is reasonable to assume. The ULS and WLS "
            "families of estimators are often used for non-normal data; cutoffs derived here "
            "are not sensitive to non-normality."
        )

    if name not in _SUPPORTED_ESTIMATORS and name not in _ESTIMATOR_ALIASES:
        available = _SUPPORTED_ESTIMATORS + tuple(_ESTIMATOR_ALIASES)
        errors.append(f"Unknown estimator '{estimator}'. Available: {', '.join(available)}")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _resolve_estimator(estimator: str) -> str:
    """Map a validated estimator name to the discrepancy function that fits it.

    ``WLSMV`` and friends differ from ``DWLS`` / ``ULS`` only in their test
    statistic corrections, so their point estimates come from the base
    estimator.
    """
    name = estimator.upper()
    return _ESTIMATOR_ALIASES.get(name, name)


# ----------------------------------------------------------------------
# Model preconditions (checked in this order)
# ----------------------------------------------------------------------


def _check_standardized_values(spec) -> None:
    """Every loading and correlation must lie strictly inside (-1, 1)."""
    bad = [f"{p.lhs} {p.op} {p.value}*{p.rhs}" for p in spec.parameters if p.value is not None and abs(p.value) >= 1]
    if bad:
        raise InvalidParameterError(
            "One of your loadings or correlations has an absolute value of 1 or above (an impossible value). "
            "Please use standardized loadings. If all of your loadings are under 1, look for a missing "
            f"decimal in your model statement. Offending parameter(s): {', '.join(bad)}"
        )


def _check_factor_count(spec) -> None:
    if spec.n_factors < 2:
        raise UnsupportedModelError("You entered a one-factor model. Cutoffs here require at least 2 factors.")


def _check_identification(spec) -> None:
    df = spec.degrees_of_freedom()
    if df == 0:
        raise IdentificationError("It is impossible to add misspecifications to a just identified model (df = 0).")
    if df < 0:
        raise IdentificationError(f"The model is under-identified (df = {df}).")


def _check_candidates(spec) -> None:
    from ..core.misspecification import enumerate_candidates

    needed = spec.n_factors - 1
    found = len(enumerate_candidates(spec))
    if found < needed:
        raise InsufficientCandidatesError(
            f"There are not enough free items to produce all misspecification levels (need {needed}, found {found})."
        )


def _validate_model(spec) -> None:
    """Run every model precondition in order, raising the first violation."""
    _check_standardized_values(spec)
    _check_factor_count(spec)
    _check_identification(spec)
    _check_candidates(spec)
