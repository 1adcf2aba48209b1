"""Fixed constants and lookup tables for the DFI cutoff pipeline."""

from .lookup import (
    CROSS_LOADING_MAGNITUDES,
    FIT_INDEX_NAMES,
    HU_BENTLER_CUTOFFS,
    LEVEL0_POWER,
    MAX_COMMUNALITY,
    MAX_SIMULATED_N,
    MIN_REPORTED_POWER,
    TRUE_REFERENCE_PROBS,
    cross_loading_magnitude,
    grids,
    power_grid,
    quantile_grid,
)

__all__ = [
    "CROSS_LOADING_MAGNITUDES",
    "FIT_INDEX_NAMES",
    "HU_BENTLER_CUTOFFS",
    "LEVEL0_POWER",
    "MAX_COMMUNALITY",
    "MAX_SIMULATED_N",
    "MIN_REPORTED_POWER",
    "TRUE_REFERENCE_PROBS",
    "cross_loading_magnitude",
    "grids",
    "power_grid",
    "quantile_grid",
]
