"""Fixed lookup tables used by the cutoff pipeline.

Holds the cross-loading magnitude table, the quantile / power grids used by
the cutoff deriver, and the Hu & Bentler (1999) reference cutoffs drawn in
the distribution plots.
"""

from typing import Dict, Tuple

import numpy as np

# Fit indices reported by the cutoff pipeline, in display order
FIT_INDEX_NAMES: Tuple[str, ...] = ("SRMR", "RMSEA", "CFI")

# Cross-loading magnitude keyed on the number of indicators of the factor
# that receives the cross-loading. Counts above the table use the last row.
CROSS_LOADING_MAGNITUDES: Dict[int, float] = {
    3: 0.45,
    4: 0.40,
    5: 0.35,
    6: 0.30,
    7: 0.25,
}

# Communality ceiling for an item after a cross-loading has been added
MAX_COMMUNALITY = 0.95

# Samples larger than this are simulated at this size
MAX_SIMULATED_N = 10000

# Hu & Bentler (1999) fixed cutoffs
HU_BENTLER_CUTOFFS: Dict[str, float] = {
    "SRMR": 0.08,
    "RMSEA": 0.06,
    "CFI": 0.95,
}

# Reference percentile of the true-model distribution per index
TRUE_REFERENCE_PROBS: Dict[str, float] = {
    "SRMR": 0.95,
    "RMSEA": 0.95,
    "CFI": 0.05,
}

# Cutoffs whose power falls below this are reported as NONE
MIN_REPORTED_POWER = 0.50

# Power assigned to the level-0 (true model) row
LEVEL0_POWER = 0.95


def cross_loading_magnitude(n_indicators: int) -> float:
    """Return the tabled cross-loading magnitude for a receiving factor.

    Args:
        n_indicators: Number of items loading on the receiving factor.

    Returns:
        Standardized cross-loading magnitude (more indicators, smaller value).
    """
    smallest = min(CROSS_LOADING_MAGNITUDES)
    largest = max(CROSS_LOADING_MAGNITUDES)
    key = min(max(n_indicators, smallest), largest)
    return CROSS_LOADING_MAGNITUDES[key]


def power_grid() -> np.ndarray:
    """Power values .95, .94, ..., .00 built from integer percents."""
    return np.arange(95, -1, -1) / 100.0


def quantile_grid(index: str) -> np.ndarray:
    """Probabilities at which the misspecified distribution is summarized.

    SRMR and RMSEA (lower is better) use .05, .06, ..., 1.00; CFI (higher is
    better) uses .95, .94, ..., .00 so both line up with :func:`power_grid`.
    """
    if index == "CFI":
        return power_grid()
    return np.arange(5, 101) / 100.0


def grids(index: str) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(quantile_probs, powers)`` aligned index-for-index."""
    return quantile_grid(index), power_grid()
