"""
Tests for the fixed lookup tables.
"""

import numpy as np
import pytest

from dynamicfit.tables import (
    FIT_INDEX_NAMES,
    HU_BENTLER_CUTOFFS,
    cross_loading_magnitude,
    grids,
    power_grid,
    quantile_grid,
)


class TestCrossLoadingMagnitude:
    """Test the magnitude table."""

    @pytest.mark.parametrize(
        "n_indicators, expected",
        [(2, 0.45), (3, 0.45), (4, 0.40), (5, 0.35), (6, 0.30), (7, 0.25), (12, 0.25)],
    )
    def test_table(self, n_indicators, expected):
        assert cross_loading_magnitude(n_indicators) == expected

    def test_non_increasing(self):
        values = [cross_loading_magnitude(k) for k in range(1, 15)]
        assert all(a >= b for a, b in zip(values, values[1:]))


class TestGrids:
    """Test quantile and power grids."""

    def test_power_grid(self):
        powers = power_grid()
        assert len(powers) == 96
        assert powers[0] == 0.95
        assert powers[-1] == 0.0

    def test_srmr_rmsea_grid(self):
        probs = quantile_grid("SRMR")
        assert probs[0] == 0.05
        assert probs[-1] == 1.0
        np.testing.assert_array_equal(probs, quantile_grid("RMSEA"))

    def test_cfi_grid_descends(self):
        probs = quantile_grid("CFI")
        assert probs[0] == 0.95
        assert probs[-1] == 0.0

    @pytest.mark.parametrize("index", FIT_INDEX_NAMES)
    def test_grids_aligned(self, index):
        probs, powers = grids(index)
        assert probs.shape == powers.shape


def test_hu_bentler_cutoffs():
    assert HU_BENTLER_CUTOFFS == {"SRMR": 0.08, "RMSEA": 0.06, "CFI": 0.95}
