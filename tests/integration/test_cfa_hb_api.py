"""
End-to-end tests for cfa_hb.
"""

from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest

from dynamicfit import (
    CfaHBResult,
    IdentificationError,
    InputMismatchError,
    InsufficientCandidatesError,
    InvalidParameterError,
    InvalidSettingError,
    PopulationModelError,
    PrintReporter,
    SimulationCancelled,
    UnsupportedEstimatorError,
    UnsupportedModelError,
    cfa_hb,
    fit_cfa,
)
from dynamicfit.stats.covariance import implied_covariance
from tests.config import (
    HEYWOOD_MODEL,
    IMPOSSIBLE_COMMUNALITY_MODEL,
    N_REPS_CHECK,
    N_REPS_STANDARD,
    NO_FREE_ITEMS_MODEL,
    ONE_FACTOR_MODEL,
    SAMPLE_SIZE,
    SATURATED_MODEL,
    SEED,
    THREE_FACTOR_MODEL,
    THREE_FACTOR_STRUCTURE,
    TWO_FACTOR_MODEL,
)

pytestmark = pytest.mark.filterwarnings("ignore:Low replication count")


@pytest.fixture(scope="module")
def three_factor_result():
    """One shared end-to-end run of the three-factor scenario."""
    return cfa_hb(THREE_FACTOR_MODEL, n=SAMPLE_SIZE, manual=True, reps=N_REPS_STANDARD, seed=SEED, verbose=False)


class TestThreeFactorScenario:
    """3 factors, 9 indicators, n = 400."""

    def test_result_type(self, three_factor_result):
        assert isinstance(three_factor_result, CfaHBResult)

    def test_three_levels(self, three_factor_result):
        assert [row.level for row in three_factor_result.rows] == [0, 1, 2]

    def test_table_labels(self, three_factor_result):
        labels = [label for label in three_factor_result.cutoffs.index if label.startswith("Level-")]
        assert labels == ["Level-0", "Level-1", "Level-2"]
        assert len(three_factor_result.cutoffs) == 8

    def test_level_zero_specificity(self, three_factor_result):
        row = three_factor_result.rows[0]
        assert row.srmr.power == row.rmsea.power == row.cfi.power == 0.95
        assert list(three_factor_result.cutoffs.loc["Specificity"]) == ["95%", "95%", "95%", ""]

    def test_level_zero_is_true_reference(self, three_factor_result):
        true_run = three_factor_result.runs[0]
        row = three_factor_result.rows[0]
        assert row.srmr.value == round(float(np.quantile(true_run.index("SRMR"), 0.95)), 3)
        assert row.rmsea.value == round(float(np.quantile(true_run.index("RMSEA"), 0.95)), 3)
        assert row.cfi.value == round(float(np.quantile(true_run.index("CFI"), 0.05)), 3)

    def test_plausible_level_zero_values(self, three_factor_result):
        row = three_factor_result.rows[0]
        assert 0.0 < row.srmr.value < 0.08
        assert 0.0 <= row.rmsea.value < 0.06
        assert 0.95 < row.cfi.value <= 1.0

    def test_magnitudes(self, three_factor_result):
        assert [row.magnitude for row in three_factor_result.rows] == [None, 0.45, 0.285]
        assert three_factor_result.cutoffs.iloc[0]["Magnitude"] == "NONE"

    def test_none_iff_low_power(self, three_factor_result):
        table = three_factor_result.cutoffs
        for row in three_factor_result.rows[1:]:
            for name in ("SRMR", "RMSEA", "CFI"):
                cell = table.loc[f"Level-{row.level}", name]
                assert (cell == "NONE") == (row.cutoff(name).power < 0.5)

    def test_replication_data(self, three_factor_result):
        data = three_factor_result.data
        assert data.shape == (2 * N_REPS_STANDARD, 8)
        assert set(data["level"]) == {1, 2}

    def test_no_fit_summary_for_manual_input(self, three_factor_result):
        assert three_factor_result.fit is None

    def test_str(self, three_factor_result):
        out = str(three_factor_result)
        assert out.startswith("Your DFI cutoffs:")
        assert "Level-2" in out


class TestReproducibility:
    """Seeded runs are bit-identical."""

    def test_same_seed_same_cutoffs(self):
        kwargs = dict(n=300, manual=True, reps=N_REPS_CHECK, seed=SEED, verbose=False)
        a = cfa_hb(TWO_FACTOR_MODEL, **kwargs)
        b = cfa_hb(TWO_FACTOR_MODEL, **kwargs)
        assert a.cutoffs.equals(b.cutoffs)
        pd.testing.assert_frame_equal(a.data, b.data)

    def test_different_seed_different_data(self):
        kwargs = dict(n=300, manual=True, reps=N_REPS_CHECK, verbose=False)
        a = cfa_hb(TWO_FACTOR_MODEL, seed=1, **kwargs)
        b = cfa_hb(TWO_FACTOR_MODEL, seed=2, **kwargs)
        assert not a.data.equals(b.data)


class TestSeedStability:
    """Level-0 cutoffs of the three-factor scenario barely move across seeds."""

    SEEDS = (1, 2, 3)
    REPS = 150

    @pytest.fixture(scope="class")
    def level0_rows(self):
        return [
            cfa_hb(THREE_FACTOR_MODEL, n=SAMPLE_SIZE, manual=True, reps=self.REPS, seed=seed, verbose=False).rows[0]
            for seed in self.SEEDS
        ]

    @pytest.mark.parametrize("index", ["SRMR", "RMSEA"])
    def test_level0_within_tolerance(self, level0_rows, index):
        values = [row.cutoff(index).value for row in level0_rows]
        assert max(values) - min(values) <= 0.02

    def test_level0_specificity_fixed(self, level0_rows):
        assert all(row.cfi.power == 0.95 for row in level0_rows)


class TestFittedModelInput:
    """A fitted model supplies the population model and n."""

    @pytest.fixture(scope="class")
    def fit(self):
        from dynamicfit.utils.parsers import _parse_model_syntax

        spec = _parse_model_syntax(THREE_FACTOR_MODEL, require_values=True)
        rng = np.random.RandomState(SEED)
        data = rng.multivariate_normal(np.zeros(9), implied_covariance(spec), size=350)
        return fit_cfa(THREE_FACTOR_STRUCTURE, pd.DataFrame(data, columns=spec.items))

    def test_runs_with_fit(self, fit):
        result = cfa_hb(fit, reps=N_REPS_CHECK, seed=SEED, verbose=False)
        assert result.n == 350
        assert [row.level for row in result.rows] == [0, 1, 2]

    def test_fit_summary(self, fit):
        result = cfa_hb(fit, reps=N_REPS_CHECK, seed=SEED, verbose=False)
        assert list(result.fit.columns) == ["Chi-Square", "df", "p-value", "SRMR", "RMSEA", "CFI"]
        assert result.fit.loc[0, "df"] == 24
        assert "Empirical fit indices:" in str(result)

    def test_manual_flag_with_fit(self, fit):
        with pytest.raises(InputMismatchError):
            cfa_hb(fit, manual=True, n=350)


class TestRejections:
    """Invalid inputs fail before any simulation runs."""

    def _run(self, model, **kwargs):
        callback = MagicMock()
        with pytest.raises(Exception) as exc_info:
            cfa_hb(model, **{"n": SAMPLE_SIZE, "manual": True, "reps": N_REPS_CHECK, "progress_callback": callback, "verbose": False, **kwargs})
        callback.assert_not_called()
        return exc_info

    def test_one_factor(self):
        assert self._run(ONE_FACTOR_MODEL).type is UnsupportedModelError

    def test_loading_above_one(self):
        assert self._run(HEYWOOD_MODEL).type is InvalidParameterError

    def test_mlr(self):
        assert self._run(THREE_FACTOR_MODEL, estimator="MLR").type is UnsupportedEstimatorError

    def test_unknown_estimator(self):
        assert self._run(THREE_FACTOR_MODEL, estimator="BAYES").type is UnsupportedEstimatorError

    def test_saturated(self):
        assert self._run(SATURATED_MODEL).type is IdentificationError

    def test_no_free_items(self):
        assert self._run(NO_FREE_ITEMS_MODEL).type is InsufficientCandidatesError

    def test_impossible_population(self):
        assert self._run(IMPOSSIBLE_COMMUNALITY_MODEL).type is PopulationModelError

    def test_bad_reps(self):
        assert self._run(THREE_FACTOR_MODEL, reps=1).type is InvalidSettingError

    def test_bad_seed(self):
        assert self._run(THREE_FACTOR_MODEL, seed=-5).type is InvalidSettingError

    def test_bad_failure_threshold(self):
        assert self._run(THREE_FACTOR_MODEL, max_failed_replications=1.5).type is InvalidSettingError

    def test_setting_errors_are_not_parameter_errors(self):
        assert not issubclass(InvalidSettingError, InvalidParameterError)
        assert issubclass(InvalidSettingError, ValueError)

    def test_missing_n(self):
        with pytest.raises(InputMismatchError):
            cfa_hb(THREE_FACTOR_MODEL, manual=True)

    def test_syntax_without_manual(self):
        with pytest.raises(InputMismatchError):
            cfa_hb(THREE_FACTOR_MODEL, n=SAMPLE_SIZE)

    def test_n_not_above_items(self):
        with pytest.raises(InvalidSettingError, match="number of items"):
            cfa_hb(THREE_FACTOR_MODEL, n=9, manual=True, verbose=False)


class TestRunControls:
    """Warnings, progress and cancellation."""

    def test_uls_warns_and_continues(self):
        with pytest.warns(UserWarning, match="ULS"):
            with pytest.raises(SimulationCancelled):
                cfa_hb(THREE_FACTOR_MODEL, n=SAMPLE_SIZE, manual=True, estimator="ULS", cancel_check=lambda: True, verbose=False)

    def test_progress_reaches_total(self):
        callback = MagicMock()
        cfa_hb(TWO_FACTOR_MODEL, n=200, manual=True, reps=5, seed=SEED, progress_callback=callback, verbose=False)
        callback.assert_any_call(0, 10)
        callback.assert_called_with(10, 10)

    def test_print_reporter_shows_levels(self, capsys):
        reporter = PrintReporter()
        cfa_hb(TWO_FACTOR_MODEL, n=200, manual=True, reps=5, seed=SEED, progress_callback=reporter, verbose=False)
        assert reporter.n_levels == 2
        assert "10/10 replications, level 1/1" in capsys.readouterr().err

    def test_status_lines(self, capsys):
        cfa_hb(TWO_FACTOR_MODEL, n=200, manual=True, reps=5, seed=SEED)
        out = capsys.readouterr().out
        assert "2 factors, 6 items" in out
        assert "Level 1: F2 =~ 0.450*y1" in out

    def test_quiet(self, capsys):
        cfa_hb(TWO_FACTOR_MODEL, n=200, manual=True, reps=5, seed=SEED, verbose=False)
        assert capsys.readouterr().out == ""

    def test_large_n_capped(self, suppress_output):
        result = cfa_hb(TWO_FACTOR_MODEL, n=20000, manual=True, reps=3, seed=SEED)
        assert result.n == 10000
