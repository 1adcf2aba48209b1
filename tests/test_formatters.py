"""
Tests for result formatting utilities.
"""

from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from dynamicfit.core.results import build_cutoff_table, derive_cutoffs
from dynamicfit.core.simulation import SimulationRun
from dynamicfit.utils.formatters import _format_results, _ResultFormatter, _TableFormatter


# ---------------------------------------------------------------------------
# TableFormatter
# ---------------------------------------------------------------------------
class TestTableFormatter:
    """Test _TableFormatter utility methods."""

    def setup_method(self):
        self.tf = _TableFormatter()

    def test_create_table_basic(self):
        headers = ["Name", "Value"]
        rows = [["alpha", "0.05"], ["beta", "0.20"]]
        table = self.tf._create_table(headers, rows)
        lines = table.split("\n")
        assert len(lines) == 4  # header + separator + 2 rows
        assert "Name" in lines[0]
        assert "-" in lines[1]
        assert "alpha" in lines[2]

    def test_create_table_custom_col_widths(self):
        table = self.tf._create_table(["A", "B"], [["x", "y"]], col_widths=[10, 10])
        header_line = table.split("\n")[0]
        # Each column padded to 10 chars + 1 space separator
        assert len(header_line) == 21

    def test_create_table_auto_col_widths(self):
        table = self.tf._create_table(["H"], [["longvalue"]])
        assert table.split("\n")[1] == "-" * len("longvalue")

    def test_create_table_no_rows(self):
        assert self.tf._create_table(["A"], []).split("\n") == ["A", "-"]

    def test_format_value_float_small(self):
        assert self.tf._format_value(0.00001) == "0.000010"

    def test_format_value_float_normal(self):
        assert self.tf._format_value(3.14159) == "3.1416"

    def test_format_value_float_with_spec(self):
        assert self.tf._format_value(3.14159, ".3f") == "3.142"

    def test_format_value_non_float(self):
        assert self.tf._format_value("hello") == "hello"
        assert self.tf._format_value(42) == "42"


# ---------------------------------------------------------------------------
# Result formatting
# ---------------------------------------------------------------------------
def _table():
    true = SimulationRun(0, np.column_stack([np.linspace(0.01, 0.05, 101), np.linspace(0, 0.04, 101), np.linspace(0.95, 0.99, 101)]))
    mis = SimulationRun(1, np.column_stack([np.linspace(0.1, 0.2, 101), np.linspace(0.08, 0.12, 101), np.linspace(0.8, 0.9, 101)]))
    return build_cutoff_table(derive_cutoffs([true, mis], [None, 0.45]))


class TestResultFormatter:
    """Test _ResultFormatter output."""

    def test_manual_result(self):
        result = SimpleNamespace(cutoffs=_table(), fit=None, plots=[])
        out = _format_results(result)
        assert out.startswith("Your DFI cutoffs:")
        assert "Level-0" in out
        assert "Sensitivity" in out
        assert "Empirical fit indices" not in out

    def test_fit_summary_included(self):
        fit = pd.DataFrame([[25.1, 24, 0.401, 0.021, 0.011, 0.998]], columns=["Chi-Square", "df", "p-value", "SRMR", "RMSEA", "CFI"])
        result = SimpleNamespace(cutoffs=_table(), fit=fit, plots=[])
        out = _format_results(result)
        assert "Empirical fit indices:" in out
        assert "25.100" in out
        assert "Chi-Square" in out

    def test_plot_note(self):
        result = SimpleNamespace(cutoffs=_table(), fit=None, plots=[object()])
        assert "1 distribution plot(s)" in _ResultFormatter().format(result)

    def test_cutoff_rows_rendered(self):
        lines = _ResultFormatter()._format_cutoffs(_table()).split("\n")
        # header + separator + 5 table rows
        assert len(lines) == 7
        assert lines[2].startswith("Level-0")
        assert "NONE" in lines[2]
