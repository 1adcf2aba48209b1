"""
Tests for lavaan-style model syntax parsing.
"""

import pytest

from dynamicfit.errors import ModelSyntaxError
from dynamicfit.utils.parsers import _parse_model_syntax, _split_statements, _split_terms, parse_model
from tests.config import THREE_FACTOR_MODEL


class TestSplitting:
    """Test statement and term splitting."""

    def test_newlines_and_semicolons(self):
        assert _split_statements("F1 =~ a + b; F2 =~ c + d\nF1 ~~ F2") == ["F1 =~ a + b", "F2 =~ c + d", "F1 ~~ F2"]

    def test_comments_removed(self):
        text = "# header\nF1 =~ a + b  # trailing\n! other comment style"
        assert _split_statements(text) == ["F1 =~ a + b"]

    def test_continuation_lines(self):
        text = "F1 =~ a + b +\n      c + d"
        assert _split_statements(text) == ["F1 =~ a + b + c + d"]

    def test_leading_plus_continuation(self):
        text = "F1 =~ a + b\n  + c"
        assert _split_statements(text) == ["F1 =~ a + b + c"]

    def test_terms_with_negative_values(self):
        assert _split_terms(".6*y1 + -.4*y2") == [".6*y1", "-.4*y2"]

    def test_terms_with_exponent(self):
        assert _split_terms("1e+0*y1 + y2") == ["1e+0*y1", "y2"]
        assert _split_terms(".7*y1+5e+1*y2") == [".7*y1", "5e+1*y2"]

    def test_item_name_ending_in_e_unspaced(self):
        assert _split_terms(".7*x2e+.6*y3") == [".7*x2e", ".6*y3"]
        assert _split_terms("x2e+y3") == ["x2e", "y3"]

    def test_unspaced_item_name_ending_in_e_parses(self):
        spec = _parse_model_syntax("F1 =~ .7*x2e+.6*y3+.6*y4\nF2 =~ .7*y5+.7*y6+.7*y7\nF1 ~~ .3*F2", require_values=True)
        assert spec.items_of("F1") == ["x2e", "y3", "y4"]

    def test_empty_term(self):
        with pytest.raises(ModelSyntaxError):
            _split_terms("y1 + + y2")


class TestParseModelSyntax:
    """Test _parse_model_syntax."""

    def test_three_factor_model(self):
        spec = _parse_model_syntax(THREE_FACTOR_MODEL, require_values=True)
        assert spec.factors == ("F1", "F2", "F3")
        assert spec.items == [f"Y{i}" for i in range(1, 10)]
        assert len(spec.loadings) == 9
        assert len(spec.factor_correlations) == 3
        assert spec.residual_correlations == []

    def test_values_parsed(self):
        spec = _parse_model_syntax("F1 =~ .7*y1 + -.4*y2 + 0.55*y3")
        assert [p.value for p in spec.loadings] == [0.7, -0.4, 0.55]

    def test_labels_and_free_parameters_have_no_value(self):
        spec = _parse_model_syntax("F1 =~ y1 + a*y2 + NA*y3 + start(.5)*y4")
        assert all(p.value is None for p in spec.loadings)

    def test_residual_correlation(self):
        spec = _parse_model_syntax("F1 =~ .7*y1 + .7*y2 + .7*y3\nF2 =~ .7*y4 + .7*y5 + .7*y6\ny1 ~~ .2*y4")
        assert len(spec.residual_correlations) == 1
        par = spec.residual_correlations[0]
        assert (par.lhs, par.rhs, par.value) == ("y1", "y4", 0.2)

    def test_variances_dropped(self):
        spec = _parse_model_syntax("F1 =~ y1 + y2 + y3\ny1 ~~ y1\nF1 ~~ 1*F1")
        assert spec.factor_correlations == []
        assert spec.residual_correlations == []

    def test_public_parse_model(self):
        spec = parse_model(THREE_FACTOR_MODEL)
        assert spec.n_factors == 3


class TestParseModelSyntaxErrors:
    """Test syntax errors."""

    def test_empty(self):
        with pytest.raises(ModelSyntaxError, match="empty"):
            _parse_model_syntax("  # only a comment\n")

    def test_not_a_string(self):
        with pytest.raises(ModelSyntaxError):
            _parse_model_syntax(42)

    def test_regression_operator(self):
        with pytest.raises(ModelSyntaxError, match="not supported"):
            _parse_model_syntax("F1 =~ y1 + y2 + y3\ny4 ~ F1")

    def test_no_factors(self):
        with pytest.raises(ModelSyntaxError, match="no factors"):
            _parse_model_syntax("y1 ~~ y2")

    def test_duplicated_loading(self):
        with pytest.raises(ModelSyntaxError, match="Duplicated"):
            _parse_model_syntax("F1 =~ y1 + y2 + y1")

    def test_duplicated_covariance(self):
        with pytest.raises(ModelSyntaxError, match="Duplicated"):
            _parse_model_syntax("F1 =~ y1 + y2\nF2 =~ y3 + y4\nF1 ~~ F2\nF2 ~~ F1")

    def test_higher_order_factor(self):
        with pytest.raises(ModelSyntaxError, match="Higher-order"):
            _parse_model_syntax("F1 =~ y1 + y2\nF2 =~ y3 + y4\nG =~ F1 + F2")

    def test_factor_item_covariance(self):
        with pytest.raises(ModelSyntaxError, match="factor and an item"):
            _parse_model_syntax("F1 =~ y1 + y2 + y3\nF1 ~~ y1")

    def test_unknown_item_in_covariance(self):
        with pytest.raises(ModelSyntaxError, match="Unknown"):
            _parse_model_syntax("F1 =~ y1 + y2 + y3\ny1 ~~ z9")

    def test_missing_values_in_manual_input(self):
        with pytest.raises(ModelSyntaxError, match="standardized value"):
            _parse_model_syntax("F1 =~ .7*y1 + y2 + .7*y3", require_values=True)

    def test_malformed_statement(self):
        with pytest.raises(ModelSyntaxError):
            _parse_model_syntax("this is not a model")
