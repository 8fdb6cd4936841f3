"""Tests for core/selection.py model selection and fit quality evaluation."""

import numpy as np
import pytest

from bugconverge.core.diagnostics import ConvergenceDiagnostics, ConvergenceQuality
from bugconverge.core.fitting import FittingResult
from bugconverge.core.models import ModelCategory
from bugconverge.core.selection import (
    DEFAULT_GRADE_THRESHOLDS,
    _grade_fit,
    akaike_weights,
    average_predictions,
    compare_fits,
    evaluate_fit_quality,
    rank_results,
    select_best,
)


def _make_result(
    name="exponential",
    aic=10.0,
    r_squared=0.95,
    success=True,
    category=ModelCategory.BASIC,
    total=100.0,
):
    """Create a FittingResult with specified metrics."""
    return FittingResult(
        model_name=name,
        category=category,
        success=success,
        parameters={"a": total, "b": 0.1},
        r_squared=r_squared,
        mse=1.0,
        aic=aic,
        predicted=np.array([10.0, 20.0, 30.0]),
        estimated_total=total,
        error_message=None if success else "Optimization failed",
    )


class TestSelectBest:
    """Tests for select_best."""

    def test_lowest_aic(self):
        results = [_make_result("a", aic=12.0), _make_result("b", aic=8.0), _make_result("c", aic=9.0)]
        assert select_best(results).model_name == "b"

    def test_tie_goes_to_first(self):
        results = [_make_result("a", aic=10.0), _make_result("b", aic=10.0)]
        assert select_best(results).model_name == "a"
        assert select_best(list(reversed(results))).model_name == "b"

    def test_failed_excluded(self):
        results = [_make_result("a", aic=-50.0, success=False), _make_result("b", aic=10.0)]
        assert select_best(results).model_name == "b"

    def test_nothing_succeeds(self):
        assert select_best([_make_result(success=False)]) is None
        assert select_best([]) is None

    def test_category(self):
        results = [
            _make_result("a", aic=5.0),
            _make_result("tef_exponential", aic=9.0, category=ModelCategory.TEF),
        ]
        assert select_best(results, category="tef").model_name == "tef_exponential"
        assert select_best(results, category=ModelCategory.COVERAGE) is None

    def test_deterministic(self):
        results = [_make_result("a", aic=3.0), _make_result("b", aic=1.0)]
        picks = {select_best(results).model_name for _ in range(5)}
        assert picks == {"b"}


class TestRankingAndWeights:
    """Tests for rank_results and Akaike weights."""

    def test_rank_order(self):
        results = [_make_result("a", aic=3.0), _make_result("b", aic=1.0), _make_result("c", success=False)]
        assert [r.model_name for r in rank_results(results)] == ["b", "a"]

    def test_weights_sum_to_one(self):
        results = [_make_result("a", aic=0.0), _make_result("b", aic=2.0)]
        weights = akaike_weights(results)

        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["a"] == pytest.approx(1.0 / (1.0 + np.exp(-1.0)))
        assert weights["a"] > weights["b"]

    def test_equal_aic_equal_weights(self):
        results = [_make_result("a", aic=4.0), _make_result("b", aic=4.0)]
        weights = akaike_weights(results)
        assert weights["a"] == pytest.approx(0.5)

    def test_no_successes(self):
        assert akaike_weights([_make_result(success=False)]) == {}

    def test_average_predictions(self):
        results = [_make_result("a", aic=4.0, total=100.0), _make_result("b", aic=4.0, total=200.0)]
        averaged = average_predictions(results)
        assert averaged["estimated_total"] == pytest.approx(150.0)
        np.testing.assert_allclose(averaged["predicted"], [10.0, 20.0, 30.0])


class TestGradeFit:
    """Tests for _grade_fit helper."""

    def test_grade_a(self):
        assert _grade_fit(0.96) == "A"

    def test_grade_b(self):
        assert _grade_fit(0.90) == "B"

    def test_grade_c(self):
        assert _grade_fit(0.75) == "C"

    def test_grade_d(self):
        assert _grade_fit(0.55) == "D"

    def test_grade_f(self):
        assert _grade_fit(0.2) == "F"

    def test_custom_thresholds(self):
        thresholds = dict(DEFAULT_GRADE_THRESHOLDS, A=0.99)
        assert _grade_fit(0.96, thresholds) == "B"


class TestEvaluateFitQuality:
    """Tests for evaluate_fit_quality."""

    def test_good_fit(self):
        assessment = evaluate_fit_quality(_make_result(r_squared=0.97))
        assert assessment["acceptable"]
        assert assessment["quality_grade"] == "A"
        assert assessment["warnings"] == []

    def test_marginal_fit(self):
        assessment = evaluate_fit_quality(_make_result(r_squared=0.8))
        assert not assessment["acceptable"]
        assert any("Marginal" in w for w in assessment["warnings"])

    def test_poor_fit(self):
        assessment = evaluate_fit_quality(_make_result(r_squared=0.3))
        assert any("Poor fit" in w for w in assessment["warnings"])

    def test_failed_fit(self):
        assessment = evaluate_fit_quality(_make_result(success=False))
        assert assessment["quality_grade"] == "F"
        assert "Fit failed" in assessment["warnings"][0]

    def test_bound_parameters(self):
        result = _make_result()
        result.diagnostics = ConvergenceDiagnostics(
            gradient_norm=0.0,
            scaled_gradient_norm=0.0,
            at_lower_bound=(False, True),
            at_upper_bound=(False, False),
            relative_change_rate=0.0,
            quality=ConvergenceQuality.GOOD,
        )
        assessment = evaluate_fit_quality(result)
        assert any("(b)" in w for w in assessment["warnings"])

    def test_limited_data(self):
        assessment = evaluate_fit_quality(_make_result(), n_points=4)
        assert any("Limited data" in w for w in assessment["warnings"])


class TestCompareFits:
    """Tests for compare_fits."""

    def test_prefers_acceptable(self):
        results = [_make_result("a", aic=1.0, r_squared=0.5), _make_result("b", aic=5.0, r_squared=0.95)]
        assert compare_fits(results).model_name == "b"

    def test_falls_back_to_best_r_squared(self):
        results = [_make_result("a", r_squared=0.5), _make_result("b", r_squared=0.7)]
        assert compare_fits(results).model_name == "b"

    def test_no_successes(self):
        with pytest.raises(ValueError):
            compare_fits([_make_result(success=False)])
