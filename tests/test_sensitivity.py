"""Tests for local parameter sensitivity analysis."""

import numpy as np
import pytest

from bugconverge.core.models import get_model
from bugconverge.core.sensitivity import (
    Robustness,
    SensitivityAnalyzer,
    SensitivityConfig,
    robustness_for,
)


PARAMS = np.array([80.0, 0.2])


class TestRobustnessFor:
    """Tests for elasticity grading."""

    @pytest.mark.parametrize("elasticity,expected", [
        (0.3, Robustness.HIGH),
        (-0.99, Robustness.HIGH),
        (2.0, Robustness.MEDIUM),
        (-7.5, Robustness.LOW),
        (12.0, Robustness.VERY_LOW),
        (float("nan"), Robustness.UNKNOWN),
    ])
    def test_grades(self, elasticity, expected):
        assert robustness_for(elasticity) == expected


class TestSensitivityAnalyzer:
    """Tests for SensitivityAnalyzer."""

    def test_total_of_exponential(self):
        """Test the total scales one-for-one with a and ignores b."""
        report = SensitivityAnalyzer().total_sensitivity(get_model("exponential"), PARAMS)

        assert report.base_value == pytest.approx(80.0)
        elasticities = {i.parameter: i.elasticity for i in report.items}
        assert elasticities["a"] == pytest.approx(1.0)
        assert elasticities["b"] == pytest.approx(0.0, abs=1e-12)
        assert report.items[1].direction == "neutral"
        assert report.warnings == []

    def test_cumulative_elasticity(self):
        """Test the day-5 elasticity of b against its closed form."""
        report = SensitivityAnalyzer().cumulative_sensitivity(get_model("exponential"), PARAMS, 5.0)

        # b t e^(-bt) / (1 - e^(-bt)) with bt = 1
        expected = np.exp(-1.0) / (1.0 - np.exp(-1.0))
        b_item = report.items[1]
        assert b_item.elasticity == pytest.approx(expected, rel=1e-3)
        assert b_item.direction == "positive"
        assert b_item.perturbed_down < report.base_value < b_item.perturbed_up

    def test_high_elasticity_warns(self):
        report = SensitivityAnalyzer().analyze(("x", "y"), [2.0, 0.5], "Power", lambda p: p[0] ** 12)

        assert report.items[0].elasticity == pytest.approx(12.0, rel=1e-2)
        assert report.robustness == Robustness.VERY_LOW
        assert len(report.warnings) == 1
        assert "extremely sensitive to x" in report.warnings[0]

    def test_caution_threshold(self):
        config = SensitivityConfig(caution_elasticity=0.5)
        report = SensitivityAnalyzer(config).total_sensitivity(get_model("exponential"), PARAMS)
        assert report.warnings == ["Estimated total is sensitive to a (elasticity 1.00)"]

    def test_zero_base_value(self):
        report = SensitivityAnalyzer().analyze(("a",), [3.0], "Nothing", lambda p: 0.0)

        assert report.items == []
        assert report.robustness == Robustness.UNKNOWN
        assert "cannot be computed" in report.warnings[0]

    def test_zero_parameter_is_neutral(self):
        report = SensitivityAnalyzer().analyze(("a", "b"), [4.0, 0.0], "Sum", lambda p: p[0] + p[1])

        zero = report.items[1]
        assert zero.elasticity == 0.0
        assert zero.perturbed_up == zero.perturbed_down == report.base_value

    def test_analyze_all(self):
        reports = SensitivityAnalyzer().analyze_all(get_model("exponential"), PARAMS, current_day=10.0)

        assert set(reports) == {"total", "current", "future"}
        assert reports["future"].metric == "Cumulative defects at day 15"
        # Later days depend less on the rate b
        assert abs(reports["future"].items[1].elasticity) < abs(reports["current"].items[1].elasticity)

    def test_summary(self):
        report = SensitivityAnalyzer().total_sensitivity(get_model("exponential"), PARAMS)
        summary = report.summary()

        assert summary["metric"] == "Estimated total"
        assert set(summary["elasticities"]) == {"a", "b"}
        assert summary["perturbation_ratio"] == 0.01
