"""Tests for post-fit convergence diagnostics."""

import numpy as np
import pytest

from bugconverge.core.diagnostics import (
    ConvergenceQuality,
    DiagnosticsConfig,
    compute_diagnostics,
    recent_change_rate,
)
from bugconverge.core.optimizers.base import PENALTY_VALUE, OptimizationResult


TARGET = np.array([1.0, 2.0])


def _bowl(x: np.ndarray) -> float:
    return float(np.sum((x - TARGET) ** 2))


def _make_result(parameters, value, history=(), success=True) -> OptimizationResult:
    return OptimizationResult(
        parameters=np.asarray(parameters, dtype=float),
        objective_value=value,
        success=success,
        optimizer_name="NelderMead",
        convergence_history=tuple(history),
    )


class TestRecentChangeRate:
    """Tests for recent_change_rate."""

    def test_short_history(self):
        assert recent_change_rate([5.0], 10) == 0.0

    def test_relative_for_large_values(self):
        assert recent_change_rate([100.0, 80.0, 50.0], 10) == pytest.approx(0.5)

    def test_absolute_near_zero(self):
        """Test shrinking an already tiny objective is not a large change."""
        assert recent_change_rate([1e-7, 1e-9, 1e-11], 10) < 1e-6

    def test_window(self):
        history = [100.0, 50.0, 50.0, 50.0]
        assert recent_change_rate(history, 2) == 0.0

    def test_penalty_start_ignored(self):
        assert recent_change_rate([PENALTY_VALUE, 3.0], 10) == 0.0


class TestComputeDiagnostics:
    """Tests for compute_diagnostics."""

    def test_interior_optimum_is_good(self):
        result = _make_result(TARGET, 0.0, history=[1e-7, 1e-9, 1e-11, 0.0])
        diagnostics = compute_diagnostics(_bowl, result, [-5.0, -5.0], [5.0, 5.0])

        assert diagnostics.quality == ConvergenceQuality.GOOD
        assert diagnostics.scaled_gradient_norm < 1e-3
        assert diagnostics.bound_parameters == []

    def test_pinned_optimum_is_acceptable(self):
        """Test an optimum on the upper bounds is capped at acceptable."""
        result = _make_result([0.5, 0.5], 2.5, history=[2.5, 2.5])
        diagnostics = compute_diagnostics(_bowl, result, [-5.0, -5.0], [0.5, 0.5])

        assert diagnostics.quality == ConvergenceQuality.ACCEPTABLE
        assert diagnostics.scaled_gradient_norm == 0.0
        assert diagnostics.at_upper_bound == (True, True)
        assert diagnostics.at_lower_bound == (False, False)
        assert diagnostics.bound_parameters == [0, 1]

    def test_still_improving_costs_a_grade(self):
        result = _make_result(TARGET, 0.0, history=[10.0, 5.0, 0.0])
        diagnostics = compute_diagnostics(_bowl, result, [-5.0, -5.0], [5.0, 5.0])

        assert diagnostics.relative_change_rate == pytest.approx(1.0)
        assert diagnostics.quality == ConvergenceQuality.ACCEPTABLE

    def test_steep_point_is_poor(self):
        result = _make_result([4.0, -4.0], 45.0)
        diagnostics = compute_diagnostics(_bowl, result, [-5.0, -5.0], [5.0, 5.0])

        assert diagnostics.gradient_norm > 1.0
        assert diagnostics.quality == ConvergenceQuality.POOR

    def test_failed_result_is_poor(self):
        result = _make_result([0.0, 0.0], PENALTY_VALUE, success=False)
        diagnostics = compute_diagnostics(_bowl, result, [-5.0, -5.0], [5.0, 5.0])
        assert diagnostics.quality == ConvergenceQuality.POOR

    def test_custom_thresholds(self):
        result = _make_result([1.01, 2.0], 1e-4)
        strict = DiagnosticsConfig(good_gradient=1e-6, acceptable_gradient=1e-5, questionable_gradient=1e-4)
        diagnostics = compute_diagnostics(_bowl, result, [-5.0, -5.0], [5.0, 5.0], strict)
        assert diagnostics.quality == ConvergenceQuality.POOR
