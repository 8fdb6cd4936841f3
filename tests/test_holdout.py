"""Tests for holdout validation."""

import numpy as np
import pytest

from bugconverge.core.fitting import FittingConfig, ModelFitter
from bugconverge.core.holdout import HoldoutValidator, calculate_holdout_metrics
from bugconverge.core.models import get_model
from bugconverge.core.optimizers import DEConfig, OptimizerSettings
from bugconverge.data.series import TimeSeriesData


CUMULATIVE = [8, 20, 35, 45, 52, 58, 62, 64, 65, 65]


def make_data(cumulative=CUMULATIVE) -> TimeSeriesData:
    return TimeSeriesData.from_cumulative(cumulative, project_name="alpha")


def make_fitter() -> ModelFitter:
    settings = OptimizerSettings(differential_evolution=DEConfig(population_size=30, max_iterations=300))
    return ModelFitter(FittingConfig(seed=42), settings)


class TestHoldoutMetrics:
    """Tests for calculate_holdout_metrics."""

    def test_exact_prediction(self):
        actual = np.array([10.0, 20.0, 30.0])
        metrics = calculate_holdout_metrics(actual, actual.copy())
        assert metrics["mape"] == 0.0
        assert metrics["rmse"] == 0.0
        assert metrics["bias"] == 0.0
        assert metrics["correlation"] == pytest.approx(1.0)

    def test_errors(self):
        actual = np.array([10.0, 20.0, 40.0])
        predicted = np.array([11.0, 18.0, 44.0])
        metrics = calculate_holdout_metrics(actual, predicted)

        assert metrics["mape"] == pytest.approx(10.0)
        assert metrics["rmse"] == pytest.approx(np.sqrt((1 + 4 + 16) / 3))
        assert metrics["bias"] == pytest.approx(1.0 / (70.0 / 3))

    def test_zero_actuals_excluded(self):
        metrics = calculate_holdout_metrics(np.array([0.0, 10.0]), np.array([5.0, 12.0]))
        assert metrics["mape"] == pytest.approx(20.0)

    def test_all_zero_actuals(self):
        metrics = calculate_holdout_metrics(np.zeros(3), np.ones(3))
        assert metrics["mape"] == 100.0
        assert metrics["correlation"] == 0.0


class TestHoldoutValidator:
    """Tests for HoldoutValidator."""

    def test_can_validate(self):
        validator = HoldoutValidator(holdout_days=3, min_training_days=5)
        assert validator.can_validate(make_data())
        assert not validator.can_validate(make_data(CUMULATIVE[:7]))

    def test_too_short_returns_none(self):
        validator = HoldoutValidator(holdout_days=3, min_training_days=5)
        result = validator.validate(make_data(CUMULATIVE[:6]), get_model("exponential"), make_fitter())
        assert result is None

    def test_validate(self):
        validator = HoldoutValidator(holdout_days=3, min_training_days=5)
        result = validator.validate(make_data(), get_model("exponential"), make_fitter())

        assert result is not None
        assert result.model_name == "exponential"
        assert result.training_days == 7
        assert result.holdout_days == 3
        np.testing.assert_array_equal(result.holdout_actual, [64.0, 65.0, 65.0])
        assert result.holdout_predicted.shape == (3,)
        assert result.training_r_squared > 0.9
        assert result.mape < 20.0
        assert result.is_good_holdout

    def test_summary(self):
        validator = HoldoutValidator(holdout_days=2, min_training_days=5)
        result = validator.validate(make_data(), get_model("exponential"), make_fitter())
        summary = result.summary()
        assert summary["training_days"] == 8
        assert "is_good_holdout" in summary
