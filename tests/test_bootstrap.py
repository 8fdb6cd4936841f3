"""Tests for bootstrap confidence and prediction bands."""

import numpy as np
import pytest

from bugconverge.core.bootstrap import BootstrapConfig, BootstrapEngine, IntervalType, _poisson_counts
from bugconverge.core.models import get_model
from bugconverge.data.series import TimeSeriesData


CUMULATIVE = np.array([8, 20, 35, 45, 52, 58, 62, 64, 65, 65], dtype=float)
FITTED_PARAMS = np.array([67.0, 0.22])


def make_data(cumulative=CUMULATIVE) -> TimeSeriesData:
    return TimeSeriesData(project_name="alpha", found=np.diff(cumulative, prepend=0.0))


class TestBootstrapConfig:
    """Tests for BootstrapConfig."""

    def test_defaults(self):
        config = BootstrapConfig()
        assert config.iterations == 200
        assert config.optimizer_max_iterations == 80
        assert config.sse_threshold_multiplier == 10.0
        assert config.interval_type == "confidence"
        assert config.min_lambda == 0.1

    def test_default_percentiles(self):
        low, high = BootstrapConfig(confidence_level=0.9).default_percentiles
        assert low == pytest.approx(5.0)
        assert high == pytest.approx(95.0)


class TestBootstrapEngine:
    """Tests for bootstrap_interval."""

    def test_band_ordering(self):
        """Test lower <= median <= upper and the band is non-negative."""
        engine = BootstrapEngine(BootstrapConfig(iterations=40, seed=11))
        band = engine.bootstrap_interval(make_data(), get_model("exponential"), FITTED_PARAMS)

        assert band.n_runs == 40
        assert np.all(band.lower >= 0.0)
        assert np.all(band.lower <= band.median + 1e-9)
        assert np.all(band.median <= band.upper + 1e-9)
        assert band.lower.shape == CUMULATIVE.shape
        assert band.percentiles == pytest.approx((2.5, 97.5))

    def test_parameter_and_total_intervals(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=30, seed=5))
        band = engine.bootstrap_interval(make_data(), get_model("exponential"), FITTED_PARAMS)

        assert set(band.parameter_intervals) == {"a", "b"}
        for low, high in band.parameter_intervals.values():
            assert low <= high
        low, high = band.total_interval
        assert low <= high
        assert low > 0.0

    def test_seeded_runs_repeat(self):
        config = BootstrapConfig(iterations=15, seed=3)
        model = get_model("exponential")
        first = BootstrapEngine(config).bootstrap_interval(make_data(), model, FITTED_PARAMS)
        second = BootstrapEngine(config).bootstrap_interval(make_data(), model, FITTED_PARAMS)

        np.testing.assert_array_equal(first.lower, second.lower)
        np.testing.assert_array_equal(first.upper, second.upper)

    def test_parallel_matches_sequential(self):
        """Test worker count does not change a seeded band."""
        model = get_model("exponential")
        sequential = BootstrapEngine(BootstrapConfig(iterations=6, seed=9, workers=1))
        parallel = BootstrapEngine(BootstrapConfig(iterations=6, seed=9, workers=2))

        a = sequential.bootstrap_interval(make_data(), model, FITTED_PARAMS)
        b = parallel.bootstrap_interval(make_data(), model, FITTED_PARAMS)

        np.testing.assert_allclose(a.lower, b.lower)
        np.testing.assert_allclose(a.upper, b.upper)
        assert a.n_fallbacks == b.n_fallbacks

    def test_exact_fit_collapses_band(self):
        """Test zero residuals give a band equal to the fitted curve."""
        model = get_model("exponential")
        params = np.array([80.0, 0.2])
        cumulative = model.evaluate(np.arange(1, 11, dtype=float), params)
        engine = BootstrapEngine(BootstrapConfig(iterations=10, seed=1))

        band = engine.bootstrap_interval(make_data(cumulative), model, params)

        np.testing.assert_allclose(band.lower, band.fitted, atol=1e-6)
        np.testing.assert_allclose(band.upper, band.fitted, atol=1e-6)

    def test_custom_percentiles(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=10, seed=2))
        band = engine.bootstrap_interval(
            make_data(), get_model("exponential"), FITTED_PARAMS, percentiles=(90.0, 10.0)
        )
        assert band.percentiles == (10.0, 90.0)

    def test_iterations_override(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=100, seed=2))
        band = engine.bootstrap_interval(make_data(), get_model("exponential"), FITTED_PARAMS, iterations=5)
        assert band.n_runs == 5
        assert 0.0 <= band.fallback_rate <= 1.0

    def test_invalid_iterations(self):
        engine = BootstrapEngine()
        with pytest.raises(ValueError, match="iterations"):
            engine.bootstrap_interval(make_data(), get_model("exponential"), FITTED_PARAMS, iterations=0)

    def test_invalid_percentiles(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=5))
        with pytest.raises(ValueError, match="percentiles"):
            engine.bootstrap_interval(
                make_data(), get_model("exponential"), FITTED_PARAMS, percentiles=(-1.0, 101.0)
            )

    def test_summary(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=5, seed=4))
        band = engine.bootstrap_interval(make_data(), get_model("exponential"), FITTED_PARAMS)
        summary = band.summary()
        assert summary["n_runs"] == 5
        assert len(summary["total_interval"]) == 2
        assert summary["interval_type"] == "confidence"


class TestPoissonCounts:
    """Tests for Poisson resampling of a cumulative curve."""

    def test_counts_are_cumulative_integers(self):
        fitted = get_model("exponential").evaluate(np.arange(1, 21, dtype=float), np.array([80.0, 0.2]))
        counts = _poisson_counts(fitted, np.random.default_rng(0), 0.1)

        assert counts.shape == fitted.shape
        assert np.all(np.diff(counts) >= 0.0)
        np.testing.assert_array_equal(counts, np.round(counts))

    def test_flat_curve_uses_floor(self):
        """Test a flat curve still draws from the minimum daily rate."""
        fitted = np.full(2000, 50.0)
        counts = _poisson_counts(fitted, np.random.default_rng(1), 0.1)
        # First day carries the 50, the rest average 0.1 per day
        later = counts[-1] - counts[0]
        assert 100.0 < later < 320.0


class TestPredictionBand:
    """Tests for prediction-mode bands."""

    def test_band_type_recorded(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=20, seed=3, interval_type="prediction"))
        band = engine.bootstrap_interval(make_data(), get_model("exponential"), FITTED_PARAMS)

        assert band.interval_type == "prediction"
        assert band.summary()["interval_type"] == "prediction"
        assert band.n_runs == 20
        assert np.all(band.lower >= 0.0)
        assert np.all(band.lower <= band.median + 1e-9)
        assert np.all(band.median <= band.upper + 1e-9)

    def test_exact_fit_keeps_width(self):
        """Test observation noise keeps the band open where the confidence band collapses."""
        model = get_model("exponential")
        params = np.array([80.0, 0.2])
        data = make_data(model.evaluate(np.arange(1, 11, dtype=float), params))
        engine = BootstrapEngine(BootstrapConfig(iterations=40, seed=6))

        confidence = engine.bootstrap_interval(data, model, params)
        prediction = engine.bootstrap_interval(data, model, params, interval_type=IntervalType.PREDICTION)

        confidence_width = confidence.upper - confidence.lower
        prediction_width = prediction.upper - prediction.lower
        assert np.all(prediction_width >= confidence_width - 1e-6)
        # Noise sd near the end of the curve is about sqrt(70)
        assert prediction_width[-1] > 10.0

    def test_seeded_prediction_repeats(self):
        config = BootstrapConfig(iterations=10, seed=8, interval_type="prediction")
        model = get_model("exponential")
        first = BootstrapEngine(config).bootstrap_interval(make_data(), model, FITTED_PARAMS)
        second = BootstrapEngine(config).bootstrap_interval(make_data(), model, FITTED_PARAMS)

        np.testing.assert_array_equal(first.upper, second.upper)

    def test_unknown_interval_type(self):
        engine = BootstrapEngine(BootstrapConfig(iterations=5))
        with pytest.raises(ValueError, match="IntervalType"):
            engine.bootstrap_interval(
                make_data(), get_model("exponential"), FITTED_PARAMS, interval_type="tolerance"
            )
