"""Tests for the growth model catalog."""

from dataclasses import replace

import numpy as np
import pytest

from bugconverge.core.models import (
    CATALOG,
    InitializationConfig,
    ModelCategory,
    ObservedCurve,
    get_model,
    get_models,
    model_names,
    parse_categories,
)


CUMULATIVE = np.array([8, 20, 35, 45, 52, 58, 62, 64, 65, 65], dtype=float)
FIXED = np.array([2, 10, 22, 35, 44, 50, 56, 60, 62, 63], dtype=float)
EFFORT = np.cumsum(np.full(10, 20.0))

ALL_MODELS = [model for models in CATALOG.values() for model in models]


def make_curve(with_extras: bool = True) -> ObservedCurve:
    if with_extras:
        return ObservedCurve.from_found(CUMULATIVE, fixed=FIXED, effort=EFFORT)
    return ObservedCurve.from_found(CUMULATIVE)


class TestCatalog:
    """Tests for catalog lookup."""

    def test_every_category_populated(self):
        for category in ModelCategory:
            assert len(CATALOG[category]) >= 1

    def test_names_unique(self):
        names = model_names()
        assert len(names) == len(set(names))
        assert len(names) == len(ALL_MODELS)

    def test_basic_models(self):
        names = [m.name for m in get_models()]
        assert names == ["exponential", "delayed_s_shaped", "gompertz", "modified_gompertz", "logistic"]

    def test_get_model(self):
        model = get_model("gompertz")
        assert model.category == ModelCategory.BASIC
        assert model.parameter_names == ("a", "b", "c")

    def test_get_unknown_model(self):
        with pytest.raises(KeyError, match="Unknown model"):
            get_model("weibull_bathtub")

    def test_categories_match(self):
        for category, models in CATALOG.items():
            for model in models:
                assert model.category == category


class TestParseCategories:
    """Tests for category name parsing."""

    def test_extended_excludes_basic(self):
        categories = parse_categories(["extended"])
        assert ModelCategory.BASIC not in categories
        assert len(categories) == len(ModelCategory) - 1

    def test_all(self):
        assert parse_categories(["all"]) == list(ModelCategory)

    def test_catalog_order_and_dedup(self):
        categories = parse_categories(["TEF", "basic", "tef"])
        assert categories == [ModelCategory.BASIC, ModelCategory.TEF]

    def test_hyphenated_name(self):
        assert parse_categories(["change-point"]) == [ModelCategory.CHANGE_POINT]

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown model category"):
            parse_categories(["quantum"])


class TestModelBehavior:
    """Properties every catalog model must satisfy."""

    @pytest.mark.parametrize("model", ALL_MODELS, ids=[m.name for m in ALL_MODELS])
    def test_initial_within_bounds(self, model):
        curve = make_curve()
        lower, upper = model.parameter_bounds(curve)
        initial = model.initial_parameters(curve, InitializationConfig())

        assert len(initial) == model.n_params
        assert len(lower) == model.n_params
        assert np.all(lower <= upper)
        assert np.all(initial >= lower)
        assert np.all(initial <= upper)

    @pytest.mark.parametrize("model", ALL_MODELS, ids=[m.name for m in ALL_MODELS])
    def test_evaluate_finite_at_initial(self, model):
        curve = make_curve()
        initial = model.initial_parameters(curve)
        values = model.evaluate(curve.t, initial)

        assert values.shape == curve.t.shape
        assert np.all(np.isfinite(values))

    @pytest.mark.parametrize("model", ALL_MODELS, ids=[m.name for m in ALL_MODELS])
    def test_evaluate_is_pure(self, model):
        """Test evaluation has no hidden state."""
        curve = make_curve()
        params = model.initial_parameters(curve)
        first = model.evaluate(curve.t, params)
        model.evaluate(np.linspace(1, 500, 50), params * 1.1)
        second = model.evaluate(curve.t, params)
        np.testing.assert_array_equal(first, second)

    @pytest.mark.parametrize("model", ALL_MODELS, ids=[m.name for m in ALL_MODELS])
    def test_sse_non_negative(self, model):
        curve = make_curve()
        params = model.initial_parameters(curve)
        sse = model.sse(curve, params)
        assert np.isfinite(sse)
        assert sse >= 0.0

    @pytest.mark.parametrize("model", ALL_MODELS, ids=[m.name for m in ALL_MODELS])
    def test_without_optional_series(self, model):
        """Test models work when fixed and effort counts were not recorded."""
        curve = make_curve(with_extras=False)
        params = model.initial_parameters(curve)
        assert np.all(np.isfinite(model.evaluate(curve.t, params)))

    @pytest.mark.parametrize("model", ALL_MODELS, ids=[m.name for m in ALL_MODELS])
    def test_fixed_series_scored_by_removal_models(self, model):
        """Test only fault-removal models add the fixed-count residuals to the SSE."""
        params = model.initial_parameters(make_curve())
        with_fixed = model.sse(make_curve(), params)
        without_fixed = model.sse(ObservedCurve.from_found(CUMULATIVE, effort=EFFORT), params)

        assert model.uses_fixed_series == (model.category == ModelCategory.FRE)
        if model.uses_fixed_series:
            assert with_fixed > without_fixed
        else:
            assert with_fixed == without_fixed

    @pytest.mark.parametrize(
        "model",
        [m for m in ALL_MODELS if m.asymptote_fn is not None],
        ids=[m.name for m in ALL_MODELS if m.asymptote_fn is not None],
    )
    def test_total_is_curve_limit(self, model):
        """Test the closed-form total matches the curve far in the future."""
        lower, upper = model.parameter_bounds(make_curve())
        params = (lower + upper) / 2.0

        limit = model.evaluate(np.array([1e6]), params)[0]
        assert model.asymptotic_total(params) == pytest.approx(limit, rel=1e-6)


class TestBasicModels:
    """Closed-form checks for the classic curves."""

    def test_exponential_bounds(self):
        curve = make_curve()
        lower, upper = get_model("exponential").parameter_bounds(curve)
        np.testing.assert_allclose(lower, [65.0, 0.001])
        np.testing.assert_allclose(upper, [325.0, 1.0])

    def test_exponential_curve(self):
        model = get_model("exponential")
        values = model.evaluate(np.array([0.0, 1.0]), np.array([100.0, 0.5]))
        np.testing.assert_allclose(values, [0.0, 100.0 * (1 - np.exp(-0.5))])

    def test_exponential_total(self):
        model = get_model("exponential")
        assert model.asymptotic_total(np.array([80.0, 0.3])) == pytest.approx(80.0)

    def test_delayed_s_shaped_curve(self):
        model = get_model("delayed_s_shaped")
        t = np.array([2.0])
        expected = 50.0 * (1 - (1 + 0.4) * np.exp(-0.4))
        np.testing.assert_allclose(model.evaluate(t, np.array([50.0, 0.2])), [expected])

    def test_gompertz_bounds(self):
        lower, upper = get_model("gompertz").parameter_bounds(make_curve())
        np.testing.assert_allclose(lower, [65.0, 0.1, 0.001])
        np.testing.assert_allclose(upper, [325.0, 10.0, 1.0])

    def test_modified_gompertz_total(self):
        model = get_model("modified_gompertz")
        assert model.asymptotic_total(np.array([50.0, 0.2, 1.5])) == pytest.approx(75.0)

    def test_logistic_midpoint(self):
        model = get_model("logistic")
        value = model.evaluate(np.array([5.0]), np.array([100.0, 0.5, 5.0]))
        assert value[0] == pytest.approx(50.0)

    def test_total_without_closed_form_uses_horizon(self):
        """Test a model without an asymptote formula is evaluated at the horizon."""
        model = replace(get_model("exponential"), asymptote_fn=None)
        params = np.array([80.0, 0.01])
        total = model.asymptotic_total(params, horizon=500.0)
        assert total == pytest.approx(80.0 * (1 - np.exp(-5.0)))
