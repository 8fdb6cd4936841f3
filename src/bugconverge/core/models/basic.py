"""Classic NHPP growth curves: exponential, S-shaped, Gompertz and logistic."""

import numpy as np

from .base import GrowthModel, ModelCategory, ObservedCurve
from .heuristics import InitializationConfig


def total_from_first(params: np.ndarray) -> float:
    """Asymptote of curves whose first parameter is the total defect count."""
    return float(params[0])


def exponential_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b = params
    return a * (1.0 - np.exp(-b * t))


def exponential_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.1])


def rate_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    """Bounds for two-parameter (a, b) curves."""
    m = curve.max_found
    return np.array([m, 0.001]), np.array([5.0 * m, 1.0])


def delayed_s_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b = params
    return a * (1.0 - (1.0 + b * t) * np.exp(-b * t))


def delayed_s_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.15])


def gompertz_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, c = params
    return a * np.exp(-b * np.exp(-c * t))


def gompertz_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, config.gompertz_b0, 0.15])


def gompertz_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.1, 0.001]), np.array([5.0 * m, 10.0, 1.0])


def modified_gompertz_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, c = params
    return a * (c - np.exp(-b * t))


def modified_gompertz_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([curve.max_found, 0.1, 1.2])


def modified_gompertz_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    return np.array([1.0, 0.001, 1.01]), np.array([5.0 * curve.max_found, 1.0, 2.0])


def modified_gompertz_total(params: np.ndarray) -> float:
    a, _, c = params
    return float(a * c)


def logistic_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, c = params
    return a / (1.0 + np.exp(-b * (t - c)))


def logistic_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.3, curve.n_points / 2.0])


def logistic_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    n = curve.n_points
    return np.array([m, 0.01, 1.0]), np.array([5.0 * m, 2.0, 2.0 * n])


EXPONENTIAL = GrowthModel(
    name="exponential",
    title="Goel-Okumoto (Exponential)",
    category=ModelCategory.BASIC,
    formula="m(t) = a(1 - e^(-bt))",
    description="Constant per-fault detection rate; concave growth",
    parameter_names=("a", "b"),
    curve_fn=exponential_curve,
    initial_fn=exponential_initial,
    bounds_fn=rate_bounds,
    asymptote_fn=total_from_first,
)

DELAYED_S_SHAPED = GrowthModel(
    name="delayed_s_shaped",
    title="Delayed S-Shaped",
    category=ModelCategory.BASIC,
    formula="m(t) = a(1 - (1 + bt)e^(-bt))",
    description="Detection followed by isolation delay; S-shaped growth",
    parameter_names=("a", "b"),
    curve_fn=delayed_s_curve,
    initial_fn=delayed_s_initial,
    bounds_fn=rate_bounds,
    asymptote_fn=total_from_first,
)

GOMPERTZ = GrowthModel(
    name="gompertz",
    title="Gompertz",
    category=ModelCategory.BASIC,
    formula="m(t) = a * exp(-b * e^(-ct))",
    description="Asymmetric S-curve with slow late approach to the total",
    parameter_names=("a", "b", "c"),
    curve_fn=gompertz_curve,
    initial_fn=gompertz_initial,
    bounds_fn=gompertz_bounds,
    asymptote_fn=total_from_first,
)

MODIFIED_GOMPERTZ = GrowthModel(
    name="modified_gompertz",
    title="Modified Gompertz",
    category=ModelCategory.BASIC,
    formula="m(t) = a(c - e^(-bt))",
    description="Shifted exponential with a non-zero starting level; total a*c",
    parameter_names=("a", "b", "c"),
    curve_fn=modified_gompertz_curve,
    initial_fn=modified_gompertz_initial,
    bounds_fn=modified_gompertz_bounds,
    asymptote_fn=modified_gompertz_total,
)

LOGISTIC = GrowthModel(
    name="logistic",
    title="Logistic",
    category=ModelCategory.BASIC,
    formula="m(t) = a / (1 + e^(-b(t - c)))",
    description="Symmetric S-curve centered on the inflection day c",
    parameter_names=("a", "b", "c"),
    curve_fn=logistic_curve,
    initial_fn=logistic_initial,
    bounds_fn=logistic_bounds,
    asymptote_fn=total_from_first,
)

BASIC_MODELS = (EXPONENTIAL, DELAYED_S_SHAPED, GOMPERTZ, MODIFIED_GOMPERTZ, LOGISTIC)
