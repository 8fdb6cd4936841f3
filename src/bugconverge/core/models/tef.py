"""Test-effort-function (TEF) models.

Detection is driven by consumed test effort rather than calendar time.
Effort follows a Weibull test-effort function fitted jointly with the
growth parameters:

    W(t) = N(1 - exp(-(t / beta)^m))

The effort scale E used for bounds is the total recorded effort, or the
number of days when no effort was recorded.
"""

import numpy as np

from .base import GrowthModel, ModelCategory, ObservedCurve
from .heuristics import InitializationConfig


def weibull_effort(t: np.ndarray, n_total: float, beta: float, shape: float) -> np.ndarray:
    """Cumulative test effort consumed by time t."""
    return n_total * (1.0 - np.exp(-(t / beta) ** shape))


def tef_exponential_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, n_total, beta, shape = params
    return a * (1.0 - np.exp(-b * weibull_effort(t, n_total, beta, shape)))


def tef_delayed_s_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, n_total, beta, shape = params
    bw = b * weibull_effort(t, n_total, beta, shape)
    return a * (1.0 - (1.0 + bw) * np.exp(-bw))


def tef_imperfect_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, alpha, n_total, beta, shape = params
    decay = np.exp(-b * (1.0 - alpha) * weibull_effort(t, n_total, beta, shape))
    return a * (1.0 - decay) / (1.0 - alpha * (1.0 - decay))


def tef_exponential_total(params: np.ndarray) -> float:
    a, b, n_total = params[:3]
    return float(a * (1.0 - np.exp(-b * n_total)))


def tef_delayed_s_total(params: np.ndarray) -> float:
    a, b, n_total = params[:3]
    return float(a * (1.0 - (1.0 + b * n_total) * np.exp(-b * n_total)))


def tef_imperfect_total(params: np.ndarray) -> float:
    """Total once the full effort N has been consumed."""
    a, b, alpha, n_total = params[:4]
    decay = np.exp(-b * (1.0 - alpha) * n_total)
    return float(a * (1.0 - decay) / (1.0 - alpha * (1.0 - decay)))


def _effort_initial(curve: ObservedCurve) -> list[float]:
    return [1.2 * curve.effort_scale, curve.n_points / 2.0, 1.5]


def _effort_bounds(curve: ObservedCurve) -> tuple[list[float], list[float]]:
    e = curve.effort_scale
    return [e, 1.0, 0.5], [5.0 * e, 2.0 * curve.n_points, 5.0]


def tef_exponential_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.01, *_effort_initial(curve)])


def tef_delayed_s_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.02, *_effort_initial(curve)])


def tef_rate_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    effort_lower, effort_upper = _effort_bounds(curve)
    return np.array([m, 1e-4, *effort_lower]), np.array([5.0 * m, 1.0, *effort_upper])


def tef_imperfect_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.01, config.alpha0, *_effort_initial(curve)])


def tef_imperfect_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    effort_lower, effort_upper = _effort_bounds(curve)
    return np.array([m, 1e-4, 0.0, *effort_lower]), np.array([5.0 * m, 1.0, 0.5, *effort_upper])


TEF_EXPONENTIAL = GrowthModel(
    name="tef_exponential",
    title="Exponential with Weibull Test Effort",
    category=ModelCategory.TEF,
    formula="m(t) = a(1 - e^(-b*W(t))), W(t) = N(1 - e^(-(t/beta)^m))",
    description="Exponential growth in consumed test effort",
    parameter_names=("a", "b", "N", "beta", "m"),
    curve_fn=tef_exponential_curve,
    initial_fn=tef_exponential_initial,
    bounds_fn=tef_rate_bounds,
    asymptote_fn=tef_exponential_total,
)

TEF_DELAYED_S = GrowthModel(
    name="tef_delayed_s",
    title="Delayed S-Shaped with Weibull Test Effort",
    category=ModelCategory.TEF,
    formula="m(t) = a(1 - (1 + b*W(t))e^(-b*W(t)))",
    description="S-shaped growth in consumed test effort",
    parameter_names=("a", "b", "N", "beta", "m"),
    curve_fn=tef_delayed_s_curve,
    initial_fn=tef_delayed_s_initial,
    bounds_fn=tef_rate_bounds,
    asymptote_fn=tef_delayed_s_total,
)

TEF_IMPERFECT = GrowthModel(
    name="tef_imperfect",
    title="Imperfect Debugging with Weibull Test Effort",
    category=ModelCategory.TEF,
    formula="m(t) = a(1 - e^(-b(1-alpha)W(t))) / (1 - alpha(1 - e^(-b(1-alpha)W(t))))",
    description="Effort-driven detection with error generation rate alpha",
    parameter_names=("a", "b", "alpha", "N", "beta", "m"),
    curve_fn=tef_imperfect_curve,
    initial_fn=tef_imperfect_initial,
    bounds_fn=tef_imperfect_bounds,
    asymptote_fn=tef_imperfect_total,
)

TEF_MODELS = (TEF_EXPONENTIAL, TEF_DELAYED_S, TEF_IMPERFECT)
