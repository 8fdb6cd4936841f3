"""Imperfect-debugging models.

The factor ``p`` describes what happens when a fault is repaired: p > 0
means repairs reintroduce faults, p < 0 means removing one fault tends to
remove correlated faults as well, and p = 0 is perfect debugging.
"""

import numpy as np

from .base import GrowthModel, ModelCategory, ObservedCurve
from .basic import total_from_first
from .heuristics import InitializationConfig, detection_rate, is_converging, scale_factor

P_LOWER = -0.5
P_UPPER = 0.99


def _starting_total(curve: ObservedCurve, config: InitializationConfig) -> float:
    return curve.max_found * scale_factor(is_converging(curve.found, config), config)


def pham_exponential_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, p = params
    decay = np.exp(-b * t)
    return a * (1.0 - decay) / (1.0 + p * decay)


def pham_exponential_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([
        _starting_total(curve, config),
        detection_rate(curve.found, config),
        config.p0,
    ])


def imperfect_rate_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    """Bounds for (a, b, p) imperfect-debugging curves."""
    m = curve.max_found
    return np.array([m, 0.001, P_LOWER]), np.array([5.0 * m, 1.0, P_UPPER])


def weibull_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, c, p = params
    detected = 1.0 - np.exp(-b * t ** c)
    return a * detected / (1.0 + p * detected)


def weibull_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([
        _starting_total(curve, config),
        detection_rate(curve.found, config),
        1.0,
        config.p0,
    ])


def weibull_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.001, 0.5, P_LOWER]), np.array([5.0 * m, 1.0, 2.0, P_UPPER])


def weibull_total(params: np.ndarray) -> float:
    a, _, _, p = params
    return float(a / (1.0 + p))


def imperfect_delayed_s_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, p = params
    decay = np.exp(-b * t)
    return a * (1.0 - (1.0 + b * t) * decay) / (1.0 + p * decay)


def imperfect_delayed_s_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([
        _starting_total(curve, config),
        detection_rate(curve.found, config, s_curve=True),
        config.p0,
    ])


IMPERFECT_EXPONENTIAL = GrowthModel(
    name="imperfect_exponential",
    title="Pham Imperfect Debugging (Exponential)",
    category=ModelCategory.IMPERFECT_DEBUG,
    formula="m(t) = a(1 - e^(-bt)) / (1 + p*e^(-bt))",
    description="Exponential detection with fault reintroduction or correlated removal",
    parameter_names=("a", "b", "p"),
    curve_fn=pham_exponential_curve,
    initial_fn=pham_exponential_initial,
    bounds_fn=imperfect_rate_bounds,
    asymptote_fn=total_from_first,
)

IMPERFECT_WEIBULL = GrowthModel(
    name="imperfect_weibull",
    title="Generalized Imperfect Debugging (Weibull)",
    category=ModelCategory.IMPERFECT_DEBUG,
    formula="m(t) = a(1 - e^(-bt^c)) / (1 + p(1 - e^(-bt^c)))",
    description="Weibull-shaped detection with imperfect debugging; total a/(1+p)",
    parameter_names=("a", "b", "c", "p"),
    curve_fn=weibull_curve,
    initial_fn=weibull_initial,
    bounds_fn=weibull_bounds,
    asymptote_fn=weibull_total,
)

IMPERFECT_DELAYED_S = GrowthModel(
    name="imperfect_delayed_s",
    title="Imperfect Debugging (Delayed S-Shaped)",
    category=ModelCategory.IMPERFECT_DEBUG,
    formula="m(t) = a(1 - (1 + bt)e^(-bt)) / (1 + p*e^(-bt))",
    description="S-shaped detection with imperfect debugging",
    parameter_names=("a", "b", "p"),
    curve_fn=imperfect_delayed_s_curve,
    initial_fn=imperfect_delayed_s_initial,
    bounds_fn=imperfect_rate_bounds,
    asymptote_fn=total_from_first,
)

IMPERFECT_DEBUG_MODELS = (IMPERFECT_EXPONENTIAL, IMPERFECT_WEIBULL, IMPERFECT_DELAYED_S)
