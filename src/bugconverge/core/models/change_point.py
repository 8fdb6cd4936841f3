"""Single change-point model with a switch in detection rate at day tau."""

import numpy as np

from .base import GrowthModel, ModelCategory, ObservedCurve
from .basic import total_from_first
from .heuristics import InitializationConfig, change_point_day, detection_rate


def effective_time(t: np.ndarray, b1: float, b2: float, tau: float) -> np.ndarray:
    """Accumulated detection exposure, continuous at tau.

    ``b1 * t`` before the change point and ``b1 * tau + b2 * (t - tau)`` after.
    """
    return np.where(t <= tau, b1 * t, b1 * tau + b2 * (t - tau))


def change_point_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b1, b2, p, tau = params
    decay = np.exp(-effective_time(t, b1, b2, tau))
    return a * (1.0 - decay) / (1.0 + p * decay)


def change_point_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    b = detection_rate(curve.found, config)
    return np.array([1.5 * curve.max_found, b, b, config.p0, change_point_day(curve, config)])


def change_point_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    n = curve.n_points
    lower = np.array([m, 1e-8, 1e-8, -0.5, 2.0])
    upper = np.array([100.0 * m, 10.0, 10.0, 5.0, n - 2.0])
    return lower, upper


CHANGE_POINT = GrowthModel(
    name="change_point",
    title="Change-Point Imperfect Debugging",
    category=ModelCategory.CHANGE_POINT,
    formula="m(t) = a(1 - e^(-u(t))) / (1 + p*e^(-u(t))), u(t) = b1*t | b1*tau + b2*(t - tau)",
    description="Detection rate switches from b1 to b2 at day tau",
    parameter_names=("a", "b1", "b2", "p", "tau"),
    curve_fn=change_point_curve,
    initial_fn=change_point_initial,
    bounds_fn=change_point_bounds,
    asymptote_fn=total_from_first,
)


CHANGE_POINT_MODELS = (CHANGE_POINT,)
