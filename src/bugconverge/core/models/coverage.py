"""Testing-coverage models: m(t) = a * C(t) for a coverage function C."""

import numpy as np

from .base import GrowthModel, ModelCategory, ObservedCurve
from .basic import total_from_first
from .heuristics import InitializationConfig


def weibull_coverage_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, beta, gamma = params
    return a * (1.0 - np.exp(-(beta * t) ** gamma))


def weibull_coverage_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 2.0 / max(curve.n_points, 1), 1.0])


def weibull_coverage_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 1e-8, 0.1]), np.array([100.0 * m, 10.0, 5.0])


def logistic_coverage_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, beta, tau = params
    return a / (1.0 + np.exp(-beta * (t - tau)))


def logistic_coverage_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.2, curve.n_points / 2.0])


def logistic_coverage_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.01, 1.0]), np.array([100.0 * m, 10.0, float(curve.n_points)])


def gompertz_coverage_curve(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, beta, tau = params
    return a * np.exp(-np.exp(-beta * (t - tau)))


def gompertz_coverage_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.15, curve.n_points / 3.0])


def gompertz_coverage_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.001, 1.0]), np.array([100.0 * m, 5.0, float(curve.n_points)])


COVERAGE_WEIBULL = GrowthModel(
    name="coverage_weibull",
    title="Weibull Testing Coverage",
    category=ModelCategory.COVERAGE,
    formula="m(t) = a(1 - exp(-(beta*t)^gamma))",
    description="Coverage grows as a Weibull distribution function",
    parameter_names=("a", "beta", "gamma"),
    curve_fn=weibull_coverage_curve,
    initial_fn=weibull_coverage_initial,
    bounds_fn=weibull_coverage_bounds,
    asymptote_fn=total_from_first,
)

COVERAGE_LOGISTIC = GrowthModel(
    name="coverage_logistic",
    title="Logistic Testing Coverage",
    category=ModelCategory.COVERAGE,
    formula="m(t) = a / (1 + e^(-beta(t - tau)))",
    description="Coverage follows a logistic ramp centered at tau",
    parameter_names=("a", "beta", "tau"),
    curve_fn=logistic_coverage_curve,
    initial_fn=logistic_coverage_initial,
    bounds_fn=logistic_coverage_bounds,
    asymptote_fn=total_from_first,
)

COVERAGE_GOMPERTZ = GrowthModel(
    name="coverage_gompertz",
    title="Gompertz Testing Coverage",
    category=ModelCategory.COVERAGE,
    formula="m(t) = a * exp(-e^(-beta(t - tau)))",
    description="Coverage follows a Gompertz ramp with inflection at tau",
    parameter_names=("a", "beta", "tau"),
    curve_fn=gompertz_coverage_curve,
    initial_fn=gompertz_coverage_initial,
    bounds_fn=gompertz_coverage_bounds,
    asymptote_fn=total_from_first,
)

COVERAGE_MODELS = (COVERAGE_WEIBULL, COVERAGE_LOGISTIC, COVERAGE_GOMPERTZ)
