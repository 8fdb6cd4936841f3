"""Fault-removal-efficiency (FRE) models.

These describe two curves at once: defects detected and defects
corrected. Fitting adds the squared error of the corrected curve against
cumulative fixed defects to the usual detected-vs-found error.
"""

import numpy as np

from .base import GrowthModel, ModelCategory, ObservedCurve
from .basic import total_from_first
from .heuristics import InitializationConfig


def constant_fre_detected(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a, b, _ = params
    return a * (1.0 - np.exp(-b * t))


def constant_fre_corrected(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    eta = params[2]
    return eta * constant_fre_detected(t, params)


def constant_fre_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.5 * curve.max_found, 0.1, config.eta0])


def constant_fre_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.001, 0.3]), np.array([5.0 * m, 1.0, 1.0])


def error_generation_detected(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    a0, b, alpha = params[0], params[1], params[-1]
    return a0 * (1.0 - np.exp(-b * (1.0 - alpha) * t)) / (1.0 - alpha)


def error_generation_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.2 * curve.max_found, 0.1, config.alpha0])


def error_generation_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.001, 0.0]), np.array([3.0 * m, 1.0, 0.5])


def error_generation_total(params: np.ndarray) -> float:
    """Initial fault content inflated by generated errors: a0 / (1 - alpha)."""
    return float(params[0] / (1.0 - params[-1]))


def efficiency_error_generation_corrected(t: np.ndarray, params: np.ndarray) -> np.ndarray:
    eta = params[2]
    return eta * error_generation_detected(t, params)


def efficiency_error_generation_initial(curve: ObservedCurve, config: InitializationConfig) -> np.ndarray:
    return np.array([1.2 * curve.max_found, 0.1, config.eta0, config.alpha0])


def efficiency_error_generation_bounds(curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
    m = curve.max_found
    return np.array([m, 0.001, 0.3, 0.0]), np.array([3.0 * m, 1.0, 1.0, 0.5])


FRE_CONSTANT = GrowthModel(
    name="fre_constant",
    title="Constant Fault Removal Efficiency",
    category=ModelCategory.FRE,
    formula="m_d(t) = a(1 - e^(-bt)), m_c(t) = eta * m_d(t)",
    description="Exponential detection; a fixed share eta of detected faults is removed",
    parameter_names=("a", "b", "eta"),
    curve_fn=constant_fre_detected,
    initial_fn=constant_fre_initial,
    bounds_fn=constant_fre_bounds,
    asymptote_fn=total_from_first,
    corrected_fn=constant_fre_corrected,
)

FRE_ERROR_GENERATION = GrowthModel(
    name="fre_error_generation",
    title="Error Generation",
    category=ModelCategory.FRE,
    formula="m(t) = a0(1 - e^(-b(1-alpha)t)) / (1 - alpha)",
    description="Repairs generate new faults at rate alpha; every detected fault is corrected",
    parameter_names=("a0", "b", "alpha"),
    curve_fn=error_generation_detected,
    initial_fn=error_generation_initial,
    bounds_fn=error_generation_bounds,
    asymptote_fn=error_generation_total,
    corrected_fn=error_generation_detected,
)

FRE_EFFICIENCY_ERROR_GENERATION = GrowthModel(
    name="fre_efficiency_error_generation",
    title="Removal Efficiency with Error Generation",
    category=ModelCategory.FRE,
    formula="m_d(t) = a0(1 - e^(-b(1-alpha)t)) / (1 - alpha), m_c(t) = eta * m_d(t)",
    description="Error generation combined with imperfect removal efficiency eta",
    parameter_names=("a0", "b", "eta", "alpha"),
    curve_fn=error_generation_detected,
    initial_fn=efficiency_error_generation_initial,
    bounds_fn=efficiency_error_generation_bounds,
    asymptote_fn=error_generation_total,
    corrected_fn=efficiency_error_generation_corrected,
)

FRE_MODELS = (FRE_CONSTANT, FRE_ERROR_GENERATION, FRE_EFFICIENCY_ERROR_GENERATION)
