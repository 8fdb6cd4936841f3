"""Post-fit convergence diagnostics for optimizer results.

Derivative-free optimizers stop on budget or stagnation, not on a
stationarity test. These diagnostics check the returned point after the
fact: how steep the objective still is, whether parameters are pinned to
their bounds, and whether the best value was still improving when the
run ended.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from .optimizers.base import (
    PENALTY_VALUE,
    Bounds,
    GuardedObjective,
    Objective,
    OptimizationResult,
    finite_difference_gradient,
)


class ConvergenceQuality(str, Enum):
    """Overall verdict on an optimizer's end point."""
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    QUESTIONABLE = "questionable"
    POOR = "poor"


@dataclass
class DiagnosticsConfig:
    """Thresholds for convergence diagnostics.

    Attributes:
        gradient_step: Central-difference half-width
        boundary_tolerance: Distance to a bound, as a fraction of its width,
            that counts as sitting on the bound
        good_gradient: Scaled gradient below which convergence is good
        acceptable_gradient: Scaled gradient below which it is acceptable
        questionable_gradient: Scaled gradient below which it is questionable
        change_window: History entries used for the recent change rate
        improving_rate: Recent relative change above which the run was still improving
    """
    gradient_step: float = 1e-6
    boundary_tolerance: float = 1e-6
    good_gradient: float = 1e-3
    acceptable_gradient: float = 1e-1
    questionable_gradient: float = 1.0
    change_window: int = 10
    improving_rate: float = 1e-3


@dataclass(frozen=True)
class ConvergenceDiagnostics:
    """Convergence evidence at an optimizer's returned point.

    Attributes:
        gradient_norm: Euclidean norm of the raw gradient
        scaled_gradient_norm: Gradient norm with each component multiplied by
            its bound width, relative to the objective value
        at_lower_bound: Per-parameter flags for sitting on the lower bound
        at_upper_bound: Per-parameter flags for sitting on the upper bound
        relative_change_rate: Relative drop of the best value over the last
            few history entries
        quality: Overall verdict
    """
    gradient_norm: float
    scaled_gradient_norm: float
    at_lower_bound: tuple[bool, ...]
    at_upper_bound: tuple[bool, ...]
    relative_change_rate: float
    quality: ConvergenceQuality

    @property
    def bound_parameters(self) -> list[int]:
        """Indices of parameters sitting on either bound."""
        return [
            i for i, (low, high) in enumerate(zip(self.at_lower_bound, self.at_upper_bound))
            if low or high
        ]

    def summary(self) -> dict:
        return {
            "gradient_norm": self.gradient_norm,
            "scaled_gradient_norm": self.scaled_gradient_norm,
            "at_lower_bound": list(self.at_lower_bound),
            "at_upper_bound": list(self.at_upper_bound),
            "relative_change_rate": self.relative_change_rate,
            "quality": self.quality.value,
        }


def recent_change_rate(history: Sequence[float], window: int) -> float:
    """Improvement of the best value across the last ``window`` entries.

    Relative to the starting value once it exceeds 1, absolute below that,
    matching the scaling of the gradient norm.
    """
    if len(history) < 2:
        return 0.0
    start = history[max(0, len(history) - 1 - window)]
    end = history[-1]
    if start >= PENALTY_VALUE:
        return 0.0
    return float(max(start - end, 0.0) / max(abs(start), 1.0))


def compute_diagnostics(
    objective: Objective,
    result: OptimizationResult,
    lower_bounds: Sequence[float] | np.ndarray,
    upper_bounds: Sequence[float] | np.ndarray,
    config: DiagnosticsConfig | None = None,
) -> ConvergenceDiagnostics:
    """Diagnose an optimizer's end point.

    Args:
        objective: The objective that was minimized
        result: Optimizer result to diagnose
        lower_bounds: Lower bound per parameter
        upper_bounds: Upper bound per parameter
        config: Diagnostic thresholds (defaults if None)

    Returns:
        ConvergenceDiagnostics for the result's parameters
    """
    config = config or DiagnosticsConfig()
    bounds = Bounds.from_sequences(lower_bounds, upper_bounds)
    x = bounds.clip(result.parameters)
    guarded = GuardedObjective(objective)

    tolerance = config.boundary_tolerance * np.maximum(bounds.width, 1e-12)
    free = bounds.width > 0
    lower_mask = free & (x - bounds.lower <= tolerance)
    upper_mask = free & (bounds.upper - x <= tolerance)

    grad = finite_difference_gradient(guarded, x, config.gradient_step, bounds)
    # Components pushing outward at an active bound do not indicate non-convergence
    grad = np.where((lower_mask & (grad > 0)) | (upper_mask & (grad < 0)), 0.0, grad)
    gradient_norm = float(np.linalg.norm(grad))
    scale = max(abs(result.objective_value), 1.0)
    scaled_norm = float(np.linalg.norm(grad * bounds.width) / scale)

    at_lower = tuple(bool(v) for v in lower_mask)
    at_upper = tuple(bool(v) for v in upper_mask)

    change_rate = recent_change_rate(result.convergence_history, config.change_window)
    quality = _grade(result.success, scaled_norm, any(at_lower) or any(at_upper), change_rate, config)

    return ConvergenceDiagnostics(
        gradient_norm=gradient_norm,
        scaled_gradient_norm=scaled_norm,
        at_lower_bound=at_lower,
        at_upper_bound=at_upper,
        relative_change_rate=change_rate,
        quality=quality,
    )


def _grade(
    success: bool,
    scaled_norm: float,
    on_bound: bool,
    change_rate: float,
    config: DiagnosticsConfig,
) -> ConvergenceQuality:
    if not success:
        return ConvergenceQuality.POOR

    levels = list(ConvergenceQuality)
    if scaled_norm < config.good_gradient:
        level = 0
    elif scaled_norm < config.acceptable_gradient:
        level = 1
    elif scaled_norm < config.questionable_gradient:
        level = 2
    else:
        level = 3

    # Pinned parameters cap the grade at acceptable; a still-falling objective costs one grade
    if on_bound:
        level = max(level, 1)
    if change_rate > config.improving_rate:
        level = min(level + 1, 3)
    return levels[level]
