"""Data-driven starting values for model parameters.

Starting points matter for the local optimizers (Nelder-Mead, gradient
refinement) and seed particle 0 of the population methods. The rules
here look at how far the cumulative curve has flattened and how quickly
defects are still arriving.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .base import ObservedCurve


@dataclass
class InitializationConfig:
    """Empirical constants for parameter initialization.

    Attributes:
        convergence_increment: Last daily increment at or below which the
            series counts as converging
        scale_converged_min: Lower end of the total/maxY range when converging
        scale_converged_max: Upper end of the total/maxY range when converging
        scale_unconverged_min: Lower end of the range when still growing
        scale_unconverged_max: Upper end of the range when still growing
        scale_position: Position within the range used for starting values (0-1)
        slope_very_low: Average daily increment below which rates are slowest
        slope_low: Upper slope threshold for the second rate bucket
        slope_medium: Upper slope threshold for the third rate bucket
        b_exponential: Detection rates per slope bucket for concave models
        b_s_curve: Detection rates per slope bucket for S-shaped models
        change_point_ratio: Fraction of maxY at which the change point is placed
        p0: Starting imperfect-debugging factor
        eta0: Starting fault removal efficiency
        alpha0: Starting error generation rate
        gompertz_b0: Starting Gompertz displacement
    """
    convergence_increment: float = 1.0
    scale_converged_min: float = 1.1
    scale_converged_max: float = 1.4
    scale_unconverged_min: float = 1.5
    scale_unconverged_max: float = 1.9
    scale_position: float = 0.3
    slope_very_low: float = 0.1
    slope_low: float = 0.5
    slope_medium: float = 1.0
    b_exponential: list[float] = field(default_factory=lambda: [0.05, 0.1, 0.2, 0.3])
    b_s_curve: list[float] = field(default_factory=lambda: [0.08, 0.15, 0.25, 0.35])
    change_point_ratio: float = 0.5
    p0: float = 0.1
    eta0: float = 0.8
    alpha0: float = 0.1
    gompertz_b0: float = 2.0


def is_converging(found: np.ndarray, config: InitializationConfig) -> bool:
    """True when the latest daily increment is small."""
    if len(found) < 2:
        return False
    return float(found[-1] - found[-2]) <= config.convergence_increment


def scale_factor(converging: bool, config: InitializationConfig, position: float | None = None) -> float:
    """Ratio of expected total defects to the current maximum.

    Args:
        converging: Whether the series is flattening
        config: Initialization constants
        position: Point within the range (0 = low end, 1 = high end)

    Returns:
        Multiplier applied to maxY
    """
    position = config.scale_position if position is None else position
    if converging:
        low, high = config.scale_converged_min, config.scale_converged_max
    else:
        low, high = config.scale_unconverged_min, config.scale_unconverged_max
    return low + position * (high - low)


def average_slope(found: np.ndarray) -> float:
    """Mean daily increment of the cumulative series."""
    if len(found) == 0:
        return 0.0
    return float(found[-1]) / len(found)


def detection_rate(found: np.ndarray, config: InitializationConfig, s_curve: bool = False) -> float:
    """Starting detection rate b picked from the slope bucket."""
    table = config.b_s_curve if s_curve else config.b_exponential
    slope = average_slope(found)
    if slope < config.slope_very_low:
        return table[0]
    if slope < config.slope_low:
        return table[1]
    if slope < config.slope_medium:
        return table[2]
    return table[3]


def change_point_day(curve: "ObservedCurve", config: InitializationConfig) -> float:
    """First day the cumulative count reaches the configured share of maxY.

    Clipped to [2, n - 2] so both regimes keep observations.
    """
    n = curve.n_points
    target = config.change_point_ratio * curve.max_found
    reached = np.nonzero(curve.found >= target)[0]
    day = float(curve.t[reached[0]]) if len(reached) else n / 2.0
    return float(np.clip(day, 2.0, max(2.0, n - 2.0)))
