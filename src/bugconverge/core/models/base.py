"""Growth model value type and the observed curve it is fitted to."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np

from .heuristics import InitializationConfig


class ModelCategory(str, Enum):
    """Families of software reliability growth models."""
    BASIC = "basic"
    IMPERFECT_DEBUG = "imperfect_debug"
    CHANGE_POINT = "change_point"
    COVERAGE = "coverage"
    TEF = "tef"
    FRE = "fre"


@dataclass(frozen=True)
class ObservedCurve:
    """Cumulative series a model is fitted against.

    Attributes:
        t: Time index (1..n)
        found: Cumulative defects found
        fixed: Cumulative defects fixed, when recorded
        effort: Cumulative test effort, when recorded
    """
    t: np.ndarray
    found: np.ndarray
    fixed: np.ndarray | None = None
    effort: np.ndarray | None = None

    @classmethod
    def from_found(cls, found, fixed=None, effort=None) -> "ObservedCurve":
        """Build a curve indexed 1..n from cumulative arrays."""
        found = np.asarray(found, dtype=float)
        return cls(
            t=np.arange(1, len(found) + 1, dtype=float),
            found=found,
            fixed=None if fixed is None else np.asarray(fixed, dtype=float),
            effort=None if effort is None else np.asarray(effort, dtype=float),
        )

    @property
    def n_points(self) -> int:
        return int(len(self.t))

    @property
    def max_found(self) -> float:
        """Largest cumulative found value (at least 1)."""
        if len(self.found) == 0:
            return 1.0
        return max(float(np.max(self.found)), 1.0)

    @property
    def effort_scale(self) -> float:
        """Total recorded effort, or the day count when none was recorded."""
        if self.effort is not None and len(self.effort) and self.effort[-1] > 0:
            return float(self.effort[-1])
        return float(max(self.n_points, 1))

    def with_found(self, found: np.ndarray) -> "ObservedCurve":
        """Copy of this curve with a different found series."""
        return ObservedCurve(t=self.t, found=np.asarray(found, dtype=float), fixed=self.fixed, effort=self.effort)


CurveFn = Callable[[np.ndarray, np.ndarray], np.ndarray]
InitialFn = Callable[[ObservedCurve, InitializationConfig], np.ndarray]
BoundsFn = Callable[[ObservedCurve], tuple[np.ndarray, np.ndarray]]
AsymptoteFn = Callable[[np.ndarray], float]


@dataclass(frozen=True)
class GrowthModel:
    """A fixed SRGM: its curve, parameter heuristics and metadata.

    All behavior lives in module-level functions so a model pickles by
    reference and can be shipped to worker processes.

    Attributes:
        name: Catalog key
        title: Human-readable name
        category: Model family
        formula: Curve formula for display
        description: One-line description
        parameter_names: Parameter order of the vector
        curve_fn: m(t; params), vectorized over t
        initial_fn: Data-driven starting parameters
        bounds_fn: Data-driven (lower, upper) bounds
        asymptote_fn: Closed-form total defects, when one exists
        corrected_fn: Corrected-defects curve for fault-removal models
    """
    name: str
    title: str
    category: ModelCategory
    formula: str
    description: str
    parameter_names: tuple[str, ...]
    curve_fn: CurveFn
    initial_fn: InitialFn
    bounds_fn: BoundsFn
    asymptote_fn: AsymptoteFn | None = None
    corrected_fn: CurveFn | None = None

    @property
    def n_params(self) -> int:
        return len(self.parameter_names)

    @property
    def uses_fixed_series(self) -> bool:
        return self.corrected_fn is not None

    def evaluate(self, t, params) -> np.ndarray:
        """Evaluate the cumulative curve at times ``t``."""
        t = np.asarray(t, dtype=float)
        params = np.asarray(params, dtype=float)
        with np.errstate(all="ignore"):
            return np.broadcast_to(np.asarray(self.curve_fn(t, params), dtype=float), t.shape).copy()

    def evaluate_corrected(self, t, params) -> np.ndarray | None:
        """Evaluate the corrected-defects curve, or None for single-curve models."""
        if self.corrected_fn is None:
            return None
        t = np.asarray(t, dtype=float)
        with np.errstate(all="ignore"):
            return np.asarray(self.corrected_fn(t, np.asarray(params, dtype=float)), dtype=float)

    def initial_parameters(
        self,
        curve: ObservedCurve,
        init_config: InitializationConfig | None = None,
    ) -> np.ndarray:
        """Starting parameters clipped into this model's bounds."""
        if init_config is None:
            init_config = InitializationConfig()
        lower, upper = self.parameter_bounds(curve)
        initial = np.asarray(self.initial_fn(curve, init_config), dtype=float)
        return np.clip(initial, lower, upper)

    def parameter_bounds(self, curve: ObservedCurve) -> tuple[np.ndarray, np.ndarray]:
        """Search box for this curve; upper is never below lower."""
        lower, upper = self.bounds_fn(curve)
        lower = np.asarray(lower, dtype=float)
        upper = np.maximum(np.asarray(upper, dtype=float), lower)
        return lower, upper

    def asymptotic_total(self, params, horizon: float = 10000.0) -> float:
        """Estimated total defects as t grows without bound.

        Uses the closed form when the model has one, otherwise the curve
        value at ``horizon``.
        """
        params = np.asarray(params, dtype=float)
        if self.asymptote_fn is not None:
            with np.errstate(all="ignore"):
                return float(self.asymptote_fn(params))
        return float(self.evaluate(np.array([horizon]), params)[0])

    def sse(self, curve: ObservedCurve, params) -> float:
        """Sum of squared residuals against the cumulative found series.

        Fault-removal models add the squared residuals of the corrected
        curve against cumulative fixed defects.
        """
        residuals = curve.found - self.evaluate(curve.t, params)
        total = float(np.sum(residuals ** 2))
        if self.uses_fixed_series and curve.fixed is not None:
            corrected = self.evaluate_corrected(curve.t, params)
            total += float(np.sum((curve.fixed - corrected) ** 2))
        return total
