"""Shared contract and helpers for the bounded optimizers.

Every optimizer in this package minimizes a scalar objective over an
axis-aligned box ``[lower, upper]``. The strategies share no base class.
Each one implements a private search routine and hands it to
:func:`run_search`, which owns the parts of the contract that must be
identical everywhere:

- the objective is wrapped in a :class:`GuardedObjective` so NaN, infinite
  or raising evaluations become :data:`PENALTY_VALUE` and every call is counted
- bounds are validated and the initial guess is clipped into them
- the returned parameters are clipped into bounds
- no exception escapes; failures come back as ``success=False``
"""

from dataclasses import dataclass, field
import logging
import time
from typing import TYPE_CHECKING, Callable, Protocol, Sequence

import numpy as np

if TYPE_CHECKING:
    from ..diagnostics import ConvergenceDiagnostics

logger = logging.getLogger(__name__)

# Finite stand-in for NaN, infinite or failed objective evaluations
PENALTY_VALUE = 1e300

Objective = Callable[[np.ndarray], float]
SeedLike = int | np.random.SeedSequence | None


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned search box.

    Attributes:
        lower: Lower bound per parameter
        upper: Upper bound per parameter
    """
    lower: np.ndarray
    upper: np.ndarray

    @classmethod
    def from_sequences(
        cls,
        lower: Sequence[float] | np.ndarray,
        upper: Sequence[float] | np.ndarray,
    ) -> "Bounds":
        """Build validated bounds from two sequences.

        Args:
            lower: Lower bound per parameter
            upper: Upper bound per parameter

        Returns:
            Bounds instance with read-only float arrays

        Raises:
            ValueError: If lengths differ, any bound is non-finite, the box is
                empty, or a lower bound exceeds its upper bound
        """
        lower_arr = np.array(lower, dtype=float).ravel()
        upper_arr = np.array(upper, dtype=float).ravel()

        if lower_arr.shape != upper_arr.shape:
            raise ValueError(
                f"Bounds length mismatch: {lower_arr.size} lower vs {upper_arr.size} upper"
            )
        if lower_arr.size == 0:
            raise ValueError("Bounds must have at least one dimension")
        if not (np.all(np.isfinite(lower_arr)) and np.all(np.isfinite(upper_arr))):
            raise ValueError("Bounds must be finite")
        if np.any(lower_arr > upper_arr):
            idx = int(np.argmax(lower_arr > upper_arr))
            raise ValueError(
                f"Lower bound {lower_arr[idx]} exceeds upper bound {upper_arr[idx]} at index {idx}"
            )

        lower_arr.flags.writeable = False
        upper_arr.flags.writeable = False
        return cls(lower=lower_arr, upper=upper_arr)

    @property
    def dimension(self) -> int:
        """Number of parameters."""
        return int(self.lower.size)

    @property
    def width(self) -> np.ndarray:
        """Search range per parameter."""
        return self.upper - self.lower

    @property
    def midpoint(self) -> np.ndarray:
        """Center of the box."""
        return self.lower + 0.5 * self.width

    def clip(self, x: np.ndarray) -> np.ndarray:
        """Return a copy of ``x`` clipped into the box."""
        return np.clip(np.asarray(x, dtype=float), self.lower, self.upper)

    def contains(self, x: np.ndarray) -> bool:
        """Check that every coordinate lies inside the box (inclusive)."""
        x = np.asarray(x, dtype=float)
        return bool(np.all(x >= self.lower) and np.all(x <= self.upper))

    def uniform(self, rng: np.random.Generator, size: int) -> np.ndarray:
        """Draw ``size`` points uniformly from the box.

        Returns:
            Array of shape (size, dimension)
        """
        return self.lower + rng.random((size, self.dimension)) * self.width


class GuardedObjective:
    """Objective wrapper that counts calls and never raises.

    Each call receives a private copy of the candidate so the objective
    cannot alias an optimizer's working arrays.
    """

    def __init__(self, objective: Objective):
        """Wrap an objective.

        Args:
            objective: Function mapping a parameter vector to a real number
        """
        self._objective = objective
        self.evaluations = 0

    def __call__(self, x: np.ndarray) -> float:
        self.evaluations += 1
        try:
            with np.errstate(all="ignore"):
                value = float(self._objective(np.array(x, dtype=float)))
        except Exception:
            return PENALTY_VALUE

        if not np.isfinite(value) or value > PENALTY_VALUE:
            return PENALTY_VALUE
        return value


@dataclass
class SearchOutcome:
    """Raw output of a strategy's search routine.

    Attributes:
        best_x: Best parameter vector found
        best_value: Objective value at best_x
        iterations: Iterations/generations performed
        history: Best-so-far objective value per tracked iteration
    """
    best_x: np.ndarray
    best_value: float
    iterations: int
    history: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class OptimizationResult:
    """Outcome of one optimizer invocation.

    Attributes:
        parameters: Best parameter vector (always inside bounds)
        objective_value: Best objective value observed
        success: True when a value below PENALTY_VALUE was found
        optimizer_name: Name of the strategy that produced this result
        iterations: Iterations/generations performed
        evaluations: Objective calls made, including finite-difference calls
        convergence_history: Non-increasing best-so-far values
        elapsed_seconds: Wall-clock time of the invocation
        message: Failure description, None on success
        diagnostics: Optional convergence diagnostics attached by the caller
    """
    parameters: np.ndarray
    objective_value: float
    success: bool
    optimizer_name: str
    iterations: int = 0
    evaluations: int = 0
    convergence_history: tuple[float, ...] = ()
    elapsed_seconds: float = 0.0
    message: str | None = None
    diagnostics: "ConvergenceDiagnostics | None" = None


class Optimizer(Protocol):
    """Capability set shared by every optimizer strategy."""

    name: str

    def optimize(
        self,
        objective: Objective,
        lower_bounds: Sequence[float] | np.ndarray,
        upper_bounds: Sequence[float] | np.ndarray,
        initial_guess: Sequence[float] | np.ndarray | None = None,
    ) -> OptimizationResult:
        ...


SearchRoutine = Callable[[GuardedObjective, Bounds, "np.ndarray | None"], SearchOutcome]


def run_search(
    name: str,
    search: SearchRoutine,
    objective: Objective,
    lower_bounds: Sequence[float] | np.ndarray,
    upper_bounds: Sequence[float] | np.ndarray,
    initial_guess: Sequence[float] | np.ndarray | None = None,
) -> OptimizationResult:
    """Run a strategy's search routine under the shared contract.

    Args:
        name: Strategy name recorded on the result
        search: Routine taking (guarded objective, bounds, clipped guess or None)
        objective: Raw objective function
        lower_bounds: Lower bound per parameter
        upper_bounds: Upper bound per parameter
        initial_guess: Optional starting point, clipped into bounds

    Returns:
        OptimizationResult; never raises
    """
    start = time.perf_counter()
    guarded = GuardedObjective(objective)
    bounds: Bounds | None = None

    try:
        bounds = Bounds.from_sequences(lower_bounds, upper_bounds)
        x0 = _prepare_guess(initial_guess, bounds)
        outcome = search(guarded, bounds, x0)
    except Exception as e:
        elapsed = time.perf_counter() - start
        logger.debug(f"{name} failed after {guarded.evaluations} evaluations: {e}")
        return OptimizationResult(
            parameters=bounds.midpoint if bounds is not None else np.array([], dtype=float),
            objective_value=PENALTY_VALUE,
            success=False,
            optimizer_name=name,
            evaluations=guarded.evaluations,
            elapsed_seconds=elapsed,
            message=f"{type(e).__name__}: {e}",
        )

    elapsed = time.perf_counter() - start
    best_value = float(outcome.best_value)
    success = bool(np.isfinite(best_value) and best_value < PENALTY_VALUE)
    history = outcome.history or [best_value]

    logger.debug(
        f"{name}: best={best_value:.6g} iterations={outcome.iterations} "
        f"evaluations={guarded.evaluations} elapsed={elapsed:.3f}s"
    )

    return OptimizationResult(
        parameters=bounds.clip(outcome.best_x),
        objective_value=best_value,
        success=success,
        optimizer_name=name,
        iterations=outcome.iterations,
        evaluations=guarded.evaluations,
        convergence_history=tuple(float(v) for v in np.minimum.accumulate(history)),
        elapsed_seconds=elapsed,
        message=None if success else "No finite objective value found",
    )


def _prepare_guess(
    initial_guess: Sequence[float] | np.ndarray | None,
    bounds: Bounds,
) -> np.ndarray | None:
    """Clip the initial guess into bounds, replacing non-finite entries by the midpoint."""
    if initial_guess is None:
        return None

    x0 = np.array(initial_guess, dtype=float).ravel()
    if x0.size != bounds.dimension:
        raise ValueError(
            f"Initial guess has {x0.size} values, bounds have {bounds.dimension}"
        )
    x0 = np.where(np.isfinite(x0), x0, bounds.midpoint)
    return bounds.clip(x0)


def initial_population(
    bounds: Bounds,
    rng: np.random.Generator,
    size: int,
    x0: np.ndarray | None = None,
) -> np.ndarray:
    """Uniform random population, with member 0 seeded at the guess if given."""
    population = bounds.uniform(rng, size)
    if x0 is not None:
        population[0] = x0
    return population


def finite_difference_gradient(
    objective: GuardedObjective,
    x: np.ndarray,
    step: float,
    bounds: Bounds,
) -> np.ndarray:
    """Central-difference gradient with probes kept inside the box.

    Probe points are clipped into bounds and the actual probe spacing is used
    as the denominator. Components whose probes hit the penalty value, or
    whose spacing collapses to zero, are reported as 0.

    Args:
        objective: Guarded objective (each probe counts as an evaluation)
        x: Point at which to differentiate
        step: Half-width of the central difference
        bounds: Search box

    Returns:
        Gradient estimate, same shape as x
    """
    grad = np.zeros_like(x, dtype=float)
    for i in range(x.size):
        forward = x.copy()
        backward = x.copy()
        forward[i] = min(x[i] + step, bounds.upper[i])
        backward[i] = max(x[i] - step, bounds.lower[i])
        spacing = forward[i] - backward[i]
        if spacing <= 0:
            continue

        f_forward = objective(forward)
        f_backward = objective(backward)
        if f_forward >= PENALTY_VALUE or f_backward >= PENALTY_VALUE:
            continue

        component = (f_forward - f_backward) / spacing
        grad[i] = component if np.isfinite(component) else 0.0
    return grad
