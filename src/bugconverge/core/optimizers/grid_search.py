"""Exhaustive grid search followed by gradient-descent refinement."""

from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np

from .base import (
    Bounds,
    GuardedObjective,
    Objective,
    OptimizationResult,
    SearchOutcome,
    finite_difference_gradient,
    run_search,
)


@dataclass
class GridSearchConfig:
    """Configuration for grid search with gradient refinement.

    Attributes:
        grid_size: Points per axis; 0 picks a size from the dimension
        grid_size_small: Points per axis for 1-2 parameters
        grid_size_medium: Points per axis for 3 parameters
        grid_size_large: Points per axis for more than 3 parameters
        max_iterations: Gradient-descent iterations after the grid pass
        learning_rate: Step multiplier applied to the gradient
        delta: Half-width of the central-difference probe
        history_interval: Record best-so-far every N refinement iterations
    """
    grid_size: int = 0
    grid_size_small: int = 20
    grid_size_medium: int = 10
    grid_size_large: int = 8
    max_iterations: int = 2000
    learning_rate: float = 5e-5
    delta: float = 1e-4
    history_interval: int = 100

    def resolve_grid_size(self, dimension: int) -> int:
        """Points per axis for a problem of the given dimension."""
        if self.grid_size > 0:
            return self.grid_size
        if dimension <= 2:
            return self.grid_size_small
        if dimension == 3:
            return self.grid_size_medium
        return self.grid_size_large


def iterate_grid(axes: list[np.ndarray]) -> Iterator[np.ndarray]:
    """Yield every point of the cartesian product of ``axes``.

    Walks an index buffer like an odometer, last axis fastest, so memory
    stays proportional to the dimension rather than the grid size.

    Args:
        axes: Coordinate values per dimension (each non-empty)

    Yields:
        Fresh array per grid point
    """
    index = [0] * len(axes)
    point = np.array([axis[0] for axis in axes], dtype=float)

    while True:
        yield point.copy()

        d = len(axes) - 1
        while d >= 0:
            index[d] += 1
            if index[d] < len(axes[d]):
                point[d] = axes[d][index[d]]
                break
            index[d] = 0
            point[d] = axes[d][0]
            d -= 1

        if d < 0:
            return


class GridSearchGDOptimizer:
    """Deterministic grid scan refined by projected gradient descent.

    The grid places ``g`` points per axis at ``lower + step * i`` for
    ``i = 1..g`` with ``step = width / g``. The best grid point (or the
    initial guess, when better) seeds a fixed budget of clipped
    gradient-descent steps.
    """

    name = "GridSearchGD"

    def __init__(self, config: GridSearchConfig | None = None):
        self.config = config or GridSearchConfig()

    def optimize(
        self,
        objective: Objective,
        lower_bounds: Sequence[float] | np.ndarray,
        upper_bounds: Sequence[float] | np.ndarray,
        initial_guess: Sequence[float] | np.ndarray | None = None,
    ) -> OptimizationResult:
        return run_search(
            self.name, self._search, objective, lower_bounds, upper_bounds, initial_guess
        )

    def _search(
        self,
        objective: GuardedObjective,
        bounds: Bounds,
        x0: np.ndarray | None,
    ) -> SearchOutcome:
        cfg = self.config
        g = max(1, cfg.resolve_grid_size(bounds.dimension))
        steps = bounds.width / g
        # Zero-width axes collapse to a single coordinate
        axes = [
            np.unique(bounds.lower[i] + steps[i] * np.arange(1, g + 1))
            for i in range(bounds.dimension)
        ]

        best_x = bounds.midpoint
        best_f = np.inf
        if x0 is not None:
            best_x, best_f = x0.copy(), objective(x0)

        for point in iterate_grid(axes):
            f = objective(point)
            if f < best_f:
                best_x, best_f = point, f

        history = [best_f]
        x = best_x.copy()
        iterations = 0
        interval = max(1, cfg.history_interval)

        for iteration in range(1, cfg.max_iterations + 1):
            iterations = iteration
            grad = finite_difference_gradient(objective, x, cfg.delta, bounds)
            if not np.any(grad):
                break

            x = bounds.clip(x - cfg.learning_rate * grad)
            f = objective(x)
            if f < best_f:
                best_x, best_f = x.copy(), f

            if iteration % interval == 0:
                history.append(best_f)

        if history[-1] != best_f:
            history.append(best_f)

        return SearchOutcome(best_x=best_x, best_value=best_f, iterations=iterations, history=history)
