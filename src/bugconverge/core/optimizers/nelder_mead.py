"""Bounded Nelder-Mead simplex search."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .base import (
    Bounds,
    GuardedObjective,
    Objective,
    OptimizationResult,
    SearchOutcome,
    run_search,
)


@dataclass
class NelderMeadConfig:
    """Configuration for the Nelder-Mead simplex.

    Attributes:
        max_iterations: Iteration cap
        tolerance: Stop when every vertex is within this of the best value
        reflection: Reflection coefficient (alpha)
        expansion: Expansion coefficient (gamma)
        contraction: Contraction coefficient (rho)
        shrink: Shrink coefficient (sigma)
        initial_step: Initial edge length as a fraction of each bound width
        stagnation_window: Stop after this many iterations without a new best
    """
    max_iterations: int = 1000
    tolerance: float = 1e-10
    reflection: float = 1.0
    expansion: float = 2.0
    contraction: float = 0.5
    shrink: float = 0.5
    initial_step: float = 0.05
    stagnation_window: int = 100


class NelderMeadOptimizer:
    """Downhill simplex with every candidate clipped into the box.

    Deterministic: the starting simplex is built from the initial guess, or
    from the box midpoint when no guess is given.
    """

    name = "NelderMead"

    def __init__(self, config: NelderMeadConfig | None = None):
        self.config = config or NelderMeadConfig()

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

    def _initial_simplex(self, start: np.ndarray, bounds: Bounds) -> np.ndarray:
        vertices = [start.copy()]
        for i in range(bounds.dimension):
            step = max(self.config.initial_step * bounds.width[i], 1e-8)
            vertex = start.copy()
            if vertex[i] + step <= bounds.upper[i]:
                vertex[i] += step
            else:
                vertex[i] -= step
            vertices.append(bounds.clip(vertex))
        return np.array(vertices)

    def _search(
        self,
        objective: GuardedObjective,
        bounds: Bounds,
        x0: np.ndarray | None,
    ) -> SearchOutcome:
        cfg = self.config
        start = x0 if x0 is not None else bounds.midpoint
        simplex = self._initial_simplex(start, bounds)
        values = np.array([objective(v) for v in simplex])

        best_f = float(values.min())
        history = [best_f]
        stagnant = 0
        iterations = 0

        for it in range(cfg.max_iterations):
            iterations = it + 1
            order = np.argsort(values, kind="stable")
            simplex = simplex[order]
            values = values[order]

            if values[-1] - values[0] < cfg.tolerance:
                break

            centroid = simplex[:-1].mean(axis=0)
            worst = simplex[-1]

            reflected = bounds.clip(centroid + cfg.reflection * (centroid - worst))
            f_reflected = objective(reflected)

            if values[0] <= f_reflected < values[-2]:
                simplex[-1], values[-1] = reflected, f_reflected
            elif f_reflected < values[0]:
                expanded = bounds.clip(centroid + cfg.expansion * (reflected - centroid))
                f_expanded = objective(expanded)
                if f_expanded < f_reflected:
                    simplex[-1], values[-1] = expanded, f_expanded
                else:
                    simplex[-1], values[-1] = reflected, f_reflected
            else:
                if f_reflected < values[-1]:
                    contracted = bounds.clip(centroid + cfg.contraction * (reflected - centroid))
                    f_contracted = objective(contracted)
                    accepted = f_contracted <= f_reflected
                else:
                    contracted = bounds.clip(centroid + cfg.contraction * (worst - centroid))
                    f_contracted = objective(contracted)
                    accepted = f_contracted < values[-1]

                if accepted:
                    simplex[-1], values[-1] = contracted, f_contracted
                else:
                    for j in range(1, len(simplex)):
                        simplex[j] = bounds.clip(simplex[0] + cfg.shrink * (simplex[j] - simplex[0]))
                        values[j] = objective(simplex[j])

            current = float(values.min())
            history.append(min(current, best_f))
            if current < best_f:
                best_f = current
                stagnant = 0
            else:
                stagnant += 1
            if stagnant > cfg.stagnation_window:
                break

        best = int(np.argmin(values))
        return SearchOutcome(
            best_x=simplex[best].copy(),
            best_value=float(values[best]),
            iterations=iterations,
            history=history,
        )
