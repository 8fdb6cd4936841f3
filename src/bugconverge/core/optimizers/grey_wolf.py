"""Grey wolf optimizer."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .base import (
    Bounds,
    GuardedObjective,
    Objective,
    OptimizationResult,
    SearchOutcome,
    SeedLike,
    initial_population,
    run_search,
)


@dataclass
class GreyWolfConfig:
    """Configuration for the grey wolf optimizer.

    Attributes:
        pack_size: Number of wolves
        max_iterations: Iteration cap
        tolerance: Relative improvement below which an iteration is stagnant
        stagnation_window: Stop after this many consecutive stagnant iterations
    """
    pack_size: int = 30
    max_iterations: int = 500
    tolerance: float = 1e-10
    stagnation_window: int = 50


class GreyWolfOptimizer:
    """Pack search led by the three best wolves (alpha, beta, delta).

    The exploration coefficient ``a`` falls linearly from 2 to 0. Each wolf
    moves to the mean of three pulls, one toward each leader, and leaders
    are re-ranked right after every evaluation.
    """

    name = "GreyWolf"

    def __init__(self, config: GreyWolfConfig | None = None, seed: SeedLike = None):
        self.config = config or GreyWolfConfig()
        self.seed = seed

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
        rng = np.random.default_rng(self.seed)
        size = max(1, cfg.pack_size)
        dim = bounds.dimension

        pack = initial_population(bounds, rng, size, x0)
        fitness = np.array([objective(x) for x in pack])

        order = np.argsort(fitness, kind="stable")
        ranked = [int(order[min(k, size - 1)]) for k in range(3)]
        leaders = [pack[k].copy() for k in ranked]
        leader_f = [float(fitness[k]) for k in ranked]

        history = [leader_f[0]]
        stagnant = 0
        iterations = 0

        for it in range(cfg.max_iterations):
            iterations = it + 1
            previous = leader_f[0]
            a = 2.0 - it * (2.0 / cfg.max_iterations)

            for i in range(size):
                pulls = []
                for leader in leaders:
                    A = 2.0 * a * rng.random(dim) - a
                    C = 2.0 * rng.random(dim)
                    distance = np.abs(C * leader - pack[i])
                    pulls.append(bounds.clip(leader - A * distance))

                pack[i] = bounds.clip(np.mean(pulls, axis=0))
                f = objective(pack[i])
                fitness[i] = f
                self._update_leaders(leaders, leader_f, pack[i], f)

            history.append(leader_f[0])

            if abs(previous - leader_f[0]) / (abs(previous) + 1e-10) < cfg.tolerance:
                stagnant += 1
            else:
                stagnant = 0
            if stagnant > cfg.stagnation_window:
                break

        return SearchOutcome(
            best_x=leaders[0], best_value=leader_f[0], iterations=iterations, history=history
        )

    @staticmethod
    def _update_leaders(
        leaders: list[np.ndarray],
        leader_f: list[float],
        x: np.ndarray,
        f: float,
    ) -> None:
        """Insert a wolf into the alpha/beta/delta cascade if it ranks."""
        for rank in range(3):
            if f < leader_f[rank]:
                leaders.insert(rank, x.copy())
                leader_f.insert(rank, f)
                del leaders[3:]
                del leader_f[3:]
                return
