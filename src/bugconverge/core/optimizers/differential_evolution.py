"""Differential evolution, rand/1/bin variant."""

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
class DEConfig:
    """Configuration for differential evolution.

    Attributes:
        population_size: Number of candidate vectors (at least 4 are used)
        max_iterations: Generation cap
        scaling_factor: Base mutation factor F
        scaling_jitter: Width of the uniform jitter applied to F per generation
        crossover_rate: Binomial crossover probability CR
        tolerance: Absolute improvement below which a generation is stagnant
        stagnation_window: Stop after this many consecutive stagnant generations
    """
    population_size: int = 50
    max_iterations: int = 500
    scaling_factor: float = 0.8
    scaling_jitter: float = 0.1
    crossover_rate: float = 0.9
    tolerance: float = 1e-10
    stagnation_window: int = 50


def bounce_back(
    trial: np.ndarray,
    parent: np.ndarray,
    bounds: Bounds,
    rng: np.random.Generator,
) -> np.ndarray:
    """Move out-of-bounds components to a random point between bound and parent."""
    low = trial < bounds.lower
    high = trial > bounds.upper
    u = rng.random(trial.size)
    trial = np.where(low, bounds.lower + u * (parent - bounds.lower), trial)
    trial = np.where(high, bounds.upper - u * (bounds.upper - parent), trial)
    return bounds.clip(trial)


class DifferentialEvolutionOptimizer:
    """Classic DE with greedy one-to-one replacement.

    Replacement happens in place within a generation, so later members of
    the same generation already see improved vectors.
    """

    name = "DifferentialEvolution"

    def __init__(self, config: DEConfig | None = None, seed: SeedLike = None):
        self.config = config or DEConfig()
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
        size = max(4, cfg.population_size)
        dim = bounds.dimension

        population = initial_population(bounds, rng, size, x0)
        fitness = np.array([objective(x) for x in population])
        best = int(np.argmin(fitness))
        best_x = population[best].copy()
        best_f = float(fitness[best])

        history = [best_f]
        stagnant = 0
        iterations = 0

        for it in range(cfg.max_iterations):
            iterations = it + 1
            previous = best_f
            factor = cfg.scaling_factor + cfg.scaling_jitter * (rng.random() - 0.5)

            for i in range(size):
                # Three distinct donors, none equal to i
                donors = rng.choice(size - 1, size=3, replace=False)
                donors[donors >= i] += 1
                r1, r2, r3 = donors

                mutant = population[r1] + factor * (population[r2] - population[r3])
                cross = rng.random(dim) < cfg.crossover_rate
                cross[rng.integers(dim)] = True
                trial = np.where(cross, mutant, population[i])
                trial = bounce_back(trial, population[i], bounds, rng)

                f = objective(trial)
                if f <= fitness[i]:
                    population[i] = trial
                    fitness[i] = f
                    if f < best_f:
                        best_f = f
                        best_x = trial.copy()

            history.append(best_f)

            if abs(previous - best_f) < cfg.tolerance:
                stagnant += 1
            else:
                stagnant = 0
            if stagnant > cfg.stagnation_window:
                break

        return SearchOutcome(best_x=best_x, best_value=best_f, iterations=iterations, history=history)
