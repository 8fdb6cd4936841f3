"""Meta-strategy that runs every optimizer and keeps the best result."""

from dataclasses import replace
import logging
import time
from typing import Sequence

import numpy as np

from .base import Objective, OptimizationResult, Optimizer, SeedLike
from .cmaes import CMAESOptimizer
from .differential_evolution import DifferentialEvolutionOptimizer
from .grey_wolf import GreyWolfOptimizer
from .grid_search import GridSearchGDOptimizer
from .nelder_mead import NelderMeadOptimizer
from .pso import ParticleSwarmOptimizer
from .settings import OptimizerSettings

logger = logging.getLogger(__name__)


def _child_seeds(seed: SeedLike, count: int) -> list[SeedLike]:
    """Independent seeds for the randomized children, or None when unseeded."""
    if seed is None:
        return [None] * count
    sequence = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return list(sequence.spawn(count))


class AutoSelectOptimizer:
    """Race all six strategies on the same problem.

    The winner is the lowest objective value among successful runs. Its
    result is renamed ``AutoSelect(<winner>)`` and carries the evaluations
    and elapsed time summed over every run.
    """

    name = "AutoSelect"

    def __init__(self, settings: OptimizerSettings | None = None, seed: SeedLike = None):
        self.settings = settings or OptimizerSettings()
        self.seed = seed

    def build_optimizers(self) -> list[Optimizer]:
        """Fresh instances of every concrete strategy, in run order."""
        s = self.settings
        pso_seed, de_seed, gwo_seed, cma_seed = _child_seeds(self.seed, 4)
        return [
            GridSearchGDOptimizer(s.grid_search),
            ParticleSwarmOptimizer(s.pso, seed=pso_seed),
            DifferentialEvolutionOptimizer(s.differential_evolution, seed=de_seed),
            GreyWolfOptimizer(s.grey_wolf, seed=gwo_seed),
            NelderMeadOptimizer(s.nelder_mead),
            CMAESOptimizer(s.cmaes, seed=cma_seed),
        ]

    def optimize(
        self,
        objective: Objective,
        lower_bounds: Sequence[float] | np.ndarray,
        upper_bounds: Sequence[float] | np.ndarray,
        initial_guess: Sequence[float] | np.ndarray | None = None,
    ) -> OptimizationResult:
        start = time.perf_counter()
        results = []
        for optimizer in self.build_optimizers():
            result = optimizer.optimize(objective, lower_bounds, upper_bounds, initial_guess)
            logger.debug(
                f"AutoSelect candidate {result.optimizer_name}: "
                f"success={result.success} value={result.objective_value:.6g}"
            )
            results.append(result)

        evaluations = sum(r.evaluations for r in results)
        elapsed = time.perf_counter() - start
        successes = [r for r in results if r.success]

        if not successes:
            details = "; ".join(f"{r.optimizer_name}: {r.message}" for r in results)
            fallback = min(results, key=lambda r: r.objective_value)
            return replace(
                fallback,
                success=False,
                optimizer_name=self.name,
                evaluations=evaluations,
                elapsed_seconds=elapsed,
                message=f"All optimizers failed ({details})",
            )

        best = min(successes, key=lambda r: r.objective_value)
        logger.debug(f"AutoSelect winner: {best.optimizer_name} ({best.objective_value:.6g})")
        return replace(
            best,
            optimizer_name=f"{self.name}({best.optimizer_name})",
            evaluations=evaluations,
            elapsed_seconds=elapsed,
        )
