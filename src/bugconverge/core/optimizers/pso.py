"""Particle swarm optimization with decaying inertia and damped reflection."""

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
class PSOConfig:
    """Configuration for particle swarm optimization.

    Attributes:
        swarm_size: Number of particles
        max_iterations: Iteration cap
        inertia: Starting inertia weight
        inertia_min: Inertia weight reached at the final iteration
        cognitive: Pull toward each particle's own best
        social: Pull toward the swarm's best
        velocity_clamp: Max speed per axis as a fraction of the bound width
        initial_velocity_scale: Initial speed spread as a fraction of width
        reflection_damping: Velocity multiplier applied on a boundary hit
        tolerance: Relative improvement below which an iteration is stagnant
        stagnation_window: Stop after this many consecutive stagnant iterations
    """
    swarm_size: int = 30
    max_iterations: int = 500
    inertia: float = 0.729
    inertia_min: float = 0.4
    cognitive: float = 1.49445
    social: float = 1.49445
    velocity_clamp: float = 0.2
    initial_velocity_scale: float = 0.1
    reflection_damping: float = -0.5
    tolerance: float = 1e-10
    stagnation_window: int = 50


class ParticleSwarmOptimizer:
    """Global-best particle swarm.

    Particle 0 starts at the initial guess when one is given. Particles
    that leave the box are placed on the violated bound and their velocity
    component is reversed and damped.
    """

    name = "ParticleSwarm"

    def __init__(self, config: PSOConfig | None = None, seed: SeedLike = None):
        self.config = config or PSOConfig()
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
        n = max(1, cfg.swarm_size)
        dim = bounds.dimension
        width = bounds.width
        v_max = cfg.velocity_clamp * width

        positions = initial_population(bounds, rng, n, x0)
        velocities = (rng.random((n, dim)) - 0.5) * width * cfg.initial_velocity_scale
        fitness = np.array([objective(p) for p in positions])

        personal_best = positions.copy()
        personal_best_f = fitness.copy()
        g = int(np.argmin(fitness))
        global_best = positions[g].copy()
        global_best_f = float(fitness[g])

        history = [global_best_f]
        stagnant = 0
        iterations = 0

        for it in range(cfg.max_iterations):
            iterations = it + 1
            previous = global_best_f
            w = cfg.inertia - (cfg.inertia - cfg.inertia_min) * it / cfg.max_iterations

            r1 = rng.random((n, dim))
            r2 = rng.random((n, dim))
            velocities = (
                w * velocities
                + cfg.cognitive * r1 * (personal_best - positions)
                + cfg.social * r2 * (global_best - positions)
            )
            velocities = np.clip(velocities, -v_max, v_max)
            positions = positions + velocities

            below = positions < bounds.lower
            above = positions > bounds.upper
            positions = np.clip(positions, bounds.lower, bounds.upper)
            velocities = np.where(below | above, velocities * cfg.reflection_damping, velocities)

            for i in range(n):
                f = objective(positions[i])
                if f < personal_best_f[i]:
                    personal_best_f[i] = f
                    personal_best[i] = positions[i]
                if f < global_best_f:
                    global_best_f = f
                    global_best = positions[i].copy()

            history.append(global_best_f)

            if abs(previous - global_best_f) / (abs(previous) + 1e-10) < cfg.tolerance:
                stagnant += 1
            else:
                stagnant = 0
            if stagnant > cfg.stagnation_window:
                break

        return SearchOutcome(
            best_x=global_best, best_value=global_best_f, iterations=iterations, history=history
        )
