"""Covariance matrix adaptation evolution strategy (CMA-ES).

The search runs in an unbounded space ``u`` mapped into the box through
the logistic transform ``x = lower + width * sigmoid(u)``, so every sample
is feasible without clipping. Axes with zero width are held fixed and
excluded from the adapted distribution.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy.special import expit, logit

from .base import (
    Bounds,
    GuardedObjective,
    Objective,
    OptimizationResult,
    SearchOutcome,
    SeedLike,
    run_search,
)

# Lower clamp on the step size; min_sigma is the stopping threshold
SIGMA_FLOOR = 1e-10


@dataclass
class CMAESConfig:
    """Configuration for CMA-ES.

    Attributes:
        max_iterations: Generation cap
        initial_sigma: Starting step size in u-space
        tolerance: Absolute improvement below which a generation is stagnant
        population_size: Offspring per generation (None: 4 + 3 ln n, at least 6)
        parent_number: Selected parents per generation (None: half the population)
        stagnation_window: Stop after this many consecutive stagnant generations
        min_sigma: Stop once the step size falls below this
        max_sigma: Upper clamp on the step size
    """
    max_iterations: int = 500
    initial_sigma: float = 0.5
    tolerance: float = 1e-10
    population_size: int | None = None
    parent_number: int | None = None
    stagnation_window: int = 50
    min_sigma: float = 1e-8
    max_sigma: float = 10.0


class CMAESOptimizer:
    """CMA-ES with rank-one and rank-mu covariance updates.

    Step size follows cumulative step-size adaptation. The eigen
    decomposition of the covariance is refreshed every ``max(1, n // 5)``
    generations and reset to the identity if it loses positive
    definiteness.
    """

    name = "CMA-ES"

    def __init__(self, config: CMAESConfig | None = None, seed: SeedLike = None):
        self.config = config or CMAESConfig()
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
        start = x0 if x0 is not None else bounds.midpoint

        free = bounds.width > 0
        n = int(np.count_nonzero(free))
        lower = bounds.lower[free]
        width = bounds.width[free]

        best_x = start.copy()
        best_f = objective(start)
        history = [best_f]
        if n == 0:
            return SearchOutcome(best_x=best_x, best_value=best_f, iterations=0, history=history)

        def to_x(u: np.ndarray) -> np.ndarray:
            x = start.copy()
            x[free] = lower + width * expit(u)
            return x

        mean = logit(np.clip((start[free] - lower) / width, 1e-12, 1 - 1e-12))

        lam = cfg.population_size or max(6, 4 + int(np.floor(3 * np.log(n))))
        mu = min(cfg.parent_number or lam // 2, lam)
        weights = np.log(mu + 0.5) - np.log(np.arange(1, mu + 1))
        weights /= weights.sum()
        mu_eff = 1.0 / np.sum(weights ** 2)

        c_sigma = (mu_eff + 2) / (n + mu_eff + 5)
        d_sigma = 1 + 2 * max(0.0, np.sqrt((mu_eff - 1) / (n + 1)) - 1) + c_sigma
        c_c = (4 + mu_eff / n) / (n + 4 + 2 * mu_eff / n)
        c_1 = 2 / ((n + 1.3) ** 2 + mu_eff)
        c_mu = min(1 - c_1, 2 * (mu_eff - 2 + 1 / mu_eff) / ((n + 2) ** 2 + mu_eff))
        chi_n = np.sqrt(n) * (1 - 1 / (4 * n) + 1 / (21 * n ** 2))
        eigen_interval = max(1, n // 5)

        sigma = cfg.initial_sigma
        p_sigma = np.zeros(n)
        p_c = np.zeros(n)
        C = np.eye(n)
        B = np.eye(n)
        D = np.ones(n)

        stagnant = 0
        iterations = 0

        for it in range(cfg.max_iterations):
            iterations = it + 1
            previous = best_f

            z = rng.standard_normal((lam, n))
            y = (z * D) @ B.T
            candidates = mean + sigma * y
            values = np.array([objective(to_x(u)) for u in candidates])

            order = np.argsort(values, kind="stable")
            if values[order[0]] < best_f:
                best_f = float(values[order[0]])
                best_x = to_x(candidates[order[0]])
            history.append(best_f)

            selected = order[:mu]
            y_w = weights @ y[selected]
            z_w = weights @ z[selected]
            mean = mean + sigma * y_w

            p_sigma = (1 - c_sigma) * p_sigma + np.sqrt(c_sigma * (2 - c_sigma) * mu_eff) * (B @ z_w)
            ps_norm = np.linalg.norm(p_sigma)
            h_sigma = float(
                ps_norm / np.sqrt(1 - (1 - c_sigma) ** (2 * (it + 1))) < (1.4 + 2 / (n + 1)) * chi_n
            )
            p_c = (1 - c_c) * p_c + h_sigma * np.sqrt(c_c * (2 - c_c) * mu_eff) * y_w

            rank_mu = (y[selected].T * weights) @ y[selected]
            delta_h = (1 - h_sigma) * c_c * (2 - c_c)
            C = (1 - c_1 - c_mu + delta_h * c_1) * C + c_1 * np.outer(p_c, p_c) + c_mu * rank_mu

            sigma *= np.exp((c_sigma / d_sigma) * (ps_norm / chi_n - 1))
            sigma = float(np.clip(sigma, SIGMA_FLOOR, cfg.max_sigma))

            if (it + 1) % eigen_interval == 0:
                B, D, C = self._decompose(C, n)

            if abs(previous - best_f) < cfg.tolerance:
                stagnant += 1
            else:
                stagnant = 0
            if stagnant > cfg.stagnation_window or sigma < cfg.min_sigma:
                break

        return SearchOutcome(best_x=best_x, best_value=best_f, iterations=iterations, history=history)

    @staticmethod
    def _decompose(C: np.ndarray, n: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return (B, D, C) with C symmetrized, or identity if not positive definite."""
        C = (C + C.T) / 2
        if np.all(np.isfinite(C)):
            try:
                eigenvalues, eigenvectors = np.linalg.eigh(C)
            except np.linalg.LinAlgError:
                eigenvalues = None
            if eigenvalues is not None and np.all(eigenvalues > 0):
                return eigenvectors, np.sqrt(eigenvalues), C

        identity = np.eye(n)
        return identity, np.ones(n), identity.copy()
