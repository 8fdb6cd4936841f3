"""Bounded optimizers for curve fitting."""

from .auto import AutoSelectOptimizer
from .base import (
    PENALTY_VALUE,
    Bounds,
    GuardedObjective,
    Objective,
    OptimizationResult,
    Optimizer,
    SeedLike,
    run_search,
)
from .cmaes import CMAESConfig, CMAESOptimizer
from .differential_evolution import DEConfig, DifferentialEvolutionOptimizer
from .grey_wolf import GreyWolfConfig, GreyWolfOptimizer
from .grid_search import GridSearchConfig, GridSearchGDOptimizer
from .nelder_mead import NelderMeadConfig, NelderMeadOptimizer
from .pso import ParticleSwarmOptimizer, PSOConfig
from .settings import (
    CONCRETE_OPTIMIZERS,
    OptimizerSettings,
    OptimizerType,
    parse_optimizer_type,
)


def create_optimizer(
    optimizer_type: OptimizerType | str,
    settings: OptimizerSettings | None = None,
    seed: SeedLike = None,
) -> Optimizer:
    """Build an optimizer instance.

    Args:
        optimizer_type: Strategy to build (enum or name)
        settings: Per-strategy configuration (defaults if None)
        seed: Seed for randomized strategies; ignored by deterministic ones

    Returns:
        Optimizer ready to call ``optimize``
    """
    optimizer_type = parse_optimizer_type(optimizer_type)
    settings = settings or OptimizerSettings()

    if optimizer_type == OptimizerType.GRID_SEARCH_GD:
        return GridSearchGDOptimizer(settings.grid_search)
    if optimizer_type == OptimizerType.PSO:
        return ParticleSwarmOptimizer(settings.pso, seed=seed)
    if optimizer_type == OptimizerType.DIFFERENTIAL_EVOLUTION:
        return DifferentialEvolutionOptimizer(settings.differential_evolution, seed=seed)
    if optimizer_type == OptimizerType.GREY_WOLF:
        return GreyWolfOptimizer(settings.grey_wolf, seed=seed)
    if optimizer_type == OptimizerType.NELDER_MEAD:
        return NelderMeadOptimizer(settings.nelder_mead)
    if optimizer_type == OptimizerType.CMAES:
        return CMAESOptimizer(settings.cmaes, seed=seed)
    return AutoSelectOptimizer(settings, seed=seed)


__all__ = [
    "PENALTY_VALUE",
    "Bounds",
    "GuardedObjective",
    "Objective",
    "OptimizationResult",
    "Optimizer",
    "SeedLike",
    "run_search",
    "GridSearchConfig",
    "GridSearchGDOptimizer",
    "PSOConfig",
    "ParticleSwarmOptimizer",
    "DEConfig",
    "DifferentialEvolutionOptimizer",
    "GreyWolfConfig",
    "GreyWolfOptimizer",
    "NelderMeadConfig",
    "NelderMeadOptimizer",
    "CMAESConfig",
    "CMAESOptimizer",
    "AutoSelectOptimizer",
    "CONCRETE_OPTIMIZERS",
    "OptimizerSettings",
    "OptimizerType",
    "create_optimizer",
    "parse_optimizer_type",
]
