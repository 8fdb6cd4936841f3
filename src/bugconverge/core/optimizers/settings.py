"""Optimizer identifiers and the bundle of per-strategy configurations."""

from dataclasses import dataclass, field
from enum import Enum

from .cmaes import CMAESConfig
from .differential_evolution import DEConfig
from .grey_wolf import GreyWolfConfig
from .grid_search import GridSearchConfig
from .nelder_mead import NelderMeadConfig
from .pso import PSOConfig


class OptimizerType(str, Enum):
    """Available optimization strategies."""
    GRID_SEARCH_GD = "grid_search_gd"
    PSO = "pso"
    DIFFERENTIAL_EVOLUTION = "differential_evolution"
    GREY_WOLF = "grey_wolf"
    NELDER_MEAD = "nelder_mead"
    CMAES = "cmaes"
    AUTO_SELECT = "auto_select"


# Strategies AutoSelect races against each other, in run order
CONCRETE_OPTIMIZERS = (
    OptimizerType.GRID_SEARCH_GD,
    OptimizerType.PSO,
    OptimizerType.DIFFERENTIAL_EVOLUTION,
    OptimizerType.GREY_WOLF,
    OptimizerType.NELDER_MEAD,
    OptimizerType.CMAES,
)


@dataclass
class OptimizerSettings:
    """Configuration for every optimizer strategy.

    Attributes:
        grid_search: Grid search + gradient descent settings
        pso: Particle swarm settings
        differential_evolution: Differential evolution settings
        grey_wolf: Grey wolf settings
        nelder_mead: Nelder-Mead settings
        cmaes: CMA-ES settings
    """
    grid_search: GridSearchConfig = field(default_factory=GridSearchConfig)
    pso: PSOConfig = field(default_factory=PSOConfig)
    differential_evolution: DEConfig = field(default_factory=DEConfig)
    grey_wolf: GreyWolfConfig = field(default_factory=GreyWolfConfig)
    nelder_mead: NelderMeadConfig = field(default_factory=NelderMeadConfig)
    cmaes: CMAESConfig = field(default_factory=CMAESConfig)


def parse_optimizer_type(value: "str | OptimizerType") -> OptimizerType:
    """Parse an optimizer name, case-insensitively.

    Accepts the enum values plus hyphenated spellings ("grey-wolf").

    Raises:
        ValueError: If the name matches no optimizer
    """
    if isinstance(value, OptimizerType):
        return value
    normalized = str(value).strip().lower().replace("-", "_")
    try:
        return OptimizerType(normalized)
    except ValueError:
        valid = ", ".join(t.value for t in OptimizerType)
        raise ValueError(f"Unknown optimizer '{value}'. Valid options: {valid}") from None
