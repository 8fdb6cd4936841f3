"""Configuration file support for bugconverge.

Supports YAML config files with per-optimizer, fitting, bootstrap and
output settings. CLI flags override config file values.
"""

from dataclasses import asdict, dataclass, field, fields as dataclass_fields
import logging
from pathlib import Path
from typing import ClassVar, Literal

import yaml

from .core.bootstrap import BootstrapConfig, IntervalType
from .core.fitting import FittingConfig
from .core.models import InitializationConfig, parse_categories
from .core.optimizers import (
    CMAESConfig,
    DEConfig,
    GreyWolfConfig,
    GridSearchConfig,
    NelderMeadConfig,
    OptimizerSettings,
    PSOConfig,
    parse_optimizer_type,
)

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "xlsx", "csv")
INTERVAL_TYPES = tuple(t.value for t in IntervalType)


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        format: Table export format - 'json', 'xlsx' or 'csv' (default: json)
        plots: Generate HTML plots (default: True)
        report: Write the plain-text report (default: True)
        bootstrap: Compute confidence bands for the best model (default: True)
    """
    format: Literal["json", "xlsx", "csv"] = "json"
    plots: bool = True
    report: bool = True
    bootstrap: bool = True


@dataclass
class ValidationConfig:
    """Validation configuration.

    Attributes:
        min_days: Days required to fit - IV003
        recommended_days: History length below which it is flagged - DQ001
        points_per_parameter: Days required per model parameter - DQ002
        min_defects: Cumulative defects below which the count is flagged - DQ003
        min_r_squared: Minimum acceptable R² value - FR001
        error_r_squared: R² below which FR001 is an error
        residual_analysis: Check residual patterns of the best fit - RD001-RD005
        strict_mode: If True, treat warnings as errors
    """
    min_days: int = 3
    recommended_days: int = 7
    points_per_parameter: int = 3
    min_defects: int = 20
    min_r_squared: float = 0.9
    error_r_squared: float = 0.5
    residual_analysis: bool = True
    strict_mode: bool = False


@dataclass
class BugConvergeConfig:
    """Complete bugconverge configuration.

    Attributes:
        grid_search: Grid search + gradient descent settings
        pso: Particle swarm settings
        differential_evolution: Differential evolution settings
        grey_wolf: Grey wolf settings
        nelder_mead: Nelder-Mead settings
        cmaes: CMA-ES settings
        initialization: Parameter initialization constants
        fitting: Model fitting parameters
        bootstrap: Bootstrap confidence band parameters
        output: Output configuration
        validation: Validation configuration
    """
    grid_search: GridSearchConfig = field(default_factory=GridSearchConfig)
    pso: PSOConfig = field(default_factory=PSOConfig)
    differential_evolution: DEConfig = field(default_factory=DEConfig)
    grey_wolf: GreyWolfConfig = field(default_factory=GreyWolfConfig)
    nelder_mead: NelderMeadConfig = field(default_factory=NelderMeadConfig)
    cmaes: CMAESConfig = field(default_factory=CMAESConfig)
    initialization: InitializationConfig = field(default_factory=InitializationConfig)
    fitting: FittingConfig = field(default_factory=FittingConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    def optimizer_settings(self) -> OptimizerSettings:
        """Bundle the per-optimizer sections for the optimizer factory."""
        return OptimizerSettings(
            grid_search=self.grid_search,
            pso=self.pso,
            differential_evolution=self.differential_evolution,
            grey_wolf=self.grey_wolf,
            nelder_mead=self.nelder_mead,
            cmaes=self.cmaes,
        )

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid
        """
        errors = []

        # Iteration caps
        for section in ("grid_search", "pso", "differential_evolution", "grey_wolf", "nelder_mead", "cmaes"):
            max_iterations = getattr(self, section).max_iterations
            if max_iterations < 1:
                errors.append(f"{section}.max_iterations ({max_iterations}) must be at least 1")

        if self.grid_search.learning_rate <= 0:
            errors.append(f"grid_search.learning_rate ({self.grid_search.learning_rate}) must be greater than 0")
        if self.pso.swarm_size < 2:
            errors.append(f"pso.swarm_size ({self.pso.swarm_size}) must be at least 2")
        if self.differential_evolution.population_size < 4:
            errors.append(
                f"differential_evolution.population_size ({self.differential_evolution.population_size}) "
                "must be at least 4"
            )
        if not 0.0 <= self.differential_evolution.crossover_rate <= 1.0:
            errors.append(
                f"differential_evolution.crossover_rate ({self.differential_evolution.crossover_rate}) "
                "must be between 0 and 1"
            )
        if self.grey_wolf.pack_size < 3:
            errors.append(f"grey_wolf.pack_size ({self.grey_wolf.pack_size}) must be at least 3")
        if self.cmaes.initial_sigma <= 0:
            errors.append(f"cmaes.initial_sigma ({self.cmaes.initial_sigma}) must be greater than 0")

        # Initialization
        init = self.initialization
        if init.scale_converged_min > init.scale_converged_max:
            errors.append("initialization.scale_converged_min must not exceed scale_converged_max")
        if init.scale_unconverged_min > init.scale_unconverged_max:
            errors.append("initialization.scale_unconverged_min must not exceed scale_unconverged_max")
        if not 0.0 <= init.scale_position <= 1.0:
            errors.append(f"initialization.scale_position ({init.scale_position}) must be between 0 and 1")
        for name in ("b_exponential", "b_s_curve"):
            if len(getattr(init, name)) != 4:
                errors.append(f"initialization.{name} must have 4 entries (one per slope bucket)")

        # Fitting
        try:
            parse_optimizer_type(self.fitting.optimizer)
        except ValueError as e:
            errors.append(f"fitting.optimizer: {e}")
        try:
            parse_categories(self.fitting.models)
        except ValueError as e:
            errors.append(f"fitting.models: {e}")
        if not all(0.0 < r < 1.0 for r in self.fitting.convergence_ratios):
            errors.append(
                f"fitting.convergence_ratios ({self.fitting.convergence_ratios}) must all be between 0 and 1"
            )
        if self.fitting.prediction_horizon_days <= 0:
            errors.append(
                f"fitting.prediction_horizon_days ({self.fitting.prediction_horizon_days}) must be greater than 0"
            )
        if self.fitting.min_points < 3:
            errors.append(f"fitting.min_points ({self.fitting.min_points}) must be at least 3")
        if self.fitting.workers is not None and self.fitting.workers < 1:
            errors.append(f"fitting.workers ({self.fitting.workers}) must be at least 1")
        if self.fitting.holdout_days < 0:
            errors.append(f"fitting.holdout_days ({self.fitting.holdout_days}) must not be negative")

        # Bootstrap
        if self.bootstrap.iterations < 1:
            errors.append(f"bootstrap.iterations ({self.bootstrap.iterations}) must be at least 1")
        if not 0.0 < self.bootstrap.confidence_level < 1.0:
            errors.append(
                f"bootstrap.confidence_level ({self.bootstrap.confidence_level}) must be between 0 and 1"
            )
        if self.bootstrap.sse_threshold_multiplier <= 0:
            errors.append(
                f"bootstrap.sse_threshold_multiplier ({self.bootstrap.sse_threshold_multiplier}) "
                "must be greater than 0"
            )
        if self.bootstrap.workers is not None and self.bootstrap.workers < 1:
            errors.append(f"bootstrap.workers ({self.bootstrap.workers}) must be at least 1")
        if self.bootstrap.interval_type not in INTERVAL_TYPES:
            errors.append(
                f"bootstrap.interval_type ({self.bootstrap.interval_type}) must be one of "
                f"{', '.join(INTERVAL_TYPES)}"
            )
        if self.bootstrap.min_lambda <= 0:
            errors.append(f"bootstrap.min_lambda ({self.bootstrap.min_lambda}) must be greater than 0")

        # Output
        if self.output.format not in OUTPUT_FORMATS:
            errors.append(f"output.format ({self.output.format}) must be one of {', '.join(OUTPUT_FORMATS)}")

        if errors:
            raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))

    @classmethod
    def from_yaml(cls, filepath: Path | str) -> "BugConvergeConfig":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML config file

        Returns:
            BugConvergeConfig instance

        Raises:
            ValueError: If configuration values are invalid
        """
        filepath = Path(filepath)
        with open(filepath) as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)
        config.validate()
        return config

    @staticmethod
    def _filter_unknown_keys(
        section_data: dict,
        dataclass_type: type,
        section_name: str,
    ) -> dict:
        """Filter unknown keys from a config section and warn about them.

        Args:
            section_data: Raw config dictionary for a section
            dataclass_type: The dataclass type to validate against
            section_name: Section name for error messages

        Returns:
            Filtered dictionary with only known keys
        """
        known_keys = {f.name for f in dataclass_fields(dataclass_type)}
        unknown_keys = set(section_data) - known_keys
        if unknown_keys:
            logger.warning(
                f"Unknown key(s) in '{section_name}' config section: "
                f"{', '.join(sorted(unknown_keys))}. "
                f"Valid keys: {', '.join(sorted(known_keys))}"
            )
        return {k: v for k, v in section_data.items() if k in known_keys}

    # Mapping of section name -> dataclass type for from_dict iteration
    _SECTION_TYPES: ClassVar[dict[str, type]] = {
        "grid_search": GridSearchConfig, "pso": PSOConfig,
        "differential_evolution": DEConfig, "grey_wolf": GreyWolfConfig,
        "nelder_mead": NelderMeadConfig, "cmaes": CMAESConfig,
        "initialization": InitializationConfig, "fitting": FittingConfig,
        "bootstrap": BootstrapConfig, "output": OutputConfig,
        "validation": ValidationConfig,
    }

    @classmethod
    def from_dict(cls, data: dict) -> "BugConvergeConfig":
        """Create configuration from dictionary.

        Unknown keys in any section are logged as warnings and ignored,
        rather than causing opaque TypeErrors.

        Args:
            data: Configuration dictionary

        Returns:
            BugConvergeConfig instance
        """
        config = cls()

        unknown_sections = set(data) - set(cls._SECTION_TYPES)
        if unknown_sections:
            logger.warning(
                f"Unknown top-level config section(s): {', '.join(sorted(unknown_sections))}. "
                f"Valid sections: {', '.join(sorted(cls._SECTION_TYPES))}"
            )

        for section, dtype in cls._SECTION_TYPES.items():
            if section in data and data[section] is not None:
                section_data = cls._filter_unknown_keys(data[section], dtype, section)
                setattr(config, section, dtype(**section_data))

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        data = asdict(self)
        # Enum values serialize as their plain names
        data["fitting"]["optimizer"] = parse_optimizer_type(self.fitting.optimizer).value
        return data

    def to_yaml(self, filepath: Path | str) -> None:
        """Save configuration to YAML file.

        Args:
            filepath: Output file path
        """
        filepath = Path(filepath)
        with open(filepath, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def load_config(filepath: Path | str | None = None) -> BugConvergeConfig:
    """Load configuration, falling back to defaults.

    Args:
        filepath: YAML config path; None or a missing file yields defaults

    Returns:
        BugConvergeConfig instance

    Raises:
        ValueError: If the file exists and holds invalid values
    """
    if filepath is None:
        logger.info("No config file given, using defaults")
        return BugConvergeConfig()

    filepath = Path(filepath)
    if not filepath.exists():
        logger.info(f"Config file {filepath} not found, using defaults")
        return BugConvergeConfig()

    logger.info(f"Loading config from {filepath}")
    return BugConvergeConfig.from_yaml(filepath)


def generate_default_config(filepath: Path | str) -> Path:
    """Generate a default configuration file.

    Args:
        filepath: Output file path

    Returns:
        Path to created file
    """
    filepath = Path(filepath)

    # Add comments by writing manually
    content = """# bugconverge Configuration File
# Defect growth curve fitting and convergence prediction

# Model fitting
fitting:
  optimizer: differential_evolution  # grid_search_gd, pso, differential_evolution,
                                     # grey_wolf, nelder_mead, cmaes, auto_select
  models:                  # basic, imperfect_debug, change_point, coverage, tef, fre,
    - basic                # or "extended" / "all"
  seed: null               # Seed for randomized optimizers (null = nondeterministic)
  convergence_ratios:      # Shares of the estimated total to predict dates for
    - 0.9
    - 0.95
    - 0.99
    - 0.999
  prediction_horizon_days: 10000.0  # Furthest day searched for convergence
  min_points: 3            # Minimum days of data required
  workers: 1               # Parallel model fits (null = one per CPU)
  holdout_days: 0          # Trailing days held out to score each fit (0 = off)
  acceptable_r_squared: 0.9  # Threshold for FittingResult.is_acceptable

# Bootstrap confidence or prediction bands
bootstrap:
  iterations: 200
  confidence_level: 0.95
  optimizer_max_iterations: 80   # Nelder-Mead cap per refit
  optimizer_tolerance: 1.0e-06
  sse_threshold_multiplier: 10.0 # Refits worse than this x original SSE fall back
  seed: null
  workers: 1
  prediction_horizon_days: 10000.0
  interval_type: confidence  # confidence (mean curve) or prediction (future observations)
  min_lambda: 0.1          # Floor on expected daily defects when resampling predictions

# Optimizer settings
grid_search:
  grid_size: 0             # 0 = pick by dimension (small/medium/large below)
  grid_size_small: 20      # <= 2 parameters
  grid_size_medium: 10     # 3 parameters
  grid_size_large: 8       # >= 4 parameters
  max_iterations: 2000
  learning_rate: 5.0e-05
  delta: 0.0001            # Finite-difference step
  history_interval: 100

pso:
  swarm_size: 30
  max_iterations: 500
  inertia: 0.729
  inertia_min: 0.4
  cognitive: 1.49445
  social: 1.49445
  velocity_clamp: 0.2      # Fraction of bound width
  initial_velocity_scale: 0.1
  reflection_damping: -0.5
  tolerance: 1.0e-10
  stagnation_window: 50

differential_evolution:
  population_size: 50
  max_iterations: 500
  scaling_factor: 0.8
  scaling_jitter: 0.1
  crossover_rate: 0.9
  tolerance: 1.0e-10
  stagnation_window: 50

grey_wolf:
  pack_size: 30
  max_iterations: 500
  tolerance: 1.0e-10
  stagnation_window: 50

nelder_mead:
  max_iterations: 1000
  tolerance: 1.0e-10
  reflection: 1.0
  expansion: 2.0
  contraction: 0.5
  shrink: 0.5
  initial_step: 0.05
  stagnation_window: 100

cmaes:
  max_iterations: 500
  initial_sigma: 0.5
  tolerance: 1.0e-10
  population_size: null    # null = max(6, 4 + floor(3 ln n))
  parent_number: null      # null = population_size / 2
  stagnation_window: 50
  min_sigma: 1.0e-08
  max_sigma: 10.0

# Parameter initialization heuristics
initialization:
  convergence_increment: 1.0   # Last daily increment at or below = converging
  scale_converged_min: 1.1
  scale_converged_max: 1.4
  scale_unconverged_min: 1.5
  scale_unconverged_max: 1.9
  scale_position: 0.3
  slope_very_low: 0.1
  slope_low: 0.5
  slope_medium: 1.0
  b_exponential: [0.05, 0.1, 0.2, 0.3]
  b_s_curve: [0.08, 0.15, 0.25, 0.35]
  change_point_ratio: 0.5
  p0: 0.1
  eta0: 0.8
  alpha0: 0.1
  gompertz_b0: 2.0

# Output options
output:
  format: json             # Table export format: json, xlsx or csv
  plots: true              # Write HTML plots
  report: true             # Write the text report
  bootstrap: true          # Confidence bands for the best model

# Data validation settings
validation:
  min_days: 3              # Days required to fit - IV003
  recommended_days: 7      # Short history warning - DQ001
  points_per_parameter: 3  # Days per model parameter - DQ002
  min_defects: 20          # Few defects warning - DQ003
  min_r_squared: 0.9       # Min acceptable R² - FR001
  error_r_squared: 0.5     # R² below = error - FR001
  residual_analysis: true  # Residual pattern checks - RD001-RD005
  strict_mode: false       # Treat warnings as errors
"""

    with open(filepath, "w") as f:
        f.write(content)

    return filepath
