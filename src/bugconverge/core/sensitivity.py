"""Local sensitivity of forecasts to the fitted parameters.

Each parameter is scaled up and down by a small ratio while the others
stay fixed. The central difference gives the sensitivity dY/dθ and the
elasticity (dY/dθ)(θ/Y): the percent change of the forecast per percent
change of the parameter.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Callable, Sequence

import numpy as np

from .models import GrowthModel

logger = logging.getLogger(__name__)

MetricFn = Callable[[np.ndarray], float]


class Robustness(str, Enum):
    """How stable a forecast is against small parameter errors."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very_low"
    UNKNOWN = "unknown"


def robustness_for(elasticity: float) -> Robustness:
    """Grade an absolute elasticity: below 1 high, 5 medium, 10 low."""
    if not np.isfinite(elasticity):
        return Robustness.UNKNOWN
    magnitude = abs(elasticity)
    if magnitude < 1.0:
        return Robustness.HIGH
    if magnitude < 5.0:
        return Robustness.MEDIUM
    if magnitude < 10.0:
        return Robustness.LOW
    return Robustness.VERY_LOW


@dataclass
class SensitivityConfig:
    """Configuration for sensitivity analysis.

    Attributes:
        perturbation_ratio: Relative step applied to each parameter (default 0.01)
        caution_elasticity: Absolute elasticity that earns a caution (default 5)
        warning_elasticity: Absolute elasticity that earns a warning (default 10)
        future_factor: Future day as a multiple of the current day (default 1.5)
    """
    perturbation_ratio: float = 0.01
    caution_elasticity: float = 5.0
    warning_elasticity: float = 10.0
    future_factor: float = 1.5


@dataclass
class SensitivityItem:
    """Sensitivity of one metric to one parameter.

    Attributes:
        parameter: Parameter name
        value: Fitted parameter value
        sensitivity: Central-difference derivative of the metric
        elasticity: Percent change of the metric per percent change of the parameter
        perturbed_up: Metric with the parameter scaled up
        perturbed_down: Metric with the parameter scaled down
    """
    parameter: str
    value: float
    sensitivity: float
    elasticity: float
    perturbed_up: float
    perturbed_down: float

    @property
    def robustness(self) -> Robustness:
        return robustness_for(self.elasticity)

    @property
    def direction(self) -> str:
        if self.elasticity > 0.1:
            return "positive"
        if self.elasticity < -0.1:
            return "negative"
        return "neutral"


@dataclass
class SensitivityReport:
    """Sensitivity of one forecast metric to every parameter.

    Attributes:
        metric: Name of the analyzed metric
        base_value: Metric at the fitted parameters
        perturbation_ratio: Relative step used
        items: One entry per parameter (empty when the base value is ~0)
        warnings: Messages for highly sensitive parameters
    """
    metric: str
    base_value: float
    perturbation_ratio: float
    items: list[SensitivityItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def max_elasticity(self) -> float:
        finite = [abs(i.elasticity) for i in self.items if np.isfinite(i.elasticity)]
        return max(finite) if finite else float("nan")

    @property
    def robustness(self) -> Robustness:
        return robustness_for(self.max_elasticity)

    def summary(self) -> dict:
        return {
            "metric": self.metric,
            "base_value": self.base_value,
            "perturbation_ratio": self.perturbation_ratio,
            "robustness": self.robustness.value,
            "elasticities": {i.parameter: i.elasticity for i in self.items},
            "warnings": list(self.warnings),
        }


class SensitivityAnalyzer:
    """Measures how strongly forecasts react to each fitted parameter.

    Example:
        analyzer = SensitivityAnalyzer()
        report = analyzer.total_sensitivity(model, result.parameter_vector)
        print(report.robustness, report.warnings)
    """

    def __init__(self, config: SensitivityConfig | None = None):
        self.config = config or SensitivityConfig()

    def analyze(
        self,
        parameter_names: Sequence[str],
        params: Sequence[float] | np.ndarray,
        metric: str,
        metric_fn: MetricFn,
    ) -> SensitivityReport:
        """Perturb each parameter in turn and record the metric response.

        Args:
            parameter_names: Names in parameter order
            params: Fitted parameters
            metric: Name of the metric, used in warnings
            metric_fn: Parameters -> metric value

        Returns:
            SensitivityReport; without items when the base value is ~0
        """
        params = np.asarray(params, dtype=float)
        ratio = self.config.perturbation_ratio
        base = float(metric_fn(params))
        report = SensitivityReport(metric=metric, base_value=base, perturbation_ratio=ratio)

        if not np.isfinite(base) or abs(base) < 1e-10:
            report.warnings.append(f"{metric} is {base:g}; elasticities cannot be computed")
            return report

        for i, name in enumerate(parameter_names):
            value = float(params[i])
            if abs(value) < 1e-10:
                report.items.append(SensitivityItem(name, value, 0.0, 0.0, base, base))
                continue

            up = params.copy()
            up[i] = value * (1.0 + ratio)
            down = params.copy()
            down[i] = value * (1.0 - ratio)
            metric_up = float(metric_fn(up))
            metric_down = float(metric_fn(down))

            sensitivity = (metric_up - metric_down) / (2.0 * value * ratio)
            elasticity = sensitivity * value / base
            report.items.append(SensitivityItem(name, value, sensitivity, elasticity, metric_up, metric_down))

        self._add_warnings(report)
        logger.debug(f"Sensitivity of {metric}: {report.robustness.value}")
        return report

    def _add_warnings(self, report: SensitivityReport) -> None:
        for item in report.items:
            magnitude = abs(item.elasticity)
            if not np.isfinite(magnitude):
                report.warnings.append(f"{report.metric} could not be evaluated around {item.parameter}")
            elif magnitude >= self.config.warning_elasticity:
                report.warnings.append(
                    f"{report.metric} is extremely sensitive to {item.parameter} "
                    f"(elasticity {item.elasticity:.2f}); small estimation errors move the forecast a lot"
                )
            elif magnitude >= self.config.caution_elasticity:
                report.warnings.append(
                    f"{report.metric} is sensitive to {item.parameter} (elasticity {item.elasticity:.2f})"
                )

    def total_sensitivity(
        self,
        model: GrowthModel,
        params: Sequence[float] | np.ndarray,
        horizon: float = 10000.0,
    ) -> SensitivityReport:
        """Sensitivity of the estimated total defects."""
        return self.analyze(
            model.parameter_names,
            params,
            "Estimated total",
            lambda p: model.asymptotic_total(p, horizon),
        )

    def cumulative_sensitivity(
        self,
        model: GrowthModel,
        params: Sequence[float] | np.ndarray,
        day: float,
    ) -> SensitivityReport:
        """Sensitivity of the cumulative defects expected by ``day``."""
        return self.analyze(
            model.parameter_names,
            params,
            f"Cumulative defects at day {day:g}",
            lambda p: float(model.evaluate(np.array([day]), p)[0]),
        )

    def analyze_all(
        self,
        model: GrowthModel,
        params: Sequence[float] | np.ndarray,
        current_day: float,
        horizon: float = 10000.0,
    ) -> dict[str, SensitivityReport]:
        """Total, current-day and future-day sensitivity.

        Returns:
            Dictionary keyed 'total', 'current' and 'future'
        """
        return {
            "total": self.total_sensitivity(model, params, horizon),
            "current": self.cumulative_sensitivity(model, params, current_day),
            "future": self.cumulative_sensitivity(model, params, current_day * self.config.future_factor),
        }
