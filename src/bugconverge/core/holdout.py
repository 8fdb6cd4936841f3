"""Holdout validation: how well a fit predicts days it has not seen.

Splits the history into a training prefix and a trailing holdout window,
fits on the prefix, and measures prediction accuracy of the cumulative
found count over the holdout days.
"""

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy import stats

if TYPE_CHECKING:
    from ..data.series import TimeSeriesData
    from .fitting import ModelFitter
    from .models import GrowthModel
    from .optimizers import OptimizerType

logger = logging.getLogger(__name__)


@dataclass
class HoldoutConfig:
    """Configuration for holdout validation.

    Attributes:
        holdout_days: Trailing days held out for validation (default 3)
        min_training_days: Minimum days required for training (default 5)
        good_mape: MAPE (%) at or below which a holdout counts as good (default 50)
    """
    holdout_days: int = 3
    min_training_days: int = 5
    good_mape: float = 50.0


@dataclass
class HoldoutResult:
    """Result of holdout validation.

    Attributes:
        model_name: Model that was validated
        training_days: Days used for training
        holdout_days: Days held out
        training_r_squared: R² on the training prefix
        mape: Mean absolute percentage error (%) over holdout days
        rmse: Root mean squared error over holdout days
        bias: Mean (predicted - actual) / mean(actual); positive = over-prediction
        correlation: Pearson correlation of holdout predictions
        holdout_actual: Observed cumulative values in the holdout window
        holdout_predicted: Predicted cumulative values in the holdout window
        good_mape: Threshold used by is_good_holdout
    """
    model_name: str
    training_days: int
    holdout_days: int
    training_r_squared: float
    mape: float
    rmse: float
    bias: float
    correlation: float
    holdout_actual: np.ndarray = field(default_factory=lambda: np.array([]))
    holdout_predicted: np.ndarray = field(default_factory=lambda: np.array([]))
    good_mape: float = 50.0

    @property
    def is_good_holdout(self) -> bool:
        """Check if the holdout error is within the configured MAPE threshold."""
        return self.mape <= self.good_mape

    def summary(self) -> dict:
        return {
            "model": self.model_name,
            "training_days": self.training_days,
            "holdout_days": self.holdout_days,
            "training_r_squared": self.training_r_squared,
            "mape": self.mape,
            "rmse": self.rmse,
            "bias": self.bias,
            "correlation": self.correlation,
            "is_good_holdout": self.is_good_holdout,
        }


class HoldoutValidator:
    """Validates prediction accuracy by refitting on a truncated history.

    Example:
        validator = HoldoutValidator(holdout_days=3)
        result = validator.validate(data, get_model("exponential"), fitter)

        if result is not None and result.is_good_holdout:
            print(f"Good prediction: MAPE={result.mape:.1f}%")
    """

    def __init__(self, holdout_days: int = 3, min_training_days: int = 5, good_mape: float = 50.0):
        """Initialize holdout validator.

        Args:
            holdout_days: Trailing days to hold out
            min_training_days: Minimum days required for training
            good_mape: MAPE threshold for a good holdout
        """
        self.config = HoldoutConfig(
            holdout_days=holdout_days,
            min_training_days=min_training_days,
            good_mape=good_mape,
        )

    def can_validate(self, data: "TimeSeriesData") -> bool:
        """Check if there is enough data for training plus holdout."""
        return data.n_days >= self.config.min_training_days + self.config.holdout_days

    def validate(
        self,
        data: "TimeSeriesData",
        model: "GrowthModel",
        fitter: "ModelFitter",
        optimizer_type: "OptimizerType | str | None" = None,
    ) -> HoldoutResult | None:
        """Fit on the training prefix and score the holdout window.

        Args:
            data: Full project time series
            model: Model to validate
            fitter: ModelFitter used for the training fit
            optimizer_type: Strategy override for the training fit

        Returns:
            HoldoutResult, or None if there is too little data or the fit failed
        """
        if not self.can_validate(data):
            logger.info(
                f"Skipping holdout for {data.project_name}/{model.name}: "
                f"{data.n_days} days < {self.config.min_training_days + self.config.holdout_days} required"
            )
            return None

        training_days = data.n_days - self.config.holdout_days
        training = data.head(training_days)
        fit = fitter.fit(training, model, optimizer_type, holdout=False)
        if not fit.success:
            logger.warning(f"Holdout fit failed for {data.project_name}/{model.name}")
            return None

        t_holdout = data.time_index[training_days:]
        actual = data.cumulative_found[training_days:]
        predicted = model.evaluate(t_holdout, fit.parameter_vector)
        metrics = calculate_holdout_metrics(actual, predicted)

        return HoldoutResult(
            model_name=model.name,
            training_days=training_days,
            holdout_days=self.config.holdout_days,
            training_r_squared=fit.r_squared,
            mape=metrics["mape"],
            rmse=metrics["rmse"],
            bias=metrics["bias"],
            correlation=metrics["correlation"],
            holdout_actual=actual,
            holdout_predicted=predicted,
            good_mape=self.config.good_mape,
        )


def calculate_holdout_metrics(actual: np.ndarray, predicted: np.ndarray) -> dict:
    """Calculate holdout accuracy metrics.

    Days with zero actual cumulative count are excluded from MAPE.

    Args:
        actual: Observed cumulative values
        predicted: Predicted cumulative values

    Returns:
        Dictionary with mape, rmse, bias, correlation
    """
    rmse = float(np.sqrt(np.mean((actual - predicted) ** 2))) if len(actual) else 0.0

    mask = actual > 0
    actual_valid = actual[mask]
    predicted_valid = predicted[mask]

    if len(actual_valid) == 0:
        return {"mape": 100.0, "rmse": rmse, "bias": 0.0, "correlation": 0.0}

    mape = float(np.mean(np.abs(actual_valid - predicted_valid) / actual_valid * 100))

    if len(actual_valid) > 1 and np.std(actual_valid) > 0 and np.std(predicted_valid) > 0:
        correlation, _ = stats.pearsonr(actual_valid, predicted_valid)
        correlation = float(correlation)
    else:
        correlation = 0.0

    bias = float(np.mean(predicted_valid - actual_valid) / np.mean(actual_valid))

    return {"mape": mape, "rmse": rmse, "bias": bias, "correlation": correlation}
