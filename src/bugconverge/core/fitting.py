"""Growth model fitting, ranking and convergence-date prediction.

Features:
- One least-squares objective per model, minimized by a bounded optimizer
- R², MSE and AIC so models with different parameter counts compare fairly
- Convergence diagnostics attached to every successful fit
- Day (and date) predictions for configured shares of the estimated total
- Optional process-pool fan-out across models
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from functools import partial
import logging
import os
import time
from typing import TYPE_CHECKING, Iterable

import numpy as np
from tqdm import tqdm

from .diagnostics import ConvergenceDiagnostics, compute_diagnostics
from .holdout import HoldoutValidator
from .models import GrowthModel, InitializationConfig, ModelCategory, ObservedCurve, get_models, parse_categories
from .optimizers import (
    PENALTY_VALUE,
    OptimizerSettings,
    OptimizerType,
    SeedLike,
    create_optimizer,
    parse_optimizer_type,
)
from .selection import select_best

if TYPE_CHECKING:
    from ..config import BugConvergeConfig
    from ..data.series import TimeSeriesData

logger = logging.getLogger(__name__)

# Bisection steps when locating a convergence day
BISECTION_STEPS = 100


class PredictionStatus(str, Enum):
    """Outcome of a convergence-date prediction."""
    ALREADY_REACHED = "already_reached"
    PREDICTED = "predicted"
    UNREACHABLE = "unreachable"


class NoSuccessfulFitError(ValueError):
    """Raised when every requested model failed to fit."""


@dataclass
class FittingConfig:
    """Configuration for model fitting.

    Attributes:
        optimizer: Optimization strategy (default differential_evolution)
        models: Model categories to fit, plus "extended" or "all" (default basic)
        seed: Seed for randomized optimizers; None draws fresh entropy
        convergence_ratios: Shares of the estimated total to predict days for
        prediction_horizon_days: Furthest day searched for convergence and the
            evaluation point for models without a closed-form total
        min_points: Minimum days required to fit (default 3)
        workers: Parallel model fits (1 = in process, None = one per CPU)
        holdout_days: Trailing days held out to score each fit (0 disables)
        acceptable_r_squared: R² threshold for FittingResult.is_acceptable (default 0.9)
    """
    optimizer: str | OptimizerType = OptimizerType.DIFFERENTIAL_EVOLUTION
    models: list[str] = field(default_factory=lambda: ["basic"])
    seed: int | None = None
    convergence_ratios: list[float] = field(default_factory=lambda: [0.90, 0.95, 0.99, 0.999])
    prediction_horizon_days: float = 10000.0
    min_points: int = 3
    workers: int | None = 1
    holdout_days: int = 0
    acceptable_r_squared: float = 0.9

    @property
    def optimizer_enum(self) -> OptimizerType:
        """Get optimizer as an OptimizerType enum."""
        return parse_optimizer_type(self.optimizer)

    @property
    def model_categories(self) -> list[ModelCategory]:
        return parse_categories(self.models)


@dataclass
class ConvergencePrediction:
    """Predicted day at which cumulative defects reach a share of the total.

    Attributes:
        milestone: Display label, e.g. "95%"
        ratio: Share of the estimated total (0-1)
        target_defects: ratio * estimated total
        status: Whether the target is reached, predicted or out of range
        predicted_day: Day number satisfying m(day) >= target (PREDICTED only)
        remaining_days: Days after the last observation (PREDICTED only)
        predicted_date: Calendar date of predicted_day, when a start date is known
    """
    milestone: str
    ratio: float
    target_defects: float
    status: PredictionStatus
    predicted_day: float | None = None
    remaining_days: float | None = None
    predicted_date: date | None = None

    def summary(self) -> dict:
        return {
            "milestone": self.milestone,
            "ratio": self.ratio,
            "target_defects": self.target_defects,
            "status": self.status.value,
            "predicted_day": self.predicted_day,
            "remaining_days": self.remaining_days,
            "predicted_date": self.predicted_date.isoformat() if self.predicted_date else None,
        }


@dataclass
class FittingResult:
    """Result of fitting one model to one project's data.

    Attributes:
        model_name: Catalog name of the model
        category: Model family
        success: False when the optimizer or the model failed
        parameters: Fitted parameters by name
        parameter_vector: Fitted parameters in model order
        r_squared: Coefficient of determination on cumulative found
        mse: Mean squared error on cumulative found
        sse: Sum of squared errors on cumulative found
        aic: Akaike Information Criterion, n ln(SSE/n) + 2k
        predicted: Model values at each observed day
        estimated_total: Asymptotic total defects
        convergence_predictions: One prediction per configured ratio
        optimizer_name: Strategy that produced the fit
        iterations: Optimizer iterations
        evaluations: Objective evaluations
        elapsed_seconds: Optimizer wall-clock time
        error_message: Failure description
        diagnostics: Convergence diagnostics of the optimizer end point
        holdout_mape: MAPE on held-out trailing days, when evaluated
        acceptable_r_squared: Threshold for is_acceptable
    """
    model_name: str
    category: ModelCategory
    success: bool
    parameters: dict[str, float] = field(default_factory=dict)
    parameter_vector: np.ndarray | None = None
    r_squared: float = 0.0
    mse: float = float("inf")
    sse: float = float("inf")
    aic: float = PENALTY_VALUE
    predicted: np.ndarray | None = None
    estimated_total: float = 0.0
    convergence_predictions: list[ConvergencePrediction] = field(default_factory=list)
    optimizer_name: str = ""
    iterations: int = 0
    evaluations: int = 0
    elapsed_seconds: float = 0.0
    error_message: str | None = None
    diagnostics: ConvergenceDiagnostics | None = None
    holdout_mape: float | None = None
    acceptable_r_squared: float = 0.9

    @classmethod
    def failure(
        cls,
        model: GrowthModel,
        message: str,
        optimizer_name: str = "",
        elapsed_seconds: float = 0.0,
    ) -> "FittingResult":
        """Build an unsuccessful result for a model."""
        return cls(
            model_name=model.name,
            category=model.category,
            success=False,
            optimizer_name=optimizer_name,
            elapsed_seconds=elapsed_seconds,
            error_message=message,
        )

    @property
    def is_acceptable(self) -> bool:
        """Check if fit meets minimum quality threshold."""
        return self.success and self.r_squared >= self.acceptable_r_squared

    def prediction_for(self, ratio: float) -> ConvergencePrediction | None:
        """Prediction for a given ratio, if one was computed."""
        for prediction in self.convergence_predictions:
            if np.isclose(prediction.ratio, ratio):
                return prediction
        return None

    def summary(self) -> dict:
        """Return summary dictionary of fit results."""
        return {
            "model": self.model_name,
            "category": self.category.value,
            "success": self.success,
            "parameters": dict(self.parameters),
            "r_squared": self.r_squared,
            "mse": self.mse,
            "aic": self.aic,
            "estimated_total": self.estimated_total,
            "optimizer": self.optimizer_name,
            "elapsed_seconds": self.elapsed_seconds,
            "error": self.error_message,
            "convergence_quality": self.diagnostics.quality.value if self.diagnostics else None,
            "holdout_mape": self.holdout_mape,
            "predictions": [p.summary() for p in self.convergence_predictions],
        }


@dataclass
class FitReport:
    """All fit results for a project plus the selected best model.

    Attributes:
        results: One result per requested model, in request order
        best: Minimum-AIC successful result
    """
    results: list[FittingResult]
    best: FittingResult

    @property
    def successful(self) -> list[FittingResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[FittingResult]:
        return [r for r in self.results if not r.success]


def compute_fit_metrics(observed: np.ndarray, predicted: np.ndarray, n_params: int) -> dict:
    """Calculate fit quality metrics.

    Args:
        observed: Observed cumulative values
        predicted: Model values at the same days
        n_params: Number of model parameters

    Returns:
        Dictionary with r_squared, sse, mse, aic
    """
    n = len(observed)
    residuals = observed - predicted
    ss_res = float(np.sum(residuals ** 2))
    ss_tot = float(np.sum((observed - np.mean(observed)) ** 2))

    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    if np.isfinite(ss_res) and ss_res > 0:
        aic = n * np.log(ss_res / n) + 2 * n_params
    else:
        aic = PENALTY_VALUE

    return {
        "r_squared": float(r_squared),
        "sse": ss_res,
        "mse": ss_res / n if n else float("inf"),
        "aic": float(aic),
    }


def find_convergence_day(
    model: GrowthModel,
    params: np.ndarray,
    target: float,
    current_day: float,
    horizon: float,
) -> float | None:
    """Smallest day (to bisection precision) at which the curve reaches ``target``.

    The upper bracket starts at ten times the current day and doubles until
    the target is reached or the horizon is passed. The returned value is
    the upper end of the final bracket, so ``m(day) >= target`` always holds.

    Returns:
        Day number, or None if the target is not reached within the horizon
    """
    def reached(day: float) -> bool:
        value = model.evaluate(np.array([day]), params)[0]
        return bool(np.isfinite(value) and value >= target)

    low = current_day
    high = min(max(10.0 * current_day, current_day + 1.0), horizon)
    while not reached(high):
        if high >= horizon:
            return None
        low = high
        high = min(2.0 * high, horizon)

    for _ in range(BISECTION_STEPS):
        mid = 0.5 * (low + high)
        if reached(mid):
            high = mid
        else:
            low = mid
    return float(high)


def _fit_model_task(
    fitter: "ModelFitter",
    data: "TimeSeriesData",
    model: GrowthModel,
    optimizer_type: OptimizerType | None,
    seed: SeedLike,
) -> "FittingResult":
    """Worker entry point for parallel model fits."""
    return fitter.fit(data, model, optimizer_type, seed=seed)


class ModelFitter:
    """Fits catalog growth models to defect time series."""

    def __init__(
        self,
        config: FittingConfig | None = None,
        settings: OptimizerSettings | None = None,
        initialization: InitializationConfig | None = None,
    ):
        """Initialize fitter with configuration.

        Args:
            config: Fitting configuration, uses defaults if None
            settings: Per-optimizer configuration, uses defaults if None
            initialization: Parameter initialization constants, uses defaults if None
        """
        self.config = config or FittingConfig()
        self.settings = settings or OptimizerSettings()
        self.initialization = initialization or InitializationConfig()

    @classmethod
    def from_config(cls, config: "BugConvergeConfig") -> "ModelFitter":
        """Create a fitter from the root configuration."""
        return cls(config.fitting, config.optimizer_settings(), config.initialization)

    def fit(
        self,
        data: "TimeSeriesData",
        model: GrowthModel,
        optimizer_type: OptimizerType | str | None = None,
        seed: SeedLike = None,
        holdout: bool = True,
    ) -> FittingResult:
        """Fit one model to a project's cumulative found defects.

        Never raises for a model or optimizer failure; those come back as
        a result with ``success=False``.

        Args:
            data: Project time series
            model: Catalog model to fit
            optimizer_type: Strategy override (config optimizer if None)
            seed: Seed override (config seed if None)
            holdout: Whether to score the fit on held-out days when configured

        Returns:
            FittingResult with metrics, diagnostics and predictions
        """
        start = time.perf_counter()
        try:
            return self._fit(data, model, optimizer_type, seed, holdout)
        except Exception as e:
            logger.warning(f"Fit of {model.name} failed: {e}")
            return FittingResult.failure(
                model, f"{type(e).__name__}: {e}", elapsed_seconds=time.perf_counter() - start
            )

    def _fit(
        self,
        data: "TimeSeriesData",
        model: GrowthModel,
        optimizer_type: OptimizerType | str | None,
        seed: SeedLike,
        holdout: bool,
    ) -> FittingResult:
        curve = data.to_curve()
        if curve.n_points < self.config.min_points:
            return FittingResult.failure(
                model, f"Insufficient data: {curve.n_points} days, need {self.config.min_points}"
            )

        optimizer_type = parse_optimizer_type(optimizer_type or self.config.optimizer)
        seed = self.config.seed if seed is None else seed

        lower, upper = model.parameter_bounds(curve)
        initial = model.initial_parameters(curve, self.initialization)
        objective = partial(model.sse, curve)

        optimizer = create_optimizer(optimizer_type, self.settings, seed=seed)
        opt = optimizer.optimize(objective, lower, upper, initial)

        if not opt.success:
            logger.warning(f"Fit of {model.name} failed: {opt.message}")
            return FittingResult.failure(
                model, opt.message or "Optimization failed", opt.optimizer_name, opt.elapsed_seconds
            )

        opt = replace(opt, diagnostics=compute_diagnostics(objective, opt, lower, upper))
        params = opt.parameters
        predicted = model.evaluate(curve.t, params)
        metrics = compute_fit_metrics(curve.found, predicted, model.n_params)
        total = model.asymptotic_total(params, self.config.prediction_horizon_days)

        result = FittingResult(
            model_name=model.name,
            category=model.category,
            success=True,
            parameters={name: float(v) for name, v in zip(model.parameter_names, params)},
            parameter_vector=params,
            r_squared=metrics["r_squared"],
            mse=metrics["mse"],
            sse=metrics["sse"],
            aic=metrics["aic"],
            predicted=predicted,
            estimated_total=total,
            convergence_predictions=self.predict_convergence(model, params, curve, total, data.start_date),
            optimizer_name=opt.optimizer_name,
            iterations=opt.iterations,
            evaluations=opt.evaluations,
            elapsed_seconds=opt.elapsed_seconds,
            diagnostics=opt.diagnostics,
            acceptable_r_squared=self.config.acceptable_r_squared,
        )

        if holdout and self.config.holdout_days > 0:
            validator = HoldoutValidator(holdout_days=self.config.holdout_days)
            holdout_result = validator.validate(data, model, self, optimizer_type)
            if holdout_result is not None:
                result.holdout_mape = holdout_result.mape

        logger.debug(
            f"{model.name}: R²={result.r_squared:.4f} AIC={result.aic:.2f} "
            f"total={result.estimated_total:.1f} via {result.optimizer_name}"
        )
        return result

    def predict_convergence(
        self,
        model: GrowthModel,
        params: np.ndarray,
        curve: ObservedCurve,
        total: float,
        start_date: date | None = None,
    ) -> list[ConvergencePrediction]:
        """Predict when cumulative defects reach each configured share of the total.

        A ratio counts as already reached when the model's value at the
        last observed day is at or above the target.

        Args:
            model: Fitted model
            params: Fitted parameters
            curve: Observed curve the model was fitted to
            total: Estimated total defects
            start_date: Date of day 1, for calendar predictions

        Returns:
            One ConvergencePrediction per configured ratio
        """
        current_day = float(curve.t[-1])
        current_value = float(model.evaluate(np.array([current_day]), params)[0])
        predictions = []

        for ratio in self.config.convergence_ratios:
            milestone = f"{ratio * 100:g}%"
            target = ratio * total

            if not np.isfinite(target):
                predictions.append(ConvergencePrediction(milestone, ratio, target, PredictionStatus.UNREACHABLE))
                continue

            if current_value >= target:
                predictions.append(ConvergencePrediction(milestone, ratio, target, PredictionStatus.ALREADY_REACHED))
                continue

            day = find_convergence_day(
                model, params, target, current_day, self.config.prediction_horizon_days
            )
            if day is None:
                predictions.append(ConvergencePrediction(milestone, ratio, target, PredictionStatus.UNREACHABLE))
                continue

            predicted_date = None
            if start_date is not None:
                predicted_date = start_date + timedelta(days=int(np.ceil(day)) - 1)

            predictions.append(ConvergencePrediction(
                milestone=milestone,
                ratio=ratio,
                target_defects=target,
                status=PredictionStatus.PREDICTED,
                predicted_day=day,
                remaining_days=day - current_day,
                predicted_date=predicted_date,
            ))

        return predictions

    def _model_seeds(self, count: int) -> list[SeedLike]:
        """Independent per-model seeds derived from the configured seed."""
        if self.config.seed is None:
            return [None] * count
        return list(np.random.SeedSequence(self.config.seed).spawn(count))

    def _resolve_workers(self, n_tasks: int) -> int:
        workers = self.config.workers
        if workers is None:
            workers = os.cpu_count() or 4
        return max(1, min(workers, n_tasks))

    def fit_all(
        self,
        data: "TimeSeriesData",
        models: Iterable[GrowthModel] | None = None,
        optimizer_type: OptimizerType | str | None = None,
        show_progress: bool = False,
    ) -> list[FittingResult]:
        """Fit several models to the same data.

        Args:
            data: Project time series
            models: Models to fit (configured categories if None)
            optimizer_type: Strategy override
            show_progress: Show a progress bar

        Returns:
            Results in the same order as ``models``
        """
        models = list(models) if models is not None else get_models(self.config.model_categories)
        if optimizer_type is not None:
            optimizer_type = parse_optimizer_type(optimizer_type)
        seeds = self._model_seeds(len(models))
        workers = self._resolve_workers(len(models))
        results: list[FittingResult | None] = [None] * len(models)

        if workers <= 1:
            iterator = enumerate(zip(models, seeds))
            if show_progress:
                iterator = tqdm(iterator, total=len(models), desc="Fitting models")
            for i, (model, seed) in iterator:
                results[i] = self.fit(data, model, optimizer_type, seed=seed)
            return results

        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(_fit_model_task, self, data, model, optimizer_type, seed): i
                for i, (model, seed) in enumerate(zip(models, seeds))
            }

            iterator = as_completed(futures)
            if show_progress:
                iterator = tqdm(iterator, total=len(futures), desc="Fitting models")

            for future in iterator:
                i = futures[future]
                try:
                    results[i] = future.result()
                except Exception as e:
                    logger.error(f"Failed to fit {models[i].name}: {e}")
                    results[i] = FittingResult.failure(models[i], f"{type(e).__name__}: {e}")

        return results

    def select_best(
        self,
        results: list[FittingResult],
        category: ModelCategory | str | None = None,
    ) -> FittingResult | None:
        """Minimum-AIC successful result, optionally within one category."""
        return select_best(results, category)

    def fit_and_select(
        self,
        data: "TimeSeriesData",
        models: Iterable[GrowthModel] | None = None,
        optimizer_type: OptimizerType | str | None = None,
        category: ModelCategory | str | None = None,
        show_progress: bool = False,
    ) -> FitReport:
        """Fit models and pick the best one.

        Raises:
            NoSuccessfulFitError: If no model fit succeeded
        """
        results = self.fit_all(data, models, optimizer_type, show_progress=show_progress)
        best = self.select_best(results, category)
        if best is None:
            raise NoSuccessfulFitError(f"No model fit succeeded for {data.project_name}")

        logger.info(
            f"Best model for {data.project_name}: {best.model_name} "
            f"(AIC={best.aic:.2f}, R²={best.r_squared:.4f}, total={best.estimated_total:.1f})"
        )
        return FitReport(results=results, best=best)
