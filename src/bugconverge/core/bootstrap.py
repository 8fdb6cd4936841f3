"""Bootstrap confidence and prediction bands for fitted growth curves.

In confidence mode each run resamples the fit residuals with replacement,
adds them to the fitted curve, and refits a capped Nelder-Mead search from
the original parameters. Runs whose refit fails or is much worse than the
original fit fall back to the original curve, so every run contributes.

Prediction mode draws each run's daily counts from a Poisson process
around the fitted curve instead, refits, and adds observation noise to
the refitted curve so the band covers future observations rather than
the mean curve alone.
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
import logging
import os
from typing import TYPE_CHECKING, Sequence

import numpy as np
from tqdm import tqdm

from .models import GrowthModel, InitializationConfig, ObservedCurve
from .optimizers import NelderMeadConfig, NelderMeadOptimizer

if TYPE_CHECKING:
    from ..data.series import TimeSeriesData

logger = logging.getLogger(__name__)


class IntervalType(str, Enum):
    """What a bootstrap band covers."""
    CONFIDENCE = "confidence"  # the mean curve
    PREDICTION = "prediction"  # future observations


@dataclass
class BootstrapConfig:
    """Configuration for bootstrap confidence bands.

    Attributes:
        iterations: Number of bootstrap runs (default 200)
        confidence_level: Central coverage used when no percentiles are given (default 0.95)
        optimizer_max_iterations: Nelder-Mead iteration cap per refit (default 80)
        optimizer_tolerance: Nelder-Mead tolerance per refit (default 1e-6)
        sse_threshold_multiplier: Refits with SSE above this multiple of the
            original SSE fall back to the original curve (default 10)
        seed: Seed for residual resampling; None draws fresh entropy
        workers: Parallel runs (1 = in process, None = one per CPU)
        prediction_horizon_days: Evaluation day for totals of models without an asymptote
        interval_type: "confidence" for residual resampling around the mean curve,
            "prediction" for Poisson resampling plus observation noise
        min_lambda: Floor on the expected daily count in prediction mode (default 0.1)
    """
    iterations: int = 200
    confidence_level: float = 0.95
    optimizer_max_iterations: int = 80
    optimizer_tolerance: float = 1e-6
    sse_threshold_multiplier: float = 10.0
    seed: int | None = None
    workers: int | None = 1
    prediction_horizon_days: float = 10000.0
    interval_type: str = "confidence"
    min_lambda: float = 0.1

    @property
    def default_percentiles(self) -> tuple[float, float]:
        tail = (1.0 - self.confidence_level) / 2.0 * 100.0
        return (tail, 100.0 - tail)


@dataclass
class BootstrapRun:
    """Outcome of one bootstrap run.

    Attributes:
        curve: Model values at each observed day
        parameters: Parameters that produced the curve
        estimated_total: Asymptotic total for the parameters
        fallback: True when the original fit was used instead of the refit
    """
    curve: np.ndarray
    parameters: np.ndarray
    estimated_total: float
    fallback: bool


@dataclass
class BootstrapBand:
    """Percentile band around a fitted curve.

    Attributes:
        times: Observed day numbers
        fitted: Original fitted curve
        lower: Lower percentile curve
        upper: Upper percentile curve
        median: Median curve
        percentiles: (lower, upper) percentiles used
        n_runs: Runs aggregated (always the requested iteration count)
        n_fallbacks: Runs that used the original curve
        parameter_intervals: Parameter name -> (lower, upper)
        total_interval: (lower, upper) interval of the estimated total
        interval_type: "confidence" or "prediction"
    """
    times: np.ndarray
    fitted: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    median: np.ndarray
    percentiles: tuple[float, float]
    n_runs: int
    n_fallbacks: int
    parameter_intervals: dict[str, tuple[float, float]] = field(default_factory=dict)
    total_interval: tuple[float, float] | None = None
    interval_type: str = IntervalType.CONFIDENCE.value

    @property
    def fallback_rate(self) -> float:
        return self.n_fallbacks / self.n_runs if self.n_runs else 0.0

    def summary(self) -> dict:
        return {
            "interval_type": self.interval_type,
            "percentiles": list(self.percentiles),
            "n_runs": self.n_runs,
            "n_fallbacks": self.n_fallbacks,
            "parameter_intervals": {k: list(v) for k, v in self.parameter_intervals.items()},
            "total_interval": list(self.total_interval) if self.total_interval else None,
        }


def _poisson_counts(fitted: np.ndarray, rng: np.random.Generator, min_lambda: float) -> np.ndarray:
    """Draw a cumulative series whose daily counts are Poisson around ``fitted``."""
    expected_daily = np.maximum(np.diff(fitted, prepend=0.0), min_lambda)
    return np.cumsum(rng.poisson(expected_daily)).astype(float)


def _refit(
    model: GrowthModel,
    synthetic: ObservedCurve,
    best_params: np.ndarray,
    original_sse: float,
    config: BootstrapConfig,
    initialization: InitializationConfig,
) -> np.ndarray | None:
    """Refit ``model`` to a synthetic series; None when the refit is rejected."""
    lower, upper = model.parameter_bounds(synthetic)
    start = np.clip(best_params, lower, upper)
    if not np.all(np.isfinite(start)):
        start = model.initial_parameters(synthetic, initialization)

    optimizer = NelderMeadOptimizer(NelderMeadConfig(
        max_iterations=config.optimizer_max_iterations,
        tolerance=config.optimizer_tolerance,
    ))
    result = optimizer.optimize(lambda p: model.sse(synthetic, p), lower, upper, start)

    if not result.success or result.objective_value > config.sse_threshold_multiplier * original_sse:
        return None
    return result.parameters


def _bootstrap_run(
    model: GrowthModel,
    curve: ObservedCurve,
    best_params: np.ndarray,
    residuals: np.ndarray,
    seed: np.random.SeedSequence,
    original_sse: float,
    config: BootstrapConfig,
    initialization: InitializationConfig,
    interval_type: IntervalType = IntervalType.CONFIDENCE,
) -> BootstrapRun:
    """Resample, refit and record one run. Never raises."""
    fitted = model.evaluate(curve.t, best_params)
    fallback = BootstrapRun(
        curve=fitted,
        parameters=best_params,
        estimated_total=model.asymptotic_total(best_params, config.prediction_horizon_days),
        fallback=True,
    )
    predicting = interval_type == IntervalType.PREDICTION

    try:
        rng = np.random.default_rng(seed)
        if predicting:
            synthetic = curve.with_found(_poisson_counts(fitted, rng, config.min_lambda))
        else:
            resampled = rng.choice(residuals, size=len(residuals), replace=True)
            synthetic = curve.with_found(np.maximum(fitted + resampled, 0.0))

        params = _refit(model, synthetic, best_params, original_sse, config, initialization)
        run = fallback
        if params is not None:
            run = BootstrapRun(
                curve=model.evaluate(curve.t, params),
                parameters=params,
                estimated_total=model.asymptotic_total(params, config.prediction_horizon_days),
                fallback=False,
            )

        if predicting:
            # Cumulative count variance is roughly its mean
            noise = rng.normal(size=len(run.curve)) * np.sqrt(np.maximum(run.curve, 1.0))
            run = BootstrapRun(
                curve=np.maximum(run.curve + noise, 0.0),
                parameters=run.parameters,
                estimated_total=run.estimated_total,
                fallback=run.fallback,
            )
        return run
    except Exception as e:
        logger.debug(f"Bootstrap run for {model.name} fell back: {e}")
        return fallback


class BootstrapEngine:
    """Computes bootstrap confidence or prediction bands for a fitted model.

    Example:
        engine = BootstrapEngine(BootstrapConfig(iterations=100, seed=7))
        band = engine.bootstrap_interval(data, model, report.best.parameter_vector)
        print(band.total_interval)
    """

    def __init__(
        self,
        config: BootstrapConfig | None = None,
        initialization: InitializationConfig | None = None,
    ):
        self.config = config or BootstrapConfig()
        self.initialization = initialization or InitializationConfig()

    def _resolve_workers(self, n_tasks: int) -> int:
        workers = self.config.workers
        if workers is None:
            workers = os.cpu_count() or 4
        return max(1, min(workers, n_tasks))

    def bootstrap_interval(
        self,
        data: "TimeSeriesData",
        model: GrowthModel,
        best_params: Sequence[float] | np.ndarray,
        iterations: int | None = None,
        percentiles: tuple[float, float] | None = None,
        show_progress: bool = False,
        interval_type: IntervalType | str | None = None,
    ) -> BootstrapBand:
        """Build a percentile band around ``model`` fitted at ``best_params``.

        Args:
            data: Project time series the model was fitted to
            model: Fitted model
            best_params: Fitted parameters
            iterations: Run count override
            percentiles: (lower, upper) percentiles; from confidence_level if None
            show_progress: Show a progress bar
            interval_type: "confidence" or "prediction"; from config if None

        Returns:
            BootstrapBand aggregated over every run

        Raises:
            ValueError: If iterations < 1, percentiles are outside [0, 100]
                or interval_type is unknown
        """
        iterations = self.config.iterations if iterations is None else iterations
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")
        percentiles = tuple(percentiles) if percentiles is not None else self.config.default_percentiles
        if not all(0.0 <= p <= 100.0 for p in percentiles):
            raise ValueError(f"percentiles must be within [0, 100], got {percentiles}")
        interval_type = IntervalType(interval_type or self.config.interval_type)

        curve = data.to_curve()
        best_params = np.asarray(best_params, dtype=float)
        fitted = model.evaluate(curve.t, best_params)
        residuals = curve.found - fitted
        original_sse = model.sse(curve, best_params)

        seeds = np.random.SeedSequence(self.config.seed).spawn(iterations)
        runs: list[BootstrapRun | None] = [None] * iterations
        workers = self._resolve_workers(iterations)
        args = (model, curve, best_params, residuals)
        tail = (original_sse, self.config, self.initialization, interval_type)

        if workers <= 1:
            iterator = enumerate(seeds)
            if show_progress:
                iterator = tqdm(iterator, total=iterations, desc="Bootstrap")
            for i, seed in iterator:
                runs[i] = _bootstrap_run(*args, seed, *tail)
        else:
            with ProcessPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(_bootstrap_run, *args, seed, *tail): i
                    for i, seed in enumerate(seeds)
                }
                iterator = as_completed(futures)
                if show_progress:
                    iterator = tqdm(iterator, total=iterations, desc="Bootstrap")
                for future in iterator:
                    i = futures[future]
                    try:
                        runs[i] = future.result()
                    except Exception as e:
                        logger.debug(f"Bootstrap worker {i} failed: {e}")
                        runs[i] = BootstrapRun(
                            curve=fitted,
                            parameters=best_params,
                            estimated_total=model.asymptotic_total(
                                best_params, self.config.prediction_horizon_days
                            ),
                            fallback=True,
                        )

        n_fallbacks = sum(1 for r in runs if r.fallback)
        if n_fallbacks:
            logger.debug(f"Bootstrap for {model.name}: {n_fallbacks}/{iterations} runs fell back")

        band = self._aggregate(curve.t, fitted, model, runs, percentiles, n_fallbacks)
        band.interval_type = interval_type.value
        return band

    @staticmethod
    def _aggregate(
        times: np.ndarray,
        fitted: np.ndarray,
        model: GrowthModel,
        runs: list[BootstrapRun],
        percentiles: tuple[float, float],
        n_fallbacks: int,
    ) -> BootstrapBand:
        low_pct, high_pct = sorted(percentiles)
        curves = np.vstack([r.curve for r in runs])
        bands = np.maximum(np.percentile(curves, [low_pct, 50.0, high_pct], axis=0), 0.0)
        lower = np.minimum(bands[0], bands[2])
        upper = np.maximum(bands[0], bands[2])

        params = np.vstack([r.parameters for r in runs])
        param_bounds = np.percentile(params, [low_pct, high_pct], axis=0)
        parameter_intervals = {
            name: (float(param_bounds[0, i]), float(param_bounds[1, i]))
            for i, name in enumerate(model.parameter_names)
        }

        totals = np.array([r.estimated_total for r in runs])
        totals = totals[np.isfinite(totals)]
        total_interval = None
        if len(totals):
            total_low, total_high = np.percentile(totals, [low_pct, high_pct])
            total_interval = (float(total_low), float(total_high))

        return BootstrapBand(
            times=times,
            fitted=fitted,
            lower=lower,
            upper=upper,
            median=bands[1],
            percentiles=(low_pct, high_pct),
            n_runs=len(runs),
            n_fallbacks=n_fallbacks,
            parameter_intervals=parameter_intervals,
            total_interval=total_interval,
        )
