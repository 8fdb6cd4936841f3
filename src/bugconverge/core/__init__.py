"""Core growth models, optimizers, fitting and uncertainty estimation."""

from .bootstrap import BootstrapBand, BootstrapConfig, BootstrapEngine, IntervalType
from .diagnostics import ConvergenceDiagnostics, ConvergenceQuality
from .fitting import (
    ConvergencePrediction,
    FitReport,
    FittingConfig,
    FittingResult,
    ModelFitter,
    NoSuccessfulFitError,
    PredictionStatus,
)
from .holdout import HoldoutResult, HoldoutValidator
from .models import CATALOG, GrowthModel, ModelCategory, get_model, get_models
from .residuals import ResidualAnalyzer, ResidualDiagnostics
from .selection import akaike_weights, evaluate_fit_quality, select_best
from .sensitivity import SensitivityAnalyzer, SensitivityReport

__all__ = [
    "BootstrapBand",
    "BootstrapConfig",
    "BootstrapEngine",
    "IntervalType",
    "ConvergenceDiagnostics",
    "ConvergenceQuality",
    "ConvergencePrediction",
    "FitReport",
    "FittingConfig",
    "FittingResult",
    "ModelFitter",
    "NoSuccessfulFitError",
    "PredictionStatus",
    "HoldoutResult",
    "HoldoutValidator",
    "CATALOG",
    "GrowthModel",
    "ModelCategory",
    "get_model",
    "get_models",
    "ResidualAnalyzer",
    "ResidualDiagnostics",
    "akaike_weights",
    "evaluate_fit_quality",
    "select_best",
    "SensitivityAnalyzer",
    "SensitivityReport",
]
