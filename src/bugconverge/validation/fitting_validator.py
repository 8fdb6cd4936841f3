"""Fitting validation for defect growth models.

Pre-fit checks verify there is enough data for a model's parameter count.
Post-fit checks verify fit quality, bound hits and convergence predictions.
"""

from typing import TYPE_CHECKING

from .result import ValidationIssue, ValidationResult

if TYPE_CHECKING:
    from ..core.fitting import FittingResult
    from ..core.models import GrowthModel
    from ..data.series import TimeSeriesData


class FittingValidator:
    """Validates pre-fit requirements and post-fit quality.

    Pre-fit error codes:
        DQ002: Fewer than ``points_per_parameter`` days per model parameter

    Post-fit error codes:
        FR001: Poor fit (R² below threshold; ERROR below error threshold)
        FR002: Parameters at search bounds
        FR003: Model fit failed
        FR004: Convergence ratios unreachable within the horizon
        FR005: Questionable optimizer convergence
    """

    def __init__(
        self,
        min_r_squared: float = 0.9,
        error_r_squared: float = 0.5,
        points_per_parameter: int = 3,
    ):
        """Initialize fitting validator.

        Args:
            min_r_squared: R² below which a fit is flagged
            error_r_squared: R² below which the flag is an error
            points_per_parameter: Days required per model parameter
        """
        self.min_r_squared = min_r_squared
        self.error_r_squared = error_r_squared
        self.points_per_parameter = points_per_parameter

    def validate_pre_fit(
        self,
        data: "TimeSeriesData",
        models: list["GrowthModel"],
    ) -> ValidationResult:
        """Check each model has enough data for its parameter count.

        Args:
            data: Project time series
            models: Models about to be fitted

        Returns:
            ValidationResult with any pre-fit issues
        """
        result = ValidationResult(project_name=data.project_name)
        for model in models:
            if data.n_days < self.points_per_parameter * model.n_params:
                result.add_issue(ValidationIssue.underdetermined(
                    model.name, data.n_days, model.n_params, self.points_per_parameter
                ))
        return result

    def validate_fit_result(
        self,
        fit: "FittingResult",
        project_name: str | None = None,
    ) -> ValidationResult:
        """Validate a FittingResult directly.

        Args:
            fit: FittingResult to validate
            project_name: Project identifier for result

        Returns:
            ValidationResult with any issues
        """
        # Deferred: core.residuals imports validation.result
        from ..core.diagnostics import ConvergenceQuality
        from ..core.fitting import PredictionStatus

        result = ValidationResult(project_name=project_name, model_name=fit.model_name)

        if not fit.success:
            result.add_issue(ValidationIssue.fit_failed(fit.model_name, fit.error_message))
            return result

        if fit.r_squared < self.min_r_squared:
            result.add_issue(ValidationIssue.poor_fit(
                fit.model_name,
                r_squared=float(fit.r_squared),
                threshold=self.min_r_squared,
                error_threshold=self.error_r_squared,
                mse=float(fit.mse),
            ))

        if fit.diagnostics is not None:
            pinned = fit.diagnostics.bound_parameters
            if pinned:
                names = list(fit.parameters)
                result.add_issue(ValidationIssue.parameter_at_bound(
                    fit.model_name, [names[i] for i in pinned]
                ))
            if fit.diagnostics.quality in (ConvergenceQuality.QUESTIONABLE, ConvergenceQuality.POOR):
                result.add_issue(ValidationIssue.questionable_convergence(
                    fit.model_name,
                    fit.diagnostics.quality.value,
                    fit.diagnostics.scaled_gradient_norm,
                ))

        unreachable = [
            p.ratio for p in fit.convergence_predictions
            if p.status == PredictionStatus.UNREACHABLE
        ]
        if unreachable:
            result.add_issue(ValidationIssue.convergence_unreachable(fit.model_name, unreachable))

        return result

    def validate_results(
        self,
        fits: list["FittingResult"],
        project_name: str | None = None,
    ) -> ValidationResult:
        """Validate every fit for a project and merge the issues."""
        result = ValidationResult(project_name=project_name)
        for fit in fits:
            result = result.merge(self.validate_fit_result(fit, project_name))
        return result
