"""Input validation for defect-tracking data.

Validates daily count signs, series consistency and history length.
"""

from typing import TYPE_CHECKING

import numpy as np

from .result import ValidationIssue, ValidationResult

if TYPE_CHECKING:
    from ..data.series import TimeSeriesData


class InputValidator:
    """Validates project time series inputs.

    Error codes:
        IV001: Negative daily values
        IV002: Cumulative fixed exceeds cumulative found
        IV003: Too few days to fit
        DQ001: Short history
        DQ003: Few defects found
    """

    def __init__(
        self,
        min_days: int = 3,
        recommended_days: int = 7,
        min_defects: int = 20,
    ):
        """Initialize input validator.

        Args:
            min_days: Days required to fit any model
            recommended_days: Days below which the history is flagged as short
            min_defects: Cumulative defects below which the count is flagged as low
        """
        self.min_days = min_days
        self.recommended_days = recommended_days
        self.min_defects = min_defects

    def validate(self, data: "TimeSeriesData") -> ValidationResult:
        """Validate all aspects of a project's input data.

        Args:
            data: Project time series to validate

        Returns:
            ValidationResult with any issues found
        """
        series = {
            "found": data.found,
            "fixed": data.fixed,
            "planned": data.planned,
            "actual": data.actual,
        }
        return self.validate_counts(series, project_name=data.project_name)

    def validate_counts(
        self,
        series: dict[str, np.ndarray],
        project_name: str | None = None,
    ) -> ValidationResult:
        """Validate raw daily count arrays before a series is built.

        Args:
            series: Series name -> daily values; must contain "found"
            project_name: Project identifier for the result

        Returns:
            ValidationResult with any issues found
        """
        result = ValidationResult(project_name=project_name)
        found = np.asarray(series["found"], dtype=float)

        for name, values in series.items():
            if values is None:
                continue
            self._check_negative(result, name, np.asarray(values, dtype=float))

        fixed = series.get("fixed")
        if fixed is not None and len(fixed) == len(found):
            self._check_fixed_vs_found(result, found, np.asarray(fixed, dtype=float))

        n_days = len(found)
        if n_days < self.min_days:
            result.add_issue(ValidationIssue.too_few_days(n_days, self.min_days))
            return result

        if n_days < self.recommended_days:
            result.add_issue(ValidationIssue.few_data_points(n_days, self.recommended_days))

        total = float(np.sum(found))
        if total < self.min_defects:
            result.add_issue(ValidationIssue.few_defects(total, self.min_defects))

        return result

    @staticmethod
    def _check_negative(result: ValidationResult, name: str, values: np.ndarray) -> None:
        negative_mask = values < 0
        if np.any(negative_mask):
            negative_indices = np.where(negative_mask)[0].tolist()
            result.add_issue(ValidationIssue.negative_values(
                series=name,
                count=len(negative_indices),
                indices=negative_indices,
                values=values[negative_mask].tolist(),
            ))

    @staticmethod
    def _check_fixed_vs_found(result: ValidationResult, found: np.ndarray, fixed: np.ndarray) -> None:
        excess = np.cumsum(fixed) - np.cumsum(found)
        over_mask = excess > 0
        if np.any(over_mask):
            result.add_issue(ValidationIssue.fixed_exceeds_found(
                count=int(np.sum(over_mask)),
                indices=np.where(over_mask)[0].tolist(),
                max_excess=float(np.max(excess)),
            ))
