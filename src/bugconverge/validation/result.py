"""Validation result types for input data and fitting checks.

Provides structured validation results with categorized issues,
severity levels, and actionable guidance.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class IssueSeverity(Enum):
    """Severity level of a validation issue."""
    ERROR = auto()    # Cannot proceed - data/fit is unusable
    WARNING = auto()  # Can proceed with caution - review recommended
    INFO = auto()     # Informational - no action required


class IssueCategory(Enum):
    """Category of validation issue for grouping and filtering."""
    DATA_QUALITY = auto()    # Too little history, too few defects
    DATA_FORMAT = auto()     # Negative counts, inconsistent series
    FITTING_PREREQ = auto()  # Pre-fit checks failed
    FITTING_RESULT = auto()  # Post-fit quality issues


@dataclass
class ValidationIssue:
    """A single validation issue with context and guidance.

    Attributes:
        code: Unique identifier (e.g., "DQ001", "IV002")
        category: Issue category for grouping
        severity: Issue severity level
        message: User-friendly description of the issue
        guidance: Actionable next step for resolution
        details: Context data (indices, values, thresholds, etc.)
    """
    code: str
    category: IssueCategory
    severity: IssueSeverity
    message: str
    guidance: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format issue as string for display."""
        severity_str = self.severity.name
        return f"[{self.code}] {severity_str}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category.name,
            "severity": self.severity.name,
            "message": self.message,
            "guidance": self.guidance,
            "details": self.details,
        }

    # --- Factory methods for common issue patterns ---

    @staticmethod
    def negative_values(series: str, count: int, indices: list, values: list) -> "ValidationIssue":
        """Create IV001: Negative daily count issue."""
        return ValidationIssue(
            code="IV001",
            category=IssueCategory.DATA_FORMAT,
            severity=IssueSeverity.ERROR,
            message=f"Found {count} negative daily {series} values",
            guidance="Daily counts must be non-negative; check whether the column holds cumulative totals",
            details={"negative_count": count, "indices": indices[:10], "values": values[:10], "series": series},
        )

    @staticmethod
    def fixed_exceeds_found(count: int, indices: list, max_excess: float) -> "ValidationIssue":
        """Create IV002: Cumulative fixed exceeds cumulative found."""
        return ValidationIssue(
            code="IV002",
            category=IssueCategory.DATA_FORMAT,
            severity=IssueSeverity.WARNING,
            message=f"Cumulative fixed exceeds cumulative found on {count} days",
            guidance="More defects fixed than found usually means misaligned or mislabeled columns",
            details={"day_count": count, "indices": indices[:10], "max_excess": max_excess},
        )

    @staticmethod
    def too_few_days(n_days: int, minimum: int) -> "ValidationIssue":
        """Create IV003: Not enough days to fit any model."""
        return ValidationIssue(
            code="IV003",
            category=IssueCategory.DATA_FORMAT,
            severity=IssueSeverity.ERROR,
            message=f"Only {n_days} days of data (minimum {minimum})",
            guidance="Collect more test days before fitting growth curves",
            details={"n_days": n_days, "minimum": minimum},
        )

    @staticmethod
    def few_data_points(n_days: int, recommended: int) -> "ValidationIssue":
        """Create DQ001: Very short history."""
        return ValidationIssue(
            code="DQ001",
            category=IssueCategory.DATA_QUALITY,
            severity=IssueSeverity.WARNING,
            message=f"Only {n_days} days of data (recommended at least {recommended})",
            guidance="Short histories give unstable asymptote estimates; treat predictions as rough",
            details={"n_days": n_days, "recommended": recommended},
        )

    @staticmethod
    def underdetermined(model_name: str, n_days: int, n_params: int, ratio: int) -> "ValidationIssue":
        """Create DQ002: Fewer than ``ratio`` points per parameter."""
        return ValidationIssue(
            code="DQ002",
            category=IssueCategory.FITTING_PREREQ,
            severity=IssueSeverity.WARNING,
            message=f"{model_name} has {n_params} parameters but only {n_days} days of data",
            guidance="Prefer a simpler model until more days are available",
            details={"model": model_name, "n_days": n_days, "n_params": n_params, "points_per_parameter": ratio},
        )

    @staticmethod
    def few_defects(total: float, recommended: int) -> "ValidationIssue":
        """Create DQ003: Few defects found so far."""
        return ValidationIssue(
            code="DQ003",
            category=IssueCategory.DATA_QUALITY,
            severity=IssueSeverity.WARNING,
            message=f"Only {total:.0f} defects found (recommended at least {recommended})",
            guidance="Small defect counts make the growth curve shape hard to identify",
            details={"total_found": total, "recommended": recommended},
        )

    @staticmethod
    def poor_fit(model_name: str, r_squared: float, threshold: float, error_threshold: float, mse: float) -> "ValidationIssue":
        """Create FR001: Poor fit quality issue."""
        severity = IssueSeverity.ERROR if r_squared < error_threshold else IssueSeverity.WARNING
        return ValidationIssue(
            code="FR001",
            category=IssueCategory.FITTING_RESULT,
            severity=severity,
            message=f"Poor {model_name} fit quality: R²={r_squared:.3f}",
            guidance="Low R² suggests the model shape does not match the data; try another model family",
            details={"model": model_name, "r_squared": r_squared, "threshold": threshold, "mse": mse},
        )

    @staticmethod
    def parameter_at_bound(model_name: str, parameters: list[str]) -> "ValidationIssue":
        """Create FR002: Parameters pinned to their search bounds."""
        return ValidationIssue(
            code="FR002",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"{model_name} parameters at search bounds: {', '.join(parameters)}",
            guidance="The optimum may lie outside the search range; predictions may be biased",
            details={"model": model_name, "parameters": parameters},
        )

    @staticmethod
    def fit_failed(model_name: str, error: str | None) -> "ValidationIssue":
        """Create FR003: Model fit failed."""
        return ValidationIssue(
            code="FR003",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"{model_name} fit failed: {error or 'unknown error'}",
            guidance="The model was excluded from selection; check data or try another optimizer",
            details={"model": model_name, "error": error},
        )

    @staticmethod
    def convergence_unreachable(model_name: str, ratios: list[float]) -> "ValidationIssue":
        """Create FR004: Convergence ratios not reached within the horizon."""
        return ValidationIssue(
            code="FR004",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.INFO,
            message=f"{model_name} does not reach {', '.join(f'{r:.1%}' for r in ratios)} within the horizon",
            guidance="The curve is still far from its asymptote; extend testing before relying on a date",
            details={"model": model_name, "ratios": ratios},
        )

    @staticmethod
    def questionable_convergence(model_name: str, quality: str, scaled_gradient: float) -> "ValidationIssue":
        """Create FR005: Optimizer end point looks unconverged."""
        return ValidationIssue(
            code="FR005",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"{model_name} optimizer convergence is {quality}",
            guidance="Increase the iteration budget or try a different optimizer",
            details={"model": model_name, "quality": quality, "scaled_gradient_norm": scaled_gradient},
        )

    @staticmethod
    def autocorrelated_residuals(
        label: str, durbin_watson: float, autocorr: float, threshold: float, positive: bool
    ) -> "ValidationIssue":
        """Create RD001: Daily residuals are serially correlated."""
        kind = "Positive" if positive else "Negative"
        guidance = (
            "Daily residuals run in long streaks; try an S-shaped or change-point model"
            if positive
            else "Daily residuals oscillate; defects may be logged in batches rather than daily"
        )
        return ValidationIssue(
            code="RD001",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"{kind} autocorrelation in {label}residuals (DW={durbin_watson:.2f})",
            guidance=guidance,
            details={"durbin_watson": durbin_watson, "autocorr_lag1": autocorr, "threshold": threshold},
        )

    @staticmethod
    def biased_residuals(period: str, bias: float, threshold: float) -> "ValidationIssue":
        """Create RD002: One end of the series is consistently missed."""
        direction = "over" if bias < 0 else "under"
        return ValidationIssue(
            code="RD002",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"{period} period {direction}-prediction bias ({bias:.1%})",
            guidance=f"Daily finds are {direction}-predicted in the {period.lower()} period; convergence dates may shift",
            details={"period": period.lower(), "bias": bias, "threshold": threshold},
        )

    @staticmethod
    def nonzero_mean_residuals(mean: float, std: float, relative_mean: float) -> "ValidationIssue":
        """Create RD003: Residuals are offset from zero."""
        return ValidationIssue(
            code="RD003",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.INFO,
            message=f"Residual mean is {mean:.2f} defects/day",
            guidance="The fit is slightly offset across the whole history; usually harmless",
            details={"residual_mean": mean, "residual_std": std, "relative_mean": relative_mean},
        )

    @staticmethod
    def non_normal_residuals(
        jarque_bera_p: float, shapiro_p: float, skewness: float, kurtosis: float
    ) -> "ValidationIssue":
        """Create RD004: Daily residuals are not normally distributed."""
        shape = []
        if abs(skewness) > 0.5:
            shape.append(f"{'right' if skewness > 0 else 'left'} skew {skewness:.2f}")
        if kurtosis > 2.0:
            shape.append(f"heavy tails (excess kurtosis {kurtosis:.2f})")
        elif kurtosis < -1.0:
            shape.append(f"light tails (excess kurtosis {kurtosis:.2f})")
        return ValidationIssue(
            code="RD004",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.INFO,
            message=(
                f"Residuals are not normal (JB p={jarque_bera_p:.4f}, SW p={shapiro_p:.4f})"
                + (f": {', '.join(shape)}" if shape else "")
            ),
            guidance="Some skew is expected from count data; heavy tails point to outlier days or batch logging",
            details={
                "jarque_bera_p_value": jarque_bera_p,
                "shapiro_p_value": shapiro_p,
                "skewness": skewness,
                "kurtosis": kurtosis,
            },
        )

    @staticmethod
    def poor_goodness_of_fit(label: str, chi_square: float, df: int, p_value: float) -> "ValidationIssue":
        """Create RD005: Binned daily counts disagree with the model."""
        return ValidationIssue(
            code="RD005",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"Chi-square test rejects {label}fit (chi2={chi_square:.1f}, df={df}, p={p_value:.4f})",
            guidance="Daily counts stray from the curve in some periods; compare other models or check for process changes",
            details={"chi_square": chi_square, "df": df, "p_value": p_value},
        )


@dataclass
class ValidationResult:
    """Issues collected for one project, optionally scoped to one model.

    Attributes:
        project_name: Project identifier (None for file-level validation)
        issues: Issues in the order they were raised
        model_name: Model being validated (None for data-level checks)
    """
    project_name: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)
    model_name: str | None = None

    def count(self, severity: IssueSeverity) -> int:
        return sum(1 for i in self.issues if i.severity is severity)

    @property
    def error_count(self) -> int:
        return self.count(IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return self.count(IssueSeverity.WARNING)

    @property
    def info_count(self) -> int:
        return self.count(IssueSeverity.INFO)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def has_warnings(self) -> bool:
        return self.warning_count > 0

    @property
    def is_valid(self) -> bool:
        """True when nothing blocks fitting or reporting."""
        return not self.has_errors

    def add_issue(self, issue: ValidationIssue) -> None:
        self.issues.append(issue)

    def by_category(self, category: IssueCategory) -> list[ValidationIssue]:
        return [i for i in self.issues if i.category is category]

    def codes(self) -> list[str]:
        return [i.code for i in self.issues]

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combine two results without modifying either.

        The first non-empty project and model names win.
        """
        return ValidationResult(
            project_name=self.project_name or other.project_name,
            issues=[*self.issues, *other.issues],
            model_name=self.model_name or other.model_name,
        )

    def __str__(self) -> str:
        label = self.project_name or "data"
        if not self.issues:
            return f"Validation OK for {label}"
        header = f"Validation for {label}: {self.error_count} errors, {self.warning_count} warnings"
        return "\n".join([header, *(f"  {issue}" for issue in self.issues)])


def merge_results(results: list[ValidationResult]) -> ValidationResult:
    """Fold a list of results into one, keeping issue order."""
    combined = ValidationResult()
    for result in results:
        combined = combined.merge(result)
    return combined


def summarize_validation(
    results: dict[str, ValidationResult] | list[ValidationResult],
) -> dict:
    """Aggregate issue counts across projects.

    Args:
        results: Mapping of project name to result, or a plain list

    Returns:
        Dictionary with projects_with_errors, projects_with_warnings,
        total_errors, total_warnings, and per-category and per-code
        issue counts (by_category, by_code).
    """
    items = list(results.values()) if isinstance(results, dict) else list(results)
    issues = [issue for result in items for issue in result.issues]

    return {
        "projects_with_errors": sum(1 for r in items if r.has_errors),
        "projects_with_warnings": sum(1 for r in items if r.has_warnings),
        "total_errors": sum(r.error_count for r in items),
        "total_warnings": sum(r.warning_count for r in items),
        "by_category": dict(Counter(i.category.name for i in issues)),
        "by_code": dict(Counter(i.code for i in issues)),
    }
