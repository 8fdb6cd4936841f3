"""Data validation and error handling for bugconverge.

Provides validation for defect-tracking input data and fitting
quality assessment.

Usage:
    from bugconverge.validation import (
        ValidationResult,
        ValidationIssue,
        IssueSeverity,
        IssueCategory,
        InputValidator,
        FittingValidator,
    )

    # Validate input data
    result = InputValidator().validate(data)

    # Validate fitting results
    result = FittingValidator().validate_results(report.results, data.project_name)
"""

from .result import (
    IssueSeverity,
    IssueCategory,
    ValidationIssue,
    ValidationResult,
    merge_results,
    summarize_validation,
)
from .input_validator import InputValidator
from .fitting_validator import FittingValidator

__all__ = [
    # Result types
    "IssueSeverity",
    "IssueCategory",
    "ValidationIssue",
    "ValidationResult",
    "merge_results",
    "summarize_validation",
    # Validators
    "InputValidator",
    "FittingValidator",
]
