"""Model selection, Akaike weights and fit quality evaluation."""

from typing import TYPE_CHECKING, Sequence

import numpy as np

from .models import ModelCategory

if TYPE_CHECKING:
    from .fitting import FittingResult


# Default grading thresholds (can be overridden by config)
DEFAULT_GRADE_THRESHOLDS = {
    "A": 0.95,
    "B": 0.85,
    "C": 0.70,
    "D": 0.50,
}


def select_best(
    results: Sequence["FittingResult"],
    category: ModelCategory | str | None = None,
) -> "FittingResult | None":
    """Pick the successful result with the lowest AIC.

    Ties go to the earliest result in ``results``.

    Args:
        results: Fit results in collection order
        category: Restrict the choice to one model family

    Returns:
        Best result, or None if nothing qualifies
    """
    candidates = [r for r in results if r.success]
    if category is not None:
        category = ModelCategory(category)
        candidates = [r for r in candidates if r.category == category]
    if not candidates:
        return None
    return min(candidates, key=lambda r: r.aic)


def rank_results(results: Sequence["FittingResult"]) -> list["FittingResult"]:
    """Successful results ordered by AIC (stable for ties)."""
    return sorted((r for r in results if r.success), key=lambda r: r.aic)


def akaike_weights(results: Sequence["FittingResult"]) -> dict[str, float]:
    """Relative likelihood of each successful model, normalized to sum to 1.

    w_i = exp(-Δ_i / 2) / Σ exp(-Δ_j / 2) with Δ_i = AIC_i - min AIC.

    Returns:
        Model name -> weight (empty if nothing succeeded)
    """
    successes = [r for r in results if r.success]
    if not successes:
        return {}

    aic = np.array([r.aic for r in successes])
    relative = np.exp(-0.5 * (aic - aic.min()))
    weights = relative / relative.sum()
    return {r.model_name: float(w) for r, w in zip(successes, weights)}


def average_predictions(results: Sequence["FittingResult"]) -> dict:
    """Akaike-weighted average of predicted curves and estimated totals.

    Returns:
        Dictionary with 'predicted' (array or None), 'estimated_total' and 'weights'
    """
    weights = akaike_weights(results)
    if not weights:
        return {"predicted": None, "estimated_total": None, "weights": {}}

    successes = [r for r in results if r.success]
    predicted = sum(weights[r.model_name] * r.predicted for r in successes)
    total = sum(weights[r.model_name] * r.estimated_total for r in successes)
    return {"predicted": predicted, "estimated_total": float(total), "weights": weights}


def evaluate_fit_quality(
    result: "FittingResult",
    grade_thresholds: dict | None = None,
    n_points: int | None = None,
) -> dict:
    """Evaluate the quality of a growth curve fit.

    Args:
        result: FittingResult from model fitting
        grade_thresholds: Optional dict with grade thresholds {"A": 0.95, "B": 0.85, ...}
        n_points: Number of observed days, for the data-sufficiency warning

    Returns:
        Dictionary with quality assessment and recommendations
    """
    thresholds = grade_thresholds or DEFAULT_GRADE_THRESHOLDS
    acceptable_threshold = result.acceptable_r_squared

    assessment = {
        "acceptable": result.is_acceptable,
        "r_squared": result.r_squared,
        "mse": result.mse,
        "aic": result.aic,
        "quality_grade": _grade_fit(result.r_squared, thresholds) if result.success else "F",
        "convergence_quality": result.diagnostics.quality.value if result.diagnostics else None,
        "warnings": [],
    }

    if not result.success:
        assessment["warnings"].append(f"Fit failed: {result.error_message}")
        return assessment

    marginal_threshold = thresholds.get("D", 0.50)
    if result.r_squared < marginal_threshold:
        assessment["warnings"].append(
            f"Poor fit (R² < {marginal_threshold}): Consider manual review of data quality"
        )
    elif result.r_squared < acceptable_threshold:
        assessment["warnings"].append(
            f"Marginal fit (R² < {acceptable_threshold}): Predictions may have significant uncertainty"
        )

    if result.diagnostics is not None and result.diagnostics.bound_parameters:
        names = list(result.parameters)
        pinned = ", ".join(names[i] for i in result.diagnostics.bound_parameters)
        assessment["warnings"].append(
            f"Parameters at search bounds ({pinned}): The true optimum may lie outside the search range"
        )

    if n_points is not None and n_points < 3 * len(result.parameters):
        assessment["warnings"].append(
            f"Limited data ({n_points} days for {len(result.parameters)} parameters): "
            "Parameter estimates are weakly determined"
        )

    return assessment


def _grade_fit(r_squared: float, thresholds: dict | None = None) -> str:
    """Assign letter grade based on R² value.

    Args:
        r_squared: Coefficient of determination
        thresholds: Optional dict with grade thresholds

    Returns:
        Letter grade (A, B, C, D, F)
    """
    thresholds = thresholds or DEFAULT_GRADE_THRESHOLDS
    if r_squared >= thresholds.get("A", 0.95):
        return "A"
    elif r_squared >= thresholds.get("B", 0.85):
        return "B"
    elif r_squared >= thresholds.get("C", 0.70):
        return "C"
    elif r_squared >= thresholds.get("D", 0.50):
        return "D"
    else:
        return "F"


def compare_fits(
    results: Sequence["FittingResult"],
    acceptable_r_squared: float | None = None,
) -> "FittingResult":
    """Compare fit results, preferring acceptable fits.

    Selection criteria (in order of priority):
    1. Must succeed and meet the R² threshold (result's own threshold if None)
    2. Lowest AIC

    Falls back to the highest-R² successful fit when none is acceptable.

    Args:
        results: FittingResult objects to compare
        acceptable_r_squared: Override threshold

    Returns:
        Best FittingResult based on selection criteria

    Raises:
        ValueError: If no successful fits to compare
    """
    successes = [r for r in results if r.success]
    if not successes:
        raise ValueError("No fit results to compare")

    if acceptable_r_squared is not None:
        acceptable = [r for r in successes if r.r_squared >= acceptable_r_squared]
    else:
        acceptable = [r for r in successes if r.is_acceptable]

    if not acceptable:
        return max(successes, key=lambda r: r.r_squared)

    return min(acceptable, key=lambda r: r.aic)
