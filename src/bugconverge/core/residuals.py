"""Residual analysis for detecting systematic fit errors.

Residuals are taken on daily increments (differences of the cumulative
curve), since consecutive cumulative residuals are correlated by
construction. Patterns such as autocorrelation, early/late bias and
too few sign changes indicate the model shape does not match the data.
Normality (Jarque-Bera, Shapiro-Wilk) and a binned chi-square test of
daily counts complement the pattern checks.
"""

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy import stats

from ..validation.result import ValidationIssue, ValidationResult

if TYPE_CHECKING:
    from ..data.series import TimeSeriesData
    from .fitting import FittingResult

logger = logging.getLogger(__name__)


@dataclass
class ResidualAnalysisConfig:
    """Configuration for residual analysis.

    Attributes:
        autocorr_threshold: Threshold for flagging autocorrelation (default 0.5)
        dw_low_threshold: Durbin-Watson lower threshold (default 1.5)
        dw_high_threshold: Durbin-Watson upper threshold (default 2.5)
        bias_threshold: Threshold for flagging early/late bias (default 0.15)
        mean_threshold: Threshold for flagging non-zero mean (default 0.1)
        outlier_sigma: Standardized residual beyond which a day is an outlier (default 3)
        runs_alpha: Significance level of the runs test (default 0.05)
        normality_alpha: Significance level of the normality tests (default 0.05)
        normality_min_days: Days needed before non-normality is reported (default 20)
        gof_alpha: Significance level of the chi-square goodness-of-fit test (default 0.05)
    """
    autocorr_threshold: float = 0.5
    dw_low_threshold: float = 1.5
    dw_high_threshold: float = 2.5
    bias_threshold: float = 0.15
    mean_threshold: float = 0.1
    outlier_sigma: float = 3.0
    runs_alpha: float = 0.05
    normality_alpha: float = 0.05
    normality_min_days: int = 20
    gof_alpha: float = 0.05


@dataclass
class ResidualDiagnostics:
    """Diagnostics from residual analysis.

    Attributes:
        residuals: Daily residuals (actual - predicted increments)
        mean: Mean of residuals (should be near 0)
        std: Standard deviation of residuals
        skewness: Sample skewness of residuals
        kurtosis: Excess kurtosis of residuals
        autocorr_lag1: Lag-1 autocorrelation coefficient
        durbin_watson: Durbin-Watson statistic
            - ~2.0 = no autocorrelation
            - <1.5 = positive autocorrelation (underfit pattern)
            - >2.5 = negative autocorrelation (overfit oscillation)
        early_bias: Mean error in first half of data (fraction of mean daily found)
        late_bias: Mean error in last half of data (fraction of mean daily found)
        relative_mean: Mean residual as a fraction of mean daily found
        runs: Number of sign runs in the residuals
        runs_z: Wald-Wolfowitz z score (negative = too few runs)
        runs_p_value: Two-sided p-value of the runs test
        outlier_indices: Day indices with standardized residual beyond the outlier threshold
        jarque_bera: Jarque-Bera statistic (0 when not computed)
        jarque_bera_p_value: Jarque-Bera p-value (1 when not computed)
        shapiro_w: Shapiro-Wilk W statistic (1 when not computed)
        shapiro_p_value: Shapiro-Wilk p-value (1 when not computed)
        normality_rejected: Whether either normality test rejects at normality_alpha
        chi_square: Chi-square statistic of binned daily counts
        chi_square_df: Degrees of freedom (0 when not computed)
        chi_square_p_value: Chi-square p-value (1 when not computed)
        chi_square_bins: Bins used after merging sparse ones
        has_systematic_pattern: Whether residuals show concerning patterns
    """
    residuals: np.ndarray
    mean: float
    std: float
    skewness: float
    kurtosis: float
    autocorr_lag1: float
    durbin_watson: float
    early_bias: float
    late_bias: float
    relative_mean: float
    runs: int
    runs_z: float
    runs_p_value: float
    outlier_indices: list[int] = field(default_factory=list)
    jarque_bera: float = 0.0
    jarque_bera_p_value: float = 1.0
    shapiro_w: float = 1.0
    shapiro_p_value: float = 1.0
    normality_rejected: bool = False
    chi_square: float = 0.0
    chi_square_df: int = 0
    chi_square_p_value: float = 1.0
    chi_square_bins: int = 0
    has_systematic_pattern: bool = False

    @classmethod
    def compute(
        cls,
        actual: np.ndarray,
        predicted: np.ndarray,
        config: ResidualAnalysisConfig | None = None,
        n_parameters: int = 0,
    ) -> "ResidualDiagnostics":
        """Compute residual diagnostics from cumulative actual vs predicted values.

        Args:
            actual: Observed cumulative values
            predicted: Model cumulative values at the same days
            config: Thresholds (defaults if None)
            n_parameters: Fitted parameter count, removed from the chi-square degrees of freedom

        Returns:
            ResidualDiagnostics with computed metrics
        """
        config = config or ResidualAnalysisConfig()
        actual_daily = np.diff(np.asarray(actual, dtype=float), prepend=0.0)
        predicted_daily = np.diff(np.asarray(predicted, dtype=float), prepend=0.0)
        residuals = actual_daily - predicted_daily
        n = len(residuals)

        mean = float(np.mean(residuals)) if n else 0.0
        std = float(np.std(residuals)) if n else 0.0

        if n > 2 and std > 0:
            skewness = float(stats.skew(residuals))
            kurtosis = float(stats.kurtosis(residuals))
        else:
            skewness = 0.0
            kurtosis = 0.0

        # Autocorrelation at lag 1
        r = residuals - mean
        denom = np.sum(r ** 2)
        autocorr_lag1 = float(np.sum(r[:-1] * r[1:]) / denom) if n > 1 and denom > 0 else 0.0

        # Durbin-Watson statistic
        res_sq = np.sum(residuals ** 2)
        if n > 1 and res_sq > 0:
            durbin_watson = float(np.sum(np.diff(residuals) ** 2) / res_sq)
        else:
            durbin_watson = 2.0

        mean_actual = float(np.mean(actual_daily)) if n else 1.0
        if mean_actual == 0:
            mean_actual = 1.0

        half = n // 2
        if half > 0:
            early_bias = float(np.mean(residuals[:half]) / mean_actual)
            late_bias = float(np.mean(residuals[half:]) / mean_actual)
        else:
            early_bias = 0.0
            late_bias = 0.0

        runs, runs_z, runs_p = runs_test(residuals)

        if std > 0:
            outliers = np.where(np.abs(r / std) > config.outlier_sigma)[0].tolist()
        else:
            outliers = []

        jb, jb_p, w, w_p = normality_test(residuals)
        chi, chi_df, chi_p, chi_bins = chi_square_test(actual_daily, predicted_daily, n_parameters)

        has_systematic_pattern = (
            durbin_watson < config.dw_low_threshold
            or durbin_watson > config.dw_high_threshold
            or abs(early_bias) > config.bias_threshold
            or abs(late_bias) > config.bias_threshold
            or abs(autocorr_lag1) > config.autocorr_threshold
            or runs_p < config.runs_alpha
        )

        return cls(
            residuals=residuals,
            mean=mean,
            std=std,
            skewness=skewness,
            kurtosis=kurtosis,
            autocorr_lag1=autocorr_lag1,
            durbin_watson=durbin_watson,
            early_bias=early_bias,
            late_bias=late_bias,
            relative_mean=mean / mean_actual,
            runs=runs,
            runs_z=runs_z,
            runs_p_value=runs_p,
            outlier_indices=outliers,
            jarque_bera=jb,
            jarque_bera_p_value=jb_p,
            shapiro_w=w,
            shapiro_p_value=w_p,
            normality_rejected=bool(min(jb_p, w_p) < config.normality_alpha),
            chi_square=chi,
            chi_square_df=chi_df,
            chi_square_p_value=chi_p,
            chi_square_bins=chi_bins,
            has_systematic_pattern=bool(has_systematic_pattern),
        )

    def summary(self) -> dict:
        """Summary without the residual array."""
        return {
            "mean": self.mean,
            "std": self.std,
            "skewness": self.skewness,
            "kurtosis": self.kurtosis,
            "autocorr_lag1": self.autocorr_lag1,
            "durbin_watson": self.durbin_watson,
            "early_bias": self.early_bias,
            "late_bias": self.late_bias,
            "runs": self.runs,
            "runs_z": self.runs_z,
            "runs_p_value": self.runs_p_value,
            "outlier_indices": list(self.outlier_indices),
            "jarque_bera_p_value": self.jarque_bera_p_value,
            "shapiro_p_value": self.shapiro_p_value,
            "normality_rejected": self.normality_rejected,
            "chi_square": self.chi_square,
            "chi_square_df": self.chi_square_df,
            "chi_square_p_value": self.chi_square_p_value,
            "has_systematic_pattern": self.has_systematic_pattern,
        }


def runs_test(residuals: np.ndarray) -> tuple[int, float, float]:
    """Wald-Wolfowitz runs test on residual signs.

    Zero residuals are ignored.

    Returns:
        Tuple of (runs, z score, two-sided p-value)
    """
    signs = np.sign(residuals)
    signs = signs[signs != 0]
    if len(signs) == 0:
        return 0, 0.0, 1.0

    runs = int(1 + np.sum(signs[1:] != signs[:-1]))
    n_pos = int(np.sum(signs > 0))
    n_neg = int(np.sum(signs < 0))
    n = n_pos + n_neg

    if n_pos == 0 or n_neg == 0 or n < 2:
        return runs, 0.0, 1.0

    expected = 2.0 * n_pos * n_neg / n + 1.0
    variance = 2.0 * n_pos * n_neg * (2.0 * n_pos * n_neg - n) / (n ** 2 * (n - 1))
    if variance <= 0:
        return runs, 0.0, 1.0

    z = (runs - expected) / np.sqrt(variance)
    p_value = 2.0 * stats.norm.sf(abs(z))
    return runs, float(z), float(p_value)


def normality_test(residuals: np.ndarray) -> tuple[float, float, float, float]:
    """Jarque-Bera and Shapiro-Wilk tests of residual normality.

    Skipped below five residuals or when every residual is equal.

    Returns:
        Tuple of (Jarque-Bera statistic, its p-value, Shapiro-Wilk W, its p-value)
    """
    residuals = np.asarray(residuals, dtype=float)
    if len(residuals) < 5 or np.std(residuals) == 0:
        return 0.0, 1.0, 1.0, 1.0

    jb = stats.jarque_bera(residuals)
    shapiro = stats.shapiro(residuals)
    return float(jb.statistic), float(jb.pvalue), float(shapiro.statistic), float(shapiro.pvalue)


def chi_square_test(
    observed_daily: np.ndarray,
    expected_daily: np.ndarray,
    n_parameters: int = 0,
    min_expected: float = 5.0,
) -> tuple[float, int, float, int]:
    """Chi-square goodness of fit of daily counts in consecutive day bins.

    The bin count follows Sturges' rule, capped so each bin can hold
    ``min_expected`` defects. Bins whose expected count is below that are
    merged into the next one, and a short tail into the last.

    Returns:
        Tuple of (statistic, degrees of freedom, p-value, bins used);
        (0, 0, 1, 0) when there are fewer than 10 days or 2 bins
    """
    observed_daily = np.asarray(observed_daily, dtype=float)
    expected_daily = np.asarray(expected_daily, dtype=float)
    n = len(observed_daily)
    if n < 10:
        return 0.0, 0, 1.0, 0

    target = max(5, int(np.ceil(1 + 3.322 * np.log10(n))))
    target = max(min(target, int(n // min_expected)), 2)
    size = int(np.ceil(n / target))

    bins: list[list[float]] = []
    pending_observed = pending_expected = 0.0
    for start in range(0, n, size):
        pending_observed += float(observed_daily[start:start + size].sum())
        pending_expected += float(expected_daily[start:start + size].sum())
        if pending_expected >= min_expected:
            bins.append([pending_observed, pending_expected])
            pending_observed = pending_expected = 0.0
    if pending_expected > 0:
        if bins:
            bins[-1][0] += pending_observed
            bins[-1][1] += pending_expected
        else:
            bins.append([pending_observed, pending_expected])

    if len(bins) < 2:
        return 0.0, 0, 1.0, 0

    observed, expected = np.array(bins).T
    used = expected > 0
    statistic = float(np.sum((observed[used] - expected[used]) ** 2 / expected[used]))
    df = max(1, len(bins) - 1 - n_parameters)
    return statistic, df, float(stats.chi2.sf(statistic, df)), len(bins)


class ResidualAnalyzer:
    """Analyzes fit residuals to detect systematic patterns.

    Example:
        analyzer = ResidualAnalyzer()
        diagnostics = analyzer.analyze_result(data, result)

        if diagnostics.has_systematic_pattern:
            print(f"Durbin-Watson: {diagnostics.durbin_watson:.2f}")

        issues = analyzer.get_validation_issues(diagnostics, data.project_name)
    """

    def __init__(self, config: ResidualAnalysisConfig | None = None):
        """Initialize analyzer.

        Args:
            config: Analysis configuration (uses defaults if None)
        """
        self.config = config or ResidualAnalysisConfig()

    def analyze(self, actual: np.ndarray, predicted: np.ndarray, n_parameters: int = 0) -> ResidualDiagnostics:
        """Analyze residuals between cumulative actual and predicted values."""
        return ResidualDiagnostics.compute(actual, predicted, self.config, n_parameters)

    def analyze_result(self, data: "TimeSeriesData", result: "FittingResult") -> ResidualDiagnostics:
        """Analyze residuals of a successful fit against the data it was fitted to.

        Raises:
            ValueError: If the fit did not succeed
        """
        if not result.success or result.predicted is None:
            raise ValueError(f"Cannot analyze residuals of failed fit {result.model_name}")
        n_parameters = len(result.parameter_vector) if result.parameter_vector is not None else 0
        diagnostics = self.analyze(data.cumulative_found, result.predicted, n_parameters)
        logger.debug(
            f"{data.project_name}/{result.model_name}: DW={diagnostics.durbin_watson:.2f} "
            f"runs p={diagnostics.runs_p_value:.3f}"
        )
        return diagnostics

    def get_validation_issues(
        self,
        diagnostics: ResidualDiagnostics,
        project_name: str | None = None,
        model_name: str | None = None,
    ) -> ValidationResult:
        """Turn diagnostics into RD-coded validation issues.

        Args:
            diagnostics: Output of analyze() or analyze_result()
            project_name: Project identifier
            model_name: Model the residuals belong to

        Returns:
            ValidationResult with any issues found
        """
        cfg = self.config
        result = ValidationResult(project_name=project_name, model_name=model_name)
        label = f"{model_name} " if model_name else ""
        dw = diagnostics.durbin_watson

        if dw < cfg.dw_low_threshold or dw > cfg.dw_high_threshold:
            positive = dw < cfg.dw_low_threshold
            result.add_issue(ValidationIssue.autocorrelated_residuals(
                label,
                dw,
                diagnostics.autocorr_lag1,
                cfg.dw_low_threshold if positive else cfg.dw_high_threshold,
                positive,
            ))

        for period, bias in (("Early", diagnostics.early_bias), ("Late", diagnostics.late_bias)):
            if abs(bias) > cfg.bias_threshold:
                result.add_issue(ValidationIssue.biased_residuals(period, bias, cfg.bias_threshold))

        if abs(diagnostics.relative_mean) > cfg.mean_threshold:
            result.add_issue(ValidationIssue.nonzero_mean_residuals(
                diagnostics.mean, diagnostics.std, diagnostics.relative_mean
            ))

        if diagnostics.normality_rejected and len(diagnostics.residuals) >= cfg.normality_min_days:
            result.add_issue(ValidationIssue.non_normal_residuals(
                diagnostics.jarque_bera_p_value,
                diagnostics.shapiro_p_value,
                diagnostics.skewness,
                diagnostics.kurtosis,
            ))

        if diagnostics.chi_square_df > 0 and diagnostics.chi_square_p_value < cfg.gof_alpha:
            result.add_issue(ValidationIssue.poor_goodness_of_fit(
                label,
                diagnostics.chi_square,
                diagnostics.chi_square_df,
                diagnostics.chi_square_p_value,
            ))

        return result


def _describe(values: list[float]) -> dict:
    arr = np.asarray(values, dtype=float)
    return {
        "mean": float(arr.mean()),
        "std": float(arr.std()),
        "min": float(arr.min()),
        "max": float(arr.max()),
    }


def summarize_residual_results(diagnostics_list: list[ResidualDiagnostics]) -> dict:
    """Aggregate residual diagnostics across projects or models."""
    if not diagnostics_list:
        return {"count": 0}

    flagged = [d for d in diagnostics_list if d.has_systematic_pattern]
    return {
        "count": len(diagnostics_list),
        "durbin_watson": _describe([d.durbin_watson for d in diagnostics_list]),
        "autocorr_lag1": _describe([d.autocorr_lag1 for d in diagnostics_list]),
        "early_bias_mean": float(np.mean([d.early_bias for d in diagnostics_list])),
        "late_bias_mean": float(np.mean([d.late_bias for d in diagnostics_list])),
        "systematic_pattern_pct": 100.0 * len(flagged) / len(diagnostics_list),
    }
