"""Plain-text analysis report."""

import logging
from pathlib import Path

from ..core.bootstrap import BootstrapBand
from ..core.fitting import FitReport, PredictionStatus
from ..core.selection import average_predictions, compare_fits, evaluate_fit_quality, rank_results
from ..core.sensitivity import SensitivityReport
from ..data.series import TimeSeriesData
from ..validation import ValidationResult

logger = logging.getLogger(__name__)


class TextReportWriter:
    """Writes a human-readable summary of one project's analysis."""

    def render(
        self,
        report: FitReport,
        data: TimeSeriesData,
        band: BootstrapBand | None = None,
        issues: ValidationResult | None = None,
        sensitivity: dict[str, SensitivityReport] | None = None,
    ) -> str:
        """Render the report as text.

        Args:
            report: Fit results and selected best model
            data: Project time series
            band: Bootstrap band for the best model
            issues: Validation issues for the project
            sensitivity: Sensitivity reports of the best model

        Returns:
            Report text
        """
        best = report.best
        lines = [
            "bugconverge Analysis Report",
            "=" * 40,
            "",
            f"Project: {data.project_name}",
            f"Days of data: {data.n_days}",
            f"Defects found: {data.current_cumulative_defects:.0f}",
        ]
        if data.has_fixed:
            lines.append(f"Defects open: {data.remaining[-1]:.0f}")
        if data.start_date is not None:
            lines.append(f"Start date: {data.start_date.isoformat()}")
        lines.append("")

        lines.append("Model comparison (by AIC):")
        averaged = average_predictions(report.results)
        weights = averaged["weights"]
        for result in rank_results(report.results):
            marker = "*" if result is best else " "
            lines.append(
                f" {marker} {result.model_name:<34} R²={result.r_squared:.4f}  "
                f"AIC={result.aic:10.2f}  total={result.estimated_total:8.1f}  "
                f"weight={weights.get(result.model_name, 0.0):.3f}"
            )
        for result in report.failed:
            lines.append(f"   {result.model_name:<34} FAILED: {result.error_message}")
        if averaged["estimated_total"] is not None:
            lines.append(f"  Akaike-weighted total: {averaged['estimated_total']:.1f}")
        acceptable = compare_fits(report.results)
        if acceptable is not best:
            lines.append(f"  Best fit meeting its R² threshold: {acceptable.model_name}")
        lines.append("")

        quality = evaluate_fit_quality(best, n_points=data.n_days)
        lines.append(f"Selected model: {best.model_name} (grade {quality['quality_grade']})")
        lines.append(f"  Optimizer: {best.optimizer_name} ({best.evaluations} evaluations)")
        for name, value in best.parameters.items():
            lines.append(f"  {name} = {value:.6g}")
        lines.append(f"  Estimated total defects: {best.estimated_total:.1f}")
        if band is not None and band.total_interval is not None:
            low, high = band.total_interval
            lines.append(
                f"  {band.percentiles[0]:g}-{band.percentiles[1]:g} percentile {band.interval_type} range: "
                f"{low:.1f} - {high:.1f} ({band.n_fallbacks}/{band.n_runs} runs fell back)"
            )
        for warning in quality["warnings"]:
            lines.append(f"  Warning: {warning}")
        lines.append("")

        if sensitivity:
            lines.append("Sensitivity:")
            for rep in sensitivity.values():
                elasticities = ", ".join(f"{i.parameter} {i.elasticity:+.2f}" for i in rep.items)
                lines.append(
                    f"  {rep.metric}: robustness {rep.robustness.value}"
                    + (f" (elasticity {elasticities})" if elasticities else "")
                )
                for warning in rep.warnings:
                    lines.append(f"    Warning: {warning}")
            lines.append("")

        lines.append("Convergence forecast:")
        for p in best.convergence_predictions:
            if p.status == PredictionStatus.ALREADY_REACHED:
                detail = "already reached"
            elif p.status == PredictionStatus.UNREACHABLE:
                detail = "not reached within the prediction horizon"
            else:
                detail = f"day {p.predicted_day:.1f} (+{p.remaining_days:.1f} days)"
                if p.predicted_date is not None:
                    detail += f", {p.predicted_date.isoformat()}"
            lines.append(f"  {p.milestone:>6} ({p.target_defects:.1f} defects): {detail}")

        if issues is not None and issues.issues:
            lines.append("")
            lines.append(f"Validation: {issues.error_count} errors, {issues.warning_count} warnings")
            lines.append("-" * 40)
            for issue in issues.issues:
                lines.append(f"  [{issue.code}] {issue.severity.name}: {issue.message}")
                lines.append(f"    Guidance: {issue.guidance}")

        return "\n".join(lines) + "\n"

    def save(
        self,
        report: FitReport,
        data: TimeSeriesData,
        output_path: Path | str,
        band: BootstrapBand | None = None,
        issues: ValidationResult | None = None,
        sensitivity: dict[str, SensitivityReport] | None = None,
    ) -> Path:
        """Render and write the report.

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self.render(report, data, band, issues, sensitivity))
        logger.info(f"Saved report to {output_path}")
        return output_path
