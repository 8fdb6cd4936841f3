"""Export fit results in JSON format."""

import json
from datetime import datetime
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from ..config import BugConvergeConfig
from ..core.bootstrap import BootstrapBand
from ..core.fitting import FitReport, FittingResult
from ..core.selection import average_predictions
from ..core.sensitivity import SensitivityReport
from ..validation import ValidationResult

if TYPE_CHECKING:
    from ..batch.processor import ProjectResult


def _number(value: float | None, digits: int = 6) -> float | None:
    """Round a number for JSON, mapping non-finite values to null."""
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return round(value, digits)


def _series(values: np.ndarray | None, digits: int = 4) -> list[float | None] | None:
    if values is None:
        return None
    return [_number(v, digits) for v in np.asarray(values, dtype=float)]


class JsonExporter:
    """Export fit results in JSON format.

    Produces a structured JSON file containing configuration, every model's
    fit, the selected model's convergence forecast, the optional bootstrap
    band and validation results.
    """

    def __init__(self, config: BugConvergeConfig | None = None):
        """Initialize exporter.

        Args:
            config: Configuration (included in export)
        """
        self.config = config or BugConvergeConfig()

    def _export_result(self, result: FittingResult) -> dict[str, Any]:
        """Export a single model fit."""
        return {
            "model": result.model_name,
            "category": result.category.value,
            "success": result.success,
            "parameters": {k: _number(v, 8) for k, v in result.parameters.items()},
            "r_squared": _number(result.r_squared),
            "mse": _number(result.mse),
            "aic": _number(result.aic),
            "estimated_total": _number(result.estimated_total, 2),
            "optimizer": result.optimizer_name,
            "iterations": result.iterations,
            "evaluations": result.evaluations,
            "elapsed_seconds": _number(result.elapsed_seconds, 4),
            "convergence_quality": result.diagnostics.quality.value if result.diagnostics else None,
            "holdout_mape": _number(result.holdout_mape, 2),
            "error": result.error_message,
            "predictions": [
                {
                    "milestone": p.milestone,
                    "ratio": p.ratio,
                    "target_defects": _number(p.target_defects, 2),
                    "status": p.status.value,
                    "predicted_day": _number(p.predicted_day, 3),
                    "remaining_days": _number(p.remaining_days, 3),
                    "predicted_date": p.predicted_date.isoformat() if p.predicted_date else None,
                }
                for p in result.convergence_predictions
            ],
        }

    def _export_band(self, band: BootstrapBand | None) -> dict[str, Any] | None:
        if band is None:
            return None
        return {
            "interval_type": band.interval_type,
            "percentiles": list(band.percentiles),
            "n_runs": band.n_runs,
            "n_fallbacks": band.n_fallbacks,
            "lower": _series(band.lower),
            "median": _series(band.median),
            "upper": _series(band.upper),
            "parameter_intervals": {
                name: [_number(low, 8), _number(high, 8)]
                for name, (low, high) in band.parameter_intervals.items()
            },
            "total_interval": (
                [_number(v, 2) for v in band.total_interval] if band.total_interval else None
            ),
        }

    def _export_sensitivity(self, sensitivity: dict[str, SensitivityReport] | None) -> dict[str, Any] | None:
        if not sensitivity:
            return None
        return {
            key: {
                "metric": rep.metric,
                "base_value": _number(rep.base_value, 4),
                "robustness": rep.robustness.value,
                "elasticities": {i.parameter: _number(i.elasticity, 4) for i in rep.items},
                "warnings": list(rep.warnings),
            }
            for key, rep in sensitivity.items()
        }

    def _export_validation(self, validation_result: ValidationResult | None) -> dict[str, Any]:
        """Export validation results."""
        if validation_result is None:
            return {"errors": 0, "warnings": 0, "issues": []}

        return {
            "errors": validation_result.error_count,
            "warnings": validation_result.warning_count,
            "issues": [
                {
                    "code": issue.code,
                    "severity": issue.severity.name.lower(),
                    "message": issue.message,
                    "guidance": issue.guidance,
                }
                for issue in validation_result.issues
            ],
        }

    def export_project(
        self,
        report: FitReport,
        band: BootstrapBand | None = None,
        project_name: str | None = None,
        validation_result: ValidationResult | None = None,
        sensitivity: dict[str, SensitivityReport] | None = None,
    ) -> dict[str, Any]:
        """Export one project's fit report to a JSON-compatible dict.

        Args:
            report: Fit results and selected best model
            band: Bootstrap band for the best model
            project_name: Project label
            validation_result: Validation issues for the project
            sensitivity: Sensitivity reports of the best model

        Returns:
            Project data dict
        """
        averaged = average_predictions(report.results)
        weights = averaged["weights"]
        return {
            "project": project_name,
            "best_model": report.best.model_name,
            "best": self._export_result(report.best),
            "fitted": _series(report.best.predicted),
            "akaike_weights": {k: _number(v) for k, v in weights.items()},
            "akaike_weighted_total": _number(averaged["estimated_total"], 2),
            "models": [self._export_result(r) for r in report.results],
            "bootstrap": self._export_band(band),
            "validation": self._export_validation(validation_result),
            "sensitivity": self._export_sensitivity(sensitivity),
        }

    def save(
        self,
        report: FitReport,
        output_path: Path | str,
        band: BootstrapBand | None = None,
        project_name: str | None = None,
        validation_result: ValidationResult | None = None,
        sensitivity: dict[str, SensitivityReport] | None = None,
    ) -> Path:
        """Export one project and save to a JSON file.

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)
        data = {
            "generated": datetime.now().isoformat(timespec="seconds"),
            "config": self.config.to_dict(),
            **self.export_project(report, band, project_name, validation_result, sensitivity),
        }

        with open(output_path, "w") as f:
            json.dump(data, f, indent=2)

        return output_path

    def save_batch(self, projects: list["ProjectResult"], output_path: Path | str) -> Path:
        """Export several projects to one JSON file.

        Projects without a successful fit are listed with their error only.

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)
        projects_data = []
        for project in projects:
            if project.report is None:
                projects_data.append({
                    "project": project.project_name,
                    "error": project.error,
                    "validation": self._export_validation(project.validation),
                })
            else:
                projects_data.append(self.export_project(
                    project.report,
                    project.band,
                    project.project_name,
                    project.validation,
                    project.sensitivity,
                ))

        data = {
            "generated": datetime.now().isoformat(timespec="seconds"),
            "config": self.config.to_dict(),
            "project_count": len(projects),
            "projects": projects_data,
        }

        with open(output_path, "w") as f:
            json.dump(data, f, indent=2)

        return output_path
