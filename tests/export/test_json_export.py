"""Tests for JSON export."""

import json
import tempfile
from datetime import date
from pathlib import Path

import numpy as np
import pytest

from bugconverge.batch import ProjectResult
from bugconverge.config import BugConvergeConfig
from bugconverge.core.bootstrap import BootstrapBand
from bugconverge.core.fitting import FitReport, FittingConfig, FittingResult, ModelFitter
from bugconverge.core.models import ModelCategory, get_model
from bugconverge.core.sensitivity import SensitivityAnalyzer
from bugconverge.data.series import TimeSeriesData
from bugconverge.export.json_export import JsonExporter
from bugconverge.validation import ValidationIssue, ValidationResult


CUMULATIVE = [8, 20, 35, 45, 52, 58, 62, 64, 65, 65]
PARAMS = np.array([66.0, 0.25])


def _make_report(project_name="alpha"):
    """Create a series and a report with one fitted and one failed model."""
    data = TimeSeriesData.from_cumulative(CUMULATIVE, project_name=project_name, start_date=date(2024, 1, 1))
    model = get_model("exponential")
    predicted = model.evaluate(data.time_index, PARAMS)
    best = FittingResult(
        model_name="exponential",
        category=ModelCategory.BASIC,
        success=True,
        parameters={"a": 66.0, "b": 0.25},
        parameter_vector=PARAMS,
        r_squared=0.98,
        mse=2.0,
        sse=20.0,
        aic=10.0,
        predicted=predicted,
        estimated_total=66.0,
        optimizer_name="DifferentialEvolution",
        convergence_predictions=ModelFitter(FittingConfig()).predict_convergence(
            model, PARAMS, data.to_curve(), 66.0, data.start_date
        ),
    )
    failed = FittingResult(
        model_name="logistic",
        category=ModelCategory.BASIC,
        success=False,
        error_message="Optimization failed",
    )
    return data, FitReport(results=[best, failed], best=best)


def _make_band(fitted):
    return BootstrapBand(
        times=np.arange(1.0, len(fitted) + 1),
        fitted=fitted,
        lower=fitted * 0.9,
        upper=fitted * 1.1,
        median=fitted,
        percentiles=(2.5, 97.5),
        n_runs=20,
        n_fallbacks=1,
        parameter_intervals={"a": (60.0, 72.0), "b": (0.2, 0.3)},
        total_interval=(60.0, 72.0),
    )


class TestJsonExporter:
    """Tests for JsonExporter."""

    def test_default_init(self):
        exporter = JsonExporter()
        assert exporter.config is not None

    def test_export_project(self):
        _, report = _make_report()
        data = JsonExporter().export_project(report, project_name="alpha")

        assert data["project"] == "alpha"
        assert data["best_model"] == "exponential"
        assert data["best"]["parameters"] == {"a": 66.0, "b": 0.25}
        assert len(data["fitted"]) == 10
        assert data["akaike_weights"] == {"exponential": 1.0}
        assert data["akaike_weighted_total"] == 66.0
        assert data["sensitivity"] is None
        assert data["bootstrap"] is None
        assert [m["model"] for m in data["models"]] == ["exponential", "logistic"]

    def test_failed_model_metrics_are_null(self):
        _, report = _make_report()
        failed = JsonExporter().export_project(report)["models"][1]
        assert failed["success"] is False
        assert failed["mse"] is None
        assert failed["error"] == "Optimization failed"

    def test_predictions(self):
        _, report = _make_report()
        predictions = JsonExporter().export_project(report)["best"]["predictions"]

        assert [p["milestone"] for p in predictions] == ["90%", "95%", "99%", "99.9%"]
        predicted = [p for p in predictions if p["status"] == "predicted"]
        assert predicted
        assert all(p["predicted_date"].startswith("2024-") for p in predicted)

    def test_band(self):
        data, report = _make_report()
        band = _make_band(report.best.predicted)
        exported = JsonExporter().export_project(report, band=band)["bootstrap"]

        assert exported["n_runs"] == 20
        assert exported["interval_type"] == "confidence"
        assert exported["total_interval"] == [60.0, 72.0]
        assert exported["parameter_intervals"]["b"] == [0.2, 0.3]
        assert len(exported["upper"]) == data.n_days

    def test_sensitivity(self):
        _, report = _make_report()
        sensitivity = SensitivityAnalyzer().analyze_all(get_model("exponential"), PARAMS, current_day=10.0)
        exported = JsonExporter().export_project(report, sensitivity=sensitivity)["sensitivity"]

        assert set(exported) == {"total", "current", "future"}
        assert exported["total"]["base_value"] == 66.0
        assert exported["total"]["elasticities"]["a"] == 1.0
        assert exported["total"]["warnings"] == []
        json.dumps(exported)

    def test_validation(self):
        _, report = _make_report()
        validation = ValidationResult(issues=[ValidationIssue.few_data_points(10, 14)])
        exported = JsonExporter().export_project(report, validation_result=validation)["validation"]

        assert exported["warnings"] == 1
        assert exported["issues"][0]["code"] == "DQ001"
        assert exported["issues"][0]["severity"] == "warning"

    def test_save(self):
        _, report = _make_report()
        config = BugConvergeConfig()
        config.bootstrap.iterations = 20

        with tempfile.TemporaryDirectory() as tmpdir:
            path = JsonExporter(config).save(report, Path(tmpdir) / "alpha.json", project_name="alpha")
            with open(path) as f:
                data = json.load(f)

        assert data["project"] == "alpha"
        assert data["config"]["bootstrap"]["iterations"] == 20
        assert data["config"]["fitting"]["optimizer"] == "differential_evolution"
        assert "generated" in data

    def test_save_batch(self):
        data_a, report_a = _make_report("alpha")
        projects = [
            ProjectResult(project_name="alpha", data=data_a, report=report_a),
            ProjectResult(project_name="beta", error="No model could be fitted"),
        ]

        with tempfile.TemporaryDirectory() as tmpdir:
            path = JsonExporter().save_batch(projects, Path(tmpdir) / "summary.json")
            with open(path) as f:
                data = json.load(f)

        assert data["project_count"] == 2
        assert data["projects"][0]["best_model"] == "exponential"
        assert data["projects"][1] == {
            "project": "beta",
            "error": "No model could be fitted",
            "validation": {"errors": 0, "warnings": 0, "issues": []},
        }

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_values_become_null(self, value):
        _, report = _make_report()
        report.best.holdout_mape = value
        assert JsonExporter().export_project(report)["best"]["holdout_mape"] is None
