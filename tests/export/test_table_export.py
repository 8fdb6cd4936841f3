"""Tests for table (XLSX/CSV) export and the text report."""

import tempfile
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from bugconverge.core.fitting import FitReport, FittingConfig, FittingResult, ModelFitter
from bugconverge.core.models import ModelCategory, get_model
from bugconverge.core.sensitivity import SensitivityAnalyzer
from bugconverge.data.series import TimeSeriesData
from bugconverge.export import TableExporter, TextReportWriter
from bugconverge.validation import ValidationIssue, ValidationResult


CUMULATIVE = [8, 20, 35, 45, 52, 58, 62, 64, 65, 65]
FIXED = [2, 10, 22, 35, 44, 50, 56, 60, 62, 63]
PARAMS = np.array([66.0, 0.25])


def _make_report():
    """Create a series and a report with one fitted and one failed model."""
    data = TimeSeriesData.from_cumulative(
        CUMULATIVE, project_name="alpha", cumulative_fixed=FIXED, start_date=date(2024, 1, 1)
    )
    model = get_model("exponential")
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
        predicted=model.evaluate(data.time_index, PARAMS),
        estimated_total=66.0,
        optimizer_name="DifferentialEvolution",
        evaluations=1200,
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


def _make_runner_up(data, r_squared=0.95):
    """A second successful fit two AIC units behind the best."""
    params = np.array([70.0, 0.5])
    return FittingResult(
        model_name="delayed_s_shaped",
        category=ModelCategory.BASIC,
        success=True,
        parameters={"a": 70.0, "b": 0.5},
        parameter_vector=params,
        r_squared=r_squared,
        aic=12.0,
        predicted=get_model("delayed_s_shaped").evaluate(data.time_index, params),
        estimated_total=70.0,
    )


class TestTableExporter:
    """Tests for TableExporter."""

    def test_summary_table(self):
        _, report = _make_report()
        table = TableExporter().summary_table(report)

        assert list(table["model"]) == ["exponential", "logistic"]
        assert list(table["best"]) == [True, False]
        assert table.loc[0, "param_a"] == 66.0
        assert pd.isna(table.loc[1, "aic"])

    def test_predictions_table(self):
        data, report = _make_report()
        table = TableExporter().predictions_table(report, data)

        assert len(table) == data.n_days
        assert list(table["cumulative_found"]) == CUMULATIVE
        assert "exponential" in table.columns
        assert "logistic" not in table.columns
        assert "band_lower" not in table.columns

    def test_forecast_table(self):
        _, report = _make_report()
        table = TableExporter().forecast_table(report)
        assert list(table["milestone"]) == ["90%", "95%", "99%", "99.9%"]
        assert set(table["status"]) <= {"already_reached", "predicted", "unreachable"}

    def test_save_xlsx(self):
        data, report = _make_report()
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = TableExporter().save(report, data, Path(tmpdir) / "alpha.xlsx")
            assert paths == [Path(tmpdir) / "alpha.xlsx"]
            sheets = pd.read_excel(paths[0], sheet_name=None)

        assert set(sheets) == {"summary", "predictions", "forecast"}
        assert len(sheets["predictions"]) == data.n_days

    def test_save_csv(self):
        data, report = _make_report()
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = TableExporter().save(report, data, Path(tmpdir) / "alpha", fmt="csv")
            names = sorted(p.name for p in paths)
            forecast = pd.read_csv(Path(tmpdir) / "alpha_forecast.csv")

        assert names == ["alpha_forecast.csv", "alpha_predictions.csv", "alpha_summary.csv"]
        assert len(forecast) == 4

    def test_unsupported_format(self):
        data, report = _make_report()
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ValueError, match="Unsupported table format"):
                TableExporter().save(report, data, Path(tmpdir) / "alpha.parquet")


class TestTextReportWriter:
    """Tests for TextReportWriter."""

    def test_render(self):
        data, report = _make_report()
        text = TextReportWriter().render(report, data)

        assert "Project: alpha" in text
        assert "Defects found: 65" in text
        assert "Defects open: 2" in text
        assert "Selected model: exponential" in text
        assert "logistic" in text and "FAILED: Optimization failed" in text
        assert "Convergence forecast:" in text
        assert "already reached" in text
        assert "2024-01-12" in text

    def test_render_validation(self):
        data, report = _make_report()
        issues = ValidationResult(issues=[ValidationIssue.few_defects(5, 20)])
        text = TextReportWriter().render(report, data, issues=issues)
        assert "[DQ003] WARNING" in text
        assert "Guidance:" in text

    def test_save(self):
        data, report = _make_report()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = TextReportWriter().save(report, data, Path(tmpdir) / "alpha_report.txt")
            content = path.read_text(encoding="utf-8")
        assert content.startswith("bugconverge Analysis Report")

    def test_ranking_and_weighted_total(self):
        data, report = _make_report()
        runner_up = _make_runner_up(data)
        report = FitReport(results=[runner_up, *report.results], best=report.best)

        text = TextReportWriter().render(report, data)

        # Ranked by AIC regardless of collection order, failures last
        assert text.index("* exponential") < text.index("delayed_s_shaped") < text.index("FAILED")
        # 66 * 0.7311 + 70 * 0.2689
        assert "Akaike-weighted total: 67.1" in text
        assert "Best fit meeting its R² threshold" not in text

    def test_acceptable_alternative(self):
        """Test a note when the lowest-AIC fit misses its R² threshold."""
        data, report = _make_report()
        report.best.r_squared = 0.85
        report = FitReport(results=[*report.results, _make_runner_up(data)], best=report.best)

        text = TextReportWriter().render(report, data)
        assert "Best fit meeting its R² threshold: delayed_s_shaped" in text

    def test_render_sensitivity(self):
        data, report = _make_report()
        sensitivity = SensitivityAnalyzer().analyze_all(get_model("exponential"), PARAMS, current_day=10.0)

        text = TextReportWriter().render(report, data, sensitivity=sensitivity)

        assert "Sensitivity:" in text
        assert "Estimated total: robustness" in text
        assert "a +1.00" in text
        assert "Cumulative defects at day 15" in text
