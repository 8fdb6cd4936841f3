"""Tests for Plotly convergence plots."""

import tempfile
from datetime import date
from pathlib import Path

import numpy as np

from bugconverge.batch import ProjectResult
from bugconverge.core.bootstrap import BootstrapBand
from bugconverge.core.fitting import FitReport, FittingConfig, FittingResult, ModelFitter
from bugconverge.core.models import ModelCategory, get_model
from bugconverge.data.series import TimeSeriesData
from bugconverge.visualization.plots import ConvergencePlotter


CUMULATIVE = [8, 20, 35, 45, 52, 58, 62, 64, 65, 65]
FIXED = [2, 10, 22, 35, 44, 50, 56, 60, 62, 63]
PARAMS = np.array([66.0, 0.25])


def _make_project(name="alpha", with_fixed=True):
    data = TimeSeriesData.from_cumulative(
        CUMULATIVE,
        project_name=name,
        cumulative_fixed=FIXED if with_fixed else None,
        start_date=date(2024, 1, 1),
    )
    model = get_model("exponential")
    best = FittingResult(
        model_name="exponential",
        category=ModelCategory.BASIC,
        success=True,
        parameters={"a": 66.0, "b": 0.25},
        parameter_vector=PARAMS,
        r_squared=0.98,
        aic=10.0,
        predicted=model.evaluate(data.time_index, PARAMS),
        estimated_total=66.0,
        convergence_predictions=ModelFitter(FittingConfig()).predict_convergence(
            model, PARAMS, data.to_curve(), 66.0, data.start_date
        ),
    )
    failed = FittingResult(model_name="logistic", category=ModelCategory.BASIC, success=False)
    return ProjectResult(project_name=name, data=data, report=FitReport(results=[best, failed], best=best))


def _make_band(fitted):
    return BootstrapBand(
        times=np.arange(1.0, len(fitted) + 1),
        fitted=fitted,
        lower=fitted * 0.9,
        upper=fitted * 1.1,
        median=fitted,
        percentiles=(2.5, 97.5),
        n_runs=10,
        n_fallbacks=0,
    )


class TestConvergencePlotter:
    """Tests for ConvergencePlotter."""

    def test_plot_fit(self):
        project = _make_project()
        fig = ConvergencePlotter().plot_fit(project.data, project.report)

        names = [trace.name for trace in fig.data]
        assert "Found per day" in names
        assert "Cumulative found" in names
        assert "Cumulative fixed" in names
        assert "Fitted (exponential)" in names
        assert "Forecast" in names
        assert "alpha" in fig.layout.title.text

    def test_plot_fit_with_band(self):
        project = _make_project(with_fixed=False)
        band = _make_band(project.report.best.predicted)
        fig = ConvergencePlotter().plot_fit(project.data, project.report, band)

        names = [trace.name for trace in fig.data]
        assert "2.5-97.5 percentile confidence band" in names
        assert "Cumulative fixed" not in names

    def test_forecast_reaches_milestones(self):
        """Test the projection extends past the last predicted milestone."""
        project = _make_project()
        plotter = ConvergencePlotter(forecast_factor=1.0)
        end = plotter._forecast_end(project.data, project.report.best)
        # 99.9% of the total is reached near day 27.6
        assert end > 27.0
        assert end <= project.data.n_days * 10.0

    def test_plot_comparison_skips_failed(self):
        project = _make_project()
        fig = ConvergencePlotter().plot_comparison(project.data, project.report.results)

        assert len(fig.data) == 2
        assert fig.data[1].name.startswith("exponential")

    def test_plot_projects(self):
        projects = [_make_project("alpha"), _make_project("beta"), ProjectResult(project_name="gamma")]
        fig = ConvergencePlotter().plot_projects(projects)

        # Markers and a model curve per fitted project
        assert len(fig.data) == 4
        assert "2 projects" in fig.layout.title.text
        assert max(fig.data[0].y) <= 1.0

    def test_save_html(self):
        project = _make_project()
        plotter = ConvergencePlotter()
        fig = plotter.plot_fit(project.data, project.report)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = plotter.save(fig, Path(tmpdir) / "alpha_fit.html")
            assert path.exists()
            assert path.stat().st_size > 0
