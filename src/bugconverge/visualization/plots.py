"""Interactive Plotly visualizations for defect growth analysis."""

from pathlib import Path
from typing import TYPE_CHECKING, Literal

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from ..core.bootstrap import BootstrapBand
from ..core.fitting import FitReport, FittingResult, PredictionStatus
from ..core.models import get_model
from ..data.series import TimeSeriesData

if TYPE_CHECKING:
    from ..batch.processor import ProjectResult


class ConvergencePlotter:
    """Create interactive cumulative defect growth plots."""

    # Color palette for multiple models or projects
    COLORS = [
        "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
        "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf"
    ]

    def __init__(
        self,
        forecast_factor: float = 2.0,
        width: int = 1000,
        height: int = 600,
    ):
        """Initialize plotter.

        Args:
            forecast_factor: Projection length as a multiple of the observed days,
                extended to cover predicted convergence days
            width: Plot width in pixels
            height: Plot height in pixels
        """
        self.forecast_factor = forecast_factor
        self.width = width
        self.height = height

    def _forecast_end(self, data: TimeSeriesData, result: FittingResult) -> float:
        end = data.n_days * self.forecast_factor
        days = [
            p.predicted_day for p in result.convergence_predictions
            if p.status == PredictionStatus.PREDICTED and p.predicted_day is not None
        ]
        if days:
            # Cap so an extreme milestone does not flatten the plot
            end = max(end, min(max(days), data.n_days * 10.0))
        return end

    def _model_curve(self, result: FittingResult, t: np.ndarray) -> np.ndarray:
        return get_model(result.model_name).evaluate(t, result.parameter_vector)

    def plot_fit(
        self,
        data: TimeSeriesData,
        report: FitReport,
        band: BootstrapBand | None = None,
    ) -> go.Figure:
        """Create the main plot for a project's best model.

        Shows observed cumulative found (and fixed) defects, the fitted and
        projected curve, the bootstrap band, convergence milestones and the
        daily found counts on a secondary axis.

        Args:
            data: Project time series
            report: Fit results and selected best model
            band: Bootstrap band for the best model

        Returns:
            Plotly Figure object
        """
        best = report.best
        fig = make_subplots(specs=[[{"secondary_y": True}]])
        t = data.time_index

        fig.add_trace(go.Bar(
            x=t,
            y=data.found,
            name="Found per day",
            marker=dict(color="rgba(127,127,127,0.35)"),
            hovertemplate="Day %{x}<br>Found: %{y:.0f}<extra></extra>",
        ), secondary_y=True)

        fig.add_trace(go.Scatter(
            x=t,
            y=data.cumulative_found,
            mode="markers",
            name="Cumulative found",
            marker=dict(size=8, color="#1f77b4", symbol="circle"),
            hovertemplate="Day %{x}<br>Found: %{y:.0f}<extra></extra>",
        ))

        if data.has_fixed:
            fig.add_trace(go.Scatter(
                x=t,
                y=data.cumulative_fixed,
                mode="markers",
                name="Cumulative fixed",
                marker=dict(size=7, color="#2ca02c", symbol="diamond"),
                hovertemplate="Day %{x}<br>Fixed: %{y:.0f}<extra></extra>",
            ))

        if band is not None:
            fig.add_trace(go.Scatter(
                x=np.concatenate([band.times, band.times[::-1]]),
                y=np.concatenate([band.upper, band.lower[::-1]]),
                fill="toself",
                fillcolor="rgba(255,127,14,0.2)",
                line=dict(color="rgba(255,127,14,0)"),
                name=f"{band.percentiles[0]:g}-{band.percentiles[1]:g} percentile {band.interval_type} band",
                hoverinfo="skip",
            ))

        t_fit = np.linspace(1.0, t[-1], 200)
        fig.add_trace(go.Scatter(
            x=t_fit,
            y=self._model_curve(best, t_fit),
            mode="lines",
            name=f"Fitted ({best.model_name})",
            line=dict(color="#ff7f0e", width=2),
            hovertemplate=(
                f"<b>{best.model_name}</b><br>"
                "Day %{x:.1f}<br>"
                "Cumulative: %{y:.1f}<br>"
                f"R²: {best.r_squared:.3f}"
                "<extra></extra>"
            ),
        ))

        t_forecast = np.linspace(t[-1], self._forecast_end(data, best), 200)
        fig.add_trace(go.Scatter(
            x=t_forecast,
            y=self._model_curve(best, t_forecast),
            mode="lines",
            name="Forecast",
            line=dict(color="#ff7f0e", width=2, dash="dash"),
            hovertemplate="Day %{x:.1f}<br>Cumulative: %{y:.1f}<extra></extra>",
        ))

        fig.add_hline(
            y=best.estimated_total,
            line_dash="dot",
            line_color="gray",
            annotation_text=f"Estimated total {best.estimated_total:.0f}",
            annotation_position="bottom right",
        )
        for p in best.convergence_predictions:
            if p.status == PredictionStatus.PREDICTED:
                fig.add_vline(
                    x=p.predicted_day,
                    line_dash="dot",
                    line_color="red",
                    annotation_text=p.milestone,
                    annotation_position="top left",
                )

        fig.update_layout(
            title=dict(
                text=f"Defect Convergence: {data.project_name}",
                font=dict(size=16)
            ),
            xaxis_title="Test day",
            width=self.width,
            height=self.height,
            legend=dict(yanchor="bottom", y=0.01, xanchor="right", x=0.99),
            hovermode="closest",
        )
        fig.update_yaxes(title_text="Cumulative defects", secondary_y=False)
        fig.update_yaxes(title_text="Defects per day", secondary_y=True, showgrid=False)

        annotation_text = "<b>Parameters</b><br>" + "<br>".join(
            f"{name}: {value:.4g}" for name, value in best.parameters.items()
        ) + f"<br>R²: {best.r_squared:.3f}"
        fig.add_annotation(
            x=0.02, y=0.98,
            xref="paper", yref="paper",
            text=annotation_text,
            showarrow=False,
            font=dict(size=10),
            align="left",
            bgcolor="rgba(255,255,255,0.8)",
            bordercolor="gray",
            borderwidth=1
        )

        return fig

    def plot_comparison(
        self,
        data: TimeSeriesData,
        results: list[FittingResult],
    ) -> go.Figure:
        """Overlay every successful model on the observed curve.

        Args:
            data: Project time series
            results: Fit results (failed fits are skipped)

        Returns:
            Plotly Figure object
        """
        fig = go.Figure()
        t = data.time_index

        fig.add_trace(go.Scatter(
            x=t,
            y=data.cumulative_found,
            mode="markers",
            name="Cumulative found",
            marker=dict(size=8, color="black"),
        ))

        successes = [r for r in results if r.success]
        end = max((self._forecast_end(data, r) for r in successes), default=float(t[-1]))
        t_curve = np.linspace(1.0, end, 300)
        for i, result in enumerate(successes):
            fig.add_trace(go.Scatter(
                x=t_curve,
                y=self._model_curve(result, t_curve),
                mode="lines",
                name=f"{result.model_name} (AIC {result.aic:.1f})",
                line=dict(color=self.COLORS[i % len(self.COLORS)], width=1.5),
            ))

        fig.add_vline(x=float(t[-1]), line_dash="dot", line_color="gray")
        fig.update_layout(
            title=f"Model Comparison: {data.project_name} ({len(successes)} models)",
            xaxis_title="Test day",
            yaxis_title="Cumulative defects",
            width=self.width,
            height=self.height,
            hovermode="closest",
        )
        return fig

    def plot_projects(self, projects: list["ProjectResult"]) -> go.Figure:
        """Overlay projects, normalized to each best model's estimated total.

        Args:
            projects: Batch results (projects without a fit are skipped)

        Returns:
            Plotly Figure object
        """
        fig = go.Figure()
        fitted = [p for p in projects if p.report is not None and p.data is not None]

        for i, project in enumerate(fitted):
            color = self.COLORS[i % len(self.COLORS)]
            best = project.report.best
            total = best.estimated_total if best.estimated_total > 0 else 1.0
            t = project.data.time_index
            fig.add_trace(go.Scatter(
                x=t,
                y=project.data.cumulative_found / total,
                mode="markers",
                name=project.project_name,
                marker=dict(size=6, color=color),
                legendgroup=project.project_name,
            ))
            t_curve = np.linspace(1.0, self._forecast_end(project.data, best), 150)
            fig.add_trace(go.Scatter(
                x=t_curve,
                y=self._model_curve(best, t_curve) / total,
                mode="lines",
                name=f"{project.project_name} ({best.model_name})",
                line=dict(color=color, width=1.5, dash="dash"),
                legendgroup=project.project_name,
                showlegend=False,
            ))

        fig.update_layout(
            title=f"Multi-Project Convergence ({len(fitted)} projects)",
            xaxis_title="Test day",
            yaxis_title="Share of estimated total",
            width=self.width,
            height=self.height,
            hovermode="closest",
        )
        return fig

    def save(
        self,
        fig: go.Figure,
        output_path: Path | str,
        format: Literal["html", "png", "svg", "pdf"] = "html"
    ) -> Path:
        """Save figure to file.

        Args:
            fig: Plotly Figure object
            output_path: Output file path
            format: Output format

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)

        if format == "html":
            fig.write_html(output_path)
        else:
            fig.write_image(output_path, format=format)

        return output_path
