"""Export fit results as tables (multi-sheet XLSX or CSV files)."""

import logging
from pathlib import Path
from typing import Literal

import pandas as pd

from ..core.bootstrap import BootstrapBand
from ..core.fitting import FitReport
from ..data.series import TimeSeriesData

logger = logging.getLogger(__name__)


class TableExporter:
    """Export a project's fit report as summary, predictions and forecast tables.

    XLSX output writes one workbook with three sheets through openpyxl.
    CSV output writes three files named ``<stem>_summary.csv``,
    ``<stem>_predictions.csv`` and ``<stem>_forecast.csv``.
    """

    SHEETS = ("summary", "predictions", "forecast")

    def summary_table(self, report: FitReport) -> pd.DataFrame:
        """One row per model with fit metrics and parameters."""
        rows = []
        for result in report.results:
            row = {
                "model": result.model_name,
                "category": result.category.value,
                "success": result.success,
                "best": result is report.best,
                "r_squared": result.r_squared if result.success else None,
                "mse": result.mse if result.success else None,
                "aic": result.aic if result.success else None,
                "estimated_total": result.estimated_total if result.success else None,
                "optimizer": result.optimizer_name,
                "elapsed_seconds": result.elapsed_seconds,
                "convergence_quality": result.diagnostics.quality.value if result.diagnostics else None,
                "error": result.error_message,
            }
            row.update({f"param_{k}": v for k, v in result.parameters.items()})
            rows.append(row)
        return pd.DataFrame(rows)

    def predictions_table(
        self,
        report: FitReport,
        data: TimeSeriesData,
        band: BootstrapBand | None = None,
    ) -> pd.DataFrame:
        """Observed and fitted cumulative values per day."""
        table = pd.DataFrame({
            "day": data.time_index.astype(int),
            "date": data.dates if data.dates else [None] * data.n_days,
            "found": data.found,
            "cumulative_found": data.cumulative_found,
            "cumulative_fixed": data.cumulative_fixed,
        })
        for result in report.successful:
            table[result.model_name] = result.predicted
        if band is not None:
            table["band_lower"] = band.lower
            table["band_median"] = band.median
            table["band_upper"] = band.upper
        return table

    def forecast_table(self, report: FitReport) -> pd.DataFrame:
        """Convergence predictions of the best model."""
        rows = [
            {
                "model": report.best.model_name,
                "milestone": p.milestone,
                "ratio": p.ratio,
                "target_defects": p.target_defects,
                "status": p.status.value,
                "predicted_day": p.predicted_day,
                "remaining_days": p.remaining_days,
                "predicted_date": p.predicted_date,
            }
            for p in report.best.convergence_predictions
        ]
        return pd.DataFrame(rows)

    def save(
        self,
        report: FitReport,
        data: TimeSeriesData,
        output_path: Path | str,
        band: BootstrapBand | None = None,
        fmt: Literal["xlsx", "csv"] | None = None,
    ) -> list[Path]:
        """Write the tables.

        Args:
            report: Fit results and selected best model
            data: Project time series
            output_path: Workbook path, or base path for CSV files
            band: Bootstrap band for the best model
            fmt: 'xlsx' or 'csv' (from the file suffix if None)

        Returns:
            Paths written

        Raises:
            ValueError: If the format is not supported
        """
        output_path = Path(output_path)
        fmt = fmt or output_path.suffix.lower().lstrip(".")
        tables = {
            "summary": self.summary_table(report),
            "predictions": self.predictions_table(report, data, band),
            "forecast": self.forecast_table(report),
        }

        if fmt == "xlsx":
            path = output_path.with_suffix(".xlsx")
            with pd.ExcelWriter(path, engine="openpyxl") as writer:
                for sheet in self.SHEETS:
                    tables[sheet].to_excel(writer, sheet_name=sheet, index=False)
            logger.info(f"Saved tables to {path}")
            return [path]
        elif fmt == "csv":
            paths = []
            for sheet in self.SHEETS:
                path = output_path.with_name(f"{output_path.stem}_{sheet}.csv")
                tables[sheet].to_csv(path, index=False)
                paths.append(path)
            logger.info(f"Saved {len(paths)} CSV tables next to {output_path}")
            return paths
        else:
            raise ValueError(f"Unsupported table format: {fmt}")
