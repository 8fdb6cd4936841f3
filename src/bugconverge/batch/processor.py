"""Batch processing for multiple projects with parallel execution."""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
import logging
import os
from pathlib import Path
from typing import Literal

from tqdm import tqdm

from ..config import BugConvergeConfig
from ..core.bootstrap import BootstrapBand, BootstrapEngine
from ..core.fitting import FitReport, ModelFitter, NoSuccessfulFitError
from ..core.models import get_model, get_models
from ..core.residuals import ResidualAnalyzer, ResidualDiagnostics
from ..core.sensitivity import SensitivityAnalyzer, SensitivityReport
from ..data.loader import load_series
from ..data.series import TimeSeriesData
from ..export import JsonExporter, TableExporter, TextReportWriter
from ..validation import (
    FittingValidator,
    InputValidator,
    ValidationResult,
    summarize_validation,
)
from ..visualization.plots import ConvergencePlotter

logger = logging.getLogger(__name__)


@dataclass
class BatchConfig:
    """Configuration for batch processing.

    Attributes:
        config: Full configuration applied to every project
        workers: Number of parallel workers (None = auto)
        output_dir: Output directory for results
        save_plots: Whether to save per-project plots
        save_batch_plot: Whether to save the multi-project overlay plot
        export_format: Table export format (json, xlsx or csv)
    """
    config: BugConvergeConfig = field(default_factory=BugConvergeConfig)
    workers: int | None = None
    output_dir: Path | None = None
    save_plots: bool = True
    save_batch_plot: bool = True
    export_format: Literal["json", "xlsx", "csv"] = "json"


@dataclass
class ProjectResult:
    """Outcome of analyzing one project.

    Attributes:
        project_name: Project label
        data: Project time series
        report: Fit results and best model (None when every fit failed)
        band: Bootstrap band for the best model
        residuals: Residual diagnostics of the best model
        sensitivity: Sensitivity reports of the best model keyed total/current/future
        validation: Validation issues for the project
        error: Failure description when no model could be selected
    """
    project_name: str
    data: TimeSeriesData | None = None
    report: FitReport | None = None
    band: BootstrapBand | None = None
    residuals: ResidualDiagnostics | None = None
    sensitivity: dict[str, SensitivityReport] = field(default_factory=dict)
    validation: ValidationResult = field(default_factory=ValidationResult)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.report is not None


@dataclass
class BatchResult:
    """Results from batch processing.

    Attributes:
        projects: Per-project results, in input order
        successful: Count of projects with a selected model
        failed: Count of projects where every fit failed
        errors: List of (project_name, error_message) tuples
    """
    projects: list[ProjectResult]
    successful: int
    failed: int
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def validation_results(self) -> dict[str, ValidationResult]:
        return {p.project_name: p.validation for p in self.projects}

    def get_validation_summary(self) -> dict:
        """Get summary of validation results."""
        return summarize_validation(self.validation_results)


def analyze_project(
    data: TimeSeriesData,
    config: BugConvergeConfig | None = None,
    run_bootstrap: bool | None = None,
    show_progress: bool = False,
) -> ProjectResult:
    """Validate, fit, select, diagnose and (optionally) bootstrap one project.

    Never raises for a fitting failure; it is reported on the result.

    Args:
        data: Project time series
        config: Configuration (defaults if None)
        run_bootstrap: Override for config.output.bootstrap
        show_progress: Show progress bars for model fits and bootstrap runs

    Returns:
        ProjectResult for the project
    """
    config = config or BugConvergeConfig()
    run_bootstrap = config.output.bootstrap if run_bootstrap is None else run_bootstrap
    vcfg = config.validation

    input_validator = InputValidator(
        min_days=vcfg.min_days,
        recommended_days=vcfg.recommended_days,
        min_defects=vcfg.min_defects,
    )
    fitting_validator = FittingValidator(
        min_r_squared=vcfg.min_r_squared,
        error_r_squared=vcfg.error_r_squared,
        points_per_parameter=vcfg.points_per_parameter,
    )

    models = get_models(config.fitting.model_categories)
    validation = input_validator.validate(data)
    validation = validation.merge(fitting_validator.validate_pre_fit(data, models))

    fitter = ModelFitter.from_config(config)
    try:
        report = fitter.fit_and_select(data, models, show_progress=show_progress)
    except NoSuccessfulFitError as e:
        logger.error(str(e))
        return ProjectResult(
            project_name=data.project_name,
            data=data,
            validation=validation,
            error=str(e),
        )

    validation = validation.merge(fitting_validator.validate_results(report.results, data.project_name))

    residuals = None
    if vcfg.residual_analysis:
        analyzer = ResidualAnalyzer()
        residuals = analyzer.analyze_result(data, report.best)
        validation = validation.merge(
            analyzer.get_validation_issues(residuals, data.project_name, report.best.model_name)
        )

    best_model = get_model(report.best.model_name)
    sensitivity = SensitivityAnalyzer().analyze_all(
        best_model,
        report.best.parameter_vector,
        current_day=float(data.time_index[-1]),
        horizon=config.fitting.prediction_horizon_days,
    )

    band = None
    if run_bootstrap:
        engine = BootstrapEngine(config.bootstrap, config.initialization)
        band = engine.bootstrap_interval(
            data,
            best_model,
            report.best.parameter_vector,
            show_progress=show_progress,
        )

    return ProjectResult(
        project_name=data.project_name,
        data=data,
        report=report,
        band=band,
        residuals=residuals,
        sensitivity=sensitivity,
        validation=validation,
    )


def _analyze_project_task(data: TimeSeriesData, config: BugConvergeConfig) -> ProjectResult:
    """Worker entry point; inner fits and bootstrap stay in the worker process."""
    config = replace(
        config,
        fitting=replace(config.fitting, workers=1),
        bootstrap=replace(config.bootstrap, workers=1),
    )
    return analyze_project(data, config)


def save_project_outputs(
    project: ProjectResult,
    output_dir: Path,
    config: BugConvergeConfig,
    export_format: Literal["json", "xlsx", "csv"] = "json",
    save_plots: bool = True,
) -> list[Path]:
    """Write one project's report, tables and plots.

    Args:
        project: Analysis result (skipped if no model was selected)
        output_dir: Output directory (created if missing)
        config: Configuration included in the JSON export
        export_format: json, xlsx or csv
        save_plots: Whether to write HTML plots

    Returns:
        Paths written
    """
    if project.report is None or project.data is None:
        return []

    output_dir.mkdir(parents=True, exist_ok=True)
    stem = project.project_name.replace("/", "_")
    paths = []

    if export_format == "json":
        paths.append(JsonExporter(config).save(
            project.report,
            output_dir / f"{stem}.json",
            band=project.band,
            project_name=project.project_name,
            validation_result=project.validation,
            sensitivity=project.sensitivity,
        ))
    else:
        paths.extend(TableExporter().save(
            project.report, project.data, output_dir / f"{stem}.{export_format}", band=project.band
        ))

    if config.output.report:
        paths.append(TextReportWriter().save(
            project.report,
            project.data,
            output_dir / f"{stem}_report.txt",
            band=project.band,
            issues=project.validation,
            sensitivity=project.sensitivity,
        ))

    if save_plots:
        plotter = ConvergencePlotter()
        plots_dir = output_dir / "plots"
        plots_dir.mkdir(exist_ok=True)
        try:
            fig = plotter.plot_fit(project.data, project.report, project.band)
            paths.append(plotter.save(fig, plots_dir / f"{stem}_fit.html"))
            fig = plotter.plot_comparison(project.data, project.report.results)
            paths.append(plotter.save(fig, plots_dir / f"{stem}_models.html"))
        except Exception as e:
            logger.warning(f"Failed to plot {project.project_name}: {e}")

    return paths


class BatchProcessor:
    """Process multiple projects with parallel analysis."""

    def __init__(self, config: BatchConfig | None = None):
        """Initialize batch processor.

        Args:
            config: Batch processing configuration
        """
        self.config = config or BatchConfig()

    def load_files(self, filepaths: list[Path | str]) -> tuple[list[TimeSeriesData], list[tuple[str, str]]]:
        """Load one project per file.

        Args:
            filepaths: List of input file paths

        Returns:
            Tuple of (loaded projects, (file, error) for files that failed to load)
        """
        datasets = []
        errors = []

        for filepath in filepaths:
            try:
                datasets.append(load_series(filepath))
            except Exception as e:
                logger.error(f"Failed to load {filepath}: {e}")
                errors.append((str(filepath), str(e)))

        return datasets, errors

    def _resolve_workers(self, n_tasks: int) -> int:
        workers = self.config.workers
        if workers is None:
            workers = os.cpu_count() or 4
        return max(1, min(workers, n_tasks))

    def process(
        self,
        datasets: list[TimeSeriesData],
        show_progress: bool = True,
    ) -> BatchResult:
        """Analyze projects, in parallel when more than one worker is configured.

        Args:
            datasets: Projects to analyze
            show_progress: Whether to show progress bar

        Returns:
            BatchResult with per-project results in input order
        """
        if not datasets:
            return BatchResult(projects=[], successful=0, failed=0)

        results: list[ProjectResult | None] = [None] * len(datasets)
        workers = self._resolve_workers(len(datasets))

        if workers <= 1:
            iterator = enumerate(datasets)
            if show_progress:
                iterator = tqdm(iterator, total=len(datasets), desc="Analyzing projects")
            for i, data in iterator:
                results[i] = analyze_project(data, self.config.config)
        else:
            with ProcessPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(_analyze_project_task, data, self.config.config): i
                    for i, data in enumerate(datasets)
                }

                iterator = as_completed(futures)
                if show_progress:
                    iterator = tqdm(iterator, total=len(futures), desc="Analyzing projects")

                for future in iterator:
                    i = futures[future]
                    try:
                        results[i] = future.result()
                    except Exception as e:
                        name = datasets[i].project_name
                        logger.error(f"Failed to process {name}: {e}")
                        results[i] = ProjectResult(project_name=name, data=datasets[i], error=str(e))

        errors = [(r.project_name, r.error) for r in results if r.error]
        successful = sum(1 for r in results if r.success)
        return BatchResult(
            projects=results,
            successful=successful,
            failed=len(results) - successful,
            errors=errors,
        )

    def run(
        self,
        input_files: list[Path | str],
        output_dir: Path | str | None = None,
        show_progress: bool = True
    ) -> BatchResult:
        """Run complete batch processing pipeline.

        Args:
            input_files: Input file paths (one project per file)
            output_dir: Output directory (overrides config)
            show_progress: Whether to show progress bars

        Returns:
            BatchResult with processed projects
        """
        output_dir = Path(output_dir) if output_dir else self.config.output_dir
        if output_dir:
            output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Loading projects from {len(input_files)} file(s)")
        datasets, load_errors = self.load_files(input_files)

        result = self.process(datasets, show_progress=show_progress)
        result.errors = load_errors + result.errors
        result.failed += len(load_errors)
        logger.info(
            f"Processing complete: {result.successful} successful, {result.failed} failed"
        )

        if output_dir:
            self._save_outputs(result, output_dir)

        return result

    def _save_outputs(self, result: BatchResult, output_dir: Path) -> None:
        """Save all outputs to directory.

        Args:
            result: Batch processing result
            output_dir: Output directory
        """
        root_config = self.config.config

        summary_path = JsonExporter(root_config).save_batch(result.projects, output_dir / "summary.json")
        logger.info(f"Saved summary to {summary_path}")

        for project in result.projects:
            save_project_outputs(
                project,
                output_dir,
                root_config,
                export_format=self.config.export_format,
                save_plots=self.config.save_plots,
            )

        if self.config.save_batch_plot and result.successful:
            plotter = ConvergencePlotter()
            plots_dir = output_dir / "plots"
            plots_dir.mkdir(exist_ok=True)
            try:
                fig = plotter.plot_projects(result.projects)
                plotter.save(fig, plots_dir / "batch_overlay.html")
            except Exception as e:
                logger.warning(f"Failed to create batch plot: {e}")

        # Save error log
        if result.errors:
            error_path = output_dir / "errors.txt"
            with open(error_path, "w") as f:
                for project_name, error in result.errors:
                    f.write(f"{project_name}: {error}\n")
            logger.info(f"Saved error log to {error_path}")

        if result.projects:
            self._save_validation_report(result, output_dir)

    def _save_validation_report(
        self,
        result: BatchResult,
        output_dir: Path,
    ) -> None:
        """Save validation report to file.

        Args:
            result: Batch processing result
            output_dir: Output directory
        """
        report_path = output_dir / "validation_report.txt"
        summary = result.get_validation_summary()

        with open(report_path, "w", encoding="utf-8") as f:
            f.write("bugconverge Validation Report\n")
            f.write("=" * 40 + "\n\n")

            f.write("Summary:\n")
            f.write(f"  Projects with errors: {summary['projects_with_errors']}\n")
            f.write(f"  Projects with warnings: {summary['projects_with_warnings']}\n")
            f.write(f"  Total errors: {summary['total_errors']}\n")
            f.write(f"  Total warnings: {summary['total_warnings']}\n\n")

            if summary["by_code"]:
                f.write("Issues by code:\n")
                for code, count in sorted(summary["by_code"].items()):
                    f.write(f"  {code}: {count}\n")
                f.write("\n")

            f.write("Detailed Issues:\n")
            f.write("-" * 40 + "\n")

            for project in result.projects:
                if project.validation.issues:
                    f.write(f"\n{project.project_name}:\n")
                    for issue in project.validation.issues:
                        f.write(f"  [{issue.code}] {issue.severity.name}: {issue.message}\n")
                        f.write(f"    Guidance: {issue.guidance}\n")

        logger.info(f"Saved validation report to {report_path}")
