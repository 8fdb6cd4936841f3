"""CLI commands for bugconverge."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from ..config import BugConvergeConfig, generate_default_config

app = typer.Typer(
    name="bugconverge",
    help="Software reliability growth modeling and defect convergence forecasting",
    add_completion=False,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _load_config(config: Path | None) -> BugConvergeConfig:
    """Load the config file, exiting with a message if it is invalid."""
    if config is None:
        return BugConvergeConfig()

    typer.echo(f"Loading config from {config}")
    try:
        return BugConvergeConfig.from_yaml(config)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _apply_overrides(
    bc_config: BugConvergeConfig,
    optimizer: str | None,
    models: list[str] | None,
    bootstrap: int | None,
    seed: int | None,
    workers: int | None,
    no_plots: bool,
    export_format: str | None,
) -> None:
    """Apply command-line overrides and re-validate the configuration."""
    if optimizer:
        bc_config.fitting.optimizer = optimizer
    if models:
        bc_config.fitting.models = [m.strip() for item in models for m in item.split(",") if m.strip()]
    if bootstrap is not None:
        if bootstrap == 0:
            bc_config.output.bootstrap = False
        else:
            bc_config.output.bootstrap = True
            bc_config.bootstrap.iterations = bootstrap
    if seed is not None:
        bc_config.fitting.seed = seed
        bc_config.bootstrap.seed = seed
    if workers is not None:
        bc_config.fitting.workers = workers
        bc_config.bootstrap.workers = workers
    if no_plots:
        bc_config.output.plots = False
    if export_format:
        bc_config.output.format = export_format.lower()  # type: ignore

    try:
        bc_config.validate()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def analyze(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Input CSV/Excel file with daily test and defect counts",
            exists=True,
        )
    ],
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output directory for results, report and plots",
        )
    ] = Path("output"),
    config: Annotated[
        Optional[Path],
        typer.Option(
            "-c", "--config",
            help="YAML config file (use 'bugconverge init' to generate template)",
            exists=True,
        )
    ] = None,
    optimizer: Annotated[
        Optional[str],
        typer.Option(
            "--optimizer",
            help="Optimizer: grid_search_gd, pso, differential_evolution, grey_wolf, "
                 "nelder_mead, cmaes or auto_select (overrides config)",
        )
    ] = None,
    models: Annotated[
        Optional[list[str]],
        typer.Option(
            "-m", "--models",
            help="Model categories to fit, e.g. basic, tef, extended, all (overrides config)",
        )
    ] = None,
    bootstrap: Annotated[
        Optional[int],
        typer.Option(
            "--bootstrap",
            help="Bootstrap iterations for the confidence band (0 disables)",
        )
    ] = None,
    seed: Annotated[
        Optional[int],
        typer.Option(
            "--seed",
            help="Random seed for reproducible fits and bootstrap bands",
        )
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option(
            "-w", "--workers",
            help="Parallel workers for model fits and bootstrap runs",
        )
    ] = None,
    no_plots: Annotated[
        bool,
        typer.Option(
            "--no-plots",
            help="Skip generating HTML plots",
        )
    ] = False,
    export_format: Annotated[
        Optional[str],
        typer.Option(
            "--format",
            help="Export format: json, xlsx or csv (overrides config)",
        )
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "-v", "--verbose",
            help="Enable debug logging",
        )
    ] = False,
) -> None:
    """Fit growth models to one project and forecast defect convergence.

    Fits every model of the selected categories, picks the best by AIC,
    predicts the days at which cumulative defects reach 90/95/99/99.9% of
    the estimated total and computes a bootstrap confidence band.

    Example:
        bugconverge analyze defects.csv -o results/ --models all --seed 42
    """
    from ..batch.processor import analyze_project, save_project_outputs
    from ..data.loader import load_series

    _configure_logging(verbose)
    bc_config = _load_config(config)
    _apply_overrides(
        bc_config, optimizer, models, bootstrap, seed, workers, no_plots, export_format
    )

    try:
        data = load_series(input_file)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Analyzing {data.project_name} ({data.n_days} days, "
               f"{data.current_cumulative_defects:.0f} defects found)...")
    project = analyze_project(data, bc_config, show_progress=True)

    if project.report is None:
        _report_validation(project.validation)
        typer.echo(f"Error: {project.error}", err=True)
        raise typer.Exit(1)

    paths = save_project_outputs(
        project,
        output,
        bc_config,
        export_format=bc_config.output.format,
        save_plots=bc_config.output.plots,
    )

    _report_project(project)
    _report_validation(project.validation)
    typer.echo(f"\nOutput saved to: {output}/ ({len(paths)} file(s))")

    if project.validation.has_errors and bc_config.validation.strict_mode:
        raise typer.Exit(1)


def _report_project(project) -> None:
    """Report one project's selected model and forecast to console."""
    from ..core.fitting import PredictionStatus

    report = project.report
    best = report.best
    typer.echo("")
    typer.echo("Models:")
    for result in report.results:
        if result.success:
            marker = "*" if result is best else " "
            typer.echo(
                f" {marker} {result.model_name:<34} R²={result.r_squared:.4f}  AIC={result.aic:.2f}"
            )
        else:
            typer.echo(f"   {result.model_name:<34} failed: {result.error_message}")

    typer.echo("")
    typer.echo(f"Best model: {best.model_name}")
    typer.echo(f"  Estimated total defects: {best.estimated_total:.1f}")
    if project.band is not None and project.band.total_interval is not None:
        low, high = project.band.total_interval
        typer.echo(f"  Bootstrap range: {low:.1f} - {high:.1f}")

    typer.echo("")
    typer.echo("Convergence forecast:")
    for p in best.convergence_predictions:
        if p.status == PredictionStatus.ALREADY_REACHED:
            typer.echo(f"  {p.milestone:>6}: already reached")
        elif p.status == PredictionStatus.UNREACHABLE:
            typer.echo(f"  {p.milestone:>6}: unreachable")
        else:
            when = f" ({p.predicted_date.isoformat()})" if p.predicted_date else ""
            typer.echo(f"  {p.milestone:>6}: day {p.predicted_day:.1f}, "
                       f"{p.remaining_days:.1f} days remaining{when}")


def _report_validation(validation) -> None:
    if not validation.issues:
        return
    typer.echo("")
    typer.echo(f"Validation: {validation.error_count} error(s), {validation.warning_count} warning(s)")
    for issue in validation.issues:
        typer.echo(f"  [{issue.code}] {issue.severity.name}: {issue.message}")


@app.command()
def batch(
    input_files: Annotated[
        list[Path],
        typer.Argument(
            help="Input CSV/Excel file(s), one project per file",
            exists=True,
        )
    ],
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output directory for results and plots",
        )
    ] = Path("output"),
    config: Annotated[
        Optional[Path],
        typer.Option(
            "-c", "--config",
            help="YAML config file (use 'bugconverge init' to generate template)",
            exists=True,
        )
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option(
            "-w", "--workers",
            help="Number of parallel project workers (default: auto)",
        )
    ] = None,
    no_plots: Annotated[
        bool,
        typer.Option(
            "--no-plots",
            help="Skip generating per-project plots",
        )
    ] = False,
    no_batch_plot: Annotated[
        bool,
        typer.Option(
            "--no-batch-plot",
            help="Skip generating the multi-project overlay plot",
        )
    ] = False,
    export_format: Annotated[
        Optional[str],
        typer.Option(
            "--format",
            help="Export format: json, xlsx or csv (overrides config)",
        )
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "-v", "--verbose",
            help="Enable debug logging",
        )
    ] = False,
) -> None:
    """Analyze several projects in parallel.

    Writes per-project results, summary.json, validation_report.txt and,
    when any project fails, errors.txt.

    Example:
        bugconverge batch team_a.csv team_b.xlsx -o results/
    """
    from ..batch.processor import BatchConfig, BatchProcessor

    _configure_logging(verbose)
    bc_config = _load_config(config)
    _apply_overrides(bc_config, None, None, None, None, None, no_plots, export_format)

    batch_config = BatchConfig(
        config=bc_config,
        workers=workers,
        output_dir=output,
        save_plots=bc_config.output.plots,
        save_batch_plot=not no_batch_plot,
        export_format=bc_config.output.format,
    )

    typer.echo(f"Processing {len(input_files)} file(s)...")
    result = BatchProcessor(batch_config).run(input_files, output)

    typer.echo("")
    typer.echo("Results:")
    typer.echo(f"  Successful: {result.successful}")
    typer.echo(f"  Failed: {result.failed}")

    if result.errors:
        typer.echo(f"\n{len(result.errors)} error(s) occurred. See {output}/errors.txt")

    if result.projects:
        summary = result.get_validation_summary()
        typer.echo("")
        typer.echo("Validation Summary:")
        typer.echo(f"  Projects with errors: {summary['projects_with_errors']}")
        typer.echo(f"  Projects with warnings: {summary['projects_with_warnings']}")

        if summary["by_category"]:
            typer.echo("")
            typer.echo("  Issues by category:")
            for cat, count in sorted(summary["by_category"].items()):
                typer.echo(f"    {cat}: {count}")

    typer.echo(f"\nOutput saved to: {output}/")

    if result.successful == 0:
        raise typer.Exit(1)


@app.command()
def models(
    category: Annotated[
        Optional[list[str]],
        typer.Option(
            "--category",
            help="Only list these categories (default: all)",
        )
    ] = None,
) -> None:
    """List the model catalog."""
    from ..core.models import CATALOG, parse_categories

    try:
        selected = parse_categories(category) if category else list(CATALOG)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for cat in selected:
        typer.echo(f"{cat.value}:")
        for model in CATALOG[cat]:
            params = ", ".join(model.parameter_names)
            fixed = " [also fits fixed counts]" if model.uses_fixed_series else ""
            typer.echo(f"  {model.name:<34} {model.title} ({params}){fixed}")
            typer.echo(f"      {model.formula}")
        typer.echo("")


@app.command()
def init(
    output: Annotated[
        Path,
        typer.Argument(
            help="Output file path",
        )
    ] = Path("bugconverge.yaml"),
) -> None:
    """Generate a default configuration file.

    Creates a YAML config file with all available settings and their defaults.

    Example:
        bugconverge init my_config.yaml
    """
    if output.exists():
        overwrite = typer.confirm(f"{output} already exists. Overwrite?")
        if not overwrite:
            raise typer.Exit(0)

    generate_default_config(output)
    typer.echo(f"Config file created: {output}")
    typer.echo("\nEdit this file to customize settings, then use:")
    typer.echo(f"  bugconverge analyze defects.csv --config {output}")


@app.command()
def info(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Input CSV/Excel file to inspect",
            exists=True,
        )
    ],
) -> None:
    """Display information about a defect data file.

    Shows the columns, how they map to known fields and the loaded series.
    """
    from ..data.loader import load_file, load_series, map_columns

    typer.echo(f"Inspecting: {input_file}")
    typer.echo("")

    try:
        df = load_file(input_file)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Rows: {len(df)}")
    typer.echo(f"Columns: {list(df.columns)}")
    typer.echo(f"Recognized: {map_columns(df)}")

    try:
        data = load_series(input_file)
    except ValueError as e:
        typer.echo(f"Load failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Days: {data.n_days}")
    typer.echo(f"Defects found: {data.current_cumulative_defects:.0f}")
    if data.dates:
        typer.echo(f"Date range: {data.dates[0]} to {data.dates[-1]}")
    typer.echo(f"Fixed counts: {'yes' if data.has_fixed else 'no'}")
    typer.echo(f"Effort counts: {'yes' if data.has_effort else 'no'}")


