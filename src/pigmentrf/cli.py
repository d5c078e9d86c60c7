"""Command-line interface for the pigmentrf analysis."""

import math
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from pigmentrf.config.settings import PipelineConfig

app = typer.Typer(
    name="pigmentrf",
    help="Random-forest prediction of hair and eye colour from SNP genotypes.",
    no_args_is_help=True,
)

console = Console()

REPORT_FORMATS = {"html": ["html"], "pdf": ["pdf"], "both": ["html", "pdf"]}


def _apply_overrides(
    config: "PipelineConfig",
    *,
    phenotypes: Path | None,
    genotypes: Path | None,
    output: Path | None,
    report_format: str | None,
    mlflow: bool,
) -> "PipelineConfig":
    """Return a copy of the config with command-line overrides applied."""
    update: dict[str, object] = {}

    paths: dict[str, Path] = {}
    if phenotypes is not None:
        paths["phenotypes"] = phenotypes.resolve()
    if genotypes is not None:
        paths["genotypes"] = genotypes.resolve()
    if paths:
        update["data_paths"] = config.data_paths.model_copy(update=paths)

    if output is not None:
        update["output"] = config.output.model_copy(update={"output_root": output})
    if report_format is not None:
        update["report"] = config.report.model_copy(
            update={"formats": REPORT_FORMATS[report_format]}
        )
    if mlflow:
        update["mlflow"] = config.mlflow.model_copy(update={"enabled": True})

    return config.model_copy(update=update) if update else config


@app.command()
def run(
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration YAML file.",
            exists=True,
            dir_okay=False,
        ),
    ],
    phenotypes: Annotated[
        Path | None,
        typer.Option("--phenotypes", help="Override the phenotype table path."),
    ] = None,
    genotypes: Annotated[
        Path | None,
        typer.Option("--genotypes", help="Override the genotype table path."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Override the output root directory."),
    ] = None,
    report_format: Annotated[
        str | None,
        typer.Option("--format", help="Report format: 'html', 'pdf' or 'both'."),
    ] = None,
    target: Annotated[
        list[str] | None,
        typer.Option("--target", "-t", help="Target(s) to analyse (default: all)."),
    ] = None,
    no_tune: Annotated[
        bool,
        typer.Option("--no-tune", help="Skip the max_features grid search."),
    ] = False,
    mlflow: Annotated[
        bool,
        typer.Option("--mlflow", help="Track the run with MLflow."),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "INFO",
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Render log lines as JSON."),
    ] = False,
) -> None:
    """Run the full analysis and render the report."""
    from pandera.errors import SchemaError

    from pigmentrf.config.loader import load_config
    from pigmentrf.pipeline import run_analysis
    from pigmentrf.utils.logging import configure_logging

    configure_logging(log_level, json_output=json_logs)

    if report_format is not None and report_format not in REPORT_FORMATS:
        console.print(
            f"[red]Error: Invalid format '{report_format}'. Use 'html', 'pdf' or 'both'.[/red]"
        )
        raise typer.Exit(code=1)

    console.print(f"[blue]Loading configuration from {config}[/blue]")
    try:
        pipeline_config = _apply_overrides(
            load_config(config),
            phenotypes=phenotypes,
            genotypes=genotypes,
            output=output,
            report_format=report_format,
            mlflow=mlflow,
        )
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e

    tune = False if no_tune else None
    console.print(f"[blue]Running analysis for project {pipeline_config.project}[/blue]")
    console.print(f"[dim]Targets: {', '.join(target or pipeline_config.target_names)}[/dim]")
    console.print(f"[dim]Output: {pipeline_config.project_dir}[/dim]")

    try:
        result = run_analysis(pipeline_config, target or None, tune=tune, console=console)
    except (FileNotFoundError, KeyError, ValueError, SchemaError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print()
    table = Table(title="Analysis Results")
    table.add_column("Target", style="cyan")
    table.add_column("Train/Test", style="dim")
    table.add_column("Accuracy", style="green", justify="right")
    table.add_column("Kappa", style="green", justify="right")
    table.add_column("Macro AUC", style="magenta", justify="right")
    table.add_column("Reference Acc.", style="yellow", justify="right")

    for row in result.summary().to_dict("records"):
        table.add_row(
            row["target"],
            f"{row['n_train']}/{row['n_test']}",
            f"{row['accuracy']:.4f}",
            f"{row['kappa']:.4f}",
            f"{row['macro_auc']:.4f}",
            "-" if math.isnan(row["reference_accuracy"]) else f"{row['reference_accuracy']:.4f}",
        )
    console.print(table)

    for fmt, path in result.report_paths.items():
        console.print(f"[green]{fmt.upper()} report: {path}[/green]")
    for target_result in result.results:
        if target_result.predictions_path is not None:
            console.print(f"[dim]Predictions: {target_result.predictions_path}[/dim]")
        if target_result.model_path is not None:
            console.print(f"[dim]Model: {target_result.model_path}[/dim]")


@app.command()
def validate(
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration YAML file.",
            exists=True,
            dir_okay=False,
        ),
    ],
) -> None:
    """Validate the input tables against their schemas."""
    from pigmentrf.config.loader import load_config
    from pigmentrf.utils.logging import configure_logging
    from pigmentrf.validation import ConsoleReporter, ValidationRunner

    configure_logging("WARNING")
    console.print("[blue]Running schema validation...[/blue]")

    try:
        pipeline_config = load_config(config)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e

    results = ValidationRunner(pipeline_config).run()

    reporter = ConsoleReporter(console)
    reporter.print_results(results)

    if reporter.has_failures(results):
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show version information."""
    from pigmentrf import __version__

    console.print(f"pigmentrf version {__version__}")


if __name__ == "__main__":
    app()
