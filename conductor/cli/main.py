"""Main CLI entry point using Typer."""

import json
from pathlib import Path
from typing import Any

import anyio
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from conductor import __version__
from conductor.core.config import Settings, StrategyName, get_settings
from conductor.core.logging import configure_logging
from conductor.core.memory import (
    InMemoryAgentDirectory,
    InMemoryTaskStore,
    StaticTemplateCatalog,
)
from conductor.decomposition.models import Worker

app = typer.Typer(
    name="conductor",
    help="Conductor - task decomposition and capability-aware scheduling",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]Conductor[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
) -> None:
    """
    Conductor - plan who runs what, and when.

    Validates project-analysis documents, orders their tasks into
    dependency layers and assigns them to capable workers.
    """
    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(settings)


# =============================================================================
# HELPERS
# =============================================================================


def _load_json(path: Path) -> Any:
    """Read a JSON file or exit with an error message."""
    try:
        return json.loads(path.read_text())
    except FileNotFoundError:
        console.print(f"[bold red]File not found: {path}[/bold red]")
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Invalid JSON in {path}: {e}[/bold red]")
        raise typer.Exit(code=1)


def _load_workers(path: Path | None) -> list[Worker]:
    if path is None:
        return []
    return [Worker.model_validate(item) for item in _load_json(path)]


def _print_issues(errors: list[str], warnings: list[str]) -> None:
    if errors:
        table = Table(title="Errors", title_style="bold red")
        table.add_column("#", style="dim")
        table.add_column("Message", style="red")
        for i, message in enumerate(errors, start=1):
            table.add_row(str(i), message)
        console.print(table)

    for warning in warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")


# =============================================================================
# COMMANDS
# =============================================================================


@app.command()
def validate(
    document: Path = typer.Argument(..., help="Project analysis JSON file"),
    template: list[str] | None = typer.Option(
        None,
        "--template",
        "-t",
        help="Known worker template id (repeatable)",
    ),
) -> None:
    """
    Validate a project analysis without creating tasks.

    Example:
        conductor validate analysis.json -t frontend-specialist
    """
    from conductor.decomposition.validator import RequestValidator

    data = _load_json(document)
    catalog = StaticTemplateCatalog(template) if template else None

    async def do_validate() -> bool:
        validator = RequestValidator(catalog)
        report = await validator.validate_with_timeout(data, get_settings().validation_timeout)

        _print_issues(report.error_messages, report.warnings)

        if report.is_valid and report.analysis is not None:
            console.print(
                Panel(
                    f"[bold]Type:[/bold] {report.analysis.project_type.value}\n"
                    f"[bold]Complexity:[/bold] {report.analysis.complexity.value}\n"
                    f"[bold]Tasks:[/bold] {len(report.analysis.tasks)}",
                    title="[bold green]Valid[/bold green]",
                    border_style="green",
                )
            )
        return report.is_valid

    if not anyio.run(do_validate):
        raise typer.Exit(code=1)


@app.command()
def layers(
    document: Path = typer.Argument(..., help="Project analysis JSON file"),
) -> None:
    """
    Show the execution layers and parallel groups of a project analysis.
    """
    from conductor.decomposition.layers import ExecutionLayerBuilder
    from conductor.decomposition.sequencer import TaskSequencer
    from conductor.decomposition.validator import RequestValidator

    data = _load_json(document)

    async def do_layers() -> bool:
        report = await RequestValidator().validate(data)
        if not report.is_valid or report.analysis is None:
            _print_issues(report.error_messages, report.warnings)
            return False

        sequencing = await TaskSequencer(InMemoryTaskStore()).create_tasks(report.analysis)
        builder = ExecutionLayerBuilder()
        reverse_ids = {v: k for k, v in sequencing.id_map.items()}

        table = Table(title="Execution Layers")
        table.add_column("Layer", style="cyan")
        table.add_column("Group")
        table.add_column("Tasks", style="bold")

        for layer in builder.build(sequencing.tasks):
            for group in builder.partition_parallel_groups(layer):
                table.add_row(
                    str(layer.index),
                    group.group_id,
                    ", ".join(reverse_ids.get(t, t) for t in group.task_ids),
                )

        console.print(table)
        return True

    if not anyio.run(do_layers):
        raise typer.Exit(code=1)


@app.command()
def plan(
    document: Path = typer.Argument(..., help="Project analysis JSON file"),
    workers: Path | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="JSON file with a list of available workers",
    ),
    template: list[str] | None = typer.Option(
        None,
        "--template",
        "-t",
        help="Known worker template id (repeatable)",
    ),
    strategy: str | None = typer.Option(
        None,
        "--strategy",
        "-s",
        help="Scoring strategy: fast, balanced or optimal",
    ),
    max_parallel: int | None = typer.Option(
        None,
        "--max-parallel",
        "-p",
        help="Global ceiling on in-flight tasks",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file for the plan",
    ),
) -> None:
    """
    Decompose a project analysis and assign its tasks to workers.

    Missing worker types listed in requiredAgents are spawned in memory.

    Example:
        conductor plan analysis.json -w workers.json --strategy balanced
    """
    from conductor.core.pipeline import Conductor

    if strategy is not None and strategy not in ("fast", "balanced", "optimal"):
        console.print(f"[bold red]Unknown strategy: {strategy}[/bold red]")
        raise typer.Exit(code=1)

    data = _load_json(document)
    overrides: dict[str, Any] = {}
    if strategy:
        overrides["assignment_strategy"] = strategy
    if max_parallel:
        overrides["max_parallel_tasks"] = max_parallel
    settings: Settings = get_settings().model_copy(update=overrides)

    async def do_plan() -> bool:
        conductor = Conductor(
            InMemoryTaskStore(),
            InMemoryAgentDirectory(_load_workers(workers)),
            template_catalog=StaticTemplateCatalog(template) if template else None,
            settings=settings,
        )
        result = await conductor.plan(data)

        report = result.decomposition.report
        _print_issues(report.error_messages, report.warnings)
        if result.assignment is None:
            return False

        table = Table(title=f"Assignments ({_strategy_label(settings.assignment_strategy)})")
        table.add_column("Layer", style="cyan")
        table.add_column("Task", style="bold")
        table.add_column("Worker")
        table.add_column("Score", justify="right")

        for assignment in result.assignment.assignments:
            table.add_row(
                str(assignment.layer),
                f"{assignment.task.id} {assignment.task.title}",
                assignment.worker.id,
                f"{assignment.score:.3f}",
            )
        console.print(table)

        for error in result.assignment.unassigned:
            console.print(f"[yellow]unassigned:[/yellow] {error.task_id} ({error.reason})")

        metrics = result.assignment.metrics
        console.print(
            f"\n[bold]{metrics.assigned}/{metrics.total_tasks}[/bold] assigned across "
            f"{metrics.layer_count} layers, average score {metrics.average_score:.3f}, "
            f"estimated completion {metrics.estimated_completion:.0f} min"
        )

        if output:
            output.write_text(json.dumps(result.to_dict(), indent=2))
            console.print(f"[green]Saved to {output}[/green]")

        return True

    if not anyio.run(do_plan):
        raise typer.Exit(code=1)


def _strategy_label(name: StrategyName) -> str:
    return f"{name} strategy"


if __name__ == "__main__":
    app()
