"""Shared Rich rendering for pipeline results."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from swcforge.models.results import Outcome, PipelineResult
from swcforge.models.stages import StageState

console = Console()
err_console = Console(stderr=True)

_STATE_ICONS: dict[StageState, str] = {
    StageState.PASSED: "[green]PASSED[/green]",
    StageState.WARNED: "[yellow]WARNED[/yellow]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    StageState.SKIPPED: "[dim]SKIPPED[/dim]",
}


def stage_table(result: PipelineResult) -> Table:
    table = Table(title=f"swcforge {result.command}", show_header=True)
    table.add_column("Stage", style="cyan")
    table.add_column("State")
    for stage, state in result.stages.items():
        table.add_row(stage.value, _STATE_ICONS.get(state, state.value))
    return table


def render_result(result: PipelineResult) -> None:
    """Print *result* and exit with its exit code."""
    console.print(stage_table(result))

    for warning in result.warnings:
        err_console.print(f"[yellow]warning:[/yellow] {escape(warning)}", soft_wrap=True)

    if result.outcome == Outcome.FAILURE:
        err_console.print(
            f"[bold red]stage '{result.stage_reached.value}' failed:[/bold red] "
            f"{result.error_code}: {escape(result.message)}",
            soft_wrap=True,
        )
        raise typer.Exit(code=result.exit_code)

    style = "green" if result.outcome == Outcome.SUCCESS else "yellow"
    heading = "Done" if result.outcome == Outcome.SUCCESS else "Already applied"
    console.print(
        Panel(
            "\n".join([
                f"[bold {style}]{heading}[/bold {style}]",
                "",
                escape(result.message),
            ]),
            title=f"[bold]swcforge {result.command}[/bold]",
            border_style=style,
            padding=(1, 2),
        )
    )
    raise typer.Exit(code=result.exit_code)
