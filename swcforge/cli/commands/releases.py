"""``swcforge releases`` — list published release tags."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from swcforge.config import Settings
from swcforge.core.fetcher import GitHubReleaseFetcher

console = Console()


def releases_cmd(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum tags to show."),
) -> None:
    """List the newest release tags of the configured repository."""
    settings = Settings()
    with GitHubReleaseFetcher(settings) as fetcher:
        tags = fetcher.list_tags(limit=limit)

    if not tags:
        console.print(
            f"[yellow]No releases found for {settings.github_repo}[/yellow]"
        )
        raise typer.Exit(code=1)

    table = Table(title=f"Releases of {settings.github_repo}")
    table.add_column("Tag", style="cyan")
    for tag in tags:
        table.add_row(tag)
    console.print(table)
