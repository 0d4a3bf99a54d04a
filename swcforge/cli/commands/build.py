"""``swcforge build`` — compile the binding from source.

Wraps the long-running cargo build and leaves the output directory ready
for ``swcforge install <version> <project> --from-dir <output-dir>``.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from swcforge.cli.commands.install import parse_version
from swcforge.config import Settings
from swcforge.core.builder import SwcBuilder
from swcforge.core.errors import ArchMismatch, BuildError

console = Console()
err_console = Console(stderr=True)


def build_cmd(
    version: str = typer.Argument(
        ...,
        help="Next.js version to build, e.g. 13.5.6.",
        callback=parse_version,
    ),
    output_dir: Path = typer.Option(
        Path("./dist"),
        "--output-dir",
        "-o",
        help="Where the binary, SHA256SUMS and package.json are written.",
    ),
    work_dir: Path = typer.Option(
        None,
        "--work-dir",
        "-w",
        help="Build directory (default: a fresh temporary directory).",
    ),
    allow_arch_mismatch: bool = typer.Option(
        False,
        "--allow-arch-mismatch",
        help="Attempt the build on a non-riscv64 host.",
    ),
) -> None:
    """Build @next/swc for riscv64 from the Next.js sources."""
    builder = SwcBuilder(Settings())
    try:
        report = builder.build(
            version,
            output_dir,
            work_dir=work_dir,
            allow_arch_mismatch=allow_arch_mismatch,
        )
    except (ArchMismatch, BuildError) as exc:
        err_console.print(
            f"[bold red]stage 'build' failed:[/bold red] {exc.code}: {escape(exc.message)}",
            soft_wrap=True,
        )
        raise typer.Exit(code=1)

    lines = [
        "[bold green]Build complete![/bold green]",
        "",
        f"[bold]Binary:[/bold]  {escape(str(report.binary_path))}",
        f"[bold]Size:[/bold]    {report.size_bytes} bytes",
        f"[bold]SHA256:[/bold]  {report.sha256}",
    ]
    if report.log_file is not None:
        lines.append(f"[bold]Log:[/bold]     {escape(str(report.log_file))}")
    lines += [
        "",
        f"[dim]swcforge install {version} <project> --from-dir {escape(str(output_dir))}[/dim]",
    ]
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]swcforge build[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
