"""Main Typer application — imports and registers all CLI commands.

Entry point: ``swcforge`` (configured via pyproject.toml console_scripts).

Commands: install, build, patch-apply, patch-revert, releases.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from swcforge.cli.commands.build import build_cmd
from swcforge.cli.commands.install import install_cmd
from swcforge.cli.commands.patch import patch_apply_cmd, patch_revert_cmd
from swcforge.cli.commands.releases import releases_cmd
from swcforge.config import settings

app = typer.Typer(
    name="swcforge",
    help="swcforge: install and enable the riscv64 @next/swc native binding.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(
    name="install",
    help=(
        "Install a prebuilt binding and patch the loader. Refuses to run on a "
        "non-riscv64 host unless --allow-arch-mismatch is given."
    ),
)(install_cmd)
app.command(name="build", help="Build the binding from source with cargo.")(build_cmd)
app.command(name="patch-apply", help="Only add riscv64 to the Next.js loader.")(patch_apply_cmd)
app.command(name="patch-revert", help="Remove the riscv64 loader entry again.")(patch_revert_cmd)
app.command(name="releases", help="List published riscv64 releases.")(releases_cmd)


def configure_logging(level: str) -> None:
    """Route the ``swcforge`` logger through Rich on stderr."""
    logger = logging.getLogger("swcforge")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output to stderr.",
    ),
) -> None:
    """swcforge: riscv64 support for Next.js SWC."""
    configure_logging("DEBUG" if verbose or settings.debug else settings.log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
