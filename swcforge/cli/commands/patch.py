"""``swcforge patch-apply`` / ``patch-revert`` — loader patch only.

Useful after ``npm install`` replaced ``node_modules/next`` and dropped the
riscv64 entry, or to undo the change without touching the binding.
"""

from __future__ import annotations

from pathlib import Path

import typer

from swcforge.cli._render import render_result
from swcforge.config import Settings
from swcforge.core.orchestrator import Orchestrator


def patch_apply_cmd(
    project_dir: Path = typer.Argument(Path("."), help="Root of the Next.js project."),
) -> None:
    """Add the riscv64 entry to the Next.js SWC loader."""
    render_result(Orchestrator(Settings()).apply_patch(project_dir))


def patch_revert_cmd(
    project_dir: Path = typer.Argument(Path("."), help="Root of the Next.js project."),
) -> None:
    """Remove the riscv64 entry from the Next.js SWC loader."""
    render_result(Orchestrator(Settings()).revert_patch(project_dir))
