"""``swcforge install`` — fetch, verify, install and patch.

Runs the full pipeline against a Next.js project: download the riscv64
binding (or take it from a local build directory), check its SHA-256,
install it under ``node_modules/@next/``, patch the loader, and finally
try loading it with node.
"""

from __future__ import annotations

from pathlib import Path

import typer

from swcforge.cli._render import render_result
from swcforge.config import Settings
from swcforge.core.checksum import ChecksumVerifier
from swcforge.core.fetcher import LocalReleaseSource
from swcforge.core.orchestrator import Orchestrator
from swcforge.models.release import normalize_version


def parse_version(value: str) -> str:
    """Typer callback: accept ``13.5.6`` or ``v13.5.6``."""
    try:
        return normalize_version(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def install_cmd(
    version: str = typer.Argument(
        ...,
        help="Next.js version, e.g. 13.5.6 or v13.5.6.",
        callback=parse_version,
    ),
    project_dir: Path = typer.Argument(
        Path("."),
        help="Root of the Next.js project.",
    ),
    from_dir: Path = typer.Option(
        None,
        "--from-dir",
        help="Install from a local build output instead of GitHub Releases.",
    ),
    allow_arch_mismatch: bool = typer.Option(
        False,
        "--allow-arch-mismatch",
        help=(
            "Continue with a warning when the host is not riscv64. "
            "Without it a non-riscv64 host fails preflight with ARCH_MISMATCH."
        ),
    ),
    require_checksum: bool = typer.Option(
        False,
        "--require-checksum",
        help="Fail when the release publishes no SHA256SUMS.",
    ),
) -> None:
    """Install the riscv64 @next/swc binding into PROJECT_DIR."""
    settings = Settings()
    source = LocalReleaseSource(from_dir) if from_dir is not None else None
    checksum = ChecksumVerifier(
        require_digest=require_checksum or settings.require_checksum
    )
    orchestrator = Orchestrator(settings, source=source, checksum=checksum)
    result = orchestrator.install(
        version, project_dir, allow_arch_mismatch=allow_arch_mismatch
    )
    render_result(result)
