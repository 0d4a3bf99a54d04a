"""Host project preflight — is this a Next.js project we can install into?"""

from __future__ import annotations

import json
import logging
import platform
from pathlib import Path

from swcforge.core.errors import ArchMismatch, ProjectNotFound, TargetNotFound
from swcforge.models.patching import LOADER_RELATIVE_PATH
from swcforge.models.release import PlatformTriple

logger = logging.getLogger(__name__)

HOST_PACKAGE = "next"


class HostProject:
    """A project directory with Next.js installed under ``node_modules``."""

    def __init__(self, project_dir: Path) -> None:
        self.root = Path(project_dir)

    @property
    def package_json(self) -> Path:
        return self.root / "package.json"

    @property
    def framework_dir(self) -> Path:
        return self.root / "node_modules" / HOST_PACKAGE

    @property
    def loader_path(self) -> Path:
        return self.root / LOADER_RELATIVE_PATH

    def validate(self) -> None:
        """Raise ``ProjectNotFound``/``TargetNotFound`` if preconditions fail."""
        if not self.root.is_dir():
            raise ProjectNotFound(f"Project directory not found: {self.root}")
        if not self.package_json.is_file():
            raise ProjectNotFound(
                f"package.json not found in {self.root}; run from a Next.js project"
            )
        if not self.framework_dir.is_dir():
            raise TargetNotFound(
                f"Next.js not found in {self.root / 'node_modules'}; run 'npm install' first"
            )
        if not self.loader_path.is_file():
            raise TargetNotFound(f"Next.js loader file not found: {self.loader_path}")

    def installed_version(self) -> str | None:
        manifest = self.framework_dir / "package.json"
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug("Could not read %s: %s", manifest, exc)
            return None
        version = data.get("version") if isinstance(data, dict) else None
        return version if isinstance(version, str) else None


def version_warnings(
    installed: str | None,
    requested: str | None,
    tested_versions: list[str],
) -> list[str]:
    """Diagnostics about the installed Next.js version. Never fatal."""
    warnings: list[str] = []
    if installed is None:
        warnings.append("Could not determine the installed Next.js version")
        return warnings
    if requested is not None and installed != requested:
        warnings.append(
            f"Version mismatch: installing {requested} binaries for Next.js "
            f"{installed}; this may cause compatibility issues"
        )
    if installed not in tested_versions:
        warnings.append(
            f"Next.js {installed} has not been tested with the loader patch "
            f"(tested: {', '.join(tested_versions) or 'none'})"
        )
    return warnings


def check_host_arch(
    triple: PlatformTriple,
    *,
    host_arch: str | None = None,
    allow_mismatch: bool = False,
) -> str | None:
    """Compare the host machine with the target architecture.

    Returns a warning string when they differ and *allow_mismatch* is set;
    raises ``ArchMismatch`` when they differ otherwise.
    """
    machine = host_arch or platform.machine()
    if machine == triple.node_arch:
        return None
    message = f"Host architecture is {machine}, target is {triple.node_arch}"
    if not allow_mismatch:
        raise ArchMismatch(f"{message}; pass --allow-arch-mismatch to continue")
    return message
