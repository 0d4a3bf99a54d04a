"""External toolchain build of ``@next/swc`` for riscv64.

Compilation itself belongs to cargo; this module prepares the checkout,
drives the long-running build as a subprocess, and packages the result in
the same layout the ``install`` command consumes via ``--from-dir``:

    {output_dir}/next-swc.linux-riscv64gc-gnu.node
    {output_dir}/SHA256SUMS
    {output_dir}/package.json
    {output_dir}/BUILD-INFO.md
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
import tempfile
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from swcforge.config import Settings
from swcforge.core.errors import BuildError
from swcforge.core.fetcher import DIGEST_MANIFEST_NAME
from swcforge.core.hasher import format_digest_line, sha256_file
from swcforge.core.project import check_host_arch
from swcforge.models.artifacts import PackageManifest
from swcforge.models.release import (
    NEXT_SWC,
    RISCV64_LINUX_GNU,
    BindingPackage,
    PlatformTriple,
    normalize_version,
)

logger = logging.getLogger(__name__)

REQUIRED_TOOLS: dict[str, str] = {
    "git": "git",
    "cargo": "cargo",
    "rustc": "rustc",
    "gcc": "build-essential",
}

CARGO_FLAGS = ["--release", "--manifest-path", "crates/napi/Cargo.toml", "--no-default-features"]

# Relative to the next.js checkout, in search order.
BINARY_CANDIDATES = [
    "target/release/libnext_swc_napi.so",
    "packages/next-swc/target/release/libnext_swc_napi.so",
    "packages/next-swc/native/next-swc.linux-riscv64gc-gnu.node",
]


class CommandRunner(Protocol):
    """Runs one external command; raises on non-zero exit."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        log_file: Path | None = None,
    ) -> str:
        """Return captured stdout (empty when streamed to *log_file*)."""


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    log_file: Path | None = None,
) -> str:
    """Default ``CommandRunner`` backed by ``subprocess.run``."""
    logger.debug("Running %s (cwd=%s)", " ".join(args), cwd)
    try:
        if log_file is not None:
            with log_file.open("a", encoding="utf-8") as log:
                subprocess.run(
                    list(args), cwd=cwd, stdout=log, stderr=subprocess.STDOUT, check=True
                )
            return ""
        completed = subprocess.run(
            list(args), cwd=cwd, capture_output=True, text=True, check=True
        )
    except FileNotFoundError as exc:
        raise BuildError(f"Command not found: {args[0]}") from exc
    except subprocess.CalledProcessError as exc:
        raise BuildError(
            f"{' '.join(args)} exited with status {exc.returncode}"
        ) from exc
    return completed.stdout


class BuildReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    output_dir: Path
    binary_path: Path
    sha256: str
    size_bytes: int
    duration_seconds: float = 0.0
    log_file: Path | None = None


class SwcBuilder:
    """Clone, build and package ``@next/swc`` for one platform triple.

    Parameters
    ----------
    settings:
        Supplies the next.js repository URL, Rust toolchain and log policy.
    runner:
        Executes external commands; injectable for tests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        runner: CommandRunner = run_command,
        triple: PlatformTriple = RISCV64_LINUX_GNU,
        package: BindingPackage = NEXT_SWC,
        host_arch: str | None = None,
    ) -> None:
        self._settings = settings
        self._run = runner
        self._triple = triple
        self._package = package
        self._host_arch = host_arch

    # ------------------------------------------------------------------
    # Full build
    # ------------------------------------------------------------------

    def build(
        self,
        version: str,
        output_dir: Path,
        *,
        work_dir: Path | None = None,
        allow_arch_mismatch: bool = False,
    ) -> BuildReport:
        """Build *version* from source and package it into *output_dir*."""
        version = normalize_version(version)
        arch_warning = check_host_arch(
            self._triple, host_arch=self._host_arch, allow_mismatch=allow_arch_mismatch
        )
        if arch_warning:
            logger.warning("%s; cross-compilation support is experimental", arch_warning)

        missing = self.missing_prerequisites()
        if missing:
            raise BuildError(
                "Missing required dependencies: " + " ".join(missing)
            )
        self.ensure_toolchain()

        build_root = Path(work_dir) if work_dir else Path(
            tempfile.mkdtemp(prefix="nextjs-swc-build.")
        )
        log_file = build_root / "build.log"
        try:
            build_root.mkdir(parents=True, exist_ok=True)
            log_file.touch()
        except OSError as exc:
            raise BuildError(f"Cannot prepare build directory {build_root}: {exc}") from exc
        logger.info("Build directory: %s (log: %s)", build_root, log_file)

        # A caller-supplied work dir is reused across builds and never removed.
        keep = self._settings.keep_build_logs or work_dir is not None
        try:
            checkout = self.checkout(version, build_root)
            started = time.monotonic()
            logger.info("Starting cargo build (this can take several hours)")
            self._run(
                ["cargo", f"+{self._settings.rust_toolchain}", "build", *CARGO_FLAGS],
                cwd=checkout / "packages" / "next-swc",
                log_file=log_file,
            )
            duration = time.monotonic() - started
            hours, remainder = divmod(int(duration), 3600)
            logger.info("Build completed in %dh %dm", hours, remainder // 60)

            report = self.package(
                self.locate_binary(checkout), version, Path(output_dir)
            )
        except BuildError:
            keep = True
            logger.error("Build failed; logs kept at %s", log_file)
            raise
        finally:
            if not keep:
                shutil.rmtree(build_root, ignore_errors=True)

        return report.model_copy(
            update={
                "duration_seconds": duration,
                "log_file": log_file if keep else None,
            }
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def missing_prerequisites() -> list[str]:
        """Packages providing required tools that are not on PATH."""
        return [pkg for tool, pkg in REQUIRED_TOOLS.items() if shutil.which(tool) is None]

    def ensure_toolchain(self) -> None:
        toolchain = self._settings.rust_toolchain
        listing = self._run(["rustup", "toolchain", "list"])
        if toolchain in listing:
            return
        logger.warning("Rust toolchain %s not found; installing", toolchain)
        self._run(["rustup", "toolchain", "install", toolchain])

    def checkout(self, version: str, build_root: Path) -> Path:
        """Clone (or update) next.js and check out ``v{version}``."""
        repo = build_root / "next.js"
        if repo.is_dir():
            logger.info("Repository already exists, fetching")
            self._run(["git", "fetch", "--all", "--tags"], cwd=repo)
        else:
            self._run(
                ["git", "clone", "--depth", "100", self._settings.nextjs_repo_url, str(repo)]
            )
        tag = f"v{version}"
        try:
            self._run(["git", "checkout", tag], cwd=repo)
        except BuildError as exc:
            raise BuildError(f"Failed to check out {tag}: {exc.message}") from exc
        return repo

    @staticmethod
    def locate_binary(checkout: Path) -> Path:
        for relative in BINARY_CANDIDATES:
            candidate = checkout / relative
            if candidate.is_file():
                logger.info("Found binary: %s", candidate)
                return candidate
        found = sorted(
            str(p.relative_to(checkout))
            for pattern in ("**/*.so", "**/*.node")
            for p in checkout.glob(pattern)
        )[:20]
        raise BuildError(
            "Could not find built binary; candidates on disk: "
            + (", ".join(found) or "none")
        )

    def package(self, binary_path: Path, version: str, output_dir: Path) -> BuildReport:
        """Copy *binary_path* into *output_dir* with its metadata files."""
        version = normalize_version(version)
        file_name = self._package.binary_file_name(self._triple)
        target = output_dir / file_name
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(binary_path, target)

            digest = sha256_file(target)
            (output_dir / DIGEST_MANIFEST_NAME).write_text(
                format_digest_line(digest, file_name), encoding="utf-8"
            )
            (output_dir / "package.json").write_text(
                self._manifest(version, file_name).render(), encoding="utf-8"
            )
            (output_dir / "BUILD-INFO.md").write_text(
                self._build_info(version, file_name, digest), encoding="utf-8"
            )
            size = target.stat().st_size
        except OSError as exc:
            raise BuildError(f"Could not package {binary_path} into {output_dir}: {exc}") from exc
        logger.info("Packaged %s (%d bytes, sha256=%s)", target, size, digest)
        return BuildReport(
            version=version,
            output_dir=output_dir,
            binary_path=target,
            sha256=digest,
            size_bytes=size,
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _manifest(self, version: str, file_name: str) -> PackageManifest:
        return PackageManifest(
            name=self._package.package_name(self._triple),
            version=version,
            main=file_name,
            os=[self._triple.platform],
            cpu=[self._triple.node_arch],
            extra={
                "description": (
                    f"Next.js SWC native binary for {self._triple.platform.capitalize()} "
                    f"{self._triple.node_arch}"
                ),
                "files": [file_name],
                "engines": {"node": ">= 10"},
                "repository": {
                    "type": "git",
                    "url": f"https://github.com/{self._settings.github_repo}",
                },
                "license": "MIT",
            },
        )

    def _build_info(self, version: str, file_name: str, digest: str) -> str:
        try:
            rustc = self._run(["rustc", "--version"]).strip()
        except BuildError:
            rustc = "unknown"
        built_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return "\n".join([
            "## Build Information",
            "",
            f"- **Package**: @{self._package.scope}/{self._package.base_name}",
            f"- **Version**: v{version}",
            f"- **Platform**: {self._triple.suffix}",
            f"- **Build Date**: {built_at}",
            f"- **Hardware**: {platform.machine()} ({os.cpu_count() or '?'} cores)",
            f"- **OS**: {platform.platform()}",
            f"- **Rust Version**: {rustc}",
            f"- **Build Flags**: {' '.join(CARGO_FLAGS[:1] + CARGO_FLAGS[3:])}",
            f"- **SHA256**: {digest}",
            "",
            "## Installation",
            "",
            "```bash",
            f"swcforge install {version} /path/to/project --from-dir .",
            "```",
            "",
            "## Notes",
            "",
            "Built without default features to avoid the ring v0.16.20 dependency",
            "issue on riscv64. TLS features are disabled but not required for local",
            "compilation.",
            "",
        ])
