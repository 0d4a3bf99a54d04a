"""Pipeline orchestrator — the central coordinator for swcforge runs.

The Orchestrator wires the Release Fetcher, Checksum Verifier, Package
Installer, Loader Patcher and Install Verifier into one sequential run:

    preflight -> fetch -> checksum -> install -> patch -> verify_load

Each stage either returns a value for the next one or raises a typed
``SwcForgeError``. The first error ends the run; it is converted into a
``PipelineResult`` naming the stage and error code, never a mid-run exit.
Every stage is idempotent or restores its own state on failure, so a
failed run can simply be re-invoked.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from swcforge.config import Settings
from swcforge.core.checksum import ChecksumVerifier
from swcforge.core.errors import FileSystemError, SwcForgeError
from swcforge.core.fetcher import GitHubReleaseFetcher, ReleaseSource, resolve_release
from swcforge.core.installer import PackageInstaller
from swcforge.core.patcher import LoaderPatcher
from swcforge.core.project import HostProject, check_host_arch, version_warnings
from swcforge.core.stage_machine import StageMachine
from swcforge.core.verifier import InstallVerifier
from swcforge.models.artifacts import InstalledPackage
from swcforge.models.patching import PatchOutcome, PatchReport, PatchTarget
from swcforge.models.release import (
    NEXT_SWC,
    RISCV64_LINUX_GNU,
    BindingPackage,
    PlatformTriple,
    normalize_version,
)
from swcforge.models.results import Outcome, PipelineResult
from swcforge.models.stages import INSTALL_PLAN, PATCH_PLAN, PipelineStage, StageState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Orchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    settings:
        Runtime settings. Uses environment-derived defaults if not provided.
    source:
        Where artifacts come from. A ``GitHubReleaseFetcher`` is created
        (and closed) per run when omitted.
    verifier:
        Install Verifier; defaults to running ``settings.node_executable``.
    checksum:
        Checksum Verifier; defaults to ``settings.require_checksum``.
    host_arch:
        Override of ``platform.machine()``, mainly for tests.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        source: ReleaseSource | None = None,
        verifier: InstallVerifier | None = None,
        checksum: ChecksumVerifier | None = None,
        triple: PlatformTriple = RISCV64_LINUX_GNU,
        package: BindingPackage = NEXT_SWC,
        host_arch: str | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.triple = triple
        self.package = package
        self._source = source
        self.verifier = verifier or InstallVerifier(
            self.settings.node_executable,
            timeout=self.settings.verify_timeout_seconds,
        )
        self.checksum = checksum or ChecksumVerifier(
            require_digest=self.settings.require_checksum
        )
        self._host_arch = host_arch

        # Per-run state
        self.stage_machine = StageMachine(INSTALL_PLAN)
        self.warnings: list[str] = []

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def install(
        self,
        version: str,
        project_dir: Path,
        *,
        allow_arch_mismatch: bool = False,
    ) -> PipelineResult:
        """Fetch, verify, install and patch; then try loading the binding."""
        version = normalize_version(version)
        project = HostProject(project_dir)
        self._begin(INSTALL_PLAN)
        logger.info("Installing %s %s into %s", self.package.package_name(self.triple), version, project.root)

        fetcher: GitHubReleaseFetcher | None = None
        source = self._source
        if source is None:
            fetcher = source = GitHubReleaseFetcher(self.settings)
        work_dir = Path(tempfile.mkdtemp(prefix="swcforge-"))

        try:
            self._run_stage(
                PipelineStage.PREFLIGHT,
                lambda: self._preflight(project, version, allow_arch_mismatch=allow_arch_mismatch),
            )
            descriptor = resolve_release(version, self.triple, self.package, self.settings)
            artifact = self._run_stage(
                PipelineStage.FETCH, lambda: source.fetch(descriptor, work_dir)
            )
            artifact = self._run_stage(
                PipelineStage.CHECKSUM, lambda: self.checksum.verify(artifact)
            )
            installed = self._run_stage(
                PipelineStage.INSTALL,
                lambda: PackageInstaller(project.root).install(artifact, descriptor, self.triple),
            )
            report = self._run_stage(
                PipelineStage.PATCH, lambda: self._apply(project)
            )
            self._verify_load(installed, project)
        except SwcForgeError as exc:
            return self._failure("install", exc)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
            if fetcher is not None:
                fetcher.close()

        if not installed.changed and report.outcome == PatchOutcome.ALREADY_APPLIED:
            outcome = Outcome.ALREADY_APPLIED
            message = (
                f"{installed.package_name} {version} already installed and "
                "loader already patched"
            )
        else:
            outcome = Outcome.SUCCESS
            message = (
                f"Installed {installed.package_name} {version} and "
                f"{_describe_patch(report)}"
            )
        return self._result("install", outcome, message)

    def apply_patch(self, project_dir: Path) -> PipelineResult:
        """Run only the Loader Patcher against *project_dir*."""
        project = HostProject(project_dir)
        self._begin(PATCH_PLAN)
        try:
            self._run_stage(PipelineStage.PREFLIGHT, lambda: self._preflight(project, None))
            report = self._run_stage(
                PipelineStage.PATCH, lambda: self._apply(project)
            )
        except SwcForgeError as exc:
            return self._failure("patch-apply", exc)

        if report.outcome == PatchOutcome.ALREADY_APPLIED:
            return self._result(
                "patch-apply",
                Outcome.ALREADY_APPLIED,
                f"Loader patch already applied to {report.file_path}",
            )
        return self._result("patch-apply", Outcome.SUCCESS, _sentence(_describe_patch(report)))

    def revert_patch(self, project_dir: Path) -> PipelineResult:
        """Remove the loader entry added by ``apply_patch``."""
        project = HostProject(project_dir)
        self._begin(PATCH_PLAN)
        try:
            self._run_stage(PipelineStage.PREFLIGHT, lambda: self._preflight(project, None))
            report = self._run_stage(
                PipelineStage.PATCH, lambda: self._patcher(project).revert()
            )
        except SwcForgeError as exc:
            return self._failure("patch-revert", exc)
        return self._result("patch-revert", Outcome.SUCCESS, _sentence(_describe_patch(report)))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _preflight(
        self,
        project: HostProject,
        requested_version: str | None,
        *,
        allow_arch_mismatch: bool = False,
    ) -> None:
        if requested_version is not None:
            arch_warning = check_host_arch(
                self.triple,
                host_arch=self._host_arch,
                allow_mismatch=allow_arch_mismatch,
            )
            if arch_warning:
                self._warn(arch_warning)
        project.validate()
        installed = project.installed_version()
        if installed:
            logger.info("Installed Next.js version: %s", installed)
        for message in version_warnings(
            installed, requested_version, self.settings.tested_host_versions
        ):
            self._warn(message)

    def _patcher(self, project: HostProject) -> LoaderPatcher:
        target = PatchTarget(
            file_path=project.loader_path,
            table_name=self.triple.platform,
            new_key=self.triple.node_arch,
            new_value=f"{self.triple.platform}.{self.triple.arch}",
        )
        return LoaderPatcher(target, backup_suffix=self.settings.backup_suffix)

    def _apply(self, project: HostProject) -> PatchReport:
        report = self._patcher(project).apply()
        # The loader table has already logged these.
        self.warnings.extend(report.warnings)
        return report

    def _verify_load(self, installed: InstalledPackage, project: HostProject) -> None:
        stage = PipelineStage.VERIFY_LOAD
        self.stage_machine.transition(stage, StageState.RUNNING)
        logger.debug("Checking that node can load %s", installed.binary_path)
        check = self.verifier.verify(installed.package_name, project.root)
        if check.ok:
            self.stage_machine.transition(stage, StageState.PASSED)
            return
        self._warn(f"{check.code}: {check.detail}")
        self.stage_machine.transition(stage, StageState.WARNED, detail=check.code)

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    def _begin(self, plan: list[PipelineStage]) -> None:
        self.stage_machine = StageMachine(plan)
        self.warnings = []

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _run_stage(self, stage: PipelineStage, action: Callable[[], T]) -> T:
        """RUNNING -> PASSED/WARNED, or FAILED with the error tagged by stage."""
        self.stage_machine.transition(stage, StageState.RUNNING)
        warnings_before = len(self.warnings)
        try:
            result = action()
        except SwcForgeError as exc:
            exc.stage = exc.stage or stage.value
            self.stage_machine.transition(stage, StageState.FAILED, detail=exc.code)
            raise
        except OSError as exc:
            error = FileSystemError(str(exc), stage=stage.value)
            self.stage_machine.transition(stage, StageState.FAILED, detail=error.code)
            raise error from exc
        except Exception as exc:
            self.stage_machine.transition(stage, StageState.FAILED, detail=type(exc).__name__)
            raise
        finished = StageState.WARNED if len(self.warnings) > warnings_before else StageState.PASSED
        self.stage_machine.transition(stage, finished)
        return result

    def _failure(self, command: str, exc: SwcForgeError) -> PipelineResult:
        stage = self.stage_machine.last_started()
        if exc.stage:
            stage = PipelineStage(exc.stage)
        logger.error("Stage '%s' failed: %s", stage.value, exc)
        logger.debug(
            "Stage transitions: %s",
            ", ".join(f"{t.stage.value}->{t.to_state.value}" for t in self.stage_machine.history),
        )
        return PipelineResult(
            command=command,
            stage_reached=stage,
            outcome=Outcome.FAILURE,
            message=exc.message,
            error_code=exc.code,
            warnings=list(self.warnings),
            stages=self.stage_machine.get_all_states(),
        )

    def _result(self, command: str, outcome: Outcome, message: str) -> PipelineResult:
        return PipelineResult(
            command=command,
            stage_reached=self.stage_machine.last_started(),
            outcome=outcome,
            message=message,
            warnings=list(self.warnings),
            stages=self.stage_machine.get_all_states(),
        )


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


def _describe_patch(report: PatchReport) -> str:
    if report.outcome == PatchOutcome.APPLIED:
        return f"patched {report.file_path}"
    if report.outcome == PatchOutcome.ALREADY_APPLIED:
        return f"loader already patched ({report.file_path})"
    if report.outcome == PatchOutcome.REVERTED:
        return f"removed loader patch from {report.file_path}"
    return f"loader patch not present in {report.file_path}"
