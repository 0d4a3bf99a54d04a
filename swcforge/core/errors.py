"""Typed failure modes for the install-and-patch pipeline.

Every stage failure is a ``SwcForgeError`` subclass carrying a stable
``code``. The orchestrator maps these onto ``PipelineResult`` values and
the CLI maps those onto exit codes; nothing is retried automatically.
"""

from __future__ import annotations

from typing import ClassVar


class SwcForgeError(RuntimeError):
    """Base class for all pipeline errors.

    Parameters
    ----------
    message:
        Human-readable diagnostic.
    stage:
        Pipeline stage that raised the error, filled in by the
        orchestrator when the raising component does not know it.
    """

    code: ClassVar[str] = "SWCFORGE_ERROR"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ArchMismatch(SwcForgeError):
    """Host architecture does not match the requested target."""

    code = "ARCH_MISMATCH"


class ProjectNotFound(SwcForgeError):
    """The project directory or its package.json is missing."""

    code = "PROJECT_NOT_FOUND"


class ReleaseNotFound(SwcForgeError):
    """The release tag or asset does not exist on the release host."""

    code = "RELEASE_NOT_FOUND"

    def __init__(
        self,
        message: str,
        *,
        available_tags: list[str] | None = None,
        stage: str | None = None,
    ) -> None:
        self.available_tags = list(available_tags or [])
        if self.available_tags:
            message = f"{message}; available releases: {', '.join(self.available_tags)}"
        super().__init__(message, stage=stage)


class NetworkError(SwcForgeError):
    """Transport-level failure while talking to the release host."""

    code = "NETWORK_ERROR"


class ChecksumMismatch(SwcForgeError):
    """The artifact digest does not match the published digest."""

    code = "CHECKSUM_MISMATCH"


class InstallError(SwcForgeError):
    """The package directory could not be written."""

    code = "INSTALL_FAILED"


class TargetNotFound(SwcForgeError):
    """The host framework (or its loader file) is not installed."""

    code = "TARGET_NOT_FOUND"


class PatchApplyFailure(SwcForgeError):
    """The loader transformation could not be computed; file restored."""

    code = "PATCH_APPLY_FAILURE"


class PatchVerifyFailure(SwcForgeError):
    """The patched file did not verify after writing; file restored."""

    code = "PATCH_VERIFY_FAILURE"


class LoadVerificationFailed(SwcForgeError):
    """The installed binding could not be loaded. Reported as a warning."""

    code = "LOAD_VERIFICATION_FAILED"


class BuildError(SwcForgeError):
    """The external toolchain build or its packaging failed."""

    code = "BUILD_FAILED"


class FileSystemError(SwcForgeError):
    """A stage hit an I/O error its component does not classify further."""

    code = "IO_ERROR"
