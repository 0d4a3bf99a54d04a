"""swcforge data models — all Pydantic v2, all frozen (immutable)."""

from swcforge.models.artifacts import (
    Artifact,
    DigestStatus,
    InstalledPackage,
    PackageManifest,
)
from swcforge.models.patching import (
    PATCH_TRANSITIONS,
    Backup,
    PatchOutcome,
    PatchReport,
    PatchState,
    PatchTarget,
)
from swcforge.models.release import (
    NEXT_SWC,
    RISCV64_LINUX_GNU,
    BindingPackage,
    PlatformTriple,
    ReleaseDescriptor,
    normalize_version,
)
from swcforge.models.results import Outcome, PipelineResult
from swcforge.models.stages import (
    INSTALL_PLAN,
    PATCH_PLAN,
    VALID_TRANSITIONS,
    PipelineStage,
    StageState,
    StageTransition,
)

__all__ = [
    # release
    "PlatformTriple",
    "BindingPackage",
    "ReleaseDescriptor",
    "RISCV64_LINUX_GNU",
    "NEXT_SWC",
    "normalize_version",
    # artifacts
    "Artifact",
    "DigestStatus",
    "InstalledPackage",
    "PackageManifest",
    # patching
    "PatchTarget",
    "PatchState",
    "PatchOutcome",
    "PatchReport",
    "Backup",
    "PATCH_TRANSITIONS",
    # stages
    "PipelineStage",
    "StageState",
    "StageTransition",
    "VALID_TRANSITIONS",
    "INSTALL_PLAN",
    "PATCH_PLAN",
    # results
    "Outcome",
    "PipelineResult",
]
