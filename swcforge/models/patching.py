"""Loader patch models — target description, backup, per-run state machine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

LOADER_RELATIVE_PATH = Path("node_modules/next/dist/build/swc/index.js")


class PatchState(str, Enum):
    """States of one patch invocation."""

    NOT_STARTED = "not_started"
    CHECK_IDEMPOTENT = "check_idempotent"
    ALREADY_APPLIED = "already_applied"
    NOT_APPLIED = "not_applied"
    NEEDS_PATCH = "needs_patch"
    BACKUP_TAKEN = "backup_taken"
    MUTATED = "mutated"
    VERIFY_OK = "verify_ok"
    VERIFY_FAILED = "verify_failed"
    ROLLED_BACK = "rolled_back"


# BACKUP_TAKEN -> VERIFY_FAILED covers a transformation that could not be
# computed, so nothing was written.
PATCH_TRANSITIONS: dict[PatchState, set[PatchState]] = {
    PatchState.NOT_STARTED: {PatchState.CHECK_IDEMPOTENT},
    PatchState.CHECK_IDEMPOTENT: {
        PatchState.ALREADY_APPLIED,
        PatchState.NOT_APPLIED,
        PatchState.NEEDS_PATCH,
    },
    PatchState.NEEDS_PATCH: {PatchState.BACKUP_TAKEN},
    PatchState.BACKUP_TAKEN: {PatchState.MUTATED, PatchState.VERIFY_FAILED},
    PatchState.MUTATED: {PatchState.VERIFY_OK, PatchState.VERIFY_FAILED},
    PatchState.VERIFY_FAILED: {PatchState.ROLLED_BACK},
    PatchState.ALREADY_APPLIED: set(),  # terminal
    PatchState.NOT_APPLIED: set(),  # terminal
    PatchState.VERIFY_OK: set(),  # terminal
    PatchState.ROLLED_BACK: set(),  # terminal
}


class PatchOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REVERTED = "reverted"
    NOT_APPLIED = "not_applied"


class PatchTarget(BaseModel):
    """One textual transformation of a third-party file.

    The table is located by its own field name (``table_name``);
    ``anchor_key`` only positions the new entry inside it.
    """

    model_config = ConfigDict(frozen=True)

    file_path: Path
    table_name: str = "linux"
    anchor_key: str = "arm64"
    new_key: str = "riscv64"
    new_value: str = "linux.riscv64gc"

    @classmethod
    def for_project(cls, project_dir: Path, **overrides: str) -> PatchTarget:
        return cls(file_path=Path(project_dir) / LOADER_RELATIVE_PATH, **overrides)

    @property
    def insertion_text(self) -> str:
        return f"{self.new_key}: {self.new_value},"

    @property
    def idempotency_marker(self) -> str:
        return f"{self.new_key}: {self.new_value}"


class Backup(BaseModel):
    """Snapshot of the target file taken before mutation."""

    model_config = ConfigDict(frozen=True)

    original_file_path: Path
    backup_path: Path
    snapshot_bytes: bytes
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class PatchReport(BaseModel):
    """What one patch invocation did."""

    model_config = ConfigDict(frozen=True)

    file_path: Path
    outcome: PatchOutcome
    states: list[PatchState]
    inserted_text: str = ""
    warnings: list[str] = Field(default_factory=list)
