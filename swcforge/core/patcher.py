"""Loader Patcher — teach the Next.js loader a new architecture key.

Per invocation::

    NOT_STARTED -> CHECK_IDEMPOTENT -> ALREADY_APPLIED | NOT_APPLIED
                                    -> NEEDS_PATCH -> BACKUP_TAKEN -> MUTATED
                                         -> VERIFY_OK
                                         -> VERIFY_FAILED -> ROLLED_BACK

Exactly one file is mutated. Before the first write its bytes are
snapshotted in memory and to a sibling ``.backup`` file; any failure after
that point restores the snapshot byte-for-byte. The backup is discarded
once the new content verifies. There is no retry loop here. I/O and
decoding failures surface as ``PatchApplyFailure``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from pathlib import Path

from swcforge.core import loader_table
from swcforge.core.errors import (
    PatchApplyFailure,
    PatchVerifyFailure,
    SwcForgeError,
    TargetNotFound,
)
from swcforge.core.loader_table import LoaderTableError
from swcforge.models.patching import (
    PATCH_TRANSITIONS,
    Backup,
    PatchOutcome,
    PatchReport,
    PatchState,
    PatchTarget,
)

logger = logging.getLogger(__name__)


class InvalidPatchTransitionError(RuntimeError):
    """Raised when the patcher attempts an undefined state transition."""


class LoaderPatcher:
    """Apply or revert one ``PatchTarget`` with backup/verify/rollback.

    Parameters
    ----------
    target:
        The file and table entry to edit.
    backup_suffix:
        Suffix of the sibling backup file kept during an attempt.
    """

    def __init__(self, target: PatchTarget, *, backup_suffix: str = ".backup") -> None:
        self.target = target
        self._backup_suffix = backup_suffix
        self._states: list[PatchState] = [PatchState.NOT_STARTED]
        self._warnings: list[str] = []

    @property
    def state(self) -> PatchState:
        return self._states[-1]

    @property
    def states(self) -> list[PatchState]:
        return list(self._states)

    @property
    def _tmp_path(self) -> Path:
        path = self.target.file_path
        return path.with_name(f".{path.name}.swcforge-tmp")

    @property
    def backup_path(self) -> Path:
        path = self.target.file_path
        return path.with_name(path.name + self._backup_suffix)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def is_applied(self, text: str) -> bool:
        """Marker text present, or the parsed table already maps the key."""
        if self.target.idempotency_marker in text:
            return True
        try:
            table = loader_table.find_table(text, self.target.table_name)
        except LoaderTableError:
            return False
        return loader_table.has_entry(table, self.target.new_key, self.target.new_value)

    def has_table_entry(self, text: str) -> bool:
        """The parsed table maps the new key to the new value."""
        try:
            table = loader_table.find_table(text, self.target.table_name)
        except LoaderTableError:
            return False
        return loader_table.has_entry(table, self.target.new_key, self.target.new_value)

    def _verify_applied(self, text: str) -> bool:
        """Stricter post-write check: marker text *and* parsed entry."""
        if self.target.idempotency_marker not in text:
            return False
        return self.has_table_entry(text)

    def _verify_reverted(self, text: str) -> bool:
        try:
            table = loader_table.find_table(text, self.target.table_name)
        except LoaderTableError:
            return False
        return table.get(self.target.new_key) is None

    def apply(self) -> PatchReport:
        """Insert the new table entry, or report it is already there."""
        self._reset()
        text = self._read_target()

        if self.is_applied(text):
            self._advance(PatchState.ALREADY_APPLIED)
            logger.info("Loader patch already applied to %s", self.target.file_path)
            return self._report(PatchOutcome.ALREADY_APPLIED)

        self._advance(PatchState.NEEDS_PATCH)
        self._transact(
            text,
            transform=self._insert,
            verify=self._verify_applied,
            failure=f"{self.target.idempotency_marker!r} not present after patching",
        )
        logger.info(
            "Patched %s: added %r",
            self.target.file_path,
            self.target.insertion_text,
        )
        return self._report(PatchOutcome.APPLIED, inserted=self.target.insertion_text)

    def revert(self) -> PatchReport:
        """Remove the entry this patcher inserts, if the table holds it.

        Marker text outside the table (a comment, another object) does
        not count as applied here.
        """
        self._reset()
        text = self._read_target()

        if not self.has_table_entry(text):
            self._advance(PatchState.NOT_APPLIED)
            logger.info("Loader patch not present in %s", self.target.file_path)
            return self._report(PatchOutcome.NOT_APPLIED)

        self._advance(PatchState.NEEDS_PATCH)
        self._transact(
            text,
            transform=self._remove,
            verify=self._verify_reverted,
            failure=f"{self.target.new_key!r} still mapped after revert",
        )
        logger.info("Reverted loader patch in %s", self.target.file_path)
        return self._report(PatchOutcome.REVERTED)

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def _insert(self, text: str) -> str:
        table = loader_table.find_table(text, self.target.table_name)
        if table.entries and table.get(self.target.anchor_key) is None:
            self._warnings.append(
                f"Anchor entry '{self.target.anchor_key}' not found in "
                f"'{table.name}' table; added {self.target.new_key} as its last entry"
            )
        return loader_table.insert_entry(
            text,
            table,
            self.target.new_key,
            self.target.new_value,
            after=self.target.anchor_key,
        )

    def _remove(self, text: str) -> str:
        table = loader_table.find_table(text, self.target.table_name)
        return loader_table.remove_entry(text, table, self.target.new_key)

    # ------------------------------------------------------------------
    # Backup / mutate / verify / rollback
    # ------------------------------------------------------------------

    def _transact(
        self,
        text: str,
        *,
        transform: Callable[[str], str],
        verify: Callable[[str], bool],
        failure: str,
    ) -> None:
        try:
            backup = self._take_backup()
        except OSError as exc:
            # Nothing written to the target yet.
            raise PatchApplyFailure(
                f"Could not back up {self.target.file_path} to {self.backup_path}: {exc}"
            ) from exc
        try:
            error = self._mutate_and_verify(text, transform, verify, failure)
        except OSError as exc:
            self._rollback(backup)
            raise PatchApplyFailure(f"{self.target.file_path}: {exc}") from exc
        except BaseException:
            self._rollback(backup)
            raise
        if error is not None:
            self._advance(PatchState.VERIFY_FAILED)
            self._rollback(backup)
            raise error
        self._advance(PatchState.VERIFY_OK)
        self._discard(backup)

    def _mutate_and_verify(
        self,
        text: str,
        transform: Callable[[str], str],
        verify: Callable[[str], bool],
        failure: str,
    ) -> SwcForgeError | None:
        path = self.target.file_path
        try:
            patched = transform(text)
        except LoaderTableError as exc:
            return PatchApplyFailure(f"{path}: {exc}")
        if patched == text:
            return PatchApplyFailure(f"{path}: transformation produced no change")

        self._write_atomic(patched.encode("utf-8"))
        self._advance(PatchState.MUTATED)

        written = path.read_bytes().decode("utf-8")
        if not verify(written):
            return PatchVerifyFailure(f"{path}: {failure}")
        return None

    def _take_backup(self) -> Backup:
        path = self.target.file_path
        snapshot = path.read_bytes()
        self.backup_path.write_bytes(snapshot)
        shutil.copymode(path, self.backup_path)
        self._advance(PatchState.BACKUP_TAKEN)
        logger.debug("Backed up %s to %s", path, self.backup_path)
        return Backup(
            original_file_path=path,
            backup_path=self.backup_path,
            snapshot_bytes=snapshot,
        )

    def _rollback(self, backup: Backup) -> None:
        current = backup.original_file_path.read_bytes() if backup.original_file_path.exists() else None
        if current != backup.snapshot_bytes:
            self._write_atomic(backup.snapshot_bytes)
        self._tmp_path.unlink(missing_ok=True)
        self._discard(backup)
        if self.state == PatchState.VERIFY_FAILED:
            self._advance(PatchState.ROLLED_BACK)
        logger.warning("Restored %s from backup", backup.original_file_path)

    @staticmethod
    def _discard(backup: Backup) -> None:
        backup.backup_path.unlink(missing_ok=True)

    def _write_atomic(self, data: bytes) -> None:
        path = self.target.file_path
        tmp = self._tmp_path
        tmp.write_bytes(data)
        if path.exists():
            shutil.copymode(path, tmp)
        os.replace(tmp, path)

    # ------------------------------------------------------------------
    # State tracking
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._states = [PatchState.NOT_STARTED]
        self._warnings = []

    def _advance(self, target_state: PatchState) -> None:
        allowed = PATCH_TRANSITIONS.get(self.state, set())
        if target_state not in allowed:
            raise InvalidPatchTransitionError(
                f"Cannot transition patch from {self.state.value} to {target_state.value}"
            )
        self._states.append(target_state)

    def _read_target(self) -> str:
        path = self.target.file_path
        self._advance(PatchState.CHECK_IDEMPOTENT)
        if not path.is_file():
            raise TargetNotFound(
                f"Loader file not found: {path} (is Next.js installed?)"
            )
        try:
            return path.read_bytes().decode("utf-8")
        except OSError as exc:
            raise PatchApplyFailure(f"Could not read {path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise PatchApplyFailure(
                f"{path} is not valid UTF-8 (byte {exc.start}); refusing to edit it"
            ) from exc

    def _report(self, outcome: PatchOutcome, inserted: str = "") -> PatchReport:
        return PatchReport(
            file_path=self.target.file_path,
            outcome=outcome,
            states=self.states,
            inserted_text=inserted,
            warnings=list(self._warnings),
        )
