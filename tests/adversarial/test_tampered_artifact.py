"""Adversarial tests — tampered or mislabeled artifacts never reach node_modules.

For every artifact whose SHA-256 differs from the declared digest, the
target package directory must be left exactly as it was: absent on a fresh
project, byte-identical when an earlier version is installed.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from swcforge.config import Settings
from swcforge.core.fetcher import DIGEST_MANIFEST_NAME, LocalReleaseSource
from swcforge.core.hasher import format_digest_line, sha256_hex
from swcforge.core.orchestrator import Orchestrator
from swcforge.models.results import Outcome
from swcforge.models.stages import PipelineStage

ASSET = "next-swc.linux-riscv64gc-gnu.node"
PACKAGE_DIR = Path("node_modules/@next/swc-linux-riscv64gc-gnu")


def _tree(path: Path) -> dict[str, bytes]:
    if not path.exists():
        return {}
    return {p.name: p.read_bytes() for p in sorted(path.iterdir())}


TAMPERS = {
    "flipped_first_byte": lambda data: bytes([data[0] ^ 0xFF]) + data[1:],
    "flipped_last_byte": lambda data: data[:-1] + bytes([data[-1] ^ 0x01]),
    "truncated": lambda data: data[: len(data) // 2],
    "appended": lambda data: data + b"\x00",
    "emptied": lambda data: b"",
}


@pytest.fixture
def orchestrator(settings: Settings, release_dir: Path, loading_verifier) -> Orchestrator:
    return Orchestrator(
        settings,
        source=LocalReleaseSource(release_dir),
        verifier=loading_verifier,
        host_arch="riscv64",
    )


class TestTamperedArtifact:
    @pytest.mark.parametrize("tamper", sorted(TAMPERS))
    def test_fresh_project_gets_no_package(
        self,
        tamper: str,
        orchestrator: Orchestrator,
        next_project: Path,
        release_dir: Path,
        binary_bytes: bytes,
    ):
        (release_dir / ASSET).write_bytes(TAMPERS[tamper](binary_bytes))
        result = orchestrator.install("13.5.6", next_project)

        assert result.outcome == Outcome.FAILURE
        assert result.error_code == "CHECKSUM_MISMATCH"
        assert result.stage_reached == PipelineStage.CHECKSUM
        assert not (next_project / "node_modules" / "@next").exists()

    @pytest.mark.parametrize("tamper", sorted(TAMPERS))
    def test_existing_install_left_untouched(
        self,
        tamper: str,
        orchestrator: Orchestrator,
        next_project: Path,
        release_dir: Path,
        binary_bytes: bytes,
    ):
        assert orchestrator.install("13.5.6", next_project).ok
        before = _tree(next_project / PACKAGE_DIR)

        (release_dir / ASSET).write_bytes(TAMPERS[tamper](binary_bytes))
        result = orchestrator.install("13.5.6", next_project)

        assert result.error_code == "CHECKSUM_MISMATCH"
        assert _tree(next_project / PACKAGE_DIR) == before

    def test_manifest_listing_other_files_only(
        self, orchestrator: Orchestrator, next_project: Path, release_dir: Path, binary_bytes
    ):
        (release_dir / DIGEST_MANIFEST_NAME).write_text(
            format_digest_line(sha256_hex(binary_bytes), "next-swc.linux-x64-gnu.node"),
            encoding="utf-8",
        )
        result = orchestrator.install("13.5.6", next_project)
        assert result.error_code == "CHECKSUM_MISMATCH"
        assert "does not list" in result.message
        assert not (next_project / "node_modules" / "@next").exists()

    def test_digest_of_another_release_rejected(
        self, orchestrator: Orchestrator, next_project: Path, release_dir: Path
    ):
        (release_dir / DIGEST_MANIFEST_NAME).write_text(
            format_digest_line(sha256_hex(b"some other release"), ASSET), encoding="utf-8"
        )
        result = orchestrator.install("13.5.6", next_project)
        assert result.error_code == "CHECKSUM_MISMATCH"
        assert not (next_project / "node_modules" / "@next").exists()

    def test_loader_untouched_on_checksum_failure(
        self, orchestrator: Orchestrator, next_project: Path, release_dir: Path, binary_bytes
    ):
        loader = next_project / "node_modules/next/dist/build/swc/index.js"
        before = loader.read_bytes()
        (release_dir / ASSET).write_bytes(TAMPERS["flipped_first_byte"](binary_bytes))
        orchestrator.install("13.5.6", next_project)
        assert loader.read_bytes() == before
