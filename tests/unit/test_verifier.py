"""Tests for the Install Verifier — node load check, failures as warnings."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from swcforge.core.verifier import InstallVerifier

PACKAGE = "@next/swc-linux-riscv64gc-gnu"


def _fake_node(tmp_path: Path, body: str) -> Path:
    """A shell script standing in for node; receives ``-e <script> <package>``."""
    script = tmp_path / "fake-node"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    os.chmod(script, 0o755)
    return script


class TestInstallVerifier:
    def test_successful_load(self, tmp_path: Path):
        node = _fake_node(tmp_path, 'echo "loaded $3 from $(pwd -P)"')
        result = InstallVerifier(str(node)).verify(PACKAGE, tmp_path)
        assert result.ok is True
        assert result.code is None
        assert result.detail == f"loaded {PACKAGE} from {tmp_path.resolve()}"

    def test_failed_load_is_reported(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        node = _fake_node(tmp_path, 'echo "Failed to load binary: invalid ELF header" >&2; exit 1')
        with caplog.at_level(logging.WARNING, logger="swcforge"):
            result = InstallVerifier(str(node)).verify(PACKAGE, tmp_path)
        assert result.ok is False
        assert result.code == "LOAD_VERIFICATION_FAILED"
        assert "invalid ELF header" in result.detail
        assert "Could not load" in caplog.text

    def test_silent_nonzero_exit(self, tmp_path: Path):
        node = _fake_node(tmp_path, "exit 3")
        result = InstallVerifier(str(node)).verify(PACKAGE, tmp_path)
        assert result.ok is False
        assert "status 3" in result.detail

    def test_missing_node(self, tmp_path: Path):
        result = InstallVerifier(str(tmp_path / "no-such-node")).verify(PACKAGE, tmp_path)
        assert result.ok is False
        assert "not found" in result.detail

    def test_timeout(self, tmp_path: Path):
        node = _fake_node(tmp_path, "exec sleep 5")
        result = InstallVerifier(str(node), timeout=0.2).verify(PACKAGE, tmp_path)
        assert result.ok is False
        assert "timed out" in result.detail

    def test_node_not_executable(self, tmp_path: Path):
        not_a_program = tmp_path / "node-dir"
        not_a_program.mkdir()
        result = InstallVerifier(str(not_a_program)).verify(PACKAGE, tmp_path)
        assert result.ok is False
        assert result.code == "LOAD_VERIFICATION_FAILED"
        assert "could not run" in result.detail
