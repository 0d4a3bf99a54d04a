"""Unit tests for the CLI — Typer command registration and exit codes.

Exercises the commands end to end via typer.testing.CliRunner against a
fixture project; network access is replaced by local sources or an
httpx.MockTransport.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from swcforge.cli.app import app
from swcforge.core.errors import BuildError
from swcforge.core.fetcher import GitHubReleaseFetcher

runner = CliRunner()

LOADER = Path("node_modules/next/dist/build/swc/index.js")


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("install", "build", "patch-apply", "patch-revert", "releases"):
            assert command in result.output

    @pytest.mark.parametrize(
        "command", ["install", "build", "patch-apply", "patch-revert", "releases"]
    )
    def test_command_help(self, command: str):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0

    def test_install_help_states_arch_policy(self):
        result = runner.invoke(app, ["install", "--help"])
        assert result.exit_code == 0
        assert "ARCH_MISMATCH" in result.output
        assert "--allow-arch-mismatch" in result.output

    def test_invalid_version_is_usage_error(self, next_project: Path):
        result = runner.invoke(app, ["install", "latest", str(next_project)])
        assert result.exit_code == 2
        assert not (next_project / "node_modules" / "@next").exists()


# ---------------------------------------------------------------------------
# Test: install
# ---------------------------------------------------------------------------


class TestInstallCommand:
    def test_install_from_local_build(self, next_project: Path, release_dir: Path):
        result = runner.invoke(
            app,
            [
                "install", "v13.5.6", str(next_project),
                "--from-dir", str(release_dir),
                "--allow-arch-mismatch",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Done" in result.output
        assert (
            next_project / "node_modules/@next/swc-linux-riscv64gc-gnu/package.json"
        ).is_file()
        assert "riscv64: linux.riscv64gc," in (next_project / LOADER).read_text(encoding="utf-8")

    def test_tampered_binary_rejected(self, next_project: Path, release_dir: Path):
        (release_dir / "next-swc.linux-riscv64gc-gnu.node").write_bytes(b"tampered")
        result = runner.invoke(
            app,
            [
                "install", "13.5.6", str(next_project),
                "--from-dir", str(release_dir),
                "--allow-arch-mismatch",
            ],
        )
        assert result.exit_code == 1
        assert "stage 'checksum' failed: CHECKSUM_MISMATCH" in result.output
        assert not (next_project / "node_modules" / "@next").exists()
        assert "riscv64" not in (next_project / LOADER).read_text(encoding="utf-8")

    def test_require_checksum(self, next_project: Path, release_dir: Path):
        (release_dir / "SHA256SUMS").unlink()
        result = runner.invoke(
            app,
            [
                "install", "13.5.6", str(next_project),
                "--from-dir", str(release_dir),
                "--allow-arch-mismatch",
                "--require-checksum",
            ],
        )
        assert result.exit_code == 1
        assert "CHECKSUM_MISMATCH" in result.output

    def test_missing_project(self, tmp_path: Path, release_dir: Path):
        result = runner.invoke(
            app,
            [
                "install", "13.5.6", str(tmp_path / "nope"),
                "--from-dir", str(release_dir),
                "--allow-arch-mismatch",
            ],
        )
        assert result.exit_code == 1
        assert "stage 'preflight' failed: PROJECT_NOT_FOUND" in result.output


# ---------------------------------------------------------------------------
# Test: patch-apply / patch-revert
# ---------------------------------------------------------------------------


class TestPatchCommands:
    def test_apply_twice_then_revert(self, next_project: Path, loader_source: str):
        first = runner.invoke(app, ["patch-apply", str(next_project)])
        assert first.exit_code == 0, first.output
        patched = (next_project / LOADER).read_text(encoding="utf-8")
        assert "riscv64: linux.riscv64gc," in patched

        second = runner.invoke(app, ["patch-apply", str(next_project)])
        assert second.exit_code == 0
        assert "Already applied" in second.output
        assert (next_project / LOADER).read_text(encoding="utf-8") == patched

        reverted = runner.invoke(app, ["patch-revert", str(next_project)])
        assert reverted.exit_code == 0
        assert (next_project / LOADER).read_text(encoding="utf-8") == loader_source

    def test_apply_unrecognized_loader(self, next_project: Path):
        (next_project / LOADER).write_text("module.exports = {};\n", encoding="utf-8")
        result = runner.invoke(app, ["patch-apply", str(next_project)])
        assert result.exit_code == 1
        assert "stage 'patch' failed: PATCH_APPLY_FAILURE" in result.output
        assert (next_project / LOADER).read_text(encoding="utf-8") == "module.exports = {};\n"

    def test_stale_backup_directory_reported(self, next_project: Path):
        loader = next_project / LOADER
        before = loader.read_bytes()
        loader.with_name("index.js.backup").mkdir()

        result = runner.invoke(app, ["patch-apply", str(next_project)])

        assert result.exit_code == 1
        assert not isinstance(result.exception, OSError)
        assert "stage 'patch' failed: PATCH_APPLY_FAILURE" in result.output
        assert loader.read_bytes() == before

    def test_missing_anchor_warns(self, next_project: Path, loader_source: str):
        (next_project / LOADER).write_text(
            loader_source.replace("            arm64: linux.arm64,\n", ""), encoding="utf-8"
        )
        result = runner.invoke(app, ["patch-apply", str(next_project)])
        assert result.exit_code == 0
        assert "warning: Anchor entry 'arm64' not found" in result.output

    def test_verbose_flag(self, next_project: Path):
        result = runner.invoke(app, ["--verbose", "patch-apply", str(next_project)])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: releases / build
# ---------------------------------------------------------------------------


class TestReleasesCommand:
    def test_lists_tags(self, monkeypatch: pytest.MonkeyPatch, release_handler, make_client):
        client = make_client(release_handler)
        monkeypatch.setattr(
            "swcforge.cli.commands.releases.GitHubReleaseFetcher",
            lambda settings: GitHubReleaseFetcher(settings, client=client),
        )
        result = runner.invoke(app, ["releases", "--limit", "5"])
        assert result.exit_code == 0
        assert "v13.5.6-riscv64-1" in result.output
        assert "v14.2.3-riscv64-1" in result.output

    def test_no_releases(self, monkeypatch: pytest.MonkeyPatch, make_client):
        client = make_client(lambda request: httpx.Response(404))
        monkeypatch.setattr(
            "swcforge.cli.commands.releases.GitHubReleaseFetcher",
            lambda settings: GitHubReleaseFetcher(settings, client=client),
        )
        result = runner.invoke(app, ["releases"])
        assert result.exit_code == 1
        assert "No releases found" in result.output


class TestBuildCommand:
    def test_build_failure_exit_code(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        class _FailingBuilder:
            def __init__(self, settings) -> None:
                pass

            def build(self, version, output_dir, **kwargs):
                raise BuildError("Missing required dependencies: cargo")

        monkeypatch.setattr("swcforge.cli.commands.build.SwcBuilder", _FailingBuilder)
        result = runner.invoke(app, ["build", "13.5.6", "--output-dir", str(tmp_path / "dist")])
        assert result.exit_code == 1
        assert "stage 'build' failed: BUILD_FAILED" in result.output

    def test_build_rejects_bad_version(self):
        result = runner.invoke(app, ["build", "13"])
        assert result.exit_code == 2
