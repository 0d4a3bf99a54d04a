"""Shared test fixtures for swcforge."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path

import httpx
import pytest

from swcforge.config import Settings
from swcforge.core.fetcher import DIGEST_MANIFEST_NAME
from swcforge.core.hasher import format_digest_line, sha256_hex
from swcforge.core.verifier import LoadCheckResult
from swcforge.models.patching import LOADER_RELATIVE_PATH
from swcforge.models.release import NEXT_SWC, RISCV64_LINUX_GNU

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ASSET_NAME = NEXT_SWC.binary_file_name(RISCV64_LINUX_GNU)
PACKAGE_NAME = NEXT_SWC.package_name(RISCV64_LINUX_GNU)
DOWNLOAD_URL = (
    "https://github.com/gounthar/nextjs-riscv64/releases/download/"
    f"v13.5.6-riscv64-1/{ASSET_NAME}"
)
DIGEST_URL = (
    "https://github.com/gounthar/nextjs-riscv64/releases/download/"
    "v13.5.6-riscv64-1/SHA256SUMS"
)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file in the working directory."""
    return Settings(_env_file=None, github_repo="gounthar/nextjs-riscv64")


@pytest.fixture
def loader_source() -> str:
    """An excerpt of next/dist/build/swc/index.js from Next.js 13.5.6."""
    return (FIXTURES_DIR / "next_swc_index.js").read_text(encoding="utf-8")


@pytest.fixture
def binary_bytes() -> bytes:
    """Stand-in for the native binding; content only matters for hashing."""
    return b"\x7fELF\x02\x01\x01" + b"riscv64 next-swc binding " * 64


@pytest.fixture
def next_project(tmp_path: Path, loader_source: str) -> Path:
    """A minimal Next.js 13.5.6 project with the unpatched loader."""
    project = tmp_path / "app"
    project.mkdir()
    (project / "package.json").write_text(
        json.dumps({"name": "app", "dependencies": {"next": "13.5.6"}}),
        encoding="utf-8",
    )
    next_dir = project / "node_modules" / "next"
    next_dir.mkdir(parents=True)
    (next_dir / "package.json").write_text(
        json.dumps({"name": "next", "version": "13.5.6"}),
        encoding="utf-8",
    )
    loader = project / LOADER_RELATIVE_PATH
    loader.parent.mkdir(parents=True)
    loader.write_text(loader_source, encoding="utf-8")
    return project


@pytest.fixture
def release_dir(tmp_path: Path, binary_bytes: bytes) -> Path:
    """A local build output: binary plus a matching SHA256SUMS."""
    out = tmp_path / "dist"
    out.mkdir()
    (out / ASSET_NAME).write_bytes(binary_bytes)
    (out / DIGEST_MANIFEST_NAME).write_text(
        format_digest_line(sha256_hex(binary_bytes), ASSET_NAME), encoding="utf-8"
    )
    return out


# ---------------------------------------------------------------------------
# HTTP: GitHub Releases served by httpx.MockTransport
# ---------------------------------------------------------------------------


@pytest.fixture
def release_handler(binary_bytes: bytes) -> Callable[[httpx.Request], httpx.Response]:
    """Serve the 13.5.6 asset and a matching SHA256SUMS; 404 for the rest."""

    def _handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == DOWNLOAD_URL:
            return httpx.Response(200, content=binary_bytes)
        if url == DIGEST_URL:
            return httpx.Response(
                200, text=format_digest_line(sha256_hex(binary_bytes), ASSET_NAME)
            )
        if url.startswith("https://api.github.com/"):
            return httpx.Response(
                200,
                json=[{"tag_name": "v13.5.6-riscv64-1"}, {"tag_name": "v14.2.3-riscv64-1"}],
            )
        return httpx.Response(404)

    return _handler


@pytest.fixture
def make_client() -> Iterator[Callable[..., httpx.Client]]:
    """Factory fixture: an httpx.Client backed by a MockTransport handler."""
    clients: list[httpx.Client] = []

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


# ---------------------------------------------------------------------------
# Install verifier stand-ins
# ---------------------------------------------------------------------------


class _StubVerifier:
    def __init__(self, ok: bool) -> None:
        self.ok = ok
        self.calls: list[tuple[str, Path]] = []

    def verify(self, package_name: str, project_dir: Path) -> LoadCheckResult:
        self.calls.append((package_name, Path(project_dir)))
        if self.ok:
            return LoadCheckResult(ok=True, package_name=package_name)
        return LoadCheckResult(
            ok=False,
            package_name=package_name,
            detail="Error: libc.so.6: version `GLIBC_2.99' not found",
            code="LOAD_VERIFICATION_FAILED",
        )


@pytest.fixture
def loading_verifier() -> _StubVerifier:
    """Install verifier whose load check always succeeds."""
    return _StubVerifier(ok=True)


@pytest.fixture
def failing_verifier() -> _StubVerifier:
    """Install verifier whose load check always fails."""
    return _StubVerifier(ok=False)
