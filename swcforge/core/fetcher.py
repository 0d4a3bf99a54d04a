"""Release Fetcher — resolve and download the prebuilt binding.

Artifacts are always written into a caller-supplied, pipeline-owned
directory (normally a ``tempfile.mkdtemp``), never into the target project,
so a failed fetch cannot corrupt installed state.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Protocol

import httpx

from swcforge.config import Settings
from swcforge.core.errors import FileSystemError, NetworkError, ReleaseNotFound
from swcforge.core.hasher import parse_digest_manifest, sha256_file
from swcforge.models.artifacts import Artifact
from swcforge.models.release import (
    BindingPackage,
    PlatformTriple,
    ReleaseDescriptor,
    normalize_version,
)

logger = logging.getLogger(__name__)

DIGEST_MANIFEST_NAME = "SHA256SUMS"
_TAG_LISTING_LIMIT = 10


def release_tag(version: str, triple: PlatformTriple, revision: int = 1) -> str:
    """``v{version}-{node_arch}-{revision}``, e.g. ``v13.5.6-riscv64-1``."""
    return f"v{normalize_version(version)}-{triple.node_arch}-{revision}"


def resolve_release(
    version: str,
    triple: PlatformTriple,
    package: BindingPackage,
    settings: Settings,
) -> ReleaseDescriptor:
    """Apply the release naming convention to a (version, target) pair."""
    normalized = normalize_version(version)
    tag = release_tag(normalized, triple, settings.release_revision)
    asset_name = package.binary_file_name(triple)
    base = f"{settings.releases_download_url}/{tag}"
    return ReleaseDescriptor(
        package_name=package.package_name(triple),
        version=normalized,
        architecture=triple.arch,
        abi=triple.abi,
        tag=tag,
        asset_name=asset_name,
        download_url=f"{base}/{asset_name}",
        digest_url=f"{base}/{DIGEST_MANIFEST_NAME}",
    )


class ReleaseSource(Protocol):
    """Anything that can materialize a release artifact into a directory."""

    def fetch(self, descriptor: ReleaseDescriptor, dest_dir: Path) -> Artifact:
        """Write the artifact into *dest_dir* and describe it."""


class GitHubReleaseFetcher:
    """Download release assets from GitHub Releases.

    Parameters
    ----------
    settings:
        Supplies the repository, API base and HTTP timeout.
    client:
        Optional pre-built ``httpx.Client`` (tests pass one with a
        ``MockTransport``). The fetcher closes only clients it created.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=settings.http_timeout_seconds,
            headers={"User-Agent": "swcforge"},
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> GitHubReleaseFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def fetch(self, descriptor: ReleaseDescriptor, dest_dir: Path) -> Artifact:
        """Download the binary and its digest manifest into *dest_dir*."""
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / descriptor.asset_name

        logger.info("Downloading %s", descriptor.download_url)
        computed, size = self._download(descriptor, target)
        logger.debug("Downloaded %d bytes to %s", size, target)

        manifest_text = self._fetch_digest_manifest(descriptor.digest_url)
        declared: str | None = None
        digest_source: str | None = None
        if manifest_text is not None:
            digest_source = descriptor.digest_url
            declared = parse_digest_manifest(manifest_text).get(descriptor.asset_name)

        return Artifact(
            path=target,
            file_name=descriptor.asset_name,
            size_bytes=size,
            declared_digest=declared,
            computed_digest=computed,
            digest_source=digest_source,
        )

    def _download(self, descriptor: ReleaseDescriptor, target: Path) -> tuple[str, int]:
        digest = hashlib.sha256()
        size = 0
        try:
            with self._client.stream("GET", descriptor.download_url) as response:
                if response.status_code == 404:
                    raise ReleaseNotFound(
                        f"Release asset {descriptor.asset_name} not found under tag "
                        f"{descriptor.tag} ({descriptor.download_url})",
                        available_tags=self.list_tags(),
                    )
                response.raise_for_status()
                with target.open("wb") as destination:
                    for chunk in response.iter_bytes():
                        destination.write(chunk)
                        digest.update(chunk)
                        size += len(chunk)
        except httpx.HTTPStatusError as exc:
            target.unlink(missing_ok=True)
            raise NetworkError(
                f"Download of {descriptor.download_url} failed with HTTP "
                f"{exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            target.unlink(missing_ok=True)
            raise NetworkError(
                f"Download of {descriptor.download_url} failed: {exc}"
            ) from exc
        except OSError as exc:
            if target.is_file():
                target.unlink()
            raise FileSystemError(
                f"Could not save {descriptor.asset_name} to {target}: {exc}"
            ) from exc
        return digest.hexdigest(), size

    def _fetch_digest_manifest(self, url: str) -> str | None:
        """Return the manifest text, or ``None`` when none was published."""
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Download of {url} failed: {exc}") from exc
        if response.status_code == 404:
            logger.debug("No digest manifest at %s", url)
            return None
        if response.is_error:
            raise NetworkError(
                f"Download of {url} failed with HTTP {response.status_code}"
            )
        return response.text

    # ------------------------------------------------------------------
    # Tag listing
    # ------------------------------------------------------------------

    def list_tags(self, limit: int = _TAG_LISTING_LIMIT) -> list[str]:
        """Return up to *limit* release tags, newest first.

        Failures degrade to an empty list; this only feeds diagnostics.
        """
        url = self._settings.releases_api_url
        try:
            response = self._client.get(url, headers={"Accept": "application/vnd.github+json"})
            response.raise_for_status()
            releases = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Failed to list releases from %s: %s", url, exc)
            return []
        if not isinstance(releases, list):
            return []
        tags = [
            release["tag_name"]
            for release in releases
            if isinstance(release, dict) and isinstance(release.get("tag_name"), str)
        ]
        return tags[:limit]


class LocalReleaseSource:
    """Take the artifact from a local directory, e.g. a ``build`` output.

    The directory is expected to hold the binary and, optionally, a
    ``SHA256SUMS`` manifest next to it.
    """

    def __init__(self, source_dir: Path) -> None:
        self._source_dir = Path(source_dir)

    def fetch(self, descriptor: ReleaseDescriptor, dest_dir: Path) -> Artifact:
        source = self._source_dir / descriptor.asset_name
        if not source.is_file():
            raise ReleaseNotFound(
                f"{descriptor.asset_name} not found in {self._source_dir}"
            )
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / descriptor.asset_name
        logger.info("Copying %s from local source %s", descriptor.asset_name, self._source_dir)
        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            raise FileSystemError(f"Could not copy {source} to {target}: {exc}") from exc

        manifest_path = self._source_dir / DIGEST_MANIFEST_NAME
        declared: str | None = None
        digest_source: str | None = None
        if manifest_path.is_file():
            digest_source = str(manifest_path)
            declared = parse_digest_manifest(
                manifest_path.read_text(encoding="utf-8")
            ).get(descriptor.asset_name)

        return Artifact(
            path=target,
            file_name=descriptor.asset_name,
            size_bytes=target.stat().st_size,
            declared_digest=declared,
            computed_digest=sha256_file(target),
            digest_source=digest_source,
        )
