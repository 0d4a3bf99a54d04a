"""Artifact and installed-package models."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict


class DigestStatus(str, Enum):
    """How far an artifact's integrity has been established."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    UNPUBLISHED = "unpublished"  # no digest manifest was published


class Artifact(BaseModel):
    """A fetched binary sitting in a pipeline-owned temporary directory.

    ``computed_digest`` is filled by the fetcher while streaming and
    re-checked by the checksum verifier against the file on disk.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    file_name: str
    size_bytes: int = 0
    declared_digest: str | None = None
    computed_digest: str = ""
    digest_source: str | None = None  # URL or path of the digest manifest
    verification: DigestStatus = DigestStatus.UNVERIFIED

    @property
    def installable(self) -> bool:
        return self.verification in (DigestStatus.VERIFIED, DigestStatus.UNPUBLISHED)


class PackageManifest(BaseModel):
    """The ``package.json`` written next to the binary.

    ``render()`` is deterministic so that re-installing the same version
    produces byte-identical output.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    main: str
    os: list[str]
    cpu: list[str]
    extra: dict[str, Any] = {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "main": self.main,
            "os": list(self.os),
            "cpu": list(self.cpu),
        }
        data.update(self.extra)
        return data

    def render(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"


class InstalledPackage(BaseModel):
    """The on-disk package the host module resolver will find."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    directory_path: Path
    manifest_content: str
    binary_file_name: str
    changed: bool = True

    @property
    def binary_path(self) -> Path:
        return self.directory_path / self.binary_file_name
