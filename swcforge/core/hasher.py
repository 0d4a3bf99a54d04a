"""SHA-256 helpers and the ``SHA256SUMS`` manifest format.

Manifest lines follow the coreutils ``sha256sum`` convention::

    <hex-digest>  <filename>
    <hex-digest> *<filename>     (binary mode marker)
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

_CHUNK_SIZE = 65536
_MANIFEST_LINE = re.compile(r"^([0-9a-fA-F]{64}) [ *](.+)$")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """Return the SHA-256 hex digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as source:
        for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def parse_digest_manifest(text: str) -> dict[str, str]:
    """Parse a ``SHA256SUMS`` body into ``{filename: lowercase hex digest}``.

    Blank lines and ``#`` comments are ignored; malformed lines are skipped.
    """
    entries: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _MANIFEST_LINE.match(line)
        if match is None:
            continue
        digest, name = match.groups()
        entries[name.strip()] = digest.lower()
    return entries


def format_digest_line(digest: str, file_name: str) -> str:
    """Render one manifest line, newline-terminated."""
    return f"{digest.lower()}  {file_name}\n"
