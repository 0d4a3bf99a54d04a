"""Release naming models — platform triples, binding packages, descriptors.

The naming convention is bit-exact with what the npm resolver and the
Next.js loader expect:

    binary:     {binary_base_name}.{platform}-{arch}-{abi}.node
    package:    @{scope}/{base_name}-{platform}-{arch}-{abi}
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")


def normalize_version(version: str) -> str:
    """Strip a leading ``v`` and validate a semantic version string.

    Raises ``ValueError`` for anything that is not MAJOR.MINOR.PATCH with
    optional pre-release/build suffixes.
    """
    candidate = version.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    if not _VERSION_RE.match(candidate):
        raise ValueError(f"Not a semantic version: {version!r}")
    return candidate


class PlatformTriple(BaseModel):
    """The (OS, architecture, ABI) tuple identifying a native binary variant.

    ``arch`` is the triple architecture used in artifact names
    (``riscv64gc``); ``node_arch`` is the architecture key Node.js reports
    via ``process.arch`` and ``uname -m`` (``riscv64``).
    """

    model_config = ConfigDict(frozen=True)

    platform: str = "linux"
    arch: str = "riscv64gc"
    abi: str = "gnu"
    node_arch: str = "riscv64"

    @property
    def abi_suffix(self) -> str:
        return f"-{self.abi}" if self.abi else ""

    @property
    def suffix(self) -> str:
        """``{platform}-{arch}{abi}``, e.g. ``linux-riscv64gc-gnu``."""
        return f"{self.platform}-{self.arch}{self.abi_suffix}"


class BindingPackage(BaseModel):
    """Naming of the npm platform package that carries the native binding."""

    model_config = ConfigDict(frozen=True)

    scope: str = "next"
    base_name: str = "swc"
    binary_base_name: str = "next-swc"

    def package_name(self, triple: PlatformTriple) -> str:
        return f"@{self.scope}/{self.base_name}-{triple.suffix}"

    def binary_file_name(self, triple: PlatformTriple) -> str:
        return f"{self.binary_base_name}.{triple.suffix}.node"


class ReleaseDescriptor(BaseModel):
    """Identifies exactly one fetchable artifact. Immutable once resolved."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    version: str
    architecture: str
    abi: str
    tag: str
    asset_name: str
    download_url: str
    digest_url: str


RISCV64_LINUX_GNU = PlatformTriple()
NEXT_SWC = BindingPackage()
