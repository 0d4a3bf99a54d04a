"""Package Installer — materialize the binding as an npm platform package.

Layout::

    {project}/node_modules/@next/swc-linux-riscv64gc-gnu/
        next-swc.linux-riscv64gc-gnu.node
        package.json

The binary and manifest are written into a staging sibling and renamed into
place, so the package directory never holds exactly one of the two files.
Leftover ``.staging-*``/``.old-*`` siblings from an interrupted run are
removed on the next run.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from swcforge.core.errors import InstallError
from swcforge.models.artifacts import Artifact, InstalledPackage, PackageManifest
from swcforge.models.release import PlatformTriple, ReleaseDescriptor

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "package.json"


def build_manifest(descriptor: ReleaseDescriptor, triple: PlatformTriple) -> PackageManifest:
    """The minimal ``package.json`` the npm resolver needs."""
    return PackageManifest(
        name=descriptor.package_name,
        version=descriptor.version,
        main=descriptor.asset_name,
        os=[triple.platform],
        cpu=[triple.node_arch],
    )


class PackageInstaller:
    """Write verified artifacts into a project's ``node_modules``.

    Parameters
    ----------
    project_dir:
        Root of the host project (the directory holding ``package.json``).
    """

    def __init__(self, project_dir: Path) -> None:
        self._project_dir = Path(project_dir)

    def package_dir(self, package_name: str) -> Path:
        """``node_modules/@scope/name`` for a scoped package name."""
        return self._project_dir.joinpath("node_modules", *package_name.split("/"))

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(
        self,
        artifact: Artifact,
        descriptor: ReleaseDescriptor,
        triple: PlatformTriple,
    ) -> InstalledPackage:
        """Transactionally install *artifact*.

        Re-running with the same inputs is a no-op reporting
        ``changed=False``; the on-disk bytes are identical either way.
        """
        if not artifact.installable:
            raise InstallError(
                f"Refusing to install {artifact.file_name}: integrity is "
                f"{artifact.verification.value}"
            )

        target = self.package_dir(descriptor.package_name)
        manifest_text = build_manifest(descriptor, triple).render()
        try:
            self._clean_stale(target)
            unchanged = self._matches(target, artifact, manifest_text)
        except OSError as exc:
            raise InstallError(f"Cannot prepare {target}: {exc}") from exc

        if unchanged:
            logger.info("%s is already installed at %s", descriptor.package_name, target)
            return InstalledPackage(
                package_name=descriptor.package_name,
                directory_path=target,
                manifest_content=manifest_text,
                binary_file_name=artifact.file_name,
                changed=False,
            )

        token = uuid.uuid4().hex[:8]
        staging = target.parent / f".{target.name}.staging-{token}"
        previous = target.parent / f".{target.name}.old-{token}"

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            staging.mkdir()
            self._write_binary(artifact, staging / artifact.file_name)
            self._write_manifest(manifest_text, staging / MANIFEST_FILE_NAME)
            if target.exists():
                os.replace(target, previous)
            os.replace(staging, target)
        except OSError as exc:
            self._recover(target, staging, previous)
            raise InstallError(f"Failed to install {descriptor.package_name}: {exc}") from exc
        except BaseException:
            self._recover(target, staging, previous)
            raise

        if previous.exists():
            shutil.rmtree(previous, ignore_errors=True)

        logger.info("Installed %s to %s", descriptor.package_name, target)
        return InstalledPackage(
            package_name=descriptor.package_name,
            directory_path=target,
            manifest_content=manifest_text,
            binary_file_name=artifact.file_name,
            changed=True,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _write_binary(artifact: Artifact, destination: Path) -> None:
        shutil.copyfile(artifact.path, destination)

    @staticmethod
    def _write_manifest(manifest_text: str, destination: Path) -> None:
        destination.write_text(manifest_text, encoding="utf-8")

    @staticmethod
    def _matches(target: Path, artifact: Artifact, manifest_text: str) -> bool:
        """True when *target* already holds exactly these two files."""
        if not target.is_dir():
            return False
        names = {p.name for p in target.iterdir()}
        if names != {artifact.file_name, MANIFEST_FILE_NAME}:
            return False
        manifest = target / MANIFEST_FILE_NAME
        binary = target / artifact.file_name
        if manifest.read_bytes() != manifest_text.encode("utf-8"):
            return False
        if binary.stat().st_size != artifact.path.stat().st_size:
            return False
        return binary.read_bytes() == artifact.path.read_bytes()

    @staticmethod
    def _clean_stale(target: Path) -> None:
        parent = target.parent
        if not parent.is_dir():
            return
        for pattern in (f".{target.name}.staging-*", f".{target.name}.old-*"):
            for stale in parent.glob(pattern):
                # An interrupted swap can leave only the old copy behind.
                if stale.name.startswith(f".{target.name}.old-") and not target.exists():
                    logger.warning("Restoring %s from interrupted install", target)
                    os.replace(stale, target)
                    continue
                logger.debug("Removing stale %s", stale)
                shutil.rmtree(stale, ignore_errors=True)

    @staticmethod
    def _recover(target: Path, staging: Path, previous: Path) -> None:
        if previous.exists() and not target.exists():
            os.replace(previous, target)
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)
