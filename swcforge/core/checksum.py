"""Checksum Verifier — integrity gate between fetch and install.

No artifact reaches the installer unless its SHA-256 matches the published
digest. When the release published no digest manifest the verifier degrades
to warn-and-proceed, unless ``require_digest`` is set.
"""

from __future__ import annotations

import logging

from swcforge.core.errors import ChecksumMismatch
from swcforge.core.hasher import sha256_file
from swcforge.models.artifacts import Artifact, DigestStatus

logger = logging.getLogger(__name__)


class ChecksumVerifier:
    """Compare an artifact's on-disk SHA-256 against its declared digest.

    Parameters
    ----------
    require_digest:
        Treat a missing digest manifest as fatal instead of a warning.
    """

    def __init__(self, *, require_digest: bool = False) -> None:
        self._require_digest = require_digest

    def verify(self, artifact: Artifact) -> Artifact:
        """Return *artifact* marked VERIFIED or UNPUBLISHED.

        Raises ``ChecksumMismatch`` (after deleting the artifact file) when
        the digests differ or the manifest does not list the asset.
        """
        computed = sha256_file(artifact.path)

        if artifact.declared_digest is None:
            if artifact.digest_source is not None:
                self._discard(artifact)
                raise ChecksumMismatch(
                    f"Digest manifest {artifact.digest_source} does not list "
                    f"{artifact.file_name}"
                )
            if self._require_digest:
                self._discard(artifact)
                raise ChecksumMismatch(
                    f"No digest manifest published for {artifact.file_name} "
                    "and checksums are required"
                )
            logger.warning(
                "No digest manifest published for %s; skipping checksum "
                "verification (sha256=%s)",
                artifact.file_name,
                computed,
            )
            return artifact.model_copy(
                update={
                    "computed_digest": computed,
                    "verification": DigestStatus.UNPUBLISHED,
                }
            )

        declared = artifact.declared_digest.strip().lower()
        if computed != declared:
            self._discard(artifact)
            raise ChecksumMismatch(
                f"{artifact.file_name}: expected sha256 {declared}, got {computed}"
            )

        logger.info("Checksum verified for %s (sha256=%s)", artifact.file_name, computed)
        return artifact.model_copy(
            update={
                "computed_digest": computed,
                "verification": DigestStatus.VERIFIED,
            }
        )

    @staticmethod
    def _discard(artifact: Artifact) -> None:
        artifact.path.unlink(missing_ok=True)
        logger.debug("Discarded rejected artifact %s", artifact.path)
