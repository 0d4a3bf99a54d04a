"""Install Verifier — load the installed binding in an isolated Node process.

A failure here is a warning, not a pipeline failure: the artifact and
patch stages already guarantee their own contracts, and a load failure
usually means an environment mismatch (wrong ABI, missing system library).
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from swcforge.core.errors import LoadVerificationFailed

logger = logging.getLogger(__name__)

_LOAD_SCRIPT = (
    "try {"
    " require(process.argv[1]);"
    " console.log('Binary loaded successfully');"
    " process.exit(0);"
    "} catch (e) {"
    " console.error('Failed to load binary:', e.message);"
    " process.exit(1);"
    "}"
)


class LoadCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    package_name: str
    detail: str = ""
    code: str | None = None


class InstallVerifier:
    """Run ``node -e "require(<package>)"`` from the project directory.

    Parameters
    ----------
    node_executable:
        Name or path of the Node.js binary.
    timeout:
        Seconds before the load attempt is abandoned.
    """

    def __init__(self, node_executable: str = "node", *, timeout: float = 60.0) -> None:
        self._node = node_executable
        self._timeout = timeout

    def verify(self, package_name: str, project_dir: Path) -> LoadCheckResult:
        command = [self._node, "-e", _LOAD_SCRIPT, package_name]
        logger.info("Loading %s with %s", package_name, self._node)
        try:
            completed = subprocess.run(
                command,
                cwd=Path(project_dir),
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError:
            return self._failed(package_name, f"{self._node} not found on PATH")
        except OSError as exc:
            return self._failed(package_name, f"could not run {self._node}: {exc}")
        except subprocess.TimeoutExpired:
            return self._failed(
                package_name, f"loading timed out after {self._timeout:g}s"
            )

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout).strip()
            return self._failed(
                package_name,
                detail or f"{self._node} exited with status {completed.returncode}",
            )

        logger.info("%s loads correctly", package_name)
        return LoadCheckResult(ok=True, package_name=package_name, detail=completed.stdout.strip())

    @staticmethod
    def _failed(package_name: str, detail: str) -> LoadCheckResult:
        logger.warning("Could not load %s: %s", package_name, detail)
        return LoadCheckResult(
            ok=False,
            package_name=package_name,
            detail=detail,
            code=LoadVerificationFailed.code,
        )
