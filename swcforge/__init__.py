"""swcforge: riscv64 support for the Next.js SWC native binding.

Next.js ships no prebuilt ``@next/swc`` binary for ``linux-riscv64gc-gnu``
and its loader does not list the architecture. swcforge closes both gaps:

  - fetch a prebuilt binding from GitHub Releases (or a local build)
  - verify it against the published SHA256SUMS
  - install it atomically under ``node_modules/@next/``
  - patch the loader's linux triple table, with byte-exact rollback
  - optionally build the binding from source with cargo
"""

__version__ = "0.1.0"

from swcforge.core.orchestrator import Orchestrator
from swcforge.cli.app import app as cli

__all__ = ["Orchestrator", "cli", "__version__"]
