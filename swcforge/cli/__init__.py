"""swcforge CLI — Typer-based command-line interface.

Provides the ``swcforge`` command with subcommands for installing the
riscv64 ``@next/swc`` binding, applying or reverting the Next.js loader
patch on its own, building the binding from source, and listing releases.

All output uses Rich for formatted terminal display; diagnostics go to
stderr.
"""
