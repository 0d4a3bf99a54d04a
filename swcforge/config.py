"""Runtime configuration — env-driven.

Centralized config using pydantic-settings for environment variable
support. Reads from .env file and SWCFORGE_* environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """swcforge configuration with environment variable overrides.

    All settings can be overridden via SWCFORGE_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export SWCFORGE_LOG_LEVEL=DEBUG
        export SWCFORGE_GITHUB_REPO=myfork/nextjs-riscv64
        export SWCFORGE_HTTP_TIMEOUT_SECONDS=120

    Or via .env file::

        SWCFORGE_REQUIRE_CHECKSUM=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SWCFORGE_",
        env_file_encoding="utf-8",
    )

    # Runtime
    log_level: str = "INFO"
    debug: bool = False

    # Release source
    github_repo: str = "gounthar/nextjs-riscv64"
    release_base_url: str = "https://github.com"
    api_base_url: str = "https://api.github.com"
    release_revision: int = 1
    default_version: str = "13.5.6"

    # Timeouts
    http_timeout_seconds: float = 60.0
    verify_timeout_seconds: float = 60.0

    # Host project
    node_executable: str = "node"
    tested_host_versions: list[str] = ["13.5.6"]
    require_checksum: bool = False
    backup_suffix: str = ".backup"

    # External build
    nextjs_repo_url: str = "https://github.com/vercel/next.js.git"
    rust_toolchain: str = "nightly-2023-10-06"
    keep_build_logs: bool = False

    @property
    def releases_download_url(self) -> str:
        """Base URL that release tags and asset names are appended to."""
        return f"{self.release_base_url.rstrip('/')}/{self.github_repo}/releases/download"

    @property
    def releases_api_url(self) -> str:
        """GitHub API endpoint listing the repository's releases."""
        return f"{self.api_base_url.rstrip('/')}/repos/{self.github_repo}/releases"


# Module-level singleton; import as `from swcforge.config import settings`
settings = Settings()
