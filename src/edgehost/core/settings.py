"""Settings for the edgehost binary manager and isolate supervisor.

Configuration is explicit, validated, and environment-driven: every field
can be set through an ``EDGEHOST_``-prefixed environment variable or a
``.env`` file, and every component also accepts explicit overrides so tests
never depend on the process environment.

Examples:
    >>> from edgehost.core.settings import EdgeSettings
    >>> settings = EdgeSettings(port=9999, version_range="^1.40.0")
    >>> settings.port
    9999

Tags:
    settings, configuration, pydantic, environment, edgehost
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EdgeSettings(BaseSettings):
    """Settings shared by the binary manager, loader, and supervisor.

    Fields
    ──────
    cache_dir             : Where the runtime binary and markers live
    version_range         : Semantic-version range the binary must satisfy
    latest_version_url    : Plaintext "latest version" pointer endpoint
    release_url_template  : Archive URL with ``{version}`` and ``{target}`` slots
    types_url             : Base URL of the edge type definitions
    host / port           : Where the runtime listens
    download_attempts     : Total archive download attempts (1 + retries)
    module_fetch_attempts : Total attempts for a transient module fetch failure
    readiness_*           : Port polling interval and wall-clock bound
    kill_timeout          : Seconds between SIGTERM and SIGKILL
    """

    model_config = SettingsConfigDict(
        env_prefix="EDGEHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Binary ───────────────────────────────────────────────────
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".edgehost",
        description="Directory holding the runtime binary and version markers",
    )
    version_range: str = "^1.37.0"
    use_global_binary: bool = False

    # ── Endpoints ────────────────────────────────────────────────
    latest_version_url: str = "https://dl.deno.land/release-latest.txt"
    release_url_template: str = "https://dl.deno.land/release/v{version}/deno-{target}.zip"
    types_url: str = "https://edge.netlify.com"

    # ── Network ──────────────────────────────────────────────────
    host: str = "127.0.0.1"
    port: int = 8000
    http_timeout: float = 30.0
    download_attempts: int = Field(default=4, ge=1)
    module_fetch_attempts: int = Field(default=3, ge=1)

    # ── Process supervision ──────────────────────────────────────
    readiness_interval: float = Field(default=0.1, gt=0)
    readiness_timeout: float = Field(default=30.0, gt=0)
    kill_timeout: float = Field(default=5.0, gt=0)

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> EdgeSettings:
    """Return the process-wide settings instance."""
    return EdgeSettings()


__all__ = ["EdgeSettings", "get_settings"]
