"""Keeps the runtime's cached edge type definitions current.

The remote ``{types_url}/version.txt`` is compared byte-for-byte with the
``types-version.txt`` marker in the cache directory.  When they differ the
runtime is asked to reload its module cache for ``types_url`` and the
marker is updated afterwards.  Failures never block startup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from edgehost.core.errors import CommandError
from edgehost.core.logging import get_logger
from edgehost.runtime.manager import BinaryManager

logger = get_logger(__name__)

TYPES_VERSION_MARKER = "types-version.txt"


async def _fetch_remote_version(types_url: str, transport: httpx.AsyncBaseTransport | None, timeout: float) -> str:
    async with httpx.AsyncClient(transport=transport, timeout=timeout, follow_redirects=True) as client:
        response = await client.get(f"{types_url.rstrip('/')}/version.txt")
        response.raise_for_status()
        return response.text


def _read_local_version(cache_dir: Path) -> str | None:
    try:
        return (cache_dir / TYPES_VERSION_MARKER).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


async def ensure_latest_types(
    manager: BinaryManager,
    types_url: str | None = None,
    *,
    log: Any = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Refresh the runtime's type cache when the remote version changed.

    Returns:
        True if a refresh was performed.
    """
    log = log or logger
    types_url = types_url or manager.settings.types_url

    try:
        remote_version = await _fetch_remote_version(types_url, transport, manager.settings.http_timeout)
    except httpx.HTTPError as exc:
        log.info("types_version_unavailable", url=types_url, error=str(exc))
        return False

    local_version = _read_local_version(manager.cache_dir)
    if local_version == remote_version:
        log.debug("types_up_to_date", version=remote_version)
        return False

    log.info("types_refresh_started", local=local_version, remote=remote_version)

    try:
        await manager.run(["cache", "-r", types_url])
    except (CommandError, OSError) as exc:
        log.warning("types_refresh_failed", error=str(exc))
        return False

    manager.cache_dir.mkdir(parents=True, exist_ok=True)
    (manager.cache_dir / TYPES_VERSION_MARKER).write_text(remote_version, encoding="utf-8")
    log.info("types_refresh_finished", version=remote_version)
    return True


__all__ = ["TYPES_VERSION_MARKER", "ensure_latest_types"]
