"""Binary manager — owns the runtime binary for the lifetime of the process.

``BinaryManager.ensure_binary()`` is the single idempotent entry point that
returns a usable binary path.  Discovery order:

    .. code-block:: text

        1. in-process installation   (re-validated, never re-downloaded)
        2. cached installation       (version.txt marker + binary in cache_dir)
        3. global binary on PATH     (only when use_global is enabled)
        4. download                  (before/after hooks fire around it)

No other component downloads or validates the binary on its own; the
supervisor and the types refresher go through ``run()`` / ``spawn()``.

Example:
    >>> manager = BinaryManager(cache_dir="/tmp/edgehost", version_range="^1.37.0")
    >>> path = await manager.ensure_binary()
    >>> result = await manager.run(["--version"])
    >>> result.stdout.splitlines()[0]
    'deno 1.40.2 (release, x86_64-unknown-linux-gnu)'
"""

from __future__ import annotations

import asyncio
import inspect
import os
import re
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from edgehost.core.errors import CommandError
from edgehost.core.logging import get_logger
from edgehost.core.settings import EdgeSettings, get_settings
from edgehost.runtime.downloader import BinaryInstallation, Downloader, read_version_marker
from edgehost.runtime.platform import get_binary_name
from edgehost.runtime.versions import VersionResolver, parse_version_token, satisfies

logger = get_logger(__name__)

DownloadHook = Callable[[], Any]

_VERSION_OUTPUT = re.compile(r"^deno\s+(\S+)", re.MULTILINE)


@dataclass(frozen=True)
class CommandResult:
    """Output of a foreground runtime command."""

    stdout: str
    stderr: str
    returncode: int


class BinaryManager:
    """Resolves, downloads, caches, and runs the runtime binary."""

    def __init__(
        self,
        *,
        cache_dir: str | Path | None = None,
        version_range: str | None = None,
        settings: EdgeSettings | None = None,
        on_before_download: DownloadHook | None = None,
        on_after_download: DownloadHook | None = None,
        use_global: bool | None = None,
        downloader: Downloader | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.settings = settings
        self.cache_dir = Path(cache_dir) if cache_dir is not None else settings.cache_dir
        self.version_range = version_range or settings.version_range
        self.use_global = settings.use_global_binary if use_global is None else use_global
        self._on_before_download = on_before_download
        self._on_after_download = on_after_download
        self._downloader = downloader or Downloader(
            VersionResolver(
                settings.latest_version_url,
                transport=transport,
                timeout=settings.http_timeout,
            ),
            release_url_template=settings.release_url_template,
            attempts=settings.download_attempts,
            transport=transport,
            timeout=settings.http_timeout,
        )
        self._installation: BinaryInstallation | None = None
        self._lock = asyncio.Lock()

    @property
    def installation(self) -> BinaryInstallation | None:
        """The installation resolved so far in this process, if any."""
        return self._installation

    # ------------------------------------------------------------------
    # Binary resolution
    # ------------------------------------------------------------------

    async def ensure_binary(
        self,
        cache_dir: str | Path | None = None,
        version_range: str | None = None,
    ) -> Path:
        """Return the path of a binary satisfying ``version_range``."""
        cache_dir = Path(cache_dir) if cache_dir is not None else self.cache_dir
        version_range = version_range or self.version_range

        async with self._lock:
            current = self._installation
            if current is not None and current.path.exists() and satisfies(current.version, version_range):
                return current.path

            installation = self._cached_installation(cache_dir, version_range)

            if installation is None and self.use_global:
                installation = await self._global_installation(version_range)

            if installation is None:
                installation = await self._download(cache_dir, version_range)

            self._installation = installation
            return installation.path

    def _cached_installation(self, cache_dir: Path, version_range: str) -> BinaryInstallation | None:
        path = cache_dir / get_binary_name()
        version = read_version_marker(cache_dir)

        if version is None or not path.is_file():
            return None

        if not satisfies(version, version_range):
            logger.info(
                "cached_binary_outdated",
                version=version,
                version_range=version_range,
            )
            return None

        logger.debug("cached_binary_found", path=str(path), version=version)
        return BinaryInstallation(path=path, version=version)

    async def _global_installation(self, version_range: str) -> BinaryInstallation | None:
        found = shutil.which(get_binary_name())
        if found is None:
            return None

        version = await self._probe_version(Path(found))
        if version is None or not satisfies(version, version_range):
            logger.debug("global_binary_skipped", path=found, version=version)
            return None

        logger.debug("global_binary_found", path=found, version=version)
        return BinaryInstallation(path=Path(found), version=version)

    async def _probe_version(self, path: Path) -> str | None:
        try:
            process = await asyncio.create_subprocess_exec(
                str(path),
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await process.communicate()
        except OSError:
            logger.debug("binary_version_probe_failed", path=str(path), exc_info=True)
            return None

        match = _VERSION_OUTPUT.search(stdout.decode(errors="replace"))
        return parse_version_token(match.group(1)) if match else None

    async def _download(self, cache_dir: Path, version_range: str) -> BinaryInstallation:
        await self._fire_hook(self._on_before_download, "before_download")
        try:
            return await self._downloader.download(cache_dir, version_range, logger)
        finally:
            await self._fire_hook(self._on_after_download, "after_download")

    @staticmethod
    async def _fire_hook(hook: DownloadHook | None, name: str) -> None:
        if hook is None:
            return
        try:
            result = hook()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("download_hook_failed", hook=name, exc_info=True)

    # ------------------------------------------------------------------
    # Running the binary
    # ------------------------------------------------------------------

    async def run(
        self,
        args: list[str],
        *,
        env: Mapping[str, str] | None = None,
        extend_env: bool = True,
        cwd: str | Path | None = None,
    ) -> CommandResult:
        """Run the binary to completion and capture its output.

        Raises:
            CommandError: if the binary exits with a non-zero status
        """
        path = await self.ensure_binary()
        process = await asyncio.create_subprocess_exec(
            str(path),
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._build_env(env, extend_env),
            cwd=str(cwd) if cwd else None,
        )
        stdout, stderr = await process.communicate()
        result = CommandResult(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            returncode=process.returncode,
        )

        if result.returncode != 0:
            raise CommandError(args, result.returncode, result.stderr)

        return result

    async def spawn(
        self,
        args: list[str],
        *,
        env: Mapping[str, str] | None = None,
        extend_env: bool = False,
        cwd: str | Path | None = None,
    ) -> asyncio.subprocess.Process:
        """Start the binary in the background with piped stdout/stderr."""
        path = await self.ensure_binary()
        return await asyncio.create_subprocess_exec(
            str(path),
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._build_env(env, extend_env),
            cwd=str(cwd) if cwd else None,
        )

    @staticmethod
    def _build_env(env: Mapping[str, str] | None, extend_env: bool) -> dict[str, str]:
        """Environment for a child: optionally the current one, overlaid with ``env``."""
        result = dict(os.environ) if extend_env else {}
        if env:
            result.update(env)
        return result


__all__ = ["BinaryManager", "CommandResult", "DownloadHook"]
