"""Release archive downloader for the runtime binary.

Algorithm:
    1. Resolve the version via :class:`~edgehost.runtime.versions.VersionResolver`
    2. Build the platform-specific archive URL
    3. Fetch and extract, up to ``attempts`` times (default 4), sequentially
    4. Re-raise the last ``DownloadError`` verbatim when every attempt failed
    5. Move the binary into place, then write the ``version.txt`` marker

Each attempt streams into a private staging directory inside the target
directory; the binary only appears at its final path through ``os.replace``
after a complete extraction, and the marker is written after that.  An
aborted attempt therefore never leaves anything that passes the cached-binary
check.
"""

from __future__ import annotations

import os
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from edgehost.core.errors import DownloadError
from edgehost.core.logging import get_logger
from edgehost.core.retry import retry_async
from edgehost.runtime.platform import binary_name_for_target, get_platform_target
from edgehost.runtime.versions import VersionResolver

logger = get_logger(__name__)

VERSION_MARKER = "version.txt"
DEFAULT_RELEASE_URL_TEMPLATE = "https://dl.deno.land/release/v{version}/deno-{target}.zip"


@dataclass(frozen=True)
class BinaryInstallation:
    """A runtime binary on disk together with the version it was installed as."""

    path: Path
    version: str


def read_version_marker(directory: Path) -> str | None:
    """Return the version recorded in ``directory``, if any."""
    try:
        return (directory / VERSION_MARKER).read_text(encoding="utf-8").strip() or None
    except FileNotFoundError:
        return None


def write_version_marker(directory: Path, version: str) -> None:
    """Atomically record ``version`` as installed in ``directory``."""
    fd, tmp_name = tempfile.mkstemp(prefix=".version-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(version)
        os.replace(tmp_name, directory / VERSION_MARKER)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class Downloader:
    """Downloads and installs the runtime binary for the current platform."""

    def __init__(
        self,
        resolver: VersionResolver,
        *,
        release_url_template: str = DEFAULT_RELEASE_URL_TEMPLATE,
        attempts: int = 4,
        target: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.resolver = resolver
        self.release_url_template = release_url_template
        self.attempts = attempts
        self.target = target or get_platform_target()
        self._transport = transport
        self._timeout = timeout

    def archive_url(self, version: str) -> str:
        return self.release_url_template.format(version=version, target=self.target)

    async def download(
        self,
        target_dir: str | Path,
        version_range: str,
        log: Any = None,
    ) -> BinaryInstallation:
        """Resolve, fetch, and install the binary into ``target_dir``.

        Raises:
            VersionFetchError / RangeMismatchError: from version resolution
            DownloadError: the last attempt's failure, after ``attempts`` tries
        """
        log = log or logger
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        version = await self.resolver.resolve(version_range)
        url = self.archive_url(version)
        log.info("binary_download_started", version=version, url=url)

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            log.warning(
                "binary_download_failed",
                attempt=attempt,
                max_attempts=self.attempts,
                error=str(error),
            )

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            follow_redirects=True,
        ) as client:
            path = await retry_async(
                self._attempt,
                client,
                url,
                target_dir,
                max_attempts=self.attempts,
                retry_if=lambda error: isinstance(error, DownloadError),
                on_retry=on_retry,
            )

        write_version_marker(target_dir, version)
        log.info("binary_download_finished", version=version, path=str(path))
        return BinaryInstallation(path=path, version=version)

    async def _attempt(self, client: httpx.AsyncClient, url: str, target_dir: Path) -> Path:
        binary_name = binary_name_for_target(self.target)
        final_path = target_dir / binary_name

        with tempfile.TemporaryDirectory(prefix=".download-", dir=target_dir) as staging:
            staging_dir = Path(staging)
            archive_path = staging_dir / "archive.zip"

            try:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise DownloadError(
                            f"Download failed with status code {response.status_code}",
                            status_code=response.status_code,
                        ).with_context(url=url)

                    with open(archive_path, "wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
            except (httpx.HTTPError, OSError) as exc:
                raise DownloadError(str(exc), cause=exc).with_context(url=url) from exc

            try:
                with zipfile.ZipFile(archive_path) as archive:
                    extracted = Path(archive.extract(binary_name, staging_dir / "extract"))
            except (zipfile.BadZipFile, KeyError) as exc:
                raise DownloadError(f"Invalid release archive: {exc}", cause=exc).with_context(url=url) from exc

            extracted.chmod(0o755)
            os.replace(extracted, final_path)

        return final_path


__all__ = [
    "BinaryInstallation",
    "Downloader",
    "VERSION_MARKER",
    "read_version_marker",
    "write_version_marker",
]
