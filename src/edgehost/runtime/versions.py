"""Version resolution for the runtime binary.

The remote "latest" pointer is a plaintext document whose first token is a
version, optionally prefixed with ``v`` (``v1.2.5\\n``).  Ranges use npm
semantics (``^1.2.0``, ``~1.37``, ``>=1.30 <2``) evaluated with
``semantic_version.NpmSpec``.

No retry happens here: the downloader treats a whole install attempt as the
retryable unit.
"""

from __future__ import annotations

import re

import httpx
import semantic_version

from edgehost.core.errors import ConfigError, RangeMismatchError, VersionFetchError
from edgehost.core.logging import get_logger

logger = get_logger(__name__)

_VERSION_TOKEN = re.compile(r"^\s*v?(\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?)")


def parse_version_token(text: str) -> str | None:
    """Extract the leading version token from ``text``.

    >>> parse_version_token("v1.2.5\\n")
    '1.2.5'
    >>> parse_version_token("1.40.2 (release, x86_64-unknown-linux-gnu)")
    '1.40.2'
    >>> parse_version_token("nightly") is None
    True
    """
    match = _VERSION_TOKEN.match(text)
    return match.group(1) if match else None


def satisfies(version: str, version_range: str) -> bool:
    """Whether ``version`` falls inside the npm-style ``version_range``."""
    try:
        spec = semantic_version.NpmSpec(version_range)
    except ValueError as exc:
        raise ConfigError(f"Invalid version range: {version_range!r}", cause=exc) from exc

    try:
        parsed = semantic_version.Version(version)
    except ValueError:
        return False

    return spec.match(parsed)


class VersionResolver:
    """Fetches the latest published version and checks it against a range."""

    def __init__(
        self,
        latest_version_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.latest_version_url = latest_version_url
        self._transport = transport
        self._timeout = timeout

    async def fetch_latest(self) -> str:
        """Fetch the pointer and return its version token."""
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.latest_version_url)
        except httpx.HTTPError as exc:
            raise VersionFetchError(
                f"Could not fetch latest version: {exc}", cause=exc
            ).with_context(url=self.latest_version_url) from exc

        if not response.is_success:
            raise VersionFetchError(
                f"Latest version request failed with status code {response.status_code}"
            ).with_context(url=self.latest_version_url, http_status=response.status_code)

        version = parse_version_token(response.text)
        if version is None:
            raise VersionFetchError(
                f"Malformed latest version pointer: {response.text.strip()[:40]!r}"
            ).with_context(url=self.latest_version_url)

        return version

    async def resolve(self, version_range: str) -> str:
        """Return the latest version, provided it satisfies ``version_range``."""
        version = await self.fetch_latest()

        if not satisfies(version, version_range):
            raise RangeMismatchError(version, version_range)

        logger.debug("version_resolved", version=version, version_range=version_range)
        return version


__all__ = ["VersionResolver", "parse_version_token", "satisfies"]
