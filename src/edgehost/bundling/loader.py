"""Module loader used by the bundler while it walks the module graph.

``ModuleLoader.load(specifier)`` is called once per distinct specifier and
answers according to the specifier's :class:`SpecifierKind`:

    .. code-block:: text

        ENTRY     → the generated entry module text, inline
        EXTERNAL  → an ExternalModule marker; the runtime resolves it itself
        VIRTUAL   → bytes of <base_path>/<path after the virtual root>
        REMOTE    → http(s) fetch with retry, or a file:// / absolute path read

Network fetches retry transient failures (timeouts, connection errors,
5xx) up to ``attempts`` times in total; 4xx responses and content that is
not UTF-8 fail at once.  Unsupported schemes (``npm:``, ``node:``) return
``None`` so the bundler can report them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from edgehost.bundling.specifiers import DEFAULT_POLICY, SpecifierKind, SpecifierPolicy
from edgehost.core.errors import ModuleLoadError, VirtualModuleNotFoundError
from edgehost.core.logging import get_logger
from edgehost.core.retry import ExponentialBackoff, RetryContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModuleSource:
    """Source of a module; ``specifier`` is the final URL after redirects."""

    specifier: str
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)
    kind: str = "module"

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


@dataclass(frozen=True)
class ExternalModule:
    """Marker for a specifier the runtime resolves at execution time."""

    specifier: str
    kind: str = "external"


LoadResult = ModuleSource | ExternalModule


def _is_transient(error: Exception) -> bool:
    return isinstance(error, ModuleLoadError) and error.transient


class ModuleLoader:
    """Resolves specifiers to module sources for one build."""

    def __init__(
        self,
        base_path: str | Path,
        entry_source: str,
        *,
        policy: SpecifierPolicy = DEFAULT_POLICY,
        attempts: int = 3,
        retry_delay: float = 0.25,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_path = Path(base_path)
        self.entry_source = entry_source
        self.policy = policy
        self.attempts = attempts
        self.retry_delay = retry_delay
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ModuleLoader:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def load(self, specifier: str) -> LoadResult | None:
        kind = self.policy.classify(specifier)

        if kind is SpecifierKind.ENTRY:
            return ModuleSource(
                specifier=specifier,
                content=self.entry_source.encode("utf-8"),
                headers={"content-type": "application/typescript; charset=utf-8"},
            )

        if kind is SpecifierKind.EXTERNAL:
            return ExternalModule(specifier=specifier)

        if kind is SpecifierKind.VIRTUAL:
            return self._load_virtual(specifier)

        return await self._load_remote(specifier)

    # ------------------------------------------------------------------
    # Virtual root
    # ------------------------------------------------------------------

    def virtual_to_path(self, specifier: str) -> Path:
        relative = unquote(specifier[len(self.policy.virtual_root):])
        return self.base_path / Path(*relative.split("/"))

    def _load_virtual(self, specifier: str) -> ModuleSource:
        path = self.virtual_to_path(specifier)
        try:
            content = path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise VirtualModuleNotFoundError(specifier, str(path), cause=exc) from exc

        return ModuleSource(specifier=specifier, content=content)

    # ------------------------------------------------------------------
    # Network / filesystem
    # ------------------------------------------------------------------

    async def _load_remote(self, specifier: str) -> LoadResult | None:
        parsed = urlparse(specifier)

        if parsed.scheme in ("http", "https"):
            strategy = ExponentialBackoff(
                max_attempts=self.attempts,
                base_delay=self.retry_delay,
                retry_if=_is_transient,
            )
            ctx = RetryContext(strategy, on_retry=self._log_retry(specifier))
            return await ctx.run_async(self._fetch, specifier)

        if parsed.scheme == "file":
            return self._read_file(specifier, Path(unquote(parsed.path)))

        if not parsed.scheme and os.path.isabs(specifier):
            return self._read_file(specifier, Path(specifier))

        logger.debug("module_scheme_unsupported", specifier=specifier)
        return None

    def _log_retry(self, specifier: str):
        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.warning(
                "module_fetch_retry",
                specifier=specifier,
                attempt=attempt,
                max_attempts=self.attempts,
                delay=round(delay, 3),
                error=str(error),
            )

        return on_retry

    def _http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            )
        return self._client

    async def _fetch(self, specifier: str) -> ModuleSource:
        try:
            response = await self._http_client().get(specifier)
        except httpx.TransportError as exc:
            raise ModuleLoadError(
                f"Failed to fetch {specifier}: {exc}", specifier=specifier, transient=True, cause=exc
            ) from exc

        if response.status_code >= 500:
            raise ModuleLoadError(
                f"Failed to fetch {specifier}: status code {response.status_code}",
                specifier=specifier,
                transient=True,
                status_code=response.status_code,
            )

        if not response.is_success:
            raise ModuleLoadError(
                f"Failed to fetch {specifier}: status code {response.status_code}",
                specifier=specifier,
                status_code=response.status_code,
            )

        content = response.content
        self._check_text(specifier, content)

        headers = {}
        if "content-type" in response.headers:
            headers["content-type"] = response.headers["content-type"]

        return ModuleSource(specifier=str(response.url), content=content, headers=headers)

    def _read_file(self, specifier: str, path: Path) -> ModuleSource:
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise ModuleLoadError(f"Could not read {path}: {exc}", specifier=specifier, cause=exc) from exc

        self._check_text(specifier, content)
        return ModuleSource(specifier=specifier, content=content)

    @staticmethod
    def _check_text(specifier: str, content: bytes) -> None:
        try:
            content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ModuleLoadError(
                f"Malformed module content for {specifier}: not valid UTF-8",
                specifier=specifier,
                cause=exc,
            ) from exc


__all__ = ["ExternalModule", "LoadResult", "ModuleLoader", "ModuleSource"]
