"""Isolate supervisor — owns the single live runtime process.

Each ``start_isolate()`` call is one serialized restart:

    .. code-block:: text

        start_isolate(declarations, env)
        ┌──────────────────────────────────────────────────────────┐
        │ 1. terminate previous process (SIGTERM → SIGKILL)        │
        │ 2. assemble entry module + write bundle (atomic)         │
        │ 3. info --json <bundle>          (failure → graph=None)  │
        │ 4. run <flags> <bundle> --port N (isolated environment)  │
        │ 5. pump stdout/stderr → isolate_output log events        │
        │ 6. wait_for_server(port, process)                        │
        └──────────────────────────────────────────────────────────┘

The process handle lives in one field, mutated only while the restart lock
is held, so two generations never run at the same time.  The child only
sees the variables passed in ``env``; the supervisor's own environment is
never inherited.  Modules are bundled relative to ``base_path`` (the project
directory) together with the directories of the declared functions, so
relative imports of shared helpers stay under the virtual root.

Example:
    >>> supervisor = IsolateSupervisor(manager, dist_dir, flags, port=8000)
    >>> result = await supervisor.start_isolate(
    ...     [FunctionDeclaration("hello", "functions/hello.ts")],
    ...     env={"SITE_NAME": "demo"},
    ... )
    >>> result.success
    True
    >>> await supervisor.stop()
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from edgehost.bundling.bundler import Bundler, write_entry_bundle
from edgehost.config.declarations import FunctionDeclaration, common_base_path
from edgehost.core.errors import CommandError
from edgehost.core.logging import get_logger
from edgehost.runtime.manager import BinaryManager
from edgehost.server.readiness import wait_for_server

logger = get_logger(__name__)

BUNDLE_NAME = "entry.bundle"


@dataclass(frozen=True)
class StartResult:
    """Outcome of one ``start_isolate`` call."""

    success: bool
    graph: dict[str, Any] | None = None


class IsolateSupervisor:
    """Builds the entry bundle and keeps exactly one runtime process alive."""

    def __init__(
        self,
        binary: BinaryManager,
        dist_dir: str | Path,
        flags: list[str],
        port: int,
        *,
        host: str = "127.0.0.1",
        base_path: str | Path | None = None,
        import_map_url: str | None = None,
        bundler: Bundler | None = None,
        readiness_interval: float = 0.1,
        readiness_timeout: float | None = 30.0,
        kill_timeout: float = 5.0,
        debug: bool = False,
        **loader_options: Any,
    ) -> None:
        self.binary = binary
        self.dist_dir = Path(dist_dir)
        self.flags = list(flags)
        self.port = port
        self.host = host
        self.base_path = Path(base_path) if base_path is not None else None
        self.import_map_url = import_map_url
        self.bundler = bundler
        self.readiness_interval = readiness_interval
        self.readiness_timeout = readiness_timeout
        self.kill_timeout = kill_timeout
        self.debug = debug
        self._loader_options = loader_options

        self._process: asyncio.subprocess.Process | None = None
        self._pumps: list[asyncio.Task[None]] = []
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        """The current runtime process, if one has been started."""
        return self._process

    @property
    def bundle_path(self) -> Path:
        return self.dist_dir / BUNDLE_NAME

    async def __aenter__(self) -> IsolateSupervisor:
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_isolate(
        self,
        declarations: list[FunctionDeclaration],
        env: Mapping[str, str] | None = None,
    ) -> StartResult:
        """Rebuild the bundle and (re)start the runtime against it.

        Raises:
            DuplicateNameError: if two declarations share a name
            BundleError: if the module graph cannot be bundled
            ModuleLoadError: if a module cannot be loaded
        """
        async with self._lock:
            await self._terminate()

            self._generation += 1
            generation = self._generation
            base_path = common_base_path(declarations, self.dist_dir, root=self.base_path)

            logger.info(
                "isolate_starting",
                generation=generation,
                functions=len(declarations),
                port=self.port,
            )

            bundle = await write_entry_bundle(
                base_path=base_path,
                dest_path=self.bundle_path,
                declarations=declarations,
                import_map_url=self.import_map_url,
                bundler=self.bundler,
                **self._loader_options,
            )

            graph = await self._introspect(bundle)

            process = await self.binary.spawn(
                ["run", *self.flags, str(bundle), "--port", str(self.port)],
                env=dict(env or {}),
                extend_env=False,
            )
            self._process = process
            self._pumps = [
                asyncio.create_task(self._pump(process.stdout, "stdout", generation)),
                asyncio.create_task(self._pump(process.stderr, "stderr", generation)),
            ]

            ready = await wait_for_server(
                self.port,
                process,
                host=self.host,
                interval=self.readiness_interval,
                timeout=self.readiness_timeout,
            )

            if not ready:
                logger.error(
                    "isolate_start_failed",
                    generation=generation,
                    returncode=process.returncode,
                )
                await self._terminate()
                return StartResult(success=False, graph=graph)

            logger.info("isolate_ready", generation=generation, pid=process.pid, port=self.port)
            return StartResult(success=True, graph=graph)

    async def stop(self) -> None:
        """Terminate the current runtime process, if any."""
        async with self._lock:
            await self._terminate()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _introspect(self, bundle: Path) -> dict[str, Any] | None:
        try:
            result = await self.binary.run(["info", "--json", str(bundle)])
            return json.loads(result.stdout)
        except (CommandError, OSError, json.JSONDecodeError):
            logger.warning("module_graph_unavailable", bundle=str(bundle), exc_info=True)
            return None

    async def _terminate(self) -> None:
        """SIGTERM the current process, SIGKILL after ``kill_timeout``."""
        process = self._process
        self._process = None

        if process is not None and process.returncode is None:
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                except TimeoutError:
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                pass  # Process already gone
            logger.info("isolate_terminated", pid=process.pid, returncode=process.returncode)

        pumps, self._pumps = self._pumps, []
        for task in pumps:
            task.cancel()
        if pumps:
            await asyncio.gather(*pumps, return_exceptions=True)

    async def _pump(self, stream: asyncio.StreamReader | None, name: str, generation: int) -> None:
        if stream is None:
            return

        log = logger.bind(stream=name, generation=generation)
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                log.warning("isolate_output_truncated")
                continue
            if not raw:
                return
            line = raw.decode(errors="replace").rstrip("\r\n")
            if name == "stderr" and not self.debug:
                log.warning("isolate_output", line=line)
            else:
                log.info("isolate_output", line=line)


__all__ = ["BUNDLE_NAME", "IsolateSupervisor", "StartResult"]
