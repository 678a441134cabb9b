"""Local serving entry point.

``serve()`` wires the runtime for a development server and hands back an
:class:`IsolateSupervisor` ready for ``start_isolate()``:

    1. ensure the runtime binary (download hooks fire here)
    2. refresh the cached edge type definitions
    3. merge the user import maps into one data URL
    4. assemble the runtime flags
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from edgehost.bundling.bundler import Bundler
from edgehost.config.import_map import ImportMap, ImportMapFile
from edgehost.core.logging import get_logger
from edgehost.core.settings import EdgeSettings, get_settings
from edgehost.runtime.manager import BinaryManager, DownloadHook
from edgehost.runtime.types import ensure_latest_types
from edgehost.server.supervisor import IsolateSupervisor

logger = get_logger(__name__)


@dataclass(frozen=True)
class InspectSettings:
    """Inspector options for the runtime process."""

    enabled: bool = False
    pause: bool = False  # break on the first statement
    address: str | None = None


def build_flags(
    import_map: ImportMap,
    *,
    certificate_path: str | Path | None = None,
    debug: bool = False,
    inspect_settings: InspectSettings | None = None,
) -> list[str]:
    """Flags passed to every ``run`` invocation of the runtime."""
    flags = [
        "--allow-all",
        f"--import-map={import_map.to_data_url()}",
        "--v8-flags=--disallow-code-generation-from-strings",
        "--no-config",
    ]

    if certificate_path:
        flags.append(f"--cert={certificate_path}")

    flags.append("--log-level=debug" if debug else "--quiet")

    if inspect_settings is not None and inspect_settings.enabled:
        flag = "--inspect-brk" if inspect_settings.pause else "--inspect"
        flags.append(f"{flag}={inspect_settings.address}" if inspect_settings.address else flag)

    return flags


async def serve(
    *,
    port: int | None = None,
    base_path: str | Path | None = None,
    certificate_path: str | Path | None = None,
    debug: bool | None = None,
    dist_import_map_path: str | Path | None = None,
    inspect_settings: InspectSettings | None = None,
    import_maps: list[ImportMapFile] | None = None,
    on_before_download: DownloadHook | None = None,
    on_after_download: DownloadHook | None = None,
    bundler: Bundler | None = None,
    settings: EdgeSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IsolateSupervisor:
    """Prepare the runtime and return a supervisor for it.

    ``base_path`` is the project directory that relative imports resolve
    under; it defaults to the current directory.
    """
    settings = settings or get_settings()
    port = settings.port if port is None else port
    debug = settings.debug if debug is None else debug
    base_path = Path.cwd() if base_path is None else Path(base_path)

    manager = BinaryManager(
        settings=settings,
        on_before_download=on_before_download,
        on_after_download=on_after_download,
        transport=transport,
    )

    dist_dir = Path(tempfile.mkdtemp(prefix="edgehost-dist-"))

    binary_path = await manager.ensure_binary()
    logger.debug("binary_ready", path=str(binary_path))

    await ensure_latest_types(manager, settings.types_url, transport=transport)

    import_map = ImportMap(import_maps)
    flags = build_flags(
        import_map,
        certificate_path=certificate_path,
        debug=debug,
        inspect_settings=inspect_settings,
    )

    supervisor = IsolateSupervisor(
        manager,
        dist_dir,
        flags,
        port,
        host=settings.host,
        base_path=base_path,
        import_map_url=import_map.to_data_url(),
        bundler=bundler,
        readiness_interval=settings.readiness_interval,
        readiness_timeout=settings.readiness_timeout,
        kill_timeout=settings.kill_timeout,
        debug=debug,
        attempts=settings.module_fetch_attempts,
        transport=transport,
        timeout=settings.http_timeout,
    )

    if dist_import_map_path:
        import_map.write_to_file(dist_import_map_path)

    logger.info("serve_prepared", port=port, dist_dir=str(dist_dir), debug=debug)
    return supervisor


__all__ = ["InspectSettings", "build_flags", "serve"]
