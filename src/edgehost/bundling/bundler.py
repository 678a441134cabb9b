"""Bundler invocation — turns the entry module graph into one artifact.

``Bundler`` is the capability seam: it receives root specifiers, the
module loader (its only source of module content) and an optional import
map URL, and returns the serialized graph as bytes.  ``SnapshotBundler`` is
the default implementation: it follows static ``import``/``export … from``
and literal dynamic ``import()`` specifiers and serializes every module it
reaches into a deterministic ZIP snapshot::

    manifest.json          ← roots, import map URL, module table
    modules/0000           ← source of the first module discovered
    modules/0001           ← ...

The snapshot is not transpiled or tree-shaken; the runtime consumes the
sources as-is.  Relative imports inside the virtual root must stay inside it;
anything that climbs above the build base is a ``BundleError``.

``write_entry_bundle`` is the full invocation used by the supervisor:
assemble the entry module, walk it through the loader, and write the
artifact atomically so a failed build never leaves a truncated file at the
destination.

Example:
    >>> path = await write_entry_bundle(
    ...     base_path="/project/functions",
    ...     dest_path="/tmp/dist/entry.bundle",
    ...     declarations=[FunctionDeclaration("hello", "/project/functions/hello.ts")],
    ... )
"""

from __future__ import annotations

import io
import json
import os
import re
import tempfile
import zipfile
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urljoin, urlparse

from edgehost.bundling.entry import assemble
from edgehost.bundling.loader import ExternalModule, LoadResult, ModuleLoader
from edgehost.bundling.specifiers import ENTRY_SPECIFIER, DEFAULT_POLICY, SpecifierPolicy
from edgehost.config.declarations import FunctionDeclaration
from edgehost.config.import_map import parse_import_map_url, resolve_bare_specifier
from edgehost.core.errors import BundleError, ConfigError, EdgeError
from edgehost.core.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_FORMAT = "edgehost-graph"
SNAPSHOT_VERSION = 1

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_STATIC_IMPORT = re.compile(
    r"""(?:^|[;}\s])(?:import|export)\s+(?:[\w*{}\s,$]+?\s+from\s*)?(["'])([^"'\n]+)\1""",
    re.MULTILINE,
)
_DYNAMIC_IMPORT = re.compile(r"""\bimport\s*\(\s*(["'])([^"'\n]+)\1\s*\)""")


class Loader(Protocol):
    async def load(self, specifier: str) -> LoadResult | None: ...


class Bundler(ABC):
    """Abstract bundling capability."""

    @abstractmethod
    async def build(
        self,
        roots: list[str],
        loader: Loader,
        import_map_url: str | None = None,
    ) -> bytes:
        """Walk the graph from ``roots`` and return the serialized artifact.

        Raises:
            BundleError: for unresolvable specifiers or malformed sources
        """
        ...


def scan_imports(source: str) -> list[str]:
    """Specifiers referenced by static and literal dynamic imports, in order.

    >>> scan_imports('import a from "./a.ts";\\nexport * from "https://x/mod.ts";')
    ['./a.ts', 'https://x/mod.ts']
    """
    found: list[tuple[int, str]] = []
    for pattern in (_STATIC_IMPORT, _DYNAMIC_IMPORT):
        found.extend((match.start(2), match.group(2)) for match in pattern.finditer(source))

    result: list[str] = []
    for _, specifier in sorted(found):
        if specifier not in result:
            result.append(specifier)
    return result


def _has_scheme(specifier: str) -> bool:
    scheme = urlparse(specifier).scheme
    return len(scheme) > 1


class SnapshotBundler(Bundler):
    """Serializes the reachable module graph into a ZIP snapshot."""

    def __init__(self, policy: SpecifierPolicy = DEFAULT_POLICY, compresslevel: int = 6) -> None:
        self.policy = policy
        self.compresslevel = compresslevel

    async def build(
        self,
        roots: list[str],
        loader: Loader,
        import_map_url: str | None = None,
    ) -> bytes:
        imports = self._load_imports(import_map_url)

        modules: list[dict[str, Any]] = []
        sources: list[bytes] = []
        seen: set[str] = set()
        queue: deque[str] = deque(roots)

        while queue:
            specifier = queue.popleft()
            if specifier in seen:
                continue
            seen.add(specifier)

            result = await loader.load(specifier)
            if result is None:
                raise BundleError(f"Module not found: {specifier}").with_context(specifier=specifier)

            if isinstance(result, ExternalModule):
                modules.append({"specifier": specifier, "kind": "external"})
                continue

            if result.specifier != specifier:
                modules.append({"specifier": specifier, "kind": "redirect", "target": result.specifier})
                if result.specifier in seen:
                    continue
                seen.add(result.specifier)

            try:
                text = result.content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise BundleError(
                    f"Module {result.specifier} is not valid UTF-8", cause=exc
                ).with_context(specifier=result.specifier) from exc

            entry: dict[str, Any] = {
                "specifier": result.specifier,
                "kind": "module",
                "file": f"modules/{len(sources):04d}",
            }
            if result.headers.get("content-type"):
                entry["content_type"] = result.headers["content-type"]
            modules.append(entry)
            sources.append(result.content)

            for dependency in scan_imports(text):
                queue.append(self._resolve(dependency, result.specifier, imports))

        logger.debug("graph_walked", roots=roots, modules=len(modules))
        return self._serialize(roots, import_map_url, modules, sources)

    def _load_imports(self, import_map_url: str | None) -> dict[str, str]:
        if not import_map_url:
            return {}
        try:
            return parse_import_map_url(import_map_url).get("imports", {})
        except ConfigError as exc:
            raise BundleError(f"Invalid import map: {exc.message}", cause=exc) from exc

    def _resolve(self, specifier: str, referrer: str, imports: dict[str, str]) -> str:
        if specifier.startswith(("./", "../", "/")):
            if not _has_scheme(referrer) or referrer == self.policy.entry_specifier:
                raise BundleError(
                    f"Cannot resolve relative import {specifier!r} from {referrer}"
                ).with_context(specifier=specifier)
            resolved = urljoin(referrer, specifier)
            if referrer.startswith(self.policy.virtual_root) and not resolved.startswith(self.policy.virtual_root):
                raise BundleError(
                    f"Import {specifier!r} from {referrer} resolves outside the project directory"
                ).with_context(specifier=specifier)
            return resolved

        mapped = resolve_bare_specifier(imports, specifier)
        if mapped is not None:
            return mapped

        if _has_scheme(specifier):
            return specifier

        raise BundleError(
            f'Relative import path "{specifier}" not prefixed with / or ./ or ../ '
            f"and not in import map (imported from {referrer})"
        ).with_context(specifier=specifier)

    def _serialize(
        self,
        roots: list[str],
        import_map_url: str | None,
        modules: list[dict[str, Any]],
        sources: list[bytes],
    ) -> bytes:
        manifest = {
            "format": SNAPSHOT_FORMAT,
            "version": SNAPSHOT_VERSION,
            "roots": roots,
            "import_map": import_map_url,
            "modules": modules,
        }

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(
                _zip_info("manifest.json"),
                json.dumps(manifest, indent=2, sort_keys=True),
                compresslevel=self.compresslevel,
            )
            index = 0
            for module in modules:
                if module["kind"] != "module":
                    continue
                zf.writestr(_zip_info(module["file"]), sources[index], compresslevel=self.compresslevel)
                index += 1

        return buffer.getvalue()


def _zip_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=_ZIP_EPOCH)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    return info


def read_snapshot_manifest(data: bytes) -> dict[str, Any]:
    """Return the ``manifest.json`` of a snapshot artifact."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return json.loads(zf.read("manifest.json"))


def write_bundle(dest_path: str | Path, data: bytes) -> Path:
    """Atomically write ``data`` to ``dest_path``."""
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest_path.name}-", dir=dest_path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, dest_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    return dest_path


async def write_entry_bundle(
    *,
    base_path: str | Path,
    dest_path: str | Path,
    declarations: list[FunctionDeclaration],
    import_map_url: str | None = None,
    bundler: Bundler | None = None,
    **loader_options: Any,
) -> Path:
    """Assemble the entry module, bundle its graph, and write the artifact."""
    bundler = bundler or SnapshotBundler()
    entry_source = assemble(base_path, declarations)

    async with ModuleLoader(base_path, entry_source, **loader_options) as loader:
        try:
            data = await bundler.build([ENTRY_SPECIFIER], loader, import_map_url)
        except EdgeError:
            raise
        except Exception as exc:
            raise BundleError(f"Bundler failed: {exc}", cause=exc) from exc

    path = write_bundle(dest_path, data)
    logger.info("bundle_written", path=str(path), size=len(data), functions=len(declarations))
    return path


__all__ = [
    "Bundler",
    "Loader",
    "SnapshotBundler",
    "read_snapshot_manifest",
    "scan_imports",
    "write_bundle",
    "write_entry_bundle",
]
