"""Import maps: reading, merging, and data-URL serialization.

An import map maps bare specifiers (``"react"``, ``"lib/"``) to URLs.  The
runtime receives the merged map as a ``data:`` URL on its command line; the
bundler uses the same URL to resolve bare imports while walking the graph.

Relative addresses (``./``, ``../``, ``/``) are resolved against the URL of
the file they were read from, so merged maps stay valid regardless of the
directory the runtime is started in.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urljoin, urlparse

from edgehost.core.errors import ConfigError

DATA_URL_PREFIX = "data:application/json;base64,"


@dataclass
class ImportMapFile:
    """One import map document and the URL it was loaded from."""

    base_url: str
    imports: dict[str, str] = field(default_factory=dict)
    scopes: dict[str, dict[str, str]] = field(default_factory=dict)

    def resolved_imports(self) -> dict[str, str]:
        return {key: _resolve_address(address, self.base_url) for key, address in self.imports.items()}

    def resolved_scopes(self) -> dict[str, dict[str, str]]:
        return {
            _resolve_address(scope, self.base_url): {
                key: _resolve_address(address, self.base_url) for key, address in mapping.items()
            }
            for scope, mapping in self.scopes.items()
        }


def _resolve_address(address: str, base_url: str) -> str:
    if address.startswith(("./", "../", "/")):
        return urljoin(base_url, address)
    return address


def read_file(path: str | Path) -> ImportMapFile:
    """Load an import map JSON file.

    Raises:
        ConfigError: if the file is not a JSON object with valid sections
    """
    path = Path(path).resolve()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read import map {path}: {exc}", cause=exc).with_context(path=str(path)) from exc

    return _from_dict(data, path.as_uri())


def _from_dict(data: Any, base_url: str) -> ImportMapFile:
    if not isinstance(data, dict):
        raise ConfigError("Import map must be a JSON object").with_context(url=base_url)

    imports = data.get("imports") or {}
    scopes = data.get("scopes") or {}
    if not isinstance(imports, dict) or not isinstance(scopes, dict):
        raise ConfigError("Import map 'imports' and 'scopes' must be objects").with_context(url=base_url)

    return ImportMapFile(base_url=base_url, imports=dict(imports), scopes=dict(scopes))


class ImportMap:
    """Merged view over several import map files; later files win."""

    def __init__(self, files: list[ImportMapFile] | None = None) -> None:
        self.files: list[ImportMapFile] = list(files or [])

    def add(self, file: ImportMapFile) -> None:
        self.files.append(file)

    def get_contents(self) -> dict[str, Any]:
        imports: dict[str, str] = {}
        scopes: dict[str, dict[str, str]] = {}

        for file in self.files:
            imports.update(file.resolved_imports())
            for scope, mapping in file.resolved_scopes().items():
                scopes.setdefault(scope, {}).update(mapping)

        contents: dict[str, Any] = {"imports": imports}
        if scopes:
            contents["scopes"] = scopes
        return contents

    def to_data_url(self) -> str:
        payload = json.dumps(self.get_contents(), sort_keys=True).encode("utf-8")
        return DATA_URL_PREFIX + base64.b64encode(payload).decode("ascii")

    def write_to_file(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.get_contents(), indent=2), encoding="utf-8")


def parse_import_map_url(url: str) -> dict[str, Any]:
    """Load import map contents from a ``data:`` URL, ``file:`` URL, or path."""
    if url.startswith("data:"):
        header, _, payload = url.partition(",")
        try:
            raw = base64.b64decode(payload) if header.endswith(";base64") else unquote(payload).encode()
            data = json.loads(raw)
        except (ValueError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Malformed import map data URL: {exc}", cause=exc) from exc
        file = _from_dict(data, "file:///")
        return ImportMap([file]).get_contents()

    if url.startswith("file:"):
        url = unquote(urlparse(url).path)

    return ImportMap([read_file(url)]).get_contents()


def resolve_bare_specifier(imports: dict[str, str], specifier: str) -> str | None:
    """Resolve ``specifier`` through ``imports`` (exact match, then longest prefix)."""
    if specifier in imports:
        return imports[specifier]

    prefixes = [key for key in imports if key.endswith("/") and specifier.startswith(key)]
    if not prefixes:
        return None

    best = max(prefixes, key=len)
    return imports[best] + specifier[len(best):]


__all__ = [
    "DATA_URL_PREFIX",
    "ImportMap",
    "ImportMapFile",
    "parse_import_map_url",
    "read_file",
    "resolve_bare_specifier",
]
