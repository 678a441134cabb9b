"""Functions manifest loader.

The manifest lists the functions to serve and an optional import map::

    {
      "version": 1,
      "functions": [{"name": "hello", "path": "functions/hello.ts"}],
      "import_map": "import_map.json"
    }

Paths are resolved against the manifest's directory.  A missing manifest
yields an empty one; an unsupported ``version`` raises ``ConfigError``;
any other parse failure is logged and yields an empty manifest.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from edgehost.config.declarations import FunctionDeclaration
from edgehost.config.import_map import ImportMapFile, read_file
from edgehost.core.errors import ConfigError
from edgehost.core.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_VERSION = 1


class FunctionEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    path: str = Field(min_length=1)


class ManifestFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int
    functions: list[FunctionEntry] = Field(default_factory=list)
    import_map: str | None = None


@dataclass
class FunctionsManifest:
    declarations: list[FunctionDeclaration] = field(default_factory=list)
    import_map: ImportMapFile | None = None


def load(path: str | Path | None) -> FunctionsManifest:
    """Load and validate a functions manifest."""
    if path is None:
        return FunctionsManifest()

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return FunctionsManifest()
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("manifest_parse_failed", path=str(path), error=str(exc))
        return FunctionsManifest()

    return parse(data, path)


def parse(data: object, path: Path) -> FunctionsManifest:
    if isinstance(data, dict) and data.get("version") != SUPPORTED_VERSION:
        raise ConfigError(f"Unsupported file version: {data.get('version')}").with_context(path=str(path))

    try:
        manifest = ManifestFile.model_validate(data)
    except PydanticValidationError as exc:
        logger.error("manifest_parse_failed", path=str(path), error=str(exc))
        return FunctionsManifest()

    base_dir = path.resolve().parent
    declarations = [
        FunctionDeclaration(name=entry.name, path=base_dir / entry.path) for entry in manifest.functions
    ]
    import_map = read_file(base_dir / manifest.import_map) if manifest.import_map else None

    return FunctionsManifest(declarations=declarations, import_map=import_map)


__all__ = ["FunctionsManifest", "load", "parse"]
