"""Declarations, import maps, and the functions manifest."""

from edgehost.config.declarations import FunctionDeclaration, common_base_path
from edgehost.config.import_map import ImportMap, ImportMapFile, parse_import_map_url
from edgehost.config.manifest import FunctionsManifest, load

__all__ = [
    "FunctionDeclaration",
    "FunctionsManifest",
    "ImportMap",
    "ImportMapFile",
    "common_base_path",
    "load",
    "parse_import_map_url",
]
