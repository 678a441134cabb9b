"""Entry assembly, module loading, and graph bundling.

Architecture:

    .. code-block:: text

        edgehost.bundling
        ├── specifiers.py  ← SpecifierKind classification (entry / external / virtual / remote)
        ├── entry.py       ← assemble(): declarations → entry module text
        ├── loader.py      ← ModuleLoader: specifier → source (retrying fetches)
        └── bundler.py     ← Bundler ABC, SnapshotBundler, write_entry_bundle()
"""

from edgehost.bundling.bundler import (
    Bundler,
    SnapshotBundler,
    read_snapshot_manifest,
    scan_imports,
    write_bundle,
    write_entry_bundle,
)
from edgehost.bundling.entry import assemble, get_virtual_path
from edgehost.bundling.loader import ExternalModule, ModuleLoader, ModuleSource
from edgehost.bundling.specifiers import (
    ENTRY_SPECIFIER,
    PUBLIC_SPECIFIER,
    VIRTUAL_ROOT,
    SpecifierKind,
    SpecifierPolicy,
    classify,
)

__all__ = [
    "Bundler",
    "ENTRY_SPECIFIER",
    "ExternalModule",
    "ModuleLoader",
    "ModuleSource",
    "PUBLIC_SPECIFIER",
    "SnapshotBundler",
    "SpecifierKind",
    "SpecifierPolicy",
    "VIRTUAL_ROOT",
    "assemble",
    "classify",
    "get_virtual_path",
    "read_snapshot_manifest",
    "scan_imports",
    "write_bundle",
    "write_entry_bundle",
]
