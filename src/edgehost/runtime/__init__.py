"""Runtime binary management.

Architecture:

    .. code-block:: text

        edgehost.runtime
        ├── platform.py    ← target triple + binary name
        ├── versions.py    ← VersionResolver (latest pointer + range check)
        ├── downloader.py  ← Downloader (fetch + extract, 4 attempts)
        ├── manager.py     ← BinaryManager (ensure_binary / run / spawn)
        └── types.py       ← ensure_latest_types (types-version.txt)
"""

from edgehost.runtime.downloader import BinaryInstallation, Downloader
from edgehost.runtime.manager import BinaryManager, CommandResult
from edgehost.runtime.platform import get_binary_name, get_platform_target
from edgehost.runtime.types import ensure_latest_types
from edgehost.runtime.versions import VersionResolver, satisfies

__all__ = [
    "BinaryInstallation",
    "BinaryManager",
    "CommandResult",
    "Downloader",
    "VersionResolver",
    "ensure_latest_types",
    "get_binary_name",
    "get_platform_target",
    "satisfies",
]
