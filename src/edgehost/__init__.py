"""edgehost — provision and supervise a sandboxed runtime for local edge functions.

Quick start:

    >>> from edgehost import FunctionDeclaration, serve
    >>> supervisor = await serve(port=8000)
    >>> result = await supervisor.start_isolate([FunctionDeclaration("hello", "functions/hello.ts")])
    >>> result.success
    True
"""

from edgehost.config.declarations import FunctionDeclaration
from edgehost.core.errors import (
    BundleError,
    CommandError,
    ConfigError,
    DownloadError,
    DuplicateNameError,
    EdgeError,
    ModuleLoadError,
    RangeMismatchError,
    VersionFetchError,
    VirtualModuleNotFoundError,
)
from edgehost.runtime.manager import BinaryManager
from edgehost.server.serve import InspectSettings, serve
from edgehost.server.supervisor import IsolateSupervisor, StartResult

__version__ = "0.3.0"

__all__ = [
    "BinaryManager",
    "BundleError",
    "CommandError",
    "ConfigError",
    "DownloadError",
    "DuplicateNameError",
    "EdgeError",
    "FunctionDeclaration",
    "InspectSettings",
    "IsolateSupervisor",
    "ModuleLoadError",
    "RangeMismatchError",
    "StartResult",
    "VersionFetchError",
    "VirtualModuleNotFoundError",
    "__version__",
    "serve",
]
