"""Runtime process supervision.

Architecture:

    .. code-block:: text

        edgehost.server
        ├── readiness.py   ← wait_for_server(): port poll raced against process exit
        ├── supervisor.py  ← IsolateSupervisor: bundle → spawn → ready, one process at a time
        └── serve.py       ← serve(): binary + types + import map + flags → supervisor
"""

from edgehost.server.readiness import wait_for_server
from edgehost.server.serve import InspectSettings, build_flags, serve
from edgehost.server.supervisor import IsolateSupervisor, StartResult

__all__ = [
    "InspectSettings",
    "IsolateSupervisor",
    "StartResult",
    "build_flags",
    "serve",
    "wait_for_server",
]
