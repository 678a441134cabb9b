"""Readiness gate — waits until the runtime accepts connections.

Two tasks race under ``asyncio.wait(..., return_when=FIRST_COMPLETED)``:

    .. code-block:: text

        port poller   ─┐   connect every ``interval`` seconds
                       ├─► first to finish wins, the other is cancelled
        exit watcher  ─┘   process.wait()

The poller winning means ready (``True``); the process exiting first
means not ready (``False``).  ``timeout`` bounds the whole wait so a
process that neither opens the port nor exits cannot hang the caller;
expiry also yields ``False``.
"""

from __future__ import annotations

import asyncio
import contextlib

from edgehost.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL = 0.1
DEFAULT_TIMEOUT = 30.0


async def is_port_open(host: str, port: int, connect_timeout: float = 1.0) -> bool:
    """Single connection attempt against ``host:port``."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=connect_timeout)
    except (OSError, asyncio.TimeoutError):
        return False

    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return True


async def _poll_port(host: str, port: int, interval: float) -> None:
    while not await is_port_open(host, port, connect_timeout=max(interval, 0.5)):
        await asyncio.sleep(interval)


async def wait_for_server(
    port: int,
    process: asyncio.subprocess.Process,
    *,
    host: str = "127.0.0.1",
    interval: float = DEFAULT_INTERVAL,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> bool:
    """Return True once ``port`` accepts connections, False if ``process`` exits first."""
    if process.returncode is not None:
        return False

    poller = asyncio.create_task(_poll_port(host, port, interval), name=f"poll-port-{port}")
    watcher = asyncio.create_task(process.wait(), name=f"wait-exit-{process.pid}")

    try:
        done, _ = await asyncio.wait({poller, watcher}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (poller, watcher):
            if not task.done():
                task.cancel()
        await asyncio.gather(poller, watcher, return_exceptions=True)

    if poller in done and watcher not in done:
        error = poller.exception()
        if error is not None:
            logger.error("server_readiness_check_failed", port=port, pid=process.pid, error=str(error))
            return False
        logger.debug("server_ready", host=host, port=port, pid=process.pid)
        return True

    if watcher in done:
        logger.info("server_exited_before_ready", port=port, pid=process.pid, returncode=process.returncode)
        return False

    logger.warning("server_readiness_timeout", port=port, pid=process.pid, timeout=timeout)
    return False


__all__ = ["DEFAULT_INTERVAL", "DEFAULT_TIMEOUT", "is_port_open", "wait_for_server"]
