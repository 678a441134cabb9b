"""Platform target detection for runtime release archives."""

from __future__ import annotations

import platform
import sys

BINARY_NAME = "deno"

_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}


def get_platform_target(system: str | None = None, machine: str | None = None) -> str:
    """Return the release target triple for the current (or given) host.

    >>> get_platform_target("linux", "x86_64")
    'x86_64-unknown-linux-gnu'
    >>> get_platform_target("darwin", "arm64")
    'aarch64-apple-darwin'
    """
    system = (system or sys.platform).lower()
    machine = (machine or platform.machine()).lower()
    arch = _ARCH_ALIASES.get(machine)
    if arch is None:
        raise RuntimeError(f"Unsupported architecture: {machine}")

    if system.startswith("win"):
        return "x86_64-pc-windows-msvc"
    if system == "darwin":
        return f"{arch}-apple-darwin"
    if system.startswith("linux"):
        return f"{arch}-unknown-linux-gnu"

    raise RuntimeError(f"Unsupported platform: {system}")


def get_binary_name(system: str | None = None) -> str:
    """Executable file name inside the release archive."""
    system = (system or sys.platform).lower()
    return f"{BINARY_NAME}.exe" if system.startswith("win") else BINARY_NAME


def binary_name_for_target(target: str) -> str:
    """Executable file name inside the archive built for ``target``."""
    return get_binary_name("win32" if "windows" in target else "linux")
