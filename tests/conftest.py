"""
Shared pytest fixtures for edgehost tests.

This module provides:
- Settings pointing every endpoint at a mock host and the cache at tmp_path
- A free TCP port
- Release archive bytes for mocked downloads
- A fake runtime binary: an executable Python script that understands the
  subcommands the core invokes (``--version``, ``info``, ``cache``, ``run``)

Fake runtime behavior:
    ``run ... --port N``   writes its environment to ``env-N.json`` next to
                           itself, then listens on N until terminated.
                           ``FAKE_MODE=exit`` exits at once with code 3,
                           ``FAKE_MODE=hang`` sleeps without opening the port.
    ``info --json PATH``   prints a small JSON graph; a file named
                           ``info-fail`` next to the script makes it fail.
    ``cache -r URL``       succeeds unless ``cache-fail`` exists.
    Every call is appended to ``calls.log``.
"""

from __future__ import annotations

import io
import socket
import stat
import sys
import zipfile
from pathlib import Path

import pytest

from edgehost.core.settings import EdgeSettings
from edgehost.runtime.downloader import VERSION_MARKER
from edgehost.runtime.platform import get_binary_name

FAKE_VERSION = "1.40.2"

FAKE_RUNTIME = '''\
import json
import os
import socket
import sys
import time
from pathlib import Path

HERE = Path(__file__).resolve().parent
args = sys.argv[1:]

with open(HERE / "calls.log", "a", encoding="utf-8") as fh:
    fh.write(" ".join(args) + "\\n")

command = args[0] if args else ""

if command == "--version":
    print("deno {version} (release, x86_64-unknown-linux-gnu)")
elif command == "info":
    if (HERE / "info-fail").exists():
        print("error: module graph unavailable", file=sys.stderr)
        sys.exit(1)
    print(json.dumps({{"roots": [args[-1]], "modules": []}}))
elif command == "cache":
    if (HERE / "cache-fail").exists():
        print("error: cache refresh failed", file=sys.stderr)
        sys.exit(1)
elif command == "run":
    port = int(args[args.index("--port") + 1])
    (HERE / f"env-{{port}}.json").write_text(json.dumps(dict(os.environ)), encoding="utf-8")
    mode = os.environ.get("FAKE_MODE", "serve")
    if mode == "exit":
        print("boot failure", file=sys.stderr, flush=True)
        sys.exit(3)
    if mode == "hang":
        time.sleep(600)
        sys.exit(0)
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(("127.0.0.1", port))
    server.listen()
    print(f"listening on {{port}}", flush=True)
    while True:
        conn, _ = server.accept()
        conn.close()
else:
    print(f"unknown command: {{command}}", file=sys.stderr)
    sys.exit(2)
'''


def write_fake_runtime(directory: Path, *, version: str = FAKE_VERSION, marker: bool = True) -> Path:
    """Install the fake runtime in ``directory`` as if it had been downloaded."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / get_binary_name()
    path.write_text(f"#!{sys.executable}\n" + FAKE_RUNTIME.format(version=version), encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    if marker:
        (directory / VERSION_MARKER).write_text(version, encoding="utf-8")
    return path


def release_archive(binary_name: str = "deno", content: bytes = b"#!/bin/sh\necho deno\n") -> bytes:
    """Bytes of a release archive containing a single binary."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(binary_name, content)
    return buffer.getvalue()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def settings(cache_dir: Path) -> EdgeSettings:
    """Settings with mock endpoints and fast process supervision."""
    return EdgeSettings(
        cache_dir=cache_dir,
        version_range="^1.37.0",
        latest_version_url="https://dl.test/release-latest.txt",
        release_url_template="https://dl.test/release/v{version}/deno-{target}.zip",
        types_url="https://types.test",
        readiness_interval=0.05,
        readiness_timeout=15.0,
        kill_timeout=2.0,
    )


@pytest.fixture
def free_port() -> int:
    """A TCP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def fake_runtime(cache_dir: Path) -> Path:
    """Fake runtime binary installed in the settings' cache directory."""
    if sys.platform == "win32":
        pytest.skip("fake runtime relies on a POSIX shebang")
    return write_fake_runtime(cache_dir)


@pytest.fixture
def functions_dir(tmp_path: Path) -> Path:
    """Two user function modules, one of which imports a sibling helper."""
    directory = tmp_path / "functions"
    directory.mkdir()
    (directory / "hello.ts").write_text(
        'import { greet } from "./lib/greet.ts";\n'
        "export default () => new Response(greet());\n",
        encoding="utf-8",
    )
    (directory / "lib").mkdir()
    (directory / "lib" / "greet.ts").write_text(
        'export const greet = () => "hello";\n',
        encoding="utf-8",
    )
    (directory / "ping.ts").write_text(
        'import { Context } from "edgehost:edge";\n'
        'export default () => new Response("pong");\n',
        encoding="utf-8",
    )
    return directory
