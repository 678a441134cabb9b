"""Entry module assembly.

The entry module imports every declared function under a positional alias
and exports a name → function mapping::

    import func0 from "file:///virtual-root/a.js";
    import func1 from "file:///virtual-root/b.js";

    export const functions = {"a": func0, "b": func1};

Aliases follow input order, so import lines and mapping entries stay in
lock-step.  Paths are expressed relative to the build's base directory
under the virtual root so absolute filesystem paths never reach the
bundler's specifier space.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from urllib.parse import quote, urljoin

from edgehost.bundling.specifiers import VIRTUAL_ROOT
from edgehost.config.declarations import FunctionDeclaration
from edgehost.core.errors import DuplicateNameError


def get_virtual_path(base_path: str | Path, file_path: str | Path, virtual_root: str = VIRTUAL_ROOT) -> str:
    """Express ``file_path`` as a URL under ``virtual_root``.

    >>> get_virtual_path("/fn", "/fn/nested/a.js")
    'file:///virtual-root/nested/a.js'
    """
    relative = Path(os.path.relpath(file_path, base_path)).as_posix()
    return urljoin(virtual_root, quote(relative))


def assemble(
    base_path: str | Path,
    declarations: list[FunctionDeclaration],
    virtual_root: str = VIRTUAL_ROOT,
) -> str:
    """Generate the entry module text for ``declarations``.

    Raises:
        DuplicateNameError: if two declarations share an exported name
    """
    seen: set[str] = set()
    import_lines: list[str] = []
    export_entries: list[str] = []

    for index, declaration in enumerate(declarations):
        if declaration.name in seen:
            raise DuplicateNameError(declaration.name)
        seen.add(declaration.name)

        alias = f"func{index}"
        url = get_virtual_path(base_path, declaration.path, virtual_root)
        import_lines.append(f"import {alias} from {json.dumps(url)};")
        export_entries.append(f"{json.dumps(declaration.name)}: {alias}")

    export_declaration = f"export const functions = {{{', '.join(export_entries)}}};"

    return "\n\n".join(["\n".join(import_lines), export_declaration])


__all__ = ["assemble", "get_virtual_path"]
