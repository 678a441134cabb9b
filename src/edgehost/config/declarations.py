"""Function declarations handed to the isolate supervisor."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FunctionDeclaration:
    """A user function module exported under ``name``.

    ``path`` is an absolute file path; relative input is resolved against
    the current directory at construction.
    """

    name: str
    path: Path

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Function name must not be empty")
        object.__setattr__(self, "path", Path(os.path.abspath(self.path)))


def common_base_path(
    declarations: list[FunctionDeclaration],
    fallback: str | Path,
    root: str | Path | None = None,
) -> Path:
    """Deepest directory containing every declared module and ``root``.

    ``root`` is the project directory; modules reached by relative imports
    must live below the returned path.
    """
    directories = [str(declaration.path.parent) for declaration in declarations]
    if root is not None:
        directories.append(os.path.abspath(root))
    if not directories:
        return Path(fallback)
    return Path(os.path.commonpath(directories))


__all__ = ["FunctionDeclaration", "common_base_path"]
