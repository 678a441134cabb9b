"""Module specifier classification.

Every specifier the bundler asks about falls into exactly one
``SpecifierKind``.  Rules are evaluated in a fixed priority order and the
first match wins:

    .. code-block:: text

        1. ENTRY     exact match of the synthetic entry specifier
        2. EXTERNAL  exact match of the runtime-provided specifier
        3. VIRTUAL   starts with the virtual root URL
        4. REMOTE    anything else (network URL or filesystem path)

Classification depends on the specifier string alone, never on load order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ENTRY_SPECIFIER = "edgehost:bootstrap-entry"
PUBLIC_SPECIFIER = "edgehost:edge"
VIRTUAL_ROOT = "file:///virtual-root/"


class SpecifierKind(str, Enum):
    ENTRY = "entry"
    EXTERNAL = "external"
    VIRTUAL = "virtual"
    REMOTE = "remote"


@dataclass(frozen=True)
class SpecifierPolicy:
    """The three fixed strings the classification rules compare against."""

    entry_specifier: str = ENTRY_SPECIFIER
    external_specifier: str = PUBLIC_SPECIFIER
    virtual_root: str = VIRTUAL_ROOT

    def classify(self, specifier: str) -> SpecifierKind:
        if specifier == self.entry_specifier:
            return SpecifierKind.ENTRY
        if specifier == self.external_specifier:
            return SpecifierKind.EXTERNAL
        if specifier.startswith(self.virtual_root):
            return SpecifierKind.VIRTUAL
        return SpecifierKind.REMOTE


DEFAULT_POLICY = SpecifierPolicy()


def classify(specifier: str, policy: SpecifierPolicy = DEFAULT_POLICY) -> SpecifierKind:
    """Classify ``specifier`` under ``policy``.

    >>> classify("edgehost:bootstrap-entry")
    <SpecifierKind.ENTRY: 'entry'>
    >>> classify("file:///virtual-root/hello.ts")
    <SpecifierKind.VIRTUAL: 'virtual'>
    >>> classify("https://deno.land/std/path/mod.ts")
    <SpecifierKind.REMOTE: 'remote'>
    """
    return policy.classify(specifier)


__all__ = [
    "DEFAULT_POLICY",
    "ENTRY_SPECIFIER",
    "PUBLIC_SPECIFIER",
    "VIRTUAL_ROOT",
    "SpecifierKind",
    "SpecifierPolicy",
    "classify",
]
