"""Tests for specifier classification."""

import pytest

from edgehost.bundling.specifiers import (
    ENTRY_SPECIFIER,
    PUBLIC_SPECIFIER,
    VIRTUAL_ROOT,
    SpecifierKind,
    SpecifierPolicy,
    classify,
)


class TestClassify:
    """Test the four specifier kinds."""

    @pytest.mark.parametrize(
        "specifier, kind",
        [
            (ENTRY_SPECIFIER, SpecifierKind.ENTRY),
            (PUBLIC_SPECIFIER, SpecifierKind.EXTERNAL),
            (VIRTUAL_ROOT + "hello.ts", SpecifierKind.VIRTUAL),
            (VIRTUAL_ROOT + "nested/dir/a.js", SpecifierKind.VIRTUAL),
            ("https://deno.land/std/path/mod.ts", SpecifierKind.REMOTE),
            ("file:///home/user/fn/a.ts", SpecifierKind.REMOTE),
            ("/home/user/fn/a.ts", SpecifierKind.REMOTE),
            ("npm:left-pad", SpecifierKind.REMOTE),
        ],
    )
    def test_kinds(self, specifier, kind):
        assert classify(specifier) is kind

    def test_prefix_of_entry_is_not_entry(self):
        assert classify(ENTRY_SPECIFIER + "/x") is SpecifierKind.REMOTE

    def test_priority_order(self):
        # A policy where every rule would match the same string.
        policy = SpecifierPolicy(
            entry_specifier="file:///virtual-root/x",
            external_specifier="file:///virtual-root/x",
            virtual_root="file:///virtual-root/",
        )
        assert policy.classify("file:///virtual-root/x") is SpecifierKind.ENTRY

        policy = SpecifierPolicy(external_specifier="file:///virtual-root/x")
        assert policy.classify("file:///virtual-root/x") is SpecifierKind.EXTERNAL

    def test_classification_is_stable(self):
        specifiers = [ENTRY_SPECIFIER, PUBLIC_SPECIFIER, VIRTUAL_ROOT + "a.ts", "https://x.test/a.ts"]
        first = [classify(s) for s in specifiers]
        second = [classify(s) for s in reversed(specifiers)][::-1]
        assert first == second
