"""Tests for the functions manifest and declarations."""

import json
from pathlib import Path

import pytest

from edgehost.config.declarations import FunctionDeclaration, common_base_path
from edgehost.config.manifest import load
from edgehost.core.errors import ConfigError


def write_manifest(directory: Path, data) -> Path:
    path = directory / "manifest.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path


class TestFunctionDeclaration:
    """Test the declaration record."""

    def test_relative_path_becomes_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        declaration = FunctionDeclaration("hello", "functions/hello.ts")
        assert declaration.path.is_absolute()
        assert declaration.path == Path.cwd() / "functions" / "hello.ts"

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            FunctionDeclaration("", "/fn/a.ts")

    def test_immutable(self):
        declaration = FunctionDeclaration("a", "/fn/a.ts")
        with pytest.raises(AttributeError):
            declaration.name = "b"


class TestCommonBasePath:
    """Test the build base directory."""

    def test_common_parent(self):
        declarations = [
            FunctionDeclaration("a", "/fn/a.js"),
            FunctionDeclaration("b", "/fn/nested/b.js"),
        ]
        assert common_base_path(declarations, "/dist") == Path("/fn").absolute()

    def test_fallback_when_empty(self):
        assert common_base_path([], "/dist") == Path("/dist")

    def test_root_widens_base(self):
        declarations = [FunctionDeclaration("a", "/project/functions/a.js")]
        assert common_base_path(declarations, "/dist", root="/project") == Path("/project").absolute()

    def test_root_alone(self):
        assert common_base_path([], "/dist", root="/project") == Path("/project").absolute()


class TestLoadManifest:
    """Test manifest parsing."""

    def test_full_manifest(self, tmp_path):
        (tmp_path / "import_map.json").write_text(json.dumps({"imports": {"x": "./x.ts"}}))
        path = write_manifest(
            tmp_path,
            {
                "version": 1,
                "functions": [
                    {"name": "hello", "path": "functions/hello.ts"},
                    {"name": "ping", "path": "functions/ping.ts"},
                ],
                "import_map": "import_map.json",
            },
        )

        manifest = load(path)

        base = tmp_path.resolve()
        assert [d.name for d in manifest.declarations] == ["hello", "ping"]
        assert manifest.declarations[0].path == base / "functions" / "hello.ts"
        assert manifest.import_map.resolved_imports() == {"x": (base / "x.ts").as_uri()}

    def test_missing_file_yields_empty_manifest(self, tmp_path):
        manifest = load(tmp_path / "absent.json")
        assert manifest.declarations == []
        assert manifest.import_map is None

    def test_none_yields_empty_manifest(self):
        assert load(None).declarations == []

    def test_unsupported_version(self, tmp_path):
        path = write_manifest(tmp_path, {"version": 2, "functions": []})
        with pytest.raises(ConfigError, match="Unsupported file version: 2"):
            load(path)

    def test_malformed_json_yields_empty_manifest(self, tmp_path):
        path = write_manifest(tmp_path, "{not json")
        assert load(path).declarations == []

    def test_invalid_entries_yield_empty_manifest(self, tmp_path):
        path = write_manifest(tmp_path, {"version": 1, "functions": [{"name": "x"}]})
        assert load(path).declarations == []
