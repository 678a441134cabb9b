"""Tests for import map reading, merging, and data URLs."""

import base64
import json

import pytest

from edgehost.config.import_map import (
    DATA_URL_PREFIX,
    ImportMap,
    ImportMapFile,
    parse_import_map_url,
    read_file,
    resolve_bare_specifier,
)
from edgehost.core.errors import ConfigError


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestReadFile:
    """Test loading import map files."""

    def test_relative_addresses_resolve_against_file(self, tmp_path):
        path = write_json(
            tmp_path / "import_map.json",
            {"imports": {"lib/": "./vendor/lib/", "react": "https://esm.sh/react"}},
        )
        file = read_file(path)

        imports = file.resolved_imports()
        assert imports["lib/"] == (tmp_path.resolve() / "vendor" / "lib").as_uri() + "/"
        assert imports["react"] == "https://esm.sh/react"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Could not read import map"):
            read_file(tmp_path / "nope.json")

    def test_not_an_object(self, tmp_path):
        with pytest.raises(ConfigError, match="JSON object"):
            read_file(write_json(tmp_path / "m.json", ["a"]))

    def test_invalid_sections(self, tmp_path):
        with pytest.raises(ConfigError, match="must be objects"):
            read_file(write_json(tmp_path / "m.json", {"imports": ["a"]}))


class TestImportMap:
    """Test merging and serialization."""

    def test_later_files_win(self):
        first = ImportMapFile("file:///a/", imports={"x": "https://one/x.ts", "y": "https://one/y.ts"})
        second = ImportMapFile("file:///b/", imports={"x": "https://two/x.ts"})

        contents = ImportMap([first, second]).get_contents()

        assert contents == {"imports": {"x": "https://two/x.ts", "y": "https://one/y.ts"}}

    def test_scopes_are_merged(self):
        first = ImportMapFile("file:///a/", scopes={"https://s/": {"x": "https://one/x.ts"}})
        second = ImportMapFile("file:///b/", scopes={"https://s/": {"y": "https://two/y.ts"}})

        contents = ImportMap([first]).get_contents()
        assert "scopes" in contents

        merged = ImportMap([first, second]).get_contents()
        assert merged["scopes"] == {"https://s/": {"x": "https://one/x.ts", "y": "https://two/y.ts"}}

    def test_empty_map(self):
        assert ImportMap().get_contents() == {"imports": {}}

    def test_add(self):
        import_map = ImportMap()
        import_map.add(ImportMapFile("file:///a/", imports={"x": "https://x"}))
        assert import_map.get_contents()["imports"] == {"x": "https://x"}

    def test_data_url_round_trips_contents(self):
        import_map = ImportMap([ImportMapFile("file:///a/", imports={"x": "./x.ts"})])
        url = import_map.to_data_url()

        assert url.startswith(DATA_URL_PREFIX)
        payload = json.loads(base64.b64decode(url[len(DATA_URL_PREFIX):]))
        assert payload == {"imports": {"x": "file:///a/x.ts"}}

    def test_data_url_is_deterministic(self):
        a = ImportMap([ImportMapFile("file:///a/", imports={"b": "https://b", "a": "https://a"})])
        b = ImportMap([ImportMapFile("file:///a/", imports={"a": "https://a", "b": "https://b"})])
        assert a.to_data_url() == b.to_data_url()

    def test_write_to_file(self, tmp_path):
        import_map = ImportMap([ImportMapFile("file:///a/", imports={"x": "https://x"})])
        dest = tmp_path / "dist" / "import_map.json"

        import_map.write_to_file(dest)

        assert json.loads(dest.read_text()) == {"imports": {"x": "https://x"}}


class TestParseImportMapUrl:
    """Test the forms accepted by the bundler."""

    def test_data_url(self):
        url = ImportMap([ImportMapFile("file:///a/", imports={"x": "https://x"})]).to_data_url()
        assert parse_import_map_url(url) == {"imports": {"x": "https://x"}}

    def test_file_url_and_path(self, tmp_path):
        path = write_json(tmp_path / "m.json", {"imports": {"x": "https://x"}})
        assert parse_import_map_url(path.as_uri())["imports"] == {"x": "https://x"}
        assert parse_import_map_url(str(path))["imports"] == {"x": "https://x"}

    def test_malformed_data_url(self):
        with pytest.raises(ConfigError, match="Malformed"):
            parse_import_map_url("data:application/json;base64,!!!not-json")


class TestResolveBareSpecifier:
    """Test bare specifier lookup."""

    IMPORTS = {
        "react": "https://esm.sh/react@18",
        "lib/": "https://cdn.test/lib/",
        "lib/deep/": "https://deep.test/",
    }

    def test_exact_match(self):
        assert resolve_bare_specifier(self.IMPORTS, "react") == "https://esm.sh/react@18"

    def test_longest_prefix_wins(self):
        assert resolve_bare_specifier(self.IMPORTS, "lib/a.ts") == "https://cdn.test/lib/a.ts"
        assert resolve_bare_specifier(self.IMPORTS, "lib/deep/b.ts") == "https://deep.test/b.ts"

    def test_no_match(self):
        assert resolve_bare_specifier(self.IMPORTS, "vue") is None
