"""Tests for the module loader.

Tests:
    - Entry and external specifiers never touch disk or network
    - Virtual-root specifiers map onto the base directory
    - Network fetches retry transient failures only
    - file:// and absolute paths are read from disk
"""

import httpx
import pytest

from edgehost.bundling.loader import ExternalModule, ModuleLoader, ModuleSource
from edgehost.bundling.specifiers import ENTRY_SPECIFIER, PUBLIC_SPECIFIER, VIRTUAL_ROOT
from edgehost.core.errors import ModuleLoadError, VirtualModuleNotFoundError

ENTRY = 'import func0 from "file:///virtual-root/a.ts";\n\nexport const functions = {"a": func0};'


class ScriptedHost:
    """Returns scripted responses per URL and counts requests."""

    def __init__(self, responses):
        self.responses = {url: list(items) for url, items in responses.items()}
        self.calls = {}

    def __call__(self, request):
        url = str(request.url)
        self.calls[url] = self.calls.get(url, 0) + 1
        item = self.responses[url].pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_loader(base_path, host=None, attempts=3) -> ModuleLoader:
    transport = httpx.MockTransport(host or ScriptedHost({}))
    return ModuleLoader(base_path, ENTRY, attempts=attempts, retry_delay=0.0, transport=transport)


class TestInlineKinds:
    """Test entry and external specifiers."""

    @pytest.mark.asyncio
    async def test_entry_is_inline(self, tmp_path):
        async with make_loader(tmp_path) as loader:
            result = await loader.load(ENTRY_SPECIFIER)

        assert isinstance(result, ModuleSource)
        assert result.specifier == ENTRY_SPECIFIER
        assert result.text == ENTRY

    @pytest.mark.asyncio
    async def test_external_marker(self, tmp_path):
        async with make_loader(tmp_path) as loader:
            result = await loader.load(PUBLIC_SPECIFIER)

        assert result == ExternalModule(specifier=PUBLIC_SPECIFIER)


class TestVirtualRoot:
    """Test virtual-root resolution."""

    @pytest.mark.asyncio
    async def test_reads_file_under_base_path(self, functions_dir):
        async with make_loader(functions_dir) as loader:
            result = await loader.load(VIRTUAL_ROOT + "lib/greet.ts")

        assert result.content == (functions_dir / "lib" / "greet.ts").read_bytes()
        assert result.specifier == VIRTUAL_ROOT + "lib/greet.ts"

    @pytest.mark.asyncio
    async def test_percent_encoded_path(self, tmp_path):
        (tmp_path / "my func.ts").write_text("export default 1;")
        async with make_loader(tmp_path) as loader:
            result = await loader.load(VIRTUAL_ROOT + "my%20func.ts")
        assert result.text == "export default 1;"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        async with make_loader(tmp_path) as loader:
            with pytest.raises(VirtualModuleNotFoundError) as exc_info:
                await loader.load(VIRTUAL_ROOT + "missing.ts")

        assert exc_info.value.context.path == str(tmp_path / "missing.ts")


class TestRemoteFetch:
    """Test network fetches with retry."""

    URL = "https://deno.test/std/mod.ts"

    @pytest.mark.asyncio
    async def test_retries_transient_status(self, tmp_path):
        host = ScriptedHost({self.URL: [httpx.Response(503), httpx.Response(200, text="export {};")]})

        async with make_loader(tmp_path, host) as loader:
            result = await loader.load(self.URL)

        assert result.text == "export {};"
        assert host.calls[self.URL] == 2

    @pytest.mark.asyncio
    async def test_retries_timeouts(self, tmp_path):
        request = httpx.Request("GET", self.URL)
        host = ScriptedHost(
            {self.URL: [httpx.ReadTimeout("slow", request=request), httpx.Response(200, text="ok")]}
        )

        async with make_loader(tmp_path, host) as loader:
            result = await loader.load(self.URL)

        assert result.text == "ok"

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self, tmp_path):
        host = ScriptedHost({self.URL: [httpx.Response(500)] * 3 + [httpx.Response(200, text="late")]})

        async with make_loader(tmp_path, host) as loader:
            with pytest.raises(ModuleLoadError) as exc_info:
                await loader.load(self.URL)

        assert exc_info.value.transient is True
        assert exc_info.value.status_code == 500
        assert host.calls[self.URL] == 3

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self, tmp_path):
        host = ScriptedHost({self.URL: [httpx.Response(404), httpx.Response(200, text="never")]})

        async with make_loader(tmp_path, host) as loader:
            with pytest.raises(ModuleLoadError) as exc_info:
                await loader.load(self.URL)

        assert exc_info.value.transient is False
        assert host.calls[self.URL] == 1

    @pytest.mark.asyncio
    async def test_malformed_content_is_permanent(self, tmp_path):
        host = ScriptedHost({self.URL: [httpx.Response(200, content=b"\xff\xfe\x00"), httpx.Response(200)]})

        async with make_loader(tmp_path, host) as loader:
            with pytest.raises(ModuleLoadError, match="not valid UTF-8"):
                await loader.load(self.URL)

        assert host.calls[self.URL] == 1

    @pytest.mark.asyncio
    async def test_redirect_reports_final_url(self, tmp_path):
        final = "https://deno.test/std@0.200.0/mod.ts"
        host = ScriptedHost(
            {
                self.URL: [httpx.Response(302, headers={"location": final})],
                final: [httpx.Response(200, text="export {};", headers={"content-type": "application/typescript"})],
            }
        )

        async with make_loader(tmp_path, host) as loader:
            result = await loader.load(self.URL)

        assert result.specifier == final
        assert result.headers == {"content-type": "application/typescript"}

    @pytest.mark.asyncio
    async def test_same_specifier_same_result(self, tmp_path):
        host = ScriptedHost({self.URL: [httpx.Response(200, text="a"), httpx.Response(200, text="a")]})

        async with make_loader(tmp_path, host) as loader:
            first = await loader.load(self.URL)
            second = await loader.load(self.URL)

        assert first == second


class TestFilesystem:
    """Test file URLs and absolute paths."""

    @pytest.mark.asyncio
    async def test_file_url(self, tmp_path):
        path = tmp_path / "util.ts"
        path.write_text("export const x = 1;")

        async with make_loader(tmp_path) as loader:
            result = await loader.load(path.as_uri())

        assert result.text == "export const x = 1;"

    @pytest.mark.asyncio
    async def test_absolute_path(self, tmp_path):
        path = tmp_path / "util.ts"
        path.write_text("export const y = 2;")

        async with make_loader(tmp_path) as loader:
            result = await loader.load(str(path))

        assert result.text == "export const y = 2;"

    @pytest.mark.asyncio
    async def test_missing_file_is_permanent_error(self, tmp_path):
        async with make_loader(tmp_path) as loader:
            with pytest.raises(ModuleLoadError, match="Could not read"):
                await loader.load((tmp_path / "gone.ts").as_uri())

    @pytest.mark.asyncio
    async def test_unsupported_scheme_returns_none(self, tmp_path):
        async with make_loader(tmp_path) as loader:
            assert await loader.load("npm:left-pad") is None
