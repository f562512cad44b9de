"""Tests for the tool catalog cache."""

import pytest

from mcprepl.lib import oj
from mcprepl.mcp.session.catalog import NO_TOOLS_MESSAGE, ToolCatalog, ToolDescriptor


def fetcher(tools):
    async def fetch():
        return tools

    return fetch


class TestToolDescriptor:
    def test_from_wire_shape(self):
        tool = ToolDescriptor.from_dict(
            {"name": "echo", "description": "Echo", "inputSchema": {"type": "object"}}
        )
        assert tool.input_schema == {"type": "object"}

    def test_missing_description(self):
        assert ToolDescriptor.from_dict({"name": "bare"}).summary() == "- bare: "


class TestToolCatalog:
    @pytest.mark.asyncio
    async def test_reload_replaces_contents(self):
        catalog = ToolCatalog()
        await catalog.reload(fetcher([{"name": "a"}, {"name": "b"}]))
        count = await catalog.reload(fetcher([{"name": "c"}]))

        assert count == 1
        assert catalog.names() == ["c"]
        assert catalog.lookup("a") is None

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous_list(self):
        catalog = ToolCatalog()
        await catalog.reload(fetcher([{"name": "a"}]))

        async def broken():
            raise RuntimeError("listing failed")

        with pytest.raises(RuntimeError):
            await catalog.reload(broken)
        assert catalog.names() == ["a"]

    @pytest.mark.asyncio
    async def test_empty_listing_is_loaded(self):
        catalog = ToolCatalog()
        assert await catalog.reload(fetcher([])) == 0
        assert catalog.loaded
        assert catalog.render() == NO_TOOLS_MESSAGE

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self):
        catalog = ToolCatalog()
        await catalog.reload(fetcher([{"description": "no name"}, {"name": "ok"}]))
        assert catalog.names() == ["ok"]

    @pytest.mark.asyncio
    async def test_clear(self):
        catalog = ToolCatalog()
        await catalog.reload(fetcher([{"name": "a"}]))
        catalog.clear()

        assert not catalog
        assert not catalog.loaded
        assert "a" not in catalog

    @pytest.mark.asyncio
    async def test_render_compact(self):
        catalog = ToolCatalog()
        await catalog.reload(
            fetcher([{"name": "a", "description": "first"}, {"name": "b", "description": "second"}])
        )
        assert catalog.render() == "- a: first\n- b: second"

    @pytest.mark.asyncio
    async def test_render_verbose_uses_input_schema_key(self):
        catalog = ToolCatalog()
        await catalog.reload(
            fetcher([{"name": "a", "description": "first", "inputSchema": {"type": "object"}}])
        )
        rendered = oj.loads(catalog.render(verbose=True))
        assert rendered == [
            {"name": "a", "description": "first", "input_schema": {"type": "object"}}
        ]
