"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolRegistry filtering (no filter, permission filter, empty permissions)
- ToolRegistry call_tool dispatch and exception translation
- load_permissions_file parsing, validation, and error cases
- The shipped blog tool specs and their capabilities
"""

import dataclasses

import mcp.types as types
import pytest

from blog_sync_mcp.errors import DocumentNotFound, RequestFailed
from blog_sync_mcp.mcp.tools import ALL_SPECS
from blog_sync_mcp.mcp.tools.registry import (
    BLOG_READ,
    BLOG_WRITE,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)


def _make_spec(name, permissions=frozenset(), handler=None):
    if handler is None:

        async def handler(ctx, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}:{args}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=permissions,
        handler=handler,
    )


def _raising(exc):
    async def handler(ctx, args):
        raise exc

    return handler


def _text(result):
    return result.content[0].text


# ---------------------------------------------------------------------------
# ToolSpec / filtering
# ---------------------------------------------------------------------------


def test_spec_is_frozen():
    spec = _make_spec("a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        spec.permissions = frozenset({"X"})


class TestFiltering:
    def setup_method(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("read", frozenset({BLOG_READ})),
            _make_spec("write", frozenset({BLOG_WRITE})),
            _make_spec("both", frozenset({BLOG_READ, BLOG_WRITE})),
        ]

    def test_no_filter_includes_all(self):
        registry = ToolRegistry(self.specs)
        assert registry.tool_count() == 4

    def test_read_only(self):
        registry = ToolRegistry(self.specs, frozenset({BLOG_READ}))
        assert [t.name for t in registry.list_tools()] == ["ping", "read"]

    def test_all_permissions_needed(self):
        registry = ToolRegistry(self.specs, frozenset({BLOG_WRITE}))
        assert [t.name for t in registry.list_tools()] == ["ping", "write"]

    def test_empty_permissions_always_included(self):
        registry = ToolRegistry(self.specs, frozenset({"OTHER"}))
        assert [t.name for t in registry.list_tools()] == ["ping"]


# ---------------------------------------------------------------------------
# call_tool
# ---------------------------------------------------------------------------


class TestCallTool:
    async def test_dispatch(self):
        registry = ToolRegistry([_make_spec("a")])
        result = await registry.call_tool("a", None, ctx=object())
        assert _text(result) == "ok:a:{}"

    async def test_unknown_tool(self):
        registry = ToolRegistry([_make_spec("a")])
        with pytest.raises(ValueError, match="Unknown tool: b"):
            await registry.call_tool("b", {}, ctx=object())

    async def test_filtered_tool_is_unknown(self):
        registry = ToolRegistry([_make_spec("w", frozenset({BLOG_WRITE}))], frozenset({BLOG_READ}))
        with pytest.raises(ValueError):
            await registry.call_tool("w", {}, ctx=object())

    async def test_blog_error_translated(self):
        registry = ToolRegistry([_make_spec("a", handler=_raising(DocumentNotFound("abc")))])
        result = await registry.call_tool("a", {}, ctx=object())
        assert result.isError is True
        assert _text(result).startswith("Error (not_found): Document 'abc' not found")

    async def test_remote_error_translated(self):
        exc = RequestFailed("GET returned 401", status=401)
        registry = ToolRegistry([_make_spec("a", handler=_raising(exc))])
        result = await registry.call_tool("a", {}, ctx=object())
        assert _text(result).startswith("Error (remote_error)")
        assert "GITHUB_TOKEN" in _text(result)

    async def test_value_error_is_validation_error(self):
        registry = ToolRegistry([_make_spec("a", handler=_raising(ValueError("bad")))])
        result = await registry.call_tool("a", {}, ctx=object())
        assert _text(result).startswith("Error (validation_error): bad")

    async def test_unexpected_error_is_server_error(self):
        registry = ToolRegistry([_make_spec("a", handler=_raising(KeyError("x")))])
        result = await registry.call_tool("a", {}, ctx=object())
        assert result.isError is True
        assert _text(result).startswith("Error (server_error)")
        assert "Check the server log" in _text(result)


# ---------------------------------------------------------------------------
# load_permissions_file
# ---------------------------------------------------------------------------


class TestLoadPermissionsFile:
    def test_parses_names_and_comments(self, tmp_path):
        path = tmp_path / "read-only.permissions"
        path.write_text("# Read-only server\n\nBLOG_READ\n  BLOG_READ  \n")
        assert load_permissions_file(path) == frozenset({BLOG_READ})

    def test_invalid_name(self, tmp_path):
        path = tmp_path / "bad.permissions"
        path.write_text("BLOG_READ\nblog-write\n")
        with pytest.raises(ValueError, match="line 2"):
            load_permissions_file(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.permissions"
        path.write_text("# nothing\n")
        with pytest.raises(ValueError, match="No permissions found"):
            load_permissions_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_permissions_file(tmp_path / "missing.permissions")


# ---------------------------------------------------------------------------
# Shipped specs
# ---------------------------------------------------------------------------


def test_blog_specs_capabilities():
    by_name = {spec.tool.name: spec.permissions for spec in ALL_SPECS}
    assert by_name == {
        "blog_sync": frozenset({BLOG_READ, BLOG_WRITE}),
        "blog_force_resync": frozenset({BLOG_READ, BLOG_WRITE}),
        "blog_publish": frozenset({BLOG_WRITE}),
        "blog_list": frozenset({BLOG_READ}),
        "blog_draft_create": frozenset({BLOG_WRITE}),
        "blog_status": frozenset({BLOG_READ}),
        "blog_draft_delete": frozenset({BLOG_WRITE}),
    }


def test_read_only_server_cannot_write():
    registry = ToolRegistry(ALL_SPECS, frozenset({BLOG_READ}))
    assert sorted(t.name for t in registry.list_tools()) == ["blog_list", "blog_status"]
