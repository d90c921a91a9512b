"""Tests for the MCP server module: ping, registry wiring and entry point."""

import sys
from unittest.mock import MagicMock, patch

import pytest

from blog_sync_mcp.mcp import server
from blog_sync_mcp.mcp.server import (
    PING_SPEC,
    build_registry,
    get_context,
    get_registry,
    handle_call_tool,
    handle_list_tools,
    run,
    set_context,
    set_registry,
)


@pytest.fixture
def wired(blog_ctx):
    set_context(blog_ctx)
    set_registry(build_registry())
    yield blog_ctx
    set_context(None)
    set_registry(None)


# ---------------------------------------------------------------------------
# Ping
# ---------------------------------------------------------------------------


class TestPing:
    async def test_connected(self, blog_ctx):
        result = await PING_SPEC.handler(blog_ctx, {})
        assert not result.isError
        assert result.content[0].text == (
            "Blog Sync MCP server connected as octocat. "
            "Repository: octocat/octocat.github.io (main)"
        )

    async def test_missing_token(self, blog_ctx, fake_client):
        fake_client.token = None
        result = await PING_SPEC.handler(blog_ctx, {})
        assert result.isError is True
        assert result.content[0].text.startswith("GitHub connection failed: Not authenticated")

    def test_always_available(self):
        assert PING_SPEC.permissions == frozenset()


# ---------------------------------------------------------------------------
# Globals and registry
# ---------------------------------------------------------------------------


def test_accessors_raise_before_startup():
    set_context(None)
    set_registry(None)
    with pytest.raises(RuntimeError, match="BlogContext not initialized"):
        get_context()
    with pytest.raises(RuntimeError, match="ToolRegistry not initialized"):
        get_registry()


def test_build_registry_all_tools():
    registry = build_registry()
    names = [t.name for t in registry.list_tools()]
    assert names[0] == "ping"
    assert registry.tool_count() == 8


def test_build_registry_read_only(tmp_path, capsys):
    permissions = tmp_path / "read-only.permissions"
    permissions.write_text("BLOG_READ\n")

    registry = build_registry(str(permissions))

    assert sorted(t.name for t in registry.list_tools()) == ["blog_list", "blog_status", "ping"]
    assert "3 of 8 tools enabled" in capsys.readouterr().err


async def test_list_tools_handler(wired):
    tools = await handle_list_tools()
    assert len(tools) == 8


async def test_call_tool_handler(wired):
    result = await handle_call_tool("blog_list", {"kind": "drafts"})
    assert result.content[0].text == "No documents (drafts)."


async def test_unknown_tool(wired):
    result = await handle_call_tool("blog_delete", {})
    assert result.isError is True
    assert result.content[0].text.startswith("Error (unknown_tool): Unknown tool: blog_delete")


# ---------------------------------------------------------------------------
# run()
# ---------------------------------------------------------------------------


class TestRun:
    def _run(self, argv, side_effect=None):
        with (
            patch.object(sys, "argv", ["blog-sync-mcp", *argv]),
            patch.object(server, "main", MagicMock()) as mock_main,
            patch.object(server.asyncio, "run", MagicMock(side_effect=side_effect)),
        ):
            run()
        return mock_main.call_args.kwargs["config_overrides"]

    def test_overrides_passed(self, capsys):
        overrides = self._run(["--owner", "octocat", "--repo", "blog", "--data-dir", "/srv/blog"])

        assert overrides == {
            "owner": "octocat",
            "repo": "blog",
            "data_dir": "/srv/blog",
            "log_file": "/tmp/blog-sync-mcp.log",
        }
        assert "Config overrides from CLI: owner, repo, data_dir" in capsys.readouterr().err

    def test_runtime_error_exits_1(self):
        with pytest.raises(SystemExit) as exc_info:
            self._run([], side_effect=RuntimeError("Configuration error"))
        assert exc_info.value.code == 1

    def test_no_token_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            self._run(["--token", "ghp_secret"])
        assert exc_info.value.code == 2
