"""MCP Server for blog synchronization using stdio transport.

Exposes sync, publish and local listing of a GitHub-hosted markdown blog
as MCP tools.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..context import BlogContext
from ..core.async_utils import call_with_retry, run_sync
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..version import check_version_consistency
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("blog-sync-mcp")

# Initialized in main()
_context: BlogContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(ctx: BlogContext, args: dict) -> types.CallToolResult:
    """Handle ping tool -- test GitHub connectivity and the token."""
    try:
        login = await run_sync(call_with_retry, ctx.client.get_authenticated_user)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=(
                        f"Blog Sync MCP server connected as {login}. "
                        f"Repository: {ctx.config.full_name} ({ctx.config.branch})"
                    ),
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"GitHub connection failed: {e}. Check GITHUB_TOKEN and GITHUB_API_URL.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test GitHub connectivity and return the authenticated user",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> BlogContext:
    """Get the global BlogContext.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _context is None:
        raise RuntimeError("BlogContext not initialized. Server lifespan not started.")
    return _context


def set_context(ctx: BlogContext | None) -> None:
    global _context
    _context = ctx


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    ctx = get_context()
    try:
        return await get_registry().call_tool(name, arguments, ctx)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the registry, filtered by a permissions file when given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict with values overriding config
            (owner, repo, branch, data_dir, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", log_file=overrides.get("log_file"))

    is_consistent, message = check_version_consistency()
    if not is_consistent:
        logger.warning(message)
        sys.stderr.write(f"Warning: {message}\n")
    else:
        logger.info(message)

    set_registry(build_registry(overrides.get("permissions_file")))

    # set_context() is called here, not in the lifespan, so running this
    # file as __main__ still updates the module the handlers read from.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_context(ctx)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="blog-sync-mcp",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Blog Sync MCP Server - sync and publish a GitHub-hosted markdown blog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .blog_sync/config.yml)
  blog-sync-mcp

  # Override the repository
  blog-sync-mcp --owner octocat --repo octocat.github.io

  # Read-only server (no sync or publish)
  blog-sync-mcp --permissions-file ./read-only.permissions

The token is read from GITHUB_TOKEN only (never from the command line).
All user-facing messages are written to stderr; stdout carries JSON-RPC.
        """,
    )

    parser.add_argument("--owner", help="Repository owner (overrides GITHUB_OWNER)")
    parser.add_argument("--repo", help="Repository name (overrides GITHUB_REPO)")
    parser.add_argument("--branch", help="Publishing branch (overrides GITHUB_BRANCH)")
    parser.add_argument(
        "--data-dir", help="Local data directory (overrides BLOG_DATA_DIR)"
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one capability per line (BLOG_READ, BLOG_WRITE), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"blog-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides = {
        key: value
        for key, value in (
            ("owner", args.owner),
            ("repo", args.repo),
            ("branch", args.branch),
            ("data_dir", args.data_dir),
            ("log_file", args.log_file),
            ("permissions_file", args.permissions_file),
        )
        if value
    }

    cli_keys = [k for k in config_overrides if k != "log_file"]
    if cli_keys:
        print(f"Config overrides from CLI: {', '.join(cli_keys)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Already reported on stderr by the lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
