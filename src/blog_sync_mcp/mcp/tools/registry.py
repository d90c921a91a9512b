"""ToolSpec and ToolRegistry for capability-based tool filtering.

Operators can restrict which tools are exposed to agents, e.g. a read-only
server that can list documents but never publish.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, required
  capabilities, and an async handler with signature (ctx, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed capabilities at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.
- load_permissions_file: Reads a simple text file of capability names.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import mcp.types as types

from ...errors import BlogSyncError

if TYPE_CHECKING:
    from ...context import BlogContext

logger = logging.getLogger(__name__)

BLOG_READ = "BLOG_READ"
BLOG_WRITE = "BLOG_WRITE"


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Capabilities required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (ctx, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[[BlogContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional capability filtering.

    If allowed_permissions is None, all specs are included.  Otherwise a
    spec is included only if its permissions are empty or a subset of
    allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        ctx: BlogContext,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its handler.

        Sync core exceptions, validation errors and unexpected failures are
        translated into structured responses with corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_blog_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(ctx, args)
        except BlogSyncError as e:
            logger.warning("%s failed in %s: %s", type(e).__name__, name, e)
            return translate_blog_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load capabilities from a text file.

    Format: one capability per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Read-only server
        BLOG_READ

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains invalid names or is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if not stripped.replace("_", "").isalpha() or not stripped.isupper():
            raise ValueError(
                f"Invalid permission '{stripped}' at line {line_num} in {path}. "
                "Expected UPPER_SNAKE_CASE (e.g., BLOG_READ)."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(permissions)
