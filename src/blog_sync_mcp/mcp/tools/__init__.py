"""MCP tool handlers for blog operations.

Tool handlers wrap the synchronous sync core with async handlers and
structured error responses.
"""

from .blog import BLOG_SPECS, BLOG_TOOLS
from .errors import build_error_response, translate_blog_error
from .registry import (
    BLOG_READ,
    BLOG_WRITE,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)

ALL_SPECS: list[ToolSpec] = list(BLOG_SPECS)

__all__ = [
    "build_error_response",
    "translate_blog_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "BLOG_READ",
    "BLOG_WRITE",
    # ToolSpec lists
    "ALL_SPECS",
    "BLOG_SPECS",
    "BLOG_TOOLS",
]
