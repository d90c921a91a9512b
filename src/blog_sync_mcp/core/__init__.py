"""GitHub access layer for blog_sync_mcp."""

from .client import GitHubClient

__all__ = ["GitHubClient"]
