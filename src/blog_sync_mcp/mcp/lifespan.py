"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..context import BlogContext, load_runtime_config
from ..core.async_utils import call_with_retry, run_sync

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[BlogContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Resolve config: CLI > env vars (.env loaded first) > YAML > defaults
    - Open the local store and reconcile it with its backing files
    - Validate the GitHub token; fail fast if it is missing or rejected

    On shutdown:
    - Close the local store

    Args:
        config_overrides: Optional dict with config values from CLI
            (owner, repo, branch, data_dir)

    Yields:
        The initialized BlogContext

    Raises:
        RuntimeError: If configuration is invalid or GitHub rejects the token.
    """
    logger.info("MCP server starting...")
    _stderr_print("Blog Sync MCP Server starting...")

    try:
        config, _unified, sources = load_runtime_config(config_overrides)
        source_desc = ", ".join(sources) if sources else "defaults"
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Repository: %s (%s)", config.full_name, config.branch)
        _stderr_print(f"  Repository: {config.full_name} ({config.branch})")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN are set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN are set."
        ) from e

    ctx = BlogContext.create(config)

    report = await run_sync(ctx.store.reconcile)
    if report.changed:
        _stderr_print(
            f"  Local store repaired: {len(report.orphan_files)} orphan files, "
            f"{len(report.dangling_records)} dangling records removed"
        )
    _stderr_print(f"  Data directory: {config.data_path}")

    logger.info("Validating GitHub token...")
    _stderr_print("  Validating GitHub token...")
    try:
        login = await run_sync(call_with_retry, ctx.client.get_authenticated_user)
        logger.info("Authenticated to GitHub as %s", login)
        _stderr_print(f"  Authenticated as {login}")
        _stderr_print("Server ready. Waiting for MCP client connection...")
    except Exception as e:
        ctx.close()
        logger.error("GitHub authentication failed: %s", e)
        _stderr_print("ERROR: GitHub authentication failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check GITHUB_TOKEN and GITHUB_API_URL.")
        raise RuntimeError(
            f"GitHub authentication failed: {e}. Check GITHUB_TOKEN and GITHUB_API_URL."
        ) from e

    try:
        yield ctx
    finally:
        ctx.close()
        logger.info("MCP server shutting down")
        _stderr_print("Blog Sync MCP Server shutting down.")
