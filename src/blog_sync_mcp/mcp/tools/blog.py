"""Blog tool handlers for MCP server.

Remote tools (sync, forced resync, publish) and local ones (listing,
draft creation and deletion, status).
Handlers run the synchronous core through run_sync() so the event loop
keeps serving while a pass or publish does network I/O.  Core exceptions
propagate to ToolRegistry.call_tool, which translates them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.reporter import (
    document_to_json,
    format_publish_result,
    format_sync_report,
    publish_to_json,
    result_to_json,
)
from ...validators import (
    validate_commit_message,
    validate_content,
    validate_document_id,
    validate_list_kind,
)
from .errors import build_error_response
from .registry import BLOG_READ, BLOG_WRITE, ToolSpec

if TYPE_CHECKING:
    from ...content.models import Document
    from ...context import BlogContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


BLOG_TOOLS: list[types.Tool] = [
    types.Tool(
        name="blog_sync",
        description=(
            "Reconcile local documents with the blog repository. Downloads new "
            "and changed posts and deletes local copies of posts removed "
            "remotely. Posts edited locally within the recency window are kept "
            "unless force_delete is set. Local drafts are never touched."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "force_delete": {
                    "type": "boolean",
                    "default": False,
                    "description": "Delete posts missing remotely even if edited recently",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="blog_force_resync",
        description=(
            "Drop every published local document and download all posts "
            "again. Local drafts are kept. Use when local copies look corrupt."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="blog_publish",
        description=(
            "Publish a local document and its file:// images to the blog "
            "repository as a single commit. The branch is only moved once "
            "every blob, the tree and the commit exist."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "document_id": {
                    "type": "string",
                    "description": "Local document id (from blog_list)",
                },
                "commit_message": {
                    "type": "string",
                    "description": "Commit message for the publish commit",
                },
            },
            "required": ["document_id", "commit_message"],
        },
    ),
    types.Tool(
        name="blog_list",
        description="List local documents, newest first.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "kind": {
                    "type": "string",
                    "enum": ["all", "drafts", "published"],
                    "default": "all",
                    "description": "Which documents to list",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="blog_draft_create",
        description="Create a new local draft. Nothing is sent to GitHub until blog_publish.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Post title"},
                "body": {
                    "type": "string",
                    "description": "Markdown body; local images as ![alt](file:///abs/path.png)",
                },
                "summary": {"type": "string", "description": "Short summary (optional)"},
                "date": {
                    "type": "string",
                    "description": "Publication date, yyyy-MM-dd (optional, defaults to publish day)",
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags (optional)",
                },
            },
            "required": ["title"],
        },
    ),
    types.Tool(
        name="blog_status",
        description="Show the configured repository, local document counts and the last sync of this session.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="blog_draft_delete",
        description=(
            "Delete a local draft. Published documents cannot be deleted here; "
            "remove them from the repository and run blog_sync."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "document_id": {
                    "type": "string",
                    "description": "Draft id (from blog_list with kind=drafts)",
                },
            },
            "required": ["document_id"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync(ctx: BlogContext, args: dict) -> types.CallToolResult:
    force_delete = bool(args.get("force_delete", False))
    result = await run_sync(ctx.engine.sync, force_delete=force_delete)
    ctx.last_result = result
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_report(result))],
        structuredContent=result_to_json(result),
    )


async def _handle_force_resync(ctx: BlogContext, args: dict) -> types.CallToolResult:
    result = await run_sync(ctx.engine.force_resync)
    ctx.last_result = result
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_report(result))],
        structuredContent=result_to_json(result),
    )


async def _handle_publish(ctx: BlogContext, args: dict) -> types.CallToolResult:
    document_id = str(args.get("document_id", "")).strip()
    commit_message = str(args.get("commit_message", ""))

    for is_valid, error in (
        validate_document_id(document_id),
        validate_commit_message(commit_message),
    ):
        if not is_valid:
            return build_error_response(
                "validation_error", error, "Fix the parameter and retry."
            )

    document = await run_sync(ctx.store.require, document_id)
    result = await run_sync(ctx.publisher.publish, document, commit_message)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_publish_result(result))],
        structuredContent=publish_to_json(result),
    )


def _format_listing(kind: str, documents: list[Document]) -> str:
    if not documents:
        return f"No documents ({kind})."
    lines = [f"{len(documents)} document(s) ({kind}):"]
    for document in documents:
        state = "draft" if document.is_draft_local else "published"
        name = document.origin_filename or "-"
        lines.append(
            f"- {document.id}  {document.date or '----------'}  [{state}] "
            f"{document.title or '(untitled)'}  ({name})"
        )
    return "\n".join(lines)


async def _handle_list(ctx: BlogContext, args: dict) -> types.CallToolResult:
    kind = args.get("kind") or "all"
    is_valid, error = validate_list_kind(kind)
    if not is_valid:
        return build_error_response("validation_error", error, "Use all, drafts or published.")

    match kind:
        case "drafts":
            documents = await run_sync(ctx.store.list_drafts)
        case "published":
            documents = await run_sync(ctx.store.list_published)
        case _:
            documents = await run_sync(ctx.store.list_all)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=_format_listing(kind, documents))],
        structuredContent={
            "kind": kind,
            "documents": [document_to_json(d) for d in documents],
        },
    )


async def _handle_draft_create(ctx: BlogContext, args: dict) -> types.CallToolResult:
    title = str(args.get("title", "")).strip()
    body = str(args.get("body", ""))
    if not title:
        return build_error_response(
            "validation_error", "Title cannot be empty", "Provide a title."
        )
    is_valid, error = validate_content(body)
    if not is_valid:
        return build_error_response(
            "validation_error", error, "Split the post or shrink embedded content."
        )

    document = await run_sync(
        ctx.store.create_draft,
        title=title,
        summary=str(args.get("summary", "")),
        date=str(args.get("date", "")),
        tags=[str(t) for t in args.get("tags") or []],
        body=body,
    )
    logger.info("Created draft %s (%s)", document.id, title)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Created draft '{document.title}' with id {document.id}",
            )
        ],
        structuredContent=document_to_json(document),
    )


async def _handle_draft_delete(ctx: BlogContext, args: dict) -> types.CallToolResult:
    document_id = str(args.get("document_id", "")).strip()
    is_valid, error = validate_document_id(document_id)
    if not is_valid:
        return build_error_response(
            "validation_error", error, "Use blog_list with kind=drafts to find draft ids."
        )

    document = await run_sync(ctx.delete_draft, document_id)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Deleted draft '{document.title or '(untitled)'}' ({document.id})",
            )
        ],
        structuredContent=document_to_json(document),
    )


async def _handle_status(ctx: BlogContext, args: dict) -> types.CallToolResult:
    config = ctx.config
    counts = await run_sync(ctx.store.count)
    last = ctx.last_result

    lines = [
        f"Repository: {config.full_name} ({config.branch})",
        f"Blog path: {config.blog_path}",
        f"Image path: {config.image_path} -> {config.image_prefix}",
        f"Data directory: {config.data_path}",
        f"Local documents: {counts['drafts']} drafts, {counts['published']} published",
    ]
    if last is None:
        lines.append("Last sync: none in this session")
    else:
        summary = last.summary()
        lines.append(
            f"Last sync: {last.completed_at or last.started_at} "
            f"({summary['new']} new, {summary['updated']} updated, "
            f"{summary['deleted']} deleted, {summary['errors']} errors)"
        )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "repository": config.full_name,
            "branch": config.branch,
            "blog_path": config.blog_path,
            "image_path": config.image_path,
            "image_url_prefix": config.image_prefix,
            "data_dir": str(config.data_path),
            "counts": counts,
            "last_sync": result_to_json(last) if last is not None else None,
        },
    )


BLOG_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=BLOG_TOOLS[0],
        permissions=frozenset({BLOG_READ, BLOG_WRITE}),
        handler=_handle_sync,
    ),
    ToolSpec(
        tool=BLOG_TOOLS[1],
        permissions=frozenset({BLOG_READ, BLOG_WRITE}),
        handler=_handle_force_resync,
    ),
    ToolSpec(
        tool=BLOG_TOOLS[2],
        permissions=frozenset({BLOG_WRITE}),
        handler=_handle_publish,
    ),
    ToolSpec(
        tool=BLOG_TOOLS[3],
        permissions=frozenset({BLOG_READ}),
        handler=_handle_list,
    ),
    ToolSpec(
        tool=BLOG_TOOLS[4],
        permissions=frozenset({BLOG_WRITE}),
        handler=_handle_draft_create,
    ),
    ToolSpec(
        tool=BLOG_TOOLS[5],
        permissions=frozenset({BLOG_READ}),
        handler=_handle_status,
    ),
    ToolSpec(
        tool=BLOG_TOOLS[6],
        permissions=frozenset({BLOG_WRITE}),
        handler=_handle_draft_delete,
    ),
]
