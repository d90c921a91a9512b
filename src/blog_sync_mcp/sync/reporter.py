"""Sync and publish report formatting.

- ``format_sync_report`` -- human-readable summary of a sync pass.
- ``format_publish_result`` -- human-readable summary of a publish.
- ``result_to_json`` / ``publish_to_json`` -- structured dicts for MCP
  ``structuredContent`` and ``--json`` CLI output.
- ``document_to_json`` -- compact document listing entry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..content.models import Document
    from .models import PublishResult, SyncResult


# ------------------------------------------------------------------
# Human-readable reports
# ------------------------------------------------------------------


def _label(document: Document) -> str:
    name = document.origin_filename or document.id[:8]
    return f"{document.title or '(untitled)'} [{name}]"


def format_sync_report(result: SyncResult) -> str:
    """Format a sync result as human-readable text.

    Sections only appear when non-empty.  Unchanged documents are
    summarised by count.
    """
    counts = result.summary()
    lines: list[str] = []

    header = "Forced resync report" if result.forced else "Sync report"
    lines.append(header)
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    lines.append("")

    lines.append(
        f"{counts['new']} new, {counts['updated']} updated, "
        f"{counts['deleted']} deleted, {counts['protected']} protected, "
        f"{counts['errors']} errors"
    )
    lines.append("")

    sections = (
        ("New from remote:", result.new_posts),
        ("Updated from remote:", result.updated_posts),
        ("Deleted locally:", result.deleted_posts),
        ("Kept (edited recently, missing on remote):", result.protected_posts),
    )
    for title, documents in sections:
        if documents:
            lines.append(title)
            for document in documents:
                lines.append(f"  {_label(document)}")
            lines.append("")

    if result.errors:
        lines.append("Errors:")
        for error in result.errors:
            lines.append(f"  {error}")
        lines.append("")

    if counts["unchanged"]:
        lines.append(f"Unchanged: {counts['unchanged']} posts")
        lines.append("")

    if not any(counts[k] for k in ("new", "updated", "deleted", "protected", "errors")):
        lines.append("Already up to date.")

    return "\n".join(lines).rstrip()


def format_publish_result(result: PublishResult) -> str:
    lines = [
        f"Published '{result.document.title}' to {result.remote_path}",
        f"Commit: {result.commit_sha}",
    ]
    if result.images:
        lines.append(f"Images: {len(result.images)}")
        for image in result.images:
            lines.append(f"  {image.source} -> {image.remote_path}")
    if result.warnings:
        lines.append("Warnings:")
        for warning in result.warnings:
            lines.append(f"  {warning}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def document_to_json(document: Document) -> dict:
    return {
        "id": document.id,
        "title": document.title,
        "date": document.date,
        "tags": list(document.tags),
        "archived": document.archived,
        "is_draft_local": document.is_draft_local,
        "origin_filename": document.origin_filename,
        "modified_at": (
            document.modified_at.isoformat() if document.modified_at else None
        ),
    }


def result_to_json(result: SyncResult) -> dict:
    """Convert a sync result to a dict ready for JSON serialisation."""
    outcomes = []
    for outcome in result.outcomes:
        entry: dict = {
            "slug": outcome.slug,
            "state": outcome.state.value,
            "document_id": outcome.document_id,
            "title": outcome.title,
        }
        if outcome.error:
            entry["error"] = outcome.error
        outcomes.append(entry)

    return {
        "forced": result.forced,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
        "counts": result.summary(),
        "new_posts": [document_to_json(d) for d in result.new_posts],
        "updated_posts": [document_to_json(d) for d in result.updated_posts],
        "deleted_posts": [document_to_json(d) for d in result.deleted_posts],
        "protected_posts": [document_to_json(d) for d in result.protected_posts],
        "errors": list(result.errors),
        "outcomes": outcomes,
    }


def publish_to_json(result: PublishResult) -> dict:
    return {
        "document": document_to_json(result.document),
        "remote_path": result.remote_path,
        "commit_sha": result.commit_sha,
        "disambiguated": result.disambiguated,
        "images": [image.model_dump() for image in result.images],
        "warnings": list(result.warnings),
    }
