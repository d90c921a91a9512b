"""Pydantic models for the sync engine and publish pipeline.

- ``DocumentState``: what a sync pass decided for one document.
- ``SyncOutcome``: the decision for one slug.
- ``SyncResult``: aggregate result of one sync pass.
- ``SlugResolution``: a resolved remote slug and whether it was renamed.
- ``ImageUpload`` / ``PublishResult``: outcome of one publish.

All models are frozen; results are never mutated after construction.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, computed_field

from ..content.models import Document


class DocumentState(str, Enum):
    """Per-document states during one sync pass."""

    UNCHANGED = "unchanged"
    NEW_FROM_REMOTE = "new_from_remote"
    UPDATED_FROM_REMOTE = "updated_from_remote"
    MISSING_ON_REMOTE = "missing_on_remote"
    PROTECTED_BY_RECENT_EDIT = "protected_by_recent_edit"
    RENAME_CANDIDATE = "rename_candidate"
    DUPLICATE_REMOVED = "duplicate_removed"
    FAILED = "failed"


class SyncOutcome(BaseModel):
    """Decision taken for one slug.

    Attributes:
        slug: Remote file stem (or recovered local slug).
        state: What happened.
        document_id: Local document id after the pass, if any.
        title: Document title, for reporting.
        error: Error text when ``state`` is ``FAILED``.
    """

    slug: str
    state: DocumentState
    document_id: str | None = None
    title: str = ""
    error: str | None = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Aggregate of one sync pass.

    Attributes:
        new_posts: Documents created from new remote files.
        updated_posts: Documents overwritten because the remote changed.
        deleted_posts: Documents removed because they left the remote.
        protected_posts: Documents kept despite leaving the remote,
            because they were edited locally within the recency window.
        errors: Per-item error strings, already wrapped with context.
        outcomes: Every per-slug decision, in processing order.
        forced: True for a forced complete resync.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass ended.
    """

    new_posts: tuple[Document, ...] = ()
    updated_posts: tuple[Document, ...] = ()
    deleted_posts: tuple[Document, ...] = ()
    protected_posts: tuple[Document, ...] = ()
    errors: tuple[str, ...] = ()
    outcomes: tuple[SyncOutcome, ...] = ()
    forced: bool = False
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def synced_posts(self) -> tuple[Document, ...]:
        return self.new_posts + self.updated_posts

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> dict[str, int]:
        """Counts per category."""
        return {
            "new": len(self.new_posts),
            "updated": len(self.updated_posts),
            "deleted": len(self.deleted_posts),
            "protected": len(self.protected_posts),
            "unchanged": sum(
                1 for o in self.outcomes if o.state == DocumentState.UNCHANGED
            ),
            "errors": len(self.errors),
        }


class SlugResolution(BaseModel):
    """A remote slug chosen for a document.

    Attributes:
        slug: The slug to use.
        disambiguated: True when a numeric suffix was appended to avoid
            an existing remote file; callers should warn the user.
    """

    slug: str
    disambiguated: bool = False

    model_config = {"frozen": True}

    @property
    def filename(self) -> str:
        return f"{self.slug}.md"


class ImageUpload(BaseModel):
    """An embedded local image uploaded as part of a publish.

    Attributes:
        source: Local path the markdown referenced.
        remote_path: Repository path of the uploaded blob.
        url: Path written into the published markdown.
        sha: Blob SHA.
    """

    source: str
    remote_path: str
    url: str
    sha: str

    model_config = {"frozen": True}


class PublishResult(BaseModel):
    """Outcome of one successful publish.

    Attributes:
        document: The local record after publishing.
        remote_path: Repository path of the markdown file.
        commit_sha: The new branch head.
        images: Images uploaded in the same commit.
        disambiguated: True when the slug was suffixed to avoid a clash.
        warnings: Non-fatal problems (skipped images, renamed slug).
    """

    document: Document
    remote_path: str
    commit_sha: str
    images: tuple[ImageUpload, ...] = ()
    disambiguated: bool = False
    warnings: tuple[str, ...] = ()

    model_config = {"frozen": True}
