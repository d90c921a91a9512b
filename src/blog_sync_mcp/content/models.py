"""Pydantic models for blog documents.

- ``FrontMatter``: the metadata block at the top of every markdown file.
- ``Document``: one post or draft held by the content store.

All models are frozen; use ``model_copy(update=...)`` to derive changed
copies.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return out


class FrontMatter(BaseModel):
    """Front-matter keys exactly as they appear on disk.

    Attributes:
        title: Post title.
        summary: One-line summary.
        date: Publication date, normally ``yyyy-MM-dd``.
        draft: Hidden from the published site (archived).  Unrelated to
            the local-only draft state of a ``Document``.
        tools: Ordered tags.
    """

    title: str = ""
    summary: str = ""
    date: str = ""
    draft: bool = False
    tools: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("tools")
    @classmethod
    def _drop_empty_tools(cls, value: list[str]) -> list[str]:
        # Empty entries cannot survive a serialize/parse cycle
        return [tool for tool in value if tool]


class Document(BaseModel):
    """A blog post or draft.

    Attributes:
        id: Remote blob SHA for documents pulled from or published to the
            repository; a local ``uuid4().hex`` token for unpublished drafts.
        title: Post title.
        summary: One-line summary.
        date: Publication date string.
        tags: Ordered, de-duplicated tags (front-matter ``tools``).
        archived: Hidden from the published site (front-matter ``draft``).
        is_draft_local: Unpublished; exists only in the local store.
        body: Markdown with the front matter stripped.
        origin_filename: Remote file name (``sf-trip.md``) once the
            document has been synced or published.
        local_path: Backing file, owned by the content store.
        modified_at: Backing file modification time (UTC).
    """

    id: str
    title: str = ""
    summary: str = ""
    date: str = ""
    tags: list[str] = Field(default_factory=list)
    archived: bool = False
    is_draft_local: bool = True
    body: str = ""
    origin_filename: str | None = None
    local_path: str | None = None
    modified_at: datetime | None = None

    model_config = {"frozen": True}

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str]) -> list[str]:
        return _dedupe(value)

    @property
    def metadata(self) -> FrontMatter:
        return FrontMatter(
            title=self.title,
            summary=self.summary,
            date=self.date,
            draft=self.archived,
            tools=list(self.tags),
        )

    @property
    def is_published(self) -> bool:
        return not self.is_draft_local

    @classmethod
    def from_front_matter(
        cls, doc_id: str, meta: FrontMatter, body: str, **extra
    ) -> Document:
        """Build a document from parsed front matter plus store fields."""
        return cls(
            id=doc_id,
            title=meta.title,
            summary=meta.summary,
            date=meta.date,
            tags=list(meta.tools),
            archived=meta.draft,
            body=body,
            **extra,
        )


class ReconcileReport(BaseModel):
    """What a store reconciliation pass cleaned up.

    Attributes:
        orphan_files: Backing files removed because no record pointed at them.
        dangling_records: Ids of records removed because their file was gone.
    """

    orphan_files: list[str] = Field(default_factory=list)
    dangling_records: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def changed(self) -> bool:
        return bool(self.orphan_files or self.dangling_records)
