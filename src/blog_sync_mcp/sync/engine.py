"""Sync engine: reconcile the local store with the remote blog directory.

One pass:

1. List the remote blog directory; ``(slug, entry)`` per markdown file.
2. Load local published documents (local drafts are never touched).
3. Build the local slug map (stored file name, then title slug, then an
   ``unnamed-`` placeholder).  Duplicate slugs keep the newest document.
4. Handle local slugs missing remotely: bind to a remote file with the
   same title (rename), protect recently edited documents, delete the
   rest.
5. Handle every remote slug: create new documents, skip unchanged ones,
   overwrite changed ones in place.
6. Return an immutable ``SyncResult``.

Errors are per item: one bad file does not abort the pass.  Passes are
serialized by a lock shared with the publish pipeline.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from ..config import Config
from ..content.frontmatter import parse
from ..content.models import Document
from ..content.store import ContentStore
from ..core.client import GitHubClient
from ..core.models import RemoteEntry, RemoteFile
from ..errors import BlogSyncError
from .models import DocumentState, SyncOutcome, SyncResult
from .resolver import local_slug, match_title, slug_from_filename

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _PassLog:
    """Mutable accumulator for one pass; frozen into a ``SyncResult``."""

    def __init__(self, started_at: datetime, forced: bool = False) -> None:
        self.started_at = started_at
        self.forced = forced
        self.new: list[Document] = []
        self.updated: list[Document] = []
        self.deleted: list[Document] = []
        self.protected: list[Document] = []
        self.errors: list[str] = []
        self.outcomes: list[SyncOutcome] = []

    def record(
        self,
        slug: str,
        state: DocumentState,
        document: Document | None = None,
        error: str | None = None,
    ) -> None:
        self.outcomes.append(
            SyncOutcome(
                slug=slug,
                state=state,
                document_id=document.id if document else None,
                title=document.title if document else "",
                error=error,
            )
        )

    def fail(self, slug: str, message: str, document: Document | None = None) -> None:
        logger.error(message)
        self.errors.append(message)
        self.record(slug, DocumentState.FAILED, document, error=message)

    def result(self) -> SyncResult:
        return SyncResult(
            new_posts=tuple(self.new),
            updated_posts=tuple(self.updated),
            deleted_posts=tuple(self.deleted),
            protected_posts=tuple(self.protected),
            errors=tuple(self.errors),
            outcomes=tuple(self.outcomes),
            forced=self.forced,
            started_at=self.started_at.isoformat(),
            completed_at=_utcnow().isoformat(),
        )


class SyncEngine:
    """Reconcile published local documents with the remote blog directory.

    Args:
        client: GitHub client for the blog repository.
        store: Local content store.
        settings: Runtime config (``blog_path``, ``recent_edit_hours``).
        lock: Lock shared with ``PublishPipeline`` so a sync never runs
            during a publish.
        clock: Returns the current UTC time; used for the recency rule.
    """

    def __init__(
        self,
        client: GitHubClient,
        store: ContentStore,
        settings: Config,
        lock: threading.Lock | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.settings = settings
        self.lock = lock or threading.Lock()
        self._clock = clock or _utcnow

    @property
    def recency_window(self) -> timedelta:
        return timedelta(hours=self.settings.recent_edit_hours)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def sync(self, force_delete: bool = False) -> SyncResult:
        """Run one sync pass.

        Args:
            force_delete: Delete documents missing remotely even when
                they were edited within the recency window.
        """
        with self.lock:
            log = _PassLog(self._clock())
            logger.info("Sync started (force_delete=%s)", force_delete)

            remote = self._list_remote(log)
            if remote is None:
                return log.result()

            self._run(remote, log, force_delete)

            result = log.result()
            logger.info("Sync finished: %s", result.summary())
            return result

    def force_resync(self) -> SyncResult:
        """Drop every published local document and download all again.

        Local drafts are kept.  The remote listing is fetched first, so a
        listing failure leaves the store untouched.
        """
        with self.lock:
            log = _PassLog(self._clock(), forced=True)
            logger.warning("Forced complete resync started")

            remote = self._list_remote(log)
            if remote is None:
                return log.result()

            for document in self.store.list_published():
                slug, _ = local_slug(document)
                try:
                    self.store.delete(document.id)
                except Exception as exc:
                    log.fail(slug, f"Failed to remove '{slug}': {exc}", document)
                    continue
                log.deleted.append(document)
                log.record(slug, DocumentState.MISSING_ON_REMOTE, document)

            claimed: dict[str, str] = {}
            for slug, entry in sorted(remote.items()):
                try:
                    self._create(slug, entry, None, claimed, log)
                except Exception as exc:
                    log.fail(slug, f"Failed to download '{entry.name}': {exc}")

            result = log.result()
            logger.warning("Forced resync finished: %s", result.summary())
            return result

    # ------------------------------------------------------------------
    # Pass steps
    # ------------------------------------------------------------------

    def _list_remote(self, log: _PassLog) -> dict[str, RemoteEntry] | None:
        """Step 1.  Returns None (and records the error) on failure."""
        try:
            entries = self.client.list_directory(self.settings.blog_path)
        except BlogSyncError as exc:
            log.fail("", f"Failed to sync with remote: {exc}")
            return None
        return {
            slug_from_filename(entry.name): entry
            for entry in entries
            if entry.is_markdown
        }

    def _local_slug_map(self, log: _PassLog) -> dict[str, Document]:
        """Steps 2 and 3."""
        by_slug: dict[str, Document] = {}
        for document in self.store.list_published():
            slug, _placeholder = local_slug(document)
            current = by_slug.get(slug)
            if current is None:
                by_slug[slug] = document
                continue

            keep, drop = (
                (document, current)
                if self._modified(document) > self._modified(current)
                else (current, document)
            )
            logger.warning(
                "Documents %s and %s both map to '%s'; removing the older one",
                keep.id,
                drop.id,
                slug,
            )
            try:
                self.store.delete(drop.id)
            except Exception as exc:
                log.fail(slug, f"Failed to remove duplicate of '{slug}': {exc}", drop)
            else:
                log.deleted.append(drop)
                log.record(slug, DocumentState.DUPLICATE_REMOVED, drop)
            by_slug[slug] = keep
        return by_slug

    def _run(
        self, remote: dict[str, RemoteEntry], log: _PassLog, force_delete: bool
    ) -> None:
        local = self._local_slug_map(log)
        fetched: dict[str, RemoteFile] = {}
        claimed = {document.id: slug for slug, document in local.items()}
        bound: dict[str, Document] = {}

        # Step 4: local slugs the remote no longer has
        unmatched = [slug for slug in remote if slug not in local]
        for slug, document in local.items():
            if slug in remote:
                continue
            try:
                target = self._rename_target(
                    document, [s for s in unmatched if s not in bound], remote, fetched
                )
                if target is not None:
                    logger.info(
                        "'%s' looks renamed to '%s' (same title); updating in place",
                        slug,
                        target,
                    )
                    bound[target] = document
                    claimed[document.id] = target
                    log.record(slug, DocumentState.RENAME_CANDIDATE, document)
                elif not force_delete and self._recently_modified(document):
                    logger.info(
                        "'%s' is gone remotely but was edited recently; keeping it",
                        slug,
                    )
                    log.protected.append(document)
                    log.record(slug, DocumentState.PROTECTED_BY_RECENT_EDIT, document)
                else:
                    self.store.delete(document.id)
                    claimed.pop(document.id, None)
                    logger.info("Deleted '%s': no longer on remote", slug)
                    log.deleted.append(document)
                    log.record(slug, DocumentState.MISSING_ON_REMOTE, document)
            except Exception as exc:
                log.fail(slug, f"Failed to process local post '{slug}': {exc}", document)

        # Step 5: every remote slug
        for slug, entry in sorted(remote.items()):
            existing = bound.get(slug) or local.get(slug)
            try:
                if existing is None:
                    self._create(slug, entry, fetched.get(slug), claimed, log)
                elif existing.id == entry.sha:
                    self._unchanged(slug, entry, existing, log)
                else:
                    self._update(slug, entry, existing, fetched.get(slug), claimed, log)
            except Exception as exc:
                log.fail(slug, f"Failed to sync '{entry.name}': {exc}", existing)

    # ------------------------------------------------------------------
    # Per-document actions
    # ------------------------------------------------------------------

    def _create(
        self,
        slug: str,
        entry: RemoteEntry,
        remote_file: RemoteFile | None,
        claimed: dict[str, str],
        log: _PassLog,
    ) -> None:
        remote_file = remote_file or self.client.fetch_file(entry)
        if self._claim(remote_file.content_hash, slug, claimed, log):
            document = self.store.save(self._from_remote(remote_file))
            logger.info("New post from remote: %s", entry.name)
            log.new.append(document)
            log.record(slug, DocumentState.NEW_FROM_REMOTE, document)

    def _unchanged(
        self, slug: str, entry: RemoteEntry, existing: Document, log: _PassLog
    ) -> None:
        if existing.origin_filename != entry.name:
            existing = self.store.set_origin_filename(existing.id, entry.name)
            logger.debug("Backfilled file name %s for %s", entry.name, existing.id)
        log.record(slug, DocumentState.UNCHANGED, existing)

    def _update(
        self,
        slug: str,
        entry: RemoteEntry,
        existing: Document,
        remote_file: RemoteFile | None,
        claimed: dict[str, str],
        log: _PassLog,
    ) -> None:
        remote_file = remote_file or self.client.fetch_file(entry)
        if remote_file.content_hash == existing.id:
            self._unchanged(slug, entry, existing, log)
            return
        if not self._claim(remote_file.content_hash, slug, claimed, log):
            return

        fresh = self._from_remote(remote_file)
        updated = existing.model_copy(
            update={
                "id": fresh.id,
                "title": fresh.title,
                "summary": fresh.summary,
                "date": fresh.date,
                "tags": fresh.tags,
                "archived": fresh.archived,
                "body": fresh.body,
                "origin_filename": entry.name,
                "is_draft_local": False,
            }
        )
        document = self.store.replace(existing.id, updated)
        claimed.pop(existing.id, None)
        logger.info("Updated post from remote: %s", entry.name)
        log.updated.append(document)
        log.record(slug, DocumentState.UPDATED_FROM_REMOTE, document)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _claim(
        self, content_hash: str, slug: str, claimed: dict[str, str], log: _PassLog
    ) -> bool:
        """Reserve *content_hash* as the id of *slug*.

        Two remote files with identical content share a blob SHA; only the
        first one can become a local document.
        """
        owner = claimed.get(content_hash)
        if owner is not None and owner != slug:
            log.fail(
                slug,
                f"Failed to sync '{slug}': same content as '{owner}', skipped",
            )
            return False
        claimed[content_hash] = slug
        return True

    def _rename_target(
        self,
        document: Document,
        candidates: list[str],
        remote: dict[str, RemoteEntry],
        fetched: dict[str, RemoteFile],
    ) -> str | None:
        """Find an unmatched remote file carrying *document*'s title."""
        if not candidates or not document.title.strip():
            return None
        titles: dict[str, str] = {}
        for slug in candidates:
            remote_file = fetched.get(slug)
            if remote_file is None:
                try:
                    remote_file = self.client.fetch_file(remote[slug])
                except BlogSyncError as exc:
                    logger.debug("Could not fetch %s for title match: %s", slug, exc)
                    continue
                fetched[slug] = remote_file
            titles[slug] = self._remote_title(remote_file)
        return match_title(document.title, titles)

    @staticmethod
    def _remote_title(remote_file: RemoteFile) -> str:
        try:
            meta, _ = parse(remote_file.content)
        except BlogSyncError:
            return ""
        return meta.title or remote_file.slug

    @staticmethod
    def _from_remote(remote_file: RemoteFile) -> Document:
        meta, body = parse(remote_file.content)
        document = Document.from_front_matter(
            remote_file.content_hash,
            meta,
            body,
            is_draft_local=False,
            origin_filename=remote_file.name,
        )
        if not document.title.strip():
            document = document.model_copy(update={"title": remote_file.slug})
        return document

    @staticmethod
    def _modified(document: Document) -> datetime:
        return document.modified_at or datetime.min.replace(tzinfo=timezone.utc)

    def _recently_modified(self, document: Document) -> bool:
        if document.modified_at is None:
            return False
        return self._clock() - document.modified_at < self.recency_window
