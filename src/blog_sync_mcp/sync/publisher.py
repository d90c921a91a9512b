"""Publish pipeline: one document plus its local images as one commit.

Steps, in this order:

1. Collect ``![alt](file:///path)`` images from the body, read them and
   rewrite each reference to its final site URL.
2. Resolve the remote file name (stored name, title match, or a fresh
   collision-free slug).
3. Read the branch head and its tree, create one blob per file, a tree on
   top of the head's tree, a commit, and finally move the branch ref.

The ref update is the last remote call, so a failure anywhere leaves the
branch untouched.  Local state only changes after the ref has moved.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import unquote

from ..config import Config
from ..content.frontmatter import normalize_date, parse, serialize
from ..content.models import Document
from ..content.store import ContentStore
from ..core.client import GitHubClient
from ..core.models import TreeEntry
from ..errors import BlogSyncError, DocumentNotFound, PublishFailed
from .models import ImageUpload, PublishResult
from .resolver import filename_for, match_title, slug_from_filename, slugify, unique_slug

logger = logging.getLogger(__name__)

LOCAL_IMAGE_PATTERN = re.compile(r'!\[([^\]]*)\]\(file://([^)\s]+)(\s+"[^"]*")?\)')
FILE_REFERENCE_PATTERN = re.compile(r"file://[^\s)\"'<>\]]+")

_STEM_UNSAFE = re.compile(r"[^a-z0-9]+")


@dataclass
class _PendingImage:
    source: str
    remote_path: str
    url: str
    data: bytes


class PublishPipeline:
    """Publish documents to the blog repository.

    Args:
        client: GitHub client for the blog repository.
        store: Local content store; updated after a successful commit.
        settings: Runtime config (``blog_path``, ``image_path``,
            ``image_prefix``).
        lock: Lock shared with ``SyncEngine``.
        clock: Returns the current local time; supplies the default date.
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
        self._clock = clock or datetime.now

    def publish(self, document: Document, commit_message: str) -> PublishResult:
        """Commit *document* (and its local images) to the publishing branch.

        Raises:
            PublishFailed: Any step failed.  The branch was not moved and
                the local store is unchanged.
        """
        title = document.title or document.id
        with self.lock:
            try:
                return self._publish(document, commit_message)
            except PublishFailed:
                raise
            except Exception as exc:
                logger.error("Publish of '%s' failed: %s", title, exc)
                raise PublishFailed(f"Failed to publish '{title}': {exc}") from exc

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _publish(self, document: Document, commit_message: str) -> PublishResult:
        warnings: list[str] = []

        body, images = self._collect_images(document.body, warnings)
        filename, disambiguated = self._resolve_filename(document, warnings)

        date = normalize_date(document.date) or self._clock().date().isoformat()
        meta = document.metadata.model_copy(update={"date": date})
        text = serialize(meta, body)
        remote_path = f"{self.settings.blog_path}/{filename}"

        head = self.client.get_branch_head_commit()
        base_tree = self.client.get_commit_tree(head)

        doc_sha = self.client.create_blob(text)
        entries = [TreeEntry(path=remote_path, sha=doc_sha)]
        uploads: list[ImageUpload] = []
        for image in images:
            sha = self.client.create_blob(image.data)
            entries.append(TreeEntry(path=image.remote_path, sha=sha))
            uploads.append(
                ImageUpload(
                    source=image.source,
                    remote_path=image.remote_path,
                    url=image.url,
                    sha=sha,
                )
            )

        tree = self.client.create_tree(base_tree, entries)
        commit = self.client.create_commit(tree, head, commit_message)
        self.client.update_branch_head(commit)
        logger.info(
            "Published %s with %d image(s) in %s", remote_path, len(uploads), commit[:7]
        )

        published = document.model_copy(
            update={
                "id": doc_sha,
                "date": date,
                "body": body,
                "is_draft_local": False,
                "origin_filename": filename,
                "local_path": None,
            }
        )
        stored = self._store_published(document, published, commit, warnings)

        return PublishResult(
            document=stored,
            remote_path=remote_path,
            commit_sha=commit,
            images=tuple(uploads),
            disambiguated=disambiguated,
            warnings=tuple(warnings),
        )

    def _collect_images(
        self, body: str, warnings: list[str]
    ) -> tuple[str, list[_PendingImage]]:
        """Read local images and rewrite their references.

        Unreadable images are skipped with a warning and their reference
        is left as it was.  Any other ``file://`` reference that would be
        published as is gets a warning too.
        """
        images: dict[str, _PendingImage] = {}
        skipped: set[str] = set()

        def _rewrite(match: re.Match) -> str:
            alt, raw_path, image_title = match.group(1), match.group(2), match.group(3)
            source = unquote(raw_path)
            try:
                data = Path(source).read_bytes()
            except OSError as exc:
                message = f"Skipped image {source}: {exc.strerror or exc}"
                logger.warning(message)
                warnings.append(message)
                skipped.add(source)
                return match.group(0)

            image = self._pending_image(source, data)
            images.setdefault(image.remote_path, image)
            return f"![{alt}]({image.url}{image_title or ''})"

        rewritten = LOCAL_IMAGE_PATTERN.sub(_rewrite, body)

        for reference in FILE_REFERENCE_PATTERN.findall(rewritten):
            if unquote(reference.removeprefix("file://")) in skipped:
                continue
            message = f"Local reference left in published body: {reference}"
            logger.warning(message)
            warnings.append(message)

        return rewritten, list(images.values())

    def _pending_image(self, source: str, data: bytes) -> _PendingImage:
        path = Path(source)
        stem = _STEM_UNSAFE.sub("-", path.stem.lower()).strip("-") or "image"
        digest = hashlib.sha256(data).hexdigest()[:12]
        name = f"{stem}-{digest}{path.suffix.lower() or '.png'}"
        return _PendingImage(
            source=source,
            remote_path=f"{self.settings.image_path}/{name}",
            url=f"{self.settings.image_prefix}/{name}",
            data=data,
        )

    def _resolve_filename(
        self, document: Document, warnings: list[str]
    ) -> tuple[str, bool]:
        """Return ``(filename, disambiguated)`` for the remote markdown file."""
        if document.origin_filename:
            return document.origin_filename.rsplit("/", 1)[-1], False

        entries = [
            entry
            for entry in self.client.list_directory(self.settings.blog_path)
            if entry.is_markdown
        ]
        slugs = [slug_from_filename(entry.name) for entry in entries]

        if document.is_published:
            titles: dict[str, str] = {}
            for entry in entries:
                try:
                    meta, _ = parse(self.client.fetch_file_content(entry.path))
                except BlogSyncError as exc:
                    logger.debug("Skipping %s for title match: %s", entry.name, exc)
                    continue
                titles[slug_from_filename(entry.name)] = meta.title
            match = match_title(document.title, titles)
            if match is not None:
                logger.info("Matched '%s' to existing %s by title", document.title, match)
                return filename_for(match), False

        base = slugify(document.title)
        resolution = unique_slug(base, slugs)
        if resolution.disambiguated:
            warnings.append(
                f"A post named '{filename_for(base)}' already exists; "
                f"publishing as '{resolution.filename}'"
            )
        return resolution.filename, resolution.disambiguated

    def _store_published(
        self,
        original: Document,
        published: Document,
        commit: str,
        warnings: list[str],
    ) -> Document:
        """Swap the local record for its published version.

        The commit has already landed, so a local failure is reported as a
        warning; the next sync pulls the post in.
        """
        try:
            try:
                return self.store.replace(original.id, published)
            except DocumentNotFound:
                return self.store.save(published)
        except Exception as exc:
            message = (
                f"Published in {commit[:7]} but the local record could not be "
                f"updated: {exc}"
            )
            logger.error(message)
            warnings.append(message)
            return published
