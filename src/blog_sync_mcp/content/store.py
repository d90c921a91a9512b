"""SQLite-backed local content store.

Every document is a markdown file under ``<data_dir>/drafts`` or
``<data_dir>/posts`` plus one row in ``<data_dir>/content.db``.  The file
carries the content; the row carries identity and sync bookkeeping
(``id``, local draft flag, remote file name) and a metadata copy used
when a file turns out to be unreadable.

Writes put the file in place first (temp file + ``os.replace``) and only
then commit the row, so a crash can leave an orphan file but never a row
pointing at half-written content.  ``reconcile()`` cleans up both kinds
of leftovers.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

from ..errors import DocumentNotFound, MalformedDocument
from ..file_handler import (
    atomic_write,
    ensure_within,
    read_file_with_encoding,
    remove_file_quietly,
    write_text_atomic,
)
from .frontmatter import parse, serialize
from .models import Document, FrontMatter, ReconcileReport

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DB_FILENAME = "content.db"
DRAFTS_DIR = "drafts"
POSTS_DIR = "posts"

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    pk INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL DEFAULT '',
    summary TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '[]',
    archived INTEGER NOT NULL DEFAULT 0,
    is_draft INTEGER NOT NULL DEFAULT 1,
    origin_filename TEXT,
    filepath TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_documents_origin ON documents(origin_filename);
CREATE INDEX IF NOT EXISTS idx_documents_draft ON documents(is_draft);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_NAME_UNSAFE = re.compile(r"[^a-z0-9_-]+")


def create_schema(conn: sqlite3.Connection) -> None:
    """Create tables and indexes and record the schema version."""
    conn.executescript(_SCHEMA_SQL)
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the schema version, or None for a fresh database."""
    try:
        row = conn.execute(
            "SELECT value FROM metadata WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return None
    return int(row[0]) if row else None


def _safe_stem(text: str) -> str:
    stem = _NAME_UNSAFE.sub("-", text.lower()).strip("-")
    return stem[:60] or "untitled"


class ContentStore:
    """Local documents: one markdown file plus one SQLite row each.

    Safe to share between threads; every public method holds an
    internal lock for its whole duration.

    Args:
        data_dir: Directory for the database and backing files.  Created
            if missing.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self._data_dir = Path(data_dir).expanduser()
        self._data_dir.mkdir(parents=True, exist_ok=True)
        (self._data_dir / DRAFTS_DIR).mkdir(exist_ok=True)
        (self._data_dir / POSTS_DIR).mkdir(exist_ok=True)

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            str(self._data_dir / DB_FILENAME), check_same_thread=False
        )
        self._conn.row_factory = sqlite3.Row
        if get_schema_version(self._conn) is None:
            create_schema(self._conn)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> ContentStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_all(self) -> list[Document]:
        """All documents, newest date first."""
        return self._query("SELECT * FROM documents ORDER BY date DESC, pk DESC")

    def list_drafts(self) -> list[Document]:
        return self._query(
            "SELECT * FROM documents WHERE is_draft = 1 ORDER BY date DESC, pk DESC"
        )

    def list_published(self) -> list[Document]:
        return self._query(
            "SELECT * FROM documents WHERE is_draft = 0 ORDER BY date DESC, pk DESC"
        )

    def get(self, document_id: str) -> Document | None:
        with self._lock:
            row = self._row(document_id)
            return self._load(row) if row is not None else None

    def require(self, document_id: str) -> Document:
        """Like ``get()`` but raises ``DocumentNotFound``."""
        document = self.get(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    def count(self) -> dict[str, int]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT is_draft, COUNT(*) AS n FROM documents GROUP BY is_draft"
            ).fetchall()
        counts = {"drafts": 0, "published": 0}
        for row in rows:
            counts["drafts" if row["is_draft"] else "published"] = row["n"]
        return counts

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_draft(
        self,
        title: str = "",
        summary: str = "",
        date: str = "",
        tags: list[str] | None = None,
        body: str = "",
        archived: bool = False,
    ) -> Document:
        """Create a new local-only draft with a fresh ``uuid4`` id."""
        draft = Document(
            id=uuid.uuid4().hex,
            title=title,
            summary=summary,
            date=date,
            tags=tags or [],
            archived=archived,
            is_draft_local=True,
            body=body,
        )
        return self.save(draft)

    def save(self, document: Document) -> Document:
        """Insert or update the document with ``document.id``.

        An existing row with the same id is overwritten; if it pointed at
        a different backing file, that file is removed so no id ever has
        two copies.

        Returns:
            The stored document with ``local_path`` and ``modified_at`` set.
        """
        with self._lock:
            existing = self._row(document.id)
            return self._write(document, existing, match_id=document.id)

    def replace(self, old_id: str, document: Document) -> Document:
        """Overwrite the record known as *old_id* with *document*.

        The row itself is kept (``UPDATE ... WHERE id = old_id``) so only
        its ``id`` advances.  A different row already holding
        ``document.id`` is removed first.

        Raises:
            DocumentNotFound: If no record has *old_id*.
        """
        with self._lock:
            existing = self._row(old_id)
            if existing is None:
                raise DocumentNotFound(old_id)

            if document.id != old_id:
                clash = self._row(document.id)
                if clash is not None:
                    logger.warning(
                        "Document id %s already stored at %s; removing older copy",
                        document.id,
                        clash["filepath"],
                    )
                    self._delete_row(clash)

            return self._write(document, existing, match_id=old_id)

    def set_origin_filename(self, document_id: str, filename: str) -> Document:
        """Record the remote file name without touching the backing file.

        Raises:
            DocumentNotFound: If no record has *document_id*.
        """
        with self._lock:
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE documents SET origin_filename = ?, updated_at = ? "
                    "WHERE id = ?",
                    (filename, int(time.time()), document_id),
                )
            if cursor.rowcount == 0:
                raise DocumentNotFound(document_id)
            return self._load(self._row(document_id))

    def delete(self, document_id: str) -> bool:
        """Remove the record, then its backing file (best effort).

        Returns:
            False if no such document existed.
        """
        with self._lock:
            row = self._row(document_id)
            if row is None:
                return False
            self._delete_row(row)
            logger.debug("Deleted document %s", document_id)
            return True

    def delete_draft(self, document_id: str) -> Document:
        """Delete a local-only draft and return what was removed.

        Published documents are refused; they disappear locally only when
        a sync finds them gone from the repository.

        Raises:
            DocumentNotFound: If no record has *document_id*.
            ValueError: If the document is published.
        """
        with self._lock:
            document = self.require(document_id)
            if not document.is_draft_local:
                raise ValueError(
                    f"Document '{document_id}' is published; only local drafts "
                    "can be deleted"
                )
            self.delete(document_id)
        logger.info("Deleted draft %s (%s)", document_id, document.title)
        return document

    def reconcile(self) -> ReconcileReport:
        """Remove backing files without a record and records without a file.

        Also clears temp files left by interrupted writes.
        """
        with self._lock:
            rows = self._conn.execute("SELECT id, filepath FROM documents").fetchall()
            known = set()
            dangling: list[str] = []
            for row in rows:
                path = self._data_dir / row["filepath"]
                if path.is_file():
                    known.add(path.resolve())
                else:
                    dangling.append(row["id"])

            if dangling:
                with self._conn:
                    self._conn.executemany(
                        "DELETE FROM documents WHERE id = ?",
                        [(doc_id,) for doc_id in dangling],
                    )

            orphans: list[str] = []
            for folder in (DRAFTS_DIR, POSTS_DIR):
                for path in sorted((self._data_dir / folder).iterdir()):
                    if not path.is_file():
                        continue
                    if path.suffix == ".tmp" or path.resolve() not in known:
                        if remove_file_quietly(path):
                            orphans.append(str(path))

        if dangling or orphans:
            logger.info(
                "Reconciled store: %d orphan file(s), %d dangling record(s)",
                len(orphans),
                len(dangling),
            )
        return ReconcileReport(orphan_files=orphans, dangling_records=dangling)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: tuple = ()) -> list[Document]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
            return [self._load(row) for row in rows]

    def _row(self, document_id: str) -> sqlite3.Row | None:
        return self._conn.execute(
            "SELECT * FROM documents WHERE id = ?", (document_id,)
        ).fetchone()

    def _delete_row(self, row: sqlite3.Row) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM documents WHERE pk = ?", (row["pk"],))
        remove_file_quietly(self._data_dir / row["filepath"])

    def _folder(self, document: Document) -> Path:
        return self._data_dir / (DRAFTS_DIR if document.is_draft_local else POSTS_DIR)

    def _target_path(self, document: Document, existing: sqlite3.Row | None) -> Path:
        """Reuse the document's current file when it sits in the right folder.

        Raises:
            ValueError: If ``document.local_path`` points outside the store.
        """
        folder = self._folder(document).resolve()
        for candidate in (
            ensure_within(Path(document.local_path), self._data_dir)
            if document.local_path
            else None,
            self._data_dir / existing["filepath"] if existing is not None else None,
        ):
            if candidate is not None and candidate.resolve().parent == folder:
                return candidate.resolve()
        return self._allocate_path(document, folder)

    def _allocate_path(self, document: Document, folder: Path) -> Path:
        if document.origin_filename:
            stem = _safe_stem(Path(document.origin_filename).stem)
        else:
            stem = _safe_stem(document.title)
        prefix = f"{stem}_{document.id[:8]}"
        path = folder / f"{prefix}.md"
        counter = 2
        while path.exists():
            path = folder / f"{prefix}-{counter}.md"
            counter += 1
        return path

    def _write(
        self, document: Document, existing: sqlite3.Row | None, match_id: str
    ) -> Document:
        target = self._target_path(document, existing)
        created = not target.exists()
        previous = None if created else target.read_bytes()
        write_text_atomic(target, serialize(document.metadata, document.body))

        filepath = target.relative_to(self._data_dir.resolve()).as_posix()
        now = int(time.time())
        values = (
            document.id,
            document.title,
            document.summary,
            document.date,
            json.dumps(list(document.tags)),
            int(document.archived),
            int(document.is_draft_local),
            document.origin_filename,
            filepath,
            now,
        )
        try:
            with self._conn:
                if existing is None:
                    self._conn.execute(
                        "INSERT INTO documents (id, title, summary, date, tags, "
                        "archived, is_draft, origin_filename, filepath, updated_at, "
                        "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (*values, now),
                    )
                else:
                    self._conn.execute(
                        "UPDATE documents SET id = ?, title = ?, summary = ?, "
                        "date = ?, tags = ?, archived = ?, is_draft = ?, "
                        "origin_filename = ?, filepath = ?, updated_at = ? "
                        "WHERE id = ?",
                        (*values, match_id),
                    )
        except sqlite3.Error:
            # Row unchanged, so the file goes back to what the row describes
            if created:
                remove_file_quietly(target)
            else:
                atomic_write(target, previous)
            raise

        if existing is not None and existing["filepath"] != filepath:
            remove_file_quietly(self._data_dir / existing["filepath"])

        row = self._row(document.id)
        return self._load(row)

    def _load(self, row: sqlite3.Row) -> Document:
        """Build a Document from its row and backing file.

        The file wins for content and metadata.  A missing or malformed
        file falls back to the row's metadata copy.
        """
        path = self._data_dir / row["filepath"]
        meta = FrontMatter(
            title=row["title"],
            summary=row["summary"],
            date=row["date"],
            draft=bool(row["archived"]),
            tools=json.loads(row["tags"] or "[]"),
        )
        body = ""
        modified_at = None

        try:
            stat = path.stat()
        except OSError:
            logger.warning("Backing file missing for document %s: %s", row["id"], path)
        else:
            modified_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
            text, _encoding = read_file_with_encoding(path)
            try:
                meta, body = parse(text)
            except MalformedDocument:
                logger.warning(
                    "Backing file for document %s has no front matter: %s",
                    row["id"],
                    path,
                )
                body = text

        return Document.from_front_matter(
            row["id"],
            meta,
            body,
            is_draft_local=bool(row["is_draft"]),
            origin_filename=row["origin_filename"],
            local_path=str(path),
            modified_at=modified_at,
        )
