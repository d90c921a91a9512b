"""Tests for content/store.py -- SQLite index plus markdown backing files."""

import sqlite3
from pathlib import Path

import pytest

from blog_sync_mcp.content.models import Document
from blog_sync_mcp.content.store import ContentStore, get_schema_version
from blog_sync_mcp.errors import DocumentNotFound

SHA_A = "a" * 40
SHA_B = "b" * 40


def _published(doc_id=SHA_A, title="SF Trip", origin="sf-trip.md", body="Fog."):
    return Document(
        id=doc_id,
        title=title,
        date="2025-06-08",
        tags=["travel"],
        is_draft_local=False,
        body=body,
        origin_filename=origin,
    )


# ---------------------------------------------------------------------------
# Schema and lifecycle
# ---------------------------------------------------------------------------


def test_creates_layout(tmp_path):
    with ContentStore(tmp_path / "data") as store:
        assert (store.data_dir / "drafts").is_dir()
        assert (store.data_dir / "posts").is_dir()

    conn = sqlite3.connect(tmp_path / "data" / "content.db")
    try:
        assert get_schema_version(conn) == 1
    finally:
        conn.close()


def test_reopen_keeps_documents(tmp_path):
    with ContentStore(tmp_path / "data") as store:
        draft = store.create_draft(title="Kept")
    with ContentStore(tmp_path / "data") as store:
        assert store.require(draft.id).title == "Kept"


# ---------------------------------------------------------------------------
# Drafts and saves
# ---------------------------------------------------------------------------


class TestSave:
    def test_create_draft(self, store):
        draft = store.create_draft(title="SF Trip", body="Fog.", tags=["a", "a", "b"])

        assert len(draft.id) == 32
        assert draft.is_draft_local is True
        assert draft.tags == ["a", "b"]
        assert Path(draft.local_path).parent.name == "drafts"
        assert draft.modified_at is not None
        assert store.list_drafts() == [draft]
        assert store.list_published() == []

    def test_backing_file_is_canonical_markdown(self, store):
        draft = store.create_draft(title="SF Trip", body="Fog.")
        text = Path(draft.local_path).read_text(encoding="utf-8")
        assert text.startswith('---\ntitle: "SF Trip"\n')
        assert text.endswith("---\n\nFog.")

    def test_published_goes_to_posts(self, store):
        doc = store.save(_published())
        path = Path(doc.local_path)
        assert path.parent.name == "posts"
        assert path.name.startswith("sf-trip_aaaaaaaa")
        assert store.get(SHA_A).origin_filename == "sf-trip.md"

    def test_save_same_id_overwrites(self, store):
        first = store.save(_published(body="one"))
        second = store.save(_published(body="two"))

        assert second.local_path == first.local_path
        assert store.require(SHA_A).body == "two"
        assert len(store.list_all()) == 1

    def test_count(self, store):
        store.create_draft(title="d1")
        store.create_draft(title="d2")
        store.save(_published())
        assert store.count() == {"drafts": 2, "published": 1}

    def test_list_newest_date_first(self, store):
        store.save(_published(SHA_A, title="Old", origin="old.md").model_copy(update={"date": "2024-01-01"}))
        store.save(_published(SHA_B, title="New", origin="new.md").model_copy(update={"date": "2025-01-01"}))
        assert [d.title for d in store.list_published()] == ["New", "Old"]

    def test_get_missing(self, store):
        assert store.get(SHA_A) is None
        with pytest.raises(DocumentNotFound):
            store.require(SHA_A)


# ---------------------------------------------------------------------------
# replace()
# ---------------------------------------------------------------------------


class TestReplace:
    def test_keeps_row_and_file(self, store):
        original = store.save(_published(body="old body"))
        updated = original.model_copy(update={"id": SHA_B, "body": "new body"})

        result = store.replace(SHA_A, updated)

        assert result.id == SHA_B
        assert result.local_path == original.local_path
        assert store.get(SHA_A) is None
        assert store.require(SHA_B).body == "new body"
        assert len(store.list_all()) == 1

    def test_draft_to_published_moves_file(self, store):
        draft = store.create_draft(title="SF Trip", body="Fog.")
        published = draft.model_copy(
            update={
                "id": SHA_A,
                "is_draft_local": False,
                "origin_filename": "sf-trip.md",
                "local_path": None,
            }
        )

        result = store.replace(draft.id, published)

        assert Path(result.local_path).parent.name == "posts"
        assert not Path(draft.local_path).exists()
        assert store.list_drafts() == []
        assert store.get(draft.id) is None

    def test_removes_clashing_row(self, store):
        store.save(_published(SHA_A, origin="a.md"))
        clash = store.save(_published(SHA_B, title="Other", origin="b.md"))
        replacement = _published(SHA_B, origin="a.md")

        store.replace(SHA_A, replacement)

        assert not Path(clash.local_path).exists()
        assert [d.id for d in store.list_all()] == [SHA_B]

    def test_missing_old_id(self, store):
        with pytest.raises(DocumentNotFound):
            store.replace(SHA_A, _published(SHA_B))


# ---------------------------------------------------------------------------
# set_origin_filename() and delete()
# ---------------------------------------------------------------------------


def test_set_origin_filename_keeps_file(store):
    doc = store.save(_published(origin=None))
    before = Path(doc.local_path).read_bytes()

    updated = store.set_origin_filename(SHA_A, "sf-trip.md")

    assert updated.origin_filename == "sf-trip.md"
    assert Path(updated.local_path).read_bytes() == before


def test_set_origin_filename_missing(store):
    with pytest.raises(DocumentNotFound):
        store.set_origin_filename(SHA_A, "x.md")


def test_delete(store):
    doc = store.save(_published())
    assert store.delete(SHA_A) is True
    assert store.get(SHA_A) is None
    assert not Path(doc.local_path).exists()
    assert store.delete(SHA_A) is False


class TestDeleteDraft:
    def test_removes_draft(self, store):
        draft = store.create_draft(title="Scrap")

        removed = store.delete_draft(draft.id)

        assert removed.title == "Scrap"
        assert store.get(draft.id) is None
        assert not Path(draft.local_path).exists()

    def test_refuses_published(self, store):
        doc = store.save(_published())
        with pytest.raises(ValueError, match="only local drafts"):
            store.delete_draft(SHA_A)
        assert Path(doc.local_path).exists()

    def test_unknown_id(self, store):
        with pytest.raises(DocumentNotFound):
            store.delete_draft("c" * 32)


# ---------------------------------------------------------------------------
# Write failures and path confinement
# ---------------------------------------------------------------------------


def test_failed_update_restores_file(store):
    doc = store.save(_published(body="Fog."))
    before = Path(doc.local_path).read_bytes()
    store._conn.execute(
        "CREATE TRIGGER reject_update BEFORE UPDATE ON documents "
        "BEGIN SELECT RAISE(ABORT, 'disk full'); END"
    )

    with pytest.raises(sqlite3.Error):
        store.save(doc.model_copy(update={"title": "Changed", "body": "Sun."}))

    assert Path(doc.local_path).read_bytes() == before
    assert store.require(SHA_A).body == "Fog."


def test_failed_insert_removes_new_file(store):
    store._conn.execute(
        "CREATE TRIGGER reject_insert BEFORE INSERT ON documents "
        "BEGIN SELECT RAISE(ABORT, 'disk full'); END"
    )

    with pytest.raises(sqlite3.Error):
        store.save(_published())

    assert list((store.data_dir / "posts").iterdir()) == []


def test_local_path_outside_store_rejected(store, tmp_path):
    outside = tmp_path / "elsewhere" / "post.md"
    doc = _published().model_copy(update={"local_path": str(outside)})

    with pytest.raises(ValueError, match="outside base directory"):
        store.save(doc)
    assert store.get(SHA_A) is None


def test_local_path_in_other_folder_reallocated(store):
    draft = store.create_draft(title="SF Trip")
    published = _published().model_copy(update={"local_path": draft.local_path})

    saved = store.save(published)

    assert Path(saved.local_path).parent.name == "posts"


# ---------------------------------------------------------------------------
# Loading edge cases
# ---------------------------------------------------------------------------


def test_malformed_file_falls_back_to_record(store):
    doc = store.save(_published())
    Path(doc.local_path).write_text("no front matter here", encoding="utf-8")

    loaded = store.require(SHA_A)

    assert loaded.title == "SF Trip"
    assert loaded.tags == ["travel"]
    assert loaded.body == "no front matter here"


def test_file_edits_win_over_record(store):
    doc = store.save(_published())
    Path(doc.local_path).write_text('---\ntitle: "Edited"\n---\n\nNew', encoding="utf-8")

    loaded = store.require(SHA_A)
    assert loaded.title == "Edited"
    assert loaded.body == "New"


def test_missing_file_falls_back_to_record(store):
    doc = store.save(_published())
    Path(doc.local_path).unlink()

    loaded = store.require(SHA_A)
    assert loaded.title == "SF Trip"
    assert loaded.body == ""
    assert loaded.modified_at is None


# ---------------------------------------------------------------------------
# reconcile()
# ---------------------------------------------------------------------------


def test_reconcile_removes_orphans_and_dangling(store):
    kept = store.create_draft(title="Kept")
    gone = store.save(_published())
    Path(gone.local_path).unlink()
    orphan = store.data_dir / "posts" / "stray.md"
    orphan.write_text("stray", encoding="utf-8")
    leftover = store.data_dir / "drafts" / "tmpabc.tmp"
    leftover.write_text("partial", encoding="utf-8")

    report = store.reconcile()

    assert report.changed
    assert report.dangling_records == [SHA_A]
    assert sorted(Path(p).name for p in report.orphan_files) == ["stray.md", "tmpabc.tmp"]
    assert not orphan.exists()
    assert [d.id for d in store.list_all()] == [kept.id]


def test_reconcile_clean_store(store):
    store.create_draft(title="Fine")
    report = store.reconcile()
    assert not report.changed
