"""Tests for sync/publisher.py -- single-commit publishing with images."""

from datetime import datetime
from pathlib import Path

import pytest

from conftest import git_blob_sha

from blog_sync_mcp.content.frontmatter import parse, serialize
from blog_sync_mcp.content.models import Document, FrontMatter
from blog_sync_mcp.errors import PublishFailed, RequestFailed
from blog_sync_mcp.sync.engine import SyncEngine
from blog_sync_mcp.sync.models import DocumentState
from blog_sync_mcp.sync.publisher import PublishPipeline

GIT_DATA_CALLS = (
    "get_branch_head_commit",
    "get_commit_tree",
    "create_blob",
    "create_tree",
    "create_commit",
    "update_branch_head",
)


def fixed_clock():
    return datetime(2025, 6, 8, 12, 0)


@pytest.fixture
def pipeline(fake_client, store, config):
    return PublishPipeline(fake_client, store, config, clock=fixed_clock)


@pytest.fixture
def images(tmp_path):
    first = tmp_path / "Photo_One.PNG"
    first.write_bytes(b"\x89PNG first")
    second = tmp_path / "second.jpg"
    second.write_bytes(b"\xff\xd8 second")
    return first, second


def git_data_calls(client):
    return [c for c in client.calls if c in GIT_DATA_CALLS]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestPublish:
    def test_draft_with_images_is_one_commit(self, pipeline, fake_client, store, images):
        first, second = images
        body = (
            f"Intro\n\n![one](file://{first})\n\n"
            f"![two](file://{second})\n\n![again](file://{first})\n"
        )
        draft = store.create_draft(title="SF Trip", body=body)

        result = pipeline.publish(draft, "Add SF trip")

        assert git_data_calls(fake_client) == [
            "get_branch_head_commit",
            "get_commit_tree",
            "create_blob",
            "create_blob",
            "create_blob",
            "create_tree",
            "create_commit",
            "update_branch_head",
        ]
        assert result.remote_path == "blog/sf-trip.md"
        assert result.commit_sha == fake_client.head
        assert result.disambiguated is False
        assert result.warnings == ()
        assert [i.source for i in result.images] == [str(first), str(second)]

        image = result.images[0]
        assert image.remote_path.startswith("public/assets/blog/photo-one-")
        assert image.remote_path.endswith(".png")
        assert image.url == "/" + image.remote_path.removeprefix("public/")
        assert fake_client.files[image.remote_path] == b"\x89PNG first"

        meta, published_body = parse(fake_client.files["blog/sf-trip.md"].decode())
        assert meta.title == "SF Trip"
        assert meta.date == "2025-06-08"
        assert "file://" not in published_body
        assert published_body.count(f"]({image.url})") == 2

    def test_local_record_replaced(self, pipeline, fake_client, store):
        draft = store.create_draft(title="SF Trip", body="Fog.")

        result = pipeline.publish(draft, "Add SF trip")

        doc = result.document
        assert doc.id == git_blob_sha(fake_client.files["blog/sf-trip.md"])
        assert doc.is_draft_local is False
        assert doc.origin_filename == "sf-trip.md"
        assert Path(doc.local_path).parent.name == "posts"
        assert store.get(draft.id) is None
        assert not Path(draft.local_path).exists()
        assert store.count() == {"drafts": 0, "published": 1}

    def test_existing_date_normalized(self, pipeline, fake_client, store):
        draft = store.create_draft(title="Dated", date="Jun 1, 2024")
        result = pipeline.publish(draft, "Add")
        assert result.document.date == "2024-06-01"

    def test_published_then_synced_is_unchanged(self, pipeline, fake_client, store, config):
        draft = store.create_draft(title="SF Trip", body="Fog.")
        pipeline.publish(draft, "Add SF trip")

        result = SyncEngine(fake_client, store, config).sync()

        assert [o.state for o in result.outcomes] == [DocumentState.UNCHANGED]


# ---------------------------------------------------------------------------
# Remote file name resolution
# ---------------------------------------------------------------------------


class TestFileName:
    def test_taken_slug_is_disambiguated(self, pipeline, fake_client, store):
        fake_client.add_file("blog/sf-trip.md", serialize(FrontMatter(title="Other"), ""))
        draft = store.create_draft(title="SF Trip")

        result = pipeline.publish(draft, "Add")

        assert result.remote_path == "blog/sf-trip2.md"
        assert result.disambiguated is True
        assert any("sf-trip2.md" in w for w in result.warnings)
        assert fake_client.files["blog/sf-trip.md"].decode().count("Other") == 1

    def test_origin_filename_reused(self, pipeline, fake_client, store):
        doc = store.save(
            Document(
                id="a" * 40,
                title="Renamed Title",
                is_draft_local=False,
                origin_filename="custom.md",
                body="edited",
            )
        )

        result = pipeline.publish(doc, "Edit")

        assert result.remote_path == "blog/custom.md"
        assert "list_directory" not in fake_client.calls
        assert store.get("a" * 40) is None
        assert store.require(result.document.id).body == "edited"

    def test_published_without_name_matched_by_title(self, pipeline, fake_client, store):
        fake_client.add_file("blog/my-post.md", serialize(FrontMatter(title="My Post!"), "v1"))
        doc = store.save(
            Document(id="a" * 40, title="my post!", is_draft_local=False, body="v2")
        )

        result = pipeline.publish(doc, "Edit")

        assert result.remote_path == "blog/my-post.md"
        assert result.disambiguated is False


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_image_blob_failure_leaves_branch(self, pipeline, fake_client, store, images):
        first, second = images
        draft = store.create_draft(
            title="SF Trip", body=f"![a](file://{first}) ![b](file://{second})"
        )
        head = fake_client.head
        fake_client.failures["create_blob"] = (3, RequestFailed("boom", status=500))

        with pytest.raises(PublishFailed) as exc_info:
            pipeline.publish(draft, "Add")

        assert str(exc_info.value) == "Failed to publish 'SF Trip': boom"
        assert isinstance(exc_info.value.__cause__, RequestFailed)
        assert "create_tree" not in fake_client.calls
        assert "update_branch_head" not in fake_client.calls
        assert fake_client.head == head
        assert "blog/sf-trip.md" not in fake_client.files
        assert store.require(draft.id).body == draft.body

    def test_ref_update_failure_keeps_draft(self, pipeline, fake_client, store):
        draft = store.create_draft(title="SF Trip")
        fake_client.failures["update_branch_head"] = (
            1,
            RequestFailed("not a fast forward", status=422),
        )

        with pytest.raises(PublishFailed):
            pipeline.publish(draft, "Add")

        assert store.require(draft.id).is_draft_local is True

    def test_unreadable_image_skipped_with_warning(self, pipeline, fake_client, store, tmp_path):
        missing = tmp_path / "missing.png"
        draft = store.create_draft(title="Pics", body=f"![x](file://{missing})")

        result = pipeline.publish(draft, "Add")

        assert result.images == ()
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith(f"Skipped image {missing}")
        assert fake_client.calls.count("create_blob") == 1
        assert f"file://{missing}" in result.document.body

    def test_percent_encoded_image_path(self, pipeline, fake_client, store, tmp_path):
        image = tmp_path / "with space.png"
        image.write_bytes(b"png")
        encoded = str(image).replace(" ", "%20")
        draft = store.create_draft(title="Space", body=f"![s](file://{encoded})")

        result = pipeline.publish(draft, "Add")

        assert [i.source for i in result.images] == [str(image)]

    def test_titled_image_uploaded_and_title_kept(self, pipeline, fake_client, store, images):
        first, _ = images
        draft = store.create_draft(title="Pics", body=f'![a](file://{first} "Caption")')

        result = pipeline.publish(draft, "Add")

        image = result.images[0]
        assert result.document.body == f'![a]({image.url} "Caption")'
        assert result.warnings == ()
        assert fake_client.files[image.remote_path] == b"\x89PNG first"

    def test_other_local_reference_warned(self, pipeline, fake_client, store, tmp_path):
        draft = store.create_draft(
            title="Link", body=f"See [notes](file://{tmp_path}/notes.pdf)."
        )

        result = pipeline.publish(draft, "Add")

        assert result.warnings == (
            f"Local reference left in published body: file://{tmp_path}/notes.pdf",
        )

    def test_local_store_failure_is_a_warning(self, pipeline, fake_client, store, monkeypatch):
        draft = store.create_draft(title="SF Trip")

        def broken_replace(old_id, document):
            raise OSError("disk full")

        monkeypatch.setattr(store, "replace", broken_replace)

        result = pipeline.publish(draft, "Add")

        assert "blog/sf-trip.md" in fake_client.files
        assert len(result.warnings) == 1
        assert "disk full" in result.warnings[0]
