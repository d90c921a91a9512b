"""Shared pytest fixtures for blog-sync-mcp tests."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone

import pytest

from blog_sync_mcp.config import Config
from blog_sync_mcp.content.store import ContentStore
from blog_sync_mcp.core.models import RemoteEntry, RemoteFile, TreeEntry
from blog_sync_mcp.errors import NotAuthenticated, RequestFailed

BLOG_ENV_VARS = (
    "GITHUB_TOKEN",
    "GITHUB_OWNER",
    "GITHUB_REPO",
    "GITHUB_BRANCH",
    "GITHUB_API_URL",
    "BLOG_PATH",
    "BLOG_IMAGE_PATH",
    "BLOG_IMAGE_URL_PREFIX",
    "BLOG_DATA_DIR",
    "BLOG_SYNC_DEBUG",
    "BLOG_RECENT_EDIT_HOURS",
    "BLOG_REQUEST_TIMEOUT",
    "BLOG_SYNC_CONFIG",
    "LOG_LEVEL",
    "LOG_FILE",
)


def git_blob_sha(data: bytes | str) -> str:
    """SHA GitHub assigns to a blob with this content."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the config layer reads."""
    for name in BLOG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config(tmp_path):
    return Config(
        owner="octocat",
        repo="octocat.github.io",
        token="ghp_test",
        data_dir=str(tmp_path / "data"),
    )


@pytest.fixture
def store(tmp_path):
    content_store = ContentStore(tmp_path / "data")
    yield content_store
    content_store.close()


class FakeGitHubClient:
    """In-memory stand-in for ``GitHubClient``.

    ``files`` maps repository paths to bytes.  Blobs, trees and commits
    are kept separately and only reach ``files`` when the branch head is
    moved, like the real Git Data API.  Every call is appended to
    ``calls``; ``failures`` maps a method name to an exception raised on
    the given 1-based call number (``{"create_blob": (3, exc)}``).
    """

    def __init__(self, token: str | None = "ghp_test") -> None:
        self.token = token
        self.files: dict[str, bytes] = {}
        self.calls: list[str] = []
        self.failures: dict[str, tuple[int, Exception]] = {}
        self.head = "c" * 40
        self.language: str | None = "TypeScript"
        self._counts: dict[str, int] = {}
        self._blobs: dict[str, bytes] = {}
        self._trees: dict[str, list[TreeEntry]] = {}
        self._commits: dict[str, str] = {}

    # -- helpers ----------------------------------------------------------

    def add_file(self, path: str, content: str | bytes) -> str:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.files[path] = data
        return git_blob_sha(data)

    def _call(self, name: str) -> None:
        if self.token is None:
            raise NotAuthenticated()
        self.calls.append(name)
        self._counts[name] = self._counts.get(name, 0) + 1
        failure = self.failures.get(name)
        if failure is not None and failure[0] == self._counts[name]:
            raise failure[1]

    # -- contents API -----------------------------------------------------

    def list_directory(self, path: str) -> list[RemoteEntry]:
        self._call("list_directory")
        prefix = path.strip("/") + "/"
        return [
            RemoteEntry(
                name=p[len(prefix):],
                path=p,
                sha=git_blob_sha(data),
                size=len(data),
            )
            for p, data in sorted(self.files.items())
            if p.startswith(prefix) and "/" not in p[len(prefix):]
        ]

    def fetch_file_content(self, path: str) -> str:
        self._call("fetch_file_content")
        if path not in self.files:
            raise RequestFailed(f"GET {path} returned 404", status=404)
        return self.files[path].decode("utf-8")

    def fetch_file(self, entry: RemoteEntry) -> RemoteFile:
        self._call("fetch_file")
        if entry.path not in self.files:
            raise RequestFailed(f"GET {entry.path} returned 404", status=404)
        data = self.files[entry.path]
        return RemoteFile(
            name=entry.name,
            path=entry.path,
            content=data.decode("utf-8"),
            content_hash=git_blob_sha(data),
        )

    # -- git data API -----------------------------------------------------

    def get_branch_head_commit(self) -> str:
        self._call("get_branch_head_commit")
        return self.head

    def get_commit_tree(self, commit: str) -> str:
        self._call("get_commit_tree")
        return "t" * 40

    def create_blob(self, content: bytes | str) -> str:
        self._call("create_blob")
        data = content.encode("utf-8") if isinstance(content, str) else content
        sha = git_blob_sha(data)
        self._blobs[sha] = data
        return sha

    def create_tree(self, base_tree: str, entries: list[TreeEntry]) -> str:
        self._call("create_tree")
        sha = hashlib.sha1(repr(entries).encode()).hexdigest()
        self._trees[sha] = list(entries)
        return sha

    def create_commit(self, tree: str, parent: str, message: str) -> str:
        self._call("create_commit")
        sha = hashlib.sha1(f"{tree}{parent}{message}".encode()).hexdigest()
        self._commits[sha] = tree
        return sha

    def update_branch_head(self, commit: str) -> bool:
        self._call("update_branch_head")
        for entry in self._trees[self._commits[commit]]:
            self.files[entry.path] = self._blobs[entry.sha]
        self.head = commit
        return True

    # -- account ----------------------------------------------------------

    def get_authenticated_user(self) -> str:
        self._call("get_authenticated_user")
        return "octocat"

    def get_repository_language(self) -> str | None:
        self._call("get_repository_language")
        return self.language


@pytest.fixture
def fake_client():
    return FakeGitHubClient()


@pytest.fixture
def blog_ctx(fake_client, store, config):
    """BlogContext wired to the fake remote and a temp store."""
    from blog_sync_mcp.context import BlogContext
    from blog_sync_mcp.sync.engine import SyncEngine
    from blog_sync_mcp.sync.publisher import PublishPipeline

    return BlogContext(
        config=config,
        client=fake_client,
        store=store,
        engine=SyncEngine(fake_client, store, config),
        publisher=PublishPipeline(fake_client, store, config),
    )
