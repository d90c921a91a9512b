"""Value objects returned by the GitHub client.

None of these are persisted; they live for one sync or publish pass.
"""

from __future__ import annotations

from pydantic import BaseModel


class RemoteEntry(BaseModel):
    """One item of a ``contents`` directory listing.

    Attributes:
        name: File name (``sf-trip.md``).
        path: Repository path (``blog/sf-trip.md``).
        sha: Git blob SHA of the file content.
        type: ``file``, ``dir``, ``symlink`` or ``submodule``.
        size: Size in bytes.
    """

    name: str
    path: str
    sha: str
    type: str = "file"
    size: int = 0

    model_config = {"frozen": True}

    @property
    def is_markdown(self) -> bool:
        return self.type == "file" and self.name.lower().endswith(".md")


class RemoteFile(BaseModel):
    """A downloaded remote file.

    Attributes:
        name: File name.
        path: Repository path.
        content: Decoded text.
        content_hash: Git blob SHA, the document id of synced posts.
    """

    name: str
    path: str
    content: str
    content_hash: str

    model_config = {"frozen": True}

    @property
    def slug(self) -> str:
        return self.name[:-3] if self.name.lower().endswith(".md") else self.name


class TreeEntry(BaseModel):
    """A blob placed at *path* in a new tree."""

    path: str
    sha: str
    mode: str = "100644"
    type: str = "blob"

    model_config = {"frozen": True}
