"""Exception taxonomy shared by the sync core and its outer surfaces.

Remote client failures (``NotAuthenticated``, ``InvalidURL``,
``RequestFailed``, ``InvalidResponse``) are raised by
``core.client.GitHubClient``.  Document parsing raises
``MalformedDocument``.  The sync engine collects these per item; the
publish pipeline wraps them in ``PublishFailed``.
"""

from __future__ import annotations


class BlogSyncError(Exception):
    """Base class for all blog sync errors."""


class NotAuthenticated(BlogSyncError):
    """No GitHub credential is configured."""

    def __init__(self, message: str = "Not authenticated with GitHub") -> None:
        super().__init__(message)


class InvalidURL(BlogSyncError):
    """A request URL could not be built from the configuration."""


class RequestFailed(BlogSyncError):
    """A remote request failed or returned an unexpected status.

    Attributes:
        status: HTTP status code, or ``None`` for transport failures
            (timeouts, connection errors).
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class InvalidResponse(BlogSyncError):
    """The remote returned a payload that could not be decoded."""


class MalformedDocument(BlogSyncError):
    """A markdown document has no parsable front-matter block."""


class IdentityCollision(BlogSyncError):
    """A slug is already used remotely.

    Handled internally by disambiguation; only raised when the caller
    explicitly asks for a collision-free name without disambiguation.
    """

    def __init__(self, slug: str) -> None:
        super().__init__(f"Slug '{slug}' already exists in the repository")
        self.slug = slug


class DocumentNotFound(BlogSyncError):
    """No local document exists for the given id."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document '{document_id}' not found")
        self.document_id = document_id


class PublishFailed(BlogSyncError):
    """A publish attempt failed; no remote ref was moved."""
