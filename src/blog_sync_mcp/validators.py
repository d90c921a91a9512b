"""
Input validation for the tool and CLI surfaces.

Each validator returns ``(is_valid, error_message)`` so callers can turn
a failure into a structured error response instead of an exception.
"""

import re

# uuid4 hex (local drafts) or a 40-char git blob SHA
_DOCUMENT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$|^[0-9a-f]{40}$")

LIST_KINDS = ("all", "drafts", "published")


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Build a consistent validation error message.

    Args:
        field_name: Human-readable field name (e.g., "Commit message")
        reason: What failed (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_document_id(document_id: str) -> tuple[bool, str]:
    """
    Validate a local document id.

    Accepted forms are a 32-char hex draft id or a 40-char hex blob SHA.
    """
    if not document_id or not document_id.strip():
        return False, format_validation_error("Document id", "cannot be empty")

    if not _DOCUMENT_ID_PATTERN.match(document_id.strip()):
        return (
            False,
            format_validation_error(
                "Document id", "must be a 32 or 40 character hex string"
            ),
        )

    return True, ""


def validate_commit_message(
    message: str, max_length: int = 4096
) -> tuple[bool, str]:
    """
    Validate a commit message.

    Rules:
        - Cannot be empty or whitespace-only
        - Cannot exceed max_length characters
    """
    if not message or not message.strip():
        return False, format_validation_error("Commit message", "cannot be empty")

    if len(message) > max_length:
        return (
            False,
            format_validation_error(
                "Commit message", f"exceeds maximum length of {max_length} characters"
            ),
        )

    return True, ""


def validate_content(content: str, max_size: int = 1_000_000) -> tuple[bool, str]:
    """
    Validate document body size.

    An empty body is allowed; drafts often start empty.
    """
    content_bytes = len(content.encode("utf-8"))
    if content_bytes > max_size:
        return (
            False,
            format_validation_error(
                "Content", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return True, ""


def validate_list_kind(kind: str) -> tuple[bool, str]:
    if kind not in LIST_KINDS:
        return (
            False,
            format_validation_error("Kind", f"must be one of {', '.join(LIST_KINDS)}"),
        )
    return True, ""
