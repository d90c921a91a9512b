"""Error response builders for MCP tool handlers.

Structured errors carry a corrective action so an agent can recover
without human intervention.
"""

import mcp.types as types

from ...errors import (
    BlogSyncError,
    DocumentNotFound,
    InvalidResponse,
    InvalidURL,
    MalformedDocument,
    NotAuthenticated,
    PublishFailed,
    RequestFailed,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, not_authenticated,
            remote_error, publish_failed, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Document 'abc' not found", "Use blog_list to find document ids.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def _remote_action(status: int | None) -> str:
    match status:
        case None:
            return "GitHub could not be reached. Check network access and retry."
        case 401:
            return "The token was rejected. Set a valid GITHUB_TOKEN and restart the server."
        case 403:
            return "The token lacks access. Grant it contents read/write on the repository."
        case 404:
            return "Check GITHUB_OWNER, GITHUB_REPO and GITHUB_BRANCH."
        case 409 | 422:
            return "The branch moved or rejected the update. Run blog_sync, then retry."
        case s if s >= 500:
            return "GitHub returned a server error. Retry later."
        case _:
            return "Check the repository configuration and retry."


def translate_blog_error(error: BlogSyncError) -> types.CallToolResult:
    """Translate a sync core exception to a structured error response."""
    match error:
        case NotAuthenticated():
            return build_error_response(
                "not_authenticated",
                str(error),
                "Set GITHUB_TOKEN (environment or .env) and restart the server.",
            )
        case DocumentNotFound():
            return build_error_response(
                "not_found",
                str(error),
                "Use blog_list to find document ids.",
            )
        case PublishFailed():
            cause = error.__cause__
            action = (
                _remote_action(cause.status)
                if isinstance(cause, RequestFailed)
                else "Fix the cause and retry blog_publish. The branch was not changed."
            )
            return build_error_response("publish_failed", str(error), action)
        case RequestFailed():
            return build_error_response(
                "remote_error", str(error), _remote_action(error.status)
            )
        case InvalidURL():
            return build_error_response(
                "validation_error",
                str(error),
                "Check GITHUB_API_URL, GITHUB_OWNER and GITHUB_REPO.",
            )
        case InvalidResponse() | MalformedDocument():
            return build_error_response(
                "server_error", str(error), "Retry later or inspect the file on GitHub."
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Retry later."
            )
