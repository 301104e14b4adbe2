"""
Error taxonomy shared by the token manager, the request gateway and the
tool handlers.

Every exception carries a machine-readable ``code`` and a ``retryable`` flag
so the tool layer can turn it into a structured failure payload.
"""

from __future__ import annotations

from typing import Optional


class BasecampError(Exception):
    """Base class for failures surfaced to tool callers."""

    code = "NOT_FOUND"
    retryable = False


class TokenExpiredError(BasecampError):
    """No usable credential exists; the user must authorize again."""

    code = "TOKEN_EXPIRED"

    def __init__(self, reauth_url: str) -> None:
        super().__init__(
            f"Basecamp access token expired and could not be refreshed. "
            f"Re-authenticate at {reauth_url}"
        )
        self.reauth_url = reauth_url


class RateLimitError(BasecampError):
    """Raised once rate-limit retries are exhausted."""

    code = "RATE_LIMITED"
    retryable = True

    def __init__(self, retry_after_ms: int) -> None:
        super().__init__(
            f"Basecamp rate limit exceeded. Retry after {retry_after_ms}ms"
        )
        self.retry_after_ms = retry_after_ms


class ReadOnlyError(BasecampError):
    """Raised when a non-GET request is attempted against the gateway."""

    code = "INVALID_INPUT"

    def __init__(self, method: str) -> None:
        super().__init__(f"Basecamp client is read-only. Blocked method: {method}")
        self.method = method


class NotFoundError(BasecampError):
    code = "NOT_FOUND"


class PermissionDeniedError(BasecampError):
    code = "PERMISSION_DENIED"


class InvalidInputError(BasecampError):
    code = "INVALID_INPUT"


class ToolNotEnabledError(BasecampError):
    """The requested dock tool is disabled or absent for the project."""

    code = "TOOL_NOT_ENABLED"

    def __init__(self, tool: str, project_id: Optional[int] = None) -> None:
        where = f" in project {project_id}" if project_id is not None else ""
        super().__init__(f"The {tool} tool is not enabled{where}.")
        self.tool = tool
        self.project_id = project_id


class BasecampAPIError(BasecampError):
    """Non-success response that has no more specific classification."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = status_code >= 500


__all__ = [
    "BasecampAPIError",
    "BasecampError",
    "InvalidInputError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "ReadOnlyError",
    "TokenExpiredError",
    "ToolNotEnabledError",
]
