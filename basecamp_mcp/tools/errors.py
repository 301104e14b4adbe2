"""
Structured tool responses.

Failures are returned, never raised, as ``{error_code, message, retryable}``
so an agent can decide whether to retry, escalate or ask the user to
re-authorize.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal

import httpx
from pydantic import BaseModel, ValidationError

from basecamp_mcp.core.errors import BasecampError

logger = logging.getLogger(__name__)

ToolErrorCode = Literal[
    "TOKEN_EXPIRED",
    "RATE_LIMITED",
    "NOT_FOUND",
    "TOOL_NOT_ENABLED",
    "PERMISSION_DENIED",
    "INVALID_INPUT",
]


def tool_error(code: ToolErrorCode, message: str, retryable: bool = False) -> Dict[str, Any]:
    return {
        "is_error": True,
        "error": {"error_code": code, "message": message, "retryable": retryable},
    }


def tool_success(data: Any) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return {"is_error": False, "data": data}


def describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "input"
        problems.append(f"{location}: {error.get('msg')}")
    return "; ".join(problems)


def classify_error(error: BaseException) -> Dict[str, Any]:
    """Map an exception raised while serving a tool call to a failure payload."""
    if isinstance(error, BasecampError):
        return tool_error(error.code, str(error), error.retryable)
    if isinstance(error, ValidationError):
        # A Basecamp item that does not fit its envelope.
        return tool_error(
            "NOT_FOUND",
            f"Unexpected Basecamp response shape: {describe_validation_error(error)}",
        )
    if isinstance(error, httpx.TransportError):
        return tool_error("NOT_FOUND", f"Basecamp could not be reached: {error!r}", True)
    logger.exception("Unhandled error while serving tool call", exc_info=error)
    return tool_error("NOT_FOUND", str(error) or type(error).__name__)


__all__ = [
    "ToolErrorCode",
    "classify_error",
    "describe_validation_error",
    "tool_error",
    "tool_success",
]
