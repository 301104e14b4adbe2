"""Agent-facing tool handlers."""

from .errors import classify_error, tool_error, tool_success
from .handlers import TOOL_SPECS, BasecampTools, ClientFactory, require_dock_tool

__all__ = [
    "BasecampTools",
    "ClientFactory",
    "TOOL_SPECS",
    "classify_error",
    "require_dock_tool",
    "tool_error",
    "tool_success",
]
