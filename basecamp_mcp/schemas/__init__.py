"""Pydantic schemas for content envelopes and tool inputs."""

from .content import (
    Attachment,
    Author,
    CampfireLine,
    Document,
    DocumentSummary,
    Message,
    PaginatedResult,
    Project,
    ProjectTools,
    Todo,
    TodoList,
)
from .tools import ListProjectsInput, ToolInput

__all__ = [
    "Attachment",
    "Author",
    "CampfireLine",
    "Document",
    "DocumentSummary",
    "ListProjectsInput",
    "Message",
    "PaginatedResult",
    "Project",
    "ProjectTools",
    "Todo",
    "TodoList",
    "ToolInput",
]
