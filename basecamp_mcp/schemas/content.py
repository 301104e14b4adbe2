"""
Normalized envelopes for Basecamp content returned to agents.

Every content type shares the same base shape regardless of Basecamp's raw
field names; ``content`` is always Markdown.
"""

from __future__ import annotations

from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import (
    BaseModel,
    Field,
    PositiveInt,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

DOCUMENT_PREVIEW_CHARS = 500

T = TypeVar("T")


class Author(BaseModel):
    name: StrictStr
    email: StrictStr = ""


class ContentEnvelope(BaseModel):
    """Fields common to every content type."""

    id: StrictInt
    title: StrictStr
    author: Author
    created_at: StrictStr
    updated_at: StrictStr
    url: StrictStr
    content: StrictStr = ""


class Project(ContentEnvelope):
    status: StrictStr
    description: StrictStr = ""


class DockTool(BaseModel):
    id: StrictInt
    enabled: StrictBool
    url: Optional[StrictStr] = None


class ProjectTools(BaseModel):
    """Internal ids of a project's dock tools; ``None`` when absent."""

    project_id: StrictInt
    project_name: StrictStr
    message_board_id: Optional[int] = None
    todoset_id: Optional[int] = None
    vault_id: Optional[int] = None
    chat_id: Optional[int] = None
    tools: Dict[str, DockTool] = Field(default_factory=dict)


class Message(ContentEnvelope):
    replies_count: StrictInt = 0


class TodoList(ContentEnvelope):
    completed: StrictBool = False
    completed_ratio: Optional[StrictStr] = None
    todos_count: Optional[StrictInt] = None


class Todo(ContentEnvelope):
    completed: StrictBool
    due_on: Optional[StrictStr] = None
    completed_at: Optional[StrictStr] = None
    comments_count: StrictInt = 0
    assignees: List[Author] = Field(default_factory=list)


class Document(ContentEnvelope):
    pass


class DocumentSummary(Document):
    """List-view document: content is cut to a fixed-size preview."""

    truncated: bool = True

    @field_validator("content")
    @classmethod
    def _preview(cls, value: str) -> str:
        return value[:DOCUMENT_PREVIEW_CHARS]


class CampfireLine(ContentEnvelope):
    title: StrictStr = ""


class Attachment(ContentEnvelope):
    """Upload metadata. Binary content is never fetched."""

    content: Literal[""] = ""
    content_type: StrictStr
    byte_size: StrictInt
    download_url: Optional[StrictStr] = None


class PaginatedResult(BaseModel, Generic[T]):
    items: List[T]
    has_more: bool
    next_page: Optional[PositiveInt] = None

    @model_validator(mode="after")
    def _next_page_requires_more(self) -> "PaginatedResult[T]":
        if not self.has_more and self.next_page is not None:
            raise ValueError("next_page must be null when has_more is false")
        return self


__all__ = [
    "Attachment",
    "Author",
    "CampfireLine",
    "ContentEnvelope",
    "DOCUMENT_PREVIEW_CHARS",
    "DockTool",
    "Document",
    "DocumentSummary",
    "Message",
    "PaginatedResult",
    "Project",
    "ProjectTools",
    "Todo",
    "TodoList",
]
