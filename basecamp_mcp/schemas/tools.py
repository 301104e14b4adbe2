"""Input models for the agent-facing tools."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

DockToolName = Literal["message_board", "todoset", "vault", "chat"]


class ToolInput(BaseModel):
    # Unknown arguments (an account id in particular) are rejected, not ignored.
    model_config = ConfigDict(extra="forbid")


class PagedInput(ToolInput):
    page: PositiveInt = Field(1, description="Page number; check has_more for further pages.")


class ListProjectsInput(PagedInput):
    status: Literal["active", "archived", "all"] = "active"


class ProjectToolsInput(ToolInput):
    project_id: PositiveInt
    tool: Optional[DockToolName] = Field(
        None, description="Only return this dock tool, failing if it is disabled."
    )


class ListMessagesInput(PagedInput):
    project_id: PositiveInt
    message_board_id: PositiveInt


class GetMessageInput(ToolInput):
    project_id: PositiveInt
    message_id: PositiveInt


class ListTodoListsInput(PagedInput):
    project_id: PositiveInt
    todoset_id: PositiveInt


class ListTodosInput(PagedInput):
    project_id: PositiveInt
    todolist_id: PositiveInt
    completed: bool = False


class GetTodoInput(ToolInput):
    project_id: PositiveInt
    todo_id: PositiveInt


class VaultPageInput(PagedInput):
    project_id: PositiveInt
    vault_id: PositiveInt


class GetDocumentInput(ToolInput):
    project_id: PositiveInt
    document_id: PositiveInt


class ListCampfireLinesInput(PagedInput):
    project_id: PositiveInt
    chat_id: PositiveInt
    since: Optional[datetime] = Field(
        None, description="Only lines created at or after this ISO 8601 time."
    )
    limit: Optional[int] = Field(None, ge=1, le=200)


__all__ = [
    "DockToolName",
    "GetDocumentInput",
    "GetMessageInput",
    "GetTodoInput",
    "ListCampfireLinesInput",
    "ListMessagesInput",
    "ListProjectsInput",
    "ListTodoListsInput",
    "ListTodosInput",
    "PagedInput",
    "ProjectToolsInput",
    "ToolInput",
    "VaultPageInput",
]
