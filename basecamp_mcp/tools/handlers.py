"""Tool handlers exposed to the agent through the tool-call protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type

from pydantic import ValidationError

from basecamp_mcp.clients.basecamp import BasecampClient
from basecamp_mcp.core.errors import ToolNotEnabledError
from basecamp_mcp.models.token import BasecampCredentials
from basecamp_mcp.schemas.content import Attachment, DockTool, ProjectTools
from basecamp_mcp.schemas.tools import (
    GetDocumentInput,
    GetMessageInput,
    GetTodoInput,
    ListCampfireLinesInput,
    ListMessagesInput,
    ListProjectsInput,
    ListTodoListsInput,
    ListTodosInput,
    ProjectToolsInput,
    ToolInput,
    VaultPageInput,
)
from basecamp_mcp.services.tokens import BasecampTokenService
from basecamp_mcp.tools.errors import (
    classify_error,
    describe_validation_error,
    tool_error,
    tool_success,
)

logger = logging.getLogger(__name__)

CAMPFIRE_DEFAULT_WINDOW = timedelta(hours=24)

ClientFactory = Callable[[BasecampCredentials], BasecampClient]
Operation = Callable[[BasecampClient, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: Type[ToolInput]
    method: str


TOOL_SPECS: Dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            "list_projects",
            "List Basecamp projects with their status and description. Use "
            "project ids from the results with every other tool.",
            ListProjectsInput,
            "list_projects",
        ),
        ToolSpec(
            "get_project_tools",
            "Get the message board, todoset, vault and chat ids of a project "
            "and whether each is enabled. Call this before the content tools.",
            ProjectToolsInput,
            "get_project_tools",
        ),
        ToolSpec(
            "list_messages",
            "List message board posts with content as markdown.",
            ListMessagesInput,
            "list_messages",
        ),
        ToolSpec(
            "get_message",
            "Get one message board post with its full markdown body.",
            GetMessageInput,
            "get_message",
        ),
        ToolSpec(
            "list_todolists",
            "List to-do lists in a project's todoset.",
            ListTodoListsInput,
            "list_todolists",
        ),
        ToolSpec(
            "list_todos",
            "List to-dos in a to-do list; incomplete ones unless completed is true.",
            ListTodosInput,
            "list_todos",
        ),
        ToolSpec(
            "get_todo",
            "Get one to-do with assignees, due date and completion details.",
            GetTodoInput,
            "get_todo",
        ),
        ToolSpec(
            "list_documents",
            "List vault documents with a 500 character preview of each. Use "
            "get_document for the full text.",
            VaultPageInput,
            "list_documents",
        ),
        ToolSpec(
            "get_document",
            "Get one document with its complete markdown content.",
            GetDocumentInput,
            "get_document",
        ),
        ToolSpec(
            "list_campfire_lines",
            "List Campfire chat lines. Defaults to the last 24 hours when "
            "neither since nor limit is given.",
            ListCampfireLinesInput,
            "list_campfire_lines",
        ),
        ToolSpec(
            "list_attachments",
            "List file uploads in a vault. Metadata and download URL only; "
            "file contents are never fetched.",
            VaultPageInput,
            "list_attachments",
        ),
    )
}


def require_dock_tool(project: ProjectTools, name: str) -> DockTool:
    """Return the named dock tool, raising if it is missing or disabled."""
    dock = project.tools.get(name)
    if dock is None or not dock.enabled:
        raise ToolNotEnabledError(name, project.project_id)
    return dock


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _merge(arguments: Optional[Mapping[str, Any]], kwargs: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(arguments or {})
    merged.update(kwargs)
    return merged


def _attachment_summary(attachment: Attachment) -> Dict[str, Any]:
    return {
        "id": attachment.id,
        "filename": attachment.title,
        "content_type": attachment.content_type,
        "byte_size": attachment.byte_size,
        "download_url": attachment.download_url,
        "creator": attachment.author.name,
        "created_at": attachment.created_at,
    }


class BasecampTools:
    """Facade the tool-registration layer calls for one authenticated user.

    Every method takes the raw tool arguments and returns a structured
    success or failure payload; none of them raise.
    """

    def __init__(
        self,
        *,
        user_id: int,
        token_service: BasecampTokenService,
        client_factory: ClientFactory,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._user_id = user_id
        self._tokens = token_service
        self._client_factory = client_factory
        self._clock = clock

    @property
    def user_id(self) -> int:
        return self._user_id

    async def call(self, name: str, arguments: Any = None) -> Dict[str, Any]:
        spec = TOOL_SPECS.get(name)
        if spec is None:
            return tool_error("INVALID_INPUT", f"Unknown tool: {name}")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            return tool_error("INVALID_INPUT", "Tool arguments must be an object.")
        if not all(isinstance(key, str) for key in arguments):
            return tool_error("INVALID_INPUT", "Tool argument names must be strings.")
        return await getattr(self, spec.method)(dict(arguments))

    async def _run(
        self,
        input_model: Type[ToolInput],
        arguments: Mapping[str, Any],
        operation: Operation,
    ) -> Dict[str, Any]:
        try:
            params = input_model.model_validate(dict(arguments))
        except ValidationError as exc:
            return tool_error("INVALID_INPUT", describe_validation_error(exc))

        try:
            credentials = await self._tokens.resolve_credentials(self._user_id)
            async with self._client_factory(credentials) as client:
                result = await operation(client, params)
        except Exception as exc:  # reported to the agent as a structured failure
            logger.info(
                "Tool %s failed for user %s: %s",
                input_model.__name__,
                self._user_id,
                type(exc).__name__,
            )
            return classify_error(exc)
        return tool_success(result)

    # Projects

    async def list_projects(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: ListProjectsInput) -> Any:
            remote_status = "archived" if params.status == "archived" else None
            result = await client.list_projects(params.page, status=remote_status)
            if params.status == "all":
                return result
            items = [project for project in result.items if project.status == params.status]
            return result.model_copy(update={"items": items})

        return await self._run(ListProjectsInput, _merge(arguments, kwargs), operation)

    async def get_project_tools(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: ProjectToolsInput) -> Any:
            project = await client.get_project_tools(params.project_id)
            if params.tool is None:
                return project
            dock = require_dock_tool(project, params.tool)
            return {
                "project_id": project.project_id,
                "project_name": project.project_name,
                "tool": params.tool,
                **dock.model_dump(mode="json"),
            }

        return await self._run(ProjectToolsInput, _merge(arguments, kwargs), operation)

    # Message board

    async def list_messages(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: ListMessagesInput) -> Any:
            return await client.list_messages(
                params.project_id, params.message_board_id, params.page
            )

        return await self._run(ListMessagesInput, _merge(arguments, kwargs), operation)

    async def get_message(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: GetMessageInput) -> Any:
            return await client.get_message(params.project_id, params.message_id)

        return await self._run(GetMessageInput, _merge(arguments, kwargs), operation)

    # To-dos

    async def list_todolists(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: ListTodoListsInput) -> Any:
            return await client.list_todo_lists(
                params.project_id, params.todoset_id, params.page
            )

        return await self._run(ListTodoListsInput, _merge(arguments, kwargs), operation)

    async def list_todos(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: ListTodosInput) -> Any:
            result = await client.list_todos(
                params.project_id,
                params.todolist_id,
                params.page,
                completed=params.completed,
            )
            items = [todo for todo in result.items if todo.completed == params.completed]
            return result.model_copy(update={"items": items})

        return await self._run(ListTodosInput, _merge(arguments, kwargs), operation)

    async def get_todo(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: GetTodoInput) -> Any:
            return await client.get_todo(params.project_id, params.todo_id)

        return await self._run(GetTodoInput, _merge(arguments, kwargs), operation)

    # Docs & files

    async def list_documents(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: VaultPageInput) -> Any:
            return await client.list_documents(params.project_id, params.vault_id, params.page)

        return await self._run(VaultPageInput, _merge(arguments, kwargs), operation)

    async def get_document(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: GetDocumentInput) -> Any:
            return await client.get_document(params.project_id, params.document_id)

        return await self._run(GetDocumentInput, _merge(arguments, kwargs), operation)

    async def list_attachments(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: VaultPageInput) -> Any:
            result = await client.list_attachments(
                params.project_id, params.vault_id, params.page
            )
            return {
                "items": [_attachment_summary(item) for item in result.items],
                "has_more": result.has_more,
                "next_page": result.next_page,
            }

        return await self._run(VaultPageInput, _merge(arguments, kwargs), operation)

    # Campfire

    async def list_campfire_lines(
        self, arguments: Optional[Mapping[str, Any]] = None, /, **kwargs: Any
    ) -> Dict[str, Any]:
        async def operation(client: BasecampClient, params: ListCampfireLinesInput) -> Any:
            since = params.since
            if since is None and params.limit is None:
                since = self._clock() - CAMPFIRE_DEFAULT_WINDOW
            if since is not None and since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)

            result = await client.list_campfire_lines(
                params.project_id, params.chat_id, params.page
            )
            # The chat lines endpoint has no server-side time filter.
            items = result.items
            if since is not None:
                items = [line for line in items if _parse_timestamp(line.created_at) >= since]
            if params.limit is not None:
                items = items[-params.limit:]

            payload = result.model_copy(update={"items": items}).model_dump(mode="json")
            payload["since"] = since.isoformat() if since is not None else None
            return payload

        return await self._run(ListCampfireLinesInput, _merge(arguments, kwargs), operation)


__all__ = ["BasecampTools", "TOOL_SPECS", "ToolSpec", "require_dock_tool"]
