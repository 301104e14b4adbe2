"""
Read-only Basecamp 3 API client.

One instance is bound to one user's access token and account. The account
id is fixed at construction and never taken from method arguments, so a
caller cannot steer requests into another account.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import unquote, urlsplit

import httpx

from basecamp_mcp.clients.pagination import RawResponse, paginate
from basecamp_mcp.core.errors import (
    BasecampAPIError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    ReadOnlyError,
    TokenExpiredError,
)
from basecamp_mcp.models.token import BasecampCredentials
from basecamp_mcp.schemas.content import (
    Attachment,
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
from basecamp_mcp.utils.concurrency import RequestSlots
from basecamp_mcp.utils.http import DEFAULT_MAX_ATTEMPTS, with_rate_limit
from basecamp_mcp.utils.markdown import html_to_markdown

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://3.basecampapi.com"
DEFAULT_USER_AGENT = "Basecamp MCP Server (ops@basecamp-mcp.dev)"
DOCK_TOOL_FIELDS = {
    "message_board": "message_board_id",
    "todoset": "todoset_id",
    "vault": "vault_id",
    "chat": "chat_id",
}


async def _enforce_read_only(request: httpx.Request) -> None:
    # Second line of defence for anything that reaches the httpx client directly.
    if request.method.upper() != "GET":
        raise ReadOnlyError(request.method)


def _ensure_account_relative(path: str) -> None:
    """Reject paths that could resolve outside the bound account."""
    parts = urlsplit(path)
    segments = unquote(parts.path).replace("\\", "/").split("/")
    if parts.scheme or parts.netloc or path.startswith(("/", "\\")) or ".." in segments:
        raise InvalidInputError(f"Path must stay inside the bound account: {path!r}")


def _author(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    return {"name": raw.get("name"), "email": raw.get("email_address") or ""}


def _envelope(raw: Dict[str, Any], *, title: Any, content: str = "") -> Dict[str, Any]:
    return {
        "id": raw.get("id"),
        "title": title,
        "author": _author(raw.get("creator")),
        "created_at": raw.get("created_at"),
        "updated_at": raw.get("updated_at"),
        "url": raw.get("app_url"),
        "content": content,
    }


def project_from_raw(raw: Dict[str, Any]) -> Project:
    return Project(
        **_envelope(raw, title=raw.get("name")),
        status=raw.get("status"),
        description=raw.get("description") or "",
    )


def message_from_raw(raw: Dict[str, Any]) -> Message:
    return Message(
        **_envelope(raw, title=raw.get("subject"), content=html_to_markdown(raw.get("content"))),
        replies_count=raw.get("comments_count") or 0,
    )


def todo_list_from_raw(raw: Dict[str, Any]) -> TodoList:
    return TodoList(
        **_envelope(
            raw,
            title=raw.get("name"),
            content=html_to_markdown(raw.get("description")),
        ),
        completed=raw.get("completed", False),
        completed_ratio=raw.get("completed_ratio"),
        todos_count=raw.get("todos_count"),
    )


def todo_from_raw(raw: Dict[str, Any]) -> Todo:
    # Basecamp stores a todo's title in "content" and its body in "description".
    return Todo(
        **_envelope(
            raw,
            title=raw.get("content"),
            content=html_to_markdown(raw.get("description")),
        ),
        completed=raw.get("completed"),
        due_on=raw.get("due_on"),
        completed_at=raw.get("completed_at"),
        comments_count=raw.get("comments_count") or 0,
        assignees=[_author(person) for person in raw.get("assignees") or []],
    )


def document_from_raw(raw: Dict[str, Any]) -> Document:
    return Document(
        **_envelope(raw, title=raw.get("title"), content=html_to_markdown(raw.get("content")))
    )


def document_summary_from_raw(raw: Dict[str, Any]) -> DocumentSummary:
    return DocumentSummary(
        **_envelope(raw, title=raw.get("title"), content=html_to_markdown(raw.get("content"))),
        truncated=True,
    )


def campfire_line_from_raw(raw: Dict[str, Any]) -> CampfireLine:
    return CampfireLine(
        **_envelope(raw, title=raw.get("title") or "", content=html_to_markdown(raw.get("content")))
    )


def attachment_from_raw(raw: Dict[str, Any]) -> Attachment:
    return Attachment(
        **_envelope(raw, title=raw.get("filename")),
        content_type=raw.get("content_type"),
        byte_size=raw.get("byte_size"),
        download_url=raw.get("download_url"),
    )


def project_tools_from_raw(raw: Dict[str, Any]) -> ProjectTools:
    tools: Dict[str, Dict[str, Any]] = {}
    for item in raw.get("dock") or []:
        # Dock entries are identified by "name", not "title".
        tools[item.get("name")] = {
            "id": item.get("id"),
            "enabled": item.get("enabled"),
            "url": item.get("app_url"),
        }
    ids = {
        field: tools[name]["id"] if name in tools else None
        for name, field in DOCK_TOOL_FIELDS.items()
    }
    return ProjectTools(
        project_id=raw.get("id"),
        project_name=raw.get("name"),
        tools=tools,
        **ids,
    )


class BasecampClient:
    """Read-only client for one ``{access_token, account_id}`` pair.

    At most ``slots.limit`` requests are in flight at once and every request
    goes through the 429-aware dispatcher.
    """

    def __init__(
        self,
        credentials: BasecampCredentials,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        slots: Optional[RequestSlots] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = 30.0,
        reauth_url: str = "/oauth/start",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._account_id = credentials.account_id
        self._slots = slots or RequestSlots(5)
        self._max_attempts = max_attempts
        self._reauth_url = reauth_url
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{credentials.account_id}/",
            headers={
                "Authorization": f"Bearer {credentials.access_token}",
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [_enforce_read_only, self._enforce_account_scope]},
        )

    async def _enforce_account_scope(self, request: httpx.Request) -> None:
        if not str(request.url).startswith(str(self._http.base_url)):
            raise InvalidInputError("Request URL left the bound Basecamp account.")

    @property
    def account_id(self) -> str:
        return self._account_id

    @property
    def slots(self) -> RequestSlots:
        return self._slots

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BasecampClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        """Send one request; anything other than GET is refused up front."""
        if method.upper() != "GET":
            logger.warning("Blocked %s %s on read-only client", method.upper(), path)
            raise ReadOnlyError(method)
        _ensure_account_relative(path)

        async with self._slots.slot():
            response = await with_rate_limit(
                lambda: self._http.request(method, path, params=params),
                max_attempts=self._max_attempts,
                sleep=self._sleep,
            )
        self._raise_for_status(response, path)
        return response

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = await self.request("GET", path, params)
        return response.json()

    async def get_raw(
        self, path: str, params: Optional[Mapping[str, Any]] = None
    ) -> RawResponse:
        response = await self.request("GET", path, params)
        return RawResponse(
            body=response.json(),
            headers=response.headers,
            status_code=response.status_code,
        )

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 401:
            raise TokenExpiredError(self._reauth_url)
        if status == 403:
            raise PermissionDeniedError(f"Access to {path} is forbidden for this user.")
        if status == 404:
            raise NotFoundError(f"Basecamp resource not found: {path}")
        raise BasecampAPIError(status, f"Basecamp API returned {status} for {path}")

    # Projects

    async def list_projects(
        self, page: int = 1, *, status: Optional[str] = None
    ) -> PaginatedResult:
        params = {"status": status} if status else None
        return await paginate(self, "projects.json", page, project_from_raw, params=params)

    async def get_project_tools(self, project_id: int) -> ProjectTools:
        raw = await self.get(f"projects/{project_id}.json")
        return project_tools_from_raw(raw)

    # Message board

    async def list_messages(
        self, project_id: int, message_board_id: int, page: int = 1
    ) -> PaginatedResult:
        path = f"buckets/{project_id}/message_boards/{message_board_id}/messages.json"
        return await paginate(self, path, page, message_from_raw)

    async def get_message(self, project_id: int, message_id: int) -> Message:
        raw = await self.get(f"buckets/{project_id}/messages/{message_id}.json")
        return message_from_raw(raw)

    # To-dos

    async def list_todo_lists(
        self, project_id: int, todoset_id: int, page: int = 1
    ) -> PaginatedResult:
        path = f"buckets/{project_id}/todosets/{todoset_id}/todolists.json"
        return await paginate(self, path, page, todo_list_from_raw)

    async def list_todos(
        self,
        project_id: int,
        todolist_id: int,
        page: int = 1,
        *,
        completed: bool = False,
    ) -> PaginatedResult:
        path = f"buckets/{project_id}/todolists/{todolist_id}/todos.json"
        params = {"completed": "true"} if completed else None
        return await paginate(self, path, page, todo_from_raw, params=params)

    async def get_todo(self, project_id: int, todo_id: int) -> Todo:
        raw = await self.get(f"buckets/{project_id}/todos/{todo_id}.json")
        return todo_from_raw(raw)

    # Docs & files

    async def list_documents(
        self, project_id: int, vault_id: int, page: int = 1
    ) -> PaginatedResult:
        path = f"buckets/{project_id}/vaults/{vault_id}/documents.json"
        return await paginate(self, path, page, document_summary_from_raw)

    async def get_document(self, project_id: int, document_id: int) -> Document:
        raw = await self.get(f"buckets/{project_id}/documents/{document_id}.json")
        return document_from_raw(raw)

    async def list_attachments(
        self, project_id: int, vault_id: int, page: int = 1
    ) -> PaginatedResult:
        path = f"buckets/{project_id}/vaults/{vault_id}/uploads.json"
        return await paginate(self, path, page, attachment_from_raw)

    # Campfire

    async def list_campfire_lines(
        self, project_id: int, chat_id: int, page: int = 1
    ) -> PaginatedResult:
        path = f"buckets/{project_id}/chats/{chat_id}/lines.json"
        return await paginate(self, path, page, campfire_line_from_raw)


__all__ = [
    "BasecampClient",
    "attachment_from_raw",
    "campfire_line_from_raw",
    "document_from_raw",
    "document_summary_from_raw",
    "message_from_raw",
    "project_from_raw",
    "project_tools_from_raw",
    "todo_from_raw",
    "todo_list_from_raw",
]
