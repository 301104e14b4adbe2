try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
from typing import Callable

import httpx
import pytest

from basecamp_mcp.clients.basecamp import BasecampClient
from basecamp_mcp.core.errors import (
    BasecampAPIError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ReadOnlyError,
    TokenExpiredError,
)
from basecamp_mcp.models.token import BasecampCredentials
from basecamp_mcp.utils.concurrency import RequestSlots

CREATOR = {"id": 5, "name": "Ana", "email_address": "ana@example.com"}

RAW_MESSAGE = {
    "id": 11,
    "subject": "Kickoff",
    "content": "<div><strong>Hi</strong> team</div>",
    "creator": CREATOR,
    "created_at": "2024-01-01T10:00:00Z",
    "updated_at": "2024-01-01T11:00:00Z",
    "app_url": "https://3.basecamp.com/999/buckets/1/messages/11",
    "comments_count": 2,
}

RAW_PROJECT = {
    "id": 1,
    "name": "Launch",
    "description": "Ship it",
    "status": "active",
    "creator": CREATOR,
    "created_at": "2024-01-01T10:00:00Z",
    "updated_at": "2024-01-02T10:00:00Z",
    "app_url": "https://3.basecamp.com/999/projects/1",
    "dock": [
        {"id": 21, "name": "message_board", "enabled": True, "app_url": "https://x/mb"},
        {"id": 22, "name": "todoset", "enabled": True, "app_url": "https://x/ts"},
        {"id": 23, "name": "vault", "enabled": True, "app_url": "https://x/v"},
        {"id": 24, "name": "chat", "enabled": False, "app_url": "https://x/c"},
    ],
}


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_client(handler: Callable, **kwargs) -> BasecampClient:
    kwargs.setdefault("sleep", FakeSleep())
    return BasecampClient(
        BasecampCredentials(access_token="access-123", account_id="999"),
        transport=httpx.MockTransport(handler),
        reauth_url="https://mcp.example.com/oauth/start",
        **kwargs,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
async def test_writes_are_blocked_before_any_network_call(method: str) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={})

    async with make_client(handler) as client:
        with pytest.raises(ReadOnlyError) as excinfo:
            await client.request(method, "projects.json")

    assert calls == 0
    assert excinfo.value.code == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_requests_are_scoped_to_the_bound_account() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[RAW_PROJECT])

    async with make_client(handler) as client:
        result = await client.list_projects()

    request = seen[0]
    assert str(request.url) == "https://3.basecampapi.com/999/projects.json?page=1"
    assert request.headers["Authorization"] == "Bearer access-123"
    assert request.headers["User-Agent"]
    assert result.items[0].title == "Launch"
    assert result.items[0].author.email == "ana@example.com"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path",
    [
        "../222/projects.json",
        "buckets/1/../../../222/projects.json",
        "%2e%2e/222/projects.json",
        "/222/projects.json",
        "https://evil.example/steal.json",
        "//evil.example/steal.json",
    ],
)
async def test_paths_outside_the_bound_account_are_rejected(path: str) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json=[])

    async with make_client(handler) as client:
        with pytest.raises(InvalidInputError) as excinfo:
            await client.get(path)
        with pytest.raises(InvalidInputError):
            await client.get_raw(path)

    assert seen == []
    assert excinfo.value.code == "INVALID_INPUT"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "error_type", "code"),
    [
        (401, TokenExpiredError, "TOKEN_EXPIRED"),
        (403, PermissionDeniedError, "PERMISSION_DENIED"),
        (404, NotFoundError, "NOT_FOUND"),
        (502, BasecampAPIError, "NOT_FOUND"),
    ],
)
async def test_error_statuses_are_classified(status_code, error_type, code) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"error": "nope"})

    async with make_client(handler) as client:
        with pytest.raises(error_type) as excinfo:
            await client.get_message(1, 11)

    assert excinfo.value.code == code


@pytest.mark.asyncio
async def test_expired_token_error_carries_reauth_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    async with make_client(handler) as client:
        with pytest.raises(TokenExpiredError) as excinfo:
            await client.get_project_tools(1)

    assert excinfo.value.reauth_url == "https://mcp.example.com/oauth/start"
    assert "https://mcp.example.com/oauth/start" in str(excinfo.value)


@pytest.mark.asyncio
async def test_rate_limited_requests_are_retried() -> None:
    sleep = FakeSleep()
    responses = iter(
        [
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json=RAW_MESSAGE),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    async with make_client(handler, sleep=sleep) as client:
        message = await client.get_message(1, 11)

    assert sleep.calls == [3.0]
    assert message.id == 11


@pytest.mark.asyncio
async def test_exhausted_rate_limit_surfaces_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    async with make_client(handler, max_attempts=0) as client:
        with pytest.raises(RateLimitError):
            await client.get_message(1, 11)


@pytest.mark.asyncio
async def test_concurrent_requests_respect_the_slot_limit() -> None:
    gate = asyncio.Event()
    active = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await gate.wait()
        active -= 1
        return httpx.Response(200, json=RAW_MESSAGE)

    async with make_client(handler, slots=RequestSlots(5)) as client:
        tasks = [asyncio.create_task(client.get_message(1, 11)) for _ in range(8)]
        for _ in range(5):
            await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks)

    assert len(results) == 8
    assert peak <= 5


@pytest.mark.asyncio
async def test_message_is_normalized() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/999/buckets/1/messages/11.json"
        return httpx.Response(200, json=RAW_MESSAGE)

    async with make_client(handler) as client:
        message = await client.get_message(1, 11)

    assert message.title == "Kickoff"
    assert message.content == "**Hi** team\n"
    assert message.url == RAW_MESSAGE["app_url"]
    assert message.replies_count == 2


@pytest.mark.asyncio
async def test_project_tools_expose_dock_ids() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=RAW_PROJECT)

    async with make_client(handler) as client:
        tools = await client.get_project_tools(1)

    assert tools.project_name == "Launch"
    assert tools.message_board_id == 21
    assert tools.todoset_id == 22
    assert tools.vault_id == 23
    assert tools.chat_id == 24
    assert tools.tools["chat"].enabled is False


@pytest.mark.asyncio
async def test_document_list_truncates_previews() -> None:
    raw_document = {
        "id": 31,
        "title": "Spec",
        "content": "<div>" + "a" * 800 + "</div>",
        "creator": CREATOR,
        "created_at": "2024-01-01T10:00:00Z",
        "updated_at": "2024-01-01T10:00:00Z",
        "app_url": "https://x/d/31",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[raw_document])

    async with make_client(handler) as client:
        result = await client.list_documents(1, 23)

    summary = result.items[0]
    assert len(summary.content) == 500
    assert summary.truncated is True


@pytest.mark.asyncio
async def test_attachments_never_include_binary_content() -> None:
    raw_upload = {
        "id": 41,
        "filename": "plan.pdf",
        "content_type": "application/pdf",
        "byte_size": 2048,
        "download_url": "https://x/download/plan.pdf",
        "creator": CREATOR,
        "created_at": "2024-01-01T10:00:00Z",
        "updated_at": "2024-01-01T10:00:00Z",
        "app_url": "https://x/u/41",
    }
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json=[raw_upload])

    async with make_client(handler) as client:
        result = await client.list_attachments(1, 23)

    attachment = result.items[0]
    assert attachment.content == ""
    assert attachment.title == "plan.pdf"
    assert attachment.byte_size == 2048
    assert seen == ["/999/buckets/1/vaults/23/uploads.json"]


@pytest.mark.asyncio
async def test_completed_todos_are_requested_explicitly() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json=[])

    async with make_client(handler) as client:
        await client.list_todos(1, 50, completed=True)

    assert seen[0].params["completed"] == "true"
    assert seen[0].params["page"] == "1"
