from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from basecamp_mcp.clients.launchpad import OAuthTokenExchangeError, TokenGrant
from basecamp_mcp.core.errors import TokenExpiredError
from basecamp_mcp.models.token import TokenRecord
from basecamp_mcp.services.tokens import BasecampTokenService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
REAUTH_URL = "https://mcp.example.com/oauth/start"


class FakeTokenStore:
    def __init__(self) -> None:
        self.records: dict[int, TokenRecord] = {}
        self.keys: dict[str, int] = {}
        self.saves: list[TokenRecord] = []

    def get(self, user_id: int) -> Optional[TokenRecord]:
        return self.records.get(user_id)

    def save(self, record: TokenRecord) -> None:
        self.saves.append(record)
        self.records[record.user_id] = record

    def revoke(self, user_id: int) -> None:
        self.records.pop(user_id, None)

    def resolve_by_key(self, key: str) -> Optional[TokenRecord]:
        user_id = self.keys.get(key)
        return self.records.get(user_id) if user_id is not None else None


class DummyOAuthClient:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.calls.append(refresh_token)
        await asyncio.sleep(0.01)
        if self.fail:
            raise OAuthTokenExchangeError("Token endpoint returned 400")
        return TokenGrant(
            access_token="refreshed-access",
            refresh_token="refreshed-refresh",
            expires_in=7200,
        )


def _record(expires_in: timedelta) -> TokenRecord:
    return TokenRecord(
        user_id=42,
        access_token="initial-access",
        refresh_token="initial-refresh",
        expires_at=NOW + expires_in,
        account_id="999",
        email="ana@example.com",
    )


def _service(store: FakeTokenStore, oauth: DummyOAuthClient) -> BasecampTokenService:
    return BasecampTokenService(store, oauth, reauth_url=REAUTH_URL, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_fresh_token_is_returned_without_refresh() -> None:
    store = FakeTokenStore()
    store.save(_record(timedelta(hours=1)))
    oauth = DummyOAuthClient()

    record = await _service(store, oauth).resolve(42)

    assert record.access_token == "initial-access"
    assert oauth.calls == []


@pytest.mark.asyncio
async def test_token_inside_refresh_buffer_is_refreshed_and_stored() -> None:
    store = FakeTokenStore()
    store.save(_record(timedelta(minutes=2)))
    oauth = DummyOAuthClient()

    credentials = await _service(store, oauth).resolve_credentials(42)

    assert credentials.access_token == "refreshed-access"
    assert credentials.account_id == "999"
    assert oauth.calls == ["initial-refresh"]

    stored = store.get(42)
    assert stored.access_token == "refreshed-access"
    assert stored.refresh_token == "refreshed-refresh"
    assert stored.expires_at == NOW + timedelta(seconds=7200)
    assert stored.email == "ana@example.com"


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh() -> None:
    store = FakeTokenStore()
    store.save(_record(timedelta(minutes=-1)))
    oauth = DummyOAuthClient()
    service = _service(store, oauth)

    records = await asyncio.gather(*(service.resolve(42) for _ in range(10)))

    assert oauth.calls == ["initial-refresh"]
    assert {record.access_token for record in records} == {"refreshed-access"}
    assert service.refresh_in_flight(42) is False


@pytest.mark.asyncio
async def test_failed_refresh_raises_token_expired_and_clears_marker() -> None:
    store = FakeTokenStore()
    store.save(_record(timedelta(minutes=-1)))
    oauth = DummyOAuthClient(fail=True)
    service = _service(store, oauth)

    results = await asyncio.gather(
        *(service.resolve(42) for _ in range(3)), return_exceptions=True
    )

    assert all(isinstance(result, TokenExpiredError) for result in results)
    assert REAUTH_URL in str(results[0])
    assert oauth.calls == ["initial-refresh"]
    assert service.refresh_in_flight(42) is False
    assert store.get(42).access_token == "initial-access"

    with pytest.raises(TokenExpiredError):
        await service.resolve(42)
    assert len(oauth.calls) == 2


@pytest.mark.asyncio
async def test_unknown_user_requires_reauthorization() -> None:
    service = _service(FakeTokenStore(), DummyOAuthClient())

    with pytest.raises(TokenExpiredError) as excinfo:
        await service.resolve(7)

    assert excinfo.value.reauth_url == REAUTH_URL


@pytest.mark.asyncio
async def test_resolve_by_session_key() -> None:
    store = FakeTokenStore()
    store.save(_record(timedelta(hours=1)))
    store.keys["session-abc"] = 42
    service = _service(store, DummyOAuthClient())

    record = await service.resolve_by_key("session-abc")
    assert record.user_id == 42

    with pytest.raises(TokenExpiredError):
        await service.resolve_by_key("unknown")
