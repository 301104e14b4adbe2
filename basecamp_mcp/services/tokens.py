"""
Helpers for resolving and refreshing Basecamp OAuth tokens.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Protocol

import httpx

from basecamp_mcp.clients.launchpad import OAuthTokenExchangeError, TokenGrant
from basecamp_mcp.core.errors import TokenExpiredError
from basecamp_mcp.models.token import BasecampCredentials, TokenRecord, TokenStorage

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh_token(self, refresh_token: str) -> TokenGrant: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BasecampTokenService:
    """Hands out access tokens, refreshing them shortly before they expire.

    Basecamp refresh tokens are single use, so concurrent callers for the
    same user share one in-flight refresh. The guard is per process.
    """

    def __init__(
        self,
        store: TokenStorage,
        oauth_client: TokenRefresher,
        *,
        reauth_url: str,
        refresh_buffer: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._reauth_url = reauth_url
        self._refresh_buffer = refresh_buffer
        self._clock = clock
        self._pending: Dict[int, asyncio.Task[TokenRecord]] = {}

    @property
    def reauth_url(self) -> str:
        return self._reauth_url

    def refresh_in_flight(self, user_id: int) -> bool:
        return user_id in self._pending

    async def resolve(self, user_id: int) -> TokenRecord:
        """Return a token record valid for at least the refresh buffer."""
        record = self._store.get(user_id)
        if record is None:
            raise TokenExpiredError(self._reauth_url)

        if record.expires_at - self._clock() > self._refresh_buffer:
            return record

        pending = self._pending.get(user_id)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh_once(record))
            self._pending[user_id] = pending
        # Shielded so one caller giving up does not cancel the shared refresh.
        return await asyncio.shield(pending)

    async def resolve_credentials(self, user_id: int) -> BasecampCredentials:
        record = await self.resolve(user_id)
        return record.credentials()

    async def resolve_by_key(self, key: str) -> TokenRecord:
        """Resolve the user bound to an agent session key."""
        record = self._store.resolve_by_key(key)
        if record is None:
            raise TokenExpiredError(self._reauth_url)
        return await self.resolve(record.user_id)

    async def _refresh_once(self, record: TokenRecord) -> TokenRecord:
        try:
            return await self._refresh(record)
        finally:
            self._pending.pop(record.user_id, None)

    async def _refresh(self, record: TokenRecord) -> TokenRecord:
        logger.info("Refreshing Basecamp token for user %s", record.user_id)
        refreshed_at = self._clock()
        try:
            grant = await self._oauth.refresh_token(record.refresh_token)
        except (OAuthTokenExchangeError, httpx.HTTPError, KeyError, ValueError) as exc:
            # The remote reason is not surfaced; it may echo token material.
            logger.warning(
                "Token refresh failed for user %s (%s)",
                record.user_id,
                type(exc).__name__,
            )
            raise TokenExpiredError(self._reauth_url) from None

        refreshed = record.model_copy(
            update={
                "access_token": grant.access_token,
                "refresh_token": grant.refresh_token,
                "expires_at": refreshed_at + timedelta(seconds=grant.expires_in),
            }
        )
        self._store.save(refreshed)
        logger.info("Stored refreshed Basecamp token for user %s", record.user_id)
        return refreshed


__all__ = ["BasecampTokenService", "TokenRefresher"]
