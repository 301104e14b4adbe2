"""
Basecamp Launchpad OAuth utilities.

These helpers cover the authorization-code flow, token refresh, identity
lookup and remote revocation against ``launchpad.37signals.com``.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from basecamp_mcp.core.config import BasecampSettings

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 7200


class OAuthStateError(Exception):
    """Raised when an OAuth state value is forged, malformed or stale."""


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class OAuthIdentityError(Exception):
    """Raised when the identity lookup fails or has no eligible account."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        body = dict(payload)
        body.setdefault("issued_at", int(time.time()))
        serialized = json.dumps(body, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str, *, max_age: Optional[int] = None) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise OAuthStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise OAuthStateError("Invalid OAuth state signature.")
        payload = json.loads(serialized)
        if max_age is not None:
            issued_at = payload.get("issued_at")
            if not isinstance(issued_at, int) or time.time() - issued_at > max_age:
                raise OAuthStateError("OAuth state has expired.")
        return payload


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: str
    expires_in: int

    def __repr__(self) -> str:
        return f"TokenGrant(expires_in={self.expires_in})"


@dataclass(frozen=True)
class BasecampIdentity:
    user_id: int
    email: str
    account_id: str


class BasecampOAuthClient:
    """Build authorization URLs and talk to the Launchpad token endpoints."""

    def __init__(
        self,
        settings: BasecampSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._timeout = timeout
        base = settings.launchpad_url.rstrip("/")
        self.authorize_url = f"{base}/authorization/new"
        self.token_url = f"{base}/authorization/token"
        self.identity_url = f"{base}/authorization.json"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "User-Agent": self._settings.user_agent,
        }

    def build_authorization_url(self, state: str) -> str:
        """Construct the Launchpad consent URL."""
        params = {
            "type": "web_server",
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for an access/refresh token pair."""
        payload = {
            "type": "web_server",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": str(self._settings.redirect_uri),
            "code": code,
        }
        token_payload = await self._post_token(payload)
        refresh_token = token_payload.get("refresh_token")
        if not refresh_token:
            raise OAuthTokenExchangeError("Token response did not include a refresh token.")
        return TokenGrant(
            access_token=token_payload["access_token"],
            refresh_token=refresh_token,
            expires_in=int(token_payload.get("expires_in") or DEFAULT_EXPIRES_IN),
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Trade a refresh token for a new token pair.

        The refresh token is single use. When Launchpad omits a rotated
        refresh token the current one stays valid and is carried forward.
        """
        payload = {
            "type": "refresh",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "refresh_token": refresh_token,
        }
        token_payload = await self._post_token(payload)
        return TokenGrant(
            access_token=token_payload["access_token"],
            refresh_token=token_payload.get("refresh_token") or refresh_token,
            expires_in=int(token_payload.get("expires_in") or DEFAULT_EXPIRES_IN),
        )

    async def fetch_identity(self, access_token: str) -> BasecampIdentity:
        """Resolve the user behind ``access_token`` and pick their account."""
        async with self._client() as client:
            response = await client.get(self.identity_url, headers=self._headers(access_token))

        if response.status_code != httpx.codes.OK:
            raise OAuthIdentityError(
                f"Failed to fetch Basecamp identity: {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise OAuthIdentityError("Identity response is not valid JSON.") from exc
        if not isinstance(body, dict):
            raise OAuthIdentityError("Identity response is not a JSON object.")

        identity = body.get("identity") or {}
        raw_accounts = body.get("accounts") or []
        if not isinstance(identity, dict) or not isinstance(raw_accounts, list):
            raise OAuthIdentityError("Identity response has an unexpected shape.")
        accounts = [
            account
            for account in raw_accounts
            if isinstance(account, dict)
            and account.get("product") == self._settings.product
            and account.get("id") is not None
        ]
        if not accounts:
            raise OAuthIdentityError(
                f"No '{self._settings.product}' Basecamp account found for this user."
            )
        if identity.get("id") is None:
            raise OAuthIdentityError("Identity response is missing the user id.")

        try:
            user_id = int(identity["id"])
        except (TypeError, ValueError) as exc:
            raise OAuthIdentityError("Identity response has a malformed user id.") from exc

        email = identity.get("email_address")
        # Multi-account routing is out of scope; the first eligible account wins.
        return BasecampIdentity(
            user_id=user_id,
            email=email if isinstance(email, str) else "",
            account_id=str(accounts[0]["id"]),
        )

    async def revoke_authorization(self, access_token: str) -> int:
        """Ask Launchpad to invalidate ``access_token``; returns the status code."""
        async with self._client() as client:
            response = await client.delete(self.identity_url, headers=self._headers(access_token))
        return response.status_code

    async def _post_token(self, payload: Dict[str, str]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(self.token_url, data=payload)

        if response.status_code != httpx.codes.OK:
            raise OAuthTokenExchangeError(
                f"Token endpoint returned {response.status_code}"
            )

        token_payload = response.json()
        if not token_payload.get("access_token"):
            raise OAuthTokenExchangeError("Incomplete token payload returned from Launchpad.")
        return token_payload


__all__ = [
    "BasecampIdentity",
    "BasecampOAuthClient",
    "OAuthIdentityError",
    "OAuthStateEncoder",
    "OAuthStateError",
    "OAuthTokenExchangeError",
    "TokenGrant",
]
