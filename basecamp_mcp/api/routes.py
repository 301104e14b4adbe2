"""
FastAPI routes for connecting and disconnecting Basecamp accounts.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from basecamp_mcp.clients.launchpad import (
    OAuthIdentityError,
    OAuthStateError,
    OAuthTokenExchangeError,
)
from basecamp_mcp.dependencies import (
    get_app_settings,
    get_oauth_client,
    get_oauth_state_encoder,
    get_token_store,
)
from basecamp_mcp.models.token import TokenRecord

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/oauth/start", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect_to: Optional[str] = Query(
        default=None,
        description="Optional URL to send the browser to once the account is connected.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Basecamp consent screen.",
    ),
) -> Response:
    """Kick off the OAuth flow with a signed state token."""
    state = state_encoder.encode({"nonce": uuid.uuid4().hex, "redirect_to": redirect_to})
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return JSONResponse({"authorization_url": authorization_url, "state": state})


@router.get("/oauth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    token_store: Annotated[Any, Depends(get_token_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None, description="Authorization code from Launchpad."),
    state: Optional[str] = Query(default=None, description="OAuth state token."),
    redirect: bool = Query(default=False),
) -> Response:
    """Exchange the code, resolve the account, and store the token pair."""
    if not code:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Missing authorization code.")
    if not state:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Missing OAuth state.")

    try:
        state_data = state_encoder.decode(state, max_age=settings.security.state_ttl_seconds)
    except OAuthStateError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    issued = datetime.now(timezone.utc)
    try:
        grant = await oauth_client.exchange_authorization_code(code)
        identity = await oauth_client.fetch_identity(grant.access_token)
    except OAuthTokenExchangeError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc
    except OAuthIdentityError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    record = TokenRecord(
        user_id=identity.user_id,
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        expires_at=issued + timedelta(seconds=grant.expires_in),
        account_id=identity.account_id,
        email=identity.email,
    )
    token_store.save(record)
    session_key = secrets.token_urlsafe(32)
    token_store.save_session_key(record.user_id, session_key)
    logger.info("Connected Basecamp user %s (account %s)", record.user_id, record.account_id)

    redirect_target = state_data.get("redirect_to") or settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(
        {
            "message": "OAuth complete, token stored",
            "user": {
                "user_id": record.user_id,
                "email": record.email,
                "account_id": record.account_id,
            },
            "session_key": session_key,
        }
    )


@router.get("/oauth/revoke", status_code=HTTPStatus.OK)
async def revoke_oauth_token(
    oauth_client: Annotated[Any, Depends(get_oauth_client)],
    token_store: Annotated[Any, Depends(get_token_store)],
    user_id: Optional[str] = Query(default=None, description="Basecamp user id to disconnect."),
) -> dict:
    """Revoke the authorization remotely and always drop it locally."""
    try:
        basecamp_user_id = int(user_id or "")
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing or invalid user_id query param.",
        ) from exc

    record = token_store.get(basecamp_user_id)
    if record is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="No token found for that user_id.")

    try:
        status_code = await oauth_client.revoke_authorization(record.access_token)
    except httpx.HTTPError as exc:
        logger.warning("Remote revocation failed for user %s: %s", basecamp_user_id, type(exc).__name__)
    else:
        # 401 means the token had already expired remotely.
        if status_code >= 400 and status_code != HTTPStatus.UNAUTHORIZED:
            logger.warning("Basecamp revocation returned %s for user %s", status_code, basecamp_user_id)

    token_store.revoke(basecamp_user_id)
    return {"message": "Token revoked", "user_id": basecamp_user_id}


__all__ = ["router"]
