"""
Factory functions providing shared clients and services, both as FastAPI
dependencies and for the tool-registration layer.
"""

from datetime import timedelta
from functools import lru_cache

from basecamp_mcp.clients import (
    BasecampClient,
    BasecampOAuthClient,
    OAuthStateEncoder,
    SQLiteTokenStore,
)
from basecamp_mcp.core.config import get_settings
from basecamp_mcp.models.token import BasecampCredentials
from basecamp_mcp.services import BasecampTokenService, TokenCipherService
from basecamp_mcp.tools import BasecampTools, ClientFactory
from basecamp_mcp.utils.concurrency import RequestSlots


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secrets = settings.security.encryption_secrets or (settings.basecamp.client_secret,)
    return TokenCipherService(secrets=secrets)


@lru_cache()
def get_token_store() -> SQLiteTokenStore:
    """Provide the shared SQLite token store."""
    settings = _settings()
    return SQLiteTokenStore(settings.token_db_path, get_token_cipher_service())


@lru_cache()
def get_oauth_client() -> BasecampOAuthClient:
    """Create a singleton Launchpad OAuth client."""
    return BasecampOAuthClient(_settings().basecamp)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed on the client secret."""
    return OAuthStateEncoder(secret_key=_settings().basecamp.client_secret)


@lru_cache()
def get_token_service() -> BasecampTokenService:
    """Provide the process-wide token lifecycle manager."""
    settings = _settings()
    return BasecampTokenService(
        get_token_store(),
        get_oauth_client(),
        reauth_url=settings.reauth_url,
        refresh_buffer=timedelta(seconds=settings.client.refresh_buffer),
    )


def get_client_factory() -> ClientFactory:
    """Build request gateways, each with its own concurrency limit."""
    settings = _settings()

    def factory(credentials: BasecampCredentials) -> BasecampClient:
        return BasecampClient(
            credentials,
            base_url=settings.basecamp.api_base_url,
            user_agent=settings.basecamp.user_agent,
            slots=RequestSlots(settings.client.max_concurrency),
            max_attempts=settings.client.max_attempts,
            timeout=settings.client.request_timeout,
            reauth_url=settings.reauth_url,
        )

    return factory


def build_tools(user_id: int) -> BasecampTools:
    """Tool facade for one authenticated Basecamp user."""
    return BasecampTools(
        user_id=user_id,
        token_service=get_token_service(),
        client_factory=get_client_factory(),
    )


async def build_tools_for_session(session_key: str) -> BasecampTools:
    """Tool facade for the user an agent session key was issued to."""
    record = await get_token_service().resolve_by_key(session_key)
    return build_tools(record.user_id)


__all__ = [
    "build_tools",
    "build_tools_for_session",
    "get_client_factory",
    "get_oauth_client",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "get_token_service",
    "get_token_store",
]
