"""Expose dependency helpers for FastAPI routers and tool sessions."""

from .clients import (
    build_tools,
    build_tools_for_session,
    get_client_factory,
    get_oauth_client,
    get_oauth_state_encoder,
    get_token_cipher_service,
    get_token_service,
    get_token_store,
)
from .config import get_app_settings

__all__ = [
    "build_tools",
    "build_tools_for_session",
    "get_app_settings",
    "get_client_factory",
    "get_oauth_client",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "get_token_service",
    "get_token_store",
]
