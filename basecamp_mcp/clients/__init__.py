"""Expose constructed client wrappers."""

from .basecamp import BasecampClient
from .launchpad import (
    BasecampIdentity,
    BasecampOAuthClient,
    OAuthStateEncoder,
    TokenGrant,
)
from .pagination import RawResponse, paginate
from .sqlite_store import SQLiteTokenStore

__all__ = [
    "BasecampClient",
    "BasecampIdentity",
    "BasecampOAuthClient",
    "OAuthStateEncoder",
    "RawResponse",
    "SQLiteTokenStore",
    "TokenGrant",
    "paginate",
]
