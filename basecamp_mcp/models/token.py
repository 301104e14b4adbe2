"""
Domain models for OAuth token persistence.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenRecord(BaseModel):
    """One user's Basecamp authorization, keyed by Basecamp user id.

    The access/refresh pair is only ever replaced together.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int = Field(..., description="Basecamp identity id.")
    access_token: str = Field(..., repr=False)
    refresh_token: str = Field(..., repr=False)
    expires_at: datetime
    account_id: str = Field(..., description="Basecamp 3 account id.")
    email: str = ""

    @field_validator("expires_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def credentials(self) -> "BasecampCredentials":
        return BasecampCredentials(
            access_token=self.access_token, account_id=self.account_id
        )


class BasecampCredentials(BaseModel):
    """Transient credential bound into one request gateway."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., repr=False)
    account_id: str


class TokenStorage(Protocol):
    """Persistence collaborator used by the token lifecycle manager."""

    def get(self, user_id: int) -> Optional[TokenRecord]: ...

    def save(self, record: TokenRecord) -> None: ...

    def revoke(self, user_id: int) -> None: ...

    def resolve_by_key(self, key: str) -> Optional[TokenRecord]: ...


__all__ = ["BasecampCredentials", "TokenRecord", "TokenStorage"]
