"""Service layer exports."""

from .token_cipher import TokenCipherService
from .tokens import BasecampTokenService

__all__ = ["BasecampTokenService", "TokenCipherService"]
