"""Symmetric encryption for OAuth tokens at rest."""

from __future__ import annotations

import base64
import hashlib
from typing import Sequence

from cryptography.fernet import Fernet, InvalidToken, MultiFernet


def _derive_fernet(secret: str) -> Fernet:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class TokenCipherService:
    """Encrypt tokens with the first secret; decrypt with any configured one.

    Listing the previous secret after a new one lets existing rows keep
    decrypting until they are rewritten on the next refresh.
    """

    def __init__(self, *, secrets: Sequence[str]) -> None:
        keys = [secret for secret in secrets if secret]
        if not keys:
            raise ValueError("At least one token encryption secret must be provided.")
        self._fernet = MultiFernet([_derive_fernet(secret) for secret in keys])

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; ciphertext does not match any configured secret."
            ) from exc
        return plaintext.decode("utf-8")

    def rotate(self, ciphertext: str) -> str:
        """Re-encrypt ``ciphertext`` under the primary secret."""
        try:
            return self._fernet.rotate(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Cannot rotate a token that fails to decrypt.") from exc


__all__ = ["TokenCipherService"]
