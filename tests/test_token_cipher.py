try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from basecamp_mcp.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secrets=["super-secret-key"])
    plaintext = "sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext

    decrypted = cipher.decrypt(encrypted)
    assert decrypted == plaintext


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secrets=["another-secret"])

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_token_cipher_requires_a_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secrets=["", ""])


def test_token_cipher_decrypts_with_previous_secret_and_rotates() -> None:
    old = TokenCipherService(secrets=["old-secret"])
    rotating = TokenCipherService(secrets=["new-secret", "old-secret"])
    new_only = TokenCipherService(secrets=["new-secret"])

    legacy = old.encrypt("refresh-token")
    assert rotating.decrypt(legacy) == "refresh-token"
    with pytest.raises(ValueError):
        new_only.decrypt(legacy)

    rotated = rotating.rotate(legacy)
    assert new_only.decrypt(rotated) == "refresh-token"
