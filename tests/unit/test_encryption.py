"""
Encryption service: Fernet round trips for OAuth tokens and IMAP passwords.
"""

import pytest

from zlatko.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_oauth_tokens,
    decrypt_token,
    encrypt_oauth_tokens,
    encrypt_token,
    validate_encryption_config,
)


def test_token_round_trip(encryption_key):
    encrypted = encrypt_token("fake_oauth_token_12345")

    assert isinstance(encrypted, bytes)
    assert b"fake_oauth_token_12345" not in encrypted
    assert decrypt_token(encrypted) == "fake_oauth_token_12345"


def test_decrypt_accepts_memoryview(encryption_key):
    encrypted = encrypt_token("imap-password")
    assert decrypt_token(memoryview(encrypted)) == "imap-password"


def test_oauth_pair_keeps_missing_refresh_token(encryption_key):
    access, refresh = encrypt_oauth_tokens("access", None)

    assert refresh is None
    assert decrypt_oauth_tokens(access, refresh) == ("access", None)


def test_corrupted_ciphertext_raises(encryption_key):
    with pytest.raises(EncryptionError):
        decrypt_token(b"not-a-fernet-token")


def test_missing_key_is_reported(monkeypatch):
    monkeypatch.setattr("zlatko.services.infrastructure.encryption_service.settings.ENCRYPTION_KEY", None)

    assert validate_encryption_config() is False
    with pytest.raises(EncryptionError):
        encrypt_token("x")


def test_config_validation_with_key(encryption_key):
    assert validate_encryption_config() is True
