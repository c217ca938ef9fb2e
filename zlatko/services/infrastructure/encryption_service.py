"""
Encryption service for mailbox secrets.
Gmail OAuth tokens and IMAP passwords are stored Fernet-encrypted (BYTEA columns).
"""

from cryptography.fernet import Fernet, InvalidToken

from zlatko.config import settings
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EncryptionError(Exception):
    """Raised when a secret cannot be encrypted or decrypted."""

    pass


def _get_fernet() -> Fernet:
    """
    Get Fernet instance with encryption key from settings.

    Raises:
        EncryptionError: If encryption key is missing or malformed
    """
    if not settings.ENCRYPTION_KEY:
        raise EncryptionError("ENCRYPTION_KEY not configured in environment")

    try:
        return Fernet(settings.ENCRYPTION_KEY.encode("utf-8"))
    except Exception as e:
        logger.error("Failed to initialize Fernet cipher", error=str(e))
        raise EncryptionError(f"Invalid encryption key: {e}") from e


def encrypt_token(token: str) -> bytes:
    """
    Encrypt a secret string for database storage.

    Args:
        token: Plain text secret (access token, refresh token, IMAP password)

    Returns:
        bytes: Encrypted value ready for BYTEA storage

    Raises:
        EncryptionError: If encryption fails
    """
    if not token or not isinstance(token, str):
        raise EncryptionError("Token must be a non-empty string")

    try:
        return _get_fernet().encrypt(token.encode("utf-8"))
    except EncryptionError:
        raise
    except Exception as e:
        logger.error("Failed to encrypt token", error=str(e))
        raise EncryptionError(f"Encryption failed: {e}") from e


def decrypt_token(encrypted_token: bytes | memoryview) -> str:
    """
    Decrypt a secret read back from the store.

    psycopg returns BYTEA columns as bytes; memoryview is accepted as well.

    Raises:
        EncryptionError: If decryption fails or the value was tampered with
    """
    if isinstance(encrypted_token, memoryview):
        encrypted_token = encrypted_token.tobytes()

    if not encrypted_token or not isinstance(encrypted_token, bytes):
        raise EncryptionError("Encrypted token must be non-empty bytes")

    try:
        return _get_fernet().decrypt(encrypted_token).decode("utf-8")
    except InvalidToken as e:
        logger.error("Token decryption failed - invalid token")
        raise EncryptionError("Invalid or corrupted token") from e
    except EncryptionError:
        raise
    except Exception as e:
        logger.error("Failed to decrypt token", error=str(e))
        raise EncryptionError(f"Decryption failed: {e}") from e


def validate_encryption_config() -> bool:
    """Round-trip a dummy value to confirm ENCRYPTION_KEY is usable."""
    try:
        sample = "zlatko_encryption_check"
        is_valid = decrypt_token(encrypt_token(sample)) == sample

        if is_valid:
            logger.info("Encryption configuration validated successfully")
        else:
            logger.error("Encryption validation failed - data mismatch")

        return is_valid

    except Exception as e:
        logger.error("Encryption configuration validation failed", error=str(e))
        return False


def encrypt_oauth_tokens(
    access_token: str, refresh_token: str | None = None
) -> tuple[bytes, bytes | None]:
    """
    Encrypt OAuth access and refresh tokens.

    Returns:
        tuple: (encrypted_access_token, encrypted_refresh_token)
    """
    encrypted_access = encrypt_token(access_token)
    encrypted_refresh = encrypt_token(refresh_token) if refresh_token else None

    logger.debug("OAuth tokens encrypted", has_refresh_token=bool(refresh_token))

    return encrypted_access, encrypted_refresh


def decrypt_oauth_tokens(
    encrypted_access: bytes, encrypted_refresh: bytes | None = None
) -> tuple[str, str | None]:
    """
    Decrypt OAuth access and refresh tokens.

    Returns:
        tuple: (access_token, refresh_token)
    """
    access_token = decrypt_token(encrypted_access)
    refresh_token = decrypt_token(encrypted_refresh) if encrypted_refresh else None
    return access_token, refresh_token
