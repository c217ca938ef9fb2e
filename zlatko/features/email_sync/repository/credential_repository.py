"""
Persistence for Gmail sync credentials (`email_sync_config`).

Tokens are encrypted on the way in and decrypted on the way out; nothing
above this layer sees ciphertext.
"""

from datetime import datetime

from zlatko.db.helpers import DatabaseError, execute_query, fetch_one, with_db_retry
from zlatko.features.email_sync.domain import SyncCredential
from zlatko.infrastructure.events import publish_change
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.infrastructure.encryption_service import (
    decrypt_oauth_tokens,
    encrypt_oauth_tokens,
    encrypt_token,
)

logger = get_logger(__name__)


class CredentialRepositoryError(DatabaseError):
    """Raised when a credential cannot be stored."""


class CredentialRepository:
    TABLE = "email_sync_config"

    SELECT_COLUMNS = """
        id, user_id, provider, access_token, refresh_token, token_expiry,
        email_address, last_sync_at, sync_enabled
    """

    @classmethod
    def _row_to_credential(cls, row: dict | None) -> SyncCredential | None:
        if not row:
            return None

        access_token, refresh_token = decrypt_oauth_tokens(
            row["access_token"], row.get("refresh_token")
        )
        return SyncCredential(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            provider=row["provider"],
            access_token=access_token,
            refresh_token=refresh_token,
            token_expiry=row.get("token_expiry"),
            email_address=row.get("email_address"),
            last_sync_at=row.get("last_sync_at"),
            sync_enabled=bool(row.get("sync_enabled", True)),
        )

    @classmethod
    @with_db_retry()
    async def get(cls, user_id: str, provider: str) -> SyncCredential | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM email_sync_config
            WHERE user_id = %s AND provider = %s
        """
        return cls._row_to_credential(await fetch_one(query, (user_id, provider)))

    @classmethod
    async def upsert(
        cls,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: str | None,
        token_expiry: datetime | None,
        email_address: str | None,
    ) -> SyncCredential:
        """
        Store the result of an OAuth handshake.

        A reconnect without a refresh token keeps the previously stored one.
        """
        encrypted_access, encrypted_refresh = encrypt_oauth_tokens(access_token, refresh_token)
        query = f"""
            INSERT INTO email_sync_config (
                user_id, provider, access_token, refresh_token, token_expiry,
                email_address, sync_enabled, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, TRUE, NOW())
            ON CONFLICT (user_id, provider) DO UPDATE SET
                access_token = EXCLUDED.access_token,
                refresh_token = COALESCE(EXCLUDED.refresh_token, email_sync_config.refresh_token),
                token_expiry = EXCLUDED.token_expiry,
                email_address = EXCLUDED.email_address,
                sync_enabled = TRUE,
                updated_at = NOW()
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (user_id, provider, encrypted_access, encrypted_refresh, token_expiry, email_address),
        )
        if not row:
            raise CredentialRepositoryError("Failed to store credential", operation="upsert")

        credential = cls._row_to_credential(row)
        publish_change(cls.TABLE, "update", credential.id, user_id)
        logger.info("Sync credential stored", user_id=user_id, provider=provider)
        return credential

    @classmethod
    async def update_tokens(
        cls,
        credential: SyncCredential,
        access_token: str,
        token_expiry: datetime | None,
        refresh_token: str | None = None,
    ) -> None:
        """Persist a refreshed access token; a rotated refresh token replaces the old one."""
        encrypted_refresh = encrypt_token(refresh_token) if refresh_token else None
        query = """
            UPDATE email_sync_config
            SET access_token = %s,
                token_expiry = %s,
                refresh_token = COALESCE(%s, refresh_token),
                updated_at = NOW()
            WHERE id = %s
        """
        updated = await execute_query(
            query, (encrypt_token(access_token), token_expiry, encrypted_refresh, credential.id)
        )
        if updated == 0:
            raise CredentialRepositoryError(
                "Credential disappeared during refresh", operation="update_tokens"
            )
        publish_change(cls.TABLE, "update", credential.id, credential.user_id)

    @classmethod
    async def touch_last_sync(cls, credential: SyncCredential, synced_at: datetime) -> None:
        query = """
            UPDATE email_sync_config
            SET last_sync_at = %s, updated_at = NOW()
            WHERE id = %s
        """
        await execute_query(query, (synced_at, credential.id))
        publish_change(cls.TABLE, "update", credential.id, credential.user_id)

    @classmethod
    async def delete(cls, user_id: str, provider: str) -> bool:
        query = "DELETE FROM email_sync_config WHERE user_id = %s AND provider = %s RETURNING id"
        row = await fetch_one(query, (user_id, provider))
        if not row:
            return False
        publish_change(cls.TABLE, "delete", str(row["id"]), user_id)
        logger.info("Sync credential deleted", user_id=user_id, provider=provider)
        return True
