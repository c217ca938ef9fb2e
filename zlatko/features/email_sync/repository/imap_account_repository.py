"""
Persistence for IMAP mailboxes (`email_accounts`).
"""

from datetime import datetime

from zlatko.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one
from zlatko.features.email_sync.domain import ImapAccount
from zlatko.infrastructure.events import publish_change
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.infrastructure.encryption_service import decrypt_token, encrypt_token

logger = get_logger(__name__)


class ImapAccountRepositoryError(DatabaseError):
    """Raised when an IMAP account cannot be stored."""


class ImapAccountRepository:
    TABLE = "email_accounts"

    SELECT_COLUMNS = """
        id, user_id, account_name, email_address, imap_host, imap_port,
        imap_username, imap_password, use_ssl, is_active, last_sync_at,
        last_sync_status, last_sync_error
    """

    @classmethod
    def _row_to_account(cls, row: dict) -> ImapAccount:
        return ImapAccount(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            account_name=row.get("account_name"),
            email_address=row["email_address"],
            imap_host=row["imap_host"],
            imap_port=int(row["imap_port"]),
            imap_username=row["imap_username"],
            imap_password=decrypt_token(row["imap_password"]),
            use_ssl=bool(row.get("use_ssl", True)),
            is_active=bool(row.get("is_active", True)),
            last_sync_at=row.get("last_sync_at"),
            last_sync_status=row.get("last_sync_status"),
            last_sync_error=row.get("last_sync_error"),
        )

    @classmethod
    async def list_accounts(cls, user_id: str, active_only: bool = False) -> list[ImapAccount]:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM email_accounts WHERE user_id = %s"
        if active_only:
            query += " AND is_active = TRUE"
        query += " ORDER BY created_at"
        rows = await fetch_all(query, (user_id,))
        return [cls._row_to_account(row) for row in rows]

    @classmethod
    async def create(
        cls,
        user_id: str,
        email_address: str,
        imap_host: str,
        imap_port: int,
        imap_username: str,
        imap_password: str,
        use_ssl: bool = True,
        account_name: str | None = None,
    ) -> ImapAccount:
        query = f"""
            INSERT INTO email_accounts (
                user_id, account_name, email_address, imap_host, imap_port,
                imap_username, imap_password, use_ssl
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                user_id,
                account_name,
                email_address,
                imap_host,
                imap_port,
                imap_username,
                encrypt_token(imap_password),
                use_ssl,
            ),
        )
        if not row:
            raise ImapAccountRepositoryError("Failed to create IMAP account", operation="create")

        account = cls._row_to_account(row)
        publish_change(cls.TABLE, "insert", account.id, user_id)
        logger.info("IMAP account created", user_id=user_id, imap_host=imap_host)
        return account

    @classmethod
    async def delete(cls, user_id: str, account_id: str) -> bool:
        query = "DELETE FROM email_accounts WHERE user_id = %s AND id = %s"
        deleted = await execute_query(query, (user_id, account_id))
        if deleted:
            publish_change(cls.TABLE, "delete", account_id, user_id)
        return deleted > 0

    @classmethod
    async def record_sync_result(
        cls, account: ImapAccount, status: str, synced_at: datetime, error: str | None = None
    ) -> None:
        """Record the outcome of the last pass over this mailbox."""
        query = """
            UPDATE email_accounts
            SET last_sync_at = %s,
                last_sync_status = %s,
                last_sync_error = %s,
                updated_at = NOW()
            WHERE id = %s
        """
        await execute_query(query, (synced_at, status, error, account.id))
        publish_change(cls.TABLE, "update", account.id, account.user_id)
