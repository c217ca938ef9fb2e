"""
Persistence for synced communications.

The dedup pre-check and the insert both key on (prospect_id,
email_message_id); the partial unique index backs the pre-check when two
passes race.
"""

from zlatko.db.helpers import DatabaseError, fetch_one, fetch_val
from zlatko.features.email_sync.domain import NewCommunication
from zlatko.infrastructure.events import publish_change
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CommunicationRepositoryError(DatabaseError):
    """Raised when a communication cannot be read or written."""


class CommunicationRepository:
    TABLE = "communications"

    @classmethod
    async def exists(cls, user_id: str, prospect_id: str, external_message_id: str) -> bool:
        """True when this prospect already has a row for the external message."""
        query = """
            SELECT EXISTS (
                SELECT 1 FROM communications
                WHERE user_id = %s AND prospect_id = %s AND email_message_id = %s
            )
        """
        return bool(await fetch_val(query, (user_id, prospect_id, external_message_id)))

    @classmethod
    async def insert(cls, communication: NewCommunication) -> str | None:
        """
        Insert a synced communication.

        Returns the new row id, or None when a concurrent pass stored the
        same message first.
        """
        query = """
            INSERT INTO communications (
                user_id, prospect_id, type, subject, content, direction, author,
                created_at, ai_summary, email_message_id, email_thread_id,
                email_account_id, synced_from, synced_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (prospect_id, email_message_id) WHERE email_message_id IS NOT NULL
            DO NOTHING
            RETURNING id
        """
        c = communication
        row = await fetch_one(
            query,
            (
                c.user_id,
                c.prospect_id,
                c.type,
                c.subject,
                c.content,
                c.direction,
                c.author,
                c.created_at,
                c.ai_summary,
                c.external_message_id,
                c.external_thread_id,
                c.email_account_id,
                c.synced_from,
                c.synced_at,
            ),
        )
        if not row:
            logger.info(
                "Communication already stored by a concurrent pass",
                prospect_id=c.prospect_id,
                external_message_id=c.external_message_id,
            )
            return None

        row_id = str(row["id"])
        publish_change(cls.TABLE, "insert", row_id, c.user_id)
        return row_id
