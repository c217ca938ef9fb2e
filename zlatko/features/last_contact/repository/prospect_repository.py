"""
Prospect reads and last-contact writes for the reconciler.
"""

from datetime import date, datetime

from zlatko.db.helpers import execute_query, fetch_all, fetch_one, fetch_val, with_db_retry
from zlatko.features.last_contact.domain import ProspectContact
from zlatko.infrastructure.events import publish_change
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ProspectRepository:
    TABLE = "prospects"

    SELECT_COLUMNS = "id, user_id, company, last_contact_date"

    @classmethod
    def _row_to_prospect(cls, row: dict) -> ProspectContact:
        return ProspectContact(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            company=row.get("company"),
            last_contact_date=row.get("last_contact_date"),
        )

    @classmethod
    @with_db_retry()
    async def list_active(cls, user_id: str) -> list[ProspectContact]:
        """Non-archived prospects of the tenant, ordered by id."""
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM prospects
            WHERE user_id = %s AND archived = FALSE
            ORDER BY id
        """
        rows = await fetch_all(query, (user_id,))
        return [cls._row_to_prospect(row) for row in rows]

    @classmethod
    async def get_prospect(cls, user_id: str, prospect_id: str) -> ProspectContact | None:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM prospects WHERE user_id = %s AND id = %s"
        row = await fetch_one(query, (user_id, prospect_id))
        return cls._row_to_prospect(row) if row else None

    @classmethod
    async def latest_communication_at(cls, user_id: str, prospect_id: str) -> datetime | None:
        query = """
            SELECT created_at FROM communications
            WHERE user_id = %s AND prospect_id = %s
            ORDER BY created_at DESC
            LIMIT 1
        """
        return await fetch_val(query, (user_id, prospect_id))

    @classmethod
    async def update_last_contact_date(
        cls, user_id: str, prospect_id: str, contact_date: date
    ) -> None:
        query = """
            UPDATE prospects
            SET last_contact_date = %s, updated_at = NOW()
            WHERE user_id = %s AND id = %s
        """
        await execute_query(query, (contact_date, user_id, prospect_id))
        publish_change(cls.TABLE, "update", prospect_id, user_id)

    @classmethod
    async def list_tenants_with_prospects(cls) -> list[str]:
        query = "SELECT DISTINCT user_id FROM prospects WHERE archived = FALSE ORDER BY user_id"
        rows = await fetch_all(query)
        return [str(row["user_id"]) for row in rows]
