"""
Last-contact reconciler.

Repairs each prospect's `last_contact_date` to the UTC calendar day of its
most recent communication. Prospects without communications are left
alone. Running the pass twice in a row updates nothing the second time.
"""

import uuid
from datetime import UTC, date, datetime

from zlatko.features.last_contact.domain import (
    ProspectContact,
    ReconciliationError,
    ReconciliationResult,
)
from zlatko.features.last_contact.repository import ProspectRepository
from zlatko.infrastructure.observability.logging import get_logger, log_batch_result

logger = get_logger(__name__)


def contact_day(created_at: datetime) -> date:
    """UTC calendar day of a communication timestamp; naive values are UTC."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return created_at.astimezone(UTC).date()


def _stored_day(value) -> date | None:
    if isinstance(value, datetime):
        return contact_day(value)
    return value


def transition(prospect: ProspectContact, old: date | None, new: date) -> str:
    return f"{prospect.label}: {old.isoformat() if old else 'none'} → {new.isoformat()}"


class LastContactReconciler:
    def __init__(self, prospects=None):
        self.prospects = prospects or ProspectRepository

    async def reconcile(self, user_id: str) -> ReconciliationResult:
        """
        Run one reconciliation pass for a tenant.

        Raises:
            ReconciliationError: If the prospect list cannot be loaded
        """
        pass_id = f"reconcile:{uuid.uuid4().hex[:12]}"

        try:
            prospects = await self.prospects.list_active(user_id)
        except Exception as e:
            logger.error("Failed to fetch prospects", pass_id=pass_id, user_id=user_id, error=str(e))
            raise ReconciliationError("Failed to fetch prospects", user_id=user_id) from e

        result = ReconciliationResult(total=len(prospects))
        for prospect in prospects:
            try:
                change = await self._reconcile_one(user_id, prospect)
            except Exception as e:
                result.failed += 1
                logger.warning(
                    "Prospect reconciliation failed",
                    pass_id=pass_id,
                    prospect_id=prospect.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if change is None:
                result.skipped += 1
            else:
                result.updated += 1
                result.details.append(change)
                logger.info("Last contact updated", pass_id=pass_id, change=change)

        log_batch_result(
            "reconcile_last_contact",
            user_id=user_id,
            pass_id=pass_id,
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
            total=result.total,
        )
        return result

    async def _reconcile_one(self, user_id: str, prospect: ProspectContact) -> str | None:
        """Returns the transition string when the stored date was rewritten."""
        latest = await self.prospects.latest_communication_at(user_id, prospect.id)
        if latest is None:
            return None

        new_day = contact_day(latest)
        old_day = _stored_day(prospect.last_contact_date)
        if old_day == new_day:
            return None

        await self.prospects.update_last_contact_date(user_id, prospect.id, new_day)
        return transition(prospect, old_day, new_day)

    async def reconcile_all(self) -> dict[str, ReconciliationResult]:
        """Reconcile every tenant that owns prospects; one failing tenant does not stop the rest."""
        results: dict[str, ReconciliationResult] = {}
        for user_id in await self.prospects.list_tenants_with_prospects():
            try:
                results[user_id] = await self.reconcile(user_id)
            except ReconciliationError as e:
                logger.error("Tenant reconciliation aborted", user_id=user_id, error=str(e))
        return results


last_contact_reconciler = LastContactReconciler()
