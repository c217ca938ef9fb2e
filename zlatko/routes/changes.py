"""
Long-poll feed of row changes for the caller's tenant.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from zlatko.auth.verify import current_user_id
from zlatko.config import settings
from zlatko.infrastructure.events import change_bus

router = APIRouter(tags=["changes"])

WATCHABLE_TABLES = frozenset({"communications", "prospects", "email_accounts", "email_sync_config"})


@router.get("/changes/{table}")
async def poll_changes(
    table: str,
    timeout: float = Query(default=25.0, ge=0),
    since: int | None = Query(default=None, ge=0),
    user_id: str = Depends(current_user_id),
):
    """
    Wait for the next batch of changes to `table`; an empty list means none arrived.

    Pass the returned `cursor` back as `since` to also receive changes made
    between polls. Only writes made by this API process are reported.
    """
    if table not in WATCHABLE_TABLES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown table")

    wait_s = min(timeout, settings.CHANGE_POLL_MAX_TIMEOUT_SECONDS)
    async with change_bus.subscribe(user_id, tables=[table]) as subscription:
        cursor = change_bus.cursor
        events = change_bus.since(user_id, since, tables=[table]) if since is not None else []
        if not events:
            events = await subscription.next_batch(wait_s)

    if events:
        cursor = events[-1].seq
    return {"table": table, "cursor": cursor, "changes": [event.to_dict() for event in events]}
