"""
Prospect ownership check run before any sync pass writes rows.
"""

from zlatko.features.email_sync.domain import ProspectNotFoundError
from zlatko.features.last_contact.repository import ProspectRepository


async def require_owned_prospect(user_id: str, prospect_id: str, prospects=None) -> None:
    """
    Raises:
        ProspectNotFoundError: `prospect_id` is not one of the caller's prospects
    """
    prospects = prospects or ProspectRepository
    if await prospects.get_prospect(user_id, prospect_id) is None:
        raise ProspectNotFoundError(
            f"Prospect {prospect_id} not found", user_id=user_id, recoverable=False
        )
