"""Gmail connection status and disconnect routes."""

from fastapi import APIRouter, Depends, HTTPException, status

from zlatko.auth.verify import current_user_id
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.models.api.sync_response import GmailConnectionStatusResponse
from zlatko.services.gmail_auth_service import disconnect_gmail, get_gmail_status

logger = get_logger(__name__)

router = APIRouter()


@router.get("/status", response_model=GmailConnectionStatusResponse)
async def get_connection_status(user_id: str = Depends(current_user_id)):
    try:
        status_info = await get_gmail_status(user_id)
    except Exception as e:
        logger.error(
            "Error getting Gmail connection status",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check Gmail connection status",
        ) from None

    return GmailConnectionStatusResponse(**status_info.to_dict())


async def disconnect_gmail_account(user_id: str = Depends(current_user_id)):
    """Revoke the Gmail grant and delete the stored credential."""
    try:
        removed = await disconnect_gmail(user_id)
    except Exception as e:
        logger.error("Gmail disconnect failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to disconnect Gmail",
        ) from None

    logger.info("Gmail disconnect requested", user_id=user_id, removed=removed)
    return {"success": True, "gmail_connected": False}
