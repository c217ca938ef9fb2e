"""
Gmail OAuth routes for the connection flow.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from zlatko.auth.verify import current_user_id
from zlatko.config import settings
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.models.api.sync_response import GmailAuthURLResponse
from zlatko.services.gmail_auth_service import (
    GmailConnectionError,
    complete_gmail_oauth,
    start_gmail_oauth,
)

logger = get_logger(__name__)

router = APIRouter()


def settings_redirect(**params: str) -> RedirectResponse:
    url = f"{settings.FRONTEND_URL.rstrip('/')}/settings?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/url", response_model=GmailAuthURLResponse)
async def get_oauth_url(user_id: str = Depends(current_user_id)):
    """
    Generate the Google consent URL for connecting Gmail.

    Raises:
        401: Invalid authentication token
        503: Google OAuth is not configured
        500: OAuth URL generation failed
    """
    try:
        oauth_url, state = await start_gmail_oauth(user_id)
    except GmailConnectionError as e:
        logger.error(
            "Gmail connection error during URL generation",
            user_id=user_id,
            error=str(e),
            error_code=e.error_code,
        )
        if e.error_code == "config_error":
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Gmail service temporarily unavailable",
            ) from None
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate Gmail authorization URL",
        ) from None

    return GmailAuthURLResponse(auth_url=oauth_url, state=state)


@router.get("/callback")
async def oauth_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
):
    """
    Google's redirect target. The tenant is the owner of `state`; the
    browser lands on the frontend settings page either way.
    """
    if error:
        logger.warning("Gmail consent denied", error=error)
        return settings_redirect(error=error)
    if not code:
        return settings_redirect(error="no_code")

    try:
        user_id = await complete_gmail_oauth(code, state or "")
    except GmailConnectionError as e:
        logger.error("Gmail OAuth callback failed", error=str(e), error_code=e.error_code)
        return settings_redirect(error=e.error_code or "callback_failed")
    except Exception as e:
        logger.error(
            "Unexpected error in Gmail OAuth callback", error=str(e), error_type=type(e).__name__
        )
        return settings_redirect(error="callback_failed")

    logger.info("Gmail OAuth callback completed", user_id=user_id)
    return settings_redirect(gmail_connected="true")
