"""
Email sync routes.

Gmail and IMAP sync passes for one prospect, plus management of the
caller's IMAP mailboxes. Sync failures come back as `{error, details}` with
the status carried by the raised EmailSyncError.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from zlatko.auth.verify import current_user_id
from zlatko.features.email_sync.domain import EmailSyncError, ImapAccount
from zlatko.features.email_sync.repository import ImapAccountRepository
from zlatko.features.email_sync.services import gmail_sync_service, imap_sync_service
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.models.api.sync_request import (
    ImapAccountCreateRequest,
    ImapConnectionRequest,
    ProspectSyncRequest,
)
from zlatko.models.api.sync_response import (
    ImapAccountResponse,
    ImapSyncResponse,
    SyncResponse,
)
from zlatko.services.imap_client import ImapClientError, ImapServerConfig, imap_client

logger = get_logger(__name__)

router = APIRouter(tags=["email-sync"])

CONNECTION_OK_MESSAGE = "Connection successful! Your IMAP settings are correct."


def sync_error_response(error: Exception) -> JSONResponse:
    if isinstance(error, EmailSyncError):
        return JSONResponse(
            status_code=error.status_code,
            content={"error": error.public_message, "details": error.message},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": EmailSyncError.public_message, "details": str(error)},
    )


def _account_response(account: ImapAccount) -> ImapAccountResponse:
    return ImapAccountResponse(
        id=account.id,
        account_name=account.account_name,
        email_address=account.email_address,
        imap_host=account.imap_host,
        imap_port=account.imap_port,
        imap_username=account.imap_username,
        use_ssl=account.use_ssl,
        is_active=account.is_active,
        last_sync_at=account.last_sync_at,
        last_sync_status=account.last_sync_status,
        last_sync_error=account.last_sync_error,
    )


@router.post("/gmail/sync", response_model=SyncResponse)
async def sync_gmail(request: ProspectSyncRequest, user_id: str = Depends(current_user_id)):
    """
    Import the most recent Gmail conversation with a prospect.

    Raises:
        400: prospectId or prospectEmail missing
        401: Gmail not connected or token refresh failed
        409: A pass for this prospect is already running
        500: Listing failed or unexpected error
    """
    try:
        result = await gmail_sync_service.sync_prospect(
            user_id, request.prospect_id, request.prospect_email
        )
    except Exception as e:
        logger.error(
            "Gmail sync failed",
            user_id=user_id,
            prospect_id=request.prospect_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return sync_error_response(e)

    return SyncResponse(success=True, **result.to_dict())


@router.post("/imap/sync", response_model=ImapSyncResponse, response_model_exclude_none=True)
async def sync_imap(request: ProspectSyncRequest, user_id: str = Depends(current_user_id)):
    """Import a prospect's conversation from every active IMAP mailbox."""
    try:
        result = await imap_sync_service.sync_prospect(
            user_id, request.prospect_id, request.prospect_email
        )
    except Exception as e:
        logger.error(
            "IMAP sync failed",
            user_id=user_id,
            prospect_id=request.prospect_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return sync_error_response(e)

    return ImapSyncResponse(success=True, **result.to_dict())


@router.post("/imap/test-connection")
async def test_imap_connection(
    request: ImapConnectionRequest, user_id: str = Depends(current_user_id)
):
    if not request.is_complete():
        return JSONResponse(status_code=400, content={"error": "Missing required fields"})

    config = ImapServerConfig(
        host=request.imap_host,
        port=request.imap_port,
        username=request.imap_username,
        password=request.imap_password,
        use_ssl=request.use_ssl,
    )
    try:
        await imap_client.test_connection(config)
    except ImapClientError as e:
        logger.info("IMAP settings rejected", user_id=user_id, error_code=e.error_code)
        return JSONResponse(status_code=400, content={"error": e.message})

    return {"success": True, "message": CONNECTION_OK_MESSAGE}


@router.get("/imap/accounts", response_model=list[ImapAccountResponse])
async def list_imap_accounts(user_id: str = Depends(current_user_id)):
    accounts = await ImapAccountRepository.list_accounts(user_id)
    return [_account_response(account) for account in accounts]


@router.post(
    "/imap/accounts", response_model=ImapAccountResponse, status_code=status.HTTP_201_CREATED
)
async def create_imap_account(
    request: ImapAccountCreateRequest, user_id: str = Depends(current_user_id)
):
    if not request.is_complete():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    account = await ImapAccountRepository.create(
        user_id,
        email_address=request.email_address,
        imap_host=request.imap_host,
        imap_port=request.imap_port,
        imap_username=request.imap_username,
        imap_password=request.imap_password,
        use_ssl=request.use_ssl,
        account_name=request.account_name,
    )
    return _account_response(account)


@router.delete("/imap/accounts/{account_id}")
async def delete_imap_account(account_id: str, user_id: str = Depends(current_user_id)):
    if not await ImapAccountRepository.delete(user_id, account_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return {"success": True}
