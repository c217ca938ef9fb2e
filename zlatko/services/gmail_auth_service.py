"""
Gmail connection service.

Server side of the OAuth token contract: consent URL with a CSRF state,
code exchange into a stored sync credential, status, and disconnect.
"""

from datetime import datetime

from zlatko.features.email_sync.domain import GMAIL_PROVIDER
from zlatko.features.email_sync.repository import CredentialRepository
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.google_oauth_service import GoogleOAuthError, google_oauth_service
from zlatko.services.infrastructure.oauth_state_service import (
    OAuthStateError,
    generate_oauth_state,
    get_oauth_state_owner,
)

logger = get_logger(__name__)


class GmailConnectionError(Exception):
    """Custom exception for Gmail connection operations."""

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        error_code: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.user_id = user_id
        self.error_code = error_code
        self.recoverable = recoverable


class GmailConnectionStatus:
    def __init__(
        self,
        connected: bool,
        email_address: str | None = None,
        last_sync_at: datetime | None = None,
        sync_enabled: bool = False,
    ):
        self.connected = connected
        self.email_address = email_address
        self.last_sync_at = last_sync_at
        self.sync_enabled = sync_enabled

    def to_dict(self) -> dict:
        return {
            "connected": self.connected,
            "email_address": self.email_address,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "sync_enabled": self.sync_enabled,
        }


class GmailAuthService:
    def __init__(self, oauth=None, credentials=None):
        self.oauth = oauth or google_oauth_service
        self.credentials = credentials or CredentialRepository

    async def initiate_oauth_flow(self, user_id: str) -> tuple[str, str]:
        """
        Returns:
            (consent URL, state)

        Raises:
            GmailConnectionError: config_error when Google credentials are missing
        """
        try:
            state = await generate_oauth_state(user_id)
            url = self.oauth.generate_oauth_url(state)
        except GoogleOAuthError as e:
            raise GmailConnectionError(
                str(e), user_id=user_id, error_code=e.error_code, recoverable=False
            ) from e
        except OAuthStateError as e:
            raise GmailConnectionError(str(e), user_id=user_id, error_code="state_error") from e

        logger.info("Gmail OAuth flow started", user_id=user_id, state_preview=state[:8] + "...")
        return url, state

    async def complete_oauth_flow(self, authorization_code: str, state: str) -> str:
        """
        Exchange the code and store the credential for the state's owner.

        Returns:
            The tenant id the credential was stored for

        Raises:
            GmailConnectionError: invalid_state, or the Google error code
        """
        user_id = await get_oauth_state_owner(state)
        if not user_id:
            raise GmailConnectionError(
                "Invalid or expired OAuth state", error_code="invalid_state", recoverable=False
            )

        try:
            tokens = await self.oauth.exchange_code_for_tokens(authorization_code)
            email_address = await self.oauth.get_user_email(tokens.access_token)
        except GoogleOAuthError as e:
            logger.error("Gmail OAuth exchange failed", user_id=user_id, error_code=e.error_code)
            raise GmailConnectionError(
                str(e), user_id=user_id, error_code=e.error_code or "exchange_failed"
            ) from e

        await self.credentials.upsert(
            user_id,
            GMAIL_PROVIDER,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_at,
            email_address,
        )
        logger.info("Gmail connected", user_id=user_id)
        return user_id

    async def get_connection_status(self, user_id: str) -> GmailConnectionStatus:
        credential = await self.credentials.get(user_id, GMAIL_PROVIDER)
        if credential is None:
            return GmailConnectionStatus(connected=False)
        return GmailConnectionStatus(
            connected=True,
            email_address=credential.email_address,
            last_sync_at=credential.last_sync_at,
            sync_enabled=credential.sync_enabled,
        )

    async def disconnect_gmail(self, user_id: str) -> bool:
        """Revoke at Google (best effort) and delete the stored credential."""
        credential = await self.credentials.get(user_id, GMAIL_PROVIDER)
        if credential is None:
            return False

        token = credential.refresh_token or credential.access_token
        revoked = await self.oauth.revoke_token(token)
        if not revoked:
            logger.warning("Gmail token revocation failed; deleting anyway", user_id=user_id)

        return await self.credentials.delete(user_id, GMAIL_PROVIDER)


gmail_auth_service = GmailAuthService()


async def start_gmail_oauth(user_id: str) -> tuple[str, str]:
    return await gmail_auth_service.initiate_oauth_flow(user_id)


async def complete_gmail_oauth(code: str, state: str) -> str:
    return await gmail_auth_service.complete_oauth_flow(code, state)


async def get_gmail_status(user_id: str) -> GmailConnectionStatus:
    return await gmail_auth_service.get_connection_status(user_id)


async def disconnect_gmail(user_id: str) -> bool:
    return await gmail_auth_service.disconnect_gmail(user_id)
