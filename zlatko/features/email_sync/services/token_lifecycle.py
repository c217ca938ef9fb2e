"""
Token lifecycle for Gmail sync credentials.

A pass never talks to Gmail with an expired access token: expired tokens
are refreshed and persisted first, and a failed refresh aborts the pass.
"""

from datetime import UTC, datetime

from zlatko.features.email_sync.domain import (
    GMAIL_PROVIDER,
    MailboxNotConnectedError,
    SyncCredential,
    TokenRefreshError,
)
from zlatko.features.email_sync.repository import CredentialRepository
from zlatko.features.email_sync.services.transport import gmail_transport
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.google_oauth_service import GoogleOAuthError
from zlatko.services.infrastructure.encryption_service import EncryptionError

logger = get_logger(__name__)


class TokenLifecycleManager:
    def __init__(self, credentials=None, transport=None):
        self.credentials = credentials or CredentialRepository
        self.transport = transport or gmail_transport

    async def resolve_credential(
        self, user_id: str, provider: str = GMAIL_PROVIDER, now: datetime | None = None
    ) -> SyncCredential:
        """
        Load the tenant's credential with a usable access token.

        Raises:
            MailboxNotConnectedError: No credential, sync disabled, or unreadable secrets
            TokenRefreshError: The token was expired and could not be refreshed
        """
        now = now or datetime.now(UTC)

        try:
            credential = await self.credentials.get(user_id, provider)
        except EncryptionError as e:
            logger.error("Stored credential could not be decrypted", user_id=user_id)
            raise MailboxNotConnectedError(
                "Stored Gmail credential is unreadable; reconnect Gmail",
                user_id=user_id,
                error_code="credential_unreadable",
                recoverable=False,
            ) from e

        if credential is None or not credential.sync_enabled:
            raise MailboxNotConnectedError(
                "Gmail not connected", user_id=user_id, error_code="not_connected"
            )

        if credential.is_expired(now):
            await self._refresh(credential)

        return credential

    async def _refresh(self, credential: SyncCredential) -> None:
        if not credential.refresh_token:
            raise TokenRefreshError(
                "Access token expired and no refresh token is stored",
                user_id=credential.user_id,
                error_code="missing_refresh_token",
                recoverable=False,
            )

        try:
            tokens = await self.transport.refresh_token(credential.refresh_token)
        except GoogleOAuthError as e:
            logger.warning(
                "Gmail token refresh failed",
                user_id=credential.user_id,
                error=str(e),
                error_code=e.error_code,
            )
            raise TokenRefreshError(
                str(e),
                user_id=credential.user_id,
                error_code=e.error_code or "refresh_failed",
                recoverable=e.error_code != "invalid_grant",
            ) from e

        rotated = tokens.refresh_token if tokens.refresh_token != credential.refresh_token else None
        await self.credentials.update_tokens(
            credential, tokens.access_token, tokens.expires_at, refresh_token=rotated
        )

        credential.access_token = tokens.access_token
        credential.token_expiry = tokens.expires_at
        if rotated:
            credential.refresh_token = rotated

        logger.info(
            "Gmail access token refreshed",
            user_id=credential.user_id,
            refresh_token_rotated=bool(rotated),
        )


token_lifecycle_manager = TokenLifecycleManager()
