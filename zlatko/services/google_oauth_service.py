"""
Google OAuth Service for Gmail mailbox access.
Handles consent URL generation, code exchange, token refresh, revocation and
the mailbox address lookup used when a credential is first stored.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx

from zlatko.config import settings
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_OAUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/userinfo.email",
]

REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2  # 2, 4 seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class GoogleOAuthError(Exception):
    """Raised when Google rejects or fails an OAuth operation."""

    def __init__(
        self, message: str, error_code: str | None = None, response_data: dict | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}


class TokenResponse:
    """Structured representation of an OAuth token response."""

    def __init__(self, data: dict):
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token")
        self.token_type = data.get("token_type", "Bearer")
        self.expires_in = data.get("expires_in")
        self.scope = data.get("scope", "")

        if self.expires_in:
            self.expires_at = datetime.now(UTC) + timedelta(seconds=int(self.expires_in))
        else:
            self.expires_at = None

    def is_valid(self) -> bool:
        return bool(self.access_token and self.token_type)

    def has_gmail_access(self) -> bool:
        return "gmail.readonly" in self.scope


class GoogleOAuthService:
    """
    Google OAuth 2.0 operations for the Gmail connection.

    Configuration is checked on first use so the module can be imported
    (and the sync pipeline tested) without Google credentials present.
    """

    def __init__(self):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = settings.gmail_redirect_uri()

    def _validate_config(self) -> None:
        if not self.client_id:
            raise GoogleOAuthError("GOOGLE_CLIENT_ID not configured", error_code="config_error")
        if not self.client_secret:
            raise GoogleOAuthError(
                "GOOGLE_CLIENT_SECRET not configured", error_code="config_error"
            )

    async def _post_with_retry(self, url: str, data: dict, operation: str) -> httpx.Response:
        """
        POST form data with retry/backoff on transient failures.

        Args:
            url: Target URL
            data: Form data payload
            operation: Operation name for logging context
        """
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)

                    if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                        wait_time = BACKOFF_FACTOR**attempt
                        logger.warning(
                            "Google OAuth transient status",
                            operation=operation,
                            status_code=response.status_code,
                            attempt=attempt,
                            wait_time=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue

                    return response

                except httpx.RequestError as exc:
                    if attempt == MAX_RETRIES:
                        raise

                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Google OAuth request error, retrying",
                        operation=operation,
                        attempt=attempt,
                        wait_time=wait_time,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    await asyncio.sleep(wait_time)

        raise GoogleOAuthError(f"{operation} failed: retries exhausted")

    def generate_oauth_url(self, state: str) -> str:
        """
        Build the consent URL (offline access, forced consent so Google
        always returns a refresh token).
        """
        self._validate_config()

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(GMAIL_SCOPES),
            "response_type": "code",
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }

        oauth_url = f"{GOOGLE_OAUTH_BASE_URL}?{urlencode(params)}"
        logger.info("OAuth URL generated", state_preview=state[:8] + "...")
        return oauth_url

    async def exchange_code_for_tokens(self, authorization_code: str) -> TokenResponse:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            GoogleOAuthError: If the exchange fails
        """
        self._validate_config()
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": authorization_code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data, "code_exchange")
        except httpx.RequestError as e:
            logger.error("Network error during token exchange", error=str(e))
            raise GoogleOAuthError(f"Network error during token exchange: {e}") from e

        return self._handle_token_response(response, "code_exchange")

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Refresh an access token.

        Google usually omits the refresh token on refresh; the caller's one
        is carried over in that case.

        Raises:
            GoogleOAuthError: If the refresh fails (revoked grant, network)
        """
        self._validate_config()
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing Gmail access token", refresh_token_preview=refresh_token[:6] + "...")

        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data, "token_refresh")
        except httpx.RequestError as e:
            logger.error("Network error during token refresh", error=str(e))
            raise GoogleOAuthError(f"Network error during token refresh: {e}") from e

        token_response = self._handle_token_response(response, "token_refresh")
        if not token_response.refresh_token:
            token_response.refresh_token = refresh_token
        return token_response

    async def get_user_email(self, access_token: str) -> str:
        """Return the mailbox address the access token belongs to."""
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                response = await client.get(
                    GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
                )
        except httpx.RequestError as e:
            raise GoogleOAuthError(f"Network error fetching user info: {e}") from e

        if not response.is_success:
            logger.error("Google userinfo failed", status_code=response.status_code)
            raise GoogleOAuthError(
                f"Failed to fetch Gmail address (HTTP {response.status_code})",
                error_code="userinfo_failed",
            )

        email = response.json().get("email")
        if not email:
            raise GoogleOAuthError("Google did not return an email address")
        return email

    async def revoke_token(self, token: str) -> bool:
        """Revoke a token. Best effort: failures are logged and return False."""
        try:
            response = await self._post_with_retry(
                GOOGLE_REVOKE_URL, {"token": token}, "token_revocation"
            )
        except (httpx.RequestError, GoogleOAuthError) as e:
            logger.error("Error during token revocation", error=str(e))
            return False

        if response.status_code != 200:
            logger.warning(
                "Token revocation failed",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            return False

        logger.info("Gmail token revoked")
        return True

    def _handle_token_response(self, response: httpx.Response, operation: str) -> TokenResponse:
        """
        Validate a token endpoint response.

        Raises:
            GoogleOAuthError: If response is invalid or contains errors
        """
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                logger.error(
                    f"Google {operation} failed with non-JSON response",
                    status_code=response.status_code,
                    response_text=response.text[:200],
                )
                raise GoogleOAuthError(
                    f"Google OAuth service error (HTTP {response.status_code})"
                ) from None

            error_code = error_data.get("error", "unknown_error")
            logger.error(
                f"Google {operation} failed",
                status_code=response.status_code,
                error_code=error_code,
                error_description=error_data.get("error_description"),
            )
            raise GoogleOAuthError(
                self._map_google_error(error_code),
                error_code=error_code,
                response_data=error_data,
            )

        try:
            token_response = TokenResponse(response.json())
        except ValueError as e:
            raise GoogleOAuthError(f"Failed to parse Google response: {e}") from e

        if not token_response.is_valid():
            raise GoogleOAuthError("Invalid token response from Google")

        logger.info(
            f"Google {operation} successful",
            expires_in=token_response.expires_in,
            has_refresh_token=bool(token_response.refresh_token),
        )
        return token_response

    def _map_google_error(self, error_code: str) -> str:
        error_messages = {
            "access_denied": "Gmail access was denied. Please connect again and grant access.",
            "invalid_grant": "Gmail authorization expired or was revoked. Please reconnect Gmail.",
            "invalid_client": "Gmail connection configuration error.",
            "invalid_request": "Invalid Gmail connection request.",
            "unauthorized_client": "Gmail connection not authorized for this client.",
        }
        return error_messages.get(error_code, f"Gmail connection failed ({error_code})")


google_oauth_service = GoogleOAuthService()


def generate_google_oauth_url(state: str) -> str:
    return google_oauth_service.generate_oauth_url(state)


async def exchange_oauth_code(authorization_code: str) -> TokenResponse:
    return await google_oauth_service.exchange_code_for_tokens(authorization_code)


async def refresh_google_token(refresh_token: str) -> TokenResponse:
    return await google_oauth_service.refresh_access_token(refresh_token)


async def revoke_google_token(token: str) -> bool:
    return await google_oauth_service.revoke_token(token)
