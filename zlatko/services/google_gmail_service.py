"""
Google Gmail API Service.
Low-level Gmail REST client used by the sync pipeline: message search and
full-message fetches, with retry and error mapping.
"""

import asyncio

import httpx

from zlatko.infrastructure.observability.logging import get_logger
from zlatko.models.domain.gmail_domain import GmailMessage

logger = get_logger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GMAIL_USER_ID = "me"

REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class GoogleGmailError(Exception):
    """Raised for Gmail API failures."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class GoogleGmailService:
    """
    Gmail API client.

    Handles HTTP requests, authentication headers, error mapping and retry;
    message resources are wrapped in GmailMessage.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _get_auth_headers(self, access_token: str) -> dict:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Gmail API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise GoogleGmailError(f"Gmail API unreachable: {e}") from e
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Gmail API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise GoogleGmailError("Gmail API retry loop exhausted")

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Parse a Gmail API response.

        Raises:
            GoogleGmailError: If the response carries an error
        """
        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Gmail API {operation} response", error=str(e))
                raise GoogleGmailError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Gmail API {operation} failed with non-JSON response",
                status_code=response.status_code,
            )
            raise GoogleGmailError(
                f"Gmail API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        error_code = str(error_info.get("code", response.status_code))
        error_message = error_info.get("message", "Unknown Gmail API error")

        logger.error(
            f"Gmail API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )
        raise GoogleGmailError(
            self._map_gmail_error(error_code, error_message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_gmail_error(self, error_code: str, error_message: str) -> str:
        error_mappings = {
            "400": "Invalid Gmail request format.",
            "401": "Gmail authorization expired. Please reconnect.",
            "403": "Gmail access denied. Please check permissions.",
            "404": "Email message not found.",
            "429": "Too many Gmail requests. Please try again later.",
        }
        return error_mappings.get(error_code, f"Gmail error: {error_message}")

    async def list_message_ids(
        self, access_token: str, query: str, max_results: int = 50
    ) -> list[str]:
        """
        Search the mailbox and return matching message ids, newest first.

        Only the first page is read: a sync pass is bounded by `max_results`.

        Raises:
            GoogleGmailError: If the search fails
        """
        url = f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/messages"
        params = {"q": query, "maxResults": min(max_results, 500)}

        response = await self._request_with_retry(
            "GET", url, headers=self._get_auth_headers(access_token), params=params
        )
        data = self._handle_api_response(response, "list_messages")

        ids = [m["id"] for m in data.get("messages", []) if m.get("id")]
        logger.info("Gmail messages listed", query=query, count=len(ids))
        return ids[:max_results]

    async def get_message(
        self, access_token: str, message_id: str, format: str = "full"
    ) -> GmailMessage:
        """
        Fetch a message with headers and the MIME payload tree.

        Raises:
            GoogleGmailError: If the fetch fails
        """
        url = f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/messages/{message_id}"

        response = await self._request_with_retry(
            "GET", url, headers=self._get_auth_headers(access_token), params={"format": format}
        )
        data = self._handle_api_response(response, "get_message")
        return GmailMessage(data)


google_gmail_service = GoogleGmailService()
