"""
Mail transport adapter.

The sync orchestrator talks to Gmail only through these three calls, which
keeps it testable with an in-memory transport.
"""

from zlatko.models.domain.gmail_domain import GmailMessage
from zlatko.services.google_gmail_service import GoogleGmailService, google_gmail_service
from zlatko.services.google_oauth_service import (
    GoogleOAuthService,
    TokenResponse,
    google_oauth_service,
)


def build_conversation_query(address: str) -> str:
    """Gmail search for mail sent from or to `address`."""
    return f"{{from:{address} OR to:{address}}}"


class GmailTransport:
    def __init__(
        self,
        gmail: GoogleGmailService | None = None,
        oauth: GoogleOAuthService | None = None,
    ):
        self.gmail = gmail or google_gmail_service
        self.oauth = oauth or google_oauth_service

    async def list_messages(self, access_token: str, query: str, max_results: int) -> list[str]:
        return await self.gmail.list_message_ids(access_token, query, max_results)

    async def get_message(self, access_token: str, message_id: str) -> GmailMessage:
        return await self.gmail.get_message(access_token, message_id, format="full")

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        return await self.oauth.refresh_access_token(refresh_token)


gmail_transport = GmailTransport()
