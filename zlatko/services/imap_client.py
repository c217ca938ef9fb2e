"""
IMAP mailbox client.

Blocking imaplib sessions run in a worker thread so the sync pass can await
them like the Gmail REST client.
"""

import asyncio
import imaplib
import socket
from dataclasses import dataclass
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser

from zlatko.config import settings
from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

AUTH_FAILED_MESSAGE = "Authentication failed. Please check your username and password."
UNREACHABLE_MESSAGE = "Cannot connect to server. Please check host and port."
APP_PASSWORD_MESSAGE = "Invalid credentials. For Gmail, you may need an App Password."


class ImapClientError(Exception):
    """Raised when an IMAP session fails; `message` is safe to show users."""

    def __init__(self, message: str, error_code: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recoverable = recoverable


@dataclass(slots=True)
class ImapServerConfig:
    host: str
    port: int
    username: str
    password: str
    use_ssl: bool = True


@dataclass(slots=True)
class ImapMessage:
    """A fetched message reduced to what the importer needs."""

    uid: str
    message_id: str | None
    subject: str | None
    sender: str
    date: str | None
    body: str


@dataclass(slots=True)
class RawImapMessage:
    """RFC 822 bytes as fetched; `raw` is None when the server returned nothing."""

    uid: str
    raw: bytes | None

    def parse(self) -> ImapMessage:
        """
        Raises:
            ImapClientError: the fetch returned no data
        """
        if self.raw is None:
            raise ImapClientError(f"No data for UID {self.uid}", error_code="fetch_empty")
        return parse_raw_message(self.uid, self.raw)


def _friendly_error(error: Exception) -> ImapClientError:
    text = str(error)
    if "AUTHENTICATIONFAILED" in text:
        return ImapClientError(AUTH_FAILED_MESSAGE, error_code="auth_failed", recoverable=False)
    if "Invalid credentials" in text:
        return ImapClientError(APP_PASSWORD_MESSAGE, error_code="auth_failed", recoverable=False)
    if isinstance(error, TimeoutError | ConnectionRefusedError | socket.gaierror):
        return ImapClientError(UNREACHABLE_MESSAGE, error_code="unreachable")
    if isinstance(error, imaplib.IMAP4.error):
        return ImapClientError(text or "IMAP protocol error", error_code="imap_error")
    return ImapClientError(text or type(error).__name__, error_code="connection_error")


def _message_body(message: EmailMessage) -> str:
    part = message.get_body(preferencelist=("plain", "html"))
    if part is None:
        return ""
    try:
        return part.get_content()
    except (LookupError, UnicodeError, AssertionError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def parse_raw_message(uid: str, raw: bytes) -> ImapMessage:
    """Parse an RFC 822 message with the modern email policy."""
    message = BytesParser(policy=policy.default).parsebytes(raw)
    return ImapMessage(
        uid=uid,
        message_id=str(message["Message-ID"] or "").strip() or None,
        subject=str(message["Subject"] or "") or None,
        sender=str(message["From"] or ""),
        date=str(message["Date"]) if message["Date"] else None,
        body=_message_body(message),
    )


class ImapClient:
    """Stateless IMAP operations; each call opens and closes its own session."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout or settings.IMAP_TIMEOUT_SECONDS

    def _connect(self, config: ImapServerConfig) -> imaplib.IMAP4:
        if config.use_ssl:
            mail = imaplib.IMAP4_SSL(config.host, config.port, timeout=self.timeout)
        else:
            mail = imaplib.IMAP4(config.host, config.port, timeout=self.timeout)
        mail.login(config.username, config.password)
        return mail

    @staticmethod
    def _logout(mail: imaplib.IMAP4) -> None:
        try:
            mail.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug("IMAP logout failed", error=str(e))

    def _test_connection_sync(self, config: ImapServerConfig) -> None:
        mail = self._connect(config)
        try:
            status, _ = mail.select("INBOX", readonly=True)
            if status != "OK":
                raise imaplib.IMAP4.error("Cannot open INBOX")
        finally:
            self._logout(mail)

    def _fetch_conversation_sync(
        self, config: ImapServerConfig, address: str, max_results: int
    ) -> list[RawImapMessage]:
        quoted = address.replace('"', "")
        mail = self._connect(config)
        try:
            status, _ = mail.select("INBOX", readonly=True)
            if status != "OK":
                raise imaplib.IMAP4.error("Cannot open INBOX")

            status, data = mail.uid("search", None, f'(OR FROM "{quoted}" TO "{quoted}")')
            if status != "OK":
                raise imaplib.IMAP4.error(f"IMAP search failed: {status}")

            uids = data[0].split() if data and data[0] else []
            # UIDs ascend with arrival; keep the newest
            uids = uids[-max_results:] if max_results else uids

            messages: list[RawImapMessage] = []
            for raw_uid in reversed(uids):
                uid = raw_uid.decode() if isinstance(raw_uid, bytes) else str(raw_uid)
                status, fetched = mail.uid("fetch", uid, "(RFC822)")
                if status != "OK" or not fetched or not isinstance(fetched[0], tuple):
                    logger.warning("IMAP fetch returned no data", uid=uid)
                    messages.append(RawImapMessage(uid, None))
                    continue
                messages.append(RawImapMessage(uid, fetched[0][1]))
            return messages
        finally:
            self._logout(mail)

    async def test_connection(self, config: ImapServerConfig) -> None:
        """
        Log in and open INBOX.

        Raises:
            ImapClientError: With a user-facing message on any failure
        """
        try:
            await asyncio.to_thread(self._test_connection_sync, config)
        except (imaplib.IMAP4.error, OSError) as e:
            logger.warning("IMAP connection test failed", host=config.host, error=str(e))
            raise _friendly_error(e) from e

    async def fetch_conversation(
        self, config: ImapServerConfig, address: str, max_results: int = 50
    ) -> list[RawImapMessage]:
        """
        Fetch INBOX messages from or to `address`, newest first, unparsed.

        Raises:
            ImapClientError: If the session cannot be established or searched
        """
        try:
            messages = await asyncio.to_thread(
                self._fetch_conversation_sync, config, address, max_results
            )
        except (imaplib.IMAP4.error, OSError) as e:
            logger.error("IMAP fetch failed", host=config.host, error=str(e))
            raise _friendly_error(e) from e

        logger.info("IMAP messages fetched", host=config.host, count=len(messages))
        return messages


imap_client = ImapClient()
