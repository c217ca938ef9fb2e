"""
Domain models for the email sync feature.

Plain dataclasses shared by the repositories, the import pipeline and the
sync orchestrators, plus the exception hierarchy the HTTP layer maps to
status codes.
"""

from dataclasses import dataclass, field
from datetime import datetime

GMAIL_PROVIDER = "gmail"

SOURCE_GMAIL = "gmail"
SOURCE_IMAP = "imap"

DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"

DEFAULT_SUBJECT = "(No Subject)"


@dataclass(slots=True)
class NewCommunication:
    """A communication row about to be inserted by a sync pass."""

    user_id: str
    prospect_id: str
    subject: str
    content: str
    direction: str
    author: str
    created_at: datetime
    ai_summary: str
    external_message_id: str
    synced_from: str
    synced_at: datetime
    external_thread_id: str | None = None
    email_account_id: str | None = None
    type: str = "email"


@dataclass(slots=True)
class SyncCredential:
    """OAuth credential row (`email_sync_config`) with tokens decrypted."""

    id: str
    user_id: str
    provider: str
    access_token: str
    refresh_token: str | None
    token_expiry: datetime | None
    email_address: str | None = None
    last_sync_at: datetime | None = None
    sync_enabled: bool = True

    def is_expired(self, now: datetime) -> bool:
        """Strictly past expiry; an unknown expiry is never refreshed."""
        return self.token_expiry is not None and self.token_expiry < now


@dataclass(slots=True)
class ImapAccount:
    """IMAP mailbox row (`email_accounts`) with the password decrypted."""

    id: str
    user_id: str
    account_name: str | None
    email_address: str
    imap_host: str
    imap_port: int
    imap_username: str
    imap_password: str
    use_ssl: bool = True
    is_active: bool = True
    last_sync_at: datetime | None = None
    last_sync_status: str | None = None
    last_sync_error: str | None = None


@dataclass(slots=True)
class SyncResult:
    imported: int = 0
    skipped: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {"imported": self.imported, "skipped": self.skipped, "total": self.total}


@dataclass(slots=True)
class ImapSyncResult(SyncResult):
    accounts: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "imported": self.imported,
            "skipped": self.skipped,
            "total": self.total,
            "accounts": self.accounts,
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data


class EmailSyncError(Exception):
    """Base class for sync failures; `status_code` is the HTTP mapping."""

    status_code = 500
    public_message = "Failed to sync emails"

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        error_code: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.error_code = error_code
        self.recoverable = recoverable


class SyncPreconditionError(EmailSyncError):
    status_code = 400
    public_message = "Missing prospectId or prospectEmail"


class MailboxNotConnectedError(EmailSyncError):
    status_code = 401
    public_message = "Gmail not connected"


class TokenRefreshError(EmailSyncError):
    status_code = 401
    public_message = "Gmail token refresh failed"


class SyncInProgressError(EmailSyncError):
    status_code = 409
    public_message = "A sync is already running for this prospect"


class SyncLockUnavailableError(EmailSyncError):
    status_code = 503
    public_message = "Sync coordination unavailable"


class NoImapAccountsError(EmailSyncError):
    status_code = 400
    public_message = "No email accounts configured. Please add an email account in Settings."


class ProspectNotFoundError(EmailSyncError):
    status_code = 404
    public_message = "Prospect not found"
