"""
Domain subpackage for the email sync feature.
"""

from .models import (
    DEFAULT_SUBJECT,
    DIRECTION_INBOUND,
    DIRECTION_OUTBOUND,
    GMAIL_PROVIDER,
    SOURCE_GMAIL,
    SOURCE_IMAP,
    EmailSyncError,
    ImapAccount,
    ImapSyncResult,
    MailboxNotConnectedError,
    NewCommunication,
    NoImapAccountsError,
    ProspectNotFoundError,
    SyncCredential,
    SyncInProgressError,
    SyncLockUnavailableError,
    SyncPreconditionError,
    SyncResult,
    TokenRefreshError,
)

__all__ = [
    "DEFAULT_SUBJECT",
    "DIRECTION_INBOUND",
    "DIRECTION_OUTBOUND",
    "GMAIL_PROVIDER",
    "SOURCE_GMAIL",
    "SOURCE_IMAP",
    "EmailSyncError",
    "ImapAccount",
    "ImapSyncResult",
    "MailboxNotConnectedError",
    "NewCommunication",
    "NoImapAccountsError",
    "ProspectNotFoundError",
    "SyncCredential",
    "SyncInProgressError",
    "SyncLockUnavailableError",
    "SyncPreconditionError",
    "SyncResult",
    "TokenRefreshError",
]
