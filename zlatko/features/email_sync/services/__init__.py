"""
Service layer for the email sync feature.
"""

from .gmail_sync_service import GmailSyncService, gmail_sync_service
from .imap_sync_service import ImapSyncService, imap_sync_service
from .token_lifecycle import TokenLifecycleManager, token_lifecycle_manager

__all__ = [
    "GmailSyncService",
    "gmail_sync_service",
    "ImapSyncService",
    "imap_sync_service",
    "TokenLifecycleManager",
    "token_lifecycle_manager",
]
