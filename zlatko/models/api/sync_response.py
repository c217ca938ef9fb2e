# models/api/sync_response.py
"""
Response models for mailbox sync, IMAP account management and Gmail
connection status.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SyncResponse(BaseModel):
    success: bool = True
    imported: int = Field(..., description="Messages stored by this pass")
    skipped: int = Field(..., description="Duplicates plus per-message failures")
    total: int = Field(..., description="Messages listed by the mailbox")


class ImapSyncResponse(SyncResponse):
    accounts: int = Field(..., description="Active IMAP accounts walked")
    errors: list[str] | None = Field(default=None, description="Per-account failures")


class ImapAccountResponse(BaseModel):
    """IMAP account as shown in Settings; the password never leaves the server."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    account_name: str | None = Field(default=None, alias="accountName")
    email_address: str = Field(..., alias="emailAddress")
    imap_host: str = Field(..., alias="imapHost")
    imap_port: int = Field(..., alias="imapPort")
    imap_username: str = Field(..., alias="imapUsername")
    use_ssl: bool = Field(default=True, alias="useSsl")
    is_active: bool = Field(default=True, alias="isActive")
    last_sync_at: datetime | None = Field(default=None, alias="lastSyncAt")
    last_sync_status: str | None = Field(default=None, alias="lastSyncStatus")
    last_sync_error: str | None = Field(default=None, alias="lastSyncError")


class GmailConnectionStatusResponse(BaseModel):
    connected: bool
    email_address: str | None = None
    last_sync_at: datetime | None = None
    sync_enabled: bool = False


class GmailAuthURLResponse(BaseModel):
    auth_url: str = Field(..., description="Google OAuth authorization URL")
    state: str = Field(..., description="OAuth state parameter")
