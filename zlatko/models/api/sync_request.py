# models/api/sync_request.py
from pydantic import BaseModel, ConfigDict, Field


class ProspectSyncRequest(BaseModel):
    """Request to sync one prospect's conversation from a mailbox."""

    model_config = ConfigDict(populate_by_name=True)

    prospect_id: str | None = Field(default=None, alias="prospectId")
    prospect_email: str | None = Field(default=None, alias="prospectEmail")


class ImapConnectionRequest(BaseModel):
    """IMAP server settings as entered in Settings."""

    model_config = ConfigDict(populate_by_name=True)

    imap_host: str | None = Field(default=None, alias="imapHost")
    imap_port: int | None = Field(default=None, alias="imapPort")
    imap_username: str | None = Field(default=None, alias="imapUsername")
    imap_password: str | None = Field(default=None, alias="imapPassword")
    use_ssl: bool = Field(default=True, alias="useSsl")

    def is_complete(self) -> bool:
        return bool(self.imap_host and self.imap_port and self.imap_username and self.imap_password)


class ImapAccountCreateRequest(ImapConnectionRequest):
    """Request to add an IMAP mailbox to the caller's accounts."""

    email_address: str | None = Field(default=None, alias="emailAddress")
    account_name: str | None = Field(default=None, alias="accountName")

    def is_complete(self) -> bool:
        return bool(self.email_address) and super().is_complete()


class InsightsRequest(BaseModel):
    """Deal context for engagement insights; recency comes from the stored prospect."""

    model_config = ConfigDict(populate_by_name=True)

    status: str | None = None
    deal_value: float | None = Field(default=None, alias="dealValue")
    product_type: str | None = Field(default=None, alias="productType")
    next_action: str | None = Field(default=None, alias="nextAction")
    last_activity: str | None = Field(default=None, alias="lastActivity")
