"""
IMAP sync orchestrator.

Walks every active IMAP mailbox of the tenant and imports the conversation
with one prospect through the same importer as the Gmail pass. A mailbox
that fails is recorded as such and the pass moves on to the next one.
"""

import uuid
from datetime import UTC, datetime

from zlatko.config import settings
from zlatko.features.email_sync.domain import (
    SOURCE_IMAP,
    ImapAccount,
    ImapSyncResult,
    NoImapAccountsError,
    SyncPreconditionError,
)
from zlatko.features.email_sync.pipeline.importer import (
    ImportContext,
    IncomingMessage,
    MessageImporter,
)
from zlatko.features.email_sync.repository import ImapAccountRepository
from zlatko.features.email_sync.services.ownership import require_owned_prospect
from zlatko.features.email_sync.services.sync_lock import (
    SyncLock,
    mailbox_lock_key,
    prospect_lock_key,
    sync_lock,
)
from zlatko.infrastructure.observability.logging import get_logger, log_batch_result
from zlatko.services.imap_client import (
    ImapClient,
    ImapClientError,
    ImapMessage,
    ImapServerConfig,
    RawImapMessage,
    imap_client,
)

logger = get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def server_config(account: ImapAccount) -> ImapServerConfig:
    return ImapServerConfig(
        host=account.imap_host,
        port=account.imap_port,
        username=account.imap_username,
        password=account.imap_password,
        use_ssl=account.use_ssl,
    )


def to_incoming_message(account: ImapAccount, message: ImapMessage) -> IncomingMessage:
    return IncomingMessage(
        external_message_id=message.message_id or f"{account.id}-{message.uid}",
        subject=message.subject,
        sender=message.sender,
        date=message.date,
        body=message.body,
    )


class ImapSyncService:
    def __init__(
        self,
        accounts=None,
        client: ImapClient | None = None,
        importer: MessageImporter | None = None,
        lock: SyncLock | None = None,
        prospects=None,
    ):
        self.accounts = accounts or ImapAccountRepository
        self.client = client or imap_client
        self.importer = importer or MessageImporter()
        self.lock = lock or sync_lock
        self.prospects = prospects

    async def sync_prospect(
        self,
        user_id: str,
        prospect_id: str | None,
        prospect_email: str | None,
        now: datetime | None = None,
    ) -> ImapSyncResult:
        """
        Raises:
            SyncPreconditionError: prospect id or address missing
            ProspectNotFoundError: the prospect does not belong to the caller
            NoImapAccountsError: the tenant has no active IMAP mailbox
            SyncInProgressError: a pass for this prospect or a mailbox is running
        """
        if not prospect_id or not prospect_email:
            raise SyncPreconditionError(
                "Missing prospectId or prospectEmail", user_id=user_id, recoverable=False
            )
        await require_owned_prospect(user_id, prospect_id, self.prospects)

        accounts = await self.accounts.list_accounts(user_id, active_only=True)
        if not accounts:
            raise NoImapAccountsError(
                "No active IMAP accounts", user_id=user_id, error_code="no_accounts"
            )

        keys = [prospect_lock_key(user_id, prospect_id)]
        keys += [mailbox_lock_key(user_id, f"imap:{account.id}") for account in accounts]

        async with self.lock.hold(*keys, user_id=user_id):
            return await self._run_pass(user_id, prospect_id, prospect_email, accounts, now)

    async def _run_pass(
        self,
        user_id: str,
        prospect_id: str,
        prospect_email: str,
        accounts: list[ImapAccount],
        now: datetime | None,
    ) -> ImapSyncResult:
        now = now or datetime.now(UTC)
        pass_id = f"imap_sync:{uuid.uuid4().hex[:12]}"
        result = ImapSyncResult(accounts=len(accounts))

        for account in accounts:
            try:
                messages = await self.client.fetch_conversation(
                    server_config(account), prospect_email, settings.IMAP_SYNC_MAX_RESULTS
                )
            except Exception as e:
                reason = e.message if isinstance(e, ImapClientError) else str(e)
                logger.warning(
                    "IMAP account failed",
                    pass_id=pass_id,
                    account_id=account.id,
                    error=reason,
                )
                result.errors.append(f"{account.email_address}: {reason}")
                await self._record(account, STATUS_ERROR, now, pass_id, reason)
                continue

            context = ImportContext(
                user_id=user_id,
                prospect_id=prospect_id,
                prospect_email=prospect_email,
                outbound_author=account.email_address,
                synced_from=SOURCE_IMAP,
                pass_started_at=now,
                email_account_id=account.id,
            )

            result.total += len(messages)
            for message in messages:
                if await self._process_message(context, account, message, pass_id):
                    result.imported += 1
                else:
                    result.skipped += 1

            await self._record(account, STATUS_SUCCESS, now, pass_id)

        log_batch_result(
            "imap_sync",
            user_id=user_id,
            pass_id=pass_id,
            prospect_id=prospect_id,
            imported=result.imported,
            skipped=result.skipped,
            total=result.total,
            accounts=result.accounts,
            failed=len(result.errors),
        )
        return result

    async def _process_message(
        self, context: ImportContext, account: ImapAccount, message: RawImapMessage, pass_id: str
    ) -> bool:
        try:
            incoming = to_incoming_message(account, message.parse())
            if await self.importer.is_duplicate(context, incoming.external_message_id):
                return False
            return await self.importer.import_message(context, incoming)
        except Exception as e:
            logger.warning(
                "Skipping IMAP message after import failure",
                pass_id=pass_id,
                account_id=account.id,
                uid=message.uid,
                error=str(e),
            )
            return False

    async def _record(
        self,
        account: ImapAccount,
        status: str,
        now: datetime,
        pass_id: str,
        error: str | None = None,
    ) -> None:
        try:
            await self.accounts.record_sync_result(account, status, now, error)
        except Exception as e:
            logger.error(
                "Failed to record IMAP sync status",
                pass_id=pass_id,
                account_id=account.id,
                error=str(e),
            )


imap_sync_service = ImapSyncService()
