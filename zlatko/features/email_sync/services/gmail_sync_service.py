"""
Gmail sync orchestrator.

One pass imports the most recent conversation between the tenant's Gmail
mailbox and one prospect address:

    resolve credential -> list -> per message (dedup, fetch, decode,
    classify, summarize, store) -> last_sync_at -> counts

Per-message failures are absorbed into `skipped`; nothing is rolled back.
"""

import uuid
from datetime import UTC, datetime

from zlatko.config import settings
from zlatko.features.email_sync.domain import (
    GMAIL_PROVIDER,
    SOURCE_GMAIL,
    EmailSyncError,
    SyncCredential,
    SyncPreconditionError,
    SyncResult,
)
from zlatko.features.email_sync.pipeline.importer import (
    ImportContext,
    IncomingMessage,
    MessageImporter,
)
from zlatko.features.email_sync.pipeline.mime_decoder import decode_body
from zlatko.features.email_sync.repository import CredentialRepository
from zlatko.features.email_sync.services.ownership import require_owned_prospect
from zlatko.features.email_sync.services.sync_lock import (
    SyncLock,
    mailbox_lock_key,
    prospect_lock_key,
    sync_lock,
)
from zlatko.features.email_sync.services.token_lifecycle import (
    TokenLifecycleManager,
    token_lifecycle_manager,
)
from zlatko.features.email_sync.services.transport import build_conversation_query, gmail_transport
from zlatko.infrastructure.observability.logging import get_logger, log_batch_result
from zlatko.models.domain.gmail_domain import GmailMessage

logger = get_logger(__name__)


def to_incoming_message(message_id: str, message: GmailMessage) -> IncomingMessage:
    return IncomingMessage(
        external_message_id=message_id,
        subject=message.get_header("subject"),
        sender=message.sender,
        date=message.date,
        body=decode_body(message.payload),
        thread_id=message.thread_id,
    )


class GmailSyncService:
    def __init__(
        self,
        token_manager: TokenLifecycleManager | None = None,
        transport=None,
        importer: MessageImporter | None = None,
        credentials=None,
        lock: SyncLock | None = None,
        prospects=None,
    ):
        self.token_manager = token_manager or token_lifecycle_manager
        self.transport = transport or gmail_transport
        self.importer = importer or MessageImporter()
        self.credentials = credentials or CredentialRepository
        self.lock = lock or sync_lock
        self.prospects = prospects

    async def sync_prospect(
        self,
        user_id: str,
        prospect_id: str | None,
        prospect_email: str | None,
        now: datetime | None = None,
    ) -> SyncResult:
        """
        Run one Gmail sync pass for a prospect.

        Raises:
            SyncPreconditionError: prospect id or address missing
            ProspectNotFoundError: the prospect does not belong to the caller
            SyncInProgressError: a pass for this prospect or mailbox is running
            MailboxNotConnectedError, TokenRefreshError: no usable credential
            EmailSyncError: the message listing failed
        """
        if not prospect_id or not prospect_email:
            raise SyncPreconditionError(
                "Missing prospectId or prospectEmail", user_id=user_id, recoverable=False
            )
        await require_owned_prospect(user_id, prospect_id, self.prospects)

        async with self.lock.hold(
            prospect_lock_key(user_id, prospect_id),
            mailbox_lock_key(user_id, GMAIL_PROVIDER),
            user_id=user_id,
        ):
            return await self._run_pass(user_id, prospect_id, prospect_email, now)

    async def _run_pass(
        self, user_id: str, prospect_id: str, prospect_email: str, now: datetime | None
    ) -> SyncResult:
        now = now or datetime.now(UTC)
        pass_id = f"gmail_sync:{uuid.uuid4().hex[:12]}"

        credential = await self.token_manager.resolve_credential(user_id, GMAIL_PROVIDER, now=now)

        query = build_conversation_query(prospect_email)
        try:
            message_ids = await self.transport.list_messages(
                credential.access_token, query, settings.GMAIL_SYNC_MAX_RESULTS
            )
        except Exception as e:
            logger.error("Gmail listing failed", pass_id=pass_id, user_id=user_id, error=str(e))
            raise EmailSyncError(
                f"Failed to list Gmail messages: {e}", user_id=user_id, error_code="list_failed"
            ) from e

        context = ImportContext(
            user_id=user_id,
            prospect_id=prospect_id,
            prospect_email=prospect_email,
            outbound_author=settings.OUTBOUND_AUTHOR_NAME,
            synced_from=SOURCE_GMAIL,
            pass_started_at=now,
        )

        result = SyncResult(total=len(message_ids))
        for message_id in message_ids:
            if await self._process_message(context, credential, message_id, pass_id):
                result.imported += 1
            else:
                result.skipped += 1

        await self._record_pass(credential, now, pass_id)

        log_batch_result(
            "gmail_sync",
            user_id=user_id,
            pass_id=pass_id,
            prospect_id=prospect_id,
            **result.to_dict(),
        )
        return result

    async def _process_message(
        self, context: ImportContext, credential: SyncCredential, message_id: str, pass_id: str
    ) -> bool:
        try:
            # Dedup before fetching: already-imported mail costs one query, no API call
            if await self.importer.is_duplicate(context, message_id):
                return False

            message = await self.transport.get_message(credential.access_token, message_id)
            return await self.importer.import_message(
                context, to_incoming_message(message_id, message)
            )
        except Exception as e:
            logger.warning(
                "Skipping message after import failure",
                pass_id=pass_id,
                message_id=message_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def _record_pass(self, credential: SyncCredential, now: datetime, pass_id: str) -> None:
        try:
            await self.credentials.touch_last_sync(credential, now)
        except Exception as e:
            logger.error(
                "Failed to record last sync time",
                pass_id=pass_id,
                user_id=credential.user_id,
                error=str(e),
            )


gmail_sync_service = GmailSyncService()
