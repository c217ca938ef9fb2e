"""
Import of one fetched message into a prospect's communication log.

Shared by the Gmail and IMAP passes: dedup lookup, header interpretation,
summary, insert.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from zlatko.features.email_sync.domain import DEFAULT_SUBJECT, NewCommunication
from zlatko.features.email_sync.pipeline.classifier import (
    classify_direction,
    parse_message_date,
    resolve_author,
)
from zlatko.features.email_sync.repository import CommunicationRepository
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.openai_service import summarize_email

logger = get_logger(__name__)

Summarizer = Callable[[str, str], Awaitable[str]]


@dataclass(slots=True)
class ImportContext:
    """Everything that stays fixed across the messages of one pass."""

    user_id: str
    prospect_id: str
    prospect_email: str
    outbound_author: str
    synced_from: str
    pass_started_at: datetime
    email_account_id: str | None = None


@dataclass(slots=True)
class IncomingMessage:
    external_message_id: str
    subject: str | None
    sender: str
    date: str | None
    body: str
    thread_id: str | None = None


class MessageImporter:
    def __init__(self, communications=None, summarizer: Summarizer | None = None):
        self.communications = communications or CommunicationRepository
        self.summarizer = summarizer or summarize_email

    async def is_duplicate(self, context: ImportContext, external_message_id: str) -> bool:
        return await self.communications.exists(
            context.user_id, context.prospect_id, external_message_id
        )

    async def _summarize(self, subject: str, body: str) -> str:
        try:
            return await self.summarizer(subject, body)
        except Exception as e:
            logger.warning("Summary generation failed", error=str(e))
            return ""

    def build(self, context: ImportContext, message: IncomingMessage, summary: str) -> NewCommunication:
        direction = classify_direction(message.sender, context.prospect_email)
        return NewCommunication(
            user_id=context.user_id,
            prospect_id=context.prospect_id,
            subject=message.subject or DEFAULT_SUBJECT,
            content=message.body,
            direction=direction,
            author=resolve_author(direction, message.sender, context.outbound_author),
            created_at=parse_message_date(message.date, context.pass_started_at),
            ai_summary=summary,
            external_message_id=message.external_message_id,
            external_thread_id=message.thread_id,
            email_account_id=context.email_account_id,
            synced_from=context.synced_from,
            synced_at=context.pass_started_at,
        )

    async def import_message(self, context: ImportContext, message: IncomingMessage) -> bool:
        """
        Classify, summarize and store a message.

        Returns False when the insert lost a race with another pass.
        """
        subject = message.subject or DEFAULT_SUBJECT
        summary = await self._summarize(subject, message.body)
        communication = self.build(context, message, summary)

        row_id = await self.communications.insert(communication)
        if row_id is None:
            return False

        logger.debug(
            "Communication imported",
            prospect_id=context.prospect_id,
            external_message_id=message.external_message_id,
            direction=communication.direction,
            synced_from=context.synced_from,
        )
        return True
