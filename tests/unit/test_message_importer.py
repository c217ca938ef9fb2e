from datetime import UTC, datetime

import pytest

from tests.fakes import fake_summarizer
from zlatko.features.email_sync.pipeline.importer import (
    ImportContext,
    IncomingMessage,
    MessageImporter,
)

PASS_STARTED = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _context(**overrides) -> ImportContext:
    values = {
        "user_id": "user-123",
        "prospect_id": "p-1",
        "prospect_email": "bob@acme.com",
        "outbound_author": "Aleksandar",
        "synced_from": "gmail",
        "pass_started_at": PASS_STARTED,
    }
    values.update(overrides)
    return ImportContext(**values)


def _message(**overrides) -> IncomingMessage:
    values = {
        "external_message_id": "m-1",
        "subject": "Pricing",
        "sender": "Bob <bob@acme.com>",
        "date": "Mon, 13 May 2024 10:00:00 +0000",
        "body": "Can you send the quote?",
        "thread_id": "t-1",
    }
    values.update(overrides)
    return IncomingMessage(**values)


@pytest.mark.asyncio
async def test_inbound_message_is_stored_with_sender_as_author(communications):
    importer = MessageImporter(communications=communications, summarizer=fake_summarizer)

    assert await importer.import_message(_context(), _message()) is True

    stored = communications.rows[("p-1", "m-1")]
    assert stored.direction == "inbound"
    assert stored.author == "Bob <bob@acme.com>"
    assert stored.ai_summary == "summary of Pricing"
    assert stored.created_at == datetime(2024, 5, 13, 10, 0, tzinfo=UTC)
    assert stored.synced_at == PASS_STARTED
    assert stored.external_thread_id == "t-1"
    assert stored.type == "email"


@pytest.mark.asyncio
async def test_outbound_message_uses_internal_identity(communications):
    importer = MessageImporter(communications=communications, summarizer=fake_summarizer)

    await importer.import_message(_context(), _message(sender="Me <me@zlatko.io>"))

    stored = communications.rows[("p-1", "m-1")]
    assert stored.direction == "outbound"
    assert stored.author == "Aleksandar"


@pytest.mark.asyncio
async def test_missing_headers_get_defaults(communications):
    importer = MessageImporter(communications=communications, summarizer=fake_summarizer)

    await importer.import_message(_context(), _message(subject=None, date=None))

    stored = communications.rows[("p-1", "m-1")]
    assert stored.subject == "(No Subject)"
    assert stored.created_at == PASS_STARTED


@pytest.mark.asyncio
async def test_summary_failure_stores_empty_summary(communications):
    async def broken_summarizer(subject, body):
        raise RuntimeError("model down")

    importer = MessageImporter(communications=communications, summarizer=broken_summarizer)

    assert await importer.import_message(_context(), _message()) is True
    assert communications.rows[("p-1", "m-1")].ai_summary == ""


@pytest.mark.asyncio
async def test_lost_insert_race_reports_not_imported(communications):
    importer = MessageImporter(communications=communications, summarizer=fake_summarizer)

    assert await importer.import_message(_context(), _message()) is True
    assert await importer.import_message(_context(), _message()) is False
    assert len(communications.rows) == 1


@pytest.mark.asyncio
async def test_is_duplicate_checks_prospect_and_message(communications):
    importer = MessageImporter(communications=communications, summarizer=fake_summarizer)
    await importer.import_message(_context(), _message())

    assert await importer.is_duplicate(_context(), "m-1") is True
    assert await importer.is_duplicate(_context(prospect_id="p-2"), "m-1") is False
