from datetime import UTC, datetime

import pytest

from tests.fakes import FakeImapAccounts, FakeImapClient, fake_summarizer, owned_prospects
from zlatko.features.email_sync.domain import (
    ImapAccount,
    NoImapAccountsError,
    ProspectNotFoundError,
    SyncPreconditionError,
)
from zlatko.features.email_sync.pipeline.importer import MessageImporter
from zlatko.features.email_sync.services.imap_sync_service import ImapSyncService
from zlatko.features.email_sync.services.sync_lock import SyncLock
from zlatko.services.imap_client import ImapClientError, RawImapMessage

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _account(account_id: str, host: str, active: bool = True) -> ImapAccount:
    return ImapAccount(
        id=account_id,
        user_id="user-123",
        account_name=None,
        email_address=f"me@{host}",
        imap_host=host,
        imap_port=993,
        imap_username="me",
        imap_password="secret",
        is_active=active,
    )


def _message(uid: str, sender: str, message_id: str | None = None) -> RawImapMessage:
    lines = ["Subject: Hello", f"From: {sender}", "To: x@zlatko.io"]
    if message_id is not None:
        lines.append(f"Message-ID: {message_id}")
    raw = "\r\n".join(lines) + "\r\n\r\nbody\r\n"
    return RawImapMessage(uid=uid, raw=raw.encode())


def _service(accounts, client, communications, fake_redis, prospects=None) -> ImapSyncService:
    return ImapSyncService(
        accounts=accounts,
        client=client,
        importer=MessageImporter(communications=communications, summarizer=fake_summarizer),
        lock=SyncLock(redis_client=fake_redis, ttl_s=60),
        prospects=prospects or owned_prospects("user-123", "p-1"),
    )


@pytest.mark.asyncio
async def test_imports_from_every_active_account(communications, fake_redis):
    accounts = FakeImapAccounts(
        [_account("a-1", "one.io"), _account("a-2", "two.io"), _account("a-3", "off.io", False)]
    )
    client = FakeImapClient(
        {
            "one.io": [_message("1", "Bob <bob@acme.com>", "<x@acme.com>")],
            "two.io": [_message("9", "me@two.io")],
        }
    )
    service = _service(accounts, client, communications, fake_redis)

    result = await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)

    assert result.to_dict() == {"imported": 2, "skipped": 0, "total": 2, "accounts": 2}
    assert [call[0] for call in client.calls] == ["one.io", "two.io"]

    inbound = communications.rows[("p-1", "<x@acme.com>")]
    assert inbound.direction == "inbound"
    assert inbound.synced_from == "imap"
    assert inbound.email_account_id == "a-1"

    outbound = communications.rows[("p-1", "a-2-9")]
    assert outbound.direction == "outbound"
    assert outbound.author == "me@two.io"
    assert accounts.results == [("a-1", "success", None), ("a-2", "success", None)]


@pytest.mark.asyncio
async def test_failing_account_is_recorded_and_others_continue(communications, fake_redis):
    accounts = FakeImapAccounts([_account("a-1", "bad.io"), _account("a-2", "good.io")])
    client = FakeImapClient(
        {
            "bad.io": ImapClientError("Cannot connect to server. Please check host and port."),
            "good.io": [_message("3", "bob@acme.com")],
        }
    )
    service = _service(accounts, client, communications, fake_redis)

    result = await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)

    assert result.imported == 1
    assert result.errors == ["me@bad.io: Cannot connect to server. Please check host and port."]
    assert result.to_dict()["errors"] == result.errors
    assert accounts.results[0] == (
        "a-1",
        "error",
        "Cannot connect to server. Please check host and port.",
    )
    assert accounts.results[1] == ("a-2", "success", None)


@pytest.mark.asyncio
async def test_second_pass_skips_everything(communications, fake_redis):
    accounts = FakeImapAccounts([_account("a-1", "one.io")])
    client = FakeImapClient({"one.io": [_message("1", "bob@acme.com"), _message("2", "me@one.io")]})
    service = _service(accounts, client, communications, fake_redis)

    await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)
    second = await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)

    assert second.to_dict() == {"imported": 0, "skipped": 2, "total": 2, "accounts": 1}
    assert len(communications.rows) == 2


@pytest.mark.asyncio
async def test_no_active_accounts(communications, fake_redis):
    service = _service(
        FakeImapAccounts([_account("a-1", "off.io", False)]),
        FakeImapClient({}),
        communications,
        fake_redis,
    )

    with pytest.raises(NoImapAccountsError) as exc_info:
        await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_missing_prospect_email(communications, fake_redis):
    service = _service(FakeImapAccounts(), FakeImapClient({}), communications, fake_redis)

    with pytest.raises(SyncPreconditionError):
        await service.sync_prospect("user-123", "p-1", "", now=NOW)


@pytest.mark.asyncio
async def test_unparseable_message_is_skipped_and_account_still_succeeds(
    communications, fake_redis, monkeypatch
):
    from zlatko.services import imap_client as imap_module

    real_parse = imap_module.parse_raw_message

    def parse(uid, raw):
        if uid == "2":
            raise IndexError("list index out of range")
        return real_parse(uid, raw)

    monkeypatch.setattr("zlatko.services.imap_client.parse_raw_message", parse)
    accounts = FakeImapAccounts([_account("a-1", "one.io")])
    client = FakeImapClient(
        {
            "one.io": [
                _message("1", "bob@acme.com", "<good@acme.com>"),
                _message("2", "bob@acme.com", "<"),
                RawImapMessage(uid="3", raw=None),
            ]
        }
    )
    service = _service(accounts, client, communications, fake_redis)

    result = await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)

    assert result.to_dict() == {"imported": 1, "skipped": 2, "total": 3, "accounts": 1}
    assert list(communications.rows) == [("p-1", "<good@acme.com>")]
    assert accounts.results == [("a-1", "success", None)]


@pytest.mark.asyncio
async def test_prospect_of_another_tenant_is_not_found(communications, fake_redis):
    accounts = FakeImapAccounts([_account("a-1", "one.io")])
    client = FakeImapClient({"one.io": [_message("1", "bob@acme.com")]})
    prospects = owned_prospects("user-999", "p-1")
    service = _service(accounts, client, communications, fake_redis, prospects=prospects)

    with pytest.raises(ProspectNotFoundError) as exc_info:
        await service.sync_prospect("user-123", "p-1", "bob@acme.com", now=NOW)

    assert exc_info.value.status_code == 404
    assert prospects.lookups == [("user-123", "p-1")]
    assert client.calls == []
    assert communications.rows == {}
    assert fake_redis.store == {}
