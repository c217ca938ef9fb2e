import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from zlatko.features.email_sync.api.router import router as email_sync_router
from zlatko.features.email_sync.domain import (
    EmailSyncError,
    ImapAccount,
    ImapSyncResult,
    MailboxNotConnectedError,
    NoImapAccountsError,
    ProspectNotFoundError,
    SyncInProgressError,
    SyncPreconditionError,
    SyncResult,
)
from zlatko.services.imap_client import ImapClientError

ROUTER_MODULE = "zlatko.features.email_sync.api.router"

SYNC_BODY = {"prospectId": "p-1", "prospectEmail": "bob@acme.com"}


class StubSyncService:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    async def sync_prospect(self, user_id, prospect_id, prospect_email):
        self.calls.append((user_id, prospect_id, prospect_email))
        if self.error:
            raise self.error
        return self.result


class StubImapClient:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.configs = []

    async def test_connection(self, config):
        self.configs.append(config)
        if self.error:
            raise self.error


def make_account(**overrides) -> ImapAccount:
    values = dict(
        id="acct-1",
        user_id="user-123",
        account_name="Work",
        email_address="me@zlatko.io",
        imap_host="imap.zlatko.io",
        imap_port=993,
        imap_username="me@zlatko.io",
        imap_password="secret",
    )
    values.update(overrides)
    return ImapAccount(**values)


class StubAccountRepository:
    accounts: list[ImapAccount] = []
    created: list[dict] = []
    deleted: list[str] = []

    @classmethod
    async def list_accounts(cls, user_id, active_only=False):
        return [a for a in cls.accounts if a.user_id == user_id]

    @classmethod
    async def create(cls, user_id, **fields):
        cls.created.append(fields)
        return make_account(user_id=user_id, id="acct-new", **fields)

    @classmethod
    async def delete(cls, user_id, account_id):
        if any(a.id == account_id and a.user_id == user_id for a in cls.accounts):
            cls.deleted.append(account_id)
            return True
        return False


@pytest.fixture
def client(apply_auth_override):
    app = FastAPI()
    apply_auth_override(app)
    app.include_router(email_sync_router)
    return TestClient(app)


@pytest.fixture
def accounts(monkeypatch):
    StubAccountRepository.accounts = [make_account()]
    StubAccountRepository.created = []
    StubAccountRepository.deleted = []
    monkeypatch.setattr(f"{ROUTER_MODULE}.ImapAccountRepository", StubAccountRepository)
    return StubAccountRepository


def test_gmail_sync_returns_counts(client, monkeypatch):
    service = StubSyncService(result=SyncResult(imported=2, skipped=1, total=3))
    monkeypatch.setattr(f"{ROUTER_MODULE}.gmail_sync_service", service)

    response = client.post("/gmail/sync", json=SYNC_BODY)

    assert response.status_code == 200
    assert response.json() == {"success": True, "imported": 2, "skipped": 1, "total": 3}
    assert service.calls == [("user-123", "p-1", "bob@acme.com")]


@pytest.mark.parametrize(
    ("error", "status_code", "public_message"),
    [
        (SyncPreconditionError("prospect_email missing"), 400, "Missing prospectId or prospectEmail"),
        (MailboxNotConnectedError("no credential"), 401, "Gmail not connected"),
        (ProspectNotFoundError("Prospect p-1 not found"), 404, "Prospect not found"),
        (SyncInProgressError("locked"), 409, "A sync is already running for this prospect"),
        (EmailSyncError("listing failed"), 500, "Failed to sync emails"),
    ],
)
def test_gmail_sync_error_mapping(client, monkeypatch, error, status_code, public_message):
    monkeypatch.setattr(f"{ROUTER_MODULE}.gmail_sync_service", StubSyncService(error=error))

    response = client.post("/gmail/sync", json=SYNC_BODY)

    assert response.status_code == status_code
    assert response.json() == {"error": public_message, "details": error.message}


def test_gmail_sync_unexpected_error_is_500(client, monkeypatch):
    monkeypatch.setattr(
        f"{ROUTER_MODULE}.gmail_sync_service", StubSyncService(error=RuntimeError("boom"))
    )

    response = client.post("/gmail/sync", json=SYNC_BODY)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to sync emails", "details": "boom"}


def test_imap_sync_omits_errors_when_clean(client, monkeypatch):
    result = ImapSyncResult(imported=1, skipped=0, total=1, accounts=2)
    monkeypatch.setattr(f"{ROUTER_MODULE}.imap_sync_service", StubSyncService(result=result))

    response = client.post("/imap/sync", json=SYNC_BODY)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "imported": 1,
        "skipped": 0,
        "total": 1,
        "accounts": 2,
    }


def test_imap_sync_reports_account_errors(client, monkeypatch):
    result = ImapSyncResult(
        imported=1, skipped=0, total=1, accounts=2, errors=["old@zlatko.io: Login failed"]
    )
    monkeypatch.setattr(f"{ROUTER_MODULE}.imap_sync_service", StubSyncService(result=result))

    response = client.post("/imap/sync", json=SYNC_BODY)

    assert response.json()["errors"] == ["old@zlatko.io: Login failed"]


def test_imap_sync_without_accounts_is_400(client, monkeypatch):
    error = NoImapAccountsError("no active accounts")
    monkeypatch.setattr(f"{ROUTER_MODULE}.imap_sync_service", StubSyncService(error=error))

    response = client.post("/imap/sync", json=SYNC_BODY)

    assert response.status_code == 400
    assert response.json()["error"].startswith("No email accounts configured")


def test_connection_check_requires_all_fields(client, monkeypatch):
    imap = StubImapClient()
    monkeypatch.setattr(f"{ROUTER_MODULE}.imap_client", imap)

    response = client.post("/imap/test-connection", json={"imapHost": "imap.zlatko.io"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}
    assert imap.configs == []


def test_connection_check_failure_returns_friendly_message(client, monkeypatch):
    error = ImapClientError("Login failed. Check your username and password.", "auth_failed")
    monkeypatch.setattr(f"{ROUTER_MODULE}.imap_client", StubImapClient(error=error))

    response = client.post(
        "/imap/test-connection",
        json={
            "imapHost": "imap.zlatko.io",
            "imapPort": 993,
            "imapUsername": "me",
            "imapPassword": "wrong",
        },
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Login failed. Check your username and password."}


def test_connection_check_success(client, monkeypatch):
    imap = StubImapClient()
    monkeypatch.setattr(f"{ROUTER_MODULE}.imap_client", imap)

    response = client.post(
        "/imap/test-connection",
        json={
            "imapHost": "imap.zlatko.io",
            "imapPort": 143,
            "imapUsername": "me",
            "imapPassword": "pw",
            "useSsl": False,
        },
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert imap.configs[0].port == 143
    assert imap.configs[0].use_ssl is False


def test_list_accounts_hides_password(client, accounts):
    response = client.get("/imap/accounts")

    assert response.status_code == 200
    [account] = response.json()
    assert account["emailAddress"] == "me@zlatko.io"
    assert account["imapHost"] == "imap.zlatko.io"
    assert account["isActive"] is True
    assert "imapPassword" not in account
    assert "imap_password" not in account


def test_create_account(client, accounts):
    response = client.post(
        "/imap/accounts",
        json={
            "emailAddress": "new@zlatko.io",
            "accountName": "Sales",
            "imapHost": "imap.zlatko.io",
            "imapPort": 993,
            "imapUsername": "new@zlatko.io",
            "imapPassword": "pw",
        },
    )

    assert response.status_code == 201
    assert response.json()["emailAddress"] == "new@zlatko.io"
    assert accounts.created[0]["imap_password"] == "pw"


def test_create_account_requires_email_address(client, accounts):
    response = client.post(
        "/imap/accounts",
        json={"imapHost": "h", "imapPort": 993, "imapUsername": "u", "imapPassword": "p"},
    )

    assert response.status_code == 400
    assert accounts.created == []


def test_delete_account(client, accounts):
    assert client.delete("/imap/accounts/acct-1").json() == {"success": True}
    assert client.delete("/imap/accounts/missing").status_code == 404
    assert accounts.deleted == ["acct-1"]
