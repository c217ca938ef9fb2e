from datetime import UTC, datetime, timedelta

import pytest

from tests.fakes import FakeCredentials, FakeTransport
from zlatko.features.email_sync.domain import (
    MailboxNotConnectedError,
    SyncCredential,
    TokenRefreshError,
)
from zlatko.features.email_sync.services.token_lifecycle import TokenLifecycleManager
from zlatko.services.google_oauth_service import GoogleOAuthError, TokenResponse
from zlatko.services.infrastructure.encryption_service import EncryptionError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _credential(expiry, refresh_token="refresh-1", sync_enabled=True) -> SyncCredential:
    return SyncCredential(
        id="cred-1",
        user_id="user-123",
        provider="gmail",
        access_token="access-old",
        refresh_token=refresh_token,
        token_expiry=expiry,
        sync_enabled=sync_enabled,
    )


@pytest.mark.asyncio
async def test_missing_credential_is_not_connected():
    manager = TokenLifecycleManager(credentials=FakeCredentials(), transport=FakeTransport())

    with pytest.raises(MailboxNotConnectedError) as exc_info:
        await manager.resolve_credential("user-123", now=NOW)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_disabled_sync_is_not_connected():
    credentials = FakeCredentials(_credential(NOW + timedelta(hours=1), sync_enabled=False))
    manager = TokenLifecycleManager(credentials=credentials, transport=FakeTransport())

    with pytest.raises(MailboxNotConnectedError):
        await manager.resolve_credential("user-123", now=NOW)


@pytest.mark.asyncio
async def test_unreadable_credential_is_not_connected():
    class BrokenCredentials(FakeCredentials):
        async def get(self, user_id, provider):
            raise EncryptionError("bad key")

    manager = TokenLifecycleManager(credentials=BrokenCredentials(), transport=FakeTransport())

    with pytest.raises(MailboxNotConnectedError):
        await manager.resolve_credential("user-123", now=NOW)


@pytest.mark.asyncio
async def test_unexpired_token_is_not_refreshed():
    credentials = FakeCredentials(_credential(NOW + timedelta(minutes=5)))
    transport = FakeTransport()
    manager = TokenLifecycleManager(credentials=credentials, transport=transport)

    credential = await manager.resolve_credential("user-123", now=NOW)

    assert credential.access_token == "access-old"
    assert transport.refresh_calls == []
    assert credentials.token_updates == []


@pytest.mark.asyncio
async def test_unknown_expiry_is_not_refreshed():
    transport = FakeTransport()
    manager = TokenLifecycleManager(credentials=FakeCredentials(_credential(None)), transport=transport)

    await manager.resolve_credential("user-123", now=NOW)

    assert transport.refresh_calls == []


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_and_persisted_first():
    credentials = FakeCredentials(_credential(NOW - timedelta(seconds=1)))
    refreshed = TokenResponse({"access_token": "access-new", "expires_in": 3600})
    refreshed.refresh_token = "refresh-1"
    transport = FakeTransport(refreshed=refreshed)
    manager = TokenLifecycleManager(credentials=credentials, transport=transport)

    credential = await manager.resolve_credential("user-123", now=NOW)

    assert transport.refresh_calls == ["refresh-1"]
    assert credential.access_token == "access-new"
    assert credentials.token_updates == [
        {
            "access_token": "access-new",
            "token_expiry": refreshed.expires_at,
            "refresh_token": None,
        }
    ]


@pytest.mark.asyncio
async def test_rotated_refresh_token_is_stored():
    credentials = FakeCredentials(_credential(NOW - timedelta(minutes=1)))
    refreshed = TokenResponse(
        {"access_token": "access-new", "refresh_token": "refresh-2", "expires_in": 3600}
    )
    manager = TokenLifecycleManager(
        credentials=credentials, transport=FakeTransport(refreshed=refreshed)
    )

    credential = await manager.resolve_credential("user-123", now=NOW)

    assert credential.refresh_token == "refresh-2"
    assert credentials.token_updates[0]["refresh_token"] == "refresh-2"


@pytest.mark.asyncio
async def test_failed_refresh_aborts_without_persisting():
    credentials = FakeCredentials(_credential(NOW - timedelta(minutes=1)))
    transport = FakeTransport(
        refresh_error=GoogleOAuthError("Token revoked", error_code="invalid_grant")
    )
    manager = TokenLifecycleManager(credentials=credentials, transport=transport)

    with pytest.raises(TokenRefreshError) as exc_info:
        await manager.resolve_credential("user-123", now=NOW)

    assert exc_info.value.recoverable is False
    assert credentials.token_updates == []


@pytest.mark.asyncio
async def test_expired_without_refresh_token_fails():
    credentials = FakeCredentials(_credential(NOW - timedelta(minutes=1), refresh_token=None))
    transport = FakeTransport()
    manager = TokenLifecycleManager(credentials=credentials, transport=transport)

    with pytest.raises(TokenRefreshError):
        await manager.resolve_credential("user-123", now=NOW)
    assert transport.refresh_calls == []
