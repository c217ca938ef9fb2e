from urllib.parse import parse_qs, urlparse

import pytest

from zlatko.services.google_oauth_service import (
    GOOGLE_REVOKE_URL,
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
    GoogleOAuthError,
    GoogleOAuthService,
)


@pytest.fixture
def oauth_service():
    service = GoogleOAuthService()
    service.client_id = "client-id"
    service.client_secret = "client-secret"
    service.redirect_uri = "http://localhost:8000/auth/gmail/callback"
    return service


def test_consent_url_requests_offline_access(oauth_service):
    url = oauth_service.generate_oauth_url("state-abc")

    query = parse_qs(urlparse(url).query)
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["state"] == ["state-abc"]
    scopes = query["scope"][0].split(" ")
    assert "https://www.googleapis.com/auth/gmail.readonly" in scopes
    assert "https://www.googleapis.com/auth/userinfo.email" in scopes


def test_missing_client_config_is_reported(oauth_service):
    oauth_service.client_id = None

    with pytest.raises(GoogleOAuthError) as exc_info:
        oauth_service.generate_oauth_url("state")
    assert exc_info.value.error_code == "config_error"


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_google_omits_it(httpx_mock, oauth_service):
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={"access_token": "access-new", "expires_in": 3599, "token_type": "Bearer"},
    )

    tokens = await oauth_service.refresh_access_token("refresh-1")

    assert tokens.access_token == "access-new"
    assert tokens.refresh_token == "refresh-1"
    assert tokens.expires_at is not None
    body = parse_qs(httpx_mock.get_requests()[0].content.decode())
    assert body["grant_type"] == ["refresh_token"]
    assert body["refresh_token"] == ["refresh-1"]


@pytest.mark.asyncio
async def test_revoked_grant_raises_with_error_code(httpx_mock, oauth_service):
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        status_code=400,
        json={"error": "invalid_grant", "error_description": "Token has been revoked."},
    )

    with pytest.raises(GoogleOAuthError) as exc_info:
        await oauth_service.refresh_access_token("refresh-1")

    assert exc_info.value.error_code == "invalid_grant"


@pytest.mark.asyncio
async def test_code_exchange_and_user_email(httpx_mock, oauth_service):
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={"access_token": "a", "refresh_token": "r", "expires_in": 3600},
    )
    httpx_mock.add_response(method="GET", url=GOOGLE_USERINFO_URL, json={"email": "me@zlatko.io"})

    tokens = await oauth_service.exchange_code_for_tokens("code-1")
    email = await oauth_service.get_user_email(tokens.access_token)

    assert (tokens.access_token, tokens.refresh_token) == ("a", "r")
    assert email == "me@zlatko.io"


@pytest.mark.asyncio
async def test_revoke_failure_is_best_effort(httpx_mock, oauth_service):
    httpx_mock.add_response(method="POST", url=GOOGLE_REVOKE_URL, status_code=400, text="bad")

    assert await oauth_service.revoke_token("t") is False
