from datetime import UTC, datetime

import pytest
from cryptography.fernet import Fernet

from tests.fakes import FakeCommunications
from zlatko.auth.verify import auth_dependency
from zlatko.config import settings


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def get_and_delete(self, key: str) -> str | None:
        return self.store.pop(key, None)

    async def acquire_lock(self, key: str, token: str, ttl_s: int) -> bool:
        if key in self.store:
            return False
        self.store[key] = token
        return True

    async def release_lock(self, key: str, token: str) -> bool:
        if self.store.get(key) != token:
            return False
        del self.store[key]
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def encryption_key(monkeypatch):
    key = Fernet.generate_key().decode("utf-8")
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", key)
    return key


@pytest.fixture
def now():
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def communications():
    return FakeCommunications()
