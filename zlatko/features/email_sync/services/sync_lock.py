"""
Mutual exclusion for sync passes.

One pass per prospect and one per mailbox credential at a time, via Redis
SET NX EX with token-checked release. The TTL bounds how long a crashed
pass can block the next one.
"""

import secrets
from contextlib import asynccontextmanager

from zlatko.config import settings
from zlatko.features.email_sync.domain import SyncInProgressError, SyncLockUnavailableError
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.infrastructure.redis_client import fast_redis

logger = get_logger(__name__)

LOCK_KEY_PREFIX = "sync_lock"


def prospect_lock_key(user_id: str, prospect_id: str) -> str:
    return f"{LOCK_KEY_PREFIX}:prospect:{user_id}:{prospect_id}"


def mailbox_lock_key(user_id: str, mailbox: str) -> str:
    return f"{LOCK_KEY_PREFIX}:mailbox:{user_id}:{mailbox}"


class SyncLock:
    def __init__(self, redis_client=None, ttl_s: int | None = None):
        self.redis = redis_client or fast_redis
        self.ttl_s = ttl_s or settings.SYNC_LOCK_TTL_SECONDS

    async def _acquire(self, key: str, token: str) -> bool:
        try:
            return await self.redis.acquire_lock(key, token, self.ttl_s)
        except Exception as e:
            logger.error("Sync lock backend unavailable", key=key, error=str(e))
            raise SyncLockUnavailableError(f"Cannot reach lock store: {e}") from e

    @asynccontextmanager
    async def hold(self, *keys: str, user_id: str | None = None):
        """
        Hold every key for the duration of the block.

        Keys are taken in sorted order; if one is held elsewhere the ones
        already taken are released and SyncInProgressError is raised.
        """
        token = secrets.token_hex(16)
        acquired: list[str] = []
        try:
            for key in sorted(set(keys)):
                if not await self._acquire(key, token):
                    logger.info("Sync pass already running", key=key, user_id=user_id)
                    raise SyncInProgressError(
                        "A sync pass is already running", user_id=user_id, error_code="locked"
                    )
                acquired.append(key)
            yield token
        finally:
            for key in reversed(acquired):
                await self.redis.release_lock(key, token)


sync_lock = SyncLock()
