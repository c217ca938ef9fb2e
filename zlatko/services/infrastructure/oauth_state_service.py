"""
OAuth State Service for the Gmail connect flow.
Issues single-use CSRF state values bound to the tenant that started the flow.
"""

import secrets

from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.infrastructure.redis_client import fast_redis

logger = get_logger(__name__)

STATE_TTL_SECONDS = 900  # 15 minutes
STATE_KEY_PREFIX = "oauth_state"
STATE_LENGTH = 32  # bytes


class OAuthStateError(Exception):
    """Raised when a state value cannot be issued."""

    pass


class OAuthStateService:
    """
    Redis-backed OAuth state parameters.

    The Google redirect carries no bearer token, so the state value is the
    only link between the callback and the tenant who asked for consent.
    """

    def _redis_key(self, state: str) -> str:
        return f"{STATE_KEY_PREFIX}:{state}"

    async def generate_state(self, user_id: str) -> str:
        """
        Generate a state parameter and remember its owner.

        Raises:
            OAuthStateError: If the state cannot be stored
        """
        state = secrets.token_urlsafe(STATE_LENGTH)

        stored = await fast_redis.set_with_ttl(self._redis_key(state), user_id, STATE_TTL_SECONDS)
        if not stored:
            logger.error("Failed to store OAuth state", user_id=user_id)
            raise OAuthStateError("Failed to store state in Redis")

        logger.info(
            "OAuth state generated",
            user_id=user_id,
            state_preview=state[:8] + "...",
            ttl_seconds=STATE_TTL_SECONDS,
        )
        return state

    async def consume_state(self, state: str) -> str | None:
        """
        Return the tenant that owns `state` and invalidate it.

        Unknown, expired or already-used states return None.
        """
        if not state:
            return None

        owner = await fast_redis.get_and_delete(self._redis_key(state))
        if owner is None:
            logger.warning("OAuth state not found", state_preview=state[:8] + "...")
        return owner


oauth_state_service = OAuthStateService()


async def generate_oauth_state(user_id: str) -> str:
    """Generate and store OAuth state parameter."""
    return await oauth_state_service.generate_state(user_id)


async def get_oauth_state_owner(state: str) -> str | None:
    """Resolve and consume an OAuth state parameter."""
    return await oauth_state_service.consume_state(state)
