"""
Unified session management for all authentication providers.

A session is an opaque random token mapped to a user id with a TTL. The
mapping lives in Redis when ``REDIS_URL`` is configured and in process memory
otherwise. The browser only ever sees the token, signed with
``SESSION_SECRET`` so a forged cookie is rejected before any lookup.
"""

import logging
import secrets
import time
from typing import Any, Callable, Optional

from fastapi import Response
from itsdangerous import BadSignature, Signer
from redis.exceptions import RedisError

from ..core.config import Settings
from ..errors import StorageUnavailable

logger = logging.getLogger(__name__)

SESSION_SALT = "secretkeeper-session-v1"


class SessionManager:
    """Session store backed by Redis or an in-memory fallback.

    State per token: issued by ``create`` (active), removed by ``destroy`` or
    by expiry (destroyed). A destroyed token never resolves again.
    """

    def __init__(
        self,
        settings: Settings,
        redis: Any = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.ttl_seconds = settings.SESSION_TTL_SECONDS
        self._redis = redis
        self._prefix = "session:"
        self._memory: dict[str, tuple[str, float]] = {}
        self._clock = clock
        self._signer = Signer(settings.SESSION_SECRET, salt=SESSION_SALT)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    async def connect(self) -> bool:
        """Connect to Redis if configured."""
        if self._redis is not None:
            return True
        if not self.settings.REDIS_URL:
            logger.warning("Session store: Redis not configured, using in-memory fallback")
            return False

        try:
            import redis.asyncio as redis
            client = redis.from_url(self.settings.REDIS_URL, decode_responses=True)
            await client.ping()
            self._redis = client
            logger.info("Session store: Connected to Redis")
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Session store: Redis connection failed: {e}, using in-memory")
            self._redis = None
            return False

    async def disconnect(self):
        """Disconnect from Redis."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def create(self, user_id: str) -> str:
        """
        Issue a new session for ``user_id``.

        Returns:
            The opaque session token
        """
        token = secrets.token_urlsafe(32)
        if self._redis is not None:
            try:
                await self._redis.setex(f"{self._prefix}{token}", self.ttl_seconds, user_id)
            except RedisError as e:
                logger.error(f"Failed to store session: {e}")
                raise StorageUnavailable("Session store unavailable") from e
        else:
            self._memory[token] = (user_id, self._clock() + self.ttl_seconds)
        logger.debug(f"Session created for user {user_id}: {token[:8]}...")
        return token

    async def resolve(self, token: Optional[str]) -> Optional[str]:
        """
        Look up the user id for a token.

        Missing, unknown, expired and destroyed tokens all resolve to None;
        that is the ordinary "not logged in" state, not an error.
        """
        if not token:
            return None

        if self._redis is not None:
            try:
                value = await self._redis.get(f"{self._prefix}{token}")
            except RedisError as e:
                logger.error(f"Failed to read session: {e}")
                raise StorageUnavailable("Session store unavailable") from e
            if value is None:
                return None
            return value.decode() if isinstance(value, bytes) else str(value)

        entry = self._memory.get(token)
        if entry is None:
            return None
        user_id, expires_at = entry
        if expires_at <= self._clock():
            del self._memory[token]
            return None
        return user_id

    async def destroy(self, token: Optional[str]) -> None:
        """Remove a session. Destroying an unknown token is a no-op."""
        if not token:
            return
        if self._redis is not None:
            try:
                await self._redis.delete(f"{self._prefix}{token}")
            except RedisError as e:
                logger.error(f"Failed to delete session: {e}")
                raise StorageUnavailable("Session store unavailable") from e
        else:
            self._memory.pop(token, None)
        logger.debug(f"Session destroyed: {token[:8]}...")

    def purge_expired(self) -> int:
        """Drop expired in-memory sessions. Redis expires keys on its own."""
        now = self._clock()
        expired = [token for token, (_, expires_at) in self._memory.items() if expires_at <= now]
        for token in expired:
            del self._memory[token]
        return len(expired)

    # Cookie encoding

    def sign(self, token: str) -> str:
        return self._signer.sign(token).decode()

    def unsign(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            return self._signer.unsign(value).decode()
        except BadSignature:
            return None

    def set_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.settings.SESSION_COOKIE_NAME,
            value=self.sign(token),
            max_age=self.ttl_seconds,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite=self.settings.COOKIE_SAMESITE,
            domain=self.settings.COOKIE_DOMAIN,
            path="/",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(
            key=self.settings.SESSION_COOKIE_NAME,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite=self.settings.COOKIE_SAMESITE,
            domain=self.settings.COOKIE_DOMAIN,
            path="/",
        )


async def create_session(sessions: SessionManager, user_id: str, response: Response, previous: Optional[str] = None) -> str:
    """
    Start an authenticated session for any provider and set the cookie.

    Any session the request already carried is destroyed first.
    """
    if previous:
        await sessions.destroy(previous)
    token = await sessions.create(user_id)
    sessions.set_cookie(response, token)
    return token


async def destroy_session(sessions: SessionManager, token: Optional[str], response: Response) -> None:
    """Destroy the session and clear its cookie."""
    await sessions.destroy(token)
    sessions.clear_cookie(response)
