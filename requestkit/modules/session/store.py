import json
import logging
from typing import Optional, Protocol

import redis.asyncio as redis

from .errors import SessionStoreError
from .session import Session

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Persistent session storage keyed by session id."""

    async def get(self, session_id: str, now: float) -> Optional[Session]:
        """Return the session if it exists and has not expired at `now`."""
        ...

    async def save(self, session: Session) -> None:
        ...

    async def delete(self, session_id: str) -> None:
        ...

    async def purge_expired(self, now: float) -> int:
        """Remove every session expired at `now`; return how many were removed."""
        ...


class RedisSessionStore:
    def __init__(self, redis_client, prefix: str = "session"):
        """
        Initialize Redis session store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            prefix: Key namespace for session records

        Sessions are stored without a Redis TTL; expired records stay until a
        read finds them expired or purge_expired() runs.
        """
        self.redis = redis_client
        self.prefix = prefix
        self.index_key = f"{prefix}s:index"

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}:{session_id}"

    async def get(self, session_id: str, now: float) -> Optional[Session]:
        try:
            data = await self.redis.get(self._key(session_id))
        except redis.RedisError as e:
            raise SessionStoreError(f"Failed to load session: {e}") from e

        if not data:
            return None

        try:
            session = Session.from_json(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable session record: {e}")
            return None

        if session.is_expired(now):
            # Lazy expiry: hide it now, delete it on the way out
            try:
                await self.delete(session_id)
            except SessionStoreError as e:
                logger.warning(f"Failed to delete expired session: {e}")
            return None

        return session

    async def save(self, session: Session) -> None:
        try:
            await self.redis.set(self._key(session.id), session.to_json())
            await self.redis.sadd(self.index_key, session.id)
        except redis.RedisError as e:
            raise SessionStoreError(f"Failed to save session: {e}") from e

    async def delete(self, session_id: str) -> None:
        try:
            await self.redis.delete(self._key(session_id))
            await self.redis.srem(self.index_key, session_id)
        except redis.RedisError as e:
            raise SessionStoreError(f"Failed to delete session: {e}") from e

    async def purge_expired(self, now: float) -> int:
        """
        Remove expired sessions.

        Logic:
        1. Walk the session index
        2. Drop index members whose record is already gone
        3. Delete records whose last_access + timeout < now

        Safe to run concurrently with itself: deleting a missing key is a no-op.
        """
        try:
            session_ids = await self.redis.smembers(self.index_key)
        except redis.RedisError as e:
            raise SessionStoreError(f"Failed to list sessions: {e}") from e

        removed = 0
        for session_id in session_ids:
            key = self._key(session_id)
            try:
                data = await self.redis.get(key)
                if not data:
                    await self.redis.srem(self.index_key, session_id)
                    continue

                try:
                    expires_at = self._expires_at(data)
                except (ValueError, KeyError, TypeError):
                    logger.warning(f"Removing unreadable session record {session_id}")
                    expires_at = None

                if expires_at is None or expires_at < now:
                    await self.redis.delete(key)
                    await self.redis.srem(self.index_key, session_id)
                    removed += 1
            except redis.RedisError as e:
                raise SessionStoreError(f"Failed to purge session: {e}") from e

        return removed

    @staticmethod
    def _expires_at(data: str) -> float:
        record = json.loads(data)
        return float(record["last_access"]) + float(record["timeout"])
