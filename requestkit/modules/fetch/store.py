import base64
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional, Protocol, Tuple

import redis.asyncio as redis

from .errors import CacheStoreError

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached GET response body."""

    url: str
    content: bytes
    stored_at: datetime

    def age(self, now: datetime) -> float:
        """Seconds elapsed since the entry was written."""
        return (now - self.stored_at).total_seconds()

    def to_json(self) -> str:
        return json.dumps(
            {
                "url": self.url,
                "content": base64.b64encode(self.content).decode("ascii"),
                "time": self.stored_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, data: str) -> "CacheEntry":
        record = json.loads(data)
        stored_at = datetime.fromisoformat(record["time"])
        if stored_at.tzinfo is None:
            stored_at = stored_at.replace(tzinfo=UTC)
        return cls(
            url=record["url"],
            content=base64.b64decode(record["content"]),
            stored_at=stored_at,
        )


class CacheStore(Protocol):
    """
    Key-value store for cache entries.

    Entries are found by exact URL match and overwritten through the
    identity returned by find().
    """

    async def find(self, url: str) -> Optional[Tuple[str, CacheEntry]]:
        """Return (entry_id, entry) for the URL, or None."""
        ...

    async def insert(self, entry: CacheEntry) -> str:
        """Store a new entry and return its identity."""
        ...

    async def update(self, entry_id: str, entry: CacheEntry) -> None:
        """Overwrite the entry with the given identity."""
        ...


class RedisCacheStore:
    def __init__(self, redis_client, prefix: str = "webcache"):
        """
        Initialize Redis cache store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            prefix: Key namespace for cache entries
        """
        self.redis = redis_client
        self.prefix = prefix

    def _index_key(self, url: str) -> str:
        return f"{self.prefix}:url:{url}"

    def _entry_key(self, entry_id: str) -> str:
        return f"{self.prefix}:entry:{entry_id}"

    async def find(self, url: str) -> Optional[Tuple[str, CacheEntry]]:
        """
        Look up the entry for a URL.

        Logic:
        1. Resolve the URL index to an entry id
        2. Load the entry record
        3. Drop unreadable records so the next insert does not orphan them
        4. Ignore records whose URL does not match, dropping them unless
           their own URL still indexes them
        """
        try:
            entry_id = await self.redis.get(self._index_key(url))
            if not entry_id:
                return None

            data = await self.redis.get(self._entry_key(entry_id))
            if not data:
                return None

            try:
                entry = CacheEntry.from_json(data)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding unreadable cache entry {entry_id}: {e}")
                await self.redis.delete(self._entry_key(entry_id))
                return None

            if entry.url != url:
                owner_id = await self.redis.get(self._index_key(entry.url))
                if owner_id != entry_id:
                    logger.warning(f"Discarding unindexed cache entry {entry_id} for {entry.url}")
                    await self.redis.delete(self._entry_key(entry_id))
                return None
        except redis.RedisError as e:
            raise CacheStoreError(f"Cache lookup failed for {url}: {e}") from e

        return entry_id, entry

    async def insert(self, entry: CacheEntry) -> str:
        entry_id = str(uuid.uuid4())
        try:
            await self.redis.set(self._entry_key(entry_id), entry.to_json())
            await self.redis.set(self._index_key(entry.url), entry_id)
        except redis.RedisError as e:
            raise CacheStoreError(f"Cache insert failed for {entry.url}: {e}") from e
        return entry_id

    async def update(self, entry_id: str, entry: CacheEntry) -> None:
        try:
            await self.redis.set(self._entry_key(entry_id), entry.to_json())
        except redis.RedisError as e:
            raise CacheStoreError(f"Cache update failed for {entry.url}: {e}") from e
