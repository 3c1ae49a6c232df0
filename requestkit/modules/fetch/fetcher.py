import logging
from datetime import UTC, datetime, timedelta
from typing import Callable, Optional, Union

import httpx

from ...config.provider import FetchConfig
from .errors import CacheStoreError, CacheWriteError, RemoteFetchError
from .store import CacheEntry, CacheStore

logger = logging.getLogger(__name__)

TTL = Union[float, int, timedelta]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CachedFetcher:
    """
    Cache-aside wrapper around HTTP GET.

    Lets callers retrieve the same URL many times over without hammering the
    remote server: a stored body younger than the TTL is returned as-is.
    """

    def __init__(
        self,
        store: CacheStore,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[FetchConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the fetcher.

        Args:
            store: Cache entry store
            client: Optional shared httpx client; a short-lived one is created per fetch otherwise
            config: Outbound fetch settings
            clock: Source of timezone-aware "now"
        """
        self.store = store
        self.client = client
        self.config = config or FetchConfig()
        self.clock = clock

    async def fetch(self, url: str, ttl: TTL, best_effort: bool = False) -> bytes:
        """
        Return the body of GET url, served from cache while younger than ttl.

        Args:
            url: Absolute URL, used verbatim as the cache key
            ttl: Maximum age of a cached body (seconds or timedelta); 0 always refetches
            best_effort: Return the fetched body even when the cache write fails

        Returns:
            Response body bytes

        Raises:
            RemoteFetchError: The GET failed; the cache is left untouched
            CacheWriteError: The body was fetched but could not be cached
        """
        ttl_seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        if ttl_seconds < 0:
            raise ValueError(f"ttl must not be negative, got {ttl_seconds}")

        entry_id = None
        try:
            found = await self.store.find(url)
        except CacheStoreError as e:
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
            found = None

        if found:
            entry_id, cached = found
            age = cached.age(self.clock())
            if ttl_seconds > 0 and age <= ttl_seconds:
                logger.debug(f"Cache hit: {url}")
                return cached.content
            logger.debug(f"Cache hit: {url}, expired. Age: {age:.1f}s")
        else:
            logger.debug(f"Cache miss: {url}")

        content = await self._get(url)

        entry = CacheEntry(url=url, content=content, stored_at=self.clock())
        try:
            if entry_id is None:
                await self.store.insert(entry)
            else:
                await self.store.update(entry_id, entry)
        except CacheStoreError as e:
            logger.error(f"Cache write failed for {url}: {e}")
            if best_effort:
                return content
            raise CacheWriteError(url, str(e), content) from e

        return content

    async def _get(self, url: str) -> bytes:
        if self.client is not None:
            return await self._send(self.client, url)

        async with httpx.AsyncClient(
            timeout=self.config.timeout,
            verify=not self.config.allow_invalid_certificates,
            follow_redirects=True,
        ) as client:
            return await self._send(client, url)

    async def _send(self, client: httpx.AsyncClient, url: str) -> bytes:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise RemoteFetchError(url, f"GET {url} failed: {e}") from e

        if not response.is_success:
            raise RemoteFetchError(
                url,
                f"GET {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content
