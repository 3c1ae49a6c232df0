"""
Fetch Module - Black Box Interface

Purpose: Cache outbound HTTP GET responses for a caller-supplied TTL
Interface: CachedFetcher.fetch(url, ttl)
Hidden: Entry identity, serialization, HTTP client lifecycle

Replaceable with any cache backend implementing CacheStore.
"""

from .errors import CacheStoreError, CacheWriteError, FetchError, RemoteFetchError
from .fetcher import CachedFetcher
from .store import CacheEntry, CacheStore, RedisCacheStore

__all__ = [
    "CachedFetcher",
    "CacheEntry",
    "CacheStore",
    "RedisCacheStore",
    "FetchError",
    "RemoteFetchError",
    "CacheWriteError",
    "CacheStoreError",
]
