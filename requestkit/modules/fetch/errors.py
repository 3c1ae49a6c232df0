"""Errors raised by the fetch module."""

from typing import Optional


class FetchError(Exception):
    """Base class for cached fetch failures."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class RemoteFetchError(FetchError):
    """The remote GET failed (transport error, non-success status or body read error)."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(url, message)
        self.status_code = status_code


class CacheWriteError(FetchError):
    """
    The remote GET succeeded but the cache entry could not be written.

    The fetched body is kept on the exception so callers can still use it.
    """

    def __init__(self, url: str, message: str, content: bytes):
        super().__init__(url, message)
        self.content = content


class CacheStoreError(Exception):
    """The cache store could not complete a read or write."""
