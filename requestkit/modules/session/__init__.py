"""
Session Module - Black Box Interface

Purpose: Cookie-identified sessions with idle timeout
Interface: SessionManager.with_session(), SessionManager.session_scope()
Hidden: Session storage, serialization, lazy expiry, cookie handling

Replaceable with any session backend implementing SessionStore.
"""

from .errors import SessionPersistError, SessionStoreError
from .manager import GCTrigger, SessionContext, SessionManager
from .session import Session
from .store import RedisSessionStore, SessionStore

__all__ = [
    "Session",
    "SessionStore",
    "RedisSessionStore",
    "SessionContext",
    "SessionManager",
    "GCTrigger",
    "SessionStoreError",
    "SessionPersistError",
]
