"""
GC Module - Black Box Interface

Purpose: Amortized removal of expired sessions
Interface: GCScheduler.maybe_trigger(), SessionCollector.collect(), create_gc_router()
Hidden: Rate limiting, background dispatch, endpoint trust checks

The dispatch callable decides how collection reaches the endpoint (task queue by default).
"""

from .collector import SessionCollector
from .routes import CollectionResult, create_gc_router, is_trusted_gc_caller
from .scheduler import GCScheduler

__all__ = [
    "GCScheduler",
    "SessionCollector",
    "CollectionResult",
    "create_gc_router",
    "is_trusted_gc_caller",
]
