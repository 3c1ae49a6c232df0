"""
requestkit - Request-time utilities for HTTP servers

Cached outbound GETs and cookie sessions with amortized garbage collection.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- config (requestkit.config.provider): Typed settings read from the environment
- storage: Redis connection management
- fetch: TTL-bounded cache-aside layer for HTTP GET
- session: Cookie-identified sessions
- gc: Rate-limited session garbage collection
- queue: Deferred task dispatch
"""

__version__ = "1.0.0"
