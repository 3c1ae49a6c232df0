import logging
import time
from typing import Callable, Optional

from ..session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionCollector:
    """Removes expired sessions from the session store."""

    def __init__(
        self,
        store_factory: Callable[[], SessionStore],
        clock: Callable[[], float] = time.time,
    ):
        self.store_factory = store_factory
        self.clock = clock

    async def collect(self, now: Optional[float] = None) -> int:
        """
        Delete every session whose last_access + timeout is in the past.

        Returns:
            Number of sessions removed
        """
        if now is None:
            now = self.clock()
        logger.debug("Session garbage collection")
        removed = await self.store_factory().purge_expired(now)
        logger.info(f"Session garbage collection removed {removed} expired session(s)")
        return removed
