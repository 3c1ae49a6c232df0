"""
Session garbage collection endpoint.

The endpoint is privileged: it only runs for requests delivered through the
task queue, for configured admin API keys, or in development mode.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ...config.provider import GCConfig
from ..queue import TASK_QUEUE_TOKEN_HEADER
from ..session.errors import SessionStoreError

logger = logging.getLogger(__name__)


class CollectionResult(BaseModel):
    """Outcome of a garbage collection run."""

    status: str = Field("ok", description="Run status")
    removed: int = Field(..., description="Number of expired sessions removed", ge=0)


def _matches(candidate: Optional[str], secret: str) -> bool:
    if not candidate or not secret:
        return False
    return hmac.compare_digest(candidate.encode(), secret.encode())


def is_trusted_gc_caller(request: Request, config: GCConfig) -> bool:
    """Check whether the request may run garbage collection."""
    if config.dev_mode:
        return True

    if _matches(request.headers.get(TASK_QUEUE_TOKEN_HEADER), config.task_token):
        return True

    api_key = request.headers.get("X-API-Key")
    return any(_matches(api_key, key) for key in config.admin_api_keys)


def create_gc_router(config: GCConfig) -> APIRouter:
    """
    Create the session garbage collection router.

    Args:
        config: GC configuration (endpoint path, trust settings)

    Returns:
        FastAPI router; the collector is read from app.state.session_collector
    """
    router = APIRouter(tags=["sessions"])

    @router.post(config.path, response_model=CollectionResult)
    async def collect_sessions(request: Request) -> CollectionResult:
        if not is_trusted_gc_caller(request, config):
            logger.warning(f"Rejected untrusted garbage collection call to {request.url.path}")
            raise HTTPException(status_code=403, detail="403 forbidden")

        collector = getattr(request.app.state, "session_collector", None)
        if collector is None:
            logger.error("Session collector is not set.")
            raise HTTPException(status_code=503, detail="Service not initialized")

        try:
            removed = await collector.collect()
        except SessionStoreError as e:
            logger.error(f"Session garbage collection failed: {e}")
            raise HTTPException(status_code=500, detail="Session garbage collection failed")

        return CollectionResult(removed=removed)

    return router
