#!/usr/bin/env python3
"""
requestkit - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules and wires them together
3. Runs the API server and its background workers

All business logic is in the modules, following black box principles.
"""

import logging
import logging.config as log_config
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from requestkit.config.provider import ConfigProvider, EnvConfigProvider
from requestkit.logging_config import get_logging_config

# Import modules through their black box interfaces
from requestkit.modules.fetch import CachedFetcher, RedisCacheStore
from requestkit.modules.gc import GCScheduler, SessionCollector, create_gc_router
from requestkit.modules.queue import TaskQueue, TaskWorker
from requestkit.modules.session import (
    RedisSessionStore,
    SessionContext,
    SessionManager,
    SessionPersistError,
    SessionStoreError,
)
from requestkit.modules.storage import StorageModule

# Configuration provider (centralized config access)
config_provider: ConfigProvider = EnvConfigProvider()
api_config = config_provider.get_api_config()
gc_config = config_provider.get_gc_config()
storage_config = config_provider.get_storage_config()

log_config.dictConfig(get_logging_config(api_config.log_level))
logger = logging.getLogger(__name__)

storage = StorageModule(storage_config.url, password=storage_config.password)

TASK_BASE_URL = "http://requestkit.internal"


def wire_modules(app: FastAPI, redis_client) -> None:
    """
    Build the module graph on top of a Redis client and publish it on app.state.

    Each component receives its collaborators explicitly; nothing is looked up
    through module globals.
    """
    session_config = config_provider.get_session_config()
    fetch_config = config_provider.get_fetch_config()

    task_queue = TaskQueue(redis_client)

    def session_store_factory() -> RedisSessionStore:
        return RedisSessionStore(redis_client)

    async def dispatch_gc() -> str:
        return await task_queue.push_task(gc_config.path, queue_name=gc_config.queue_name)

    gc_scheduler = GCScheduler(gc_config, dispatch=dispatch_gc)

    app.state.redis_client = redis_client
    app.state.task_queue = task_queue
    app.state.gc_scheduler = gc_scheduler
    app.state.session_manager = SessionManager(
        SessionContext(
            config=session_config,
            store_factory=session_store_factory,
            gc_trigger=gc_scheduler,
        )
    )
    app.state.session_collector = SessionCollector(session_store_factory)
    app.state.fetcher = CachedFetcher(
        RedisCacheStore(redis_client),
        client=httpx.AsyncClient(
            timeout=fetch_config.timeout,
            verify=not fetch_config.allow_invalid_certificates,
            follow_redirects=True,
        ),
        config=fetch_config,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    logger.info("Starting requestkit API...")

    redis_client = await storage.connect()
    wire_modules(app, redis_client)

    worker: Optional[TaskWorker] = None
    if api_config.task_worker_enabled:
        # Tasks are delivered in-process, straight into the ASGI app
        worker = TaskWorker(
            app.state.task_queue,
            httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=TASK_BASE_URL),
            token=gc_config.task_token,
            queue_name=gc_config.queue_name,
        )
        worker.start()

    if gc_config.ticker_enabled:
        app.state.gc_scheduler.start()

    logger.info("requestkit API started successfully")

    yield

    logger.info("Shutting down requestkit API...")

    await app.state.gc_scheduler.stop()
    if worker:
        await worker.stop()
        await worker.client.aclose()
    await app.state.fetcher.client.aclose()
    await storage.disconnect()
    logger.info("requestkit API shutdown complete")


app = FastAPI(
    title="requestkit API",
    description="Cached outbound fetches and cookie sessions",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(create_gc_router(gc_config))


def _session_manager(request: Request) -> SessionManager:
    session_manager = getattr(request.app.state, "session_manager", None)
    if session_manager is None:
        raise HTTPException(503, "Service not initialized")
    return session_manager


@app.get("/session")
async def get_session(request: Request, response: Response):
    """
    Describe the caller's session, creating one if needed.

    Returns:
        Attribute names and expiry of the current session
    """
    async with _session_manager(request).session_scope(request, response) as session:
        return {
            "new": session.is_new,
            "attributes": session.attr_names(),
            "created_at": session.created_at,
            "expires_at": session.expires_at(),
        }


@app.delete("/session", status_code=204)
async def end_session(request: Request, response: Response):
    """End the caller's session and clear its cookie."""
    async with _session_manager(request).session_scope(request, response) as session:
        session.invalidate()
    return None


@app.get("/healthz")
async def healthz():
    """
    Minimal health check endpoint for readiness/liveness probes.

    Returns:
        200: Service is running
    """
    return {"status": "ok"}


@app.get("/health")
async def health_check(request: Request):
    """
    Health check with storage and wiring status.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    redis_status = "connected" if await storage.ping() else "disconnected"
    modules_ready = all(
        getattr(request.app.state, name, None) is not None
        for name in ("session_manager", "session_collector", "fetcher", "gc_scheduler")
    )
    tls_status = "enabled" if request.url.scheme == "https" else "disabled"

    body = {
        "redis": redis_status,
        "modules": "initialized" if modules_ready else "not initialized",
        "tls": tls_status,
        "version": "1.0.0",
    }
    if redis_status == "connected" and modules_ready:
        return {"status": "healthy", **body}
    return JSONResponse(status_code=503, content={"status": "unhealthy", **body})


# Error handlers


@app.exception_handler(SessionPersistError)
async def session_persist_error_handler(request, exc):
    """Handle session save failures at the end of a request."""
    logger.error(f"Session persistence failed: {exc}")
    return JSONResponse(status_code=500, content={"error": "Failed to persist session"})


@app.exception_handler(SessionStoreError)
async def session_store_error_handler(request, exc):
    """Handle session store read failures."""
    logger.error(f"Session store error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Session store unavailable"})


@app.exception_handler(redis.ConnectionError)
async def redis_error_handler(request, exc):
    """Handle Redis connection errors."""
    logger.error(f"Redis connection error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database connection failed"})


if __name__ == "__main__":
    uvicorn.run(
        "requestkit.main:app",
        host=api_config.host,
        port=api_config.port,
        log_level=api_config.log_level.lower(),
        reload=api_config.debug,
        log_config=get_logging_config(api_config.log_level),
    )
