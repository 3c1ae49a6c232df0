import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

from fastapi import HTTPException, Request, Response

from ...config.provider import SessionConfig
from .errors import SessionPersistError, SessionStoreError
from .session import Session
from .store import SessionStore

logger = logging.getLogger(__name__)

HandlerWithSession = Callable[[Request, Response, Session], Awaitable[Any]]
Handler = Callable[[Request, Response], Awaitable[Any]]


class GCTrigger(Protocol):
    """Post-request hook deciding whether to dispatch session collection."""

    def maybe_trigger(self, now: Optional[float] = None) -> bool:
        ...


@dataclass
class SessionContext:
    """
    Wiring for SessionManager.

    Attributes:
        config: Session settings (timeout, cookie name, development mode)
        store_factory: Builds the SessionStore used for one request; None is a deployment error
        gc_trigger: Optional post-request garbage collection hook
        clock: Epoch-seconds time source
    """

    config: SessionConfig
    store_factory: Optional[Callable[[], SessionStore]] = None
    gc_trigger: Optional[GCTrigger] = None
    clock: Callable[[], float] = time.time


class SessionManager:
    """
    Resolves cookie sessions for request handlers.

    Every session handed to a handler is persisted when the handler finishes,
    whether it returned or raised.
    """

    def __init__(self, context: SessionContext):
        self.context = context
        self.config = context.config

    @asynccontextmanager
    async def session_scope(self, request: Request, response: Response) -> AsyncIterator[Session]:
        """
        Acquire the request's session and release it on exit.

        Logic:
        1. Refuse to run without a store factory (500)
        2. Refuse plain http unless in development mode (403)
        3. Resolve the cookie session, or create one and set its cookie
        4. Yield to the caller
        5. Persist the session (or delete it if invalidated)
        6. Run the garbage collection trigger
        """
        if self.context.store_factory is None:
            logger.error("Session store factory is unset; can't create sessions.")
            raise HTTPException(status_code=500, detail="Internal Server Error")

        if self.config.require_https and request.url.scheme != "https":
            logger.error("Can't use session cookies over http.")
            raise HTTPException(status_code=403, detail="https is required.")

        store = self.context.store_factory()
        session = await self._resolve(store, request)
        if session is None:
            session = Session.new(timeout=self.config.timeout, now=self.context.clock())
            self._set_cookie(response, session)
            logger.debug(f"Created session {session.id[:8]}...")

        try:
            yield session
        finally:
            try:
                await self._release(store, session, response)
            finally:
                self._after_request()

    def with_session(self, handler: HandlerWithSession) -> Handler:
        """
        Adapt a handler taking (request, response, session) into a FastAPI endpoint
        taking (request, response).
        """

        async def wrapped(request: Request, response: Response) -> Any:
            async with self.session_scope(request, response) as session:
                result = await handler(request, response, session)

            if isinstance(result, Response) and result is not response:
                # FastAPI ignores the injected response when the endpoint returns its own
                for cookie in response.headers.getlist("set-cookie"):
                    result.headers.append("set-cookie", cookie)
            return result

        # Not functools.wraps: FastAPI would read the inner signature and expect a session param
        wrapped.__name__ = handler.__name__
        wrapped.__doc__ = handler.__doc__
        return wrapped

    async def _resolve(self, store: SessionStore, request: Request) -> Optional[Session]:
        session_id = request.cookies.get(self.config.cookie_name)
        if not session_id:
            return None
        return await store.get(session_id, self.context.clock())

    async def _release(self, store: SessionStore, session: Session, response: Response) -> None:
        try:
            if session.invalidated:
                await store.delete(session.id)
                response.delete_cookie(self.config.cookie_name, path="/")
                return

            session.last_access = self.context.clock()
            await store.save(session)
        except SessionStoreError as e:
            logger.error(f"Failed to persist session {session.id[:8]}...: {e}")
            raise SessionPersistError(session.id, str(e)) from e

    def _set_cookie(self, response: Response, session: Session) -> None:
        response.set_cookie(
            key=self.config.cookie_name,
            value=session.id,
            path="/",
            httponly=True,
            secure=self.config.require_https,
            samesite="lax",
        )

    def _after_request(self) -> None:
        if self.context.gc_trigger is None:
            return
        try:
            self.context.gc_trigger.maybe_trigger()
        except Exception as e:
            logger.error(f"Session garbage collection trigger failed: {e}")
