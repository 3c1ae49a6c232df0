"""
Tests for SessionManager request wrapping.

These tests use FastAPI TestClient with the in-memory Redis mock so that
cookies, persistence and expiry can be observed across requests.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from requestkit.config.provider import SessionConfig
from requestkit.modules.gc import SessionCollector
from requestkit.modules.session import (
    RedisSessionStore,
    SessionContext,
    SessionManager,
    SessionPersistError,
    SessionStoreError,
)

KEY = "someValue"
VALUE = 123
TIMEOUT = 1.0


# =============================================================================
# Test App Setup
# =============================================================================


def create_test_app(context: SessionContext) -> FastAPI:
    """Create a minimal app exposing a few session-wrapped handlers."""
    app = FastAPI()
    manager = SessionManager(context)

    async def store_value(request, response, session):
        session.set_attr(KEY, VALUE)
        return {"stored": True, "new": session.is_new}

    async def read_value(request, response, session):
        return {"value": session.get_attr(KEY), "new": session.is_new}

    async def store_then_fail(request, response, session):
        session.set_attr(KEY, VALUE)
        raise RuntimeError("handler failed")

    async def own_response(request, response, session):
        return JSONResponse({"id_length": len(session.id)})

    async def logout(request, response, session):
        session.invalidate()
        return {"ended": True}

    app.add_api_route("/store", manager.with_session(store_value), methods=["GET"])
    app.add_api_route("/read", manager.with_session(read_value), methods=["GET"])
    app.add_api_route("/fail", manager.with_session(store_then_fail), methods=["GET"])
    app.add_api_route("/own", manager.with_session(own_response), methods=["GET"])
    app.add_api_route("/logout", manager.with_session(logout), methods=["POST"])
    return app


@pytest.fixture
def gc_trigger():
    trigger = MagicMock()
    trigger.maybe_trigger = MagicMock(return_value=False)
    return trigger


@pytest.fixture
def session_context(mock_redis_with_data, fake_clock, gc_trigger):
    return SessionContext(
        config=SessionConfig(timeout=TIMEOUT, dev_mode=True),
        store_factory=lambda: RedisSessionStore(mock_redis_with_data),
        gc_trigger=gc_trigger,
        clock=fake_clock.time,
    )


@pytest.fixture
def client(session_context):
    return TestClient(create_test_app(session_context))


def stored_sessions(redis):
    return {
        key: json.loads(value)
        for key, value in redis._storage.items()
        if key.startswith("session:")
    }


# =============================================================================
# Session lifecycle
# =============================================================================


def test_new_session_sets_cookie(client, mock_redis_with_data):
    response = client.get("/store")

    assert response.status_code == 200
    assert response.json() == {"stored": True, "new": True}
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("sessid=")
    assert "HttpOnly" in set_cookie

    sessions = stored_sessions(mock_redis_with_data)
    assert len(sessions) == 1
    (record,) = sessions.values()
    assert record["attributes"] == {KEY: VALUE}
    assert record["timeout"] == TIMEOUT


def test_value_is_read_back_with_same_cookie(client):
    client.get("/store")

    response = client.get("/read")

    assert response.status_code == 200
    assert response.json() == {"value": VALUE, "new": False}
    assert "set-cookie" not in response.headers


def test_request_without_cookie_gets_fresh_session(client, session_context):
    client.get("/store")

    other = TestClient(create_test_app(session_context))
    response = other.get("/read")

    assert response.json() == {"value": None, "new": True}


def test_access_refreshes_last_access(client, fake_clock, mock_redis_with_data):
    client.get("/store")
    fake_clock.advance(0.8)
    client.get("/read")
    fake_clock.advance(0.8)

    # 1.6s after creation but only 0.8s after the last access
    response = client.get("/read")

    assert response.json() == {"value": VALUE, "new": False}


def test_session_expires_after_timeout(client, fake_clock):
    client.get("/store")
    fake_clock.advance(TIMEOUT + 0.5)

    response = client.get("/read")

    assert response.json() == {"value": None, "new": True}
    assert response.headers["set-cookie"].startswith("sessid=")


@pytest.mark.asyncio
async def test_expired_session_is_kept_until_collected(
    session_context, mock_redis_with_data, fake_clock
):
    """Expired records stay in storage until collection runs, but are never served."""
    client = TestClient(create_test_app(session_context))
    client.get("/store")
    fake_clock.advance(TIMEOUT + 0.5)

    assert len(stored_sessions(mock_redis_with_data)) == 1

    collector = SessionCollector(session_context.store_factory, clock=fake_clock.time)
    removed = await collector.collect()

    assert removed == 1
    assert stored_sessions(mock_redis_with_data) == {}


def test_session_is_persisted_when_handler_raises(session_context, mock_redis_with_data):
    client = TestClient(create_test_app(session_context), raise_server_exceptions=False)

    response = client.get("/fail")

    assert response.status_code == 500
    sessions = stored_sessions(mock_redis_with_data)
    assert len(sessions) == 1
    (record,) = sessions.values()
    assert record["attributes"] == {KEY: VALUE}


def test_cookie_is_added_to_handler_response(client):
    response = client.get("/own")

    assert response.status_code == 200
    assert response.headers["set-cookie"].startswith("sessid=")


def test_invalidated_session_is_deleted(client, mock_redis_with_data):
    client.get("/store")
    assert len(stored_sessions(mock_redis_with_data)) == 1

    response = client.post("/logout")

    assert response.status_code == 200
    assert stored_sessions(mock_redis_with_data) == {}
    assert 'sessid=""' in response.headers["set-cookie"]


def test_gc_trigger_runs_after_each_request(client, gc_trigger):
    client.get("/store")
    client.get("/read")

    assert gc_trigger.maybe_trigger.call_count == 2


def test_gc_trigger_failure_does_not_fail_request(client, gc_trigger):
    gc_trigger.maybe_trigger.side_effect = RuntimeError("no loop")

    response = client.get("/store")

    assert response.status_code == 200


# =============================================================================
# Security policy and wiring errors
# =============================================================================


@pytest.fixture
def secure_context(mock_redis_with_data, fake_clock, gc_trigger):
    return SessionContext(
        config=SessionConfig(timeout=TIMEOUT, dev_mode=False),
        store_factory=lambda: RedisSessionStore(mock_redis_with_data),
        gc_trigger=gc_trigger,
        clock=fake_clock.time,
    )


def test_plain_http_rejected_outside_dev_mode(secure_context, mock_redis_with_data, gc_trigger):
    client = TestClient(create_test_app(secure_context))

    response = client.get("/store")

    assert response.status_code == 403
    assert response.json() == {"detail": "https is required."}
    assert stored_sessions(mock_redis_with_data) == {}
    gc_trigger.maybe_trigger.assert_not_called()


def test_https_accepted_outside_dev_mode(secure_context):
    client = TestClient(create_test_app(secure_context), base_url="https://testserver")

    response = client.get("/store")
    assert response.status_code == 200
    assert "Secure" in response.headers["set-cookie"]

    response = client.get("/read")
    assert response.json() == {"value": VALUE, "new": False}


def test_missing_store_factory_fails_fast(fake_clock):
    context = SessionContext(
        config=SessionConfig(timeout=TIMEOUT, dev_mode=True),
        store_factory=None,
        clock=fake_clock.time,
    )
    client = TestClient(create_test_app(context))

    response = client.get("/store")

    assert response.status_code == 500


def test_persist_failure_is_raised(fake_clock):
    store = AsyncMock()
    store.get = AsyncMock(return_value=None)
    store.save = AsyncMock(side_effect=SessionStoreError("redis down"))
    context = SessionContext(
        config=SessionConfig(timeout=TIMEOUT, dev_mode=True),
        store_factory=lambda: store,
        clock=fake_clock.time,
    )
    client = TestClient(create_test_app(context))

    with pytest.raises(SessionPersistError):
        client.get("/store")

    store.save.assert_awaited_once()
