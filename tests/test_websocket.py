from __future__ import annotations

import json
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any
from uuid import uuid4

from fastapi.testclient import TestClient

from app.main import app
from app.models.enums import UserRoleEnum
from app.routes import ws
from app.services.cycle_store import live_channel


@asynccontextmanager
async def _noop_lifespan(_: Any):
    yield


def _member() -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), role=UserRoleEnum.member, organization_id="org-test")


def _patch_access(monkeypatch: Any, *, user: Any, visible: bool = True) -> None:
    async def fake_auth(_token: str) -> Any:
        return user

    async def fake_visible(_cycle_id: Any, _user: Any) -> bool:
        return visible

    monkeypatch.setattr(ws, "_authenticate_token", fake_auth)
    monkeypatch.setattr(ws, "_cycle_visible", fake_visible)


def test_websocket_live_feed_forwards_cycle_events(fake_redis: Any, monkeypatch: Any) -> None:
    cycle_id = uuid4()
    _patch_access(monkeypatch, user=_member())

    message = {
        "type": "message",
        "data": json.dumps(
            {"cycle_id": str(cycle_id), "event_type": "stages_committed", "version": 3}
        ),
    }
    fake_redis.payloads = [message]
    app.state.redis = fake_redis

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect(f"/ws/cycles/{cycle_id}/live?token=test-token") as websocket:
            payload = websocket.receive_json()
            assert payload["event_type"] == "stages_committed"
            assert payload["version"] == 3
    assert fake_redis.last_pubsub is not None
    assert fake_redis.last_pubsub.subscribed_channel == live_channel(cycle_id)
    assert fake_redis.last_pubsub.unsubscribed_channel == live_channel(cycle_id)
    assert fake_redis.last_pubsub.closed is True
    app.router.lifespan_context = original_lifespan


def test_websocket_without_redis_returns_error(monkeypatch: Any) -> None:
    _patch_access(monkeypatch, user=_member())
    app.state.redis = None

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect(f"/ws/cycles/{uuid4()}/live?token=test-token") as websocket:
            payload = websocket.receive_json()
            assert payload["error"] == "redis_unavailable"
    app.router.lifespan_context = original_lifespan


def test_websocket_invalid_cycle_id_returns_error(fake_redis: Any) -> None:
    app.state.redis = fake_redis

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect("/ws/cycles/not-a-uuid/live?token=test-token") as websocket:
            payload = websocket.receive_json()
            assert payload["error"] == "invalid_cycle_id"
    app.router.lifespan_context = original_lifespan


def test_websocket_unknown_cycle_returns_error(fake_redis: Any, monkeypatch: Any) -> None:
    _patch_access(monkeypatch, user=_member(), visible=False)
    app.state.redis = fake_redis

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect(f"/ws/cycles/{uuid4()}/live?token=test-token") as websocket:
            payload = websocket.receive_json()
            assert payload["error"] == "cycle_not_found"
    app.router.lifespan_context = original_lifespan


def test_websocket_missing_token_rejected(fake_redis: Any) -> None:
    app.state.redis = fake_redis

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect(f"/ws/cycles/{uuid4()}/live") as websocket:
            payload = websocket.receive_json()
            assert payload["error"] == "auth_required"
    app.router.lifespan_context = original_lifespan


def test_websocket_invalid_token_rejected(fake_redis: Any, monkeypatch: Any) -> None:
    _patch_access(monkeypatch, user=None)
    app.state.redis = fake_redis

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect(f"/ws/cycles/{uuid4()}/live?token=bad-token") as websocket:
            payload = websocket.receive_json()
            assert payload["error"] == "auth_invalid"
    app.router.lifespan_context = original_lifespan
