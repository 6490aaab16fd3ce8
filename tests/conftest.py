"""Shared pytest fixtures — async test client, fake DB session, fake Redis with pipelines."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import WatchError

from app.auth.dependencies import get_current_user
from app.auth.jwt import create_access_token
from app.database import get_db
from app.engine.stages import Lighting, Stage
from app.main import app
from app.models.enums import ScheduleTargetEnum, StageTypeEnum, UserRoleEnum
from tests.factories import TEST_ORG, make_schedule, make_stage


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock()
		self.flush = AsyncMock()
		self.refresh = AsyncMock()
		self.add = MagicMock()


class FakePubSub:
	def __init__(self, payloads: list[dict[str, Any]]) -> None:
		self.payloads = payloads
		self.index = 0
		self.subscribed_channel: str | None = None
		self.unsubscribed_channel: str | None = None
		self.closed = False

	async def subscribe(self, _channel: str) -> None:
		self.subscribed_channel = _channel
		return None

	async def get_message(self, ignore_subscribe_messages: bool, timeout: float) -> dict[str, Any] | None:
		if self.index >= len(self.payloads):
			return None
		message = self.payloads[self.index]
		self.index += 1
		return message

	async def unsubscribe(self, _channel: str) -> None:
		self.unsubscribed_channel = _channel
		return None

	async def close(self) -> None:
		self.closed = True
		return None


class FakePipeline:
	"""WATCH/MULTI/EXEC pipeline over FakeRedis.

	Before ``multi()`` reads run immediately; afterwards commands are queued
	and applied together by ``execute()``, which raises ``WatchError`` when a
	watched hash was written since ``watch()``.
	"""

	def __init__(self, redis: FakeRedis) -> None:
		self.redis = redis
		self.commands: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
		self.watched: dict[str, int] = {}

	async def __aenter__(self) -> FakePipeline:
		return self

	async def __aexit__(self, *_exc: object) -> None:
		self.reset()

	def reset(self) -> None:
		self.commands = []
		self.watched = {}

	async def watch(self, *keys: str) -> None:
		for key in keys:
			self.watched[key] = self.redis.versions.get(key, 0)

	async def hgetall(self, key: str) -> dict[str, str]:
		return await self.redis.hgetall(key)

	def multi(self) -> None:
		self.commands = []

	def hdel(self, key: str, *fields: str) -> FakePipeline:
		self.commands.append(("hdel", (key, *fields), {}))
		return self

	def hset(self, key: str, mapping: dict[str, str]) -> FakePipeline:
		self.commands.append(("hset", (key,), {"mapping": mapping}))
		return self

	def publish(self, channel: str, message: str) -> FakePipeline:
		self.commands.append(("publish", (channel, message), {}))
		return self

	async def execute(self) -> list[Any]:
		try:
			if self.redis.fail_execute is not None:
				raise self.redis.fail_execute
			for key, version in self.watched.items():
				if self.redis.versions.get(key, 0) != version:
					self.redis.watch_conflicts += 1
					raise WatchError(f"Watched variable changed: {key}")
			results: list[Any] = []
			for name, args, kwargs in self.commands:
				if name == "hdel":
					bucket = self.redis.hashes.setdefault(args[0], {})
					results.append(sum(1 for field in args[1:] if bucket.pop(field, None) is not None))
					self.redis.bump(args[0])
				elif name == "hset":
					self.redis.hashes.setdefault(args[0], {}).update(kwargs["mapping"])
					results.append(len(kwargs["mapping"]))
					self.redis.bump(args[0])
				else:
					await self.redis.publish(*args)
					results.append(1)
			self.redis.executed += 1
			return results
		finally:
			self.reset()


class FakeRedis:
	def __init__(self, payloads: list[dict[str, Any]] | None = None) -> None:
		self.payloads = payloads or []
		self.publish = AsyncMock()
		self.hashes: dict[str, dict[str, str]] = {}
		self.versions: dict[str, int] = {}
		self.executed = 0
		self.watch_conflicts = 0
		self.fail_execute: Exception | None = None
		self.before_read: Callable[[], Awaitable[None]] | None = None
		self.last_pubsub: FakePubSub | None = None

	def bump(self, key: str) -> None:
		self.versions[key] = self.versions.get(key, 0) + 1

	async def hgetall(self, key: str) -> dict[str, str]:
		if self.before_read is not None:
			await self.before_read()
		return dict(self.hashes.get(key, {}))

	def pipeline(self, transaction: bool = True) -> FakePipeline:
		return FakePipeline(self)

	def pubsub(self) -> FakePubSub:
		self.last_pubsub = FakePubSub(self.payloads)
		return self.last_pubsub


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides in API tests."""
	return FakeAsyncSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Reusable fake Redis client with hash, pipeline and pubsub behavior."""
	return FakeRedis()


@pytest.fixture
def t0() -> datetime:
	return datetime(2025, 3, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def three_stages() -> tuple[Stage, ...]:
	"""seeding 1–2, growth 3–9, harvest 10–10."""
	return (
		make_stage(StageTypeEnum.seeding, 1, 2),
		make_stage(
			StageTypeEnum.growth,
			3,
			9,
			schedules=(make_schedule(ScheduleTargetEnum.pump, 30, 3600),),
			lighting=Lighting(enabled=True, on_hour=6, off_hour=22),
		),
		make_stage(StageTypeEnum.harvest, 10, 10),
	)


@pytest.fixture
def current_user_stub() -> dict[str, Any]:
	return {
		"id": uuid.uuid4(),
		"role": UserRoleEnum.admin,
		"is_active": True,
		"email": "admin@test.local",
		"organization_id": TEST_ORG,
	}


@pytest.fixture
async def client(
	fake_db_session: FakeAsyncSession,
	current_user_stub: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and DB/user dependencies mocked."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	async def override_current_user() -> Any:
		return type("UserStub", (), current_user_stub)()

	app.dependency_overrides[get_db] = override_get_db
	app.dependency_overrides[get_current_user] = override_current_user
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
async def auth_client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with DB override only (real auth dependencies active)."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
def auth_user_id() -> uuid.UUID:
	return uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def access_token(auth_user_id: uuid.UUID) -> str:
	return create_access_token(str(auth_user_id), expires_minutes=30, organization_id=TEST_ORG)


@pytest.fixture
def ws_token(access_token: str) -> str:
	return access_token


@pytest.fixture
def now_utc() -> datetime:
	return datetime.now(UTC)
