"""Redis-backed DeploymentGateway — desired device schedules plus a command feed.

Each farm module (device) owns a Redis hash ``device:{device_id}:schedules``
mapping schedule id to a JSON schedule entry.  The on-device agent mirrors
that hash into its local scheduler and listens on
``device:{device_id}:commands`` for change notices.

A deploy replaces every entry the cycle owns inside one MULTI/EXEC block
guarded by WATCH on the hash, so the agent never observes a half-applied
stage and overlapping deploys of one cycle cannot interleave their entries.
Entries are derived purely from the stage content, which makes re-deploying
the same stage a no-op.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from app.engine.device_schedules import MANAGED_BY, build_device_schedules
from app.engine.errors import DeploymentError
from app.engine.stages import Stage

logger = structlog.get_logger("growcycle.device_gateway")

MAX_WATCH_ATTEMPTS = 5


def schedules_key(device_id: str) -> str:
	return f"device:{device_id}:schedules"


def commands_channel(device_id: str) -> str:
	return f"device:{device_id}:commands"


class RedisDeploymentGateway:
	def __init__(self, redis_client: Redis | None):
		self.redis_client = redis_client

	async def deploy(
		self,
		device_id: str,
		stage: Stage,
		*,
		cycle_id: str,
		pin_bindings: Mapping[str, int],
		enabled: bool = True,
	) -> None:
		entries = build_device_schedules(stage, pin_bindings, cycle_id, enabled=enabled)
		command = {
			"command": "apply_stage",
			"cycle_id": cycle_id,
			"stage": str(stage.type),
			"schedule_ids": sorted(entries),
		}
		await self._replace(device_id, cycle_id, lambda _owned: entries, command)
		logger.info(
			"device_stage_applied",
			device_id=device_id,
			cycle_id=cycle_id,
			stage=str(stage.type),
			entries=len(entries),
		)

	async def clear(self, device_id: str, cycle_id: str) -> None:
		"""Remove every schedule entry the cycle manages on the device."""
		command = {"command": "clear_cycle", "cycle_id": cycle_id}
		await self._replace(device_id, cycle_id, lambda _owned: {}, command)

	async def set_enabled(self, device_id: str, cycle_id: str, enabled: bool) -> None:
		def toggle(owned: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
			return {schedule_id: {**entry, "enabled": enabled} for schedule_id, entry in owned.items()}

		command = {"command": "enable_cycle" if enabled else "disable_cycle", "cycle_id": cycle_id}
		await self._replace(device_id, cycle_id, toggle, command)

	async def read_schedules(self, device_id: str) -> dict[str, dict[str, Any]]:
		client = self._require_client(device_id)
		try:
			raw = await client.hgetall(schedules_key(device_id))
		except RedisError as exc:
			raise DeploymentError(device_id, str(exc)) from exc
		return {_text(k): json.loads(_text(v)) for k, v in raw.items()}

	async def _replace(
		self,
		device_id: str,
		cycle_id: str,
		build: Callable[[dict[str, dict[str, Any]]], dict[str, dict[str, Any]]],
		command: dict[str, Any],
	) -> None:
		"""Rewrite the cycle's entries from a WATCHed snapshot of the hash.

		``build`` maps the entries the cycle currently owns to the entries it
		should own.  If another writer touches the hash between the read and
		EXEC, the transaction is discarded and rebuilt from a fresh snapshot.
		"""
		client = self._require_client(device_id)
		key = schedules_key(device_id)
		try:
			async with client.pipeline(transaction=True) as pipe:
				for attempt in range(1, MAX_WATCH_ATTEMPTS + 1):
					try:
						await pipe.watch(key)
						owned = _owned_entries(await pipe.hgetall(key), cycle_id)
						entries = build(owned)
						stale = [schedule_id for schedule_id in owned if schedule_id not in entries]
						pipe.multi()
						if stale:
							pipe.hdel(key, *stale)
						if entries:
							pipe.hset(
								key,
								mapping={
									schedule_id: json.dumps(entry, sort_keys=True)
									for schedule_id, entry in entries.items()
								},
							)
						pipe.publish(commands_channel(device_id), json.dumps(command))
						await pipe.execute()
						return
					except WatchError:
						logger.info(
							"device_schedules_contended",
							device_id=device_id,
							cycle_id=cycle_id,
							attempt=attempt,
						)
		except RedisError as exc:
			raise DeploymentError(device_id, str(exc)) from exc
		raise DeploymentError(device_id, "device schedules kept changing during the update")

	def _require_client(self, device_id: str) -> Redis:
		if self.redis_client is None:
			raise DeploymentError(device_id, "device channel unavailable")
		return self.redis_client


def _owned_entries(raw: Mapping[Any, Any], cycle_id: str) -> dict[str, dict[str, Any]]:
	owned: dict[str, dict[str, Any]] = {}
	for field, value in raw.items():
		try:
			entry = json.loads(_text(value))
		except json.JSONDecodeError:
			continue
		if entry.get("managed_by") == MANAGED_BY and entry.get("cycle_id") == cycle_id:
			owned[_text(field)] = entry
	return owned


def _text(value: str | bytes) -> str:
	if isinstance(value, bytes):
		return value.decode("utf-8")
	return value
