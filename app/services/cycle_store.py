"""PostgreSQL-backed CycleStore — the grow cycle row is the unit of mutation."""

from __future__ import annotations

import json
import uuid
from collections.abc import Sequence
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.engine.errors import CycleDocumentError, CycleNotFoundError, PersistenceError
from app.engine.stages import (
	DailyLogEntry,
	GrowCycle,
	Stage,
	StageHistoryEntry,
	stages_from_documents,
	stages_to_documents,
)
from app.models.cycles import GrowCycleRecord

logger = structlog.get_logger("growcycle.cycle_store")


def live_channel(cycle_id: uuid.UUID | str) -> str:
	return f"cycle:{cycle_id}:live"


def record_to_cycle(record: GrowCycleRecord) -> GrowCycle:
	try:
		stages = stages_from_documents(record.stages)
		pin_bindings = {str(k): int(v) for k, v in (record.pin_bindings or {}).items()}
		history = tuple(StageHistoryEntry.from_dict(item) for item in record.stage_history or ())
		daily_log = tuple(DailyLogEntry.from_dict(item) for item in record.daily_log or ())
	except (AttributeError, TypeError, ValueError) as exc:
		logger.error("cycle_document_invalid", cycle_id=str(record.id), error=str(exc))
		raise CycleDocumentError(record.id, str(exc)) from exc
	return GrowCycle(
		id=record.id,
		module_id=record.module_id,
		program_name=record.program_name,
		started_at=record.started_at,
		total_days=record.total_days,
		status=record.status,
		stages=stages,
		organization_id=record.organization_id,
		program_id=record.program_id,
		crop_type=record.crop_type,
		pin_bindings=pin_bindings,
		stage_history=history,
		daily_log=daily_log,
		version=record.version,
		paused_at=record.paused_at,
		completed_at=record.completed_at,
		harvest=record.harvest,
	)


class SqlCycleStore:
	"""Loads cycles and replaces their stage list with a single UPDATE.

	``commit_stages`` commits its own transaction so the new stage list is
	durable before any device deployment starts.
	"""

	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	async def load_cycle(self, cycle_id: uuid.UUID) -> GrowCycle:
		return record_to_cycle(await self.get_record(cycle_id))

	async def get_record(self, cycle_id: uuid.UUID) -> GrowCycleRecord:
		row = await self.db.execute(select(GrowCycleRecord).where(GrowCycleRecord.id == cycle_id))
		record = row.scalar_one_or_none()
		if record is None:
			raise CycleNotFoundError(cycle_id)
		return record

	async def commit_stages(
		self,
		cycle_id: uuid.UUID,
		stages: Sequence[Stage],
		expected_version: int | None = None,
	) -> GrowCycle:
		stmt = (
			update(GrowCycleRecord)
			.where(GrowCycleRecord.id == cycle_id)
			.values(
				stages=stages_to_documents(list(stages)),
				version=GrowCycleRecord.version + 1,
				updated_at=func.now(),
			)
			.returning(GrowCycleRecord)
			.execution_options(populate_existing=True)
		)
		if expected_version is not None:
			stmt = stmt.where(GrowCycleRecord.version == expected_version)

		try:
			row = await self.db.execute(stmt)
			record = row.scalar_one_or_none()
			if record is None:
				await self.db.rollback()
				await self._raise_missing(cycle_id, expected_version)
			await self.db.commit()
		except SQLAlchemyError as exc:
			await self.db.rollback()
			raise PersistenceError(f"stage commit failed: {exc}") from exc

		cycle = record_to_cycle(record)
		await self.notify(cycle.id, {"event_type": "stages_committed", "version": cycle.version})
		return cycle

	async def notify(self, cycle_id: uuid.UUID, event: dict[str, Any]) -> None:
		"""Best-effort change notification for live readers."""
		if self.redis_client is None:
			return
		payload = {"cycle_id": str(cycle_id), **event}
		try:
			await self.redis_client.publish(live_channel(cycle_id), json.dumps(payload))
		except RedisError as exc:
			logger.warning("cycle_notify_failed", cycle_id=str(cycle_id), error=str(exc))

	async def _raise_missing(self, cycle_id: uuid.UUID, expected_version: int | None) -> None:
		exists = await self.db.execute(select(GrowCycleRecord.id).where(GrowCycleRecord.id == cycle_id))
		if exists.scalar_one_or_none() is None:
			raise CycleNotFoundError(cycle_id)
		raise PersistenceError(
			f"grow cycle {cycle_id} changed since version {expected_version}",
			conflict=True,
		)
