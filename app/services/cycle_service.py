"""Grow cycle service — dashboard read model, stage edits and cycle lifecycle.

There is no background scheduler.  Every read recomputes the current day and
active stage from ``now``; stage transitions are applied when a caller asks
for an evaluation (the dashboard does so whenever it opens a cycle).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.engine.clock import current_day, days_remaining, has_started
from app.engine.editor import StageEditor, StageEditResult
from app.engine.errors import DeploymentError
from app.engine.formatting import (
	STAGE_META,
	describe_environment,
	describe_lighting,
	describe_schedule,
)
from app.engine.resolver import active_stage, next_stage, progress_percent, stage_status
from app.engine.stages import (
	DailyLogEntry,
	GrowCycle,
	Stage,
	StageHistoryEntry,
	stages_to_documents,
)
from app.engine.validation import validate_stage_list
from app.models.cycles import GrowCycleRecord
from app.models.enums import CycleStatusEnum, DeploymentStatusEnum
from app.schemas.cycles import CycleOverviewRead, CycleStart, HarvestIn, StageSummary
from app.services.cycle_store import SqlCycleStore, record_to_cycle
from app.services.device_gateway import RedisDeploymentGateway
from app.services.program_service import ProgramService

logger = structlog.get_logger("growcycle.cycles")

_TERMINAL = {CycleStatusEnum.completed, CycleStatusEnum.aborted}

_ALLOWED_FROM: dict[str, set[CycleStatusEnum]] = {
	"pause": {CycleStatusEnum.active},
	"resume": {CycleStatusEnum.paused},
	"complete": {CycleStatusEnum.active, CycleStatusEnum.paused},
	"abort": {CycleStatusEnum.active, CycleStatusEnum.paused},
}


@dataclass(slots=True)
class CycleTransition:
	cycle: GrowCycle
	day: int
	stage: Stage | None
	transitioned: bool
	deployment: DeploymentStatusEnum = DeploymentStatusEnum.skipped
	deployment_error: DeploymentError | None = None


class CycleService:
	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client
		self.settings = get_settings()
		self.store = SqlCycleStore(db, redis_client)
		self.gateway = RedisDeploymentGateway(redis_client)

	def editor(self) -> StageEditor:
		return StageEditor(
			self.store,
			self.gateway,
			commit_timeout=self.settings.cycle_commit_timeout_seconds,
			deploy_timeout=self.settings.device_deploy_timeout_seconds,
			optimistic_locking=self.settings.cycle_optimistic_locking,
		)

	# ── Reads ───────────────────────────────────────────────────────────────

	async def get_cycle(self, cycle_id: uuid.UUID) -> GrowCycle:
		return await self.store.load_cycle(cycle_id)

	async def list_module_cycles(self, module_id: str) -> list[GrowCycle]:
		stmt = (
			select(GrowCycleRecord)
			.where(GrowCycleRecord.module_id == module_id)
			.order_by(GrowCycleRecord.created_at.desc())
		)
		rows = await self.db.execute(stmt)
		return [record_to_cycle(record) for record in rows.scalars().all()]

	async def get_active_cycle(self, module_id: str) -> GrowCycle | None:
		stmt = select(GrowCycleRecord).where(
			GrowCycleRecord.module_id == module_id,
			GrowCycleRecord.status == CycleStatusEnum.active,
		)
		rows = await self.db.execute(stmt)
		record = rows.scalars().first()
		return None if record is None else record_to_cycle(record)

	async def get_overview(self, cycle_id: uuid.UUID, now: datetime) -> CycleOverviewRead:
		cycle = await self.store.load_cycle(cycle_id)
		return self.build_overview(cycle, now)

	def build_overview(self, cycle: GrowCycle, now: datetime) -> CycleOverviewRead:
		day = current_day(cycle.started_at, now)
		current = active_stage(cycle.stages, day)
		upcoming = next_stage(cycle.stages, day)
		return CycleOverviewRead(
			cycle_id=cycle.id,
			program_name=cycle.program_name,
			status=cycle.status,
			evaluated_at=now,
			has_started=has_started(cycle.started_at, now),
			current_day=day,
			total_days=cycle.total_days,
			days_remaining=days_remaining(cycle.started_at, now, cycle.total_days),
			progress_percent=progress_percent(day, cycle.total_days),
			active_stage=None if current is None else self.summarize_stage(current, day),
			next_stage=None if upcoming is None else self.summarize_stage(upcoming, day),
			timeline=[self.summarize_stage(stage, day) for stage in cycle.stages],
		)

	def summarize_stage(self, stage: Stage, day: int) -> StageSummary:
		meta = STAGE_META[stage.type]
		return StageSummary(
			type=stage.type,
			name=stage.name,
			label=meta.label,
			icon=meta.icon,
			color=meta.color,
			day_start=stage.day_start,
			day_end=stage.day_end,
			status=stage_status(stage, day).value,
			schedules=[
				describe_schedule(
					schedule,
					self.settings.schedule_default_start,
					self.settings.schedule_default_end,
				)
				for schedule in stage.schedules
			],
			lighting=describe_lighting(stage.lighting),
			environment=describe_environment(stage.environment),
			checklist=list(stage.checklist),
		)

	# ── Stage edits ─────────────────────────────────────────────────────────

	async def submit_stage_edit(
		self,
		cycle_id: uuid.UUID,
		stage: Stage,
		now: datetime,
	) -> StageEditResult:
		cycle = await self.store.load_cycle(cycle_id)
		if cycle.status in _TERMINAL:
			raise ValueError(f"cycle is {cycle.status}; stages can no longer be edited")
		return await self.editor().submit(cycle, stage, now)

	async def redeploy_active_stage(self, cycle_id: uuid.UUID, now: datetime) -> CycleTransition:
		"""Push the active stage to the device again, e.g. after a failed sync."""
		cycle = await self.store.load_cycle(cycle_id)
		if cycle.status in _TERMINAL:
			raise ValueError(f"cycle is {cycle.status}; nothing to deploy")
		day = current_day(cycle.started_at, now)
		stage = active_stage(cycle.stages, day)
		transition = CycleTransition(cycle=cycle, day=day, stage=stage, transitioned=False)
		if stage is None:
			return transition
		await self._deploy_into(transition, cycle, stage)
		return transition

	# ── Lifecycle ───────────────────────────────────────────────────────────

	async def start_cycle(
		self,
		payload: CycleStart,
		organization_id: str | None,
		now: datetime,
	) -> CycleTransition:
		if await self.get_active_cycle(payload.module_id) is not None:
			raise ValueError("Module already has an active grow cycle. Complete or abort it first.")

		program = await ProgramService(self.db).get_program(payload.program_id, organization_id)
		stages = tuple(stage.to_domain() for stage in program.stages)
		validate_stage_list(stages)

		started_at = payload.started_at or now
		day = current_day(started_at, now)
		first = active_stage(stages, day) or stages[0]

		record = GrowCycleRecord(
			module_id=payload.module_id,
			organization_id=organization_id,
			program_id=program.id,
			program_name=program.name,
			crop_type=program.crop_type,
			total_days=program.total_days,
			status=CycleStatusEnum.active,
			started_at=started_at,
			stages=stages_to_documents(stages),
			pin_bindings=dict(payload.pin_bindings),
			stage_history=[
				StageHistoryEntry(stage=first.type, stage_name=first.name, started_at=now).to_dict()
			],
			daily_log=[DailyLogEntry(day=day, date=now.date(), stage=first.type).to_dict()],
			version=1,
		)
		self.db.add(record)
		await self.db.flush()
		await self.db.refresh(record)
		await self.db.commit()

		cycle = record_to_cycle(record)
		logger.info("cycle_started", cycle_id=str(cycle.id), module_id=cycle.module_id, stage=str(first.type))
		transition = CycleTransition(cycle=cycle, day=day, stage=first, transitioned=True)
		await self._deploy_into(transition, cycle, first)
		return transition

	async def evaluate_cycle(self, cycle_id: uuid.UUID, now: datetime) -> CycleTransition:
		"""Log the cycle day; record and deploy a stage change once the clock enters a new stage."""
		record = await self.store.get_record(cycle_id)
		cycle = record_to_cycle(record)
		day = current_day(cycle.started_at, now)
		target = active_stage(cycle.stages, day)
		transition = CycleTransition(cycle=cycle, day=day, stage=target, transitioned=False)

		if cycle.status != CycleStatusEnum.active or target is None:
			return transition
		logged = _log_day(record, day, target, now)
		last = cycle.stage_history[-1] if cycle.stage_history else None
		if last is not None and last.stage == target.type:
			if logged:
				await self.db.flush()
				await self.db.commit()
				transition.cycle = record_to_cycle(record)
			return transition

		history = list(record.stage_history or [])
		if history:
			history[-1] = {**history[-1], "completed_at": now.isoformat()}
		history.append(
			StageHistoryEntry(stage=target.type, stage_name=target.name, started_at=now).to_dict()
		)
		record.stage_history = history
		await self.db.flush()
		await self.db.commit()

		cycle = record_to_cycle(record)
		logger.info(
			"cycle_stage_transition",
			cycle_id=str(cycle.id),
			day=day,
			previous=None if last is None else str(last.stage),
			stage=str(target.type),
		)
		await self.store.notify(cycle.id, {"event_type": "stage_transition", "stage": str(target.type)})

		transition.cycle = cycle
		transition.transitioned = True
		await self._deploy_into(transition, cycle, target)
		return transition

	async def pause_cycle(self, cycle_id: uuid.UUID, now: datetime) -> GrowCycle:
		record = await self._load_for(cycle_id, "pause")
		await self.gateway.set_enabled(record.module_id, str(record.id), False)
		return await self._commit_status(record, "pause", CycleStatusEnum.paused, paused_at=now)

	async def resume_cycle(self, cycle_id: uuid.UUID, now: datetime) -> GrowCycle:
		record = await self._load_for(cycle_id, "resume")
		await self.gateway.set_enabled(record.module_id, str(record.id), True)
		return await self._commit_status(record, "resume", CycleStatusEnum.active, paused_at=None)

	async def complete_cycle(
		self,
		cycle_id: uuid.UUID,
		now: datetime,
		harvest: HarvestIn | None = None,
	) -> GrowCycle:
		record = await self._load_for(cycle_id, "complete")
		await self.gateway.clear(record.module_id, str(record.id))
		changes: dict[str, Any] = {"completed_at": now}
		if harvest is not None:
			changes["harvest"] = {"date": now.isoformat(), **harvest.model_dump(mode="json", exclude_none=True)}
		return await self._commit_status(record, "complete", CycleStatusEnum.completed, **changes)

	async def abort_cycle(self, cycle_id: uuid.UUID, now: datetime) -> GrowCycle:
		record = await self._load_for(cycle_id, "abort")
		await self.gateway.clear(record.module_id, str(record.id))
		return await self._commit_status(record, "abort", CycleStatusEnum.aborted, completed_at=now)

	async def _load_for(self, cycle_id: uuid.UUID, action: str) -> GrowCycleRecord:
		record = await self.store.get_record(cycle_id)
		if record.status not in _ALLOWED_FROM[action]:
			raise ValueError(f"cannot {action} a cycle that is {record.status}")
		return record

	async def _commit_status(
		self,
		record: GrowCycleRecord,
		action: str,
		status: CycleStatusEnum,
		**changes: Any,
	) -> GrowCycle:
		# Runs after the device operation succeeded.
		record.status = status
		for name, value in changes.items():
			setattr(record, name, value)
		await self.db.flush()
		await self.db.commit()

		cycle = record_to_cycle(record)
		logger.info("cycle_status_changed", cycle_id=str(cycle.id), action=action, status=str(status))
		await self.store.notify(cycle.id, {"event_type": "status_changed", "status": str(status)})
		return cycle

	async def _deploy_into(self, transition: CycleTransition, cycle: GrowCycle, stage: Stage) -> None:
		try:
			await self.gateway.deploy(
				cycle.module_id,
				stage,
				cycle_id=str(cycle.id),
				pin_bindings=cycle.pin_bindings,
				enabled=cycle.status != CycleStatusEnum.paused,
			)
		except DeploymentError as exc:
			logger.warning(
				"cycle_deploy_failed",
				cycle_id=str(cycle.id),
				stage=str(stage.type),
				device_id=exc.device_id,
				error=exc.reason,
			)
			transition.deployment = DeploymentStatusEnum.failed
			transition.deployment_error = exc
			return
		transition.deployment = DeploymentStatusEnum.deployed


def _log_day(record: GrowCycleRecord, day: int, stage: Stage, now: datetime) -> bool:
	"""Append a daily log line for ``day`` unless one exists already."""
	log = list(record.daily_log or [])
	if any(entry.get("day") == day for entry in log):
		return False
	log.append(DailyLogEntry(day=day, date=now.date(), stage=stage.type).to_dict())
	record.daily_log = log
	return True
