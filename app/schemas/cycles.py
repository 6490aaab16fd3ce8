"""Pydantic request/response schemas for grow cycles and stage edits.

Stage schemas only check shapes and types.  Content invariants (day ranges,
lighting hours, min/max pairs) are enforced by ``app.engine.validation`` so
every rule violation is reported with the same ``{field, reason}`` detail.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from app.engine.stages import (
	DailyLogEntry,
	Environment,
	Lighting,
	ScheduleConfig,
	Stage,
	StageHistoryEntry,
)
from app.models.enums import (
	CycleStatusEnum,
	DeploymentStatusEnum,
	HarvestQualityEnum,
	ScheduleTargetEnum,
	StageTypeEnum,
	YieldUnitEnum,
)


class ScheduleConfigSchema(BaseModel):
	target_subtype: ScheduleTargetEnum
	duration_seconds: int
	frequency_seconds: int
	start_time: str | None = None
	end_time: str | None = None

	def to_domain(self) -> ScheduleConfig:
		return ScheduleConfig(
			target_subtype=self.target_subtype,
			duration_seconds=self.duration_seconds,
			frequency_seconds=self.frequency_seconds,
			start_time=self.start_time,
			end_time=self.end_time,
		)


class LightingSchema(BaseModel):
	enabled: bool = False
	on_hour: int | None = None
	off_hour: int | None = None


class EnvironmentSchema(BaseModel):
	temp_min_f: float | None = None
	temp_max_f: float | None = None
	humidity_min: float | None = None
	humidity_max: float | None = None
	cover_trays: bool = False


class StageSchema(BaseModel):
	type: StageTypeEnum
	name: str
	day_start: int
	day_end: int
	schedules: list[ScheduleConfigSchema] = Field(default_factory=list)
	lighting: LightingSchema = Field(default_factory=LightingSchema)
	environment: EnvironmentSchema = Field(default_factory=EnvironmentSchema)
	checklist: list[str] = Field(default_factory=list)
	notes: str | None = None

	def to_domain(self) -> Stage:
		return Stage(
			type=self.type,
			name=self.name,
			day_start=self.day_start,
			day_end=self.day_end,
			schedules=tuple(schedule.to_domain() for schedule in self.schedules),
			lighting=Lighting(**self.lighting.model_dump()),
			environment=Environment(**self.environment.model_dump()),
			checklist=tuple(self.checklist),
			notes=self.notes or None,
		)

	@classmethod
	def from_domain(cls, stage: Stage) -> StageSchema:
		return cls.model_validate(stage.to_dict())


class StageHistoryRead(BaseModel):
	stage: StageTypeEnum
	stage_name: str
	started_at: datetime
	completed_at: datetime | None = None
	notes: str | None = None

	@classmethod
	def from_domain(cls, entry: StageHistoryEntry) -> StageHistoryRead:
		return cls(
			stage=entry.stage,
			stage_name=entry.stage_name,
			started_at=entry.started_at,
			completed_at=entry.completed_at,
			notes=entry.notes,
		)


class DailyLogRead(BaseModel):
	day: int
	date: date
	stage: StageTypeEnum
	notes: str | None = None

	@classmethod
	def from_domain(cls, entry: DailyLogEntry) -> DailyLogRead:
		return cls(day=entry.day, date=entry.date, stage=entry.stage, notes=entry.notes)


class CycleRead(BaseModel):
	id: uuid.UUID
	module_id: str
	organization_id: str | None = None
	program_id: str | None = None
	program_name: str
	crop_type: str | None = None
	total_days: int
	status: CycleStatusEnum
	started_at: datetime
	paused_at: datetime | None = None
	completed_at: datetime | None = None
	stages: list[StageSchema]
	pin_bindings: dict[str, int] = Field(default_factory=dict)
	stage_history: list[StageHistoryRead] = Field(default_factory=list)
	daily_log: list[DailyLogRead] = Field(default_factory=list)
	harvest: dict[str, Any] | None = None
	version: int


class CycleListRead(BaseModel):
	items: list[CycleRead]


class CycleStart(BaseModel):
	program_id: str = Field(min_length=1, max_length=128)
	module_id: str = Field(min_length=1, max_length=128)
	pin_bindings: dict[str, int] = Field(default_factory=dict)
	started_at: datetime | None = None


class HarvestIn(BaseModel):
	yield_weight: float | None = Field(default=None, ge=0)
	yield_unit: YieldUnitEnum | None = None
	quality: HarvestQualityEnum | None = None
	notes: str | None = Field(default=None, max_length=2048)


class StageSummary(BaseModel):
	type: StageTypeEnum
	name: str
	label: str
	icon: str
	color: str
	day_start: int
	day_end: int
	status: str
	schedules: list[str]
	lighting: str
	environment: list[str]
	checklist: list[str]


class CycleOverviewRead(BaseModel):
	cycle_id: uuid.UUID
	program_name: str
	status: CycleStatusEnum
	evaluated_at: datetime
	has_started: bool
	current_day: int
	total_days: int
	days_remaining: int
	progress_percent: int
	active_stage: StageSummary | None = None
	next_stage: StageSummary | None = None
	timeline: list[StageSummary]


class DeploymentErrorRead(BaseModel):
	device_id: str
	reason: str
	retryable: bool


class StageEditResponse(BaseModel):
	saved: bool = True
	was_active: bool
	deployment: DeploymentStatusEnum
	deployment_error: DeploymentErrorRead | None = None
	warnings: list[str] = Field(default_factory=list)
	cycle: CycleRead


class CycleEvaluateResponse(BaseModel):
	transitioned: bool
	current_day: int
	current_stage: StageTypeEnum | None = None
	deployment: DeploymentStatusEnum = DeploymentStatusEnum.skipped
	deployment_error: DeploymentErrorRead | None = None
	cycle: CycleRead
