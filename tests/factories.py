"""Builders for engine value types used across the test suite."""

from __future__ import annotations

import uuid
from datetime import datetime

from app.engine.stages import Environment, GrowCycle, Lighting, ScheduleConfig, Stage
from app.models.enums import CycleStatusEnum, ScheduleTargetEnum, StageTypeEnum

TEST_ORG = "org-test"


def make_stage(
	stage_type: StageTypeEnum,
	day_start: int,
	day_end: int,
	*,
	schedules: tuple[ScheduleConfig, ...] = (),
	lighting: Lighting | None = None,
	environment: Environment | None = None,
	name: str | None = None,
	checklist: tuple[str, ...] = (),
) -> Stage:
	return Stage(
		type=stage_type,
		name=name or stage_type.value.replace("_", " ").title(),
		day_start=day_start,
		day_end=day_end,
		schedules=schedules,
		lighting=lighting or Lighting(),
		environment=environment or Environment(),
		checklist=checklist,
	)


def make_schedule(
	subtype: ScheduleTargetEnum = ScheduleTargetEnum.pump,
	duration: int = 30,
	frequency: int = 3600,
	start_time: str | None = None,
	end_time: str | None = None,
) -> ScheduleConfig:
	return ScheduleConfig(
		target_subtype=subtype,
		duration_seconds=duration,
		frequency_seconds=frequency,
		start_time=start_time,
		end_time=end_time,
	)


def make_cycle(
	stages: tuple[Stage, ...],
	*,
	started_at: datetime,
	total_days: int = 12,
	status: CycleStatusEnum = CycleStatusEnum.active,
	version: int = 1,
	pin_bindings: dict[str, int] | None = None,
	cycle_id: uuid.UUID | None = None,
) -> GrowCycle:
	return GrowCycle(
		id=cycle_id or uuid.uuid4(),
		module_id="module-1",
		program_name="Microgreens — Standard",
		started_at=started_at,
		total_days=total_days,
		status=status,
		stages=stages,
		organization_id=TEST_ORG,
		pin_bindings=pin_bindings if pin_bindings is not None else {"pump": 17, "mist": 27, "light": 22},
		version=version,
	)


