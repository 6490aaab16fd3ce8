"""Stage content validation.

``validate_stage`` enforces the hard invariants of a stage and raises
``StageValidationError`` for the first violation.  The schedule sanity
properties that were never enforced for operators (frequency at least the
duration, a start time before the end time) are reported by
``schedule_warnings`` instead and never block a save.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from app.engine.errors import StageValidationError
from app.engine.stages import Environment, Lighting, ScheduleConfig, Stage
from app.models.enums import ScheduleTargetEnum, StageTypeEnum

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_hhmm(value: str) -> bool:
	return bool(_HHMM.match(value))


def _minutes(value: str) -> int:
	hours, minutes = value.split(":")
	return int(hours) * 60 + int(minutes)


def validate_stage(stage: Stage) -> None:
	if not isinstance(stage.type, StageTypeEnum):
		raise StageValidationError("type", f"unknown stage type {stage.type!r}")
	if not stage.name or not stage.name.strip():
		raise StageValidationError("name", "must not be blank")
	if stage.day_start < 1:
		raise StageValidationError("day_start", "must be at least 1")
	if stage.day_end < stage.day_start:
		raise StageValidationError("day_end", "must not be before day_start")

	for index, schedule in enumerate(stage.schedules):
		_validate_schedule(schedule, f"schedules[{index}]")
	_validate_lighting(stage.lighting)
	_validate_environment(stage.environment)

	for index, item in enumerate(stage.checklist):
		if not isinstance(item, str) or not item.strip():
			raise StageValidationError(f"checklist[{index}]", "must be non-empty text")


def _validate_schedule(schedule: ScheduleConfig, prefix: str) -> None:
	if not isinstance(schedule.target_subtype, ScheduleTargetEnum):
		raise StageValidationError(
			f"{prefix}.target_subtype",
			f"unknown actuator subtype {schedule.target_subtype!r}",
		)
	if schedule.duration_seconds <= 0:
		raise StageValidationError(f"{prefix}.duration_seconds", "must be positive")
	if schedule.frequency_seconds <= 0:
		raise StageValidationError(f"{prefix}.frequency_seconds", "must be positive")
	for name in ("start_time", "end_time"):
		value = getattr(schedule, name)
		if value is not None and not is_hhmm(value):
			raise StageValidationError(f"{prefix}.{name}", "must be HH:MM")


def _validate_lighting(lighting: Lighting) -> None:
	hours = {"on_hour": lighting.on_hour, "off_hour": lighting.off_hour}
	if lighting.enabled:
		for name, value in hours.items():
			if value is None:
				raise StageValidationError(f"lighting.{name}", "required when lighting is enabled")
			if not 0 <= value <= 23:
				raise StageValidationError(f"lighting.{name}", "must be between 0 and 23")
		return
	for name, value in hours.items():
		if value is not None:
			raise StageValidationError(f"lighting.{name}", "must be empty when lighting is disabled")


def _validate_environment(environment: Environment) -> None:
	for name in ("humidity_min", "humidity_max"):
		value = getattr(environment, name)
		if value is not None and not 0 <= value <= 100:
			raise StageValidationError(f"environment.{name}", "must be between 0 and 100")
	if (
		environment.temp_min_f is not None
		and environment.temp_max_f is not None
		and environment.temp_min_f > environment.temp_max_f
	):
		raise StageValidationError("environment.temp_min_f", "must not exceed temp_max_f")
	if (
		environment.humidity_min is not None
		and environment.humidity_max is not None
		and environment.humidity_min > environment.humidity_max
	):
		raise StageValidationError("environment.humidity_min", "must not exceed humidity_max")


def validate_stage_list(stages: Sequence[Stage]) -> None:
	"""Validate every stage and the one-stage-per-type rule of a cycle."""
	seen: set[StageTypeEnum] = set()
	for index, stage in enumerate(stages):
		try:
			validate_stage(stage)
		except StageValidationError as exc:
			raise StageValidationError(f"stages[{index}].{exc.field}", exc.reason) from exc
		if stage.type in seen:
			raise StageValidationError(f"stages[{index}].type", f"duplicate stage type {stage.type}")
		seen.add(stage.type)


def schedule_warnings(stage: Stage) -> list[str]:
	warnings: list[str] = []
	for index, schedule in enumerate(stage.schedules):
		label = f"schedules[{index}] ({schedule.target_subtype})"
		if schedule.frequency_seconds < schedule.duration_seconds:
			warnings.append(f"{label}: interval is shorter than the ON duration")
		if (
			schedule.start_time is not None
			and schedule.end_time is not None
			and _minutes(schedule.start_time) >= _minutes(schedule.end_time)
		):
			warnings.append(f"{label}: window start is not before window end")
	return warnings
