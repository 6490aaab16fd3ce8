"""Grow cycle value types — stages, actuator schedules, lighting, environment.

These are plain frozen dataclasses.  They never validate on construction;
``app.engine.validation`` checks them so that a bad edit is reported as a
``StageValidationError`` naming the offending field.

The ``to_dict``/``from_dict`` pair defines the JSON document stored in the
``grow_cycles.stages`` JSONB column::

    {
        "type": "growth",
        "name": "Growth",
        "day_start": 8,
        "day_end": 30,
        "schedules": [
            {"target_subtype": "pump", "duration_seconds": 30,
             "frequency_seconds": 21600, "start_time": "06:00", "end_time": "22:00"}
        ],
        "lighting": {"enabled": true, "on_hour": 6, "off_hour": 22},
        "environment": {"temp_min_f": 65, "temp_max_f": 75, "cover_trays": false},
        "checklist": ["Check moisture"],
        "notes": null
    }
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import StrEnum
from typing import Any, TypeVar

from app.models.enums import CycleStatusEnum, ScheduleTargetEnum, StageTypeEnum

_E = TypeVar("_E", bound=StrEnum)


def _coerce_enum(enum_cls: type[_E], value: Any) -> Any:
	# Unknown tokens are kept as-is so validation can name the field.
	try:
		return enum_cls(value)
	except ValueError:
		return value


def _optional_int(value: Any) -> int | None:
	return None if value is None else int(value)


def _optional_float(value: Any) -> float | None:
	return None if value is None else float(value)


def _parse_datetime(value: Any) -> datetime | None:
	if value is None or isinstance(value, datetime):
		return value
	return datetime.fromisoformat(str(value))


@dataclass(frozen=True, slots=True)
class ScheduleConfig:
	"""One actuator duty cycle within a stage.

	``frequency_seconds >= duration_seconds`` is expected but not enforced.
	An absent ``start_time``/``end_time`` stays absent in storage; the
	06:00–22:00 default window is applied only for display.
	"""

	target_subtype: ScheduleTargetEnum
	duration_seconds: int
	frequency_seconds: int
	start_time: str | None = None
	end_time: str | None = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"target_subtype": str(self.target_subtype),
			"duration_seconds": self.duration_seconds,
			"frequency_seconds": self.frequency_seconds,
			"start_time": self.start_time,
			"end_time": self.end_time,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> ScheduleConfig:
		return cls(
			target_subtype=_coerce_enum(ScheduleTargetEnum, data.get("target_subtype")),
			duration_seconds=int(data.get("duration_seconds", 0)),
			frequency_seconds=int(data.get("frequency_seconds", 0)),
			start_time=data.get("start_time") or None,
			end_time=data.get("end_time") or None,
		)


@dataclass(frozen=True, slots=True)
class Lighting:
	enabled: bool = False
	on_hour: int | None = None
	off_hour: int | None = None

	def to_dict(self) -> dict[str, Any]:
		return {"enabled": self.enabled, "on_hour": self.on_hour, "off_hour": self.off_hour}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any] | None) -> Lighting:
		if not data:
			return cls()
		return cls(
			enabled=bool(data.get("enabled", False)),
			on_hour=_optional_int(data.get("on_hour")),
			off_hour=_optional_int(data.get("off_hour")),
		)


@dataclass(frozen=True, slots=True)
class Environment:
	temp_min_f: float | None = None
	temp_max_f: float | None = None
	humidity_min: float | None = None
	humidity_max: float | None = None
	cover_trays: bool = False

	def to_dict(self) -> dict[str, Any]:
		return {
			"temp_min_f": self.temp_min_f,
			"temp_max_f": self.temp_max_f,
			"humidity_min": self.humidity_min,
			"humidity_max": self.humidity_max,
			"cover_trays": self.cover_trays,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any] | None) -> Environment:
		if not data:
			return cls()
		return cls(
			temp_min_f=_optional_float(data.get("temp_min_f")),
			temp_max_f=_optional_float(data.get("temp_max_f")),
			humidity_min=_optional_float(data.get("humidity_min")),
			humidity_max=_optional_float(data.get("humidity_max")),
			cover_trays=bool(data.get("cover_trays", False)),
		)


@dataclass(frozen=True, slots=True)
class Stage:
	"""A named phase of a cycle over the inclusive day range ``[day_start, day_end]``.

	``type`` is the stage's identity inside a cycle; edits replace the whole
	stage with the same ``type`` and never patch individual fields.
	"""

	type: StageTypeEnum
	name: str
	day_start: int
	day_end: int
	schedules: tuple[ScheduleConfig, ...] = ()
	lighting: Lighting = field(default_factory=Lighting)
	environment: Environment = field(default_factory=Environment)
	checklist: tuple[str, ...] = ()
	notes: str | None = None

	@property
	def duration_days(self) -> int:
		return self.day_end - self.day_start + 1

	def covers(self, day: int) -> bool:
		return self.day_start <= day <= self.day_end

	def operative_parameters(self) -> dict[str, Any]:
		"""The portion of the stage that governs live hardware."""
		return {
			"schedules": [schedule.to_dict() for schedule in self.schedules],
			"lighting": self.lighting.to_dict(),
			"environment": self.environment.to_dict(),
		}

	def to_dict(self) -> dict[str, Any]:
		return {
			"type": str(self.type),
			"name": self.name,
			"day_start": self.day_start,
			"day_end": self.day_end,
			**self.operative_parameters(),
			"checklist": list(self.checklist),
			"notes": self.notes,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> Stage:
		return cls(
			type=_coerce_enum(StageTypeEnum, data.get("type")),
			name=str(data.get("name") or ""),
			day_start=int(data.get("day_start", 0)),
			day_end=int(data.get("day_end", 0)),
			schedules=tuple(ScheduleConfig.from_dict(item) for item in data.get("schedules") or ()),
			lighting=Lighting.from_dict(data.get("lighting")),
			environment=Environment.from_dict(data.get("environment")),
			checklist=tuple(data.get("checklist") or ()),
			notes=data.get("notes") or None,
		)


@dataclass(frozen=True, slots=True)
class StageHistoryEntry:
	stage: StageTypeEnum
	stage_name: str
	started_at: datetime
	completed_at: datetime | None = None
	notes: str | None = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"stage": str(self.stage),
			"stage_name": self.stage_name,
			"started_at": self.started_at.isoformat(),
			"completed_at": self.completed_at.isoformat() if self.completed_at else None,
			"notes": self.notes,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> StageHistoryEntry:
		return cls(
			stage=_coerce_enum(StageTypeEnum, data.get("stage")),
			stage_name=str(data.get("stage_name") or ""),
			started_at=_parse_datetime(data.get("started_at")),  # type: ignore[arg-type]
			completed_at=_parse_datetime(data.get("completed_at")),
			notes=data.get("notes") or None,
		)


@dataclass(frozen=True, slots=True)
class DailyLogEntry:
	"""One line per cycle day: which stage the cycle was in on that date."""

	day: int
	date: date
	stage: StageTypeEnum
	notes: str | None = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"day": self.day,
			"date": self.date.isoformat(),
			"stage": str(self.stage),
			"notes": self.notes,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> DailyLogEntry:
		return cls(
			day=int(data["day"]),
			date=date.fromisoformat(str(data["date"])),
			stage=_coerce_enum(StageTypeEnum, data.get("stage")),
			notes=data.get("notes") or None,
		)


@dataclass(frozen=True, slots=True)
class GrowCycle:
	"""The cycle aggregate: metadata plus the exclusively owned stage list.

	The stage engine only ever replaces ``stages``; ``started_at``,
	``total_days`` and ``status`` are owned by the lifecycle workflow.
	"""

	id: uuid.UUID
	module_id: str
	program_name: str
	started_at: datetime
	total_days: int
	status: CycleStatusEnum
	stages: tuple[Stage, ...]
	organization_id: str | None = None
	program_id: str | None = None
	crop_type: str | None = None
	pin_bindings: dict[str, int] = field(default_factory=dict)
	stage_history: tuple[StageHistoryEntry, ...] = ()
	daily_log: tuple[DailyLogEntry, ...] = ()
	version: int = 1
	paused_at: datetime | None = None
	completed_at: datetime | None = None
	harvest: dict[str, Any] | None = None

	def stage_of_type(self, stage_type: StageTypeEnum) -> Stage | None:
		for stage in self.stages:
			if stage.type == stage_type:
				return stage
		return None

	def with_stages(self, stages: tuple[Stage, ...], version: int | None = None) -> GrowCycle:
		return replace(self, stages=stages, version=self.version if version is None else version)


def stages_to_documents(stages: tuple[Stage, ...] | list[Stage]) -> list[dict[str, Any]]:
	return [stage.to_dict() for stage in stages]


def stages_from_documents(documents: list[Mapping[str, Any]] | None) -> tuple[Stage, ...]:
	return tuple(Stage.from_dict(document) for document in documents or ())
