"""Presentation helpers for stage content.

Unit thresholds are hard cutoffs and values round to the nearest integer
(halves up), so 90 seconds renders as ``2m``.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.engine.resolver import round_half_up
from app.engine.stages import Environment, Lighting, ScheduleConfig
from app.models.enums import StageTypeEnum

DEFAULT_WINDOW_START = "06:00"
DEFAULT_WINDOW_END = "22:00"


@dataclass(frozen=True, slots=True)
class StageMeta:
	label: str
	icon: str
	color: str


STAGE_META: dict[StageTypeEnum, StageMeta] = {
	StageTypeEnum.seeding: StageMeta("Seeding", "🌾", "amber"),
	StageTypeEnum.germination: StageMeta("Germination", "🌱", "lime"),
	StageTypeEnum.blackout: StageMeta("Blackout", "🌑", "gray"),
	StageTypeEnum.light_exposure: StageMeta("Light Exposure", "💡", "yellow"),
	StageTypeEnum.growth: StageMeta("Growth", "🌿", "green"),
	StageTypeEnum.pre_harvest: StageMeta("Pre-Harvest", "✂️", "orange"),
	StageTypeEnum.harvest: StageMeta("Harvest", "📦", "emerald"),
}


def format_duration(seconds: int) -> str:
	if seconds < 60:
		return f"{seconds}s"
	if seconds < 3600:
		return f"{round_half_up(seconds / 60)}m"
	return f"{round_half_up(seconds / 3600)}h"


def format_frequency(seconds: int) -> str:
	if seconds >= 86400:
		return f"{round_half_up(seconds / 86400)}d"
	return format_duration(seconds)


def format_hour(hour: int) -> str:
	return f"{hour:02d}:00"


def schedule_window(
	schedule: ScheduleConfig,
	default_start: str = DEFAULT_WINDOW_START,
	default_end: str = DEFAULT_WINDOW_END,
) -> tuple[str, str]:
	return (schedule.start_time or default_start, schedule.end_time or default_end)


def describe_schedule(
	schedule: ScheduleConfig,
	default_start: str = DEFAULT_WINDOW_START,
	default_end: str = DEFAULT_WINDOW_END,
) -> str:
	start, end = schedule_window(schedule, default_start, default_end)
	return (
		f"{schedule.target_subtype}: {format_duration(schedule.duration_seconds)} ON"
		f" / {format_frequency(schedule.frequency_seconds)} interval ({start}–{end})"
	)


def describe_lighting(lighting: Lighting) -> str:
	if not lighting.enabled or lighting.on_hour is None or lighting.off_hour is None:
		return "No light"
	return f"Lights {format_hour(lighting.on_hour)}–{format_hour(lighting.off_hour)}"


def describe_environment(environment: Environment) -> list[str]:
	parts: list[str] = []
	if environment.temp_min_f is not None or environment.temp_max_f is not None:
		parts.append(f"{_bound(environment.temp_min_f)}–{_bound(environment.temp_max_f)}°F")
	if environment.humidity_min is not None or environment.humidity_max is not None:
		parts.append(f"{_bound(environment.humidity_min)}–{_bound(environment.humidity_max)}% RH")
	if environment.cover_trays:
		parts.append("Trays covered")
	return parts


def _bound(value: float | None) -> str:
	if value is None:
		return "?"
	return f"{value:g}"
