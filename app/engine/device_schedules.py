"""Translate a stage into per-pin device schedule entries.

The controller keeps a flat map of schedule entries keyed by schedule id.
Entries written for a grow cycle are tagged ``managed_by="grow_cycle"`` and
carry the cycle id, so a later deploy can replace exactly the entries it
owns.  Schedule ids are derived from the cycle id and actuator subtype, and
entries carry no timestamps, so building the same stage twice yields the
same payload.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.engine.formatting import format_hour
from app.engine.stages import Stage

MANAGED_BY = "grow_cycle"
LIGHT_SUBTYPE = "light"


def schedule_id(cycle_id: str, subtype: str) -> str:
	return f"cycle_{cycle_id}_{subtype}"


def lighting_duration_hours(on_hour: int, off_hour: int) -> int:
	"""Hours the lights stay on, wrapping past midnight when off <= on."""
	if off_hour > on_hour:
		return off_hour - on_hour
	return 24 - on_hour + off_hour


def build_device_schedules(
	stage: Stage,
	pin_bindings: Mapping[str, int],
	cycle_id: str,
	*,
	enabled: bool = True,
) -> dict[str, dict[str, Any]]:
	"""Schedule entries for every actuator of ``stage`` that is bound to a pin.

	Subtypes without a pin binding are skipped.  A lighting window becomes a
	once-a-day schedule on the ``light`` pin that stays on for the whole
	window.
	"""
	entries: dict[str, dict[str, Any]] = {}

	for schedule in stage.schedules:
		subtype = str(schedule.target_subtype)
		pin = pin_bindings.get(subtype)
		if pin is None:
			continue
		entries[schedule_id(cycle_id, subtype)] = _entry(
			stage,
			cycle_id,
			pin=pin,
			enabled=enabled,
			name=f"{stage.name} — {subtype}",
			duration_seconds=schedule.duration_seconds,
			frequency_seconds=schedule.frequency_seconds,
			start_time=schedule.start_time,
			end_time=schedule.end_time,
		)

	lighting = stage.lighting
	light_pin = pin_bindings.get(LIGHT_SUBTYPE)
	if (
		lighting.enabled
		and lighting.on_hour is not None
		and lighting.off_hour is not None
		and light_pin is not None
	):
		hours = lighting_duration_hours(lighting.on_hour, lighting.off_hour)
		# Written after the actuator loop so the window wins over a plain light schedule.
		entries[schedule_id(cycle_id, LIGHT_SUBTYPE)] = _entry(
			stage,
			cycle_id,
			pin=light_pin,
			enabled=enabled,
			name=f"{stage.name} — lights",
			duration_seconds=hours * 3600,
			frequency_seconds=86400,
			start_time=format_hour(lighting.on_hour),
			end_time=format_hour(lighting.off_hour),
		)

	return entries


def _entry(
	stage: Stage,
	cycle_id: str,
	*,
	pin: int,
	enabled: bool,
	name: str,
	duration_seconds: int,
	frequency_seconds: int,
	start_time: str | None,
	end_time: str | None,
) -> dict[str, Any]:
	return {
		"name": name,
		"pin": pin,
		"enabled": enabled,
		"duration_seconds": duration_seconds,
		"frequency_seconds": frequency_seconds,
		"start_time": start_time,
		"end_time": end_time,
		"managed_by": MANAGED_BY,
		"cycle_id": cycle_id,
		"stage": str(stage.type),
		"stage_name": stage.name,
		"environment": stage.environment.to_dict(),
	}
