"""Built-in grow program presets.

Presets are code, not rows: they are listed next to an organization's
custom programs and addressed by their key (``microgreens_standard``).
Stage documents use the same shape as ``Stage.to_dict``.
"""

from __future__ import annotations

from typing import Any

_FULL_DAY_LIGHT = {"enabled": True, "on_hour": 6, "off_hour": 22}
_NO_LIGHT = {"enabled": False, "on_hour": None, "off_hour": None}


def _mist(duration: int, frequency: int) -> dict[str, Any]:
	return {
		"target_subtype": "mist",
		"duration_seconds": duration,
		"frequency_seconds": frequency,
		"start_time": "06:00",
		"end_time": "22:00",
	}


def _pump(duration: int, frequency: int) -> dict[str, Any]:
	return {
		"target_subtype": "pump",
		"duration_seconds": duration,
		"frequency_seconds": frequency,
		"start_time": "06:00",
		"end_time": "22:00",
	}


def _fan(duration: int, frequency: int) -> dict[str, Any]:
	return {
		"target_subtype": "fan",
		"duration_seconds": duration,
		"frequency_seconds": frequency,
		"start_time": None,
		"end_time": None,
	}


GROW_PROGRAM_PRESETS: dict[str, dict[str, Any]] = {
	"microgreens_standard": {
		"name": "Microgreens — Standard",
		"crop_type": "microgreens",
		"description": "Sunflower, pea and radish microgreens on a 12 day tray cycle.",
		"total_days": 12,
		"image_emoji": "🌱",
		"stages": [
			{
				"type": "seeding",
				"name": "Seeding",
				"day_start": 1,
				"day_end": 1,
				"schedules": [_mist(10, 14400)],
				"lighting": _NO_LIGHT,
				"environment": {
					"temp_min_f": 65,
					"temp_max_f": 75,
					"humidity_min": 60,
					"humidity_max": 80,
					"cover_trays": True,
				},
				"checklist": ["Soak seeds 4–8 hours", "Spread seed evenly", "Mist trays and cover"],
				"notes": None,
			},
			{
				"type": "germination",
				"name": "Germination",
				"day_start": 2,
				"day_end": 3,
				"schedules": [_mist(10, 10800)],
				"lighting": _NO_LIGHT,
				"environment": {
					"temp_min_f": 68,
					"temp_max_f": 75,
					"humidity_min": 70,
					"humidity_max": 90,
					"cover_trays": True,
				},
				"checklist": ["Check for mold", "Keep trays stacked"],
				"notes": None,
			},
			{
				"type": "blackout",
				"name": "Blackout",
				"day_start": 4,
				"day_end": 5,
				"schedules": [_pump(30, 43200)],
				"lighting": _NO_LIGHT,
				"environment": {
					"temp_min_f": 68,
					"temp_max_f": 75,
					"humidity_min": 60,
					"humidity_max": 80,
					"cover_trays": True,
				},
				"checklist": ["Weight trays", "Bottom water only"],
				"notes": None,
			},
			{
				"type": "light_exposure",
				"name": "Light Exposure",
				"day_start": 6,
				"day_end": 6,
				"schedules": [_pump(30, 43200), _fan(300, 3600)],
				"lighting": _FULL_DAY_LIGHT,
				"environment": {
					"temp_min_f": 65,
					"temp_max_f": 75,
					"humidity_min": 50,
					"humidity_max": 70,
					"cover_trays": False,
				},
				"checklist": ["Uncover trays", "Check greening"],
				"notes": None,
			},
			{
				"type": "growth",
				"name": "Growth",
				"day_start": 7,
				"day_end": 10,
				"schedules": [_pump(60, 28800), _fan(600, 3600)],
				"lighting": _FULL_DAY_LIGHT,
				"environment": {
					"temp_min_f": 65,
					"temp_max_f": 75,
					"humidity_min": 40,
					"humidity_max": 60,
					"cover_trays": False,
				},
				"checklist": ["Check moisture daily", "Rotate trays"],
				"notes": None,
			},
			{
				"type": "pre_harvest",
				"name": "Pre-Harvest",
				"day_start": 11,
				"day_end": 11,
				"schedules": [_fan(600, 3600)],
				"lighting": _FULL_DAY_LIGHT,
				"environment": {
					"temp_min_f": 62,
					"temp_max_f": 72,
					"humidity_min": 40,
					"humidity_max": 55,
					"cover_trays": False,
				},
				"checklist": ["Stop watering 12 hours before harvest"],
				"notes": None,
			},
			{
				"type": "harvest",
				"name": "Harvest",
				"day_start": 12,
				"day_end": 12,
				"schedules": [],
				"lighting": _NO_LIGHT,
				"environment": {
					"temp_min_f": None,
					"temp_max_f": None,
					"humidity_min": None,
					"humidity_max": None,
					"cover_trays": False,
				},
				"checklist": ["Cut above soil line", "Weigh and log yield", "Sanitize trays"],
				"notes": None,
			},
		],
	},
}
