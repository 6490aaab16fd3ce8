"""Active stage resolution and cycle progress."""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import StrEnum

from app.engine.stages import Stage


class StageStatus(StrEnum):
	completed = "completed"
	current = "current"
	upcoming = "upcoming"


def round_half_up(value: float) -> int:
	# Python's round() is banker's rounding; display values round .5 up.
	return math.floor(value + 0.5)


def active_stage(stages: Sequence[Stage], day: int) -> Stage | None:
	"""First stage in stored order whose day range contains ``day``.

	Overlapping ranges are not an error: stored order breaks the tie, so the
	earlier stage wins regardless of range width.  ``None`` (a gap day, or a
	day past the last stage) is a normal result.
	"""
	for stage in stages:
		if stage.covers(day):
			return stage
	return None


def progress_percent(day: int, total_days: int) -> int:
	if total_days <= 0:
		return 100
	return min(100, round_half_up(day / total_days * 100))


def stage_status(stage: Stage, day: int) -> StageStatus:
	if day > stage.day_end:
		return StageStatus.completed
	if stage.covers(day):
		return StageStatus.current
	return StageStatus.upcoming


def next_stage(stages: Sequence[Stage], day: int) -> Stage | None:
	"""Earliest-starting stage that begins after ``day``."""
	upcoming = [stage for stage in stages if stage.day_start > day]
	if not upcoming:
		return None
	return min(upcoming, key=lambda stage: stage.day_start)
