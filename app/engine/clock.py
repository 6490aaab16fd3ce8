"""Cycle clock — day-of-cycle arithmetic against an injected ``now``.

Nothing here reads the wall clock; callers pass ``now`` explicitly.
Timestamps must be timezone-aware.
"""

from __future__ import annotations

from datetime import datetime, timedelta

DAY = timedelta(days=1)


def current_day(started_at: datetime, now: datetime) -> int:
	"""1-based day of the cycle, floored at 1.

	A ``now`` earlier than ``started_at`` still yields day 1; use
	``has_started`` when "not yet begun" needs to be told apart.
	"""
	elapsed_days = (now - started_at) // DAY
	return max(1, elapsed_days + 1)


def has_started(started_at: datetime, now: datetime) -> bool:
	return now >= started_at


def days_remaining(started_at: datetime, now: datetime, total_days: int) -> int:
	return max(0, total_days - current_day(started_at, now))
