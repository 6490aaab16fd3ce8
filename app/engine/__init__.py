"""Grow cycle stage engine — pure stage model, clock, resolver and editor.

Nothing in this package touches the database, Redis or the wall clock; the
adapters in ``app.services`` implement the ports in ``app.engine.ports``.
"""

from app.engine.clock import current_day, days_remaining, has_started
from app.engine.editor import StageEditor, StageEditResult, merge_stage
from app.engine.errors import (
	CycleNotFoundError,
	DeploymentError,
	PersistenceError,
	StageEditError,
	StageValidationError,
	UnknownStageTypeError,
)
from app.engine.formatting import format_duration, format_frequency
from app.engine.resolver import active_stage, progress_percent
from app.engine.stages import Environment, GrowCycle, Lighting, ScheduleConfig, Stage

__all__ = [
	"CycleNotFoundError",
	"DeploymentError",
	"Environment",
	"GrowCycle",
	"Lighting",
	"PersistenceError",
	"ScheduleConfig",
	"Stage",
	"StageEditError",
	"StageEditResult",
	"StageEditor",
	"StageValidationError",
	"UnknownStageTypeError",
	"active_stage",
	"current_day",
	"days_remaining",
	"format_duration",
	"format_frequency",
	"has_started",
	"merge_stage",
	"progress_percent",
]
