"""Stage edit transaction: validate, merge, commit, and redeploy when active.

``StageEditor.submit`` is the only writer of a cycle's stage list.  The
order of effects is fixed:

1. validate the edited stage (``StageValidationError``, nothing written)
2. merge it over the stage with the same type (``UnknownStageTypeError``)
3. decide whether that stage type was the active one, using the pre-edit
   day ranges, so an edit that moves the active stage's range still lands
   on the device
4. commit the merged list through the ``CycleStore`` (``PersistenceError``)
5. deploy the edited stage through the ``DeploymentGateway`` if it was active

A deployment failure happens after a successful commit, so it is returned on
the result instead of raised: the operator's change is saved and the device
sync can be retried independently.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from app.engine.clock import current_day
from app.engine.errors import DeploymentError, PersistenceError, UnknownStageTypeError
from app.engine.ports import CycleStore, DeploymentGateway
from app.engine.resolver import active_stage
from app.engine.stages import GrowCycle, Stage
from app.engine.validation import schedule_warnings, validate_stage
from app.models.enums import CycleStatusEnum, DeploymentStatusEnum

logger = structlog.get_logger("growcycle.engine.editor")


@dataclass(slots=True)
class StageEditResult:
	cycle: GrowCycle
	stage: Stage
	was_active: bool
	deployment: DeploymentStatusEnum
	deployment_error: DeploymentError | None = None
	warnings: list[str] = field(default_factory=list)

	@property
	def device_in_sync(self) -> bool:
		return self.deployment != DeploymentStatusEnum.failed


def merge_stage(stages: Sequence[Stage], edited: Stage) -> tuple[Stage, ...]:
	"""Replace the stage sharing ``edited.type``; order and all others untouched."""
	if not any(stage.type == edited.type for stage in stages):
		raise UnknownStageTypeError(str(edited.type))
	return tuple(edited if stage.type == edited.type else stage for stage in stages)


def is_stage_active(stages: Sequence[Stage], stage: Stage, day: int) -> bool:
	current = active_stage(stages, day)
	return current is not None and current.type == stage.type


class StageEditor:
	def __init__(
		self,
		store: CycleStore,
		gateway: DeploymentGateway,
		*,
		commit_timeout: float | None = None,
		deploy_timeout: float | None = None,
		optimistic_locking: bool = False,
	) -> None:
		self.store = store
		self.gateway = gateway
		self.commit_timeout = commit_timeout
		self.deploy_timeout = deploy_timeout
		self.optimistic_locking = optimistic_locking

	async def submit(self, cycle: GrowCycle, edited: Stage, now: datetime) -> StageEditResult:
		validate_stage(edited)
		merged = merge_stage(cycle.stages, edited)

		day = current_day(cycle.started_at, now)
		was_active = is_stage_active(cycle.stages, edited, day)

		committed = await self._commit(cycle, merged)
		log = logger.bind(cycle_id=str(cycle.id), stage=str(edited.type), day=day)
		log.info("stage_committed", version=committed.version, was_active=was_active)

		result = StageEditResult(
			cycle=committed,
			stage=edited,
			was_active=was_active,
			deployment=DeploymentStatusEnum.skipped,
			warnings=schedule_warnings(edited),
		)
		if not was_active:
			log.info("stage_deploy_skipped")
			return result

		try:
			await self._deploy(committed, edited)
		except DeploymentError as exc:
			log.warning("stage_deploy_failed", device_id=exc.device_id, error=exc.reason)
			result.deployment = DeploymentStatusEnum.failed
			result.deployment_error = exc
			return result

		log.info("stage_deployed", device_id=committed.module_id)
		result.deployment = DeploymentStatusEnum.deployed
		return result

	async def _commit(self, cycle: GrowCycle, stages: tuple[Stage, ...]) -> GrowCycle:
		expected_version = cycle.version if self.optimistic_locking else None
		try:
			async with asyncio.timeout(self.commit_timeout):
				return await self.store.commit_stages(cycle.id, stages, expected_version)
		except TimeoutError as exc:
			raise PersistenceError("stage commit timed out", retryable=True) from exc

	async def _deploy(self, cycle: GrowCycle, stage: Stage) -> None:
		try:
			async with asyncio.timeout(self.deploy_timeout):
				await self.gateway.deploy(
					cycle.module_id,
					stage,
					cycle_id=str(cycle.id),
					pin_bindings=cycle.pin_bindings,
					enabled=cycle.status != CycleStatusEnum.paused,
				)
		except TimeoutError as exc:
			# An unacknowledged deploy is never assumed to have applied.
			raise DeploymentError(cycle.module_id, "deployment timed out", retryable=True) from exc
