"""Grow cycle routes — overview, stage edits and lifecycle transitions."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import EDIT_ROLES, READ_ROLES, require_role
from app.auth.models import User
from app.database import get_db
from app.engine.errors import (
	CycleDocumentError,
	CycleNotFoundError,
	DeploymentError,
	PersistenceError,
	StageValidationError,
	UnknownStageTypeError,
)
from app.engine.stages import GrowCycle
from app.models.enums import StageTypeEnum
from app.schemas.cycles import (
	CycleEvaluateResponse,
	CycleListRead,
	CycleOverviewRead,
	CycleRead,
	CycleStart,
	DailyLogRead,
	DeploymentErrorRead,
	HarvestIn,
	StageEditResponse,
	StageHistoryRead,
	StageSchema,
)
from app.services.cycle_service import CycleService, CycleTransition

router = APIRouter(tags=["cycles"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StageValidationError):
		return HTTPException(
			status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
			detail={"error": "stage_invalid", "field": exc.field, "reason": exc.reason},
		)
	if isinstance(exc, UnknownStageTypeError):
		return HTTPException(
			status_code=status.HTTP_400_BAD_REQUEST,
			detail={"error": "unknown_stage_type", "stage_type": exc.stage_type},
		)
	if isinstance(exc, PersistenceError):
		if exc.conflict:
			return HTTPException(
				status_code=status.HTTP_409_CONFLICT,
				detail={"error": "cycle_conflict", "reason": exc.reason},
			)
		return HTTPException(
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
			detail={"error": "cycle_not_saved", "reason": exc.reason, "retryable": exc.retryable},
		)
	if isinstance(exc, DeploymentError):
		return HTTPException(
			status_code=status.HTTP_502_BAD_GATEWAY,
			detail={
				"error": "device_sync_failed",
				"device_id": exc.device_id,
				"reason": exc.reason,
				"retryable": exc.retryable,
			},
		)
	if isinstance(exc, CycleDocumentError):
		return HTTPException(
			status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
			detail={"error": "cycle_document_invalid", "cycle_id": str(exc.cycle_id)},
		)
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected grow cycle failure",
	)


def _to_cycle_read(cycle: GrowCycle) -> CycleRead:
	return CycleRead(
		id=cycle.id,
		module_id=cycle.module_id,
		organization_id=cycle.organization_id,
		program_id=cycle.program_id,
		program_name=cycle.program_name,
		crop_type=cycle.crop_type,
		total_days=cycle.total_days,
		status=cycle.status,
		started_at=cycle.started_at,
		paused_at=cycle.paused_at,
		completed_at=cycle.completed_at,
		stages=[StageSchema.from_domain(stage) for stage in cycle.stages],
		pin_bindings=dict(cycle.pin_bindings),
		stage_history=[StageHistoryRead.from_domain(entry) for entry in cycle.stage_history],
		daily_log=[DailyLogRead.from_domain(entry) for entry in cycle.daily_log],
		harvest=cycle.harvest,
		version=cycle.version,
	)


def _to_deployment_error_read(exc: DeploymentError | None) -> DeploymentErrorRead | None:
	if exc is None:
		return None
	return DeploymentErrorRead(device_id=exc.device_id, reason=exc.reason, retryable=exc.retryable)


def _to_transition_read(transition: CycleTransition) -> CycleEvaluateResponse:
	return CycleEvaluateResponse(
		transitioned=transition.transitioned,
		current_day=transition.day,
		current_stage=None if transition.stage is None else transition.stage.type,
		deployment=transition.deployment,
		deployment_error=_to_deployment_error_read(transition.deployment_error),
		cycle=_to_cycle_read(transition.cycle),
	)


def _ensure_visible(cycle: GrowCycle, user: User) -> None:
	if cycle.organization_id is not None and cycle.organization_id != user.organization_id:
		raise CycleNotFoundError(cycle.id)


def _service(request: Request, db: AsyncSession) -> CycleService:
	return CycleService(db, getattr(request.app.state, "redis", None))


@router.post("/cycles", response_model=CycleEvaluateResponse, status_code=status.HTTP_201_CREATED)
async def start_cycle(
	payload: CycleStart,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleEvaluateResponse:
	service = _service(request, db)
	try:
		transition = await service.start_cycle(payload, user.organization_id, datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(transition)


@router.get("/cycles/{cycle_id}", response_model=CycleRead)
async def get_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*READ_ROLES)),
) -> CycleRead:
	service = _service(request, db)
	try:
		cycle = await service.get_cycle(cycle_id)
		_ensure_visible(cycle, user)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_cycle_read(cycle)


@router.get("/cycles/{cycle_id}/overview", response_model=CycleOverviewRead)
async def get_cycle_overview(
	cycle_id: uuid.UUID,
	request: Request,
	now: datetime | None = Query(default=None),
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*READ_ROLES)),
) -> CycleOverviewRead:
	if now is not None and now.tzinfo is None:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="now must include a timezone offset")
	service = _service(request, db)
	try:
		cycle = await service.get_cycle(cycle_id)
		_ensure_visible(cycle, user)
		return service.build_overview(cycle, now or datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc


@router.put("/cycles/{cycle_id}/stages/{stage_type}", response_model=StageEditResponse)
async def update_stage(
	cycle_id: uuid.UUID,
	stage_type: StageTypeEnum,
	payload: StageSchema,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> StageEditResponse:
	if payload.type != stage_type:
		raise HTTPException(
			status_code=status.HTTP_400_BAD_REQUEST,
			detail=f"Stage type in body ({payload.type}) does not match path ({stage_type})",
		)
	service = _service(request, db)
	try:
		cycle = await service.get_cycle(cycle_id)
		_ensure_visible(cycle, user)
		result = await service.submit_stage_edit(cycle_id, payload.to_domain(), datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return StageEditResponse(
		was_active=result.was_active,
		deployment=result.deployment,
		deployment_error=_to_deployment_error_read(result.deployment_error),
		warnings=result.warnings,
		cycle=_to_cycle_read(result.cycle),
	)


@router.post("/cycles/{cycle_id}/evaluate", response_model=CycleEvaluateResponse)
async def evaluate_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleEvaluateResponse:
	service = _service(request, db)
	try:
		cycle = await service.get_cycle(cycle_id)
		_ensure_visible(cycle, user)
		transition = await service.evaluate_cycle(cycle_id, datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(transition)


@router.post("/cycles/{cycle_id}/deploy", response_model=CycleEvaluateResponse)
async def redeploy_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleEvaluateResponse:
	service = _service(request, db)
	try:
		cycle = await service.get_cycle(cycle_id)
		_ensure_visible(cycle, user)
		transition = await service.redeploy_active_stage(cycle_id, datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(transition)


@router.post("/cycles/{cycle_id}/pause", response_model=CycleRead)
async def pause_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleRead:
	service = _service(request, db)
	try:
		_ensure_visible(await service.get_cycle(cycle_id), user)
		cycle = await service.pause_cycle(cycle_id, datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_cycle_read(cycle)


@router.post("/cycles/{cycle_id}/resume", response_model=CycleRead)
async def resume_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleRead:
	service = _service(request, db)
	try:
		_ensure_visible(await service.get_cycle(cycle_id), user)
		cycle = await service.resume_cycle(cycle_id, datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_cycle_read(cycle)


@router.post("/cycles/{cycle_id}/complete", response_model=CycleRead)
async def complete_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	payload: HarvestIn | None = None,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleRead:
	service = _service(request, db)
	try:
		_ensure_visible(await service.get_cycle(cycle_id), user)
		cycle = await service.complete_cycle(cycle_id, datetime.now(UTC), payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_cycle_read(cycle)


@router.post("/cycles/{cycle_id}/abort", response_model=CycleRead)
async def abort_cycle(
	cycle_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> CycleRead:
	service = _service(request, db)
	try:
		_ensure_visible(await service.get_cycle(cycle_id), user)
		cycle = await service.abort_cycle(cycle_id, datetime.now(UTC))
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_cycle_read(cycle)


@router.get("/modules/{module_id}/cycles", response_model=CycleListRead)
async def list_module_cycles(
	module_id: str,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*READ_ROLES)),
) -> CycleListRead:
	service = _service(request, db)
	try:
		cycles = await service.list_module_cycles(module_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	visible = [
		cycle
		for cycle in cycles
		if cycle.organization_id is None or cycle.organization_id == user.organization_id
	]
	return CycleListRead(items=[_to_cycle_read(cycle) for cycle in visible])
