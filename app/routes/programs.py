"""Grow program template routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import EDIT_ROLES, READ_ROLES, require_role
from app.auth.models import User
from app.database import get_db
from app.engine.errors import StageValidationError
from app.schemas.programs import ProgramCreate, ProgramListRead, ProgramRead
from app.services.program_service import ProgramService

router = APIRouter(prefix="/programs", tags=["programs"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, StageValidationError):
		return HTTPException(
			status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
			detail={"error": "stage_invalid", "field": exc.field, "reason": exc.reason},
		)
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected program service failure",
	)


@router.get("", response_model=ProgramListRead)
async def list_programs(
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*READ_ROLES)),
) -> ProgramListRead:
	service = ProgramService(db)
	try:
		programs = await service.list_programs(user.organization_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return ProgramListRead(items=programs)


@router.get("/{program_id}", response_model=ProgramRead)
async def get_program(
	program_id: str,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*READ_ROLES)),
) -> ProgramRead:
	service = ProgramService(db)
	try:
		return await service.get_program(program_id, user.organization_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("", response_model=ProgramRead, status_code=status.HTTP_201_CREATED)
async def create_program(
	payload: ProgramCreate,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_role(*EDIT_ROLES)),
) -> ProgramRead:
	if user.organization_id is None:
		raise HTTPException(
			status_code=status.HTTP_400_BAD_REQUEST,
			detail="Custom programs require an organization",
		)
	service = ProgramService(db)
	try:
		return await service.create_program(user.organization_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
