"""Grow program template library — presets plus organization-owned programs."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.engine.stages import stages_from_documents, stages_to_documents
from app.engine.validation import validate_stage_list
from app.models.cycles import GrowProgramRecord
from app.schemas.cycles import StageSchema
from app.schemas.programs import ProgramCreate, ProgramRead
from app.services.presets import GROW_PROGRAM_PRESETS


class ProgramService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def list_programs(self, organization_id: str | None) -> list[ProgramRead]:
		programs = [self._preset_to_read(key, preset) for key, preset in GROW_PROGRAM_PRESETS.items()]
		if organization_id is None:
			return programs

		stmt = (
			select(GrowProgramRecord)
			.where(GrowProgramRecord.organization_id == organization_id)
			.order_by(GrowProgramRecord.created_at.desc())
		)
		rows = await self.db.execute(stmt)
		programs.extend(self._record_to_read(record) for record in rows.scalars().all())
		return programs

	async def get_program(self, program_id: str, organization_id: str | None = None) -> ProgramRead:
		preset = GROW_PROGRAM_PRESETS.get(program_id)
		if preset is not None:
			return self._preset_to_read(program_id, preset)

		try:
			record_id = uuid.UUID(program_id)
		except ValueError as exc:
			raise LookupError(f"Program {program_id} not found") from exc

		row = await self.db.execute(select(GrowProgramRecord).where(GrowProgramRecord.id == record_id))
		record = row.scalar_one_or_none()
		if record is None or (organization_id is not None and record.organization_id != organization_id):
			raise LookupError(f"Program {program_id} not found")
		return self._record_to_read(record)

	async def create_program(self, organization_id: str, payload: ProgramCreate) -> ProgramRead:
		stages = tuple(stage.to_domain() for stage in payload.stages)
		validate_stage_list(stages)
		last_day = max(stage.day_end for stage in stages)
		if last_day > payload.total_days:
			raise ValueError(f"stages run to day {last_day}, past total_days={payload.total_days}")

		record = GrowProgramRecord(
			organization_id=organization_id,
			name=payload.name,
			crop_type=payload.crop_type,
			description=payload.description,
			total_days=payload.total_days,
			stages=stages_to_documents(stages),
			image_emoji=payload.image_emoji,
		)
		self.db.add(record)
		await self.db.flush()
		await self.db.refresh(record)
		return self._record_to_read(record)

	@staticmethod
	def _preset_to_read(key: str, preset: dict[str, Any]) -> ProgramRead:
		return ProgramRead(
			id=key,
			name=preset["name"],
			crop_type=preset["crop_type"],
			description=preset.get("description"),
			total_days=preset["total_days"],
			stages=[StageSchema.from_domain(stage) for stage in stages_from_documents(preset["stages"])],
			is_preset=True,
			image_emoji=preset.get("image_emoji"),
		)

	@staticmethod
	def _record_to_read(record: GrowProgramRecord) -> ProgramRead:
		return ProgramRead(
			id=str(record.id),
			name=record.name,
			crop_type=record.crop_type,
			description=record.description,
			total_days=record.total_days,
			stages=[StageSchema.from_domain(stage) for stage in stages_from_documents(record.stages)],
			is_preset=False,
			organization_id=record.organization_id,
			image_emoji=record.image_emoji,
			created_at=record.created_at,
			updated_at=record.updated_at,
		)
