"""Pydantic schemas for grow program templates."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.cycles import StageSchema


class ProgramCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	crop_type: str = Field(min_length=1, max_length=100)
	description: str | None = Field(default=None, max_length=2048)
	total_days: int = Field(gt=0)
	stages: list[StageSchema] = Field(min_length=1)
	image_emoji: str | None = Field(default=None, max_length=16)


class ProgramRead(BaseModel):
	id: str
	name: str
	crop_type: str
	description: str | None = None
	total_days: int
	stages: list[StageSchema]
	is_preset: bool
	organization_id: str | None = None
	image_emoji: str | None = None
	created_at: datetime | None = None
	updated_at: datetime | None = None


class ProgramListRead(BaseModel):
	items: list[ProgramRead]
