from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from app.models.cycles import GrowProgramRecord
from app.services.presets import GROW_PROGRAM_PRESETS
from app.services.program_service import ProgramService
from tests.factories import TEST_ORG


def _program_payload(**changes: Any) -> dict[str, Any]:
	payload: dict[str, Any] = {
		"name": "Pea shoots",
		"crop_type": "microgreens",
		"total_days": 10,
		"stages": [
			{"type": "seeding", "name": "Seeding", "day_start": 1, "day_end": 2},
			{
				"type": "growth",
				"name": "Growth",
				"day_start": 3,
				"day_end": 10,
				"schedules": [
					{"target_subtype": "pump", "duration_seconds": 45, "frequency_seconds": 21600}
				],
				"lighting": {"enabled": True, "on_hour": 6, "off_hour": 20},
			},
		],
	}
	payload.update(changes)
	return payload


def _empty_rows() -> MagicMock:
	result = MagicMock()
	result.scalars.return_value.all.return_value = []
	return result


def test_presets_cover_every_stage_type() -> None:
	preset = GROW_PROGRAM_PRESETS["microgreens_standard"]
	types = [stage["type"] for stage in preset["stages"]]
	assert types == [
		"seeding",
		"germination",
		"blackout",
		"light_exposure",
		"growth",
		"pre_harvest",
		"harvest",
	]
	assert max(stage["day_end"] for stage in preset["stages"]) == preset["total_days"]


@pytest.mark.asyncio
async def test_list_programs_includes_presets(client: AsyncClient, fake_db_session: object) -> None:
	fake_db_session.execute.return_value = _empty_rows()

	response = await client.get("/api/v1/programs")

	assert response.status_code == 200
	items = response.json()["items"]
	assert items[0]["id"] == "microgreens_standard"
	assert items[0]["is_preset"] is True
	assert len(items[0]["stages"]) == 7


@pytest.mark.asyncio
async def test_get_preset_and_unknown_program(client: AsyncClient) -> None:
	response = await client.get("/api/v1/programs/microgreens_standard")
	assert response.status_code == 200
	assert response.json()["total_days"] == 12

	missing = await client.get("/api/v1/programs/no-such-program")
	assert missing.status_code == 404


@pytest.mark.asyncio
async def test_create_program(client: AsyncClient, fake_db_session: object) -> None:
	def assign_defaults(record: GrowProgramRecord) -> None:
		record.id = uuid.uuid4()
		record.created_at = datetime.now(UTC)
		record.updated_at = record.created_at

	fake_db_session.refresh.side_effect = assign_defaults

	response = await client.post("/api/v1/programs", json=_program_payload())

	assert response.status_code == 201
	body = response.json()
	assert body["is_preset"] is False
	assert body["organization_id"] == TEST_ORG
	assert [stage["type"] for stage in body["stages"]] == ["seeding", "growth"]
	record = fake_db_session.add.call_args.args[0]
	assert record.stages[1]["lighting"] == {"enabled": True, "on_hour": 6, "off_hour": 20}


@pytest.mark.asyncio
async def test_create_program_rejects_invalid_stage(client: AsyncClient, fake_db_session: object) -> None:
	payload = _program_payload()
	payload["stages"][1]["day_start"] = 12

	response = await client.post("/api/v1/programs", json=payload)

	assert response.status_code == 422
	assert response.json()["detail"]["field"] == "stages[1].day_end"
	fake_db_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_create_program_rejects_stages_past_total_days(client: AsyncClient) -> None:
	response = await client.post("/api/v1/programs", json=_program_payload(total_days=8))
	assert response.status_code == 400


@pytest.mark.asyncio
async def test_service_hides_other_organizations_program(fake_db_session: object) -> None:
	record = GrowProgramRecord(
		id=uuid.uuid4(),
		organization_id="org-other",
		name="Basil",
		crop_type="herbs",
		total_days=30,
		stages=[],
	)
	result = MagicMock()
	result.scalar_one_or_none.return_value = record
	fake_db_session.execute.return_value = result

	with pytest.raises(LookupError):
		await ProgramService(fake_db_session).get_program(str(record.id), TEST_ORG)  # type: ignore[arg-type]
