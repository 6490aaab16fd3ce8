from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from httpx import AsyncClient

from app.engine.editor import StageEditResult
from app.engine.errors import (
	CycleDocumentError,
	CycleNotFoundError,
	DeploymentError,
	PersistenceError,
	StageValidationError,
	UnknownStageTypeError,
)
from app.engine.stages import DailyLogEntry, GrowCycle, Stage
from app.models.enums import CycleStatusEnum, DeploymentStatusEnum, StageTypeEnum, UserRoleEnum
from app.schemas.cycles import StageSchema
from app.services.cycle_service import CycleService, CycleTransition
from tests.factories import make_cycle

STARTED = datetime(2025, 3, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def cycle(three_stages: tuple[Stage, ...]) -> GrowCycle:
	return make_cycle(three_stages, started_at=STARTED, total_days=10)


@pytest.fixture
def patch_get_cycle(monkeypatch: pytest.MonkeyPatch, cycle: GrowCycle) -> None:
	async def fake_get(self: CycleService, _cycle_id: uuid.UUID) -> GrowCycle:
		return cycle

	monkeypatch.setattr(CycleService, "get_cycle", fake_get)


def _stage_body(stage: Stage, **changes: Any) -> dict[str, Any]:
	body = StageSchema.from_domain(stage).model_dump(mode="json")
	body.update(changes)
	return body


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_get_cycle_overview_with_now_override(client: AsyncClient, cycle: GrowCycle) -> None:
	now = (STARTED + timedelta(days=3)).isoformat()

	response = await client.get(f"/api/v1/cycles/{cycle.id}/overview", params={"now": now})

	assert response.status_code == 200
	body = response.json()
	assert body["current_day"] == 4
	assert body["progress_percent"] == 40
	assert body["active_stage"]["type"] == "growth"
	assert body["active_stage"]["icon"] == "🌿"
	assert [item["status"] for item in body["timeline"]] == ["completed", "current", "upcoming"]


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_get_cycle_record(client: AsyncClient, cycle: GrowCycle) -> None:
	response = await client.get(f"/api/v1/cycles/{cycle.id}")

	assert response.status_code == 200
	body = response.json()
	assert body["id"] == str(cycle.id)
	assert [stage["type"] for stage in body["stages"]] == ["seeding", "growth", "harvest"]
	assert body["version"] == 1


@pytest.mark.asyncio
async def test_get_missing_cycle_returns_404(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
	async def fake_get(self: CycleService, cycle_id: uuid.UUID) -> GrowCycle:
		raise CycleNotFoundError(cycle_id)

	monkeypatch.setattr(CycleService, "get_cycle", fake_get)

	response = await client.get(f"/api/v1/cycles/{uuid.uuid4()}")
	assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_cycle_of_other_organization_is_hidden(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	foreign = replace(cycle, organization_id="org-other")

	async def fake_get(self: CycleService, _cycle_id: uuid.UUID) -> GrowCycle:
		return foreign

	monkeypatch.setattr(CycleService, "get_cycle", fake_get)

	response = await client.get(f"/api/v1/cycles/{cycle.id}")
	assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_update_active_stage_reports_deployment(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	captured: dict[str, Any] = {}

	async def fake_submit(self: CycleService, cycle_id: uuid.UUID, stage: Stage, now: datetime) -> StageEditResult:
		captured["stage"] = stage
		committed = cycle.with_stages((cycle.stages[0], stage, cycle.stages[2]), version=2)
		return StageEditResult(
			cycle=committed,
			stage=stage,
			was_active=True,
			deployment=DeploymentStatusEnum.deployed,
		)

	monkeypatch.setattr(CycleService, "submit_stage_edit", fake_submit)

	response = await client.put(
		f"/api/v1/cycles/{cycle.id}/stages/growth",
		json=_stage_body(cycle.stages[1], day_end=9, name="Growth (long)"),
	)

	assert response.status_code == 200
	body = response.json()
	assert body["saved"] is True
	assert body["deployment"] == "deployed"
	assert body["deployment_error"] is None
	assert body["cycle"]["version"] == 2
	assert captured["stage"].name == "Growth (long)"


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_update_stage_saved_but_device_sync_failed(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	async def fake_submit(self: CycleService, cycle_id: uuid.UUID, stage: Stage, now: datetime) -> StageEditResult:
		return StageEditResult(
			cycle=cycle,
			stage=stage,
			was_active=True,
			deployment=DeploymentStatusEnum.failed,
			deployment_error=DeploymentError("module-1", "deployment timed out"),
		)

	monkeypatch.setattr(CycleService, "submit_stage_edit", fake_submit)

	response = await client.put(f"/api/v1/cycles/{cycle.id}/stages/growth", json=_stage_body(cycle.stages[1]))

	assert response.status_code == 200
	body = response.json()
	assert body["saved"] is True
	assert body["deployment"] == "failed"
	assert body["deployment_error"] == {
		"device_id": "module-1",
		"reason": "deployment timed out",
		"retryable": True,
	}


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_update_stage_path_body_mismatch(client: AsyncClient, cycle: GrowCycle) -> None:
	response = await client.put(f"/api/v1/cycles/{cycle.id}/stages/harvest", json=_stage_body(cycle.stages[1]))
	assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
@pytest.mark.parametrize(
	("error", "status_code"),
	[
		(StageValidationError("day_end", "must not be before day_start"), 422),
		(UnknownStageTypeError("growth"), 400),
		(PersistenceError("changed", conflict=True), 409),
		(PersistenceError("stage commit timed out"), 503),
		(ValueError("cycle is completed; stages can no longer be edited"), 400),
	],
)
async def test_update_stage_error_mapping(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
	error: Exception,
	status_code: int,
) -> None:
	async def fake_submit(self: CycleService, *_args: object) -> StageEditResult:
		raise error

	monkeypatch.setattr(CycleService, "submit_stage_edit", fake_submit)

	response = await client.put(f"/api/v1/cycles/{cycle.id}/stages/growth", json=_stage_body(cycle.stages[1]))

	assert response.status_code == status_code
	if isinstance(error, StageValidationError):
		assert response.json()["detail"] == {
			"error": "stage_invalid",
			"field": "day_end",
			"reason": "must not be before day_start",
		}


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_viewer_cannot_edit_stage(
	client: AsyncClient,
	cycle: GrowCycle,
	current_user_stub: dict[str, Any],
) -> None:
	current_user_stub["role"] = UserRoleEnum.viewer

	response = await client.put(f"/api/v1/cycles/{cycle.id}/stages/growth", json=_stage_body(cycle.stages[1]))

	assert response.status_code == 403
	assert response.json()["detail"]["error"] == "forbidden"


@pytest.mark.asyncio
async def test_start_cycle_endpoint(client: AsyncClient, cycle: GrowCycle, monkeypatch: pytest.MonkeyPatch) -> None:
	async def fake_start(self: CycleService, payload: object, organization_id: str | None, now: datetime) -> CycleTransition:
		return CycleTransition(
			cycle=cycle,
			day=1,
			stage=cycle.stages[0],
			transitioned=True,
			deployment=DeploymentStatusEnum.deployed,
		)

	monkeypatch.setattr(CycleService, "start_cycle", fake_start)

	response = await client.post(
		"/api/v1/cycles",
		json={"program_id": "microgreens_standard", "module_id": "module-1", "pin_bindings": {"pump": 17}},
	)

	assert response.status_code == 201
	body = response.json()
	assert body["current_stage"] == "seeding"
	assert body["deployment"] == "deployed"


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_pause_terminal_cycle_is_rejected(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	async def fake_pause(self: CycleService, cycle_id: uuid.UUID, now: datetime) -> GrowCycle:
		raise ValueError("cannot pause a cycle that is completed")

	monkeypatch.setattr(CycleService, "pause_cycle", fake_pause)

	response = await client.post(f"/api/v1/cycles/{cycle.id}/pause")
	assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_abort_with_device_failure_returns_502(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	async def fake_abort(self: CycleService, cycle_id: uuid.UUID, now: datetime) -> GrowCycle:
		raise DeploymentError("module-1", "device channel unavailable")

	monkeypatch.setattr(CycleService, "abort_cycle", fake_abort)

	response = await client.post(f"/api/v1/cycles/{cycle.id}/abort")
	assert response.status_code == 502
	assert response.json()["detail"]["error"] == "device_sync_failed"


@pytest.mark.asyncio
async def test_list_module_cycles_filters_organization(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	finished = replace(cycle, id=uuid.uuid4(), status=CycleStatusEnum.completed)
	foreign = replace(cycle, id=uuid.uuid4(), organization_id="org-other")

	async def fake_list(self: CycleService, _module_id: str) -> list[GrowCycle]:
		return [cycle, finished, foreign]

	monkeypatch.setattr(CycleService, "list_module_cycles", fake_list)

	response = await client.get("/api/v1/modules/module-1/cycles")

	assert response.status_code == 200
	ids = [item["id"] for item in response.json()["items"]]
	assert ids == [str(cycle.id), str(finished.id)]


@pytest.mark.asyncio
async def test_cycles_openapi_contract(client: AsyncClient) -> None:
	response = await client.get("/openapi.json")
	assert response.status_code == 200
	paths = response.json()["paths"]
	assert "/api/v1/cycles/{cycle_id}/overview" in paths
	assert "/api/v1/cycles/{cycle_id}/stages/{stage_type}" in paths
	assert "/api/v1/cycles/{cycle_id}/evaluate" in paths
	assert "/api/v1/modules/{module_id}/cycles" in paths
	assert "/api/v1/programs" in paths


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
	response = await client.get("/health")
	assert response.status_code == 200
	assert response.json()["service"] == "growcycle"


@pytest.mark.asyncio
async def test_corrupt_cycle_document_returns_500(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
	cycle_id = uuid.uuid4()

	async def fake_get(self: CycleService, _cycle_id: uuid.UUID) -> GrowCycle:
		raise CycleDocumentError(cycle_id, "invalid literal for int() with base 10: 'x'")

	monkeypatch.setattr(CycleService, "get_cycle", fake_get)

	response = await client.get(f"/api/v1/cycles/{cycle_id}/overview")

	assert response.status_code == 500
	assert response.json()["detail"] == {"error": "cycle_document_invalid", "cycle_id": str(cycle_id)}


@pytest.mark.asyncio
@pytest.mark.usefixtures("patch_get_cycle")
async def test_cycle_record_includes_daily_log(
	client: AsyncClient,
	cycle: GrowCycle,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	logged = replace(
		cycle,
		daily_log=(DailyLogEntry(day=1, date=STARTED.date(), stage=StageTypeEnum.seeding),),
	)

	async def fake_get(self: CycleService, _cycle_id: uuid.UUID) -> GrowCycle:
		return logged

	monkeypatch.setattr(CycleService, "get_cycle", fake_get)

	response = await client.get(f"/api/v1/cycles/{cycle.id}")

	assert response.json()["daily_log"] == [
		{"day": 1, "date": "2025-03-01", "stage": "seeding", "notes": None}
	]
