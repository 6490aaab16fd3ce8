"""WebSocket live feed route — stage commits and lifecycle changes of one cycle."""

from __future__ import annotations

import asyncio
import json
import uuid

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy import select

from app.auth.dependencies import READ_ROLES, resolve_user_from_token
from app.auth.models import User
from app.database import async_session_factory
from app.models.cycles import GrowCycleRecord
from app.services.cycle_store import live_channel

router = APIRouter(tags=["websocket"])


async def _authenticate_token(token: str) -> User | None:
	async with async_session_factory() as session:
		try:
			user = await resolve_user_from_token(session, token)
		except HTTPException:
			return None
	if user.role not in READ_ROLES:
		return None
	return user


async def _cycle_visible(cycle_id: uuid.UUID, user: User) -> bool:
	async with async_session_factory() as session:
		row = await session.execute(
			select(GrowCycleRecord.organization_id).where(GrowCycleRecord.id == cycle_id)
		)
		found = row.one_or_none()
	if found is None:
		return False
	organization_id = found[0]
	return organization_id is None or organization_id == user.organization_id


@router.websocket("/ws/cycles/{cycle_id}/live")
async def ws_cycle_feed(websocket: WebSocket, cycle_id: str) -> None:
	await websocket.accept()
	try:
		cycle_uuid = uuid.UUID(cycle_id)
	except ValueError:
		await websocket.send_json({"error": "invalid_cycle_id"})
		await websocket.close(code=1008)
		return

	token = websocket.query_params.get("token")
	if token is None or not token.strip():
		await websocket.send_json({"error": "auth_required"})
		await websocket.close(code=1008)
		return
	user = await _authenticate_token(token.strip())
	if user is None:
		await websocket.send_json({"error": "auth_invalid"})
		await websocket.close(code=1008)
		return

	if not await _cycle_visible(cycle_uuid, user):
		await websocket.send_json({"error": "cycle_not_found"})
		await websocket.close(code=1008)
		return

	redis_client = getattr(websocket.app.state, "redis", None)
	if redis_client is None:
		await websocket.send_json({"error": "redis_unavailable"})
		await websocket.close(code=1011)
		return

	channel = live_channel(cycle_uuid)
	pubsub = redis_client.pubsub()
	await pubsub.subscribe(channel)

	try:
		while True:
			message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
			if message is not None and message.get("type") == "message":
				payload = message.get("data")
				if isinstance(payload, bytes):
					payload = payload.decode("utf-8")
				if isinstance(payload, str):
					try:
						await websocket.send_json(json.loads(payload))
					except json.JSONDecodeError:
						await websocket.send_text(payload)
			await asyncio.sleep(0.05)
	except WebSocketDisconnect:
		return
	finally:
		await pubsub.unsubscribe(channel)
		await pubsub.close()
