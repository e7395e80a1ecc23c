"""WebSocket endpoint for inquiry chat."""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket
from starlette.websockets import WebSocketDisconnect

from dal.inquiry_dal import InquiryDAL
from dal.message_dal import MessageDAL
from models.session_models import INVALID_PAYLOAD
from services.realtime.room_registry import ChatRoomRegistry
from services.realtime.ws_session import ChatSessionHandler, Participant

router = APIRouter()


def _require_room_registry(websocket: WebSocket) -> ChatRoomRegistry:
	registry = getattr(websocket.app.state, "room_registry", None)
	if registry is None:
		raise HTTPException(status_code=500, detail="Room registry unavailable")
	return registry


async def _reject(websocket: WebSocket, reason: str) -> None:
	await websocket.close(code=INVALID_PAYLOAD, reason=reason)


@router.websocket("/ws/chat")
async def chat_socket(
	websocket: WebSocket,
	token: Optional[str] = Query(None),
	inquiry_id: Optional[int] = Query(None, alias="inquiryId"),
	registry: ChatRoomRegistry = Depends(_require_room_registry),
):
	"""Authenticate from the query string, then relay chat frames for one inquiry."""
	await websocket.accept()
	if not token or inquiry_id is None:
		await _reject(websocket, "missing required parameters")
		return

	db_initializer = websocket.app.state.db_initializer
	inquiry_dal = InquiryDAL(db_initializer)
	user = await inquiry_dal.find_user_by_token(token)
	if user is None:
		await _reject(websocket, "unknown user")
		return
	if not await inquiry_dal.can_access_inquiry(inquiry_id, user.id):
		await _reject(websocket, "no access to this inquiry")
		return

	participant = Participant(user_id=user.id, inquiry_id=inquiry_id)
	registry.join(inquiry_id, user.id, websocket)
	logging.info("Chat connection established: user=%s inquiry=%s", user.id, inquiry_id)
	handler = ChatSessionHandler(registry, MessageDAL(db_initializer))
	try:
		await websocket.send_text(json.dumps({"type": "connected", "message": "connected"}))
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			await handler.handle(websocket, participant, raw)
	finally:
		registry.leave(inquiry_id, user.id, websocket)
		logging.info("Chat connection closed: user=%s inquiry=%s", user.id, inquiry_id)
