"""Dispatch inbound chat frames for one authenticated participant."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from fastapi import WebSocket

from dal.message_dal import MessageDAL
from models.session_models import MessageKind
from services.realtime.room_registry import ChatRoomRegistry


@dataclass(frozen=True)
class Participant:
	"""Identity bound to a websocket after the handshake checks."""

	user_id: int
	inquiry_id: int


class ChatSessionHandler:
	"""Persist chat messages and broadcast them to the inquiry room."""

	def __init__(self, registry: ChatRoomRegistry, message_dal: MessageDAL) -> None:
		self.registry = registry
		self.message_dal = message_dal

	async def handle(self, websocket: WebSocket, participant: Participant, raw: str) -> None:
		"""Process a single inbound websocket frame."""
		try:
			payload = json.loads(raw)
			if not isinstance(payload, dict):
				raise ValueError("Payload must be a JSON object.")
			message_type = payload.get("type") or "message"
			if message_type == "message":
				await self._post_message(participant, payload)
		except Exception as exc:
			await self._send_error(websocket, f"message handling failed: {exc}")

	async def _post_message(self, participant: Participant, payload: Dict[str, Any]) -> None:
		content = payload.get("content")
		if not isinstance(content, str) or not content:
			raise ValueError("Message content is required.")
		kind = MessageKind(payload.get("msgType") or MessageKind.TEXT.value)
		message = await self.message_dal.save_message(
			participant.inquiry_id, participant.user_id, kind, content
		)
		await self.registry.broadcast(participant.inquiry_id, {"type": "message", "data": message.to_payload()})

	async def _send_error(self, websocket: WebSocket, detail: str) -> None:
		await websocket.send_text(json.dumps({"type": "error", "message": detail}))
