"""In-memory registry of chat sockets grouped by inquiry."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from fastapi import WebSocket


class ChatRoomRegistry:
	"""Track one websocket per (inquiry, user) and fan messages out to a room."""

	def __init__(self) -> None:
		self._rooms: Dict[int, Dict[int, WebSocket]] = {}

	def join(self, inquiry_id: int, user_id: int, websocket: WebSocket) -> None:
		"""Register a socket; a newer socket of the same user replaces the old one."""
		self._rooms.setdefault(inquiry_id, {})[user_id] = websocket

	def leave(self, inquiry_id: int, user_id: int, websocket: WebSocket) -> None:
		"""Drop a registration if it still refers to `websocket`."""
		room = self._rooms.get(inquiry_id)
		if room is None or room.get(user_id) is not websocket:
			return
		del room[user_id]
		if not room:
			del self._rooms[inquiry_id]

	def participants(self, inquiry_id: int) -> List[int]:
		return list(self._rooms.get(inquiry_id, {}))

	async def broadcast(self, inquiry_id: int, payload: Dict[str, Any]) -> int:
		"""Send a payload to every socket of the room; returns how many got it."""
		text = json.dumps(payload)
		delivered = 0
		for user_id, websocket in list(self._rooms.get(inquiry_id, {}).items()):
			try:
				await websocket.send_text(text)
			except Exception as exc:
				logging.error("Broadcast to user %s in inquiry %s failed: %s", user_id, inquiry_id, exc)
				continue
			delivered += 1
		return delivered
