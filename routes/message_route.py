"""FastAPI routes for inquiry message history."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from controllers.message_controller import get_history

router = APIRouter(prefix="/api/messages")


class MessagePayload(BaseModel):
	id: int
	inquiry_id: int
	sender_id: int
	sender_name: str
	sender_role: str
	type: str
	content: str
	created_at: Optional[datetime] = None


@router.get("/inquiry/{inquiry_id}", response_model=List[MessagePayload])
async def list_messages_route(request: Request, inquiry_id: int):
	"""Return all messages of an inquiry, used to seed the chat view."""
	try:
		return await get_history(request, inquiry_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/inquiry/{inquiry_id}/new", response_model=List[MessagePayload])
async def list_new_messages_route(request: Request, inquiry_id: int, after_id: int = Query(..., alias="afterId")):
	"""Return messages newer than `afterId`, a polling fallback for the websocket."""
	try:
		return await get_history(request, inquiry_id, after_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
