"""Message history helpers for the chat HTTP API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request

from dal.inquiry_dal import InquiryDAL
from dal.message_dal import MessageDAL
from models.inquiry_records import UserRecord


async def authorize(request: Request, inquiry_id: int) -> UserRecord:
	"""Resolve the bearer token and check the caller takes part in the inquiry."""
	header = request.headers.get("authorization") or ""
	scheme, _, token = header.partition(" ")
	if scheme.lower() != "bearer" or not token.strip():
		raise HTTPException(status_code=401, detail="Missing bearer token")

	inquiry_dal = InquiryDAL(request.app.state.db_initializer)
	user = await inquiry_dal.find_user_by_token(token.strip())
	if user is None:
		raise HTTPException(status_code=401, detail="Unknown token")
	if not await inquiry_dal.can_access_inquiry(inquiry_id, user.id):
		raise HTTPException(status_code=403, detail="No access to this inquiry")
	return user


async def get_history(request: Request, inquiry_id: int, after_id: Optional[int] = None) -> List[Dict[str, Any]]:
	"""Return the inquiry's messages, optionally only those after `after_id`."""
	await authorize(request, inquiry_id)
	message_dal = MessageDAL(request.app.state.db_initializer)
	if after_id is None:
		messages = await message_dal.list_messages(inquiry_id)
	else:
		messages = await message_dal.list_messages_after(inquiry_id, after_id)
	return [message.to_payload() for message in messages]
