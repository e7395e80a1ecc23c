"""Open an inquiry chat: live transport plus the history that precedes it."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from models.session_models import MessageKind, SessionStatus
from services.chat.api_client import ChatApiClient, ChatApiError
from services.chat.conversation_state import ConversationState
from services.chat.credential_store import CredentialStore
from services.chat.transport_session import ChatTransportSession
from utils.chat_config import ChatClientSettings


class ConsultationChat:
	"""Compose a transport session with the history endpoint for one user."""

	def __init__(self, session: ChatTransportSession, api: ChatApiClient) -> None:
		self.session = session
		self.api = api

	@classmethod
	def from_settings(
		cls,
		credentials: CredentialStore,
		settings: Optional[ChatClientSettings] = None,
	) -> "ConsultationChat":
		settings = settings or ChatClientSettings.from_env()
		session = ChatTransportSession(
			credentials,
			base_url=settings.ws_base_url,
			policy=settings.reconnect_policy,
		)
		api = ChatApiClient(credentials, base_url=settings.api_base_url, timeout=settings.http_timeout)
		return cls(session, api)

	@property
	def state(self) -> ConversationState:
		return self.session.state

	async def open(self, inquiry_id: int) -> None:
		"""Connect to the inquiry and seed the log with its stored history.

		History failures are reported through the state's error field; the
		live connection stays up.
		"""
		await self.session.connect(inquiry_id)
		if self.session.status is SessionStatus.ERRORED:
			return
		try:
			history = await self.api.get_history(inquiry_id)
		except (ChatApiError, httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
			logging.error("Loading history for inquiry %s failed: %s", inquiry_id, exc)
			self.state.error = str(exc) or "history unavailable"
			return
		if self.session.inquiry_id == inquiry_id:
			self.session.seed_messages(history)

	async def send(self, content: str, kind: MessageKind | str = MessageKind.TEXT) -> bool:
		return await self.session.send(content, kind)

	async def close(self) -> None:
		"""Disconnect the transport and release the HTTP client."""
		await self.session.disconnect()
		await self.api.close()
