"""Websocket transport for one inquiry chat, with transparent reconnection."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Tuple
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed

from models.session_models import (
	ABNORMAL_CLOSURE,
	NORMAL_CLOSURE,
	NORMAL_CLOSURE_REASON,
	ChatMessage,
	MessageKind,
	SessionStatus,
)
from services.chat.conversation_state import ConversationState
from services.chat.credential_store import CredentialStore
from services.chat.reconnect_policy import ReconnectPolicy
from utils.chat_config import DEFAULT_WS_BASE_URL

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]

NOT_AUTHENTICATED = "not authenticated"
CONNECTION_CLOSED = "connection closed"
CONNECTION_ERROR = "connection error"
UNKNOWN_SERVER_ERROR = "unknown error"
RECONNECT_EXHAUSTED = "reconnect attempts exhausted"


def build_chat_url(base_url: str, token: str, inquiry_id: int) -> str:
	"""Return the websocket address carrying the token and inquiry id."""
	query = urlencode({"token": token, "inquiryId": inquiry_id})
	return f"{base_url.rstrip('/')}/ws/chat?{query}"


def _close_details(exc: ConnectionClosed) -> Tuple[int, str]:
	if exc.rcvd is not None:
		return exc.rcvd.code, exc.rcvd.reason
	return ABNORMAL_CLOSURE, ""


class ChatTransportSession:
	"""Own at most one live chat connection, bound to a single inquiry.

	`connect`, `disconnect` and `send` run on the event loop that owns the
	session. Every connect/disconnect bumps an epoch; close events and
	delayed reconnections carry the epoch they were created under and are
	dropped once it no longer matches, so a superseded connection can never
	reconnect or overwrite the state of its successor.

	Args:
		credentials: Source of the bearer token, read on every connect.
		base_url: Websocket origin, e.g. ``ws://localhost:8081/hi``.
		state: Conversation state to mutate; a fresh one by default.
		policy: Reconnection schedule; fixed three seconds, unlimited by default.
		connector: Coroutine factory opening a connection for a URL;
			defaults to ``websockets.connect``.
	"""

	def __init__(
		self,
		credentials: CredentialStore,
		base_url: str = DEFAULT_WS_BASE_URL,
		state: Optional[ConversationState] = None,
		policy: Optional[ReconnectPolicy] = None,
		connector: Optional[Connector] = None,
	) -> None:
		self.credentials = credentials
		self.base_url = base_url.rstrip("/")
		self.state = state if state is not None else ConversationState()
		self.policy = policy if policy is not None else ReconnectPolicy()
		self._connector: Connector = connector or websockets.connect
		self._connection: Any = None
		self._reader: Optional[asyncio.Task] = None
		self._reconnect_task: Optional[asyncio.Task] = None
		self._inquiry_id: Optional[int] = None
		self._epoch = 0
		self._attempts = 0
		self._lock = asyncio.Lock()

	async def __aenter__(self) -> "ChatTransportSession":
		return self

	async def __aexit__(self, *args) -> None:
		await self.disconnect()

	@property
	def inquiry_id(self) -> Optional[int]:
		return self._inquiry_id

	@property
	def status(self) -> SessionStatus:
		return self.state.status

	@property
	def error(self) -> Optional[str]:
		return self.state.error

	@property
	def is_connected(self) -> bool:
		return self.state.is_connected

	async def connect(self, inquiry_id: int) -> None:
		"""Start a connection for `inquiry_id` without waiting for it to open.

		A no-op when already connected (or connecting) to the same inquiry.
		A live connection to another inquiry is closed normally first.
		Overlapping connect/disconnect calls take effect in call order.
		"""
		async with self._lock:
			await self._open(inquiry_id, reset_attempts=True)

	async def disconnect(self) -> None:
		"""Close normally, cancel any pending reconnection and unbind."""
		async with self._lock:
			await self._release()
			self.state.status = SessionStatus.DISCONNECTED
			self._inquiry_id = None

	async def send(self, content: str, kind: MessageKind | str = MessageKind.TEXT) -> bool:
		"""Transmit one chat message; returns False instead of raising when offline."""
		connection = self._connection
		if connection is None or self.state.status is not SessionStatus.CONNECTED:
			self.state.error = CONNECTION_CLOSED
			return False

		frame = json.dumps({"type": "message", "content": content, "msgType": MessageKind(kind).value})
		try:
			await connection.send(frame)
		except ConnectionClosed as exc:
			logger.warning("Chat send failed for inquiry %s: %s", self._inquiry_id, exc)
			self.state.error = CONNECTION_CLOSED
			return False
		return True

	def seed_messages(self, messages: Iterable[ChatMessage]) -> None:
		"""Replace the log with history fetched out of band."""
		self.state.replace_all(messages)

	async def _open(self, inquiry_id: int, reset_attempts: bool = False) -> None:
		"""Bind to `inquiry_id` and start its reader; the caller holds the lock."""
		if (
			self._inquiry_id == inquiry_id
			and self.state.status in (SessionStatus.CONNECTING, SessionStatus.CONNECTED)
			and self._reader is not None
			and not self._reader.done()
		):
			return

		await self._release()

		token = self.credentials.get_credential()
		if not token:
			logger.warning("Cannot open chat for inquiry %s: no credential", inquiry_id)
			self._inquiry_id = None
			self.state.status = SessionStatus.ERRORED
			self.state.error = NOT_AUTHENTICATED
			return

		if reset_attempts:
			self._attempts = 0
		self._epoch += 1
		epoch = self._epoch
		self._inquiry_id = inquiry_id
		self.state.reset()
		self.state.status = SessionStatus.CONNECTING
		logger.info("Opening chat connection for inquiry %s", inquiry_id)
		url = build_chat_url(self.base_url, token, inquiry_id)
		self._reader = asyncio.create_task(self._run(epoch, inquiry_id, url))

	async def _release(self) -> None:
		"""Invalidate the current epoch and tear down its connection."""
		self._epoch += 1
		self._cancel_reconnect()
		connection, self._connection = self._connection, None
		reader, self._reader = self._reader, None

		if connection is not None:
			try:
				await connection.close(code=NORMAL_CLOSURE, reason=NORMAL_CLOSURE_REASON)
			except Exception as exc:
				logger.warning("Error while closing chat connection: %s", exc)

		if reader is not None and reader is not asyncio.current_task():
			if not reader.done():
				reader.cancel()
			await asyncio.gather(reader, return_exceptions=True)

	def _cancel_reconnect(self) -> None:
		task, self._reconnect_task = self._reconnect_task, None
		if task is not None and task is not asyncio.current_task() and not task.done():
			task.cancel()

	async def _run(self, epoch: int, inquiry_id: int, url: str) -> None:
		try:
			connection = await self._connector(url)
		except Exception as exc:
			self._on_transport_error(epoch, exc)
			self._on_close(epoch, inquiry_id, ABNORMAL_CLOSURE, str(exc))
			return

		if epoch != self._epoch:
			logger.debug("Closing superseded chat connection for inquiry %s", inquiry_id)
			await connection.close(code=NORMAL_CLOSURE, reason=NORMAL_CLOSURE_REASON)
			return

		self._connection = connection
		self.state.status = SessionStatus.CONNECTED
		logger.info("Chat connection open for inquiry %s", inquiry_id)

		code, reason = ABNORMAL_CLOSURE, ""
		try:
			while True:
				raw = await connection.recv()
				if epoch != self._epoch:
					break
				self._handle_frame(raw)
		except ConnectionClosed as exc:
			code, reason = _close_details(exc)
			if code == ABNORMAL_CLOSURE:
				self._on_transport_error(epoch, exc)
		except OSError as exc:
			self._on_transport_error(epoch, exc)
		self._on_close(epoch, inquiry_id, code, reason)

	def _handle_frame(self, raw: Any) -> None:
		try:
			frame = json.loads(raw)
		except (TypeError, ValueError):
			logger.debug("Ignoring non-JSON chat frame: %r", raw)
			return
		if not isinstance(frame, dict):
			logger.debug("Ignoring chat frame that is not an object: %r", frame)
			return

		frame_type = frame.get("type")
		if frame_type == "message":
			data = frame.get("data")
			if not isinstance(data, dict):
				logger.debug("Ignoring message frame without data")
				return
			try:
				message = ChatMessage.from_payload(data)
			except (KeyError, TypeError, ValueError) as exc:
				logger.debug("Ignoring malformed message payload: %s", exc)
				return
			self.state.append(message)
		elif frame_type == "error":
			self.state.error = frame.get("message") or UNKNOWN_SERVER_ERROR
		elif frame_type == "connected":
			self._attempts = 0
			logger.debug("Server acknowledged chat connection for inquiry %s", self._inquiry_id)
		else:
			logger.debug("Ignoring chat frame of type %r", frame_type)

	def _on_transport_error(self, epoch: int, exc: BaseException) -> None:
		if epoch != self._epoch:
			return
		logger.warning("Chat transport error for inquiry %s: %s", self._inquiry_id, exc)
		self.state.status = SessionStatus.ERRORED
		self.state.error = CONNECTION_ERROR

	def _on_close(self, epoch: int, inquiry_id: int, code: int, reason: str) -> None:
		if epoch != self._epoch:
			logger.debug("Ignoring close of superseded connection for inquiry %s", inquiry_id)
			return

		logger.info("Chat connection for inquiry %s closed: code=%s reason=%r", inquiry_id, code, reason)
		self._connection = None
		self._reader = None
		self.state.status = SessionStatus.DISCONNECTED
		if code == NORMAL_CLOSURE or self._inquiry_id != inquiry_id:
			return
		self._schedule_reconnect(epoch, inquiry_id)

	def _schedule_reconnect(self, epoch: int, inquiry_id: int) -> None:
		self._attempts += 1
		delay = self.policy.next_delay(self._attempts)
		if delay is None:
			logger.warning(
				"Giving up on inquiry %s after %d reconnection attempts", inquiry_id, self._attempts - 1
			)
			self.state.error = RECONNECT_EXHAUSTED
			return
		logger.info("Reconnecting to inquiry %s in %.1fs (attempt %d)", inquiry_id, delay, self._attempts)
		self._reconnect_task = asyncio.create_task(self._reconnect_later(epoch, inquiry_id, delay))

	async def _reconnect_later(self, epoch: int, inquiry_id: int, delay: float) -> None:
		await asyncio.sleep(delay)
		async with self._lock:
			if epoch != self._epoch or self._inquiry_id != inquiry_id:
				return
			self._reconnect_task = None
			await self._open(inquiry_id)
