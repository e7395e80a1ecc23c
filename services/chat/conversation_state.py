"""Ordered message log and connectivity status observed by the UI."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from models.session_models import ChatMessage, SessionStatus

logger = logging.getLogger(__name__)

Listener = Callable[["ConversationState"], None]


class ConversationState:
	"""Append-only message log plus the status and error of its session.

	Only the transport session mutates this object; presentation code reads
	`messages`, `status` and `error` or subscribes to change notifications.
	"""

	def __init__(self, skip_duplicate_ids: bool = False) -> None:
		self.skip_duplicate_ids = skip_duplicate_ids
		self._messages: List[ChatMessage] = []
		self._status = SessionStatus.DISCONNECTED
		self._error: Optional[str] = None
		self._listeners: List[Listener] = []

	@property
	def messages(self) -> Tuple[ChatMessage, ...]:
		return tuple(self._messages)

	@property
	def status(self) -> SessionStatus:
		return self._status

	@status.setter
	def status(self, value: SessionStatus) -> None:
		if value is self._status:
			return
		self._status = value
		self._notify()

	@property
	def error(self) -> Optional[str]:
		return self._error

	@error.setter
	def error(self, value: Optional[str]) -> None:
		self._error = value
		self._notify()

	@property
	def is_connected(self) -> bool:
		return self._status is SessionStatus.CONNECTED

	def __len__(self) -> int:
		return len(self._messages)

	def __iter__(self) -> Iterator[ChatMessage]:
		return iter(tuple(self._messages))

	def reset(self) -> None:
		"""Clear the log and the error before a (re)connection."""
		self._messages = []
		self._error = None
		self._notify()

	def append(self, message: ChatMessage) -> None:
		"""Add one inbound message at the end of the log."""
		if self.skip_duplicate_ids and any(existing.id == message.id for existing in self._messages):
			logger.debug("Skipping duplicate message id=%s", message.id)
			return
		self._messages.append(message)
		self._notify()

	def replace_all(self, messages: Iterable[ChatMessage]) -> None:
		"""Swap in an externally fetched history, keeping its order."""
		self._messages = list(messages)
		self._notify()

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Register a change listener and return a callable that removes it."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def _notify(self) -> None:
		for listener in list(self._listeners):
			try:
				listener(self)
			except Exception:
				logger.exception("Conversation state listener failed")
