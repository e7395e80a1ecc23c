"""Bearer token and current-user holder for the chat client."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional


class CredentialStore:
	"""Hold the authenticated user's token, optionally persisted to a file.

	The transport session only reads from this store through
	`get_credential()`; login flows elsewhere write to it with `login()`.
	Only the token is persisted; the user identity lives in memory.
	"""

	def __init__(self, token: Optional[str] = None, token_path: Optional[Path | str] = None) -> None:
		self.token_path = Path(token_path).expanduser() if token_path else None
		self._user: Optional[Dict[str, Any]] = None
		self._token = token if token is not None else self._load_token()

	@property
	def is_authenticated(self) -> bool:
		return bool(self._token)

	@property
	def user(self) -> Optional[Dict[str, Any]]:
		"""Identity of the logged-in user (id, name, role), if known."""
		return self._user

	def get_credential(self) -> Optional[str]:
		"""Return the current token, or None when nobody is logged in."""
		return self._token or None

	def set_token(self, token: Optional[str]) -> None:
		self._token = token
		self._persist(token)

	def set_user(self, user: Optional[Dict[str, Any]]) -> None:
		self._user = dict(user) if user is not None else None

	def login(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
		"""Store the token and identity returned by a successful login."""
		self.set_token(token)
		self.set_user(user)

	def logout(self) -> None:
		self.set_token(None)
		self.set_user(None)

	def _load_token(self) -> Optional[str]:
		if self.token_path is None or not self.token_path.exists():
			return None
		try:
			return self.token_path.read_text(encoding="utf-8").strip() or None
		except OSError as exc:
			logging.warning("Could not read token file %s: %s", self.token_path, exc)
			return None

	def _persist(self, token: Optional[str]) -> None:
		if self.token_path is None:
			return
		try:
			if token:
				self.token_path.parent.mkdir(parents=True, exist_ok=True)
				self.token_path.write_text(token, encoding="utf-8")
			elif self.token_path.exists():
				self.token_path.unlink()
		except OSError as exc:
			logging.warning("Could not persist token to %s: %s", self.token_path, exc)
