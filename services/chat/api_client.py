"""HTTP client for chat history.

Usage:
    async with ChatApiClient(credentials) as api:
        history = await api.get_history(42)
        session.seed_messages(history)
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from models.session_models import ChatMessage
from services.chat.credential_store import CredentialStore
from utils.chat_config import DEFAULT_API_BASE_URL, DEFAULT_HTTP_TIMEOUT


class ChatApiError(Exception):
	"""Raised when the API answers with a non-success status."""

	def __init__(self, message: str, status_code: Optional[int] = None) -> None:
		super().__init__(message)
		self.message = message
		self.status_code = status_code


def error_message(response: httpx.Response) -> str:
	"""Extract a human-readable message from an error response body."""
	content_type = response.headers.get("content-type", "")
	if "application/json" in content_type:
		try:
			data = response.json()
		except ValueError:
			data = None
		if isinstance(data, dict):
			return data.get("message") or data.get("error") or data.get("detail") or json.dumps(data)
		if data is not None:
			return json.dumps(data)
	return response.text or f"request failed with status {response.status_code}"


class ChatApiClient:
	"""Async client for the message history endpoints."""

	def __init__(
		self,
		credentials: CredentialStore,
		base_url: str = DEFAULT_API_BASE_URL,
		timeout: float = DEFAULT_HTTP_TIMEOUT,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.credentials = credentials
		self.base_url = base_url.rstrip("/")
		self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

	async def __aenter__(self) -> "ChatApiClient":
		return self

	async def __aexit__(self, *args) -> None:
		await self.close()

	async def close(self) -> None:
		await self._client.aclose()

	def _headers(self) -> Dict[str, str]:
		headers = {"Accept": "application/json"}
		token = self.credentials.get_credential()
		if token:
			headers["Authorization"] = f"Bearer {token}"
		return headers

	async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
		response = await self._client.get(path, headers=self._headers(), params=params)
		if response.status_code >= 400:
			raise ChatApiError(error_message(response), status_code=response.status_code)
		return response.json()

	async def _get_messages(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[ChatMessage]:
		data = await self._get(path, params=params)
		if not isinstance(data, list):
			raise TypeError(f"expected a list of messages, got {type(data).__name__}")
		return [ChatMessage.from_payload(item) for item in data]

	async def get_history(self, inquiry_id: int) -> List[ChatMessage]:
		"""Return every stored message of an inquiry, oldest first."""
		return await self._get_messages(f"/api/messages/inquiry/{inquiry_id}")

	async def get_new_messages(self, inquiry_id: int, after_id: int) -> List[ChatMessage]:
		"""Return messages with an id greater than `after_id` (polling fallback)."""
		return await self._get_messages(f"/api/messages/inquiry/{inquiry_id}/new", params={"afterId": after_id})
