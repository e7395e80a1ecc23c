"""Unit tests for the history HTTP client and the consultation facade."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from models.session_models import SessionStatus
from services.chat.api_client import ChatApiClient, ChatApiError
from services.chat.chat_client import ConsultationChat
from services.chat.credential_store import CredentialStore
from services.chat.reconnect_policy import ReconnectPolicy
from services.chat.transport_session import ChatTransportSession
from tests.chat_fakes import WS_BASE_URL, message_payload
from utils.chat_config import ChatClientSettings

API_BASE_URL = "http://chat.test/hi"


def _api(handler, credentials: CredentialStore) -> ChatApiClient:
    return ChatApiClient(credentials, base_url=API_BASE_URL, transport=httpx.MockTransport(handler))


def test_get_history_sends_bearer_and_parses_messages(credentials) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[message_payload(1), message_payload(2)])

    async def _run() -> None:
        async with _api(handler, credentials) as api:
            history = await api.get_history(42)

        assert [m.id for m in history] == [1, 2]
        assert requests[0].url.path == "/hi/api/messages/inquiry/42"
        assert requests[0].headers["authorization"] == "Bearer tok-1"

    asyncio.run(_run())


def test_get_new_messages_passes_after_id(credentials) -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["afterId"] = request.url.params["afterId"]
        return httpx.Response(200, json=[message_payload(8)])

    async def _run() -> None:
        async with _api(handler, credentials) as api:
            messages = await api.get_new_messages(42, after_id=7)

        assert [m.id for m in messages] == [8]
        assert seen == {"path": "/hi/api/messages/inquiry/42/new", "afterId": "7"}

    asyncio.run(_run())


@pytest.mark.parametrize(
    ("response", "expected"),
    [
        (httpx.Response(403, json={"message": "no access", "error": "Forbidden"}), "no access"),
        (httpx.Response(401, json={"detail": "Unknown token"}), "Unknown token"),
        (httpx.Response(404, text="not here"), "not here"),
        (httpx.Response(502), "request failed with status 502"),
    ],
)
def test_error_responses_raise_with_readable_message(credentials, response, expected) -> None:
    async def _run() -> None:
        async with _api(lambda request: response, credentials) as api:
            with pytest.raises(ChatApiError) as info:
                await api.get_history(42)

        assert info.value.message == expected
        assert info.value.status_code == response.status_code

    asyncio.run(_run())


def test_consultation_open_connects_then_seeds_history(credentials, connector) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[message_payload(1), message_payload(2)])

    async def _run() -> None:
        session = ChatTransportSession(
            credentials, base_url=WS_BASE_URL, policy=ReconnectPolicy(delay=0.01), connector=connector
        )
        chat = ConsultationChat(session, _api(handler, credentials))

        await chat.open(42)
        for _ in range(10):
            await asyncio.sleep(0)
        connector.latest.push({"type": "message", "data": message_payload(3)})
        for _ in range(10):
            await asyncio.sleep(0)

        assert chat.state.status is SessionStatus.CONNECTED
        assert [m.id for m in chat.state.messages] == [1, 2, 3]
        assert await chat.send("thanks, doctor") is True
        await chat.close()
        assert chat.state.status is SessionStatus.DISCONNECTED

    asyncio.run(_run())


def test_consultation_history_failure_keeps_connection(credentials, connector) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "database locked"})

    async def _run() -> None:
        session = ChatTransportSession(credentials, base_url=WS_BASE_URL, connector=connector)
        chat = ConsultationChat(session, _api(handler, credentials))

        await chat.open(42)
        for _ in range(10):
            await asyncio.sleep(0)

        assert chat.state.error == "database locked"
        assert chat.state.status is SessionStatus.CONNECTED
        await chat.close()

    asyncio.run(_run())


def test_consultation_without_credential_skips_history(connector) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[])

    async def _run() -> None:
        anonymous = CredentialStore()
        session = ChatTransportSession(anonymous, base_url=WS_BASE_URL, connector=connector)
        chat = ConsultationChat(session, _api(handler, anonymous))

        await chat.open(42)

        assert chat.state.status is SessionStatus.ERRORED
        assert chat.state.error == "not authenticated"
        assert calls == []
        await chat.close()

    asyncio.run(_run())


def test_consultation_from_settings_uses_configured_urls(credentials) -> None:
    settings = ChatClientSettings(ws_base_url="ws://chat.test/hi", api_base_url=API_BASE_URL)

    async def _run() -> None:
        chat = ConsultationChat.from_settings(credentials, settings)
        assert chat.session.base_url == "ws://chat.test/hi"
        assert chat.api.base_url == API_BASE_URL
        assert chat.session.policy == settings.reconnect_policy
        await chat.close()

    asyncio.run(_run())


def test_consultation_reports_history_body_that_is_not_a_list(credentials, connector) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": []})

    async def _run() -> None:
        session = ChatTransportSession(credentials, base_url=WS_BASE_URL, connector=connector)
        chat = ConsultationChat(session, _api(handler, credentials))

        await chat.open(42)
        for _ in range(10):
            await asyncio.sleep(0)

        assert chat.state.error == "expected a list of messages, got dict"
        assert chat.state.status is SessionStatus.CONNECTED
        assert list(chat.state.messages) == []
        await chat.close()

    asyncio.run(_run())
