"""Integration tests for the chat websocket endpoint and history routes."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from dal.inquiry_dal import InquiryDAL
from dal.message_dal import MessageDAL
from main import create_app
from models.session_models import MessageKind, Role
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def server(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path))
    with TestClient(create_app()) as client:
        dal = InquiryDAL(client.app.state.db_initializer)

        async def _seed() -> int:
            patient = await dal.create_user("Wang Fang", Role.PATIENT, "patient-token")
            doctor = await dal.create_user("Dr. Lin", Role.DOCTOR, "doctor-token")
            await dal.create_user("Someone Else", Role.PATIENT, "stranger-token")
            return await dal.create_inquiry(patient, doctor)

        client.inquiry_id = asyncio.run(_seed())
        yield client


def _chat_url(token: str, inquiry_id: int) -> str:
    return f"/ws/chat?token={token}&inquiryId={inquiry_id}"


def test_health(server) -> None:
    assert server.get("/health").json() == {"ok": True, "db_initialized": True, "chat_available": True}


def test_message_is_persisted_and_broadcast_to_room(server) -> None:
    inquiry_id = server.inquiry_id
    with server.websocket_connect(_chat_url("patient-token", inquiry_id)) as patient:
        assert patient.receive_json()["type"] == "connected"
        with server.websocket_connect(_chat_url("doctor-token", inquiry_id)) as doctor:
            assert doctor.receive_json()["type"] == "connected"

            patient.send_json({"type": "message", "content": "I have a headache", "msgType": "TEXT"})

            echo = patient.receive_json()
            relayed = doctor.receive_json()

    assert echo == relayed
    assert echo["type"] == "message"
    data = echo["data"]
    assert data["inquiry_id"] == inquiry_id
    assert data["sender_name"] == "Wang Fang"
    assert data["sender_role"] == "PATIENT"
    assert data["type"] == "TEXT"
    assert data["content"] == "I have a headache"
    assert data["created_at"]


def test_missing_parameters_are_rejected(server) -> None:
    with server.websocket_connect("/ws/chat?token=patient-token") as ws:
        with pytest.raises(WebSocketDisconnect) as info:
            ws.receive_text()
    assert info.value.code == 1007
    assert info.value.reason == "missing required parameters"


@pytest.mark.parametrize(
    ("token", "reason"),
    [("nobody-token", "unknown user"), ("stranger-token", "no access to this inquiry")],
)
def test_unauthorized_connections_are_closed(server, token, reason) -> None:
    with server.websocket_connect(_chat_url(token, server.inquiry_id)) as ws:
        with pytest.raises(WebSocketDisconnect) as info:
            ws.receive_text()
    assert info.value.code == 1007
    assert info.value.reason == reason


def test_bad_frames_get_error_replies(server) -> None:
    with server.websocket_connect(_chat_url("doctor-token", server.inquiry_id)) as ws:
        ws.receive_json()

        ws.send_text("not json")
        assert ws.receive_json()["message"].startswith("message handling failed:")

        ws.send_json({"type": "message", "content": "x-ray", "msgType": "VIDEO"})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "message"})
        assert ws.receive_json() == {
            "type": "error",
            "message": "message handling failed: Message content is required.",
        }

        ws.send_json({"type": "typing"})
        ws.send_json({"content": "type defaults to message", "msgType": "IMAGE"})
        reply = ws.receive_json()
        assert reply["type"] == "message"
        assert reply["data"]["type"] == "IMAGE"


def test_history_routes(server) -> None:
    inquiry_id = server.inquiry_id
    with server.websocket_connect(_chat_url("doctor-token", inquiry_id)) as ws:
        ws.receive_json()
        for text in ("first", "second", "third"):
            ws.send_json({"type": "message", "content": text})
            ws.receive_json()

    headers = {"Authorization": "Bearer patient-token"}
    history = server.get(f"/api/messages/inquiry/{inquiry_id}", headers=headers)
    assert history.status_code == 200
    contents = [item["content"] for item in history.json()]
    assert contents == ["first", "second", "third"]

    first_id = history.json()[0]["id"]
    newer = server.get(f"/api/messages/inquiry/{inquiry_id}/new", params={"afterId": first_id}, headers=headers)
    assert [item["content"] for item in newer.json()] == ["second", "third"]


def test_history_requires_participant_token(server) -> None:
    path = f"/api/messages/inquiry/{server.inquiry_id}"
    assert server.get(path).status_code == 401
    assert server.get(path, headers={"Authorization": "Bearer nobody-token"}).status_code == 401
    assert server.get(path, headers={"Authorization": "Bearer stranger-token"}).status_code == 403


def test_message_dal_rejects_unknown_inquiry(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path))

    async def _run() -> None:
        db = AsyncDatabaseInitializer()
        users = InquiryDAL(db)
        sender = await users.create_user("Dr. Lin", Role.DOCTOR, "doctor-token")
        with pytest.raises(ValueError):
            await MessageDAL(db).save_message(99, sender, MessageKind.TEXT, "hello")

    asyncio.run(_run())


def test_database_dir_is_required(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_DIR", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_DIR"):
        AsyncDatabaseInitializer()
