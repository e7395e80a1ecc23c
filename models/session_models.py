"""Chat domain models shared by the transport client and the chat server."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
INVALID_PAYLOAD = 1007
NORMAL_CLOSURE_REASON = "client disconnect"


class SessionStatus(str, Enum):
    """Connectivity of a transport session; exactly one value at a time."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERRORED = "error"


class MessageKind(str, Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"


class Role(str, Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


@dataclass
class ChatMessage:
    """One persisted chat message of an inquiry.

    Attributes:
        id: Primary key assigned by the server.
        inquiry_id: Inquiry (conversation) the message belongs to.
        sender_id: User id of the author.
        sender_name: Display name of the author.
        sender_role: Role name of the author (PATIENT, DOCTOR, ADMIN).
        kind: TEXT, or IMAGE where `content` holds the image URL.
        content: Message text or image URL.
        created_at: Server-side creation time.
    """

    id: int
    inquiry_id: int
    sender_id: int
    sender_name: str
    sender_role: str
    kind: MessageKind
    content: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChatMessage":
        """Build a message from its wire representation.

        Raises KeyError, ValueError or TypeError when required fields are
        missing or malformed.
        """
        if not isinstance(data, dict):
            raise TypeError(f"message payload must be an object, got {type(data).__name__}")
        created_raw = data.get("created_at")
        return cls(
            id=int(data["id"]),
            inquiry_id=int(data["inquiry_id"]),
            sender_id=int(data["sender_id"]),
            sender_name=str(data.get("sender_name") or ""),
            sender_role=str(data.get("sender_role") or ""),
            kind=MessageKind(data.get("type") or MessageKind.TEXT.value),
            content=str(data["content"]),
            created_at=datetime.fromisoformat(created_raw) if created_raw else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "inquiry_id": self.inquiry_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "sender_role": self.sender_role,
            "type": self.kind.value,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
