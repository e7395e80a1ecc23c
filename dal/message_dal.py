"""Async Data Access Layer for the MESSAGE table.

Messages are returned joined with their sender so they can be broadcast
and served as history without a second lookup.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from models.session_models import ChatMessage, MessageKind
from utils.database_init import AsyncDatabaseInitializer


class MessageDAL:
    """Data access layer for chat messages.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _SELECT = (
        "SELECT m.id, m.inquiry_id, m.sender_id, u.name, u.role, m.type, m.content, m.created_at "
        "FROM MESSAGE m JOIN USER u ON u.id = m.sender_id"
    )

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def save_message(
        self,
        inquiry_id: int,
        sender_id: int,
        kind: MessageKind,
        content: str,
    ) -> ChatMessage:
        """Insert a message and return it with sender details.

        Raises:
            ValueError: If the inquiry or the sender does not exist.
        """
        created_at = datetime.now(timezone.utc).isoformat()

        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT id FROM INQUIRY WHERE id = ?", (inquiry_id,))
            if await cur.fetchone() is None:
                raise ValueError(f"Inquiry {inquiry_id} does not exist")
            cur = await conn.execute("SELECT id FROM USER WHERE id = ?", (sender_id,))
            if await cur.fetchone() is None:
                raise ValueError(f"User {sender_id} does not exist")

            cur = await conn.execute(
                "INSERT INTO MESSAGE (inquiry_id, sender_id, type, content, created_at) VALUES (?, ?, ?, ?, ?)",
                (inquiry_id, sender_id, MessageKind(kind).value, content, created_at),
            )
            await conn.commit()
            message_id = cur.lastrowid

            cur = await conn.execute(f"{self._SELECT} WHERE m.id = ?", (message_id,))
            row = await cur.fetchone()
            return self._row_to_message(row)

    async def list_messages(self, inquiry_id: int) -> List[ChatMessage]:
        """Return all messages of an inquiry in creation order."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"{self._SELECT} WHERE m.inquiry_id = ? ORDER BY m.created_at ASC, m.id ASC",
                (inquiry_id,),
            )
            rows = await cur.fetchall()
            return [self._row_to_message(r) for r in rows]

    async def list_messages_after(self, inquiry_id: int, after_id: int) -> List[ChatMessage]:
        """Return messages of an inquiry whose id is greater than `after_id`."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"{self._SELECT} WHERE m.inquiry_id = ? AND m.id > ? ORDER BY m.created_at ASC, m.id ASC",
                (inquiry_id, after_id),
            )
            rows = await cur.fetchall()
            return [self._row_to_message(r) for r in rows]

    @staticmethod
    def _row_to_message(row: Sequence[object]) -> ChatMessage:
        """Convert a joined DB row tuple into a ChatMessage."""
        return ChatMessage(
            id=row[0],
            inquiry_id=row[1],
            sender_id=row[2],
            sender_name=row[3],
            sender_role=row[4],
            kind=MessageKind(row[5]),
            content=row[6],
            created_at=datetime.fromisoformat(row[7]),
        )
