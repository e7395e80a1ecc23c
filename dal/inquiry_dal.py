from __future__ import annotations

from typing import Optional, Sequence

from models.inquiry_records import InquiryRecord, UserRecord
from models.session_models import Role
from utils.database_init import AsyncDatabaseInitializer


class InquiryDAL:
    """Users, inquiries and the access check that gates chat connections."""

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_user(self, name: str, role: Role | str, token: str) -> int:
        """Insert a USER row and return the new id."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "INSERT INTO USER (name, role, token) VALUES (?, ?, ?)",
                (name, Role(role).value, token),
            )
            await conn.commit()
            return cur.lastrowid

    async def find_user_by_token(self, token: str) -> Optional[UserRecord]:
        """Return the user owning `token`, or None if no user matches."""
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT id, name, role, token FROM USER WHERE token = ?", (token,))
            row = await cur.fetchone()
            return self._row_to_user(row) if row else None

    async def create_inquiry(self, patient_id: int, doctor_id: int) -> int:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "INSERT INTO INQUIRY (patient_id, doctor_id) VALUES (?, ?)",
                (patient_id, doctor_id),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_inquiry(self, inquiry_id: int) -> Optional[InquiryRecord]:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT id, patient_id, doctor_id FROM INQUIRY WHERE id = ?",
                (inquiry_id,),
            )
            row = await cur.fetchone()
            return InquiryRecord(id=row[0], patient_id=row[1], doctor_id=row[2]) if row else None

    async def can_access_inquiry(self, inquiry_id: int, user_id: int) -> bool:
        """True when the user is the patient or the doctor of the inquiry."""
        inquiry = await self.get_inquiry(inquiry_id)
        return inquiry is not None and inquiry.has_participant(user_id)

    @staticmethod
    def _row_to_user(row: Sequence[object]) -> UserRecord:
        return UserRecord(id=row[0], name=row[1], role=row[2], token=row[3])
