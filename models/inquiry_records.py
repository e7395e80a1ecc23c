from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class UserRecord:
    """In-memory representation of a row in the USER table.

    Attributes:
        id: Primary key (None for new records).
        name: Display name shown next to chat messages.
        role: PATIENT, DOCTOR or ADMIN.
        token: Bearer token the user authenticates with.
    """

    id: Optional[int]
    name: str
    role: str
    token: str


@dataclass
class InquiryRecord:
    """A consultation between one patient and one doctor."""

    id: Optional[int]
    patient_id: int
    doctor_id: int

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.patient_id, self.doctor_id)
