"""Immutable records returned by the repositories.

Records are plain frozen dataclasses so services and the API never hold
ORM objects bound to a session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from lettertrack.db.models.base import (
        AccountRole,
        LetterPriority,
        LetterStatus,
        RecordStatus,
    )


@dataclass(frozen=True, slots=True)
class AccountView:
    """Account as shown to callers; never carries the password digest."""

    account_id: uuid.UUID
    username: str
    role: AccountRole


@dataclass(frozen=True, slots=True)
class AccountRecord:
    """Stored login account."""

    account_id: uuid.UUID
    username: str
    password_digest: str
    role: AccountRole
    created_at: datetime
    updated_at: datetime

    def view(self) -> AccountView:
        """Redacted view without the digest."""
        return AccountView(account_id=self.account_id, username=self.username, role=self.role)


@dataclass(frozen=True, slots=True)
class DepartmentRecord:
    """Stored department with its joined account view."""

    department_id: uuid.UUID
    name: str
    code: str
    head: str
    contact: str
    status: RecordStatus
    account_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    account: AccountView | None = None


@dataclass(frozen=True, slots=True)
class CourierRecord:
    """Stored courier service."""

    courier_id: uuid.UUID
    service_name: str
    code: str
    contact_person: str
    email: str
    phone: str
    address: str
    status: RecordStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class LetterRecord:
    """Stored outgoing letter."""

    letter_id: uuid.UUID
    from_department: str
    to: str
    priority: LetterPriority
    subject: str | None
    qr_code: str
    courier_service_id: uuid.UUID | None
    status: LetterStatus
    dispatched_date: datetime | None
    delivered_date: datetime | None
    image_ref: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class CourierTrackingRecord:
    """Letter joined with the identifying fields of its courier."""

    letter: LetterRecord
    courier_id: uuid.UUID
    courier_service_name: str
    courier_code: str
