"""Courier service model."""

from __future__ import annotations

from sqlalchemy import Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lettertrack.db.models.base import (
    Base,
    MediumString,
    RecordStatus,
    ShortString,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)


class Courier(Base):
    """Third-party delivery provider.

    Letters reference couriers weakly; deleting a courier nulls the
    reference on its letters.
    """

    __tablename__ = "couriers"

    courier_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    service_name: Mapped[MediumString]
    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    contact_person: Mapped[MediumString]
    email: Mapped[MediumString]
    phone: Mapped[ShortString]
    address: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[RecordStatus] = mapped_column(
        Enum(
            RecordStatus,
            name="record_status",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=RecordStatus.ACTIVE,
    )

    def __repr__(self) -> str:
        return f"<Courier {self.courier_id} code={self.code}>"
