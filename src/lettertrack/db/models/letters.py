"""Outgoing letter model.

The QR code is the external identity of a letter and the primary key its
internal one; both are unique and resolve to the same row.
"""

from __future__ import annotations

# Required at runtime for SQLAlchemy type resolution
import uuid  # noqa: TC003

from sqlalchemy import Enum, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lettertrack.db.models.base import (
    Base,
    LetterPriority,
    LetterStatus,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)
from lettertrack.db.models.couriers import Courier


class OutgoingLetter(Base):
    """Letter leaving the organization through a courier."""

    __tablename__ = "outgoing_letters"

    letter_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    # Sending department, kept as a plain reference
    from_department: Mapped[str] = mapped_column(String(255), nullable=False)
    to: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[LetterPriority] = mapped_column(
        Enum(
            LetterPriority,
            name="letter_priority",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    qr_code: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    courier_service_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("couriers.courier_id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[LetterStatus] = mapped_column(
        Enum(
            LetterStatus,
            name="letter_status",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=LetterStatus.PENDING_DISPATCH,
    )
    dispatched_date: Mapped[OptionalTimestampTZ]
    delivered_date: Mapped[OptionalTimestampTZ]

    # Object key in the image store
    image_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)

    courier: Mapped[Courier | None] = relationship("Courier", lazy="joined")

    __table_args__ = (
        Index("ix_outgoing_letters_from_department", "from_department"),
        Index("ix_outgoing_letters_status", "status"),
        Index("ix_outgoing_letters_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<OutgoingLetter {self.letter_id} qr={self.qr_code} status={self.status.value}>"
