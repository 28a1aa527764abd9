"""Department model, bound one-to-one to a login account."""

from __future__ import annotations

# Required at runtime for SQLAlchemy type resolution
import uuid  # noqa: TC003

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lettertrack.db.models.accounts import Account
from lettertrack.db.models.base import (
    Base,
    RecordStatus,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)


class Department(Base):
    """Department record.

    ``account_id`` is required and unique. The foreign key is deferred to
    commit time so the account can be removed before the department inside
    the same transaction.
    """

    __tablename__ = "departments"

    department_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    head: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str] = mapped_column(String(255), nullable=False)
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

    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey(
            "accounts.account_id",
            deferrable=True,
            initially="DEFERRED",
        ),
        nullable=False,
        unique=True,
    )

    account: Mapped[Account] = relationship("Account", lazy="joined")

    def __repr__(self) -> str:
        return f"<Department {self.department_id} code={self.code}>"
