"""Login account model."""

from __future__ import annotations

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from lettertrack.db.models.base import (
    AccountRole,
    Base,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)


class Account(Base):
    """Login credentials and role.

    Accounts with role OTHER_DEPARTMENT are owned by exactly one
    department and live and die with it.
    """

    __tablename__ = "accounts"

    account_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    # bcrypt digest, never returned by the API
    password_digest: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[AccountRole] = mapped_column(
        Enum(
            AccountRole,
            name="account_role",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account {self.account_id} username={self.username} role={self.role.value}>"
