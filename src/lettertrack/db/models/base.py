"""Base model definitions and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Common column type annotations
- Enum types used across multiple models
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated

from sqlalchemy import DateTime, MetaData, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, mapped_column

# Naming convention for constraints ensures consistent migration generation
# and stable names for translating integrity errors.
# See: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

# UUID primary key with server-side default generation
UUIDPrimaryKey = Annotated[
    uuid.UUID,
    mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
]

# Timestamp with timezone, defaults to now
TimestampTZ = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), server_default=text("now()")),
]

OptionalTimestampTZ = Annotated[
    datetime | None,
    mapped_column(DateTime(timezone=True), nullable=True),
]

ShortString = Annotated[str, mapped_column(String(100))]
MediumString = Annotated[str, mapped_column(String(255))]


class Base(DeclarativeBase):
    """Declarative base for all letter tracking models."""

    metadata = metadata


# =============================================================================
# Common Enums
# =============================================================================


class AccountRole(enum.Enum):
    """Role attached to a login account.

    Values:
        SUPER_ADMIN: Full administrative access
        RD_DEPARTMENT: Records department staff, sees every letter
        OTHER_DEPARTMENT: Account owned by a department record
    """

    SUPER_ADMIN = "super_admin"
    RD_DEPARTMENT = "rd_department"
    OTHER_DEPARTMENT = "other_department"


class RecordStatus(enum.Enum):
    """Activation status shared by departments and couriers."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class LetterPriority(enum.Enum):
    """Handling priority of an outgoing letter."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LetterStatus(enum.Enum):
    """Dispatch lifecycle states of an outgoing letter.

    States:
        PENDING_DISPATCH: Registered, waiting for the courier (initial)
        DISPATCHED: Handed over to the courier
        DELIVERED: Courier confirmed delivery (terminal)
        RETURNED: Letter came back undelivered (terminal)
    """

    PENDING_DISPATCH = "PENDING_DISPATCH"
    DISPATCHED = "DISPATCHED"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum members by value, matching the migration's type labels."""
    return [member.value for member in enum_cls]
