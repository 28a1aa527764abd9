"""SQLAlchemy ORM models for letter tracking.

This package contains all database models:
- base: Common metadata, type definitions and enums
- accounts: Login accounts
- departments: Department records bound to an account
- couriers: Courier services
- letters: Outgoing letters
"""

from lettertrack.db.models.accounts import Account
from lettertrack.db.models.base import (
    AccountRole,
    Base,
    LetterPriority,
    LetterStatus,
    RecordStatus,
    metadata,
)
from lettertrack.db.models.couriers import Courier
from lettertrack.db.models.departments import Department
from lettertrack.db.models.letters import OutgoingLetter

__all__ = [
    "Account",
    "AccountRole",
    "Base",
    "Courier",
    "Department",
    "LetterPriority",
    "LetterStatus",
    "OutgoingLetter",
    "RecordStatus",
    "metadata",
]
