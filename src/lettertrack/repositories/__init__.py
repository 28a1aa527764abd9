"""Persistence ports and adapters.

- base: repository interfaces and the Store unit of work
- records: immutable records handed to the services
- postgres: SQLAlchemy async adapter for PostgreSQL
- memory: in-process adapter for development and tests
"""

from lettertrack.repositories.base import (
    AccountRepository,
    CourierRepository,
    DepartmentRepository,
    LetterRepository,
    Store,
)
from lettertrack.repositories.records import (
    AccountRecord,
    AccountView,
    CourierRecord,
    CourierTrackingRecord,
    DepartmentRecord,
    LetterRecord,
)

__all__ = [
    "AccountRecord",
    "AccountRepository",
    "AccountView",
    "CourierRecord",
    "CourierRepository",
    "CourierTrackingRecord",
    "DepartmentRecord",
    "DepartmentRepository",
    "LetterRecord",
    "LetterRepository",
    "Store",
]
