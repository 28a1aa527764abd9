"""Letter tracking services.

- accounts: login account store
- departments: department directory with account cascade
- couriers: courier directory
- letters: outgoing letter tracking engine
- storage: object store for letter images
"""

from lettertrack.services.accounts import AccountStore
from lettertrack.services.couriers import CourierDirectory, CourierFields, CourierUpdate
from lettertrack.services.departments import DepartmentDirectory, DepartmentUpdate
from lettertrack.services.fields import UNSET
from lettertrack.services.letters import (
    LetterPage,
    LetterRef,
    LetterStats,
    LetterTrackingEngine,
    LetterUpdate,
    StatusChange,
    TrackingPage,
)

__all__ = [
    "UNSET",
    "AccountStore",
    "CourierDirectory",
    "CourierFields",
    "CourierUpdate",
    "DepartmentDirectory",
    "DepartmentUpdate",
    "LetterPage",
    "LetterRef",
    "LetterStats",
    "LetterTrackingEngine",
    "LetterUpdate",
    "StatusChange",
    "TrackingPage",
]
