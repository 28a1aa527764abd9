"""Repository ports and the unit-of-work store.

Services depend only on these interfaces. Two adapters implement them:
``repositories.postgres`` for PostgreSQL and ``repositories.memory``
for local development and tests. Both raise only errors from
``lettertrack.core.errors``.

Write methods take a ``values`` mapping of column name to new value; only
the keys present are written.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator, Mapping
    from datetime import timedelta

    from lettertrack.db.models.base import (
        AccountRole,
        LetterPriority,
        LetterStatus,
        RecordStatus,
    )
    from lettertrack.repositories.records import (
        AccountRecord,
        CourierRecord,
        CourierTrackingRecord,
        DepartmentRecord,
        LetterRecord,
    )


class AccountRepository(ABC):
    @abstractmethod
    async def add(
        self, *, username: str, password_digest: str, role: AccountRole
    ) -> AccountRecord: ...

    @abstractmethod
    async def get(self, account_id: uuid.UUID) -> AccountRecord | None: ...

    @abstractmethod
    async def get_by_username(self, username: str) -> AccountRecord | None: ...

    @abstractmethod
    async def update(
        self, account_id: uuid.UUID, values: Mapping[str, Any]
    ) -> AccountRecord | None: ...

    @abstractmethod
    async def delete(self, account_id: uuid.UUID) -> bool: ...


class DepartmentRepository(ABC):
    @abstractmethod
    async def add(
        self,
        *,
        name: str,
        code: str,
        head: str,
        contact: str,
        status: RecordStatus,
        account_id: uuid.UUID,
    ) -> DepartmentRecord: ...

    @abstractmethod
    async def get(self, department_id: uuid.UUID) -> DepartmentRecord | None: ...

    @abstractmethod
    async def list(self) -> list[DepartmentRecord]: ...

    @abstractmethod
    async def update(
        self, department_id: uuid.UUID, values: Mapping[str, Any]
    ) -> DepartmentRecord | None: ...

    @abstractmethod
    async def delete(self, department_id: uuid.UUID) -> bool: ...


class CourierRepository(ABC):
    @abstractmethod
    async def add(
        self,
        *,
        service_name: str,
        code: str,
        contact_person: str,
        email: str,
        phone: str,
        address: str,
        status: RecordStatus,
    ) -> CourierRecord: ...

    @abstractmethod
    async def get(self, courier_id: uuid.UUID) -> CourierRecord | None: ...

    @abstractmethod
    async def get_by_code(self, code: str) -> CourierRecord | None: ...

    @abstractmethod
    async def list(self) -> list[CourierRecord]: ...

    @abstractmethod
    async def update(
        self, courier_id: uuid.UUID, values: Mapping[str, Any]
    ) -> CourierRecord | None: ...

    @abstractmethod
    async def delete(self, courier_id: uuid.UUID) -> bool: ...


class LetterRepository(ABC):
    @abstractmethod
    async def add(
        self,
        *,
        from_department: str,
        to: str,
        priority: LetterPriority,
        qr_code: str,
        subject: str | None,
        courier_service_id: uuid.UUID | None,
        image_ref: str | None,
        status: LetterStatus,
    ) -> LetterRecord: ...

    @abstractmethod
    async def get(self, letter_id: uuid.UUID) -> LetterRecord | None: ...

    @abstractmethod
    async def get_by_qr_code(self, qr_code: str) -> LetterRecord | None: ...

    @abstractmethod
    async def list(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        from_department: str | None = None,
    ) -> list[LetterRecord]:
        """Letters in insertion order, optionally restricted to one sender."""

    @abstractmethod
    async def count(self, *, from_department: str | None = None) -> int: ...

    @abstractmethod
    async def update(
        self,
        letter_id: uuid.UUID,
        values: Mapping[str, Any],
        *,
        expected_status: LetterStatus | None = None,
    ) -> LetterRecord | None:
        """Write ``values`` to the letter.

        When ``expected_status`` is given the write only happens if the
        stored status still equals it. Returns None when the letter is
        absent or the status no longer matches.
        """

    @abstractmethod
    async def delete(self, letter_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def list_with_courier(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        from_department: str | None = None,
    ) -> list[CourierTrackingRecord]:
        """Letters that have a courier, joined with it, in insertion order."""

    @abstractmethod
    async def count_with_courier(self, *, from_department: str | None = None) -> int: ...

    @abstractmethod
    async def count_by_status(self) -> dict[LetterStatus, int]:
        """Count letters per status; statuses with no letters may be absent."""

    @abstractmethod
    async def average_delivery_time(self) -> timedelta | None:
        """Mean of delivered_date - dispatched_date over letters with both set."""


class Store(ABC):
    """Unit of work exposing the four repositories.

    ``atomic()`` groups writes: everything inside commits together or not
    at all. Nested ``atomic()`` blocks join the outermost one.
    """

    accounts: AccountRepository
    departments: DepartmentRepository
    couriers: CourierRepository
    letters: LetterRepository

    def __init__(self) -> None:
        self._depth = 0

    @property
    def in_atomic(self) -> bool:
        return self._depth > 0

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[Store]:
        outermost = self._depth == 0
        if outermost:
            await self._begin()
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if outermost:
                await self._rollback()
            raise
        self._depth -= 1
        if outermost:
            await self._commit()

    async def _begin(self) -> None:  # noqa: B027
        """Hook run when the outermost atomic block opens."""

    @abstractmethod
    async def _commit(self) -> None: ...

    @abstractmethod
    async def _rollback(self) -> None: ...

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection or session."""
