"""In-memory store for local development and tests.

Mirrors the PostgreSQL adapter: the same unique constraints, the same
conditional status writes, courier deletion nulling letter references,
and all-or-nothing ``atomic()`` blocks. Data lives in a shared
``MemoryDatabase``; each request gets its own ``MemoryStore`` over it.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from lettertrack.core.errors import ConflictError, ValidationError
from lettertrack.repositories.base import (
    AccountRepository,
    CourierRepository,
    DepartmentRepository,
    LetterRepository,
    Store,
)
from lettertrack.repositories.records import (
    AccountRecord,
    CourierRecord,
    CourierTrackingRecord,
    DepartmentRecord,
    LetterRecord,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from lettertrack.db.models.base import (
        AccountRole,
        LetterPriority,
        LetterStatus,
        RecordStatus,
    )

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


class MemoryDatabase:
    """Process-wide tables keyed by primary key, in insertion order."""

    def __init__(self) -> None:
        self.accounts: dict[uuid.UUID, AccountRecord] = {}
        self.departments: dict[uuid.UUID, DepartmentRecord] = {}
        self.couriers: dict[uuid.UUID, CourierRecord] = {}
        self.letters: dict[uuid.UUID, LetterRecord] = {}
        # Serializes atomic blocks across stores sharing this database
        self.write_lock = asyncio.Lock()

    def snapshot(self) -> tuple[dict, dict, dict, dict]:
        return (
            copy.copy(self.accounts),
            copy.copy(self.departments),
            copy.copy(self.couriers),
            copy.copy(self.letters),
        )

    def restore(self, snapshot: tuple[dict, dict, dict, dict]) -> None:
        self.accounts, self.departments, self.couriers, self.letters = snapshot


def _check_unique(
    rows: Mapping[uuid.UUID, Any],
    attribute: str,
    value: Any,
    *,
    exclude: uuid.UUID | None,
    key: Callable[[Any], uuid.UUID],
    message: str,
) -> None:
    for row in rows.values():
        if key(row) != exclude and getattr(row, attribute) == value:
            raise ConflictError(message, field=attribute)


class MemoryAccountRepository(AccountRepository):
    def __init__(self, db: MemoryDatabase) -> None:
        self._db = db

    def _check(self, username: str, exclude: uuid.UUID | None = None) -> None:
        _check_unique(
            self._db.accounts,
            "username",
            username,
            exclude=exclude,
            key=lambda r: r.account_id,
            message="Username already exists",
        )

    async def add(
        self, *, username: str, password_digest: str, role: AccountRole
    ) -> AccountRecord:
        self._check(username)
        now = _now()
        record = AccountRecord(
            account_id=uuid.uuid4(),
            username=username,
            password_digest=password_digest,
            role=role,
            created_at=now,
            updated_at=now,
        )
        self._db.accounts[record.account_id] = record
        return record

    async def get(self, account_id: uuid.UUID) -> AccountRecord | None:
        return self._db.accounts.get(account_id)

    async def get_by_username(self, username: str) -> AccountRecord | None:
        for record in self._db.accounts.values():
            if record.username == username:
                return record
        return None

    async def update(
        self, account_id: uuid.UUID, values: Mapping[str, Any]
    ) -> AccountRecord | None:
        record = self._db.accounts.get(account_id)
        if record is None:
            return None
        if "username" in values:
            self._check(values["username"], exclude=account_id)
        record = replace(record, **values, updated_at=_now())
        self._db.accounts[account_id] = record
        return record

    async def delete(self, account_id: uuid.UUID) -> bool:
        return self._db.accounts.pop(account_id, None) is not None


class MemoryDepartmentRepository(DepartmentRepository):
    def __init__(self, db: MemoryDatabase) -> None:
        self._db = db

    def _joined(self, record: DepartmentRecord) -> DepartmentRecord:
        account = self._db.accounts.get(record.account_id)
        return replace(record, account=account.view() if account else None)

    async def add(
        self,
        *,
        name: str,
        code: str,
        head: str,
        contact: str,
        status: RecordStatus,
        account_id: uuid.UUID,
    ) -> DepartmentRecord:
        if account_id not in self._db.accounts:
            raise ValidationError.for_field("account_id", "Account does not exist")
        _check_unique(
            self._db.departments,
            "account_id",
            account_id,
            exclude=None,
            key=lambda r: r.department_id,
            message="Account is already linked to a department",
        )
        now = _now()
        record = DepartmentRecord(
            department_id=uuid.uuid4(),
            name=name,
            code=code,
            head=head,
            contact=contact,
            status=status,
            account_id=account_id,
            created_at=now,
            updated_at=now,
        )
        self._db.departments[record.department_id] = record
        return self._joined(record)

    async def get(self, department_id: uuid.UUID) -> DepartmentRecord | None:
        record = self._db.departments.get(department_id)
        return self._joined(record) if record else None

    async def list(self) -> list[DepartmentRecord]:
        return [self._joined(r) for r in self._db.departments.values()]

    async def update(
        self, department_id: uuid.UUID, values: Mapping[str, Any]
    ) -> DepartmentRecord | None:
        record = self._db.departments.get(department_id)
        if record is None:
            return None
        record = replace(record, **values, updated_at=_now())
        self._db.departments[department_id] = record
        return self._joined(record)

    async def delete(self, department_id: uuid.UUID) -> bool:
        return self._db.departments.pop(department_id, None) is not None


class MemoryCourierRepository(CourierRepository):
    def __init__(self, db: MemoryDatabase) -> None:
        self._db = db

    def _check(self, code: str, exclude: uuid.UUID | None = None) -> None:
        _check_unique(
            self._db.couriers,
            "code",
            code,
            exclude=exclude,
            key=lambda r: r.courier_id,
            message="duplicate courier code",
        )

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
    ) -> CourierRecord:
        self._check(code)
        now = _now()
        record = CourierRecord(
            courier_id=uuid.uuid4(),
            service_name=service_name,
            code=code,
            contact_person=contact_person,
            email=email,
            phone=phone,
            address=address,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self._db.couriers[record.courier_id] = record
        return record

    async def get(self, courier_id: uuid.UUID) -> CourierRecord | None:
        return self._db.couriers.get(courier_id)

    async def get_by_code(self, code: str) -> CourierRecord | None:
        for record in self._db.couriers.values():
            if record.code == code:
                return record
        return None

    async def list(self) -> list[CourierRecord]:
        return list(self._db.couriers.values())

    async def update(
        self, courier_id: uuid.UUID, values: Mapping[str, Any]
    ) -> CourierRecord | None:
        record = self._db.couriers.get(courier_id)
        if record is None:
            return None
        if "code" in values:
            self._check(values["code"], exclude=courier_id)
        record = replace(record, **values, updated_at=_now())
        self._db.couriers[courier_id] = record
        return record

    async def delete(self, courier_id: uuid.UUID) -> bool:
        if self._db.couriers.pop(courier_id, None) is None:
            return False
        # ON DELETE SET NULL
        for letter_id, letter in list(self._db.letters.items()):
            if letter.courier_service_id == courier_id:
                self._db.letters[letter_id] = replace(letter, courier_service_id=None)
        return True


class MemoryLetterRepository(LetterRepository):
    def __init__(self, db: MemoryDatabase) -> None:
        self._db = db

    def _check(self, qr_code: str, exclude: uuid.UUID | None = None) -> None:
        _check_unique(
            self._db.letters,
            "qr_code",
            qr_code,
            exclude=exclude,
            key=lambda r: r.letter_id,
            message="QR code already exists",
        )

    def _check_courier(self, courier_id: uuid.UUID | None) -> None:
        if courier_id is not None and courier_id not in self._db.couriers:
            raise ValidationError.for_field("courier_service_id", "Courier service does not exist")

    def _filtered(self, from_department: str | None) -> list[LetterRecord]:
        return [
            r
            for r in self._db.letters.values()
            if from_department is None or r.from_department == from_department
        ]

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
    ) -> LetterRecord:
        self._check(qr_code)
        self._check_courier(courier_service_id)
        now = _now()
        record = LetterRecord(
            letter_id=uuid.uuid4(),
            from_department=from_department,
            to=to,
            priority=priority,
            subject=subject,
            qr_code=qr_code,
            courier_service_id=courier_service_id,
            status=status,
            dispatched_date=None,
            delivered_date=None,
            image_ref=image_ref,
            created_at=now,
            updated_at=now,
        )
        self._db.letters[record.letter_id] = record
        return record

    async def get(self, letter_id: uuid.UUID) -> LetterRecord | None:
        return self._db.letters.get(letter_id)

    async def get_by_qr_code(self, qr_code: str) -> LetterRecord | None:
        for record in self._db.letters.values():
            if record.qr_code == qr_code:
                return record
        return None

    async def list(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        from_department: str | None = None,
    ) -> list[LetterRecord]:
        records = self._filtered(from_department)[offset:]
        return records if limit is None else records[:limit]

    async def count(self, *, from_department: str | None = None) -> int:
        return len(self._filtered(from_department))

    async def update(
        self,
        letter_id: uuid.UUID,
        values: Mapping[str, Any],
        *,
        expected_status: LetterStatus | None = None,
    ) -> LetterRecord | None:
        record = self._db.letters.get(letter_id)
        if record is None:
            return None
        if expected_status is not None and record.status != expected_status:
            return None
        if "qr_code" in values:
            self._check(values["qr_code"], exclude=letter_id)
        if "courier_service_id" in values:
            self._check_courier(values["courier_service_id"])
        record = replace(record, **values, updated_at=_now())
        self._db.letters[letter_id] = record
        return record

    async def delete(self, letter_id: uuid.UUID) -> bool:
        return self._db.letters.pop(letter_id, None) is not None

    async def list_with_courier(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        from_department: str | None = None,
    ) -> list[CourierTrackingRecord]:
        tracked = self._tracked(from_department)[offset:]
        return tracked if limit is None else tracked[:limit]

    async def count_with_courier(self, *, from_department: str | None = None) -> int:
        return len(self._tracked(from_department))

    def _tracked(self, from_department: str | None) -> list[CourierTrackingRecord]:
        tracked = []
        for letter in self._filtered(from_department):
            courier = (
                self._db.couriers.get(letter.courier_service_id)
                if letter.courier_service_id
                else None
            )
            if courier is None:
                continue
            tracked.append(
                CourierTrackingRecord(
                    letter=letter,
                    courier_id=courier.courier_id,
                    courier_service_name=courier.service_name,
                    courier_code=courier.code,
                )
            )
        return tracked

    async def count_by_status(self) -> dict[LetterStatus, int]:
        counts: dict[LetterStatus, int] = {}
        for letter in self._db.letters.values():
            counts[letter.status] = counts.get(letter.status, 0) + 1
        return counts

    async def average_delivery_time(self) -> timedelta | None:
        durations = [
            letter.delivered_date - letter.dispatched_date
            for letter in self._db.letters.values()
            if letter.dispatched_date is not None and letter.delivered_date is not None
        ]
        if not durations:
            return None
        return sum(durations, timedelta()) / len(durations)


class MemoryStore(Store):
    """Unit of work over a ``MemoryDatabase``.

    The outermost ``atomic()`` takes the database write lock and a
    snapshot; a failure inside restores the snapshot.
    """

    def __init__(self, database: MemoryDatabase) -> None:
        super().__init__()
        self.database = database
        self.accounts = MemoryAccountRepository(database)
        self.departments = MemoryDepartmentRepository(database)
        self.couriers = MemoryCourierRepository(database)
        self.letters = MemoryLetterRepository(database)
        self._snapshot: tuple[dict, dict, dict, dict] | None = None

    async def _begin(self) -> None:
        await self.database.write_lock.acquire()
        self._snapshot = self.database.snapshot()

    async def _commit(self) -> None:
        self._snapshot = None
        self.database.write_lock.release()

    async def _rollback(self) -> None:
        if self._snapshot is not None:
            self.database.restore(self._snapshot)
            logger.debug("Rolled back in-memory unit of work")
        self._snapshot = None
        self.database.write_lock.release()

    async def close(self) -> None:
        return None


def memory_store_factory(database: MemoryDatabase | None = None) -> Callable[[], MemoryStore]:
    """Build a factory handing out stores over one shared database."""
    shared = database or MemoryDatabase()

    def factory() -> MemoryStore:
        return MemoryStore(shared)

    return factory
