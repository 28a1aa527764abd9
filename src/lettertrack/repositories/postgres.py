"""PostgreSQL store built on SQLAlchemy's async ORM.

Every call is bounded by ``database.operation_timeout`` and storage
exceptions are translated here into the domain error taxonomy:

- unique violations on a known constraint become ConflictError
- foreign key violations on a courier reference become ValidationError
- timeouts and connectivity failures become UnavailableError
- anything else from the driver becomes InternalError
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from lettertrack.core.errors import (
    ConflictError,
    InternalError,
    UnavailableError,
    ValidationError,
)
from lettertrack.db.models import Account, Courier, Department, OutgoingLetter
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
    import uuid
    from collections.abc import AsyncIterator, Callable, Mapping
    from datetime import timedelta

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from lettertrack.db.models.base import (
        AccountRole,
        LetterPriority,
        LetterStatus,
        RecordStatus,
    )

logger = logging.getLogger(__name__)

# Constraint name -> (field, message) for unique violations
UNIQUE_CONSTRAINTS: dict[str, tuple[str, str]] = {
    "uq_accounts_username": ("username", "Username already exists"),
    "uq_couriers_code": ("code", "duplicate courier code"),
    "uq_outgoing_letters_qr_code": ("qr_code", "QR code already exists"),
    "uq_departments_account_id": ("account_id", "Account is already linked to a department"),
}

# Constraint name -> (field, message) for foreign key violations
FOREIGN_KEYS: dict[str, tuple[str, str]] = {
    "fk_outgoing_letters_courier_service_id_couriers": (
        "courier_service_id",
        "Courier service does not exist",
    ),
    "fk_departments_account_id_accounts": ("account_id", "Account does not exist"),
}


def _constraint_name(exc: DBAPIError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None)


def translate_error(exc: BaseException) -> Exception:
    """Map a storage exception onto the domain taxonomy.

    Args:
        exc: Exception raised by SQLAlchemy, the driver or asyncio.

    Returns:
        The domain error to raise in its place.
    """
    if isinstance(exc, IntegrityError):
        name = _constraint_name(exc)
        if name in UNIQUE_CONSTRAINTS:
            field, message = UNIQUE_CONSTRAINTS[name]
            return ConflictError(message, field=field)
        if name in FOREIGN_KEYS:
            field, message = FOREIGN_KEYS[name]
            return ValidationError.for_field(field, message)
        logger.warning("Unmapped integrity error on constraint %s", name)
        return ConflictError("Conflicting record")
    if isinstance(exc, (TimeoutError, PoolTimeoutError, OperationalError, InterfaceError)):
        return UnavailableError()
    return InternalError()


class _Repository:
    def __init__(self, store: SQLAlchemyStore) -> None:
        self._store = store

    @property
    def _session(self) -> AsyncSession:
        return self._store.session


def _account(row: Account) -> AccountRecord:
    return AccountRecord(
        account_id=row.account_id,
        username=row.username,
        password_digest=row.password_digest,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _department(row: Department) -> DepartmentRecord:
    return DepartmentRecord(
        department_id=row.department_id,
        name=row.name,
        code=row.code,
        head=row.head,
        contact=row.contact,
        status=row.status,
        account_id=row.account_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        account=_account(row.account).view() if row.account is not None else None,
    )


def _courier(row: Courier) -> CourierRecord:
    return CourierRecord(
        courier_id=row.courier_id,
        service_name=row.service_name,
        code=row.code,
        contact_person=row.contact_person,
        email=row.email,
        phone=row.phone,
        address=row.address,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _letter(row: OutgoingLetter) -> LetterRecord:
    return LetterRecord(
        letter_id=row.letter_id,
        from_department=row.from_department,
        to=row.to,
        priority=row.priority,
        subject=row.subject,
        qr_code=row.qr_code,
        courier_service_id=row.courier_service_id,
        status=row.status,
        dispatched_date=row.dispatched_date,
        delivered_date=row.delivered_date,
        image_ref=row.image_ref,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SQLAlchemyAccountRepository(_Repository, AccountRepository):
    async def add(
        self, *, username: str, password_digest: str, role: AccountRole
    ) -> AccountRecord:
        async with self._store.guard():
            row = Account(username=username, password_digest=password_digest, role=role)
            self._session.add(row)
            await self._session.flush()
            await self._session.refresh(row)
            return _account(row)

    async def get(self, account_id: uuid.UUID) -> AccountRecord | None:
        async with self._store.guard():
            row = await self._session.get(Account, account_id)
            return _account(row) if row else None

    async def get_by_username(self, username: str) -> AccountRecord | None:
        async with self._store.guard():
            row = await self._session.scalar(select(Account).where(Account.username == username))
            return _account(row) if row else None

    async def update(
        self, account_id: uuid.UUID, values: Mapping[str, Any]
    ) -> AccountRecord | None:
        async with self._store.guard():
            row = await self._session.scalar(
                update(Account)
                .where(Account.account_id == account_id)
                .values(**values, updated_at=func.now())
                .returning(Account)
                .execution_options(populate_existing=True)
            )
            return _account(row) if row else None

    async def delete(self, account_id: uuid.UUID) -> bool:
        async with self._store.guard():
            result = await self._session.execute(
                delete(Account).where(Account.account_id == account_id)
            )
            return result.rowcount > 0


class SQLAlchemyDepartmentRepository(_Repository, DepartmentRepository):
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
        async with self._store.guard():
            row = Department(
                name=name,
                code=code,
                head=head,
                contact=contact,
                status=status,
                account_id=account_id,
            )
            self._session.add(row)
            await self._session.flush()
            await self._session.refresh(row, attribute_names=["created_at", "updated_at", "account"])
            return _department(row)

    async def get(self, department_id: uuid.UUID) -> DepartmentRecord | None:
        async with self._store.guard():
            row = await self._session.get(Department, department_id)
            return _department(row) if row else None

    async def list(self) -> list[DepartmentRecord]:
        async with self._store.guard():
            rows = await self._session.scalars(
                select(Department).order_by(Department.created_at, Department.department_id)
            )
            return [_department(row) for row in rows]

    async def update(
        self, department_id: uuid.UUID, values: Mapping[str, Any]
    ) -> DepartmentRecord | None:
        async with self._store.guard():
            updated = await self._session.scalar(
                update(Department)
                .where(Department.department_id == department_id)
                .values(**values, updated_at=func.now())
                .returning(Department.department_id)
            )
            if updated is None:
                return None
            row = await self._session.get(Department, department_id, populate_existing=True)
            return _department(row) if row else None

    async def delete(self, department_id: uuid.UUID) -> bool:
        async with self._store.guard():
            result = await self._session.execute(
                delete(Department).where(Department.department_id == department_id)
            )
            return result.rowcount > 0


class SQLAlchemyCourierRepository(_Repository, CourierRepository):
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
        async with self._store.guard():
            row = Courier(
                service_name=service_name,
                code=code,
                contact_person=contact_person,
                email=email,
                phone=phone,
                address=address,
                status=status,
            )
            self._session.add(row)
            await self._session.flush()
            await self._session.refresh(row)
            return _courier(row)

    async def get(self, courier_id: uuid.UUID) -> CourierRecord | None:
        async with self._store.guard():
            row = await self._session.get(Courier, courier_id)
            return _courier(row) if row else None

    async def get_by_code(self, code: str) -> CourierRecord | None:
        async with self._store.guard():
            row = await self._session.scalar(select(Courier).where(Courier.code == code))
            return _courier(row) if row else None

    async def list(self) -> list[CourierRecord]:
        async with self._store.guard():
            rows = await self._session.scalars(
                select(Courier).order_by(Courier.created_at, Courier.courier_id)
            )
            return [_courier(row) for row in rows]

    async def update(
        self, courier_id: uuid.UUID, values: Mapping[str, Any]
    ) -> CourierRecord | None:
        async with self._store.guard():
            row = await self._session.scalar(
                update(Courier)
                .where(Courier.courier_id == courier_id)
                .values(**values, updated_at=func.now())
                .returning(Courier)
                .execution_options(populate_existing=True)
            )
            return _courier(row) if row else None

    async def delete(self, courier_id: uuid.UUID) -> bool:
        async with self._store.guard():
            result = await self._session.execute(
                delete(Courier).where(Courier.courier_id == courier_id)
            )
            return result.rowcount > 0


class SQLAlchemyLetterRepository(_Repository, LetterRepository):
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
        async with self._store.guard():
            row = OutgoingLetter(
                from_department=from_department,
                to=to,
                priority=priority,
                qr_code=qr_code,
                subject=subject,
                courier_service_id=courier_service_id,
                image_ref=image_ref,
                status=status,
            )
            self._session.add(row)
            await self._session.flush()
            await self._session.refresh(row)
            return _letter(row)

    async def get(self, letter_id: uuid.UUID) -> LetterRecord | None:
        async with self._store.guard():
            row = await self._session.get(OutgoingLetter, letter_id, populate_existing=True)
            return _letter(row) if row else None

    async def get_by_qr_code(self, qr_code: str) -> LetterRecord | None:
        async with self._store.guard():
            row = await self._session.scalar(
                select(OutgoingLetter)
                .where(OutgoingLetter.qr_code == qr_code)
                .execution_options(populate_existing=True)
            )
            return _letter(row) if row else None

    async def list(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        from_department: str | None = None,
    ) -> list[LetterRecord]:
        query = select(OutgoingLetter).order_by(
            OutgoingLetter.created_at, OutgoingLetter.letter_id
        )
        if from_department is not None:
            query = query.where(OutgoingLetter.from_department == from_department)
        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        async with self._store.guard():
            rows = await self._session.scalars(query)
            return [_letter(row) for row in rows]

    async def count(self, *, from_department: str | None = None) -> int:
        query = select(func.count()).select_from(OutgoingLetter)
        if from_department is not None:
            query = query.where(OutgoingLetter.from_department == from_department)
        async with self._store.guard():
            return int(await self._session.scalar(query) or 0)

    async def update(
        self,
        letter_id: uuid.UUID,
        values: Mapping[str, Any],
        *,
        expected_status: LetterStatus | None = None,
    ) -> LetterRecord | None:
        query = update(OutgoingLetter).where(OutgoingLetter.letter_id == letter_id)
        if expected_status is not None:
            # Optimistic check: only write if nobody moved the letter meanwhile
            query = query.where(OutgoingLetter.status == expected_status)
        query = (
            query.values(**values, updated_at=func.now())
            .returning(OutgoingLetter)
            .execution_options(populate_existing=True)
        )
        async with self._store.guard():
            row = await self._session.scalar(query)
            return _letter(row) if row else None

    async def delete(self, letter_id: uuid.UUID) -> bool:
        async with self._store.guard():
            result = await self._session.execute(
                delete(OutgoingLetter).where(OutgoingLetter.letter_id == letter_id)
            )
            return result.rowcount > 0

    async def list_with_courier(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        from_department: str | None = None,
    ) -> list[CourierTrackingRecord]:
        query = (
            select(OutgoingLetter, Courier)
            .join(Courier, OutgoingLetter.courier_service_id == Courier.courier_id)
            .order_by(OutgoingLetter.created_at, OutgoingLetter.letter_id)
        )
        if from_department is not None:
            query = query.where(OutgoingLetter.from_department == from_department)
        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        async with self._store.guard():
            result = await self._session.execute(query)
            return [
                CourierTrackingRecord(
                    letter=_letter(letter),
                    courier_id=courier.courier_id,
                    courier_service_name=courier.service_name,
                    courier_code=courier.code,
                )
                for letter, courier in result.unique().all()
            ]

    async def count_with_courier(self, *, from_department: str | None = None) -> int:
        query = (
            select(func.count())
            .select_from(OutgoingLetter)
            .join(Courier, OutgoingLetter.courier_service_id == Courier.courier_id)
        )
        if from_department is not None:
            query = query.where(OutgoingLetter.from_department == from_department)
        async with self._store.guard():
            return int(await self._session.scalar(query) or 0)

    async def count_by_status(self) -> dict[LetterStatus, int]:
        query = select(OutgoingLetter.status, func.count()).group_by(OutgoingLetter.status)
        async with self._store.guard():
            result = await self._session.execute(query)
            return {status: int(count) for status, count in result.all()}

    async def average_delivery_time(self) -> timedelta | None:
        query = select(
            func.avg(OutgoingLetter.delivered_date - OutgoingLetter.dispatched_date)
        ).where(
            OutgoingLetter.dispatched_date.is_not(None),
            OutgoingLetter.delivered_date.is_not(None),
        )
        async with self._store.guard():
            return await self._session.scalar(query)


class SQLAlchemyStore(Store):
    """Unit of work over one ``AsyncSession``.

    Reads outside ``atomic()`` run in the session's implicit transaction,
    which is rolled back on ``close()``.
    """

    def __init__(self, session: AsyncSession, *, operation_timeout: float) -> None:
        super().__init__()
        self.session = session
        self.operation_timeout = operation_timeout
        self.accounts = SQLAlchemyAccountRepository(self)
        self.departments = SQLAlchemyDepartmentRepository(self)
        self.couriers = SQLAlchemyCourierRepository(self)
        self.letters = SQLAlchemyLetterRepository(self)

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """Bound the enclosed store call and translate its failures."""
        try:
            async with asyncio.timeout(self.operation_timeout):
                yield
        except (DBAPIError, TimeoutError, PoolTimeoutError) as exc:
            translated = translate_error(exc)
            logger.warning(
                "Store operation failed: %s",
                type(exc).__name__,
                extra={"error_kind": translated.__class__.__name__},
            )
            raise translated from exc

    async def _commit(self) -> None:
        try:
            async with self.guard():
                await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def _rollback(self) -> None:
        await self.session.rollback()

    async def close(self) -> None:
        await self.session.close()


def sqlalchemy_store_factory(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    operation_timeout: float,
) -> Callable[[], SQLAlchemyStore]:
    """Build a factory opening one session-backed store per call."""

    def factory() -> SQLAlchemyStore:
        return SQLAlchemyStore(session_factory(), operation_timeout=operation_timeout)

    return factory
