"""Department directory.

Each department is bound one-to-one to a login account with role
``other_department``. The pair is created and destroyed inside one atomic
unit: the account is always written first on create and removed first on
delete, and a failure on the second write rolls back the first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lettertrack.core.errors import ConflictError, NotFoundError, ValidationError
from lettertrack.db.models.base import AccountRole, RecordStatus
from lettertrack.services.accounts import check_credentials
from lettertrack.services.fields import UNSET, FieldErrors, Unset, provided

if TYPE_CHECKING:
    import uuid

    from lettertrack.repositories.base import Store
    from lettertrack.repositories.records import DepartmentRecord
    from lettertrack.services.accounts import AccountStore

logger = logging.getLogger(__name__)

FIELD_MIN_LENGTH = 2
DEPARTMENT_FIELDS = ("name", "code", "head", "contact")
ACCOUNT_FIELDS = ("username", "password")


@dataclass(frozen=True, slots=True)
class DepartmentUpdate:
    """Partial update for a department and its account.

    Fields left at UNSET are not touched.
    """

    name: str | None | Unset = UNSET
    code: str | None | Unset = UNSET
    head: str | None | Unset = UNSET
    contact: str | None | Unset = UNSET
    status: str | RecordStatus | None | Unset = UNSET
    username: str | None | Unset = UNSET
    password: str | None | Unset = UNSET


def _check_department_fields(errors: FieldErrors, values: dict[str, Any]) -> None:
    for field in DEPARTMENT_FIELDS:
        if field in values:
            errors.require_text(field, values[field], min_length=FIELD_MIN_LENGTH)


class DepartmentDirectory:
    """Manage department records and their linked accounts.

    Args:
        store: Unit of work shared with ``accounts``.
        accounts: Account store used for the cascading writes.
    """

    def __init__(self, store: Store, accounts: AccountStore) -> None:
        self._store = store
        self._accounts = accounts

    async def create_with_account(
        self,
        *,
        name: str,
        code: str,
        head: str,
        contact: str,
        username: str,
        password: str,
        status: str | RecordStatus = RecordStatus.ACTIVE,
    ) -> DepartmentRecord:
        """Create a department together with its login account.

        Args:
            name: Department name.
            code: Department code.
            head: Head of department.
            contact: Contact details.
            username: Login name for the new account.
            password: Plaintext password; only its digest is stored.
            status: active or inactive.

        Returns:
            The department with the redacted account view joined.

        Raises:
            ValidationError: If a field breaks the field rules.
            ConflictError: If the username is taken.
        """
        errors = FieldErrors()
        _check_department_fields(
            errors, {"name": name, "code": code, "head": head, "contact": contact}
        )
        check_credentials(errors, username=username, password=password)
        record_status = errors.choice("status", status, RecordStatus)
        errors.raise_if_any()

        if await self._store.accounts.get_by_username(username) is not None:
            raise ConflictError("Username already exists", field="username")

        async with self._store.atomic():
            account = await self._accounts.create(
                username, password, AccountRole.OTHER_DEPARTMENT
            )
            department = await self._store.departments.add(
                name=name,
                code=code,
                head=head,
                contact=contact,
                status=record_status,
                account_id=account.account_id,
            )

        logger.info(
            "Department created",
            extra={
                "department_id": str(department.department_id),
                "account_id": str(account.account_id),
            },
        )
        return department

    async def get_all(self) -> list[DepartmentRecord]:
        return await self._store.departments.list()

    async def get_by_id(self, department_id: uuid.UUID) -> DepartmentRecord | None:
        """Return the department, or None when it does not exist."""
        return await self._store.departments.get(department_id)

    async def update_by_id(
        self, department_id: uuid.UUID, partial: DepartmentUpdate
    ) -> DepartmentRecord:
        """Apply a partial update.

        Username and password changes go to the linked account; the other
        fields go to the department row. A partial with only department
        fields never touches the account.

        Raises:
            ValidationError: If nothing is provided or a field breaks the rules.
            NotFoundError: If the department or its account link is missing.
            ConflictError: If the new username is taken.
        """
        values = provided(partial)
        if not values:
            raise ValidationError("At least one field must be provided for update")

        account_values = {k: values.pop(k) for k in ACCOUNT_FIELDS if k in values}

        errors = FieldErrors()
        _check_department_fields(errors, values)
        for field, value in account_values.items():
            if value is None:
                errors.add(field, f"{field} is required")
        check_credentials(
            errors,
            **{k: v for k, v in account_values.items() if v is not None},
        )
        if "status" in values:
            values["status"] = errors.choice("status", values["status"], RecordStatus)
        errors.raise_if_any()

        async with self._store.atomic():
            current = await self._store.departments.get(department_id)
            if current is None:
                raise NotFoundError("Department", department_id)

            if account_values:
                account = await self._accounts.get(current.account_id)
                if account is None:
                    raise NotFoundError("Account linked to department", department_id)
                await self._accounts.update(account.account_id, **account_values)

            if values:
                updated = await self._store.departments.update(department_id, values)
            else:
                updated = await self._store.departments.get(department_id)
            if updated is None:
                raise NotFoundError("Department", department_id)

        logger.info(
            "Department updated",
            extra={
                "department_id": str(department_id),
                "fields": sorted(values),
                "account_fields": sorted(account_values),
            },
        )
        return updated

    async def delete_by_id(self, department_id: uuid.UUID) -> None:
        """Delete the department and its account, account first.

        Raises:
            NotFoundError: If the department does not exist.
        """
        async with self._store.atomic():
            current = await self._store.departments.get(department_id)
            if current is None:
                raise NotFoundError("Department", department_id)
            await self._store.accounts.delete(current.account_id)
            await self._store.departments.delete(department_id)

        logger.info(
            "Department deleted",
            extra={
                "department_id": str(department_id),
                "account_id": str(current.account_id),
            },
        )

    async def set_status(
        self, department_id: uuid.UUID, status: str | RecordStatus
    ) -> DepartmentRecord:
        """Set the department status.

        Raises:
            ValidationError: If status is not exactly active or inactive.
            NotFoundError: If the department does not exist.
        """
        errors = FieldErrors()
        record_status = errors.choice("status", status, RecordStatus)
        errors.raise_if_any("Status must be active or inactive")

        async with self._store.atomic():
            updated = await self._store.departments.update(
                department_id, {"status": record_status}
            )
        if updated is None:
            raise NotFoundError("Department", department_id)
        return updated
