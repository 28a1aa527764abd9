"""Courier directory.

Plain CRUD over courier services with one business rule: the courier code
is unique. Deleting a courier leaves its letters in place with the
courier reference cleared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from email_validator import EmailNotValidError, validate_email

from lettertrack.core.errors import ConflictError, NotFoundError, ValidationError
from lettertrack.db.models.base import RecordStatus
from lettertrack.services.fields import UNSET, FieldErrors, Unset, provided

if TYPE_CHECKING:
    import uuid

    from lettertrack.repositories.base import Store
    from lettertrack.repositories.records import CourierRecord

logger = logging.getLogger(__name__)

# Minimum lengths per field
FIELD_RULES: dict[str, int] = {
    "service_name": 2,
    "code": 2,
    "contact_person": 2,
    "address": 2,
    "phone": 5,
}

DUPLICATE_CODE_MESSAGE = "duplicate courier code"


@dataclass(frozen=True, slots=True)
class CourierFields:
    """Fields for a new courier."""

    service_name: str
    code: str
    contact_person: str
    email: str
    phone: str
    address: str
    status: str | RecordStatus = RecordStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class CourierUpdate:
    """Partial update for a courier; fields left at UNSET are not touched."""

    service_name: str | None | Unset = UNSET
    code: str | None | Unset = UNSET
    contact_person: str | None | Unset = UNSET
    email: str | None | Unset = UNSET
    phone: str | None | Unset = UNSET
    address: str | None | Unset = UNSET
    status: str | RecordStatus | None | Unset = UNSET


def _check_fields(errors: FieldErrors, values: dict[str, Any]) -> dict[str, Any]:
    for field, min_length in FIELD_RULES.items():
        if field in values:
            errors.require_text(field, values[field], min_length=min_length)
    if "email" in values:
        email = values["email"]
        if not isinstance(email, str) or not email.strip():
            errors.add("email", "email is required")
        else:
            try:
                validate_email(email, check_deliverability=False)
            except EmailNotValidError:
                errors.add("email", "email must be a valid email address")
    if "status" in values:
        values["status"] = errors.choice("status", values["status"], RecordStatus)
    return values


class CourierDirectory:
    """Manage courier service records.

    Args:
        store: Unit of work holding the courier repository.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    async def create(self, fields: CourierFields) -> CourierRecord:
        """Create a courier.

        Raises:
            ValidationError: If a field breaks the field rules.
            ConflictError: If the code is already used by another courier.
        """
        errors = FieldErrors()
        values = _check_fields(
            errors,
            {
                "service_name": fields.service_name,
                "code": fields.code,
                "contact_person": fields.contact_person,
                "email": fields.email,
                "phone": fields.phone,
                "address": fields.address,
                "status": fields.status,
            },
        )
        errors.raise_if_any()

        if await self._store.couriers.get_by_code(fields.code) is not None:
            raise ConflictError(DUPLICATE_CODE_MESSAGE, field="code")

        async with self._store.atomic():
            record = await self._store.couriers.add(**values)

        logger.info(
            "Courier created",
            extra={"courier_id": str(record.courier_id), "code": record.code},
        )
        return record

    async def get_all(self) -> list[CourierRecord]:
        return await self._store.couriers.list()

    async def get_by_id(self, courier_id: uuid.UUID) -> CourierRecord | None:
        """Return the courier, or None when it does not exist."""
        return await self._store.couriers.get(courier_id)

    async def update_by_id(self, courier_id: uuid.UUID, partial: CourierUpdate) -> CourierRecord:
        """Apply a partial update.

        Raises:
            ValidationError: If nothing is provided or a field breaks the rules.
            NotFoundError: If the courier does not exist.
            ConflictError: If the new code is used by another courier.
        """
        values = provided(partial)
        if not values:
            raise ValidationError("At least one field must be provided for update")

        errors = FieldErrors()
        values = _check_fields(errors, values)
        errors.raise_if_any()

        if "code" in values:
            existing = await self._store.couriers.get_by_code(values["code"])
            if existing is not None and existing.courier_id != courier_id:
                raise ConflictError(DUPLICATE_CODE_MESSAGE, field="code")

        async with self._store.atomic():
            record = await self._store.couriers.update(courier_id, values)
        if record is None:
            raise NotFoundError("Courier", courier_id)

        logger.info(
            "Courier updated",
            extra={"courier_id": str(courier_id), "fields": sorted(values)},
        )
        return record

    async def delete_by_id(self, courier_id: uuid.UUID) -> None:
        """Delete a courier; its letters keep existing without a courier.

        Raises:
            NotFoundError: If the courier does not exist.
        """
        async with self._store.atomic():
            deleted = await self._store.couriers.delete(courier_id)
        if not deleted:
            raise NotFoundError("Courier", courier_id)
        logger.info("Courier deleted", extra={"courier_id": str(courier_id)})

    async def set_status(self, courier_id: uuid.UUID, status: str | RecordStatus) -> CourierRecord:
        """Set the courier status.

        Raises:
            ValidationError: If status is not exactly active or inactive.
            NotFoundError: If the courier does not exist.
        """
        errors = FieldErrors()
        record_status = errors.choice("status", status, RecordStatus)
        errors.raise_if_any("Status must be active or inactive")

        async with self._store.atomic():
            record = await self._store.couriers.update(courier_id, {"status": record_status})
        if record is None:
            raise NotFoundError("Courier", courier_id)
        return record
