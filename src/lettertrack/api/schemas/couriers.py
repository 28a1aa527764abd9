"""Pydantic schemas for courier endpoints."""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from pydantic import Field

from lettertrack.api.schemas.common import APIModel
from lettertrack.services.couriers import CourierFields, CourierUpdate
from lettertrack.services.fields import UNSET

if TYPE_CHECKING:
    from lettertrack.repositories.records import CourierRecord


class CreateCourierRequest(APIModel):
    """Request schema for registering a courier service."""

    service_name: str = Field(..., description="Courier service name")
    code: str = Field(..., description="Unique courier code")
    contact_person: str = Field(..., description="Contact person at the courier")
    email: str = Field(..., description="Contact email")
    phone: str = Field(..., description="Contact phone number")
    address: str = Field(..., description="Postal address")
    status: str = Field("active", description="active or inactive")

    def to_fields(self) -> CourierFields:
        return CourierFields(**self.model_dump())


class UpdateCourierRequest(APIModel):
    """Partial update; only the fields sent are changed."""

    service_name: str | None = None
    code: str | None = None
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    status: str | None = None

    def to_partial(self) -> CourierUpdate:
        return CourierUpdate(
            **{
                field: getattr(self, field) if field in self.model_fields_set else UNSET
                for field in type(self).model_fields
            }
        )


class CourierResponse(APIModel):
    """Response schema for a courier."""

    id: UUID
    service_name: str
    code: str
    contact_person: str
    email: str
    phone: str
    address: str
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: CourierRecord) -> CourierResponse:
        return cls(
            id=record.courier_id,
            service_name=record.service_name,
            code=record.code,
            contact_person=record.contact_person,
            email=record.email,
            phone=record.phone,
            address=record.address,
            status=record.status.value,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
