"""Pydantic schemas for department endpoints."""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from pydantic import Field

from lettertrack.api.schemas.common import APIModel
from lettertrack.services.departments import DepartmentUpdate
from lettertrack.services.fields import UNSET

if TYPE_CHECKING:
    from lettertrack.repositories.records import DepartmentRecord


class CreateDepartmentRequest(APIModel):
    """Request schema for creating a department and its login account."""

    name: str = Field(..., description="Department name")
    code: str = Field(..., description="Department code")
    head: str = Field(..., description="Head of department")
    contact: str = Field(..., description="Contact details")
    username: str = Field(..., description="Login name of the department account")
    password: str = Field(..., description="Initial password of the department account")
    status: str = Field("active", description="active or inactive")


class UpdateDepartmentRequest(APIModel):
    """Partial update; only the fields sent are changed."""

    name: str | None = None
    code: str | None = None
    head: str | None = None
    contact: str | None = None
    status: str | None = None
    username: str | None = None
    password: str | None = None

    def to_partial(self) -> DepartmentUpdate:
        return DepartmentUpdate(
            **{
                field: getattr(self, field) if field in self.model_fields_set else UNSET
                for field in type(self).model_fields
            }
        )


class AccountSummary(APIModel):
    """Login account bound to a department; never carries the digest."""

    id: UUID
    username: str
    role: str


class DepartmentResponse(APIModel):
    """Response schema for a department."""

    id: UUID
    name: str
    code: str
    head: str
    contact: str
    status: str
    account_id: UUID
    account: AccountSummary | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: DepartmentRecord) -> DepartmentResponse:
        account = None
        if record.account is not None:
            account = AccountSummary(
                id=record.account.account_id,
                username=record.account.username,
                role=record.account.role.value,
            )
        return cls(
            id=record.department_id,
            name=record.name,
            code=record.code,
            head=record.head,
            contact=record.contact,
            status=record.status.value,
            account_id=record.account_id,
            account=account,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
