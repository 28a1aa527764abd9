"""Department router.

Reads are open to any authenticated user; writes need a manager role
(super_admin or rd_department).
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from lettertrack.api.dependencies import Departments
from lettertrack.api.middleware.auth import (
    AuthenticatedUser,
    require_authenticated_user,
    require_manager,
)
from lettertrack.api.schemas.common import Envelope, MessageResponse, StatusRequest
from lettertrack.api.schemas.departments import (
    CreateDepartmentRequest,
    DepartmentResponse,
    UpdateDepartmentRequest,
)
from lettertrack.core.errors import NotFoundError

router = APIRouter(
    prefix="/departments",
    tags=["departments"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Insufficient permissions"},
    },
)

AnyUser = Annotated[AuthenticatedUser, Depends(require_authenticated_user)]
Manager = Annotated[AuthenticatedUser, Depends(require_manager)]


@router.post(
    "",
    response_model=Envelope[DepartmentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a department with its login account",
)
async def create_department(
    request: CreateDepartmentRequest,
    _user: Manager,
    departments: Departments,
) -> Envelope[DepartmentResponse]:
    record = await departments.create_with_account(
        name=request.name,
        code=request.code,
        head=request.head,
        contact=request.contact,
        username=request.username,
        password=request.password,
        status=request.status,
    )
    return Envelope(data=DepartmentResponse.from_record(record))


@router.get("", response_model=Envelope[list[DepartmentResponse]])
async def list_departments(
    _user: AnyUser,
    departments: Departments,
) -> Envelope[list[DepartmentResponse]]:
    records = await departments.get_all()
    return Envelope(data=[DepartmentResponse.from_record(r) for r in records])


@router.get("/{department_id}", response_model=Envelope[DepartmentResponse])
async def get_department(
    department_id: UUID,
    _user: AnyUser,
    departments: Departments,
) -> Envelope[DepartmentResponse]:
    record = await departments.get_by_id(department_id)
    if record is None:
        raise NotFoundError("Department", department_id)
    return Envelope(data=DepartmentResponse.from_record(record))


@router.put("/{department_id}", response_model=Envelope[DepartmentResponse])
async def update_department(
    department_id: UUID,
    request: UpdateDepartmentRequest,
    _user: Manager,
    departments: Departments,
) -> Envelope[DepartmentResponse]:
    """Update department fields and, when sent, the account credentials."""
    record = await departments.update_by_id(department_id, request.to_partial())
    return Envelope(data=DepartmentResponse.from_record(record))


@router.delete("/{department_id}", response_model=Envelope[MessageResponse])
async def delete_department(
    department_id: UUID,
    _user: Manager,
    departments: Departments,
) -> Envelope[MessageResponse]:
    """Delete the department together with its login account."""
    await departments.delete_by_id(department_id)
    return Envelope(data=MessageResponse(message="Department deleted"))


@router.patch("/{department_id}/status", response_model=Envelope[DepartmentResponse])
async def set_department_status(
    department_id: UUID,
    request: StatusRequest,
    _user: Manager,
    departments: Departments,
) -> Envelope[DepartmentResponse]:
    record = await departments.set_status(department_id, request.status)
    return Envelope(data=DepartmentResponse.from_record(record))
