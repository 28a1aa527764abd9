"""Courier router.

Reads are open to any authenticated user; writes need a manager role.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from lettertrack.api.dependencies import Couriers
from lettertrack.api.middleware.auth import (
    AuthenticatedUser,
    require_authenticated_user,
    require_manager,
)
from lettertrack.api.schemas.common import Envelope, MessageResponse, StatusRequest
from lettertrack.api.schemas.couriers import (
    CourierResponse,
    CreateCourierRequest,
    UpdateCourierRequest,
)
from lettertrack.core.errors import NotFoundError

router = APIRouter(
    prefix="/couriers",
    tags=["couriers"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Insufficient permissions"},
    },
)

AnyUser = Annotated[AuthenticatedUser, Depends(require_authenticated_user)]
Manager = Annotated[AuthenticatedUser, Depends(require_manager)]


@router.post(
    "",
    response_model=Envelope[CourierResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register a courier service",
)
async def create_courier(
    request: CreateCourierRequest,
    _user: Manager,
    couriers: Couriers,
) -> Envelope[CourierResponse]:
    record = await couriers.create(request.to_fields())
    return Envelope(data=CourierResponse.from_record(record))


@router.get("", response_model=Envelope[list[CourierResponse]])
async def list_couriers(_user: AnyUser, couriers: Couriers) -> Envelope[list[CourierResponse]]:
    records = await couriers.get_all()
    return Envelope(data=[CourierResponse.from_record(r) for r in records])


@router.get("/{courier_id}", response_model=Envelope[CourierResponse])
async def get_courier(
    courier_id: UUID,
    _user: AnyUser,
    couriers: Couriers,
) -> Envelope[CourierResponse]:
    record = await couriers.get_by_id(courier_id)
    if record is None:
        raise NotFoundError("Courier", courier_id)
    return Envelope(data=CourierResponse.from_record(record))


@router.put("/{courier_id}", response_model=Envelope[CourierResponse])
async def update_courier(
    courier_id: UUID,
    request: UpdateCourierRequest,
    _user: Manager,
    couriers: Couriers,
) -> Envelope[CourierResponse]:
    record = await couriers.update_by_id(courier_id, request.to_partial())
    return Envelope(data=CourierResponse.from_record(record))


@router.delete("/{courier_id}", response_model=Envelope[MessageResponse])
async def delete_courier(
    courier_id: UUID,
    _user: Manager,
    couriers: Couriers,
) -> Envelope[MessageResponse]:
    """Delete a courier; letters it carried keep existing without one."""
    await couriers.delete_by_id(courier_id)
    return Envelope(data=MessageResponse(message="Courier deleted"))


@router.patch("/{courier_id}/status", response_model=Envelope[CourierResponse])
async def set_courier_status(
    courier_id: UUID,
    request: StatusRequest,
    _user: Manager,
    couriers: Couriers,
) -> Envelope[CourierResponse]:
    record = await couriers.set_status(courier_id, request.status)
    return Envelope(data=CourierResponse.from_record(record))
