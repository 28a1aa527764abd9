"""Outgoing letter router.

Every endpoint needs an authenticated user. Department users only see the
letters their own department sent, both in the listing and in courier
tracking.

Letters are created and edited through multipart forms so a scanned image
can travel with them. The image goes to the image store first; if the
letter write then fails the fresh upload is removed again.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from starlette.concurrency import run_in_threadpool

from lettertrack.api.dependencies import Images, Letters
from lettertrack.api.middleware.auth import AuthenticatedUser, require_authenticated_user
from lettertrack.api.middleware.errors import AuthorizationError
from lettertrack.api.schemas.common import Envelope
from lettertrack.api.schemas.letters import (
    CourierTrackingPageResponse,
    LetterPageResponse,
    LetterResponse,
    LetterStatusRequest,
    StatsResponse,
)
from lettertrack.core.errors import LetterTrackError, NotFoundError, ValidationError
from lettertrack.db.models.base import AccountRole
from lettertrack.services.fields import UNSET
from lettertrack.services.letters import LetterRef, LetterUpdate

if TYPE_CHECKING:
    from lettertrack.services.storage import ImageStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/outgoing",
    tags=["outgoing"],
    responses={401: {"description": "Authentication required"}},
)

AnyUser = Annotated[AuthenticatedUser, Depends(require_authenticated_user)]
ImageFile = Annotated[UploadFile | None, File(description="Scanned letter image")]
PageLimit = Annotated[int | None, Query(ge=1, le=500, description="Page size")]
PageOffset = Annotated[int, Query(ge=0)]


# -----------------------------------------------------------------------------
# Image helpers
# -----------------------------------------------------------------------------


async def _upload_image(images: ImageStore | None, image: UploadFile | None) -> str | None:
    """Store an uploaded image and return its reference, if one was sent."""
    if image is None:
        return None
    if images is None:
        raise ValidationError.for_field("image", "Image uploads are disabled")
    # Reject before buffering when the multipart parser already knows the size
    if image.size is not None and image.size > images.max_bytes:
        raise ValidationError.for_field(
            "image", f"Image exceeds the {images.max_bytes} byte limit"
        )
    data = await image.read()
    return await run_in_threadpool(
        images.upload, data, filename=image.filename, content_type=image.content_type
    )


async def _discard_image(images: ImageStore | None, key: str | None) -> None:
    """Remove an image that is no longer referenced; failures are only logged."""
    if images is None or key is None:
        return
    try:
        await run_in_threadpool(images.delete, key)
    except LetterTrackError:
        logger.warning("Could not remove image %s", key)


def _department_scope(user: AuthenticatedUser) -> str | None:
    """Sender a department user is restricted to; None for everyone else."""
    if user.role != AccountRole.OTHER_DEPARTMENT:
        return None
    if user.department_id is None:
        raise AuthorizationError("No department is bound to this account")
    return str(user.department_id)


def _page_size(request: Request, limit: int | None) -> int:
    return limit if limit is not None else request.app.state.settings.default_page_size


def _courier_id(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise ValidationError.for_field(
            "courierServiceId", "courierServiceId must be a valid UUID"
        ) from e


# -----------------------------------------------------------------------------
# Creation and listing
# -----------------------------------------------------------------------------


@router.post(
    "",
    response_model=Envelope[LetterResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register an outgoing letter",
)
async def create_letter(
    _user: AnyUser,
    letters: Letters,
    images: Images,
    from_department: Annotated[str, Form(alias="from")],
    to: Annotated[str, Form()],
    priority: Annotated[str, Form()],
    qr_code: Annotated[str, Form(alias="qrCode")],
    subject: Annotated[str | None, Form()] = None,
    courier_service_id: Annotated[str | None, Form(alias="courierServiceId")] = None,
    image: ImageFile = None,
) -> Envelope[LetterResponse]:
    """Create a letter at PENDING_DISPATCH, storing the image if one is sent."""
    courier_id = _courier_id(courier_service_id)
    image_ref = await _upload_image(images, image)
    try:
        record = await letters.create(
            from_department=from_department,
            to=to,
            priority=priority,
            qr_code=qr_code,
            subject=subject,
            courier_service_id=courier_id,
            image_ref=image_ref,
        )
    except Exception:
        await _discard_image(images, image_ref)
        raise
    return Envelope(data=LetterResponse.from_record(record))


@router.get("", response_model=Envelope[LetterPageResponse])
async def list_letters(
    request: Request,
    user: AnyUser,
    letters: Letters,
    limit: PageLimit = None,
    offset: PageOffset = 0,
) -> Envelope[LetterPageResponse]:
    """List letters page by page; department users see only their own."""
    page = await letters.get_all(
        limit=_page_size(request, limit),
        offset=offset,
        from_department=_department_scope(user),
    )
    return Envelope(data=LetterPageResponse.from_page(page))


@router.get("/courier/tracking", response_model=Envelope[CourierTrackingPageResponse])
async def courier_tracking(
    request: Request,
    user: AnyUser,
    letters: Letters,
    limit: PageLimit = None,
    offset: PageOffset = 0,
) -> Envelope[CourierTrackingPageResponse]:
    """Letters that have a courier, with the courier's identity.

    Paged and scoped like the main listing.
    """
    page = await letters.get_courier_tracking_records(
        limit=_page_size(request, limit),
        offset=offset,
        from_department=_department_scope(user),
    )
    return Envelope(data=CourierTrackingPageResponse.from_page(page))


@router.get("/stats/overview", response_model=Envelope[StatsResponse])
async def stats_overview(_user: AnyUser, letters: Letters) -> Envelope[StatsResponse]:
    stats = await letters.get_stats()
    return Envelope(data=StatsResponse.from_stats(stats))


@router.get("/department/{department_id}", response_model=Envelope[list[LetterResponse]])
async def letters_by_department(
    department_id: str,
    _user: AnyUser,
    letters: Letters,
) -> Envelope[list[LetterResponse]]:
    records = await letters.get_by_department(department_id)
    return Envelope(data=[LetterResponse.from_record(r) for r in records])


# -----------------------------------------------------------------------------
# QR code lookups
# -----------------------------------------------------------------------------


@router.get("/qr/{qr_code}", response_model=Envelope[LetterResponse])
async def get_letter_by_qr_code(
    qr_code: str,
    _user: AnyUser,
    letters: Letters,
) -> Envelope[LetterResponse]:
    record = await letters.get_by_qr_code(qr_code)
    if record is None:
        raise NotFoundError("Letter", f"qr:{qr_code}")
    return Envelope(data=LetterResponse.from_record(record))


@router.patch("/qr/{qr_code}/status", response_model=Envelope[LetterResponse])
async def update_status_by_qr_code(
    qr_code: str,
    request: LetterStatusRequest,
    _user: AnyUser,
    letters: Letters,
) -> Envelope[LetterResponse]:
    """Move the letter with this QR code to another status."""
    record = await letters.update_status(
        LetterRef.by_qr_code(qr_code),
        request.status,
        dispatched_date=request.dispatched_date,
        delivered_date=request.delivered_date,
    )
    return Envelope(data=LetterResponse.from_record(record))


# -----------------------------------------------------------------------------
# Single letter by id
# -----------------------------------------------------------------------------


@router.get("/{letter_id}", response_model=Envelope[LetterResponse])
async def get_letter(
    letter_id: uuid.UUID,
    _user: AnyUser,
    letters: Letters,
) -> Envelope[LetterResponse]:
    record = await letters.get_by_id(letter_id)
    if record is None:
        raise NotFoundError("Letter", letter_id)
    return Envelope(data=LetterResponse.from_record(record))


@router.put("/{letter_id}", response_model=Envelope[LetterResponse])
async def update_letter(
    letter_id: uuid.UUID,
    _user: AnyUser,
    letters: Letters,
    images: Images,
    from_department: Annotated[str | None, Form(alias="from")] = None,
    to: Annotated[str | None, Form()] = None,
    priority: Annotated[str | None, Form()] = None,
    subject: Annotated[str | None, Form()] = None,
    courier_service_id: Annotated[str | None, Form(alias="courierServiceId")] = None,
    letter_status: Annotated[str | None, Form(alias="status")] = None,
    dispatched_date: Annotated[datetime | None, Form(alias="dispatchedDate")] = None,
    delivered_date: Annotated[datetime | None, Form(alias="deliveredDate")] = None,
    image: ImageFile = None,
) -> Envelope[LetterResponse]:
    """Partially update a letter.

    Only the form fields sent are changed. An empty courierServiceId clears
    the courier. A new image replaces the stored one.
    """
    current = await letters.get_by_id(letter_id)
    if current is None:
        raise NotFoundError("Letter", letter_id)

    sent: dict[str, Any] = {
        "from_department": from_department,
        "to": to,
        "priority": priority,
        "subject": subject,
        "status": letter_status,
        "dispatched_date": dispatched_date,
        "delivered_date": delivered_date,
    }
    values = {field: value for field, value in sent.items() if value is not None}
    if courier_service_id is not None:
        values["courier_service_id"] = _courier_id(courier_service_id)

    image_ref = await _upload_image(images, image)
    partial = LetterUpdate(**values, image_ref=image_ref or UNSET)
    try:
        record = await letters.update_by_id(letter_id, partial)
    except Exception:
        await _discard_image(images, image_ref)
        raise

    if image_ref and current.image_ref:
        await _discard_image(images, current.image_ref)
    return Envelope(data=LetterResponse.from_record(record))


@router.delete("/{letter_id}", response_model=Envelope[LetterResponse])
async def delete_letter(
    letter_id: uuid.UUID,
    _user: AnyUser,
    letters: Letters,
    images: Images,
) -> Envelope[LetterResponse]:
    """Delete a letter and its stored image."""
    record = await letters.delete_by_id(letter_id)
    await _discard_image(images, record.image_ref)
    return Envelope(data=LetterResponse.from_record(record))


@router.patch("/{letter_id}/status", response_model=Envelope[LetterResponse])
async def update_status(
    letter_id: uuid.UUID,
    request: LetterStatusRequest,
    _user: AnyUser,
    letters: Letters,
) -> Envelope[LetterResponse]:
    """Move the letter to another status."""
    record = await letters.update_status(
        LetterRef.by_id(letter_id),
        request.status,
        dispatched_date=request.dispatched_date,
        delivered_date=request.delivered_date,
    )
    return Envelope(data=LetterResponse.from_record(record))
