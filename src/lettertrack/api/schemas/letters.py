"""Pydantic schemas for outgoing letter endpoints.

Letters are created and edited through multipart forms (they may carry an
image); status changes and every response are JSON.
"""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from pydantic import Field

from lettertrack.api.schemas.common import APIModel

if TYPE_CHECKING:
    from lettertrack.repositories.records import CourierTrackingRecord, LetterRecord
    from lettertrack.services.letters import LetterPage, LetterStats, TrackingPage


class LetterStatusRequest(APIModel):
    """Request schema for moving a letter to another status."""

    status: str = Field(..., description="Target status")
    dispatched_date: datetime | None = Field(
        None, description="Dispatch time; defaults to now when dispatching"
    )
    delivered_date: datetime | None = Field(
        None, description="Delivery time; defaults to now when delivering"
    )


class LetterResponse(APIModel):
    """Response schema for an outgoing letter."""

    id: UUID
    from_department: str = Field(..., alias="from")
    to: str
    priority: str
    subject: str | None = None
    qr_code: str
    courier_service_id: UUID | None = None
    status: str
    dispatched_date: datetime | None = None
    delivered_date: datetime | None = None
    image: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: LetterRecord) -> LetterResponse:
        return cls(
            id=record.letter_id,
            from_department=record.from_department,
            to=record.to,
            priority=record.priority.value,
            subject=record.subject,
            qr_code=record.qr_code,
            courier_service_id=record.courier_service_id,
            status=record.status.value,
            dispatched_date=record.dispatched_date,
            delivered_date=record.delivered_date,
            image=record.image_ref,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class PaginationInfo(APIModel):
    """Pagination metadata for letter listings."""

    total: int
    has_more: bool
    current_page: int
    total_pages: int


class LetterPageResponse(APIModel):
    """One page of letters."""

    letters: list[LetterResponse]
    pagination: PaginationInfo

    @classmethod
    def from_page(cls, page: LetterPage) -> LetterPageResponse:
        return cls(
            letters=[LetterResponse.from_record(r) for r in page.records],
            pagination=PaginationInfo(
                total=page.total,
                has_more=page.has_more,
                current_page=page.current_page,
                total_pages=page.total_pages,
            ),
        )


class CourierSummary(APIModel):
    """Identity of the courier carrying a letter."""

    id: UUID
    service_name: str
    code: str


class CourierTrackingResponse(LetterResponse):
    """A letter joined with its courier."""

    courier: CourierSummary

    @classmethod
    def from_tracking(cls, record: CourierTrackingRecord) -> CourierTrackingResponse:
        letter = LetterResponse.from_record(record.letter)
        return cls(
            **letter.model_dump(),
            courier=CourierSummary(
                id=record.courier_id,
                service_name=record.courier_service_name,
                code=record.courier_code,
            ),
        )


class StatsResponse(APIModel):
    """Letter counts per status and mean delivery latency."""

    counts: dict[str, int]
    total: int
    average_delivery_days: float | None = None

    @classmethod
    def from_stats(cls, stats: LetterStats) -> StatsResponse:
        return cls(
            counts={status.value: count for status, count in stats.counts.items()},
            total=stats.total,
            average_delivery_days=stats.average_delivery_days,
        )


class CourierTrackingPageResponse(APIModel):
    """One page of letters joined with their courier."""

    letters: list[CourierTrackingResponse]
    pagination: PaginationInfo

    @classmethod
    def from_page(cls, page: TrackingPage) -> CourierTrackingPageResponse:
        return cls(
            letters=[CourierTrackingResponse.from_tracking(r) for r in page.records],
            pagination=PaginationInfo(
                total=page.total,
                has_more=page.has_more,
                current_page=page.current_page,
                total_pages=page.total_pages,
            ),
        )
