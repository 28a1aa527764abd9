"""Outgoing letter tracking engine.

This module implements the letter dispatch state machine with:
- QR code identity alongside the internal id, both resolving to the same record
- Forward-only status transitions validated in one place
- Optimistic status writes conditioned on the prior status
- Courier tracking and aggregate statistics

The state machine:

    PENDING_DISPATCH -> DISPATCHED -> DELIVERED (terminal)
                                   -> RETURNED  (terminal)
"""

from __future__ import annotations

import inspect
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from lettertrack.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from lettertrack.db.models.base import LetterPriority, LetterStatus
from lettertrack.services.fields import UNSET, FieldErrors, Unset, provided

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from lettertrack.repositories.base import Store
    from lettertrack.repositories.records import CourierTrackingRecord, LetterRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 30


@dataclass(frozen=True, slots=True)
class LetterRef:
    """Identifies a letter either by internal id or by QR code.

    Build one with ``LetterRef.by_id`` or ``LetterRef.by_qr_code``.
    """

    letter_id: uuid.UUID | None = None
    qr_code: str | None = None

    @classmethod
    def by_id(cls, letter_id: uuid.UUID) -> LetterRef:
        return cls(letter_id=letter_id)

    @classmethod
    def by_qr_code(cls, qr_code: str) -> LetterRef:
        return cls(qr_code=qr_code)

    def __str__(self) -> str:
        return str(self.letter_id) if self.letter_id is not None else f"qr:{self.qr_code}"


@dataclass(frozen=True, slots=True)
class LetterUpdate:
    """Partial update for a letter; fields left at UNSET are not touched.

    The QR code is the letter's external identity and cannot be changed.
    """

    from_department: str | None | Unset = UNSET
    to: str | None | Unset = UNSET
    priority: str | LetterPriority | None | Unset = UNSET
    subject: str | None | Unset = UNSET
    courier_service_id: uuid.UUID | None | Unset = UNSET
    image_ref: str | None | Unset = UNSET
    status: str | LetterStatus | None | Unset = UNSET
    dispatched_date: datetime | None | Unset = UNSET
    delivered_date: datetime | None | Unset = UNSET


@dataclass(frozen=True, slots=True)
class StatusChange:
    """Event emitted after a letter status change is committed."""

    letter_id: uuid.UUID
    qr_code: str
    previous_status: LetterStatus
    new_status: LetterStatus
    changed_at: datetime


# Listener called with every committed status change
StatusListener = Callable[[StatusChange], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class LetterPage:
    """One page of letters with pagination metadata."""

    records: list[LetterRecord]
    total: int
    has_more: bool
    current_page: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class TrackingPage:
    """One page of letters joined with their courier."""

    records: list[CourierTrackingRecord]
    total: int
    has_more: bool
    current_page: int
    total_pages: int


def _check_window(limit: int, offset: int) -> None:
    if limit < 1:
        raise ValidationError.for_field("limit", "limit must be at least 1")
    if offset < 0:
        raise ValidationError.for_field("offset", "offset must not be negative")


def _page_info(total: int, returned: int, limit: int, offset: int) -> dict[str, Any]:
    return {
        "total": total,
        "has_more": offset + returned < total,
        "current_page": offset // limit + 1,
        "total_pages": math.ceil(total / limit),
    }


@dataclass(frozen=True, slots=True)
class LetterStats:
    """Aggregate letter statistics.

    Attributes:
        counts: Letters per status, every status present.
        total: Number of letters.
        average_delivery_time: Mean dispatched -> delivered latency over
            letters with both dates, or None when there are none.
    """

    counts: dict[LetterStatus, int]
    total: int
    average_delivery_time: timedelta | None

    @property
    def average_delivery_days(self) -> float | None:
        if self.average_delivery_time is None:
            return None
        return self.average_delivery_time / timedelta(days=1)


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class LetterTrackingEngine:
    """Service for outgoing letters and their dispatch lifecycle.

    Every status change, whether it comes through ``update_by_id``,
    ``update_by_qr_code`` or ``update_status``, goes through
    ``_apply_update`` and its single transition check.

    Example:
        engine = LetterTrackingEngine(store)
        letter = await engine.create(
            from_department="RD", to="Finance", priority="high", qr_code="QR-001"
        )
        await engine.update_status(LetterRef.by_qr_code("QR-001"), LetterStatus.DISPATCHED)
    """

    # Valid status transitions: from_status -> allowed to_statuses
    VALID_TRANSITIONS: ClassVar[dict[LetterStatus, frozenset[LetterStatus]]] = {
        LetterStatus.PENDING_DISPATCH: frozenset({LetterStatus.DISPATCHED}),
        LetterStatus.DISPATCHED: frozenset({LetterStatus.DELIVERED, LetterStatus.RETURNED}),
        # Terminal states - no transitions out
        LetterStatus.DELIVERED: frozenset(),
        LetterStatus.RETURNED: frozenset(),
    }

    INITIAL_STATUS: ClassVar[LetterStatus] = LetterStatus.PENDING_DISPATCH

    def __init__(self, store: Store, listeners: Iterable[StatusListener] = ()) -> None:
        """Initialize the engine.

        Args:
            store: Unit of work holding the letter and courier repositories.
            listeners: Callables notified after each committed status change.
        """
        self._store = store
        self._listeners = list(listeners)

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    @classmethod
    def allowed_transitions(cls, status: LetterStatus) -> frozenset[LetterStatus]:
        """Statuses reachable from ``status`` in one hop."""
        return cls.VALID_TRANSITIONS.get(status, frozenset())

    @classmethod
    def is_valid_transition(cls, from_status: LetterStatus, to_status: LetterStatus) -> bool:
        return to_status in cls.allowed_transitions(from_status)

    @classmethod
    def is_terminal_state(cls, status: LetterStatus) -> bool:
        return not cls.allowed_transitions(status)

    def _check_transition(self, current: LetterStatus, target: LetterStatus) -> None:
        """The one transition check behind every status change.

        Raises:
            InvalidTransitionError: If ``target`` is not reachable from ``current``.
        """
        if not self.is_valid_transition(current, target):
            logger.warning(
                "Invalid transition attempted",
                extra={"from_status": current.value, "to_status": target.value},
            )
            raise InvalidTransitionError(current, target, self.allowed_transitions(current))

    # -------------------------------------------------------------------------
    # Creation and lookup
    # -------------------------------------------------------------------------

    async def create(
        self,
        *,
        from_department: str,
        to: str,
        priority: str | LetterPriority,
        qr_code: str,
        subject: str | None = None,
        courier_service_id: uuid.UUID | None = None,
        image_ref: str | None = None,
    ) -> LetterRecord:
        """Register a letter at PENDING_DISPATCH with no dates.

        Raises:
            ValidationError: If a mandatory field is missing, the priority is
                unknown or the courier does not exist.
            ConflictError: If the QR code is already used.
        """
        errors = FieldErrors()
        errors.require_text("from", from_department)
        errors.require_text("to", to)
        errors.require_text("qr_code", qr_code)
        letter_priority = errors.choice("priority", priority, LetterPriority)
        errors.raise_if_any()

        if await self._store.letters.get_by_qr_code(qr_code) is not None:
            raise ConflictError("QR code already exists", field="qr_code")
        await self._check_courier(courier_service_id)

        async with self._store.atomic():
            record = await self._store.letters.add(
                from_department=from_department,
                to=to,
                priority=letter_priority,
                qr_code=qr_code,
                subject=subject,
                courier_service_id=courier_service_id,
                image_ref=image_ref,
                status=self.INITIAL_STATUS,
            )

        logger.info(
            "Letter created",
            extra={"letter_id": str(record.letter_id), "qr_code": record.qr_code},
        )
        return record

    async def get_all(
        self,
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        from_department: str | None = None,
    ) -> LetterPage:
        """Return one page of letters in insertion order.

        Args:
            limit: Page size.
            offset: Number of letters to skip.
            from_department: Restrict to letters sent by this department.

        Raises:
            ValidationError: If limit is below 1 or offset is negative.
        """
        _check_window(limit, offset)
        total = await self._store.letters.count(from_department=from_department)
        records = await self._store.letters.list(
            limit=limit, offset=offset, from_department=from_department
        )
        return LetterPage(records=records, **_page_info(total, len(records), limit, offset))

    async def get_by_department(self, department_id: str) -> list[LetterRecord]:
        """All letters sent from ``department_id``."""
        return await self._store.letters.list(from_department=department_id)

    async def get_by_id(self, letter_id: uuid.UUID) -> LetterRecord | None:
        return await self._store.letters.get(letter_id)

    async def get_by_qr_code(self, qr_code: str) -> LetterRecord | None:
        return await self._store.letters.get_by_qr_code(qr_code)

    async def _resolve(self, ref: LetterRef) -> LetterRecord:
        if ref.letter_id is not None:
            record = await self.get_by_id(ref.letter_id)
        elif ref.qr_code is not None:
            record = await self.get_by_qr_code(ref.qr_code)
        else:
            raise ValidationError("A letter id or QR code is required")
        if record is None:
            raise NotFoundError("Letter", ref)
        return record

    async def _check_courier(self, courier_id: uuid.UUID | None) -> None:
        if courier_id is None:
            return
        if await self._store.couriers.get(courier_id) is None:
            raise ValidationError.for_field(
                "courier_service_id", "Courier service does not exist"
            )

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def update_by_id(self, letter_id: uuid.UUID, partial: LetterUpdate) -> LetterRecord:
        """Apply a partial update to the letter with this id.

        Raises:
            NotFoundError: If no letter has this id.
            ValidationError: If a field is invalid.
            InvalidTransitionError: If a status change is not allowed.
        """
        letter = await self._resolve(LetterRef.by_id(letter_id))
        return await self._apply_update(letter, provided(partial))

    async def update_by_qr_code(self, qr_code: str, partial: LetterUpdate) -> LetterRecord:
        """Apply a partial update to the letter with this QR code.

        Same rules as ``update_by_id``.
        """
        letter = await self._resolve(LetterRef.by_qr_code(qr_code))
        return await self._apply_update(letter, provided(partial))

    async def update_status(
        self,
        ref: LetterRef,
        new_status: str | LetterStatus,
        *,
        dispatched_date: datetime | None = None,
        delivered_date: datetime | None = None,
    ) -> LetterRecord:
        """Move a letter to ``new_status``.

        The dispatched (or delivered) date is stamped with the current time
        when moving to DISPATCHED (or DELIVERED) without one.

        Raises:
            NotFoundError: If the letter does not exist.
            ValidationError: If the status is unknown or the delivered date
                would precede the dispatched date.
            InvalidTransitionError: If the move is not allowed.
        """
        letter = await self._resolve(ref)
        values: dict[str, Any] = {"status": new_status}
        if dispatched_date is not None:
            values["dispatched_date"] = dispatched_date
        if delivered_date is not None:
            values["delivered_date"] = delivered_date
        return await self._apply_update(letter, values)

    async def _apply_update(self, letter: LetterRecord, values: dict[str, Any]) -> LetterRecord:
        """Validate and write an update; the single path for every write.

        Args:
            letter: Letter as read before the update.
            values: Provided fields only.

        Returns:
            The updated letter.
        """
        if not values:
            raise ValidationError("At least one field must be provided for update")

        errors = FieldErrors()
        for field, label in (("from_department", "from"), ("to", "to")):
            if field in values:
                errors.require_text(label, values[field])
        if "priority" in values:
            values["priority"] = errors.choice("priority", values["priority"], LetterPriority)
        new_status: LetterStatus | None = None
        if "status" in values:
            new_status = errors.choice("status", values["status"], LetterStatus)
            values["status"] = new_status
        errors.raise_if_any()

        for field in ("dispatched_date", "delivered_date"):
            if field in values:
                values[field] = _as_utc(values[field])

        if new_status is not None:
            self._check_transition(letter.status, new_status)
            now = datetime.now(UTC)
            if new_status == LetterStatus.DISPATCHED and values.get("dispatched_date") is None:
                values["dispatched_date"] = now
            if new_status == LetterStatus.DELIVERED and values.get("delivered_date") is None:
                values["delivered_date"] = now

        dispatched = values.get("dispatched_date", letter.dispatched_date)
        delivered = values.get("delivered_date", letter.delivered_date)
        if dispatched is not None and delivered is not None and delivered < dispatched:
            raise ValidationError.for_field(
                "delivered_date", "Delivered date cannot be earlier than dispatched date"
            )

        if "courier_service_id" in values:
            await self._check_courier(values["courier_service_id"])

        async with self._store.atomic():
            updated = await self._store.letters.update(
                letter.letter_id,
                values,
                # Status writes only land if nobody moved the letter meanwhile
                expected_status=letter.status if new_status is not None else None,
            )
            if updated is None:
                current = await self._store.letters.get(letter.letter_id)
                if current is None or new_status is None:
                    raise NotFoundError("Letter", letter.letter_id)
                # Lost a race: judge the request against the status that won
                raise InvalidTransitionError(
                    current.status, new_status, self.allowed_transitions(current.status)
                )

        if new_status is not None:
            logger.info(
                "Letter status changed",
                extra={
                    "letter_id": str(letter.letter_id),
                    "from_status": letter.status.value,
                    "to_status": new_status.value,
                },
            )
            await self._notify(
                StatusChange(
                    letter_id=updated.letter_id,
                    qr_code=updated.qr_code,
                    previous_status=letter.status,
                    new_status=new_status,
                    changed_at=updated.updated_at,
                )
            )
        return updated

    async def _notify(self, change: StatusChange) -> None:
        for listener in self._listeners:
            try:
                result = listener(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # Notification failures never fail the status change
                logger.exception(
                    "Status change listener failed",
                    extra={"letter_id": str(change.letter_id)},
                )

    # -------------------------------------------------------------------------
    # Reporting and deletion
    # -------------------------------------------------------------------------

    async def get_courier_tracking_records(
        self,
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        from_department: str | None = None,
    ) -> TrackingPage:
        """Letters that have a courier, joined with the courier's identity.

        Paged and scoped like ``get_all``.

        Raises:
            ValidationError: If limit is below 1 or offset is negative.
        """
        _check_window(limit, offset)
        letters = self._store.letters
        total = await letters.count_with_courier(from_department=from_department)
        records = await letters.list_with_courier(
            limit=limit, offset=offset, from_department=from_department
        )
        return TrackingPage(records=records, **_page_info(total, len(records), limit, offset))

    async def get_stats(self) -> LetterStats:
        """Counts per status and mean delivery latency."""
        counts = await self._store.letters.count_by_status()
        histogram = {status: counts.get(status, 0) for status in LetterStatus}
        return LetterStats(
            counts=histogram,
            total=sum(histogram.values()),
            average_delivery_time=await self._store.letters.average_delivery_time(),
        )

    async def delete_by_id(self, letter_id: uuid.UUID) -> LetterRecord:
        """Hard delete a letter; couriers and departments are untouched.

        Returns:
            The deleted letter.

        Raises:
            NotFoundError: If the letter does not exist.
        """
        async with self._store.atomic():
            letter = await self._store.letters.get(letter_id)
            if letter is None or not await self._store.letters.delete(letter_id):
                raise NotFoundError("Letter", letter_id)
        logger.info("Letter deleted", extra={"letter_id": str(letter_id)})
        return letter
