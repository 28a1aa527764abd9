"""Tests for the outgoing letter tracking engine.

Tests cover:
- Creation rules (mandatory fields, priority, QR uniqueness, courier reference)
- Id and QR code lookups resolving to the same record
- State machine: legal moves, direct jumps, terminal states
- One transition check behind update_by_id, update_by_qr_code and update_status
- Date stamping and delivered-before-dispatched rejection
- Optimistic status writes losing a race
- Status change listeners
- Pagination, department filter, courier tracking, statistics, deletion
"""

import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from lettertrack.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from lettertrack.db.models.base import LetterPriority, LetterStatus
from lettertrack.services.letters import (
    LetterRef,
    LetterTrackingEngine,
    LetterUpdate,
    StatusChange,
)
from tests.factories import courier_fields, letter_data


async def _dispatched(engine: LetterTrackingEngine, **overrides):
    letter = await engine.create(**letter_data(**overrides))
    return await engine.update_status(LetterRef.by_id(letter.letter_id), LetterStatus.DISPATCHED)


class TestStateMachine:
    """Tests for the transition table."""

    def test_pending_only_reaches_dispatched(self):
        assert LetterTrackingEngine.allowed_transitions(LetterStatus.PENDING_DISPATCH) == {
            LetterStatus.DISPATCHED
        }

    def test_dispatched_reaches_delivered_or_returned(self):
        assert LetterTrackingEngine.allowed_transitions(LetterStatus.DISPATCHED) == {
            LetterStatus.DELIVERED,
            LetterStatus.RETURNED,
        }

    def test_terminal_states(self):
        assert LetterTrackingEngine.is_terminal_state(LetterStatus.DELIVERED)
        assert LetterTrackingEngine.is_terminal_state(LetterStatus.RETURNED)
        assert not LetterTrackingEngine.is_terminal_state(LetterStatus.DISPATCHED)

    def test_no_direct_jumps(self):
        assert not LetterTrackingEngine.is_valid_transition(
            LetterStatus.PENDING_DISPATCH, LetterStatus.DELIVERED
        )
        assert not LetterTrackingEngine.is_valid_transition(
            LetterStatus.PENDING_DISPATCH, LetterStatus.RETURNED
        )


class TestCreate:
    """Tests for letter registration."""

    @pytest.mark.asyncio
    async def test_starts_pending_without_dates(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data(priority="high"))
        assert letter.status == LetterStatus.PENDING_DISPATCH
        assert letter.priority == LetterPriority.HIGH
        assert letter.dispatched_date is None
        assert letter.delivered_date is None

    @pytest.mark.asyncio
    async def test_mandatory_fields(self, engine: LetterTrackingEngine):
        with pytest.raises(ValidationError) as exc_info:
            await engine.create(from_department="", to=" ", priority="urgent", qr_code="")
        assert set(exc_info.value.fields) == {"from", "to", "priority", "qr_code"}

    @pytest.mark.asyncio
    async def test_duplicate_qr_code(self, engine: LetterTrackingEngine, memory_db):
        await engine.create(**letter_data(qr_code="QR-DUP"))
        with pytest.raises(ConflictError) as exc_info:
            await engine.create(**letter_data(qr_code="QR-DUP"))
        assert exc_info.value.field == "qr_code"
        assert [r.qr_code for r in memory_db.letters.values()] == ["QR-DUP"]

    @pytest.mark.asyncio
    async def test_unknown_courier(self, engine: LetterTrackingEngine):
        with pytest.raises(ValidationError) as exc_info:
            await engine.create(**letter_data(courier_service_id=uuid.uuid4()))
        assert "courier_service_id" in exc_info.value.fields

    @pytest.mark.asyncio
    async def test_existing_courier(self, engine: LetterTrackingEngine, couriers):
        courier = await couriers.create(courier_fields())
        letter = await engine.create(**letter_data(courier_service_id=courier.courier_id))
        assert letter.courier_service_id == courier.courier_id


class TestDualIdentity:
    """Id and QR code always resolve to the same record."""

    @pytest.mark.asyncio
    async def test_same_record_through_the_lifecycle(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data(qr_code="QR-SAME"))

        async def assert_same():
            by_id = await engine.get_by_id(letter.letter_id)
            assert by_id == await engine.get_by_qr_code("QR-SAME")
            return by_id

        await assert_same()
        await engine.update_status(LetterRef.by_qr_code("QR-SAME"), LetterStatus.DISPATCHED)
        assert (await assert_same()).status == LetterStatus.DISPATCHED
        await engine.update_by_id(letter.letter_id, LetterUpdate(status=LetterStatus.RETURNED))
        assert (await assert_same()).status == LetterStatus.RETURNED

    @pytest.mark.asyncio
    async def test_missing_lookups_return_none(self, engine: LetterTrackingEngine):
        assert await engine.get_by_id(uuid.uuid4()) is None
        assert await engine.get_by_qr_code("QR-NOPE") is None


class TestTransitions:
    """Tests for status changes through every entry point."""

    @pytest.mark.asyncio
    async def test_direct_jump_names_dispatched(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        for target in (LetterStatus.DELIVERED, LetterStatus.RETURNED):
            with pytest.raises(InvalidTransitionError) as exc_info:
                await engine.update_status(LetterRef.by_id(letter.letter_id), target)
            assert exc_info.value.current == LetterStatus.PENDING_DISPATCH
            assert exc_info.value.allowed == [LetterStatus.DISPATCHED]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", [LetterStatus.DELIVERED, LetterStatus.RETURNED])
    async def test_terminal_states_reject_everything(
        self, engine: LetterTrackingEngine, terminal
    ):
        letter = await _dispatched(engine)
        await engine.update_status(LetterRef.by_id(letter.letter_id), terminal)
        for target in LetterStatus:
            with pytest.raises(InvalidTransitionError) as exc_info:
                await engine.update_by_qr_code(letter.qr_code, LetterUpdate(status=target))
            assert exc_info.value.allowed == []

    @pytest.mark.asyncio
    async def test_unknown_status(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        with pytest.raises(ValidationError):
            await engine.update_status(LetterRef.by_id(letter.letter_id), "LOST")

    @pytest.mark.asyncio
    async def test_every_entry_point_uses_one_check(self, engine: LetterTrackingEngine):
        check = MagicMock(side_effect=engine._check_transition)
        engine._check_transition = check
        first = await engine.create(**letter_data())
        second = await engine.create(**letter_data())
        third = await engine.create(**letter_data())

        await engine.update_by_id(first.letter_id, LetterUpdate(status="DISPATCHED"))
        await engine.update_by_qr_code(second.qr_code, LetterUpdate(status="DISPATCHED"))
        await engine.update_status(LetterRef.by_qr_code(third.qr_code), "DISPATCHED")

        assert check.call_count == 3

    @pytest.mark.asyncio
    async def test_id_and_qr_paths_reject_alike(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        with pytest.raises(InvalidTransitionError) as by_id:
            await engine.update_by_id(letter.letter_id, LetterUpdate(status="DELIVERED"))
        with pytest.raises(InvalidTransitionError) as by_qr:
            await engine.update_by_qr_code(letter.qr_code, LetterUpdate(status="DELIVERED"))
        assert by_id.value.details == by_qr.value.details

    @pytest.mark.asyncio
    async def test_delivering_stamps_date(self, engine: LetterTrackingEngine):
        letter = await _dispatched(engine)
        delivered = await engine.update_status(
            LetterRef.by_id(letter.letter_id), LetterStatus.DELIVERED
        )
        assert delivered.delivered_date is not None
        assert delivered.delivered_date >= delivered.dispatched_date

    @pytest.mark.asyncio
    async def test_supplied_dates_are_kept(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        when = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
        dispatched = await engine.update_status(
            LetterRef.by_id(letter.letter_id), "DISPATCHED", dispatched_date=when
        )
        assert dispatched.dispatched_date == when

    @pytest.mark.asyncio
    async def test_naive_dates_are_utc(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        dispatched = await engine.update_status(
            LetterRef.by_id(letter.letter_id),
            "DISPATCHED",
            dispatched_date=datetime(2026, 3, 1, 9, 30),
        )
        assert dispatched.dispatched_date == datetime(2026, 3, 1, 9, 30, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_missing_letter(self, engine: LetterTrackingEngine):
        with pytest.raises(NotFoundError):
            await engine.update_status(LetterRef.by_qr_code("QR-NOPE"), "DISPATCHED")
        with pytest.raises(NotFoundError):
            await engine.update_by_id(uuid.uuid4(), LetterUpdate(subject="x"))


class TestQrScenario:
    """Dispatch by QR code, then a delivery date before the dispatch."""

    @pytest.mark.asyncio
    async def test_delivered_before_dispatched_rejected(self, engine: LetterTrackingEngine):
        letter = await engine.create(
            from_department="RD", to="Finance", priority="high", qr_code="QR-001"
        )
        assert letter.status == LetterStatus.PENDING_DISPATCH

        before = datetime.now(UTC)
        dispatched = await engine.update_status(LetterRef.by_qr_code("QR-001"), "DISPATCHED")
        assert dispatched.status == LetterStatus.DISPATCHED
        assert dispatched.dispatched_date >= before

        with pytest.raises(ValidationError) as exc_info:
            await engine.update_status(
                LetterRef.by_id(letter.letter_id),
                "DELIVERED",
                delivered_date=datetime(2024, 1, 1, tzinfo=UTC),
            )
        assert "delivered_date" in exc_info.value.fields
        current = await engine.get_by_qr_code("QR-001")
        assert current.status == LetterStatus.DISPATCHED


class TestPartialUpdates:
    """Tests for non-status updates."""

    @pytest.mark.asyncio
    async def test_fields_without_status(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        updated = await engine.update_by_qr_code(
            letter.qr_code, LetterUpdate(subject="Revised budget", priority="low")
        )
        assert updated.subject == "Revised budget"
        assert updated.priority == LetterPriority.LOW
        assert updated.status == LetterStatus.PENDING_DISPATCH

    @pytest.mark.asyncio
    async def test_subject_can_be_cleared(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data(subject="Draft"))
        updated = await engine.update_by_id(letter.letter_id, LetterUpdate(subject=None))
        assert updated.subject is None

    @pytest.mark.asyncio
    async def test_empty_update(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        with pytest.raises(ValidationError):
            await engine.update_by_id(letter.letter_id, LetterUpdate())

    @pytest.mark.asyncio
    async def test_mandatory_field_cannot_be_blanked(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data())
        with pytest.raises(ValidationError) as exc_info:
            await engine.update_by_id(letter.letter_id, LetterUpdate(to=""))
        assert "to" in exc_info.value.fields


class TestOptimisticWrites:
    """A status change validated against a stale read must not commit."""

    @pytest.mark.asyncio
    async def test_lost_race_is_judged_against_current_status(
        self, engine: LetterTrackingEngine, store, memory_db
    ):
        letter = await _dispatched(engine)
        real_update = store.letters.update

        async def racing_update(letter_id, values, *, expected_status=None):
            # Another request returns the letter between our read and our write
            memory_db.letters[letter_id] = replace(
                memory_db.letters[letter_id], status=LetterStatus.RETURNED
            )
            return await real_update(letter_id, values, expected_status=expected_status)

        store.letters.update = racing_update

        with pytest.raises(InvalidTransitionError) as exc_info:
            await engine.update_status(LetterRef.by_id(letter.letter_id), "DELIVERED")
        assert exc_info.value.current == LetterStatus.RETURNED
        assert exc_info.value.allowed == []

    @pytest.mark.asyncio
    async def test_status_write_is_conditioned_on_prior_status(
        self, engine: LetterTrackingEngine, store
    ):
        letter = await engine.create(**letter_data())
        spy = AsyncMock(wraps=store.letters.update)
        store.letters.update = spy

        await engine.update_status(LetterRef.by_id(letter.letter_id), "DISPATCHED")

        assert spy.await_args.kwargs["expected_status"] == LetterStatus.PENDING_DISPATCH


class TestListeners:
    """Status change notifications."""

    @pytest.mark.asyncio
    async def test_listener_receives_change(self, store):
        seen: list[StatusChange] = []
        engine = LetterTrackingEngine(store, listeners=[seen.append])
        letter = await engine.create(**letter_data())

        await engine.update_status(LetterRef.by_id(letter.letter_id), "DISPATCHED")

        assert len(seen) == 1
        assert seen[0].previous_status == LetterStatus.PENDING_DISPATCH
        assert seen[0].new_status == LetterStatus.DISPATCHED
        assert seen[0].qr_code == letter.qr_code

    @pytest.mark.asyncio
    async def test_async_listener_is_awaited(self, store):
        listener = AsyncMock()
        engine = LetterTrackingEngine(store)
        engine.add_listener(listener)
        letter = await engine.create(**letter_data())

        await engine.update_status(LetterRef.by_id(letter.letter_id), "DISPATCHED")

        listener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_fail_the_change(self, store):
        engine = LetterTrackingEngine(store, listeners=[MagicMock(side_effect=RuntimeError)])
        letter = await engine.create(**letter_data())

        updated = await engine.update_status(LetterRef.by_id(letter.letter_id), "DISPATCHED")

        assert updated.status == LetterStatus.DISPATCHED

    @pytest.mark.asyncio
    async def test_no_event_without_status_change(self, store):
        listener = MagicMock()
        engine = LetterTrackingEngine(store, listeners=[listener])
        letter = await engine.create(**letter_data())

        await engine.update_by_id(letter.letter_id, LetterUpdate(subject="Updated"))

        listener.assert_not_called()


class TestQueries:
    """Pagination, filters, tracking and stats."""

    @pytest.mark.asyncio
    async def test_pagination(self, engine: LetterTrackingEngine):
        created = [await engine.create(**letter_data()) for _ in range(5)]

        page = await engine.get_all(limit=2, offset=2)

        assert [r.letter_id for r in page.records] == [c.letter_id for c in created[2:4]]
        assert page.total == 5
        assert page.has_more
        assert page.current_page == 2
        assert page.total_pages == 3

    @pytest.mark.asyncio
    async def test_last_page(self, engine: LetterTrackingEngine):
        for _ in range(3):
            await engine.create(**letter_data())
        page = await engine.get_all(limit=2, offset=2)
        assert len(page.records) == 1
        assert not page.has_more

    @pytest.mark.asyncio
    async def test_bad_page_arguments(self, engine: LetterTrackingEngine):
        with pytest.raises(ValidationError):
            await engine.get_all(limit=0)
        with pytest.raises(ValidationError):
            await engine.get_all(offset=-1)

    @pytest.mark.asyncio
    async def test_by_department(self, engine: LetterTrackingEngine):
        await engine.create(**letter_data(from_department="RD"))
        hr = await engine.create(**letter_data(from_department="HR"))
        assert [r.letter_id for r in await engine.get_by_department("HR")] == [hr.letter_id]
        page = await engine.get_all(from_department="HR")
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_courier_tracking(self, engine: LetterTrackingEngine, couriers):
        courier = await couriers.create(courier_fields(service_name="Swift Post", code="SWP"))
        tracked = await engine.create(**letter_data(courier_service_id=courier.courier_id))
        await engine.create(**letter_data())

        page = await engine.get_courier_tracking_records()

        assert page.total == 1
        records = page.records
        assert records[0].letter.letter_id == tracked.letter_id
        assert records[0].courier_service_name == "Swift Post"
        assert records[0].courier_code == "SWP"

    @pytest.mark.asyncio
    async def test_courier_tracking_is_paged_and_scoped(
        self, engine: LetterTrackingEngine, couriers
    ):
        courier = await couriers.create(courier_fields())
        for _ in range(3):
            await engine.create(
                **letter_data(from_department="HR", courier_service_id=courier.courier_id)
            )
        await engine.create(
            **letter_data(from_department="RD", courier_service_id=courier.courier_id)
        )

        page = await engine.get_courier_tracking_records(
            limit=2, offset=2, from_department="HR"
        )

        assert page.total == 3
        assert len(page.records) == 1
        assert page.records[0].letter.from_department == "HR"
        assert not page.has_more
        assert page.current_page == 2
        assert page.total_pages == 2

    @pytest.mark.asyncio
    async def test_courier_tracking_rejects_bad_window(self, engine: LetterTrackingEngine):
        with pytest.raises(ValidationError):
            await engine.get_courier_tracking_records(limit=0)

    @pytest.mark.asyncio
    async def test_stats(self, engine: LetterTrackingEngine):
        start = datetime(2026, 2, 1, 8, 0, tzinfo=UTC)
        delivered = await engine.create(**letter_data())
        await engine.update_status(
            LetterRef.by_id(delivered.letter_id), "DISPATCHED", dispatched_date=start
        )
        await engine.update_status(
            LetterRef.by_id(delivered.letter_id),
            "DELIVERED",
            delivered_date=start + timedelta(days=2),
        )
        await _dispatched(engine)
        await engine.create(**letter_data())

        stats = await engine.get_stats()

        assert stats.counts == {
            LetterStatus.PENDING_DISPATCH: 1,
            LetterStatus.DISPATCHED: 1,
            LetterStatus.DELIVERED: 1,
            LetterStatus.RETURNED: 0,
        }
        assert stats.total == 3
        assert stats.average_delivery_time == timedelta(days=2)
        assert stats.average_delivery_days == 2.0

    @pytest.mark.asyncio
    async def test_stats_when_empty(self, engine: LetterTrackingEngine):
        stats = await engine.get_stats()
        assert stats.total == 0
        assert stats.average_delivery_time is None
        assert stats.average_delivery_days is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_returns_record(self, engine: LetterTrackingEngine):
        letter = await engine.create(**letter_data(image_ref="letters/scan.png"))
        deleted = await engine.delete_by_id(letter.letter_id)
        assert deleted.image_ref == "letters/scan.png"
        assert await engine.get_by_id(letter.letter_id) is None
        assert await engine.get_by_qr_code(letter.qr_code) is None

    @pytest.mark.asyncio
    async def test_delete_missing(self, engine: LetterTrackingEngine):
        with pytest.raises(NotFoundError):
            await engine.delete_by_id(uuid.uuid4())
