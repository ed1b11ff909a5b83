"""
Tests for slot generation and availability lookup.
"""

from datetime import date, datetime

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.models.appointment import AppointmentStatus
from app.models.schedule import BlockedTimeSlot, DayAvailability, DayOfWeek
from app.models.user import UserRole
from app.services.slot_service import (
    compute_slots,
    get_available_slots,
    overlaps,
    resolve_working_window,
)
from tests.conftest import at, future_day, make_appointment, make_user

DAY = date(2030, 3, 4)  # a Monday


class TestComputeSlots:
    """Pure slot arithmetic, no database."""

    def test_splits_window_into_back_to_back_slots(self):
        slots = compute_slots(DAY, "09:00", "10:00", 30)

        assert [(s.start, s.end) for s in slots] == [
            (datetime(2030, 3, 4, 9, 0), datetime(2030, 3, 4, 9, 30)),
            (datetime(2030, 3, 4, 9, 30), datetime(2030, 3, 4, 10, 0)),
        ]
        assert all(s.available for s in slots)

    def test_drops_trailing_partial_slot(self):
        slots = compute_slots(DAY, "09:00", "10:40", 30)

        assert len(slots) == 3
        assert slots[-1].end == datetime(2030, 3, 4, 10, 30)

    def test_every_slot_fits_inside_window(self):
        slots = compute_slots(DAY, "08:15", "17:05", 45)

        assert len(slots) == (17 * 60 + 5 - (8 * 60 + 15)) // 45
        for s in slots:
            assert datetime(2030, 3, 4, 8, 15) <= s.start < s.end <= datetime(2030, 3, 4, 17, 5)

    def test_empty_when_start_not_before_end(self):
        assert compute_slots(DAY, "10:00", "10:00", 30) == []
        assert compute_slots(DAY, "11:00", "10:00", 30) == []

    def test_window_shorter_than_duration(self):
        assert compute_slots(DAY, "09:00", "09:20", 30) == []

    def test_rejects_non_positive_duration(self):
        with pytest.raises(ValidationError):
            compute_slots(DAY, "09:00", "10:00", 0)

    def test_rejects_malformed_time(self):
        with pytest.raises(ValidationError):
            compute_slots(DAY, "9am", "10:00", 30)

    def test_booked_interval_marks_overlapping_slot(self):
        booked = [(datetime(2030, 3, 4, 9, 0), datetime(2030, 3, 4, 9, 30))]

        slots = compute_slots(DAY, "09:00", "10:00", 30, booked=booked)

        assert [s.available for s in slots] == [False, True]

    def test_adjacent_interval_does_not_overlap(self):
        blocked = [(datetime(2030, 3, 4, 8, 30), datetime(2030, 3, 4, 9, 0))]

        slots = compute_slots(DAY, "09:00", "10:00", 30, blocked=blocked)

        assert all(s.available for s in slots)

    def test_partial_overlap_takes_every_touched_slot(self):
        blocked = [(datetime(2030, 3, 4, 9, 15), datetime(2030, 3, 4, 9, 45))]

        slots = compute_slots(DAY, "09:00", "10:30", 30, blocked=blocked)

        assert [s.available for s in slots] == [False, False, True]

    def test_overlaps_is_half_open(self):
        a, b, c = datetime(2030, 1, 1, 9), datetime(2030, 1, 1, 10), datetime(2030, 1, 1, 11)
        assert overlaps(a, c, b, c)
        assert not overlaps(a, b, b, c)


class TestResolveWorkingWindow:
    """Working hours come from the provider's weekly schedule first."""

    @pytest.mark.asyncio
    async def test_defaults_without_schedule(self, session, provider):
        assert await resolve_working_window(session, provider.id, DAY) == ("09:00", "17:00")

    @pytest.mark.asyncio
    async def test_caller_window_used_without_schedule(self, session, provider):
        window = await resolve_working_window(session, provider.id, DAY, "10:00", "12:00")
        assert window == ("10:00", "12:00")

    @pytest.mark.asyncio
    async def test_schedule_record_wins(self, session, provider):
        session.add(
            DayAvailability(
                provider_id=provider.id, day_of_week=DayOfWeek.MONDAY, start_time="07:00", end_time="11:00"
            )
        )
        await session.commit()

        window = await resolve_working_window(session, provider.id, DAY, "10:00", "12:00")

        assert window == ("07:00", "11:00")

    @pytest.mark.asyncio
    async def test_disabled_day_has_no_window(self, session, provider):
        session.add(DayAvailability(provider_id=provider.id, day_of_week=DayOfWeek.MONDAY, enabled=False))
        await session.commit()

        assert await resolve_working_window(session, provider.id, DAY) is None


class TestGetAvailableSlots:
    """Availability combines working hours, confirmed bookings and blocked time."""

    @pytest.mark.asyncio
    async def test_confirmed_booking_takes_slot(self, session, patient, provider):
        day = future_day()
        await make_appointment(session, patient, provider, at(day, "09:00"), AppointmentStatus.CONFIRMED)

        slots = await get_available_slots(session, provider.id, day, "09:00", "10:00")

        assert [(s.start, s.available) for s in slots] == [
            (at(day, "09:00"), False),
            (at(day, "09:30"), True),
        ]

    @pytest.mark.asyncio
    async def test_only_confirmed_bookings_count(self, session, patient, provider):
        day = future_day()
        for hhmm, status in (
            ("09:00", AppointmentStatus.PENDING),
            ("09:30", AppointmentStatus.CANCELLED),
            ("10:00", AppointmentStatus.RESCHEDULED),
            ("10:30", AppointmentStatus.COMPLETED),
        ):
            await make_appointment(session, patient, provider, at(day, hhmm), status)

        slots = await get_available_slots(session, provider.id, day, "09:00", "11:00")

        assert all(s.available for s in slots)

    @pytest.mark.asyncio
    async def test_other_provider_bookings_ignored(self, session, patient, provider, psychiatrist):
        day = future_day()
        await make_appointment(session, patient, psychiatrist, at(day, "09:00"), AppointmentStatus.CONFIRMED)

        slots = await get_available_slots(session, provider.id, day, "09:00", "10:00")

        assert all(s.available for s in slots)

    @pytest.mark.asyncio
    async def test_blocked_range_takes_slots(self, session, provider):
        day = future_day()
        session.add(
            BlockedTimeSlot(provider_id=provider.id, blocked_date=day, start_time="09:30", end_time="10:30")
        )
        await session.commit()

        slots = await get_available_slots(session, provider.id, day, "09:00", "11:00")

        assert [s.available for s in slots] == [True, False, False, True]

    @pytest.mark.asyncio
    async def test_uses_provider_duration(self, session, patient):
        slow = await make_user(session, "slow@example.com", UserRole.PROVIDER, duration=60)

        slots = await get_available_slots(session, slow.id, future_day(), "09:00", "12:00")

        assert len(slots) == 3

    @pytest.mark.asyncio
    async def test_disabled_day_returns_no_slots(self, session, provider):
        day = future_day()
        session.add(
            DayAvailability(provider_id=provider.id, day_of_week=DayOfWeek.from_date(day), enabled=False)
        )
        await session.commit()

        assert await get_available_slots(session, provider.id, day) == []

    @pytest.mark.asyncio
    async def test_unknown_provider(self, session, patient):
        with pytest.raises(NotFoundError):
            await get_available_slots(session, patient.id, future_day())

    @pytest.mark.asyncio
    async def test_explicit_duration_overrides_profile(self, session, provider):
        slots = await get_available_slots(session, provider.id, future_day(), "09:00", "10:00", duration_minutes=15)

        assert len(slots) == 4

    @pytest.mark.asyncio
    async def test_zero_duration_is_rejected(self, session, provider):
        with pytest.raises(ValidationError):
            await get_available_slots(session, provider.id, future_day(), "09:00", "10:00", duration_minutes=0)
