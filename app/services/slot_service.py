from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.timeutils import at_time, day_bounds
from app.models.appointment import Appointment, AppointmentStatus
from app.models.schedule import BlockedTimeSlot, DayOfWeek
from app.services.schedule_service import get_day_availability, get_provider, slot_duration

Interval = tuple[datetime, datetime]


class Slot(NamedTuple):
    start: datetime
    end: datetime
    available: bool


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open [start, end) against [other_start, other_end)."""
    return start < other_end and other_start < end


def compute_slots(
    d: date,
    start_time: str,
    end_time: str,
    duration_minutes: int,
    booked: Iterable[Interval] = (),
    blocked: Iterable[Interval] = (),
) -> list[Slot]:
    """Split [start_time, end_time) on date d into back-to-back slots.

    A trailing slot that would run past end_time is dropped. A slot is
    unavailable when it overlaps any booked or blocked interval.
    """
    if duration_minutes <= 0:
        raise ValidationError("Slot duration must be a positive number of minutes")
    start = at_time(d, start_time)
    end = at_time(d, end_time)
    if start >= end:
        return []
    busy = list(booked) + list(blocked)
    delta = timedelta(minutes=duration_minutes)
    slots: list[Slot] = []
    current = start
    while current + delta <= end:
        slot_end = current + delta
        taken = any(overlaps(current, slot_end, b_start, b_end) for b_start, b_end in busy)
        slots.append(Slot(current, slot_end, not taken))
        current = slot_end
    return slots


async def resolve_working_window(
    session: AsyncSession,
    provider_id: int,
    d: date,
    start_time: str | None = None,
    end_time: str | None = None,
) -> tuple[str, str] | None:
    """Working hours for the weekday of d, or None when the provider is off that day.

    A DayAvailability record wins; without one the caller's window (or the
    configured default) is used.
    """
    availability = await get_day_availability(session, provider_id, DayOfWeek.from_date(d))
    if availability is not None:
        if not availability.enabled:
            return None
        if availability.start_time and availability.end_time:
            return availability.start_time, availability.end_time
    return (
        start_time or settings.default_work_start,
        end_time or settings.default_work_end,
    )


async def get_booked_intervals(
    session: AsyncSession, provider_id: int, d: date, exclude_appointment_id: int | None = None
) -> list[Interval]:
    """Confirmed appointments of the provider starting on date d."""
    day_start, day_end = day_bounds(d)
    q = select(Appointment.appointment_datetime, Appointment.duration_minutes).where(
        Appointment.provider_id == provider_id,
        Appointment.status == AppointmentStatus.CONFIRMED,
        Appointment.appointment_datetime >= day_start,
        Appointment.appointment_datetime < day_end,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q)
    return [
        (start, start + timedelta(minutes=duration or settings.default_slot_duration_minutes))
        for start, duration in result.all()
    ]


async def get_blocked_intervals(
    session: AsyncSession, provider_id: int, d: date
) -> list[Interval]:
    result = await session.execute(
        select(BlockedTimeSlot).where(
            BlockedTimeSlot.provider_id == provider_id,
            BlockedTimeSlot.blocked_date == d,
        )
    )
    return [(at_time(d, b.start_time), at_time(d, b.end_time)) for b in result.scalars().all()]


async def get_available_slots(
    session: AsyncSession,
    provider_id: int,
    d: date,
    start_time: str | None = None,
    end_time: str | None = None,
    duration_minutes: int | None = None,
) -> list[Slot]:
    """All slots of the provider's working window on d, each flagged available or not.

    duration_minutes defaults to the provider's configured slot length.
    """
    _, profile = await get_provider(session, provider_id)
    window = await resolve_working_window(session, provider_id, d, start_time, end_time)
    if window is None:
        return []
    booked = await get_booked_intervals(session, provider_id, d)
    blocked = await get_blocked_intervals(session, provider_id, d)
    duration = slot_duration(profile) if duration_minutes is None else duration_minutes
    return compute_slots(d, window[0], window[1], duration, booked, blocked)
