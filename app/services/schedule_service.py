import logging
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.timeutils import add_minutes_hhmm, format_hhmm, parse_hhmm
from app.models.schedule import BlockedTimeSlot, DayAvailability, DayAvailabilityPublic, DayOfWeek
from app.models.user import ProviderProfile, User, UserRole

logger = logging.getLogger(__name__)


async def get_provider(session: AsyncSession, provider_id: int) -> tuple[User, ProviderProfile]:
    result = await session.execute(
        select(User, ProviderProfile)
        .join(ProviderProfile, ProviderProfile.user_id == User.id)
        .where(User.id == provider_id, User.role == UserRole.PROVIDER)
    )
    row = result.first()
    if not row:
        raise NotFoundError("Doctor not found")
    return row[0], row[1]


def slot_duration(profile: ProviderProfile) -> int:
    return profile.appointment_duration_minutes or settings.default_slot_duration_minutes


def _normalize_hhmm(value: str | None) -> str | None:
    """Zero-padded HH:MM so stored times sort as text."""
    return format_hhmm(parse_hhmm(value)) if value else value


def _check_range(start_time: str, end_time: str) -> None:
    if parse_hhmm(start_time) >= parse_hhmm(end_time):
        raise ValidationError(f"Start time {start_time} must be before end time {end_time}")


async def get_schedule(
    session: AsyncSession, provider_id: int
) -> tuple[list[DayAvailability], int]:
    _, profile = await get_provider(session, provider_id)
    result = await session.execute(
        select(DayAvailability).where(DayAvailability.provider_id == provider_id)
    )
    return list(result.scalars().all()), slot_duration(profile)


async def update_schedule(
    session: AsyncSession,
    provider_id: int,
    day_availabilities: list[DayAvailabilityPublic] | None = None,
    appointment_duration_minutes: int | None = None,
) -> tuple[list[DayAvailability], int]:
    """Replace the weekly availability and/or the slot duration. None leaves a part unchanged."""
    _, profile = await get_provider(session, provider_id)
    if appointment_duration_minutes is not None:
        if appointment_duration_minutes <= 0:
            raise ValidationError("Appointment duration must be a positive number of minutes")
        profile.appointment_duration_minutes = appointment_duration_minutes
        session.add(profile)

    if day_availabilities is not None:
        seen = set()
        for day in day_availabilities:
            if day.day_of_week in seen:
                raise ValidationError(f"Duplicate availability for {day.day_of_week.value}")
            seen.add(day.day_of_week)
            if day.start_time or day.end_time:
                if not (day.start_time and day.end_time):
                    raise ValidationError("Both start_time and end_time are required")
                _check_range(day.start_time, day.end_time)

        await session.execute(delete(DayAvailability).where(DayAvailability.provider_id == provider_id))
        # Delete must hit the table before the unique (provider, day) inserts
        await session.flush()
        for day in day_availabilities:
            session.add(
                DayAvailability(
                    provider_id=provider_id,
                    day_of_week=day.day_of_week,
                    enabled=day.enabled,
                    start_time=_normalize_hhmm(day.start_time),
                    end_time=_normalize_hhmm(day.end_time),
                )
            )
    await session.flush()
    logger.info("Schedule updated for provider %s", provider_id)
    return await get_schedule(session, provider_id)


async def get_day_availability(
    session: AsyncSession, provider_id: int, day_of_week: DayOfWeek
) -> DayAvailability | None:
    result = await session.execute(
        select(DayAvailability).where(
            DayAvailability.provider_id == provider_id,
            DayAvailability.day_of_week == day_of_week,
        )
    )
    return result.scalar_one_or_none()


async def list_blocked_slots(
    session: AsyncSession,
    provider_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[BlockedTimeSlot]:
    q = (
        select(BlockedTimeSlot)
        .where(BlockedTimeSlot.provider_id == provider_id)
        .order_by(BlockedTimeSlot.blocked_date, BlockedTimeSlot.start_time)
    )
    if start_date:
        q = q.where(BlockedTimeSlot.blocked_date >= start_date)
    if end_date:
        q = q.where(BlockedTimeSlot.blocked_date <= end_date)
    result = await session.execute(q)
    return list(result.scalars().all())


async def add_blocked_slot(
    session: AsyncSession,
    provider_id: int,
    blocked_date: date,
    start_time: str,
    end_time: str | None = None,
    reason: str | None = None,
) -> BlockedTimeSlot:
    _, profile = await get_provider(session, provider_id)
    start_time = _normalize_hhmm(start_time)
    end_time = _normalize_hhmm(end_time)
    if not end_time:
        # One slot's worth when no end is given
        end_time = add_minutes_hhmm(start_time, slot_duration(profile))
    _check_range(start_time, end_time)
    blocked = BlockedTimeSlot(
        provider_id=provider_id,
        blocked_date=blocked_date,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )
    session.add(blocked)
    await session.flush()
    await session.refresh(blocked)
    return blocked


async def remove_blocked_slot(session: AsyncSession, provider_id: int, slot_id: int) -> None:
    blocked = await session.get(BlockedTimeSlot, slot_id)
    if not blocked:
        raise NotFoundError("Blocked time slot not found")
    if blocked.provider_id != provider_id:
        raise ForbiddenError("Blocked time slot belongs to another provider")
    await session.delete(blocked)
    await session.flush()
