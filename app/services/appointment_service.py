import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from app.core.timeutils import to_naive_utc, utc_naive_now
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentType,
)
from app.models.notification import NotificationType
from app.models.user import ProviderProfile, User
from app.services.notification_service import Notifier, build_message, display_name, safe_notify
from app.services.schedule_service import get_provider, slot_duration
from app.services.slot_service import (
    get_available_slots,
    get_blocked_intervals,
    get_booked_intervals,
    overlaps,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, AppointmentStatus.RESCHEDULED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.CANCELLED, AppointmentStatus.RESCHEDULED, AppointmentStatus.COMPLETED}
    ),
    AppointmentStatus.RESCHEDULED: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

# RESCHEDULED only moves on through the patient's response
PROVIDER_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    **ALLOWED_TRANSITIONS,
    AppointmentStatus.RESCHEDULED: frozenset(),
}

_STATUS_NOTIFICATIONS = {
    AppointmentStatus.CONFIRMED: NotificationType.APPOINTMENT_CONFIRMED,
    AppointmentStatus.CANCELLED: NotificationType.APPOINTMENT_CANCELLED,
    AppointmentStatus.RESCHEDULED: NotificationType.APPOINTMENT_RESCHEDULED,
    AppointmentStatus.COMPLETED: NotificationType.APPOINTMENT_COMPLETED,
}

_ACCEPT_ACTIONS = {"accept", "confirm"}
_REJECT_ACTIONS = {"reject", "cancel"}


def can_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def offers_video_calls(profile: ProviderProfile) -> bool:
    return bool(profile.specialization) and (
        profile.specialization.strip().upper() in settings.video_call_specializations_set
    )


async def _get_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


async def _get_for_provider(session: AsyncSession, provider: User, appointment_id: int) -> Appointment:
    if not provider.is_provider:
        raise ForbiddenError("Only providers can manage appointments")
    appointment = await _get_appointment(session, appointment_id)
    if appointment.provider_id != provider.id:
        raise ForbiddenError()
    return appointment


async def _get_for_patient(session: AsyncSession, patient: User, appointment_id: int) -> Appointment:
    if not patient.is_patient:
        raise ForbiddenError("Only patients can respond to a reschedule")
    appointment = await _get_appointment(session, appointment_id)
    if appointment.patient_id != patient.id:
        raise ForbiddenError()
    return appointment


async def _compare_and_set(session: AsyncSession, appointment: Appointment, **values) -> Appointment:
    """Write values only if the row still has the version we read."""
    expected = appointment.version
    values["version"] = expected + 1
    values["updated_at"] = utc_naive_now()
    result = await session.execute(
        update(Appointment)
        .where(Appointment.id == appointment.id, Appointment.version == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Version conflict on appointment %s (expected version %s)", appointment.id, expected)
        raise ConflictError()
    await session.refresh(appointment)
    return appointment


async def _ensure_slot_available(session: AsyncSession, provider_id: int, when: datetime) -> None:
    for slot in await get_available_slots(session, provider_id, when.date()):
        if slot.start == when:
            if slot.available:
                return
            break
    raise SlotUnavailableError(f"The slot at {when:%Y-%m-%d %H:%M} is not available")


async def _ensure_time_free(session: AsyncSession, appointment: Appointment, when: datetime) -> None:
    """No other confirmed booking or blocked range of the provider may overlap the appointment at when."""
    end = when + timedelta(minutes=appointment.duration_minutes)
    busy = await get_booked_intervals(
        session, appointment.provider_id, when.date(), exclude_appointment_id=appointment.id
    )
    busy += await get_blocked_intervals(session, appointment.provider_id, when.date())
    if any(overlaps(when, end, b_start, b_end) for b_start, b_end in busy):
        raise SlotUnavailableError(f"The slot at {when:%Y-%m-%d %H:%M} is not available")


def _future(when: datetime, what: str) -> datetime:
    when = to_naive_utc(when)
    if when <= utc_naive_now():
        raise ValidationError(f"{what} must be in the future")
    return when


async def _notify(
    session: AsyncSession,
    notifier: Notifier,
    recipient_id: int,
    actor_id: int,
    type: NotificationType,
    appointment_id: int,
    when: datetime | None = None,
    actor_is_provider: bool = False,
) -> None:
    actor = await session.get(User, actor_id)
    payload = {
        "actor_id": actor_id,
        "message": build_message(type, display_name(actor, provider=actor_is_provider), when),
    }
    await safe_notify(notifier, recipient_id, type, appointment_id, payload)


async def book_appointment(
    session: AsyncSession, patient: User, data: AppointmentCreate, notifier: Notifier
) -> Appointment:
    if not patient.is_patient:
        raise ForbiddenError("Only patients can book appointments")
    provider, profile = await get_provider(session, data.provider_id)
    when = _future(data.appointment_datetime, "Appointment date")
    if data.is_video_call and not offers_video_calls(profile):
        raise ValidationError("Video call appointments are not offered by this provider")
    await _ensure_slot_available(session, provider.id, when)

    appointment = Appointment(
        patient_id=patient.id,
        provider_id=provider.id,
        appointment_datetime=when,
        status=AppointmentStatus.PENDING,
        type=AppointmentType.VIDEO if data.is_video_call else AppointmentType.IN_PERSON,
        reason=data.reason,
        duration_minutes=slot_duration(profile),
        share_medical_records=data.share_medical_records,
        is_video_call=data.is_video_call,
    )
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s booked by patient %s with provider %s", appointment.id, patient.id, provider.id)
    await _notify(
        session, notifier, provider.id, patient.id,
        NotificationType.APPOINTMENT_REQUESTED, appointment.id, when,
    )
    return appointment


async def update_status(
    session: AsyncSession,
    provider: User,
    appointment_id: int,
    status: str,
    notifier: Notifier,
    note: str | None = None,
    new_datetime: datetime | None = None,
) -> Appointment:
    appointment = await _get_for_provider(session, provider, appointment_id)
    try:
        new_status = AppointmentStatus(status.strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown appointment status: {status}")
    if new_status not in PROVIDER_TRANSITIONS[appointment.status]:
        raise InvalidTransitionError(
            f"Cannot change appointment status from {appointment.status.value} to {new_status.value}"
        )
    if new_status == AppointmentStatus.COMPLETED:
        completed, _ = await _complete(session, provider, appointment, note, None, notifier)
        return completed

    values: dict = {"status": new_status}
    if note and note.strip():
        values["notes"] = note
    if new_status == AppointmentStatus.RESCHEDULED:
        if new_datetime is None:
            raise ValidationError("A new date and time is required to reschedule")
        values["proposed_datetime"] = _future(new_datetime, "Rescheduled date")
        await _ensure_time_free(session, appointment, values["proposed_datetime"])
    if new_status == AppointmentStatus.CONFIRMED:
        await _ensure_time_free(session, appointment, appointment.appointment_datetime)
    if new_status == AppointmentStatus.CANCELLED:
        values["is_call_active"] = False

    await _compare_and_set(session, appointment, **values)
    logger.info("Appointment %s moved to %s by provider %s", appointment.id, new_status.value, provider.id)
    await _notify(
        session, notifier, appointment.patient_id, provider.id,
        _STATUS_NOTIFICATIONS[new_status], appointment.id,
        appointment.proposed_datetime if new_status == AppointmentStatus.RESCHEDULED else None,
        actor_is_provider=True,
    )
    return appointment


async def respond_to_reschedule(
    session: AsyncSession,
    patient: User,
    appointment_id: int,
    action: str,
    notifier: Notifier,
) -> Appointment:
    appointment = await _get_for_patient(session, patient, appointment_id)
    normalized = (action or "").strip().lower()
    if normalized not in _ACCEPT_ACTIONS | _REJECT_ACTIONS:
        raise ValidationError("Invalid action. Use 'accept' or 'reject'")
    if appointment.status != AppointmentStatus.RESCHEDULED:
        raise InvalidTransitionError("Appointment is not in rescheduled status")

    if normalized in _ACCEPT_ACTIONS:
        effective = appointment.proposed_datetime or appointment.appointment_datetime
        await _ensure_time_free(session, appointment, effective)
        values = {
            "status": AppointmentStatus.CONFIRMED,
            "appointment_datetime": effective,
            "proposed_datetime": None,
        }
        notification_type = NotificationType.APPOINTMENT_RESCHEDULE_CONFIRMED
    else:
        values = {"status": AppointmentStatus.CANCELLED, "proposed_datetime": None}
        notification_type = NotificationType.APPOINTMENT_RESCHEDULE_CANCELLED

    await _compare_and_set(session, appointment, **values)
    logger.info("Patient %s answered reschedule of appointment %s: %s", patient.id, appointment.id, normalized)
    await _notify(
        session, notifier, appointment.provider_id, patient.id,
        notification_type, appointment.id,
    )
    return appointment


async def _complete(
    session: AsyncSession,
    provider: User,
    appointment: Appointment,
    notes: str | None,
    follow_up_datetime: datetime | None,
    notifier: Notifier,
) -> tuple[Appointment, Appointment | None]:
    if appointment.status != AppointmentStatus.CONFIRMED:
        raise InvalidTransitionError(
            f"Only confirmed appointments can be completed. Current status: {appointment.status.value}"
        )
    follow_up_when = None
    if follow_up_datetime is not None:
        follow_up_when = _future(follow_up_datetime, "Follow-up appointment date")
        await _ensure_slot_available(session, appointment.provider_id, follow_up_when)

    values: dict = {"status": AppointmentStatus.COMPLETED, "is_call_active": False}
    if notes and notes.strip():
        values["notes"] = notes
    await _compare_and_set(session, appointment, **values)

    follow_up = None
    if follow_up_when is not None:
        follow_up = Appointment(
            patient_id=appointment.patient_id,
            provider_id=appointment.provider_id,
            appointment_datetime=follow_up_when,
            status=AppointmentStatus.PENDING,
            type=AppointmentType.FOLLOW_UP,
            reason=f"Follow-up appointment after visit on {appointment.appointment_datetime:%b %d, %Y}",
            duration_minutes=appointment.duration_minutes,
            share_medical_records=appointment.share_medical_records,
            is_video_call=appointment.is_video_call,
        )
        session.add(follow_up)
        await session.flush()
        await session.refresh(follow_up)
        logger.info("Follow-up appointment %s created from appointment %s", follow_up.id, appointment.id)

    await _notify(
        session, notifier, appointment.patient_id, provider.id,
        NotificationType.APPOINTMENT_COMPLETED, appointment.id, actor_is_provider=True,
    )
    if follow_up is not None:
        await _notify(
            session, notifier, appointment.patient_id, provider.id,
            NotificationType.APPOINTMENT_FOLLOW_UP, follow_up.id, follow_up_when,
            actor_is_provider=True,
        )
    return appointment, follow_up


async def complete_appointment(
    session: AsyncSession,
    provider: User,
    appointment_id: int,
    notifier: Notifier,
    notes: str | None = None,
    follow_up_datetime: datetime | None = None,
) -> tuple[Appointment, Appointment | None]:
    """Mark a confirmed appointment completed, optionally booking a follow-up."""
    appointment = await _get_for_provider(session, provider, appointment_id)
    return await _complete(session, provider, appointment, notes, follow_up_datetime, notifier)


async def _set_call_active(session: AsyncSession, provider: User, appointment_id: int, active: bool) -> Appointment:
    appointment = await _get_for_provider(session, provider, appointment_id)
    if not appointment.is_video_call:
        raise ValidationError("This is not a video call appointment")
    if appointment.status != AppointmentStatus.CONFIRMED:
        raise InvalidTransitionError("Only confirmed appointments can have an active call")
    return await _compare_and_set(session, appointment, is_call_active=active)


async def start_call(session: AsyncSession, provider: User, appointment_id: int) -> Appointment:
    return await _set_call_active(session, provider, appointment_id, True)


async def end_call(session: AsyncSession, provider: User, appointment_id: int) -> Appointment:
    return await _set_call_active(session, provider, appointment_id, False)


async def list_for_patient(session: AsyncSession, patient_id: int) -> list[Appointment]:
    result = await session.execute(
        select(Appointment)
        .where(Appointment.patient_id == patient_id)
        .order_by(Appointment.appointment_datetime)
    )
    return list(result.scalars().all())


async def list_for_provider(session: AsyncSession, provider_id: int) -> list[Appointment]:
    result = await session.execute(
        select(Appointment)
        .where(Appointment.provider_id == provider_id)
        .order_by(Appointment.appointment_datetime)
    )
    return list(result.scalars().all())
