import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_patient, get_current_provider, get_notifier, get_session
from app.api.schemas.appointment import (
    BookAppointmentRequest,
    CompleteAppointmentRequest,
    CompleteAppointmentResponse,
    RescheduleResponseRequest,
    UpdateStatusRequest,
)
from app.models.appointment import Appointment, AppointmentCreate, AppointmentPublic
from app.models.user import User
from app.services import appointment_service
from app.services.notification_service import Notifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a, from_attributes=True)


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_patient),
    notifier: Notifier = Depends(get_notifier),
) -> AppointmentPublic:
    data = AppointmentCreate(
        provider_id=body.provider_id,
        appointment_datetime=body.appointment_datetime,
        reason=body.reason,
        share_medical_records=body.share_medical_records,
        is_video_call=body.is_video_call,
    )
    appointment = await appointment_service.book_appointment(session, current_user, data, notifier)
    return _to_public(appointment)


@router.get("/patient", response_model=list[AppointmentPublic])
async def list_my_patient_appointments(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_patient),
) -> list[AppointmentPublic]:
    appointments = await appointment_service.list_for_patient(session, current_user.id)
    return [_to_public(a) for a in appointments]


@router.get("/provider", response_model=list[AppointmentPublic])
async def list_my_provider_appointments(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> list[AppointmentPublic]:
    appointments = await appointment_service.list_for_provider(session, current_user.id)
    return [_to_public(a) for a in appointments]


@router.put("/{appointment_id}/status", response_model=AppointmentPublic)
async def update_appointment_status(
    appointment_id: int,
    body: UpdateStatusRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
    notifier: Notifier = Depends(get_notifier),
) -> AppointmentPublic:
    appointment = await appointment_service.update_status(
        session,
        current_user,
        appointment_id,
        body.status,
        notifier,
        note=body.note,
        new_datetime=body.new_datetime,
    )
    return _to_public(appointment)


@router.put("/{appointment_id}/respond-reschedule", response_model=AppointmentPublic)
async def respond_to_reschedule(
    appointment_id: int,
    body: RescheduleResponseRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_patient),
    notifier: Notifier = Depends(get_notifier),
) -> AppointmentPublic:
    appointment = await appointment_service.respond_to_reschedule(
        session, current_user, appointment_id, body.action, notifier
    )
    return _to_public(appointment)


@router.put("/{appointment_id}/complete", response_model=CompleteAppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    body: CompleteAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
    notifier: Notifier = Depends(get_notifier),
) -> CompleteAppointmentResponse:
    appointment, follow_up = await appointment_service.complete_appointment(
        session,
        current_user,
        appointment_id,
        notifier,
        notes=body.notes,
        follow_up_datetime=body.follow_up_datetime,
    )
    return CompleteAppointmentResponse(
        appointment=_to_public(appointment),
        follow_up=_to_public(follow_up) if follow_up else None,
    )


@router.post("/{appointment_id}/start-call", response_model=AppointmentPublic)
async def start_call(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> AppointmentPublic:
    appointment = await appointment_service.start_call(session, current_user, appointment_id)
    logger.info("Video call started for appointment %s", appointment_id)
    return _to_public(appointment)


@router.post("/{appointment_id}/end-call", response_model=AppointmentPublic)
async def end_call(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> AppointmentPublic:
    appointment = await appointment_service.end_call(session, current_user, appointment_id)
    logger.info("Video call ended for appointment %s", appointment_id)
    return _to_public(appointment)
