from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_provider, get_session
from app.api.schemas.schedule import BlockedSlotRequest, ScheduleResponse, ScheduleUpdateRequest
from app.models.schedule import BlockedTimeSlot, BlockedTimeSlotPublic, DayAvailability, DayAvailabilityPublic
from app.models.user import User
from app.services.schedule_service import (
    add_blocked_slot,
    get_schedule,
    list_blocked_slots,
    remove_blocked_slot,
    update_schedule,
)

router = APIRouter(prefix="/schedule", tags=["schedule"])


def _to_schedule(days: list[DayAvailability], duration: int) -> ScheduleResponse:
    return ScheduleResponse(
        day_availabilities=[
            DayAvailabilityPublic(
                day_of_week=d.day_of_week,
                enabled=d.enabled,
                start_time=d.start_time,
                end_time=d.end_time,
            )
            for d in days
        ],
        appointment_duration_minutes=duration,
    )


def _to_blocked_public(b: BlockedTimeSlot) -> BlockedTimeSlotPublic:
    return BlockedTimeSlotPublic(
        id=b.id,
        blocked_date=b.blocked_date,
        start_time=b.start_time,
        end_time=b.end_time,
        reason=b.reason,
    )


@router.get("", response_model=ScheduleResponse)
async def read_schedule(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> ScheduleResponse:
    days, duration = await get_schedule(session, current_user.id)
    return _to_schedule(days, duration)


@router.put("", response_model=ScheduleResponse)
async def replace_schedule(
    body: ScheduleUpdateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> ScheduleResponse:
    """Replace weekly hours (when given) and the slot duration (when given)."""
    days, duration = await update_schedule(
        session,
        current_user.id,
        day_availabilities=body.day_availabilities,
        appointment_duration_minutes=body.appointment_duration_minutes,
    )
    return _to_schedule(days, duration)


@router.get("/blocked-slots", response_model=list[BlockedTimeSlotPublic])
async def read_blocked_slots(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> list[BlockedTimeSlotPublic]:
    slots = await list_blocked_slots(session, current_user.id, start_date, end_date)
    return [_to_blocked_public(b) for b in slots]


@router.post("/blocked-slots", response_model=BlockedTimeSlotPublic, status_code=status.HTTP_201_CREATED)
async def create_blocked_slot(
    body: BlockedSlotRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> BlockedTimeSlotPublic:
    blocked = await add_blocked_slot(
        session,
        current_user.id,
        body.blocked_date,
        body.start_time,
        body.end_time,
        body.reason,
    )
    return _to_blocked_public(blocked)


@router.delete("/blocked-slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_slot(
    slot_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_provider),
) -> None:
    await remove_blocked_slot(session, current_user.id, slot_id)
