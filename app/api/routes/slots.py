from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.core.timeutils import format_hhmm
from app.services.slot_service import get_available_slots

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    start_time: str | None = Query(None, description="HH:MM, used when the provider has no hours for that weekday"),
    end_time: str | None = Query(None, description="HH:MM, used when the provider has no hours for that weekday"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Return all slots of the provider's working day (UTC). Each slot has start_utc, end_utc, and available (bool)."""
    slots = await get_available_slots(session, provider_id, date_param, start_time, end_time)
    return AvailableSlotsResponse(
        provider_id=provider_id,
        date=date_param.isoformat(),
        slots=[
            SlotInfo(
                start_utc=s.start,
                end_utc=s.end,
                time=format_hhmm(s.start.time()),
                available=s.available,
            )
            for s in slots
        ],
    )
