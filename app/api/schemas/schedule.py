from datetime import date

from pydantic import BaseModel, Field

from app.models.schedule import DayAvailabilityPublic


class ScheduleResponse(BaseModel):
    day_availabilities: list[DayAvailabilityPublic]
    appointment_duration_minutes: int


class ScheduleUpdateRequest(BaseModel):
    day_availabilities: list[DayAvailabilityPublic] | None = None
    appointment_duration_minutes: int | None = Field(default=None, gt=0)  # 15, 30, 45, 60, ...


class BlockedSlotRequest(BaseModel):
    blocked_date: date
    start_time: str  # HH:MM
    end_time: str | None = None  # defaults to start + slot duration
    reason: str | None = None
