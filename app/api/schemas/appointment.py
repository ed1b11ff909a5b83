from datetime import datetime

from pydantic import BaseModel

from app.models.appointment import AppointmentPublic


class SlotInfo(BaseModel):
    start_utc: datetime
    end_utc: datetime
    time: str  # HH:MM
    available: bool


class AvailableSlotsResponse(BaseModel):
    provider_id: int
    date: str  # YYYY-MM-DD
    slots: list[SlotInfo]


class BookAppointmentRequest(BaseModel):
    provider_id: int
    appointment_datetime: datetime
    reason: str | None = None
    share_medical_records: bool = False
    is_video_call: bool = False


class UpdateStatusRequest(BaseModel):
    status: str
    note: str | None = None
    new_datetime: datetime | None = None


class RescheduleResponseRequest(BaseModel):
    action: str  # accept | reject


class CompleteAppointmentRequest(BaseModel):
    notes: str | None = None
    follow_up_datetime: datetime | None = None


class CompleteAppointmentResponse(BaseModel):
    appointment: AppointmentPublic
    follow_up: AppointmentPublic | None = None
