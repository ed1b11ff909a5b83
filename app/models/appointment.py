from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    RESCHEDULED = "RESCHEDULED"
    COMPLETED = "COMPLETED"


class AppointmentType(str, Enum):
    IN_PERSON = "IN_PERSON"
    VIDEO = "VIDEO"
    FOLLOW_UP = "FOLLOW_UP"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    appointment_datetime: datetime = Field(index=True, sa_type=DateTime)
    # Offered time while status is RESCHEDULED; becomes appointment_datetime on accept
    proposed_datetime: datetime | None = Field(default=None, sa_type=DateTime)
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING, index=True)
    type: AppointmentType = AppointmentType.IN_PERSON
    reason: str | None = None
    notes: str | None = None
    duration_minutes: int = 30
    share_medical_records: bool = False
    is_video_call: bool = False
    is_call_active: bool = False
    reminder_24h_sent: bool = False
    version: int = 1
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime)


class AppointmentCreate(SQLModel):
    provider_id: int
    appointment_datetime: datetime
    reason: str | None = None
    share_medical_records: bool = False
    is_video_call: bool = False


class AppointmentPublic(SQLModel):
    id: int
    patient_id: int
    provider_id: int
    appointment_datetime: datetime
    proposed_datetime: datetime | None = None
    status: AppointmentStatus
    type: AppointmentType
    reason: str | None = None
    notes: str | None = None
    duration_minutes: int
    share_medical_records: bool
    is_video_call: bool
    is_call_active: bool
    created_at: datetime
    updated_at: datetime
