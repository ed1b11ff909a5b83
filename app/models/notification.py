from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class NotificationType(str, Enum):
    APPOINTMENT_REQUESTED = "APPOINTMENT_REQUESTED"  # to provider, patient booked
    APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    APPOINTMENT_RESCHEDULED = "APPOINTMENT_RESCHEDULED"  # includes proposed time
    APPOINTMENT_RESCHEDULE_CONFIRMED = "APPOINTMENT_RESCHEDULE_CONFIRMED"  # to provider
    APPOINTMENT_RESCHEDULE_CANCELLED = "APPOINTMENT_RESCHEDULE_CANCELLED"  # to provider
    APPOINTMENT_COMPLETED = "APPOINTMENT_COMPLETED"
    APPOINTMENT_FOLLOW_UP = "APPOINTMENT_FOLLOW_UP"
    APPOINTMENT_REMINDER_24H = "APPOINTMENT_REMINDER_24H"  # to both sides


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    id: int | None = Field(default=None, primary_key=True)
    recipient_id: int = Field(foreign_key="users.id", index=True)
    actor_id: int | None = Field(default=None, foreign_key="users.id")
    type: NotificationType
    message: str | None = None
    related_entity_id: int | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=_utc_naive_now, index=True, sa_type=DateTime)


class NotificationPublic(SQLModel):
    id: int
    actor_id: int | None = None
    type: NotificationType
    message: str | None = None
    related_entity_id: int | None = None
    is_read: bool
    created_at: datetime
