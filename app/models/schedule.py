from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, d: date) -> "DayOfWeek":
        return list(cls)[d.weekday()]


class DayAvailability(SQLModel, table=True):
    __tablename__ = "day_availability"
    __table_args__ = (UniqueConstraint("provider_id", "day_of_week"),)
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    day_of_week: DayOfWeek
    enabled: bool = True
    start_time: str | None = None  # HH:MM
    end_time: str | None = None  # HH:MM


class BlockedTimeSlot(SQLModel, table=True):
    __tablename__ = "blocked_time_slots"
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    blocked_date: date = Field(index=True)
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime)


class DayAvailabilityPublic(SQLModel):
    day_of_week: DayOfWeek
    enabled: bool
    start_time: str | None = None
    end_time: str | None = None


class BlockedTimeSlotPublic(SQLModel):
    id: int
    blocked_date: date
    start_time: str
    end_time: str
    reason: str | None = None
