from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class UserRole(str, Enum):
    PATIENT = "patient"
    PROVIDER = "provider"


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    role: UserRole = Field(default=UserRole.PATIENT, index=True)


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime)

    @property
    def is_patient(self) -> bool:
        return self.role == UserRole.PATIENT

    @property
    def is_provider(self) -> bool:
        return self.role == UserRole.PROVIDER


class ProviderProfile(SQLModel, table=True):
    """Provider-only columns, one row per provider user."""

    __tablename__ = "provider_profiles"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    specialization: str | None = None
    appointment_duration_minutes: int = 30


class UserCreate(SQLModel):
    email: str
    password: str
    full_name: str | None = None
    role: UserRole = UserRole.PATIENT
    specialization: str | None = None


class UserPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
    role: UserRole
