"""
Pytest configuration for the scheduling backend tests.

Settings are read from the environment when app modules are imported, so the
test environment is set up before any app import. Every test gets a fresh
in-memory SQLite database (aiosqlite) with the full schema.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import pytest

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENV"] = "test"
os.environ["REMINDER_SCANNER_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import app.models  # noqa: E402,F401 - register tables
from app.core.timeutils import utc_naive_now  # noqa: E402
from app.models.appointment import Appointment, AppointmentStatus, AppointmentType  # noqa: E402
from app.models.notification import NotificationType  # noqa: E402
from app.models.user import ProviderProfile, User, UserRole  # noqa: E402


@dataclass
class SentNotification:
    recipient_id: int
    type: NotificationType
    related_entity_id: int | None
    payload: dict = field(default_factory=dict)


class RecordingNotifier:
    """Collects notifications instead of delivering them."""

    def __init__(self, fail_for_recipients=()):
        self.sent: list[SentNotification] = []
        self.fail_for_recipients = set(fail_for_recipients)

    async def notify(self, recipient_id, type, related_entity_id, payload=None):
        if recipient_id in self.fail_for_recipients:
            raise RuntimeError(f"delivery to {recipient_id} failed")
        self.sent.append(SentNotification(recipient_id, type, related_entity_id, payload or {}))

    def of_type(self, type: NotificationType) -> list[SentNotification]:
        return [n for n in self.sent if n.type == type]


def future_day(days: int = 7):
    return (utc_naive_now() + timedelta(days=days)).date()


def at(day, hhmm: str) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime(day.year, day.month, day.day, int(hours), int(minutes))


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


async def make_user(
    session: AsyncSession,
    email: str,
    role: UserRole,
    full_name: str | None = None,
    specialization: str | None = None,
    duration: int = 30,
) -> User:
    user = User(email=email, full_name=full_name, role=role)
    session.add(user)
    await session.flush()
    if role == UserRole.PROVIDER:
        session.add(
            ProviderProfile(
                user_id=user.id,
                specialization=specialization,
                appointment_duration_minutes=duration,
            )
        )
    await session.commit()
    return user


async def make_appointment(
    session: AsyncSession,
    patient: User,
    provider: User,
    when: datetime,
    status: AppointmentStatus = AppointmentStatus.PENDING,
    **kwargs,
) -> Appointment:
    appointment = Appointment(
        patient_id=patient.id,
        provider_id=provider.id,
        appointment_datetime=when,
        status=status,
        type=kwargs.pop("type", AppointmentType.IN_PERSON),
        **kwargs,
    )
    session.add(appointment)
    await session.commit()
    return appointment


@pytest.fixture
async def patient(session):
    return await make_user(session, "pat@example.com", UserRole.PATIENT, full_name="Pat Smith")


@pytest.fixture
async def other_patient(session):
    return await make_user(session, "other@example.com", UserRole.PATIENT, full_name="Olive Other")


@pytest.fixture
async def provider(session):
    return await make_user(session, "house@example.com", UserRole.PROVIDER, full_name="Greg House")


@pytest.fixture
async def psychiatrist(session):
    return await make_user(
        session, "freud@example.com", UserRole.PROVIDER, full_name="Sigmund Freud", specialization="psychiatry"
    )
