"""24-hour appointment reminders.

A sweep runs every ``interval_hours`` and looks at confirmed appointments whose
start falls in ``[now + window_start_hours, now + window_end_hours]``. Both the
patient and the provider are notified, then ``reminder_24h_sent`` is set so the
appointment is never reminded twice. The flag is only written after both
notifications went out, so a failed send is retried by the next sweep.

With ``catch_up_missed`` the lower bound of the window becomes ``now``: an
appointment confirmed less than a day ahead, or one skipped while the scanner
was down, still gets its reminder as long as it lies in the future.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, settings
from app.core.timeutils import utc_naive_now
from app.models.appointment import Appointment, AppointmentStatus
from app.models.notification import NotificationType
from app.models.user import User
from app.services.notification_service import Notifier, build_message, display_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderConfig:
    interval_hours: float = 12
    window_start_hours: float = 24
    window_end_hours: float = 36
    catch_up_missed: bool = True
    send_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "ReminderConfig":
        return cls(
            interval_hours=s.reminder_interval_hours,
            window_start_hours=s.reminder_window_start_hours,
            window_end_hours=s.reminder_window_end_hours,
            catch_up_missed=s.reminder_catch_up_missed,
            send_timeout_seconds=s.notification_send_timeout_seconds,
        )


class DueReminder(NamedTuple):
    appointment_id: int
    patient_id: int
    provider_id: int
    appointment_datetime: datetime


class ReminderScanner:
    def __init__(
        self,
        config: ReminderConfig,
        session_maker: async_sessionmaker[AsyncSession],
        notifier: Notifier,
    ):
        self.config = config
        self._session_maker = session_maker
        self._notifier = notifier

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        end = now + timedelta(hours=self.config.window_end_hours)
        if self.config.catch_up_missed:
            return now, end
        return now + timedelta(hours=self.config.window_start_hours), end

    async def find_due(self, session: AsyncSession, now: datetime) -> list[DueReminder]:
        start, end = self.window(now)
        result = await session.execute(
            select(
                Appointment.id,
                Appointment.patient_id,
                Appointment.provider_id,
                Appointment.appointment_datetime,
            )
            .where(
                Appointment.status == AppointmentStatus.CONFIRMED,
                Appointment.reminder_24h_sent == False,  # noqa: E712
                Appointment.appointment_datetime >= start,
                Appointment.appointment_datetime <= end,
            )
            .order_by(Appointment.appointment_datetime)
        )
        return [DueReminder(*row) for row in result.all()]

    async def _send(self, session: AsyncSession, due: DueReminder) -> None:
        patient = await session.get(User, due.patient_id)
        provider = await session.get(User, due.provider_id)
        await self._notifier.notify(
            due.patient_id,
            NotificationType.APPOINTMENT_REMINDER_24H,
            due.appointment_id,
            {
                "actor_id": due.provider_id,
                "message": build_message(
                    NotificationType.APPOINTMENT_REMINDER_24H,
                    display_name(provider, provider=True),
                    due.appointment_datetime,
                ),
            },
        )
        await self._notifier.notify(
            due.provider_id,
            NotificationType.APPOINTMENT_REMINDER_24H,
            due.appointment_id,
            {
                "actor_id": due.patient_id,
                "message": build_message(
                    NotificationType.APPOINTMENT_REMINDER_24H,
                    display_name(patient),
                    due.appointment_datetime,
                ),
            },
        )

    async def _mark_sent(self, session: AsyncSession, appointment_id: int) -> bool:
        result = await session.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.reminder_24h_sent == False)  # noqa: E712
            .values(
                reminder_24h_sent=True,
                version=Appointment.version + 1,
                updated_at=utc_naive_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def run_once(self, now: datetime | None = None) -> int:
        """One sweep. Returns how many appointments were reminded."""
        now = now or utc_naive_now()
        start, end = self.window(now)
        logger.info("Checking for appointments needing 24-hour reminders between %s and %s", start, end)
        sent = 0
        async with self._session_maker() as session:
            due_list = await self.find_due(session, now)
            logger.info("Found %d appointments needing 24-hour reminders", len(due_list))
            for due in due_list:
                try:
                    await asyncio.wait_for(self._send(session, due), timeout=self.config.send_timeout_seconds)
                    if await self._mark_sent(session, due.appointment_id):
                        sent += 1
                    await session.commit()
                    logger.info(
                        "Sent 24-hour reminder for appointment %s (patient %s, provider %s)",
                        due.appointment_id, due.patient_id, due.provider_id,
                    )
                except Exception as e:
                    await session.rollback()
                    logger.exception("Failed to send 24-hour reminder for appointment %s: %s", due.appointment_id, e)
        logger.info("Finished checking 24-hour reminders: %d sent", sent)
        return sent

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception("Error in scheduled 24-hour reminder task: %s", e)
            await asyncio.sleep(self.config.interval_hours * 60 * 60)
