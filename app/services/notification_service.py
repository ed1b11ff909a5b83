"""Notification fan-out for appointment events.

Services hand events to a ``Notifier``. ``NotificationService`` stores an inbox
row for the recipient in its own session and e-mails them when SMTP is set up;
``BackgroundNotifier`` defers that work until after the response is sent.
Callers on the request path go through ``safe_notify`` so a failed delivery
never fails the appointment operation that triggered it.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.db import async_session_maker
from app.core.errors import ForbiddenError, NotFoundError
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.services.email_service import send_notification_email

logger = logging.getLogger(__name__)

_TEMPLATES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.APPOINTMENT_REQUESTED: ("New appointment request", "{name} requested an appointment with you"),
    NotificationType.APPOINTMENT_CONFIRMED: ("Appointment confirmed", "{name} confirmed your appointment"),
    NotificationType.APPOINTMENT_CANCELLED: ("Appointment cancelled", "{name} cancelled your appointment"),
    NotificationType.APPOINTMENT_RESCHEDULED: ("Appointment rescheduled", "{name} rescheduled your appointment"),
    NotificationType.APPOINTMENT_RESCHEDULE_CONFIRMED: ("Reschedule accepted", "{name} accepted the new appointment time"),
    NotificationType.APPOINTMENT_RESCHEDULE_CANCELLED: (
        "Reschedule declined",
        "{name} declined the new time and the appointment was cancelled",
    ),
    NotificationType.APPOINTMENT_COMPLETED: ("Appointment completed", "{name} marked your appointment as completed"),
    NotificationType.APPOINTMENT_FOLLOW_UP: ("Follow-up requested", "{name} scheduled a follow-up appointment"),
    NotificationType.APPOINTMENT_REMINDER_24H: ("Appointment reminder", "Reminder: You have an upcoming appointment with {name}"),
}


def display_name(user: User | None, provider: bool = False) -> str:
    if user is None:
        return "Someone"
    name = user.full_name or user.email
    return f"Dr. {name}" if provider else name


def build_message(type: NotificationType, actor_name: str, when: datetime | None = None) -> str:
    message = _TEMPLATES[type][1].format(name=actor_name)
    if when is not None:
        label = "New time" if type == NotificationType.APPOINTMENT_RESCHEDULED else "When"
        message += f" ({label}: {when:%b %d, %Y at %H:%M} UTC)"
    return message


class Notifier(Protocol):
    async def notify(
        self,
        recipient_id: int,
        type: NotificationType,
        related_entity_id: int | None,
        payload: dict[str, Any] | None = None,
    ) -> None: ...


class NotificationService:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession] | None = None):
        self._session_maker = session_maker or async_session_maker

    async def notify(
        self,
        recipient_id: int,
        type: NotificationType,
        related_entity_id: int | None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        payload = payload or {}
        message = payload.get("message")
        async with self._session_maker() as session:
            try:
                recipient = await session.get(User, recipient_id)
                if recipient is None:
                    raise NotFoundError(f"Notification recipient {recipient_id} not found")
                session.add(
                    Notification(
                        recipient_id=recipient_id,
                        actor_id=payload.get("actor_id"),
                        type=type,
                        message=message,
                        related_entity_id=related_entity_id,
                    )
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.debug("Stored %s notification for user %s", type.value, recipient_id)
        if settings.email_enabled and recipient.email:
            await asyncio.to_thread(
                send_notification_email,
                recipient.email,
                recipient.full_name,
                _TEMPLATES[type][0],
                message or _TEMPLATES[type][0],
            )


class BackgroundNotifier:
    """Queue deliveries on FastAPI BackgroundTasks so the request does not wait on them."""

    def __init__(self, background_tasks: BackgroundTasks, delegate: Notifier):
        self._background_tasks = background_tasks
        self._delegate = delegate

    async def notify(
        self,
        recipient_id: int,
        type: NotificationType,
        related_entity_id: int | None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        self._background_tasks.add_task(
            safe_notify, self._delegate, recipient_id, type, related_entity_id, payload
        )


async def safe_notify(
    notifier: Notifier,
    recipient_id: int,
    type: NotificationType,
    related_entity_id: int | None,
    payload: dict[str, Any] | None = None,
) -> bool:
    """Deliver a notification, logging instead of raising on failure."""
    try:
        await notifier.notify(recipient_id, type, related_entity_id, payload)
        return True
    except Exception as e:
        logger.exception(
            "Failed to create %s notification for user %s: %s", type.value, recipient_id, e
        )
        return False


async def list_notifications(
    session: AsyncSession, user_id: int, unread_only: bool = False
) -> list[Notification]:
    q = (
        select(Notification)
        .where(Notification.recipient_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    if unread_only:
        q = q.where(Notification.is_read == False)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def mark_as_read(session: AsyncSession, user_id: int, notification_id: int) -> Notification:
    notification = await session.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")
    if notification.recipient_id != user_id:
        raise ForbiddenError("Notification belongs to another user")
    notification.is_read = True
    session.add(notification)
    await session.flush()
    return notification
