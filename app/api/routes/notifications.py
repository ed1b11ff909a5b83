from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_session
from app.models.notification import Notification, NotificationPublic
from app.models.user import User
from app.services.notification_service import list_notifications, mark_as_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_public(n: Notification) -> NotificationPublic:
    return NotificationPublic.model_validate(n, from_attributes=True)


@router.get("", response_model=list[NotificationPublic])
async def my_notifications(
    unread_only: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[NotificationPublic]:
    notifications = await list_notifications(session, current_user.id, unread_only=unread_only)
    return [_to_public(n) for n in notifications]


@router.put("/{notification_id}/read", response_model=NotificationPublic)
async def read_notification(
    notification_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> NotificationPublic:
    notification = await mark_as_read(session, current_user.id, notification_id)
    return _to_public(notification)
