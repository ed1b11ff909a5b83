from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_session
from app.core.security import decode_access_token
from app.models.user import User
from app.services.notification_service import BackgroundNotifier, NotificationService, Notifier

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    """The authenticated principal behind the bearer token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid authorization header")
    subject = decode_access_token(credentials.credentials)
    if not subject:
        raise _unauthorized("Invalid or expired token")
    if not subject.isdigit():
        raise _unauthorized("Invalid token")
    user = await session.get(User, int(subject))
    if not user:
        raise _unauthorized("User not found")
    return user


async def get_current_patient(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_patient:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Patient account required")
    return current_user


async def get_current_provider(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_provider:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Provider account required")
    return current_user


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    """Deliver notifications after the response has been sent."""
    return BackgroundNotifier(background_tasks, NotificationService())
