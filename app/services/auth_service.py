from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import ProviderProfile, User, UserCreate, UserPublic, UserRole


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    user = User(
        email=data.email,
        full_name=data.full_name,
        hashed_password=hash_password(data.password),
        role=data.role,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    if user.role == UserRole.PROVIDER:
        session.add(
            ProviderProfile(
                user_id=user.id,
                specialization=data.specialization,
                appointment_duration_minutes=settings.default_slot_duration_minutes,
            )
        )
        await session.flush()
    return user


def user_to_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
    )


def make_access_token(user: User) -> tuple[str, int]:
    access = create_access_token(user.id, role=user.role.value)
    return access, settings.access_token_expire_minutes * 60


async def login_user(
    session: AsyncSession, email: str, password: str
) -> tuple[User, str, int] | None:
    user = await get_user_by_email(session, email)
    if not user or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    access, expires_in = make_access_token(user)
    return user, access, expires_in


async def signup_user(session: AsyncSession, data: UserCreate) -> tuple[User, str, int] | None:
    existing = await get_user_by_email(session, data.email)
    if existing:
        return None
    user = await create_user(session, data)
    access, expires_in = make_access_token(user)
    return user, access, expires_in
