"""User-account helpers shared by registration and the student / teacher / parent services."""

from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import hash_password
from app.core.enums import UserRole
from app.core.exceptions import conflict
from app.core.models import Parent, Student, Teacher
from app.core.services import model_to_dict

PROFILE_MODELS = {
    UserRole.STUDENT.value: Student,
    UserRole.TEACHER.value: Teacher,
    UserRole.PARENT.value: Parent,
}


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def ensure_email_available(db: AsyncSession, email: str) -> None:
    if await get_user_by_email(db, email):
        raise conflict("Email already exists")


async def add_user(db: AsyncSession, email: str, password: str, role: UserRole) -> User:
    """Insert an active user and flush to obtain its id. Caller commits."""
    user = User(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role.value,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    return user


async def deactivate_user(db: AsyncSession, user_id: int) -> None:
    user = await db.get(User, user_id)
    if user:
        user.is_active = False


async def load_profile(db: AsyncSession, user: User) -> Optional[Dict[str, Any]]:
    """Role profile row as a plain dict; None for admins or a missing profile."""
    model = PROFILE_MODELS.get(user.role)
    if model is None:
        return None
    result = await db.execute(select(model).where(model.user_id == user.id))
    profile = result.scalar_one_or_none()
    if profile is None:
        return None
    return model_to_dict(profile)
