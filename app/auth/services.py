from datetime import datetime, timezone

from fastapi import status
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.parents.schemas import ParentProfileBase
from app.api.v1.parents.service import add_parent_record
from app.api.v1.students.schemas import StudentProfileBase
from app.api.v1.students.service import add_student_record
from app.api.v1.teachers.schemas import TeacherProfileBase
from app.api.v1.teachers.service import add_teacher_record
from app.auth.accounts import get_user_by_email, load_profile
from app.auth.models import RefreshToken, User
from app.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
    TokenPair,
    UserInfo,
)
from app.auth.security import (
    build_token_claims,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.logging import get_logger
from app.core.services import commit_or_conflict

logger = get_logger("auth")

INVALID_CREDENTIALS = "Invalid email or password"

# role -> (profile schema, insert function)
PROFILE_BUILDERS = {
    UserRole.STUDENT: (StudentProfileBase, add_student_record),
    UserRole.TEACHER: (TeacherProfileBase, add_teacher_record),
    UserRole.PARENT: (ParentProfileBase, add_parent_record),
}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _issue_tokens(db: AsyncSession, user: User) -> TokenPair:
    """Mint an access token and persist a new refresh token. Caller commits."""
    access_token = create_access_token(subject=build_token_claims(user.id, user.email, user.role))
    refresh_token, expires_at = create_refresh_token()
    db.add(RefreshToken(user_id=user.id, token=refresh_token, expires_at=expires_at))
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


async def _auth_response(db: AsyncSession, user: User, tokens: TokenPair) -> AuthResponse:
    return AuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserInfo.model_validate(user),
        profile=await load_profile(db, user),
    )


async def login_user(db: AsyncSession, payload: LoginRequest) -> AuthResponse:
    user = await get_user_by_email(db, payload.email)
    if not user or not user.is_active:
        raise ServiceError(INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED)
    if not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for user id=%s", user.id)
        raise ServiceError(INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED)

    user.last_login = datetime.now(timezone.utc)
    tokens = await _issue_tokens(db, user)
    await db.commit()
    logger.info("User id=%s logged in", user.id)
    return await _auth_response(db, user, tokens)


async def register_user(db: AsyncSession, payload: RegisterRequest) -> AuthResponse:
    """Create a Student, Teacher or Parent account together with its profile."""
    schema, add_record = PROFILE_BUILDERS[payload.role]
    try:
        profile = schema.model_validate(payload.profile)
    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ServiceError(f"Invalid {payload.role.value} profile: {details}", status.HTTP_400_BAD_REQUEST)

    record = await add_record(db, profile, payload.email, payload.password)
    user = await db.get(User, record.user_id)
    tokens = await _issue_tokens(db, user)
    await commit_or_conflict(db, "User with this email already exists")
    logger.info("Registered %s user id=%s", payload.role.value, user.id)
    return await _auth_response(db, user, tokens)


async def refresh_tokens(db: AsyncSession, token: str) -> TokenPair:
    """Exchange a valid refresh token for a new pair. The old refresh token is revoked."""
    result = await db.execute(select(RefreshToken).where(RefreshToken.token == token))
    stored = result.scalar_one_or_none()
    if not stored or _as_utc(stored.expires_at) <= datetime.now(timezone.utc):
        raise ServiceError("Invalid refresh token", status.HTTP_401_UNAUTHORIZED)
    user = await db.get(User, stored.user_id)
    if not user or not user.is_active:
        raise ServiceError("Invalid refresh token", status.HTTP_401_UNAUTHORIZED)

    await db.delete(stored)
    tokens = await _issue_tokens(db, user)
    await db.commit()
    return tokens


async def get_profile(db: AsyncSession, current_user: CurrentUser) -> ProfileResponse:
    user = await db.get(User, current_user.id)
    if not user:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    return ProfileResponse(user=UserInfo.model_validate(user), profile=await load_profile(db, user))


async def change_password(db: AsyncSession, current_user: CurrentUser, payload: ChangePasswordRequest) -> None:
    user = await db.get(User, current_user.id)
    if not user:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    if not verify_password(payload.current_password, user.password_hash):
        raise ServiceError("Current password is incorrect", status.HTTP_400_BAD_REQUEST)
    user.password_hash = hash_password(payload.new_password)
    user.updated_at = datetime.utcnow()
    await db.commit()
    logger.info("User id=%s changed password", user.id)


async def logout_user(db: AsyncSession, current_user: CurrentUser) -> None:
    """Revoke every refresh token of the user. Access tokens expire on their own."""
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == current_user.id))
    await db.commit()
