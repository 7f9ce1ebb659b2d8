"""
Seed script for the first Admin user.

Admins cannot self-register, so run this once after init_db with env set:
  ADMIN_EMAIL=admin@example.com
  ADMIN_PASSWORD=ChangeMe123

Creates the Admin user, or resets the password and re-activates it when the
email already exists.
"""
import asyncio
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import UserRole
from app.core.logging import get_logger, setup_logging
from app.db.session import AsyncSessionLocal

logger = get_logger("seed")


async def seed_admin(db: AsyncSession, email: Optional[str] = None, password: Optional[str] = None) -> Optional[User]:
    email = (email or settings.admin_email or "").strip().lower()
    password = password or settings.admin_password
    if not email or not password:
        logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set; skipping admin user.")
        return None

    try:
        email = validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValueError(f"ADMIN_EMAIL is not a valid login email: {e}") from e

    result = await db.execute(select(User).where(func.lower(User.email) == email))
    admin = result.scalar_one_or_none()
    if not admin:
        admin = User(
            email=email,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
            is_active=True,
        )
        db.add(admin)
        logger.info("Created Admin user: %s", email)
    else:
        admin.role = UserRole.ADMIN.value
        admin.password_hash = hash_password(password)
        admin.is_active = True
        logger.info("Updated existing user to Admin: %s", email)

    await db.commit()
    await db.refresh(admin)
    return admin


async def main() -> None:
    setup_logging()
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db)
        except Exception:
            await db.rollback()
            logger.exception("Admin seed failed")
            raise


if __name__ == "__main__":
    asyncio.run(main())
