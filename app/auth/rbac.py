from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole


def require_roles(*roles: UserRole):
    """
    Dependency factory that admits only the given roles.

    Example:
        dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER))]
    """
    allowed = {r.value for r in roles}

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


admin_only = require_roles(UserRole.ADMIN)
teacher_or_admin = require_roles(UserRole.TEACHER, UserRole.ADMIN)
parent_or_admin = require_roles(UserRole.PARENT, UserRole.ADMIN)
student_or_admin = require_roles(UserRole.STUDENT, UserRole.ADMIN)
