import re
from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, model_validator

from app.core.enums import UserRole

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def check_password_strength(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not PASSWORD_PATTERN.match(value):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return value


StrongPassword = Annotated[str, AfterValidator(check_password_strength)]


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Self-registration for Student, Teacher and Parent accounts. Admins are seeded, not registered."""

    email: EmailStr
    password: StrongPassword
    role: UserRole
    profile: Dict[str, Any] = Field(..., description="Role profile fields, e.g. first_name, last_name")

    @model_validator(mode="after")
    def validate_role_and_profile(self) -> "RegisterRequest":
        if self.role == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot be registered")
        if not self.profile:
            raise ValueError(f"{self.role.value} profile data is required")
        return self


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken")

    class Config:
        populate_by_name = True


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: StrongPassword = Field(..., alias="newPassword")
    confirm_password: str = Field(..., alias="confirmPassword")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def validate_passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Password confirmation does not match new password")
        return self


class UserInfo(BaseModel):
    id: int
    email: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Tokens plus the user and their role profile (student / teacher / parent row)."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserInfo
    profile: Optional[Dict[str, Any]] = None


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class ProfileResponse(BaseModel):
    user: UserInfo
    profile: Optional[Dict[str, Any]] = None


class CurrentUser(BaseModel):
    """Authenticated principal resolved from the bearer token."""

    id: int
    email: str
    role: str
