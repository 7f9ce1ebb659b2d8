from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.auth.schemas import StrongPassword
from app.core.enums import Relationship


class ParentProfileBase(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    phone: str = Field(..., min_length=7, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    occupation: Optional[str] = Field(None, max_length=100)
    relationship: Relationship
    is_primary: bool = True


class ParentCreate(ParentProfileBase):
    email: EmailStr
    password: StrongPassword
    student_id: Optional[int] = Field(None, description="Student to link this parent to")


class ParentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    occupation: Optional[str] = Field(None, max_length=100)
    relationship: Optional[Relationship] = None
    is_primary: Optional[bool] = None


class ParentResponse(BaseModel):
    id: int
    user_id: int
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    relationship: str
    is_primary: bool
    is_active: Optional[bool] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LinkStudentRequest(BaseModel):
    student_id: int = Field(..., alias="studentId")
    relationship: Relationship
    is_primary: bool = Field(False, alias="isPrimary")

    class Config:
        populate_by_name = True


class LinkedStudent(BaseModel):
    id: int
    student_id: str
    first_name: str
    last_name: str
    admission_number: str
    student_email: Optional[str] = None
    relationship: str
    is_primary: bool


class LinkedParent(BaseModel):
    id: int
    first_name: str
    last_name: str
    phone: str
    parent_email: Optional[str] = None
    relationship: str
    is_primary: bool


class ParentStats(BaseModel):
    total_parents: int
    fathers: int
    mothers: int
    guardians: int
    primary_parents: int
