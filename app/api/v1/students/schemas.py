from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, EmailStr, Field

from app.auth.schemas import StrongPassword
from app.core.enums import Gender


class StudentProfileBase(BaseModel):
    """Student profile fields. Shared by admin create and self-registration."""

    student_id: str = Field(..., min_length=3, max_length=20)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    date_of_birth: date
    gender: Gender
    admission_date: date
    admission_number: str = Field(..., min_length=5, max_length=50)
    previous_school: Optional[str] = Field(None, max_length=200)
    medical_info: Optional[str] = Field(None, max_length=1000)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)


class StudentCreate(StudentProfileBase):
    email: EmailStr
    password: StrongPassword
    parent_id: Optional[int] = Field(None, description="Existing parent to link as primary guardian")


class StudentUpdate(BaseModel):
    """Partial update. Only fields present in the body are applied."""

    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    admission_number: Optional[str] = Field(None, min_length=5, max_length=50)
    previous_school: Optional[str] = Field(None, max_length=200)
    medical_info: Optional[str] = Field(None, max_length=1000)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)


class StudentResponse(BaseModel):
    id: int
    user_id: int
    student_id: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: date
    gender: str
    admission_date: date
    admission_number: str
    previous_school: Optional[str] = None
    medical_info: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    is_active: bool
    email: Optional[str] = None
    last_login: Optional[datetime] = None
    section_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnrollmentRequest(BaseModel):
    section_id: int = Field(..., alias="sectionId")
    academic_year_id: int = Field(..., alias="academicYearId")
    enrollment_date: Optional[date] = Field(None, alias="enrollmentDate")

    class Config:
        populate_by_name = True


class TransferRequest(BaseModel):
    new_section_id: int = Field(..., alias="newSectionId")
    academic_year_id: int = Field(..., alias="academicYearId")

    class Config:
        populate_by_name = True


class StudentStats(BaseModel):
    total_students: int
    male_students: int
    female_students: int
    active_students: int
    inactive_students: int
    students_by_grade: Dict[str, int] = Field(default_factory=dict)
