from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.auth.schemas import StrongPassword
from app.core.enums import Gender


class TeacherProfileBase(BaseModel):
    employee_id: str = Field(..., min_length=3, max_length=20)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    qualification: Optional[str] = Field(None, max_length=200)
    specialization: Optional[str] = Field(None, max_length=200)
    hire_date: date
    salary: Optional[Decimal] = Field(None, ge=0)


class TeacherCreate(TeacherProfileBase):
    email: EmailStr
    password: StrongPassword


class TeacherUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    qualification: Optional[str] = Field(None, max_length=200)
    specialization: Optional[str] = Field(None, max_length=200)
    hire_date: Optional[date] = None
    salary: Optional[Decimal] = Field(None, ge=0)


class TeacherResponse(BaseModel):
    id: int
    user_id: int
    employee_id: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    qualification: Optional[str] = None
    specialization: Optional[str] = None
    hire_date: date
    salary: Optional[Decimal] = None
    is_active: bool
    email: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssignSubjectRequest(BaseModel):
    subject_id: int = Field(..., alias="subjectId")
    grade_id: int = Field(..., alias="gradeId")
    academic_year_id: int = Field(..., alias="academicYearId")

    class Config:
        populate_by_name = True


class AssignClassRequest(BaseModel):
    section_id: int = Field(..., alias="sectionId")
    academic_year_id: int = Field(..., alias="academicYearId")

    class Config:
        populate_by_name = True


class TeacherSubjectItem(BaseModel):
    subject_id: int
    subject_name: str
    code: str
    grade_id: int
    grade_name: str
    level: int


class TeacherSectionItem(BaseModel):
    section_id: int
    section_name: str
    grade_name: str
    level: int
    is_class_teacher: bool


class TeacherStats(BaseModel):
    total_teachers: int
    male_teachers: int
    female_teachers: int
    active_teachers: int
    inactive_teachers: int
