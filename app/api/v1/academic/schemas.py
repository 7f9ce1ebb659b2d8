from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class GradeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Grade 5")
    level: int = Field(..., ge=1, le=20)
    description: Optional[str] = Field(None, max_length=500)


class GradeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    level: Optional[int] = Field(None, ge=1, le=20)
    description: Optional[str] = Field(None, max_length=500)


class GradeResponse(BaseModel):
    id: int
    name: str
    level: int
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SectionCreate(BaseModel):
    grade_id: int
    academic_year_id: int
    name: str = Field(..., min_length=1, max_length=20, description="e.g. A")
    capacity: Optional[int] = Field(None, ge=1, le=200, description="Defaults to 30")


class SectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=20)
    capacity: Optional[int] = Field(None, ge=1, le=200)


class SectionResponse(BaseModel):
    id: int
    grade_id: int
    academic_year_id: int
    name: str
    capacity: int
    grade_name: Optional[str] = None
    grade_level: Optional[int] = None
    academic_year: Optional[str] = None
    student_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    code: str = Field(..., min_length=2, max_length=20)
    description: Optional[str] = Field(None, max_length=500)
    is_core: bool = True


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    description: Optional[str] = Field(None, max_length=500)
    is_core: Optional[bool] = None


class SubjectResponse(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    is_core: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GradeSubjectAssign(BaseModel):
    grade_id: int = Field(..., alias="gradeId")
    subject_id: int = Field(..., alias="subjectId")
    is_compulsory: bool = Field(True, alias="isCompulsory")

    class Config:
        populate_by_name = True


class GradeSubjectResponse(SubjectResponse):
    """Subject as taught in a grade."""

    is_compulsory: bool


class AcademicYearCreate(BaseModel):
    year: str = Field(..., pattern=r"^\d{4}-\d{4}$", description="e.g. 2024-2025")
    start_date: date
    end_date: date


class AcademicYearResponse(BaseModel):
    id: int
    year: str
    start_date: date
    end_date: date
    is_current: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TermCreate(BaseModel):
    academic_year_id: int
    name: str = Field(..., min_length=1, max_length=50, description="e.g. Term 1")
    start_date: date
    end_date: date


class TermResponse(BaseModel):
    id: int
    academic_year_id: int
    name: str
    start_date: date
    end_date: date
    is_current: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
