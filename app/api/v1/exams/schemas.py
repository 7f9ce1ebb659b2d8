from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.core.enums import LetterGrade


class ExamTypeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, description="e.g. Midterm, Final")
    description: Optional[str] = Field(None, max_length=500)


class ExamTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ExaminationCreate(BaseModel):
    exam_type_id: int = Field(..., ge=1)
    subject_id: int = Field(..., ge=1)
    grade_id: int = Field(..., ge=1)
    section_id: int = Field(..., ge=1)
    academic_year_id: int = Field(..., ge=1)
    term_id: int = Field(..., ge=1)
    title: str = Field(..., min_length=5, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    exam_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    total_marks: int = Field(..., ge=1)
    passing_marks: int = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_marks(self) -> "ExaminationCreate":
        if self.passing_marks > self.total_marks:
            raise ValueError("Passing marks cannot exceed total marks")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class ExaminationUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    exam_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    total_marks: Optional[int] = Field(None, ge=1)
    passing_marks: Optional[int] = Field(None, ge=0)


class ExaminationResponse(BaseModel):
    id: int
    exam_type_id: int
    subject_id: int
    grade_id: int
    section_id: int
    academic_year_id: int
    term_id: int
    title: str
    description: Optional[str] = None
    exam_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    total_marks: int
    passing_marks: int
    created_by: Optional[int] = None
    subject_name: Optional[str] = None
    subject_code: Optional[str] = None
    grade_name: Optional[str] = None
    section_name: Optional[str] = None
    exam_type_name: Optional[str] = None
    academic_year: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExamResultCreate(BaseModel):
    examination_id: int = Field(..., ge=1)
    student_id: int = Field(..., ge=1)
    marks_obtained: Decimal = Field(..., ge=0, max_digits=6, decimal_places=2)
    grade: Optional[LetterGrade] = Field(None, description="Derived from the percentage when omitted")
    remarks: Optional[str] = Field(None, max_length=500)


class ExamResultUpdate(BaseModel):
    marks_obtained: Optional[Decimal] = Field(None, ge=0, max_digits=6, decimal_places=2)
    grade: Optional[LetterGrade] = None
    remarks: Optional[str] = Field(None, max_length=500)


class ExamResultResponse(BaseModel):
    """Result row; the joined student / exam / subject columns are filled by the list queries."""

    id: int
    examination_id: int
    student_id: int
    marks_obtained: Decimal
    grade: Optional[str] = None
    remarks: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    student_number: Optional[str] = None
    exam_title: Optional[str] = None
    exam_date: Optional[date] = None
    total_marks: Optional[int] = None
    passing_marks: Optional[int] = None
    subject_name: Optional[str] = None
    subject_code: Optional[str] = None
    exam_type_name: Optional[str] = None
    grade_name: Optional[str] = None
    section_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExamStats(BaseModel):
    total_examinations: int
    total_results: int
    students_with_results: int
    average_marks: Optional[float] = None
    passed_count: int
    failed_count: int
    pass_percentage: int
