from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import AttendanceStatus


class AttendanceMark(BaseModel):
    """Attendance for one student on one date."""

    student_id: int = Field(..., ge=1)
    section_id: int = Field(..., ge=1)
    date: date_type
    status: AttendanceStatus
    remarks: Optional[str] = Field(None, max_length=500)


class AttendanceBulkMark(BaseModel):
    """Several marks at once, typically a whole section for a day."""

    records: List[AttendanceMark] = Field(..., min_length=1)


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = Field(None, max_length=500)


class AttendanceResponse(BaseModel):
    id: int
    student_id: int
    section_id: int
    date: date_type
    status: str
    remarks: Optional[str] = None
    marked_by: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    student_number: Optional[str] = None
    section_name: Optional[str] = None
    grade_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BulkMarkFailure(BaseModel):
    student_id: int
    date: date_type
    error: str


class BulkMarkResult(BaseModel):
    marked: List[AttendanceResponse]
    failed: List[BulkMarkFailure]


class StudentAttendanceSummary(BaseModel):
    student_id: int
    total_days: int
    present_days: int
    absent_days: int
    late_days: int
    excused_days: int
    attendance_percentage: int


class SectionAttendanceSummary(BaseModel):
    section_id: int
    date: Optional[date_type] = None
    total_students: int
    total_records: int
    present_count: int
    absent_count: int
    late_count: int
    excused_count: int
    attendance_percentage: int


class DailyAttendanceRow(BaseModel):
    student_id: int
    first_name: str
    last_name: str
    student_number: str
    status: str
    remarks: Optional[str] = None
    section_name: str
    grade_name: str


class MonthlyAttendanceRow(BaseModel):
    student_id: int
    first_name: str
    last_name: str
    student_number: str
    section_name: str
    grade_name: str
    total_days: int
    present_days: int
    absent_days: int
    late_days: int
    excused_days: int
    attendance_percentage: int


class AttendanceStats(BaseModel):
    total_records: int
    present_count: int
    absent_count: int
    late_count: int
    excused_count: int
    unique_students: int
    unique_days: int
    attendance_percentage: int
