"""Daily student attendance: marking, corrections, summaries and reports."""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import AttendanceStatus
from app.core.exceptions import ServiceError, bad_request, conflict, not_found
from app.core.helpers import month_bounds, percentage
from app.core.logging import get_logger
from app.core.models import Attendance, Grade, Section, Student
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict

from .schemas import (
    AttendanceBulkMark,
    AttendanceMark,
    AttendanceResponse,
    AttendanceStats,
    AttendanceUpdate,
    BulkMarkFailure,
    BulkMarkResult,
    DailyAttendanceRow,
    MonthlyAttendanceRow,
    SectionAttendanceSummary,
    StudentAttendanceSummary,
)

logger = get_logger("attendance")

SORT_FIELDS = {
    "date": Attendance.date,
    "status": Attendance.status,
    "first_name": Student.first_name,
    "last_name": Student.last_name,
    "created_at": Attendance.created_at,
}


def _count_status(value: AttendanceStatus):
    return func.count(case((Attendance.status == value.value, 1)))


def _attendance_query():
    return (
        select(
            Attendance,
            Student.first_name,
            Student.last_name,
            Student.student_id.label("student_number"),
            Section.name.label("section_name"),
            Grade.name.label("grade_name"),
        )
        .join(Student, Attendance.student_id == Student.id)
        .join(Section, Attendance.section_id == Section.id)
        .join(Grade, Section.grade_id == Grade.id)
    )


def _to_response(row: Dict[str, Any]) -> AttendanceResponse:
    extra = {k: v for k, v in row.items() if k != "Attendance"}
    return AttendanceResponse(**model_to_dict(row["Attendance"]), **extra)


async def mark_attendance(
    db: AsyncSession, payload: AttendanceMark, marked_by: Optional[int] = None
) -> AttendanceResponse:
    student = await db.execute(
        select(Student.id).where(Student.id == payload.student_id, Student.is_active.is_(True))
    )
    if not student.first():
        raise not_found("Student")
    await get_or_404(db, Section, payload.section_id, "Section")
    existing = await db.execute(
        select(Attendance.id).where(
            Attendance.student_id == payload.student_id,
            Attendance.date == payload.date,
        )
    )
    if existing.first():
        raise conflict("Attendance already marked for this date")

    record = Attendance(
        student_id=payload.student_id,
        section_id=payload.section_id,
        date=payload.date,
        status=payload.status.value,
        remarks=payload.remarks,
        marked_by=marked_by,
    )
    db.add(record)
    await commit_or_conflict(db, "Attendance already marked for this date")
    return await get_attendance(db, record.id)


async def mark_bulk_attendance(
    db: AsyncSession, payload: AttendanceBulkMark, marked_by: Optional[int] = None
) -> BulkMarkResult:
    """Mark each record on its own; a failed record is logged and reported, the rest still go in."""
    marked: List[AttendanceResponse] = []
    failed: List[BulkMarkFailure] = []
    for item in payload.records:
        try:
            marked.append(await mark_attendance(db, item, marked_by))
        except ServiceError as e:
            logger.warning(
                "Failed to mark attendance for student %s on %s: %s", item.student_id, item.date, e.message
            )
            failed.append(BulkMarkFailure(student_id=item.student_id, date=item.date, error=e.message))
    logger.info("Bulk attendance: %d marked, %d failed", len(marked), len(failed))
    return BulkMarkResult(marked=marked, failed=failed)


async def list_attendance(
    db: AsyncSession,
    params: ListParams,
    student_id: Optional[int] = None,
    section_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
) -> Tuple[List[AttendanceResponse], int]:
    stmt = _attendance_query()
    if student_id is not None:
        stmt = stmt.where(Attendance.student_id == student_id)
    if section_id is not None:
        stmt = stmt.where(Attendance.section_id == section_id)
    if start_date is not None:
        stmt = stmt.where(Attendance.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Attendance.date <= end_date)
    if status is not None:
        stmt = stmt.where(Attendance.status == status.value)
    stmt = apply_search(stmt, params.search, [Student.first_name, Student.last_name, Student.student_id])
    stmt = apply_sort(
        stmt, params, SORT_FIELDS, [Attendance.date.desc(), Student.first_name, Student.last_name]
    )
    rows, total = await fetch_page(db, stmt, params)
    return [_to_response(r) for r in rows], total


async def get_attendance(db: AsyncSession, attendance_id: int) -> AttendanceResponse:
    row = (await db.execute(_attendance_query().where(Attendance.id == attendance_id))).mappings().first()
    if not row:
        raise not_found("Attendance record")
    return _to_response(dict(row))


async def update_attendance(
    db: AsyncSession, attendance_id: int, payload: AttendanceUpdate
) -> AttendanceResponse:
    record = await get_or_404(db, Attendance, attendance_id, "Attendance record")
    apply_updates(record, payload)
    await commit_or_conflict(db)
    return await get_attendance(db, attendance_id)


async def delete_attendance(db: AsyncSession, attendance_id: int) -> None:
    record = await get_or_404(db, Attendance, attendance_id, "Attendance record")
    await db.delete(record)
    await db.commit()
    logger.info("Deleted attendance record id=%s", attendance_id)


async def get_student_attendance_summary(
    db: AsyncSession,
    student_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> StudentAttendanceSummary:
    stmt = select(
        func.count(Attendance.id),
        _count_status(AttendanceStatus.PRESENT),
        _count_status(AttendanceStatus.ABSENT),
        _count_status(AttendanceStatus.LATE),
        _count_status(AttendanceStatus.EXCUSED),
    ).where(Attendance.student_id == student_id)
    if start_date is not None:
        stmt = stmt.where(Attendance.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Attendance.date <= end_date)
    total, present, absent, late, excused = (await db.execute(stmt)).one()
    return StudentAttendanceSummary(
        student_id=student_id,
        total_days=total,
        present_days=present,
        absent_days=absent,
        late_days=late,
        excused_days=excused,
        attendance_percentage=percentage(present, total),
    )


async def get_section_attendance_summary(
    db: AsyncSession, section_id: int, on: Optional[date] = None
) -> SectionAttendanceSummary:
    stmt = select(
        func.count(func.distinct(Attendance.student_id)),
        func.count(Attendance.id),
        _count_status(AttendanceStatus.PRESENT),
        _count_status(AttendanceStatus.ABSENT),
        _count_status(AttendanceStatus.LATE),
        _count_status(AttendanceStatus.EXCUSED),
    ).where(Attendance.section_id == section_id)
    if on is not None:
        stmt = stmt.where(Attendance.date == on)
    students, total, present, absent, late, excused = (await db.execute(stmt)).one()
    return SectionAttendanceSummary(
        section_id=section_id,
        date=on,
        total_students=students,
        total_records=total,
        present_count=present,
        absent_count=absent,
        late_count=late,
        excused_count=excused,
        attendance_percentage=percentage(present, total),
    )


async def get_daily_attendance_report(
    db: AsyncSession, on: date, section_id: Optional[int] = None
) -> List[DailyAttendanceRow]:
    stmt = (
        select(
            Attendance.student_id,
            Student.first_name,
            Student.last_name,
            Student.student_id.label("student_number"),
            Attendance.status,
            Attendance.remarks,
            Section.name.label("section_name"),
            Grade.name.label("grade_name"),
        )
        .join(Student, Attendance.student_id == Student.id)
        .join(Section, Attendance.section_id == Section.id)
        .join(Grade, Section.grade_id == Grade.id)
        .where(Attendance.date == on)
    )
    if section_id is not None:
        stmt = stmt.where(Attendance.section_id == section_id)
    stmt = stmt.order_by(Grade.level, Section.name, Student.first_name, Student.last_name)
    result = await db.execute(stmt)
    return [DailyAttendanceRow(**r) for r in result.mappings().all()]


async def get_monthly_attendance_report(
    db: AsyncSession, year: int, month: int, section_id: Optional[int] = None
) -> List[MonthlyAttendanceRow]:
    """Per-student totals for the month with each student's attendance percentage."""
    try:
        first_day, last_day = month_bounds(year, month)
    except ValueError as e:
        raise bad_request(str(e)) from e
    stmt = (
        select(
            Attendance.student_id,
            Student.first_name,
            Student.last_name,
            Student.student_id.label("student_number"),
            Section.name.label("section_name"),
            Grade.name.label("grade_name"),
            func.count(Attendance.id).label("total_days"),
            _count_status(AttendanceStatus.PRESENT).label("present_days"),
            _count_status(AttendanceStatus.ABSENT).label("absent_days"),
            _count_status(AttendanceStatus.LATE).label("late_days"),
            _count_status(AttendanceStatus.EXCUSED).label("excused_days"),
        )
        .join(Student, Attendance.student_id == Student.id)
        .join(Section, Attendance.section_id == Section.id)
        .join(Grade, Section.grade_id == Grade.id)
        .where(Attendance.date >= first_day, Attendance.date <= last_day)
    )
    if section_id is not None:
        stmt = stmt.where(Attendance.section_id == section_id)
    stmt = stmt.group_by(
        Attendance.student_id,
        Student.first_name,
        Student.last_name,
        Student.student_id,
        Section.name,
        Grade.name,
        Grade.level,
    ).order_by(Grade.level, Section.name, Student.first_name, Student.last_name)
    result = await db.execute(stmt)
    return [
        MonthlyAttendanceRow(**r, attendance_percentage=percentage(r["present_days"], r["total_days"]))
        for r in result.mappings().all()
    ]


async def get_attendance_stats(db: AsyncSession) -> AttendanceStats:
    row = (
        await db.execute(
            select(
                func.count(Attendance.id),
                _count_status(AttendanceStatus.PRESENT),
                _count_status(AttendanceStatus.ABSENT),
                _count_status(AttendanceStatus.LATE),
                _count_status(AttendanceStatus.EXCUSED),
                func.count(func.distinct(Attendance.student_id)),
                func.count(func.distinct(Attendance.date)),
            )
        )
    ).one()
    return AttendanceStats(
        total_records=row[0],
        present_count=row[1],
        absent_count=row[2],
        late_count=row[3],
        excused_count=row[4],
        unique_students=row[5],
        unique_days=row[6],
        attendance_percentage=percentage(row[1], row[0]),
    )
