"""Exam types, scheduled examinations and per-student results."""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import bad_request, conflict, not_found
from app.core.helpers import calculate_grade, percentage
from app.core.logging import get_logger
from app.core.models import (
    AcademicYear,
    ExamResult,
    ExamType,
    Examination,
    Grade,
    Section,
    Student,
    Subject,
    Term,
)
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict

from .schemas import (
    ExamResultCreate,
    ExamResultResponse,
    ExamResultUpdate,
    ExamStats,
    ExamTypeCreate,
    ExamTypeResponse,
    ExaminationCreate,
    ExaminationResponse,
    ExaminationUpdate,
)

logger = get_logger("exams")

EXAM_SORT_FIELDS = {
    "title": Examination.title,
    "exam_date": Examination.exam_date,
    "total_marks": Examination.total_marks,
    "created_at": Examination.created_at,
}

RESULT_SORT_FIELDS = {
    "marks_obtained": ExamResult.marks_obtained,
    "first_name": Student.first_name,
    "last_name": Student.last_name,
    "exam_date": Examination.exam_date,
}


# --- Exam types ---


async def create_exam_type(db: AsyncSession, payload: ExamTypeCreate) -> ExamTypeResponse:
    name = payload.name.strip()
    if (await db.execute(select(ExamType.id).where(ExamType.name == name))).first():
        raise conflict("Exam type already exists")
    exam_type = ExamType(name=name, description=payload.description)
    db.add(exam_type)
    await commit_or_conflict(db, "Exam type already exists")
    await db.refresh(exam_type)
    return ExamTypeResponse.model_validate(exam_type)


async def list_exam_types(db: AsyncSession) -> List[ExamTypeResponse]:
    result = await db.execute(select(ExamType).order_by(ExamType.name))
    return [ExamTypeResponse.model_validate(t) for t in result.scalars().all()]


# --- Examinations ---


def _examination_query():
    return (
        select(
            Examination,
            Subject.name.label("subject_name"),
            Subject.code.label("subject_code"),
            Grade.name.label("grade_name"),
            Section.name.label("section_name"),
            ExamType.name.label("exam_type_name"),
            AcademicYear.year.label("academic_year"),
        )
        .join(Subject, Examination.subject_id == Subject.id)
        .join(Grade, Examination.grade_id == Grade.id)
        .join(Section, Examination.section_id == Section.id)
        .join(ExamType, Examination.exam_type_id == ExamType.id)
        .join(AcademicYear, Examination.academic_year_id == AcademicYear.id)
    )


def _examination_response(row: Dict[str, Any]) -> ExaminationResponse:
    extra = {k: v for k, v in row.items() if k != "Examination"}
    return ExaminationResponse(**model_to_dict(row["Examination"]), **extra)


async def create_examination(
    db: AsyncSession, payload: ExaminationCreate, created_by: Optional[int] = None
) -> ExaminationResponse:
    """Referenced rows are checked in order: exam type, subject, grade, section, academic year, term."""
    await get_or_404(db, ExamType, payload.exam_type_id, "Exam type")
    await get_or_404(db, Subject, payload.subject_id, "Subject")
    await get_or_404(db, Grade, payload.grade_id, "Grade")
    section = await get_or_404(db, Section, payload.section_id, "Section")
    await get_or_404(db, AcademicYear, payload.academic_year_id, "Academic year")
    term = await get_or_404(db, Term, payload.term_id, "Term")
    if section.grade_id != payload.grade_id:
        raise bad_request("Section does not belong to the given grade")
    if term.academic_year_id != payload.academic_year_id:
        raise bad_request("Term does not belong to the given academic year")

    exam = Examination(**payload.model_dump(), created_by=created_by)
    exam.title = payload.title.strip()
    db.add(exam)
    await commit_or_conflict(db)
    logger.info("Created examination %r (id=%s) by user %s", exam.title, exam.id, created_by)
    return await get_examination(db, exam.id)


async def list_examinations(
    db: AsyncSession,
    params: ListParams,
    subject_id: Optional[int] = None,
    grade_id: Optional[int] = None,
    section_id: Optional[int] = None,
    academic_year_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> Tuple[List[ExaminationResponse], int]:
    stmt = _examination_query()
    filters = (
        (Examination.subject_id, subject_id),
        (Examination.grade_id, grade_id),
        (Examination.section_id, section_id),
        (Examination.academic_year_id, academic_year_id),
        (Examination.term_id, term_id),
    )
    for column, value in filters:
        if value is not None:
            stmt = stmt.where(column == value)
    stmt = apply_search(stmt, params.search, [Examination.title, Subject.name, Grade.name])
    stmt = apply_sort(
        stmt, params, EXAM_SORT_FIELDS, [Examination.exam_date.desc(), Examination.created_at.desc()]
    )
    rows, total = await fetch_page(db, stmt, params)
    return [_examination_response(r) for r in rows], total


async def get_examination(db: AsyncSession, examination_id: int) -> ExaminationResponse:
    result = await db.execute(_examination_query().where(Examination.id == examination_id))
    row = result.mappings().first()
    if not row:
        raise not_found("Examination")
    return _examination_response(dict(row))


async def update_examination(
    db: AsyncSession, examination_id: int, payload: ExaminationUpdate
) -> ExaminationResponse:
    exam = await get_or_404(db, Examination, examination_id, "Examination")
    total = payload.total_marks if payload.total_marks is not None else exam.total_marks
    passing = payload.passing_marks if payload.passing_marks is not None else exam.passing_marks
    if passing > total:
        raise bad_request("Passing marks cannot exceed total marks")
    start = payload.start_time if payload.start_time is not None else exam.start_time
    end = payload.end_time if payload.end_time is not None else exam.end_time
    if start is not None and end is not None and end <= start:
        raise bad_request("End time must be after start time")
    if payload.total_marks is not None and payload.total_marks < exam.total_marks:
        highest = await db.execute(
            select(func.max(ExamResult.marks_obtained)).where(ExamResult.examination_id == examination_id)
        )
        top_marks = highest.scalar()
        if top_marks is not None and top_marks > payload.total_marks:
            raise bad_request("Total marks cannot be lower than marks already recorded")
    apply_updates(exam, payload)
    await commit_or_conflict(db)
    return await get_examination(db, examination_id)


async def delete_examination(db: AsyncSession, examination_id: int) -> None:
    exam = await get_or_404(db, Examination, examination_id, "Examination")
    has_results = await db.execute(
        select(ExamResult.id).where(ExamResult.examination_id == examination_id).limit(1)
    )
    if has_results.first():
        raise conflict("Cannot delete examination. Examination has results.")
    await db.delete(exam)
    await db.commit()
    logger.info("Deleted examination id=%s", examination_id)


async def get_upcoming_examinations(db: AsyncSession, days: int = 7) -> List[ExaminationResponse]:
    today = date.today()
    stmt = (
        _examination_query()
        .where(Examination.exam_date >= today, Examination.exam_date <= today + timedelta(days=days))
        .order_by(Examination.exam_date.asc(), Examination.start_time.asc())
    )
    result = await db.execute(stmt)
    return [_examination_response(dict(r)) for r in result.mappings().all()]


# --- Results ---


def _result_query():
    return (
        select(
            ExamResult,
            Student.first_name,
            Student.last_name,
            Student.student_id.label("student_number"),
            Examination.title.label("exam_title"),
            Examination.exam_date,
            Examination.total_marks,
            Examination.passing_marks,
            Subject.name.label("subject_name"),
            Subject.code.label("subject_code"),
            ExamType.name.label("exam_type_name"),
            Grade.name.label("grade_name"),
            Section.name.label("section_name"),
        )
        .join(Student, ExamResult.student_id == Student.id)
        .join(Examination, ExamResult.examination_id == Examination.id)
        .join(Subject, Examination.subject_id == Subject.id)
        .join(ExamType, Examination.exam_type_id == ExamType.id)
        .join(Grade, Examination.grade_id == Grade.id)
        .join(Section, Examination.section_id == Section.id)
    )


def _result_response(row: Dict[str, Any]) -> ExamResultResponse:
    extra = {k: v for k, v in row.items() if k != "ExamResult"}
    return ExamResultResponse(**model_to_dict(row["ExamResult"]), **extra)


async def _fetch_result(db: AsyncSession, result_id: int) -> ExamResultResponse:
    row = (await db.execute(_result_query().where(ExamResult.id == result_id))).mappings().first()
    if not row:
        raise not_found("Exam result")
    return _result_response(dict(row))


async def add_exam_result(db: AsyncSession, payload: ExamResultCreate) -> ExamResultResponse:
    """
    Record one student's marks for an examination.

    Checks run in order: examination exists, student exists and is active,
    no result yet for the pair, marks within the examination's total.
    A missing grade is derived from the percentage.
    """
    exam = await get_or_404(db, Examination, payload.examination_id, "Examination")
    student = await db.execute(
        select(Student.id).where(Student.id == payload.student_id, Student.is_active.is_(True))
    )
    if not student.first():
        raise not_found("Student")
    existing = await db.execute(
        select(ExamResult.id).where(
            ExamResult.examination_id == payload.examination_id,
            ExamResult.student_id == payload.student_id,
        )
    )
    if existing.first():
        raise conflict("Exam result already exists for this student")
    if payload.marks_obtained > exam.total_marks:
        raise bad_request("Marks obtained cannot exceed total marks")

    grade = payload.grade.value if payload.grade else calculate_grade(payload.marks_obtained, exam.total_marks)
    result = ExamResult(
        examination_id=payload.examination_id,
        student_id=payload.student_id,
        marks_obtained=payload.marks_obtained,
        grade=grade,
        remarks=payload.remarks,
    )
    db.add(result)
    await commit_or_conflict(db, "Exam result already exists for this student")
    logger.info(
        "Recorded result for student %s in examination %s: %s (%s)",
        payload.student_id,
        payload.examination_id,
        payload.marks_obtained,
        grade,
    )
    return await _fetch_result(db, result.id)


async def update_exam_result(db: AsyncSession, result_id: int, payload: ExamResultUpdate) -> ExamResultResponse:
    result = await get_or_404(db, ExamResult, result_id, "Exam result")
    fields = payload.model_dump(exclude_unset=True)
    if payload.marks_obtained is not None:
        exam = await get_or_404(db, Examination, result.examination_id, "Examination")
        if payload.marks_obtained > exam.total_marks:
            raise bad_request("Marks obtained cannot exceed total marks")
        if "grade" not in fields:
            result.grade = calculate_grade(payload.marks_obtained, exam.total_marks)
    apply_updates(result, payload)
    await commit_or_conflict(db)
    return await _fetch_result(db, result_id)


async def list_exam_results(
    db: AsyncSession,
    params: ListParams,
    examination_id: Optional[int] = None,
    student_id: Optional[int] = None,
) -> Tuple[List[ExamResultResponse], int]:
    stmt = _result_query()
    if examination_id is not None:
        stmt = stmt.where(ExamResult.examination_id == examination_id)
    if student_id is not None:
        stmt = stmt.where(ExamResult.student_id == student_id)
    stmt = apply_search(
        stmt,
        params.search,
        [Student.first_name, Student.last_name, Student.student_id, Subject.name],
    )
    stmt = apply_sort(
        stmt,
        params,
        RESULT_SORT_FIELDS,
        [Examination.exam_date.desc(), Student.first_name, Student.last_name],
    )
    rows, total = await fetch_page(db, stmt, params)
    return [_result_response(r) for r in rows], total


async def get_exam_results_by_examination(db: AsyncSession, examination_id: int) -> List[ExamResultResponse]:
    stmt = (
        _result_query()
        .where(ExamResult.examination_id == examination_id)
        .order_by(Student.first_name, Student.last_name)
    )
    result = await db.execute(stmt)
    return [_result_response(dict(r)) for r in result.mappings().all()]


async def get_student_exam_results(
    db: AsyncSession,
    student_id: int,
    academic_year_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> List[ExamResultResponse]:
    stmt = _result_query().where(ExamResult.student_id == student_id)
    if academic_year_id is not None:
        stmt = stmt.where(Examination.academic_year_id == academic_year_id)
    if term_id is not None:
        stmt = stmt.where(Examination.term_id == term_id)
    stmt = stmt.order_by(Examination.exam_date.desc(), Subject.name)
    result = await db.execute(stmt)
    return [_result_response(dict(r)) for r in result.mappings().all()]


async def get_exam_stats(db: AsyncSession) -> ExamStats:
    row = (
        await db.execute(
            select(
                func.count(func.distinct(Examination.id)),
                func.count(func.distinct(ExamResult.id)),
                func.count(func.distinct(ExamResult.student_id)),
                func.avg(ExamResult.marks_obtained),
                func.count(case((ExamResult.marks_obtained >= Examination.passing_marks, 1))),
                func.count(case((ExamResult.marks_obtained < Examination.passing_marks, 1))),
            ).select_from(Examination).outerjoin(ExamResult, ExamResult.examination_id == Examination.id)
        )
    ).one()
    total_results = row[1] or 0
    passed = row[4] or 0
    return ExamStats(
        total_examinations=row[0] or 0,
        total_results=total_results,
        students_with_results=row[2] or 0,
        average_marks=round(float(row[3]), 2) if row[3] is not None else None,
        passed_count=passed,
        failed_count=row[5] or 0,
        pass_percentage=percentage(passed, total_results),
    )
