"""Academic configuration: grades, sections, subjects, academic years and terms."""

from datetime import date, datetime
from typing import List, Optional, Tuple

from fastapi import status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatus
from app.core.exceptions import ServiceError, conflict, not_found
from app.core.logging import get_logger
from app.core.models import AcademicYear, Grade, GradeSubject, Section, StudentSection, Subject, Term
from app.core.models.section_model import DEFAULT_SECTION_CAPACITY
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict

from .schemas import (
    AcademicYearCreate,
    AcademicYearResponse,
    GradeCreate,
    GradeResponse,
    GradeSubjectAssign,
    GradeSubjectResponse,
    GradeUpdate,
    SectionCreate,
    SectionResponse,
    SectionUpdate,
    SubjectCreate,
    SubjectResponse,
    SubjectUpdate,
    TermCreate,
    TermResponse,
)

logger = get_logger("academic")

SECTION_SORT_FIELDS = {
    "name": Section.name,
    "capacity": Section.capacity,
    "grade_level": Grade.level,
    "created_at": Section.created_at,
}

SUBJECT_SORT_FIELDS = {
    "name": Subject.name,
    "code": Subject.code,
    "created_at": Subject.created_at,
}


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ServiceError("end_date must be after start_date", status.HTTP_400_BAD_REQUEST)


# --- Grades ---


async def _ensure_grade_unique(
    db: AsyncSession,
    name: Optional[str] = None,
    level: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> None:
    if name is not None:
        stmt = select(Grade.id).where(Grade.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Grade.id != exclude_id)
        if (await db.execute(stmt)).first():
            raise conflict("Grade name already exists")
    if level is not None:
        stmt = select(Grade.id).where(Grade.level == level)
        if exclude_id is not None:
            stmt = stmt.where(Grade.id != exclude_id)
        if (await db.execute(stmt)).first():
            raise conflict("Grade level already exists")


async def create_grade(db: AsyncSession, payload: GradeCreate) -> GradeResponse:
    """Name and level must both be unique; a duplicate leaves the table untouched."""
    name = payload.name.strip()
    await _ensure_grade_unique(db, name=name, level=payload.level)
    grade = Grade(name=name, level=payload.level, description=payload.description)
    db.add(grade)
    await commit_or_conflict(db, "Grade name or level already exists")
    await db.refresh(grade)
    logger.info("Created grade %s (id=%s)", grade.name, grade.id)
    return GradeResponse.model_validate(grade)


async def list_grades(db: AsyncSession) -> List[GradeResponse]:
    result = await db.execute(select(Grade).order_by(Grade.level))
    return [GradeResponse.model_validate(g) for g in result.scalars().all()]


async def get_grade(db: AsyncSession, grade_id: int) -> GradeResponse:
    grade = await get_or_404(db, Grade, grade_id, "Grade")
    return GradeResponse.model_validate(grade)


async def update_grade(db: AsyncSession, grade_id: int, payload: GradeUpdate) -> GradeResponse:
    grade = await get_or_404(db, Grade, grade_id, "Grade")
    if payload.name is not None:
        payload.name = payload.name.strip()
    await _ensure_grade_unique(db, name=payload.name, level=payload.level, exclude_id=grade_id)
    apply_updates(grade, payload)
    await commit_or_conflict(db, "Grade name or level already exists")
    await db.refresh(grade)
    return GradeResponse.model_validate(grade)


async def delete_grade(db: AsyncSession, grade_id: int) -> None:
    grade = await get_or_404(db, Grade, grade_id, "Grade")
    has_sections = await db.execute(select(Section.id).where(Section.grade_id == grade_id).limit(1))
    if has_sections.first():
        raise conflict("Cannot delete grade. Grade has sections.")
    await db.delete(grade)
    await commit_or_conflict(db, "Cannot delete grade. Grade is referenced by other records.")
    logger.info("Deleted grade id=%s", grade_id)


# --- Sections ---


def _section_query():
    student_count = (
        select(func.count(StudentSection.id))
        .where(
            StudentSection.section_id == Section.id,
            StudentSection.status == EnrollmentStatus.ACTIVE.value,
        )
        .correlate(Section)
        .scalar_subquery()
    )
    return (
        select(
            Section,
            Grade.name.label("grade_name"),
            Grade.level.label("grade_level"),
            AcademicYear.year.label("academic_year"),
            student_count.label("student_count"),
        )
        .join(Grade, Section.grade_id == Grade.id)
        .join(AcademicYear, Section.academic_year_id == AcademicYear.id)
    )


def _section_response(section: Section, **extra) -> SectionResponse:
    return SectionResponse(**model_to_dict(section), **extra)


async def _ensure_section_name_free(
    db: AsyncSession, grade_id: int, academic_year_id: int, name: str, exclude_id: Optional[int] = None
) -> None:
    stmt = select(Section.id).where(
        Section.grade_id == grade_id,
        Section.academic_year_id == academic_year_id,
        Section.name == name,
    )
    if exclude_id is not None:
        stmt = stmt.where(Section.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise conflict("Section name already exists for this grade and academic year")


async def create_section(db: AsyncSession, payload: SectionCreate) -> SectionResponse:
    await get_or_404(db, Grade, payload.grade_id, "Grade")
    await get_or_404(db, AcademicYear, payload.academic_year_id, "Academic year")
    name = payload.name.strip()
    await _ensure_section_name_free(db, payload.grade_id, payload.academic_year_id, name)
    section = Section(
        grade_id=payload.grade_id,
        academic_year_id=payload.academic_year_id,
        name=name,
        capacity=payload.capacity or DEFAULT_SECTION_CAPACITY,
    )
    db.add(section)
    await commit_or_conflict(db, "Section name already exists for this grade and academic year")
    logger.info("Created section %s (id=%s) for grade %s", section.name, section.id, section.grade_id)
    return await get_section(db, section.id)


async def list_sections(
    db: AsyncSession,
    params: ListParams,
    grade_id: Optional[int] = None,
    academic_year_id: Optional[int] = None,
) -> Tuple[List[SectionResponse], int]:
    stmt = _section_query()
    if grade_id is not None:
        stmt = stmt.where(Section.grade_id == grade_id)
    if academic_year_id is not None:
        stmt = stmt.where(Section.academic_year_id == academic_year_id)
    stmt = apply_search(stmt, params.search, [Section.name, Grade.name])
    stmt = apply_sort(stmt, params, SECTION_SORT_FIELDS, [Grade.level, Section.name])
    rows, total = await fetch_page(db, stmt, params)
    items = [
        _section_response(
            r["Section"],
            grade_name=r["grade_name"],
            grade_level=r["grade_level"],
            academic_year=r["academic_year"],
            student_count=r["student_count"],
        )
        for r in rows
    ]
    return items, total


async def get_section(db: AsyncSession, section_id: int) -> SectionResponse:
    row = (await db.execute(_section_query().where(Section.id == section_id))).first()
    if not row:
        raise not_found("Section")
    return _section_response(
        row[0], grade_name=row[1], grade_level=row[2], academic_year=row[3], student_count=row[4]
    )


async def update_section(db: AsyncSession, section_id: int, payload: SectionUpdate) -> SectionResponse:
    section = await get_or_404(db, Section, section_id, "Section")
    if payload.name is not None:
        payload.name = payload.name.strip()
        await _ensure_section_name_free(
            db, section.grade_id, section.academic_year_id, payload.name, exclude_id=section_id
        )
    apply_updates(section, payload)
    await commit_or_conflict(db, "Section name already exists for this grade and academic year")
    return await get_section(db, section_id)


async def delete_section(db: AsyncSession, section_id: int) -> None:
    section = await get_or_404(db, Section, section_id, "Section")
    has_students = await db.execute(
        select(StudentSection.id).where(StudentSection.section_id == section_id).limit(1)
    )
    if has_students.first():
        raise conflict("Cannot delete section. Section has students.")
    await db.delete(section)
    await commit_or_conflict(db, "Cannot delete section. Section is referenced by other records.")
    logger.info("Deleted section id=%s", section_id)


# --- Subjects ---


async def _ensure_subject_code_free(db: AsyncSession, code: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(Subject.id).where(Subject.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Subject.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise conflict("Subject code already exists")


async def create_subject(db: AsyncSession, payload: SubjectCreate) -> SubjectResponse:
    code = payload.code.strip().upper()
    await _ensure_subject_code_free(db, code)
    subject = Subject(
        name=payload.name.strip(),
        code=code,
        description=payload.description,
        is_core=payload.is_core,
    )
    db.add(subject)
    await commit_or_conflict(db, "Subject code already exists")
    await db.refresh(subject)
    logger.info("Created subject %s (id=%s)", subject.code, subject.id)
    return SubjectResponse.model_validate(subject)


async def list_subjects(db: AsyncSession, params: ListParams) -> Tuple[List[SubjectResponse], int]:
    stmt = apply_search(select(Subject), params.search, [Subject.name, Subject.code])
    stmt = apply_sort(stmt, params, SUBJECT_SORT_FIELDS, [Subject.name])
    subjects, total = await fetch_page(db, stmt, params, scalars=True)
    return [SubjectResponse.model_validate(s) for s in subjects], total


async def get_subject(db: AsyncSession, subject_id: int) -> SubjectResponse:
    subject = await get_or_404(db, Subject, subject_id, "Subject")
    return SubjectResponse.model_validate(subject)


async def update_subject(db: AsyncSession, subject_id: int, payload: SubjectUpdate) -> SubjectResponse:
    subject = await get_or_404(db, Subject, subject_id, "Subject")
    if payload.code is not None:
        payload.code = payload.code.strip().upper()
        await _ensure_subject_code_free(db, payload.code, exclude_id=subject_id)
    apply_updates(subject, payload)
    await commit_or_conflict(db, "Subject code already exists")
    await db.refresh(subject)
    return SubjectResponse.model_validate(subject)


async def delete_subject(db: AsyncSession, subject_id: int) -> None:
    subject = await get_or_404(db, Subject, subject_id, "Subject")
    assigned = await db.execute(
        select(GradeSubject.id).where(GradeSubject.subject_id == subject_id).limit(1)
    )
    if assigned.first():
        raise conflict("Cannot delete subject. Subject is assigned to grades.")
    await db.delete(subject)
    await commit_or_conflict(db, "Cannot delete subject. Subject is referenced by other records.")
    logger.info("Deleted subject id=%s", subject_id)


async def assign_subject_to_grade(db: AsyncSession, payload: GradeSubjectAssign) -> None:
    await get_or_404(db, Grade, payload.grade_id, "Grade")
    await get_or_404(db, Subject, payload.subject_id, "Subject")
    existing = await db.execute(
        select(GradeSubject.id).where(
            GradeSubject.grade_id == payload.grade_id,
            GradeSubject.subject_id == payload.subject_id,
        )
    )
    if existing.first():
        raise conflict("Subject is already assigned to this grade")
    db.add(
        GradeSubject(
            grade_id=payload.grade_id,
            subject_id=payload.subject_id,
            is_compulsory=payload.is_compulsory,
        )
    )
    await commit_or_conflict(db, "Subject is already assigned to this grade")


async def get_subjects_by_grade(db: AsyncSession, grade_id: int) -> List[GradeSubjectResponse]:
    await get_or_404(db, Grade, grade_id, "Grade")
    result = await db.execute(
        select(Subject, GradeSubject.is_compulsory)
        .join(GradeSubject, GradeSubject.subject_id == Subject.id)
        .where(GradeSubject.grade_id == grade_id)
        .order_by(Subject.name)
    )
    return [
        GradeSubjectResponse(**model_to_dict(subject), is_compulsory=is_compulsory)
        for subject, is_compulsory in result.all()
    ]


# --- Academic years ---


async def create_academic_year(db: AsyncSession, payload: AcademicYearCreate) -> AcademicYearResponse:
    """New years start non-current; use set_current_academic_year to switch."""
    _validate_dates(payload.start_date, payload.end_date)
    existing = await db.execute(select(AcademicYear.id).where(AcademicYear.year == payload.year))
    if existing.first():
        raise conflict("Academic year already exists")
    ay = AcademicYear(
        year=payload.year,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_current=False,
    )
    db.add(ay)
    await commit_or_conflict(db, "Academic year already exists")
    await db.refresh(ay)
    logger.info("Created academic year %s (id=%s)", ay.year, ay.id)
    return AcademicYearResponse.model_validate(ay)


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    result = await db.execute(select(AcademicYear).order_by(AcademicYear.year.desc()))
    return [AcademicYearResponse.model_validate(ay) for ay in result.scalars().all()]


async def get_current_academic_year(db: AsyncSession) -> AcademicYearResponse:
    result = await db.execute(select(AcademicYear).where(AcademicYear.is_current.is_(True)))
    ay = result.scalars().first()
    if not ay:
        raise ServiceError("No current academic year found", status.HTTP_404_NOT_FOUND)
    return AcademicYearResponse.model_validate(ay)


async def set_current_academic_year(db: AsyncSession, academic_year_id: int) -> AcademicYearResponse:
    """Flip is_current for every year in one transaction so exactly one row ends up current."""
    ay = await get_or_404(db, AcademicYear, academic_year_id, "Academic year")
    now = datetime.utcnow()
    await db.execute(
        update(AcademicYear)
        .where(AcademicYear.id != academic_year_id, AcademicYear.is_current.is_(True))
        .values(is_current=False, updated_at=now)
    )
    await db.execute(
        update(AcademicYear).where(AcademicYear.id == academic_year_id).values(is_current=True, updated_at=now)
    )
    await db.commit()
    await db.refresh(ay)
    logger.info("Academic year %s is now current", ay.year)
    return AcademicYearResponse.model_validate(ay)


# --- Terms ---


async def create_term(db: AsyncSession, payload: TermCreate) -> TermResponse:
    _validate_dates(payload.start_date, payload.end_date)
    await get_or_404(db, AcademicYear, payload.academic_year_id, "Academic year")
    name = payload.name.strip()
    existing = await db.execute(
        select(Term.id).where(Term.academic_year_id == payload.academic_year_id, Term.name == name)
    )
    if existing.first():
        raise conflict("Term name already exists for this academic year")
    term = Term(
        academic_year_id=payload.academic_year_id,
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_current=False,
    )
    db.add(term)
    await commit_or_conflict(db, "Term name already exists for this academic year")
    await db.refresh(term)
    logger.info("Created term %s (id=%s)", term.name, term.id)
    return TermResponse.model_validate(term)


async def get_terms_by_academic_year(db: AsyncSession, academic_year_id: int) -> List[TermResponse]:
    result = await db.execute(
        select(Term).where(Term.academic_year_id == academic_year_id).order_by(Term.start_date)
    )
    return [TermResponse.model_validate(t) for t in result.scalars().all()]


async def get_current_term(db: AsyncSession) -> TermResponse:
    result = await db.execute(select(Term).where(Term.is_current.is_(True)))
    term = result.scalars().first()
    if not term:
        raise ServiceError("No current term found", status.HTTP_404_NOT_FOUND)
    return TermResponse.model_validate(term)


async def set_current_term(db: AsyncSession, term_id: int) -> TermResponse:
    """Flip is_current for every term in one transaction so exactly one row ends up current."""
    term = await get_or_404(db, Term, term_id, "Term")
    now = datetime.utcnow()
    await db.execute(
        update(Term)
        .where(Term.id != term_id, Term.is_current.is_(True))
        .values(is_current=False, updated_at=now)
    )
    await db.execute(update(Term).where(Term.id == term_id).values(is_current=True, updated_at=now))
    await db.commit()
    await db.refresh(term)
    logger.info("Term id=%s is now current", term_id)
    return TermResponse.model_validate(term)
