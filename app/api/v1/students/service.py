from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.accounts import add_user, deactivate_user, ensure_email_available
from app.auth.models import User
from app.core.enums import EnrollmentStatus, Gender, Relationship, UserRole
from app.core.exceptions import conflict, not_found
from app.core.logging import get_logger
from app.core.models import Grade, Parent, Section, Student, StudentParent, StudentSection
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict, plain_values

from .schemas import (
    EnrollmentRequest,
    StudentCreate,
    StudentProfileBase,
    StudentResponse,
    StudentStats,
    StudentUpdate,
    TransferRequest,
)

logger = get_logger("students")

SORT_FIELDS = {
    "first_name": Student.first_name,
    "last_name": Student.last_name,
    "student_id": Student.student_id,
    "admission_number": Student.admission_number,
    "admission_date": Student.admission_date,
    "created_at": Student.created_at,
}


def _to_response(
    student: Student,
    email: Optional[str] = None,
    last_login: Optional[datetime] = None,
    section_name: Optional[str] = None,
) -> StudentResponse:
    return StudentResponse(
        **model_to_dict(student),
        email=email,
        last_login=last_login,
        section_name=section_name,
    )


def _student_with_user():
    return select(Student, User.email, User.last_login).join(User, Student.user_id == User.id)


async def get_active_student(db: AsyncSession, student_id: int) -> Student:
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.is_active.is_(True))
    )
    student = result.scalar_one_or_none()
    if not student:
        raise not_found("Student")
    return student


async def add_student_record(
    db: AsyncSession, profile: StudentProfileBase, email: str, password: str
) -> Student:
    """Check unique keys, then insert the Student user and profile (flushed, not committed)."""
    if (await db.execute(select(Student.id).where(Student.student_id == profile.student_id))).first():
        raise conflict("Student ID already exists")
    if (
        await db.execute(select(Student.id).where(Student.admission_number == profile.admission_number))
    ).first():
        raise conflict("Admission number already exists")
    await ensure_email_available(db, email)

    user = await add_user(db, email, password, UserRole.STUDENT)
    fields = plain_values(profile.model_dump(include=set(StudentProfileBase.model_fields)))
    student = Student(user_id=user.id, is_active=True, **fields)
    db.add(student)
    await db.flush()
    return student


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    """Create the user account and student profile in one transaction; optionally link a parent."""
    if payload.parent_id is not None:
        await get_or_404(db, Parent, payload.parent_id, "Parent")

    student = await add_student_record(db, payload, payload.email, payload.password)
    if payload.parent_id is not None:
        db.add(
            StudentParent(
                student_id=student.id,
                parent_id=payload.parent_id,
                relationship=Relationship.GUARDIAN.value,
                is_primary=True,
            )
        )
    await commit_or_conflict(db)
    logger.info("Created student %s (id=%s)", student.student_id, student.id)
    return await get_student(db, student.id)


async def list_students(db: AsyncSession, params: ListParams) -> Tuple[List[StudentResponse], int]:
    stmt = _student_with_user().where(Student.is_active.is_(True))
    stmt = apply_search(
        stmt,
        params.search,
        [Student.first_name, Student.last_name, Student.student_id, Student.admission_number],
    )
    stmt = apply_sort(stmt, params, SORT_FIELDS, [Student.created_at.desc(), Student.id.desc()])
    rows, total = await fetch_page(db, stmt, params)
    return [_to_response(r["Student"], r["email"], r["last_login"]) for r in rows], total


async def get_student(db: AsyncSession, student_id: int) -> StudentResponse:
    result = await db.execute(
        _student_with_user().where(Student.id == student_id, Student.is_active.is_(True))
    )
    row = result.first()
    if not row:
        raise not_found("Student")
    return _to_response(row[0], row[1], row[2])


async def get_student_by_student_id(db: AsyncSession, code: str) -> StudentResponse:
    result = await db.execute(
        _student_with_user().where(Student.student_id == code, Student.is_active.is_(True))
    )
    row = result.first()
    if not row:
        raise not_found("Student")
    return _to_response(row[0], row[1], row[2])


async def update_student(db: AsyncSession, student_id: int, payload: StudentUpdate) -> StudentResponse:
    student = await get_active_student(db, student_id)
    if payload.admission_number is not None:
        other = await db.execute(
            select(Student.id).where(
                Student.admission_number == payload.admission_number,
                Student.id != student_id,
            )
        )
        if other.first():
            raise conflict("Admission number already exists")
    apply_updates(student, payload)
    await commit_or_conflict(db)
    return await get_student(db, student_id)


async def delete_student(db: AsyncSession, student_id: int) -> None:
    """Soft delete: the student and their login are deactivated, history is kept."""
    student = await get_active_student(db, student_id)
    student.is_active = False
    student.updated_at = datetime.utcnow()
    await deactivate_user(db, student.user_id)
    await db.commit()
    logger.info("Deactivated student id=%s", student_id)


async def get_students_by_section(
    db: AsyncSession, section_id: int, academic_year_id: int
) -> List[StudentResponse]:
    stmt = (
        _student_with_user()
        .join(StudentSection, StudentSection.student_id == Student.id)
        .where(
            StudentSection.section_id == section_id,
            StudentSection.academic_year_id == academic_year_id,
            StudentSection.status == EnrollmentStatus.ACTIVE.value,
            Student.is_active.is_(True),
        )
        .order_by(Student.first_name, Student.last_name)
    )
    result = await db.execute(stmt)
    return [_to_response(r[0], r[1], r[2]) for r in result.all()]


async def get_students_by_grade(
    db: AsyncSession, grade_id: int, academic_year_id: int
) -> List[StudentResponse]:
    stmt = (
        select(Student, User.email, User.last_login, Section.name)
        .join(User, Student.user_id == User.id)
        .join(StudentSection, StudentSection.student_id == Student.id)
        .join(Section, StudentSection.section_id == Section.id)
        .where(
            Section.grade_id == grade_id,
            StudentSection.academic_year_id == academic_year_id,
            StudentSection.status == EnrollmentStatus.ACTIVE.value,
            Student.is_active.is_(True),
        )
        .order_by(Section.name, Student.first_name, Student.last_name)
    )
    result = await db.execute(stmt)
    return [_to_response(r[0], r[1], r[2], section_name=r[3]) for r in result.all()]


async def enroll_student_in_section(db: AsyncSession, student_id: int, payload: EnrollmentRequest) -> None:
    await get_active_student(db, student_id)
    await get_or_404(db, Section, payload.section_id, "Section")
    existing = await db.execute(
        select(StudentSection.id).where(
            StudentSection.student_id == student_id,
            StudentSection.academic_year_id == payload.academic_year_id,
        )
    )
    if existing.first():
        raise conflict("Student is already enrolled for this academic year")
    db.add(
        StudentSection(
            student_id=student_id,
            section_id=payload.section_id,
            academic_year_id=payload.academic_year_id,
            enrollment_date=payload.enrollment_date or date.today(),
            status=EnrollmentStatus.ACTIVE.value,
        )
    )
    await commit_or_conflict(db)
    logger.info("Enrolled student %s in section %s", student_id, payload.section_id)


async def transfer_student(db: AsyncSession, student_id: int, payload: TransferRequest) -> None:
    """Close the current enrolment (Transferred) and open an Active one in the new section."""
    await get_active_student(db, student_id)
    await get_or_404(db, Section, payload.new_section_id, "Section")
    await db.execute(
        update(StudentSection)
        .where(
            StudentSection.student_id == student_id,
            StudentSection.academic_year_id == payload.academic_year_id,
        )
        .values(status=EnrollmentStatus.TRANSFERRED.value, updated_at=datetime.utcnow())
    )
    db.add(
        StudentSection(
            student_id=student_id,
            section_id=payload.new_section_id,
            academic_year_id=payload.academic_year_id,
            enrollment_date=date.today(),
            status=EnrollmentStatus.ACTIVE.value,
        )
    )
    await commit_or_conflict(db)
    logger.info("Transferred student %s to section %s", student_id, payload.new_section_id)


async def get_student_stats(db: AsyncSession) -> StudentStats:
    row = (
        await db.execute(
            select(
                func.count(Student.id),
                func.count(case((Student.gender == Gender.MALE.value, 1))),
                func.count(case((Student.gender == Gender.FEMALE.value, 1))),
                func.count(case((Student.is_active.is_(True), 1))),
                func.count(case((Student.is_active.is_(False), 1))),
            )
        )
    ).one()
    by_grade = await db.execute(
        select(Grade.name, func.count(func.distinct(StudentSection.student_id)))
        .join(Section, Section.grade_id == Grade.id)
        .join(StudentSection, StudentSection.section_id == Section.id)
        .join(Student, Student.id == StudentSection.student_id)
        .where(StudentSection.status == EnrollmentStatus.ACTIVE.value, Student.is_active.is_(True))
        .group_by(Grade.name, Grade.level)
        .order_by(Grade.level)
    )
    return StudentStats(
        total_students=row[0],
        male_students=row[1],
        female_students=row[2],
        active_students=row[3],
        inactive_students=row[4],
        students_by_grade={name: count for name, count in by_grade.all()},
    )
