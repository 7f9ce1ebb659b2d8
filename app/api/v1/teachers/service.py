from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.accounts import add_user, deactivate_user, ensure_email_available
from app.auth.models import User
from app.core.enums import Gender, UserRole
from app.core.exceptions import conflict, not_found
from app.core.logging import get_logger
from app.core.models import Grade, Section, Subject, Teacher, TeacherSection, TeacherSubject
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict, plain_values

from .schemas import (
    AssignClassRequest,
    AssignSubjectRequest,
    TeacherCreate,
    TeacherProfileBase,
    TeacherResponse,
    TeacherSectionItem,
    TeacherStats,
    TeacherSubjectItem,
    TeacherUpdate,
)

logger = get_logger("teachers")

SORT_FIELDS = {
    "first_name": Teacher.first_name,
    "last_name": Teacher.last_name,
    "employee_id": Teacher.employee_id,
    "hire_date": Teacher.hire_date,
    "created_at": Teacher.created_at,
}


def _to_response(teacher: Teacher, email: Optional[str] = None, last_login: Optional[datetime] = None) -> TeacherResponse:
    return TeacherResponse(**model_to_dict(teacher), email=email, last_login=last_login)


def _teacher_with_user():
    return select(Teacher, User.email, User.last_login).join(User, Teacher.user_id == User.id)


async def get_active_teacher(db: AsyncSession, teacher_id: int) -> Teacher:
    result = await db.execute(
        select(Teacher).where(Teacher.id == teacher_id, Teacher.is_active.is_(True))
    )
    teacher = result.scalar_one_or_none()
    if not teacher:
        raise not_found("Teacher")
    return teacher


async def add_teacher_record(
    db: AsyncSession, profile: TeacherProfileBase, email: str, password: str
) -> Teacher:
    """Check unique keys, then insert the Teacher user and profile (flushed, not committed)."""
    if (await db.execute(select(Teacher.id).where(Teacher.employee_id == profile.employee_id))).first():
        raise conflict("Employee ID already exists")
    await ensure_email_available(db, email)

    user = await add_user(db, email, password, UserRole.TEACHER)
    fields = plain_values(profile.model_dump(include=set(TeacherProfileBase.model_fields)))
    teacher = Teacher(user_id=user.id, is_active=True, **fields)
    db.add(teacher)
    await db.flush()
    return teacher


async def create_teacher(db: AsyncSession, payload: TeacherCreate) -> TeacherResponse:
    teacher = await add_teacher_record(db, payload, payload.email, payload.password)
    await commit_or_conflict(db)
    logger.info("Created teacher %s (id=%s)", teacher.employee_id, teacher.id)
    return await get_teacher(db, teacher.id)


async def list_teachers(db: AsyncSession, params: ListParams) -> Tuple[List[TeacherResponse], int]:
    stmt = _teacher_with_user().where(Teacher.is_active.is_(True))
    stmt = apply_search(
        stmt,
        params.search,
        [Teacher.first_name, Teacher.last_name, Teacher.employee_id, Teacher.specialization],
    )
    stmt = apply_sort(stmt, params, SORT_FIELDS, [Teacher.created_at.desc(), Teacher.id.desc()])
    rows, total = await fetch_page(db, stmt, params)
    return [_to_response(r["Teacher"], r["email"], r["last_login"]) for r in rows], total


async def get_teacher(db: AsyncSession, teacher_id: int) -> TeacherResponse:
    row = (
        await db.execute(_teacher_with_user().where(Teacher.id == teacher_id, Teacher.is_active.is_(True)))
    ).first()
    if not row:
        raise not_found("Teacher")
    return _to_response(row[0], row[1], row[2])


async def get_teacher_by_employee_id(db: AsyncSession, employee_id: str) -> TeacherResponse:
    row = (
        await db.execute(
            _teacher_with_user().where(Teacher.employee_id == employee_id, Teacher.is_active.is_(True))
        )
    ).first()
    if not row:
        raise not_found("Teacher")
    return _to_response(row[0], row[1], row[2])


async def update_teacher(db: AsyncSession, teacher_id: int, payload: TeacherUpdate) -> TeacherResponse:
    teacher = await get_active_teacher(db, teacher_id)
    apply_updates(teacher, payload)
    await commit_or_conflict(db)
    return await get_teacher(db, teacher_id)


async def delete_teacher(db: AsyncSession, teacher_id: int) -> None:
    """Soft delete: teacher and login deactivated, assignments kept for history."""
    teacher = await get_active_teacher(db, teacher_id)
    teacher.is_active = False
    teacher.updated_at = datetime.utcnow()
    await deactivate_user(db, teacher.user_id)
    await db.commit()
    logger.info("Deactivated teacher id=%s", teacher_id)


async def assign_teacher_to_subject(db: AsyncSession, teacher_id: int, payload: AssignSubjectRequest) -> None:
    await get_active_teacher(db, teacher_id)
    await get_or_404(db, Subject, payload.subject_id, "Subject")
    await get_or_404(db, Grade, payload.grade_id, "Grade")
    existing = await db.execute(
        select(TeacherSubject.id).where(
            TeacherSubject.teacher_id == teacher_id,
            TeacherSubject.subject_id == payload.subject_id,
            TeacherSubject.grade_id == payload.grade_id,
            TeacherSubject.academic_year_id == payload.academic_year_id,
        )
    )
    if existing.first():
        raise conflict("Teacher is already assigned to this subject for this grade and academic year")
    db.add(
        TeacherSubject(
            teacher_id=teacher_id,
            subject_id=payload.subject_id,
            grade_id=payload.grade_id,
            academic_year_id=payload.academic_year_id,
        )
    )
    await commit_or_conflict(db)


async def assign_class_teacher(db: AsyncSession, teacher_id: int, payload: AssignClassRequest) -> None:
    await get_active_teacher(db, teacher_id)
    await get_or_404(db, Section, payload.section_id, "Section")
    existing = await db.execute(
        select(TeacherSection.id).where(
            TeacherSection.teacher_id == teacher_id,
            TeacherSection.section_id == payload.section_id,
            TeacherSection.academic_year_id == payload.academic_year_id,
        )
    )
    if existing.first():
        raise conflict("Teacher is already assigned to this section for this academic year")
    db.add(
        TeacherSection(
            teacher_id=teacher_id,
            section_id=payload.section_id,
            academic_year_id=payload.academic_year_id,
            is_class_teacher=True,
        )
    )
    await commit_or_conflict(db)


async def get_teacher_subjects(db: AsyncSession, teacher_id: int, academic_year_id: int) -> List[TeacherSubjectItem]:
    result = await db.execute(
        select(
            Subject.id.label("subject_id"),
            Subject.name.label("subject_name"),
            Subject.code,
            Grade.id.label("grade_id"),
            Grade.name.label("grade_name"),
            Grade.level,
        )
        .select_from(TeacherSubject)
        .join(Subject, TeacherSubject.subject_id == Subject.id)
        .join(Grade, TeacherSubject.grade_id == Grade.id)
        .where(TeacherSubject.teacher_id == teacher_id, TeacherSubject.academic_year_id == academic_year_id)
        .order_by(Grade.level, Subject.name)
    )
    return [TeacherSubjectItem(**r) for r in result.mappings().all()]


async def get_teacher_sections(db: AsyncSession, teacher_id: int, academic_year_id: int) -> List[TeacherSectionItem]:
    result = await db.execute(
        select(
            Section.id.label("section_id"),
            Section.name.label("section_name"),
            Grade.name.label("grade_name"),
            Grade.level,
            TeacherSection.is_class_teacher,
        )
        .select_from(TeacherSection)
        .join(Section, TeacherSection.section_id == Section.id)
        .join(Grade, Section.grade_id == Grade.id)
        .where(TeacherSection.teacher_id == teacher_id, TeacherSection.academic_year_id == academic_year_id)
        .order_by(Grade.level, Section.name)
    )
    return [TeacherSectionItem(**r) for r in result.mappings().all()]


async def get_teacher_stats(db: AsyncSession) -> TeacherStats:
    row = (
        await db.execute(
            select(
                func.count(Teacher.id),
                func.count(case((Teacher.gender == Gender.MALE.value, 1))),
                func.count(case((Teacher.gender == Gender.FEMALE.value, 1))),
                func.count(case((Teacher.is_active.is_(True), 1))),
                func.count(case((Teacher.is_active.is_(False), 1))),
            )
        )
    ).one()
    return TeacherStats(
        total_teachers=row[0],
        male_teachers=row[1],
        female_teachers=row[2],
        active_teachers=row[3],
        inactive_teachers=row[4],
    )
