from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import status
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.accounts import add_user, deactivate_user, ensure_email_available
from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.enums import Relationship, UserRole
from app.core.exceptions import ServiceError, conflict, not_found
from app.core.logging import get_logger
from app.core.models import Parent, Student, StudentParent
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict, plain_values

from .schemas import (
    LinkedParent,
    LinkedStudent,
    LinkStudentRequest,
    ParentCreate,
    ParentProfileBase,
    ParentResponse,
    ParentStats,
    ParentUpdate,
)

logger = get_logger("parents")

SORT_FIELDS = {
    "first_name": Parent.first_name,
    "last_name": Parent.last_name,
    "created_at": Parent.created_at,
}


def _to_response(
    parent: Parent, is_active: Optional[bool] = None, last_login: Optional[datetime] = None
) -> ParentResponse:
    return ParentResponse(**model_to_dict(parent), is_active=is_active, last_login=last_login)


def _parent_with_user():
    return select(Parent, User.is_active, User.last_login).join(User, Parent.user_id == User.id)


async def ensure_parent_access(db: AsyncSession, current_user: CurrentUser, parent_id: int) -> None:
    """Parents may only reach their own record; admins reach any."""
    if current_user.role != UserRole.PARENT.value:
        return
    own = await db.execute(
        select(Parent.id).where(Parent.id == parent_id, Parent.user_id == current_user.id)
    )
    if not own.first():
        raise ServiceError("Access denied", status.HTTP_403_FORBIDDEN)


async def ensure_student_access(db: AsyncSession, current_user: CurrentUser, student_id: int) -> None:
    """Parents may only reach students linked to them."""
    if current_user.role != UserRole.PARENT.value:
        return
    linked = await db.execute(
        select(StudentParent.id)
        .join(Parent, StudentParent.parent_id == Parent.id)
        .where(StudentParent.student_id == student_id, Parent.user_id == current_user.id)
    )
    if not linked.first():
        raise ServiceError("Access denied", status.HTTP_403_FORBIDDEN)


async def add_parent_record(
    db: AsyncSession, profile: ParentProfileBase, email: str, password: str
) -> Parent:
    """Insert the Parent user and profile (flushed, not committed)."""
    await ensure_email_available(db, email)
    user = await add_user(db, email, password, UserRole.PARENT)
    fields = plain_values(profile.model_dump(include=set(ParentProfileBase.model_fields)))
    parent = Parent(user_id=user.id, email=user.email, **fields)
    db.add(parent)
    await db.flush()
    return parent


async def create_parent(db: AsyncSession, payload: ParentCreate) -> ParentResponse:
    if payload.student_id is not None:
        student = await db.execute(
            select(Student.id).where(Student.id == payload.student_id, Student.is_active.is_(True))
        )
        if not student.first():
            raise not_found("Student")

    parent = await add_parent_record(db, payload, payload.email, payload.password)
    if payload.student_id is not None:
        if payload.is_primary:
            await _unset_primary(db, payload.student_id)
        db.add(
            StudentParent(
                student_id=payload.student_id,
                parent_id=parent.id,
                relationship=payload.relationship.value,
                is_primary=payload.is_primary,
            )
        )
    await commit_or_conflict(db)
    logger.info("Created parent id=%s", parent.id)
    return await get_parent(db, parent.id)


async def list_parents(db: AsyncSession, params: ListParams) -> Tuple[List[ParentResponse], int]:
    stmt = _parent_with_user().where(Parent.is_primary.is_(True))
    stmt = apply_search(
        stmt, params.search, [Parent.first_name, Parent.last_name, Parent.phone, Parent.email]
    )
    stmt = apply_sort(stmt, params, SORT_FIELDS, [Parent.created_at.desc(), Parent.id.desc()])
    rows, total = await fetch_page(db, stmt, params)
    return [_to_response(r["Parent"], r["is_active"], r["last_login"]) for r in rows], total


async def get_parent(db: AsyncSession, parent_id: int) -> ParentResponse:
    row = (await db.execute(_parent_with_user().where(Parent.id == parent_id))).first()
    if not row:
        raise not_found("Parent")
    return _to_response(row[0], row[1], row[2])


async def update_parent(db: AsyncSession, parent_id: int, payload: ParentUpdate) -> ParentResponse:
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    apply_updates(parent, payload)
    await commit_or_conflict(db)
    return await get_parent(db, parent_id)


async def delete_parent(db: AsyncSession, parent_id: int) -> None:
    """Delete the parent profile and deactivate the login. Refused while students are linked."""
    parent = await get_or_404(db, Parent, parent_id, "Parent")
    linked = await db.execute(select(StudentParent.id).where(StudentParent.parent_id == parent_id))
    if linked.first():
        raise conflict("Cannot delete parent. Parent has students linked.")
    user_id = parent.user_id
    await db.delete(parent)
    await deactivate_user(db, user_id)
    await db.commit()
    logger.info("Deleted parent id=%s", parent_id)


async def _unset_primary(db: AsyncSession, student_id: int) -> None:
    await db.execute(
        update(StudentParent).where(StudentParent.student_id == student_id).values(is_primary=False)
    )


async def link_parent_to_student(db: AsyncSession, parent_id: int, payload: LinkStudentRequest) -> None:
    """Link in one transaction; a new primary parent demotes the student's other parents."""
    await get_or_404(db, Parent, parent_id, "Parent")
    student = await db.execute(
        select(Student.id).where(Student.id == payload.student_id, Student.is_active.is_(True))
    )
    if not student.first():
        raise not_found("Student")
    existing = await db.execute(
        select(StudentParent.id).where(
            StudentParent.parent_id == parent_id,
            StudentParent.student_id == payload.student_id,
        )
    )
    if existing.first():
        raise conflict("Parent is already linked to this student")
    if payload.is_primary:
        await _unset_primary(db, payload.student_id)
    db.add(
        StudentParent(
            student_id=payload.student_id,
            parent_id=parent_id,
            relationship=payload.relationship.value,
            is_primary=payload.is_primary,
        )
    )
    await commit_or_conflict(db)


async def unlink_parent_from_student(db: AsyncSession, parent_id: int, student_id: int) -> None:
    result = await db.execute(
        select(StudentParent).where(
            StudentParent.parent_id == parent_id,
            StudentParent.student_id == student_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise ServiceError("Parent is not linked to this student", status.HTTP_404_NOT_FOUND)
    await db.delete(link)
    await db.commit()


async def get_parent_students(db: AsyncSession, parent_id: int) -> List[LinkedStudent]:
    result = await db.execute(
        select(
            Student.id,
            Student.student_id,
            Student.first_name,
            Student.last_name,
            Student.admission_number,
            User.email.label("student_email"),
            StudentParent.relationship,
            StudentParent.is_primary,
        )
        .join(StudentParent, StudentParent.student_id == Student.id)
        .join(User, Student.user_id == User.id)
        .where(StudentParent.parent_id == parent_id, Student.is_active.is_(True))
        .order_by(Student.first_name, Student.last_name)
    )
    return [LinkedStudent(**r) for r in result.mappings().all()]


async def get_student_parents(db: AsyncSession, student_id: int) -> List[LinkedParent]:
    result = await db.execute(
        select(
            Parent.id,
            Parent.first_name,
            Parent.last_name,
            Parent.phone,
            User.email.label("parent_email"),
            StudentParent.relationship,
            StudentParent.is_primary,
        )
        .join(StudentParent, StudentParent.parent_id == Parent.id)
        .join(User, Parent.user_id == User.id)
        .where(StudentParent.student_id == student_id)
        .order_by(StudentParent.is_primary.desc(), Parent.first_name, Parent.last_name)
    )
    return [LinkedParent(**r) for r in result.mappings().all()]


async def get_parent_stats(db: AsyncSession) -> ParentStats:
    row = (
        await db.execute(
            select(
                func.count(Parent.id),
                func.count(case((Parent.relationship == Relationship.FATHER.value, 1))),
                func.count(case((Parent.relationship == Relationship.MOTHER.value, 1))),
                func.count(case((Parent.relationship == Relationship.GUARDIAN.value, 1))),
                func.count(case((Parent.is_primary.is_(True), 1))),
            )
        )
    ).one()
    return ParentStats(
        total_parents=row[0],
        fathers=row[1],
        mothers=row[2],
        guardians=row[3],
        primary_parents=row[4],
    )
