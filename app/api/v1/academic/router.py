from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import admin_only, teacher_or_admin
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

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
from . import service

router = APIRouter(prefix="/api/academic", tags=["academic"])


# ----- Grades -----
@router.post(
    "/grades",
    response_model=ApiResponse[GradeResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_grade(
    payload: GradeCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[GradeResponse]:
    try:
        grade = await service.create_grade(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Grade created successfully", data=grade)


@router.get(
    "/grades",
    response_model=ApiResponse[List[GradeResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_grades(db: AsyncSession = Depends(get_db)) -> ApiResponse[List[GradeResponse]]:
    """All grades ordered by level. Not paginated."""
    grades = await service.list_grades(db)
    return ApiResponse(message="Grades retrieved successfully", data=grades)


@router.get(
    "/grades/{grade_id}",
    response_model=ApiResponse[GradeResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_grade(
    grade_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[GradeResponse]:
    try:
        grade = await service.get_grade(db, grade_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Grade retrieved successfully", data=grade)


@router.put(
    "/grades/{grade_id}",
    response_model=ApiResponse[GradeResponse],
    dependencies=[Depends(admin_only)],
)
async def update_grade(
    grade_id: int,
    payload: GradeUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[GradeResponse]:
    try:
        grade = await service.update_grade(db, grade_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Grade updated successfully", data=grade)


@router.delete(
    "/grades/{grade_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_grade(
    grade_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_grade(db, grade_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Grade deleted successfully")


@router.get(
    "/grades/{grade_id}/subjects",
    response_model=ApiResponse[List[GradeSubjectResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_subjects_by_grade(
    grade_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[GradeSubjectResponse]]:
    subjects = await service.get_subjects_by_grade(db, grade_id)
    return ApiResponse(message="Grade subjects retrieved successfully", data=subjects)


# ----- Sections -----
@router.post(
    "/sections",
    response_model=ApiResponse[SectionResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_section(
    payload: SectionCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionResponse]:
    try:
        section = await service.create_section(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Section created successfully", data=section)


@router.get(
    "/sections",
    response_model=ApiResponse[List[SectionResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_sections(
    params: ListParams = Depends(),
    grade_id: Optional[int] = Query(None, alias="gradeId"),
    academic_year_id: Optional[int] = Query(None, alias="academicYearId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[SectionResponse]]:
    try:
        sections, total = await service.list_sections(db, params, grade_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Sections retrieved successfully",
        data=sections,
        pagination=params.pagination(total),
    )


@router.get(
    "/sections/{section_id}",
    response_model=ApiResponse[SectionResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_section(
    section_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionResponse]:
    try:
        section = await service.get_section(db, section_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Section retrieved successfully", data=section)


@router.put(
    "/sections/{section_id}",
    response_model=ApiResponse[SectionResponse],
    dependencies=[Depends(admin_only)],
)
async def update_section(
    section_id: int,
    payload: SectionUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionResponse]:
    try:
        section = await service.update_section(db, section_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Section updated successfully", data=section)


@router.delete(
    "/sections/{section_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_section(
    section_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_section(db, section_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Section deleted successfully")


# ----- Subjects -----
@router.post(
    "/subjects",
    response_model=ApiResponse[SubjectResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SubjectResponse]:
    try:
        subject = await service.create_subject(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Subject created successfully", data=subject)


@router.post(
    "/subjects/assign-grade",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def assign_subject_to_grade(
    payload: GradeSubjectAssign,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.assign_subject_to_grade(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Subject assigned to grade successfully")


@router.get(
    "/subjects",
    response_model=ApiResponse[List[SubjectResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_subjects(
    params: ListParams = Depends(),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[SubjectResponse]]:
    try:
        subjects, total = await service.list_subjects(db, params)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Subjects retrieved successfully",
        data=subjects,
        pagination=params.pagination(total),
    )


@router.get(
    "/subjects/{subject_id}",
    response_model=ApiResponse[SubjectResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_subject(
    subject_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SubjectResponse]:
    try:
        subject = await service.get_subject(db, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Subject retrieved successfully", data=subject)


@router.put(
    "/subjects/{subject_id}",
    response_model=ApiResponse[SubjectResponse],
    dependencies=[Depends(admin_only)],
)
async def update_subject(
    subject_id: int,
    payload: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SubjectResponse]:
    try:
        subject = await service.update_subject(db, subject_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Subject updated successfully", data=subject)


@router.delete(
    "/subjects/{subject_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_subject(
    subject_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_subject(db, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Subject deleted successfully")


# ----- Academic years -----
@router.post(
    "/academic-years",
    response_model=ApiResponse[AcademicYearResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_academic_year(
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AcademicYearResponse]:
    try:
        ay = await service.create_academic_year(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Academic year created successfully", data=ay)


@router.get(
    "/academic-years",
    response_model=ApiResponse[List[AcademicYearResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_academic_years(db: AsyncSession = Depends(get_db)) -> ApiResponse[List[AcademicYearResponse]]:
    years = await service.list_academic_years(db)
    return ApiResponse(message="Academic years retrieved successfully", data=years)


@router.get(
    "/academic-years/current",
    response_model=ApiResponse[AcademicYearResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_current_academic_year(db: AsyncSession = Depends(get_db)) -> ApiResponse[AcademicYearResponse]:
    try:
        ay = await service.get_current_academic_year(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Current academic year retrieved successfully", data=ay)


@router.put(
    "/academic-years/{academic_year_id}/set-current",
    response_model=ApiResponse[AcademicYearResponse],
    dependencies=[Depends(admin_only)],
)
async def set_current_academic_year(
    academic_year_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AcademicYearResponse]:
    try:
        ay = await service.set_current_academic_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Current academic year updated successfully", data=ay)


@router.get(
    "/academic-years/{academic_year_id}/terms",
    response_model=ApiResponse[List[TermResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_terms_by_academic_year(
    academic_year_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[TermResponse]]:
    terms = await service.get_terms_by_academic_year(db, academic_year_id)
    return ApiResponse(message="Terms retrieved successfully", data=terms)


# ----- Terms -----
@router.post(
    "/terms",
    response_model=ApiResponse[TermResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_term(
    payload: TermCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TermResponse]:
    try:
        term = await service.create_term(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Term created successfully", data=term)


@router.get(
    "/terms/current",
    response_model=ApiResponse[TermResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_current_term(db: AsyncSession = Depends(get_db)) -> ApiResponse[TermResponse]:
    try:
        term = await service.get_current_term(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Current term retrieved successfully", data=term)


@router.put(
    "/terms/{term_id}/set-current",
    response_model=ApiResponse[TermResponse],
    dependencies=[Depends(admin_only)],
)
async def set_current_term(
    term_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TermResponse]:
    try:
        term = await service.set_current_term(db, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Current term updated successfully", data=term)
