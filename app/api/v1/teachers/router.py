from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import admin_only, teacher_or_admin
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import (
    AssignClassRequest,
    AssignSubjectRequest,
    TeacherCreate,
    TeacherResponse,
    TeacherSectionItem,
    TeacherStats,
    TeacherSubjectItem,
    TeacherUpdate,
)
from . import service

router = APIRouter(prefix="/api/teachers", tags=["teachers"])


@router.post(
    "",
    response_model=ApiResponse[TeacherResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_teacher(
    payload: TeacherCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TeacherResponse]:
    try:
        teacher = await service.create_teacher(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Teacher created successfully", data=teacher)


@router.get(
    "",
    response_model=ApiResponse[List[TeacherResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_teachers(
    params: ListParams = Depends(),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[TeacherResponse]]:
    try:
        teachers, total = await service.list_teachers(db, params)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Teachers retrieved successfully",
        data=teachers,
        pagination=params.pagination(total),
    )


@router.get("/stats", response_model=ApiResponse[TeacherStats], dependencies=[Depends(admin_only)])
async def get_teacher_stats(db: AsyncSession = Depends(get_db)) -> ApiResponse[TeacherStats]:
    stats = await service.get_teacher_stats(db)
    return ApiResponse(message="Teacher statistics retrieved successfully", data=stats)


@router.get(
    "/employee-id/{employee_id}",
    response_model=ApiResponse[TeacherResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_teacher_by_employee_id(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TeacherResponse]:
    try:
        teacher = await service.get_teacher_by_employee_id(db, employee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Teacher retrieved successfully", data=teacher)


@router.get(
    "/{teacher_id}",
    response_model=ApiResponse[TeacherResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_teacher(
    teacher_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TeacherResponse]:
    try:
        teacher = await service.get_teacher(db, teacher_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Teacher retrieved successfully", data=teacher)


@router.put(
    "/{teacher_id}",
    response_model=ApiResponse[TeacherResponse],
    dependencies=[Depends(admin_only)],
)
async def update_teacher(
    teacher_id: int,
    payload: TeacherUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TeacherResponse]:
    try:
        teacher = await service.update_teacher(db, teacher_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Teacher updated successfully", data=teacher)


@router.delete("/{teacher_id}", response_model=MessageResponse, dependencies=[Depends(admin_only)])
async def delete_teacher(
    teacher_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_teacher(db, teacher_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Teacher deleted successfully")


@router.post(
    "/{teacher_id}/assign-subject",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def assign_teacher_to_subject(
    teacher_id: int,
    payload: AssignSubjectRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.assign_teacher_to_subject(db, teacher_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Teacher assigned to subject successfully")


@router.post(
    "/{teacher_id}/assign-class",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def assign_class_teacher(
    teacher_id: int,
    payload: AssignClassRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.assign_class_teacher(db, teacher_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Class teacher assigned successfully")


@router.get(
    "/{teacher_id}/subjects",
    response_model=ApiResponse[List[TeacherSubjectItem]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_teacher_subjects(
    teacher_id: int,
    academic_year_id: int = Query(..., alias="academicYearId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[TeacherSubjectItem]]:
    subjects = await service.get_teacher_subjects(db, teacher_id, academic_year_id)
    return ApiResponse(message="Teacher subjects retrieved successfully", data=subjects)


@router.get(
    "/{teacher_id}/sections",
    response_model=ApiResponse[List[TeacherSectionItem]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_teacher_sections(
    teacher_id: int,
    academic_year_id: int = Query(..., alias="academicYearId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[TeacherSectionItem]]:
    sections = await service.get_teacher_sections(db, teacher_id, academic_year_id)
    return ApiResponse(message="Teacher sections retrieved successfully", data=sections)
