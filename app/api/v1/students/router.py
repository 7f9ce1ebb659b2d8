from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import admin_only, teacher_or_admin
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import (
    EnrollmentRequest,
    StudentCreate,
    StudentResponse,
    StudentStats,
    StudentUpdate,
    TransferRequest,
)
from . import service

router = APIRouter(prefix="/api/students", tags=["students"])


@router.post(
    "",
    response_model=ApiResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentResponse]:
    """Create a student login and profile. Admin only."""
    try:
        student = await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Student created successfully", data=student)


@router.get(
    "",
    response_model=ApiResponse[List[StudentResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_students(
    params: ListParams = Depends(),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[StudentResponse]]:
    try:
        students, total = await service.list_students(db, params)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Students retrieved successfully",
        data=students,
        pagination=params.pagination(total),
    )


@router.get(
    "/stats",
    response_model=ApiResponse[StudentStats],
    dependencies=[Depends(admin_only)],
)
async def get_student_stats(db: AsyncSession = Depends(get_db)) -> ApiResponse[StudentStats]:
    stats = await service.get_student_stats(db)
    return ApiResponse(message="Student statistics retrieved successfully", data=stats)


@router.get(
    "/section/{section_id}",
    response_model=ApiResponse[List[StudentResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_students_by_section(
    section_id: int,
    academic_year_id: int = Query(..., alias="academicYearId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[StudentResponse]]:
    students = await service.get_students_by_section(db, section_id, academic_year_id)
    return ApiResponse(message="Students retrieved successfully", data=students)


@router.get(
    "/grade/{grade_id}",
    response_model=ApiResponse[List[StudentResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_students_by_grade(
    grade_id: int,
    academic_year_id: int = Query(..., alias="academicYearId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[StudentResponse]]:
    students = await service.get_students_by_grade(db, grade_id, academic_year_id)
    return ApiResponse(message="Students retrieved successfully", data=students)


@router.get(
    "/student-id/{student_code}",
    response_model=ApiResponse[StudentResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_student_by_student_id(
    student_code: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentResponse]:
    try:
        student = await service.get_student_by_student_id(db, student_code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Student retrieved successfully", data=student)


@router.get(
    "/{student_id}",
    response_model=ApiResponse[StudentResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentResponse]:
    try:
        student = await service.get_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Student retrieved successfully", data=student)


@router.put(
    "/{student_id}",
    response_model=ApiResponse[StudentResponse],
    dependencies=[Depends(admin_only)],
)
async def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentResponse]:
    try:
        student = await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Student updated successfully", data=student)


@router.delete(
    "/{student_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Deactivate the student and their login."""
    try:
        await service.delete_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Student deleted successfully")


@router.post(
    "/{student_id}/enroll",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def enroll_student(
    student_id: int,
    payload: EnrollmentRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.enroll_student_in_section(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Student enrolled successfully")


@router.post(
    "/{student_id}/transfer",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def transfer_student(
    student_id: int,
    payload: TransferRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.transfer_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Student transferred successfully")
