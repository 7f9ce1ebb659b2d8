from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import admin_only, teacher_or_admin
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

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
from . import service

router = APIRouter(prefix="/api/exams", tags=["exams"])


# ----- Exam types -----
@router.post(
    "/exam-types",
    response_model=ApiResponse[ExamTypeResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_exam_type(
    payload: ExamTypeCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ExamTypeResponse]:
    try:
        exam_type = await service.create_exam_type(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Exam type created successfully", data=exam_type)


@router.get(
    "/exam-types",
    response_model=ApiResponse[List[ExamTypeResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_exam_types(db: AsyncSession = Depends(get_db)) -> ApiResponse[List[ExamTypeResponse]]:
    exam_types = await service.list_exam_types(db)
    return ApiResponse(message="Exam types retrieved successfully", data=exam_types)


# ----- Examinations -----
@router.post(
    "/examinations",
    response_model=ApiResponse[ExaminationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_examination(
    payload: ExaminationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(teacher_or_admin),
) -> ApiResponse[ExaminationResponse]:
    """Schedule an examination; the caller is recorded as its creator."""
    try:
        exam = await service.create_examination(db, payload, created_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Examination created successfully", data=exam)


@router.get(
    "/examinations",
    response_model=ApiResponse[List[ExaminationResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_examinations(
    params: ListParams = Depends(),
    subject_id: Optional[int] = Query(None, alias="subjectId"),
    grade_id: Optional[int] = Query(None, alias="gradeId"),
    section_id: Optional[int] = Query(None, alias="sectionId"),
    academic_year_id: Optional[int] = Query(None, alias="academicYearId"),
    term_id: Optional[int] = Query(None, alias="termId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ExaminationResponse]]:
    try:
        exams, total = await service.list_examinations(
            db, params, subject_id, grade_id, section_id, academic_year_id, term_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Examinations retrieved successfully",
        data=exams,
        pagination=params.pagination(total),
    )


@router.get(
    "/examinations/upcoming",
    response_model=ApiResponse[List[ExaminationResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_upcoming_examinations(
    days: int = Query(7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ExaminationResponse]]:
    exams = await service.get_upcoming_examinations(db, days)
    return ApiResponse(message="Upcoming examinations retrieved successfully", data=exams)


@router.get(
    "/examinations/{examination_id}",
    response_model=ApiResponse[ExaminationResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_examination(
    examination_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ExaminationResponse]:
    try:
        exam = await service.get_examination(db, examination_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Examination retrieved successfully", data=exam)


@router.put(
    "/examinations/{examination_id}",
    response_model=ApiResponse[ExaminationResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def update_examination(
    examination_id: int,
    payload: ExaminationUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ExaminationResponse]:
    try:
        exam = await service.update_examination(db, examination_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Examination updated successfully", data=exam)


@router.delete(
    "/examinations/{examination_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_examination(
    examination_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_examination(db, examination_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Examination deleted successfully")


@router.get(
    "/examinations/{examination_id}/results",
    response_model=ApiResponse[List[ExamResultResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_exam_results_by_examination(
    examination_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ExamResultResponse]]:
    results = await service.get_exam_results_by_examination(db, examination_id)
    return ApiResponse(message="Exam results retrieved successfully", data=results)


# ----- Results -----
@router.post(
    "/results",
    response_model=ApiResponse[ExamResultResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(teacher_or_admin)],
)
async def add_exam_result(
    payload: ExamResultCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ExamResultResponse]:
    try:
        result = await service.add_exam_result(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Exam result added successfully", data=result)


@router.get(
    "/results",
    response_model=ApiResponse[List[ExamResultResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_exam_results(
    params: ListParams = Depends(),
    examination_id: Optional[int] = Query(None, alias="examinationId"),
    student_id: Optional[int] = Query(None, alias="studentId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ExamResultResponse]]:
    try:
        results, total = await service.list_exam_results(db, params, examination_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Exam results retrieved successfully",
        data=results,
        pagination=params.pagination(total),
    )


@router.put(
    "/results/{result_id}",
    response_model=ApiResponse[ExamResultResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def update_exam_result(
    result_id: int,
    payload: ExamResultUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ExamResultResponse]:
    try:
        result = await service.update_exam_result(db, result_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Exam result updated successfully", data=result)


@router.get(
    "/students/{student_id}/results",
    response_model=ApiResponse[List[ExamResultResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_student_exam_results(
    student_id: int,
    academic_year_id: Optional[int] = Query(None, alias="academicYearId"),
    term_id: Optional[int] = Query(None, alias="termId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ExamResultResponse]]:
    results = await service.get_student_exam_results(db, student_id, academic_year_id, term_id)
    return ApiResponse(message="Student exam results retrieved successfully", data=results)


@router.get(
    "/stats",
    response_model=ApiResponse[ExamStats],
    dependencies=[Depends(admin_only)],
)
async def get_exam_stats(db: AsyncSession = Depends(get_db)) -> ApiResponse[ExamStats]:
    stats = await service.get_exam_stats(db)
    return ApiResponse(message="Exam statistics retrieved successfully", data=stats)
