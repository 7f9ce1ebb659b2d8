"""Attendance API router."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import admin_only, teacher_or_admin
from app.auth.schemas import CurrentUser
from app.core.enums import AttendanceStatus
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from . import service
from .schemas import (
    AttendanceBulkMark,
    AttendanceMark,
    AttendanceResponse,
    AttendanceStats,
    AttendanceUpdate,
    BulkMarkResult,
    DailyAttendanceRow,
    MonthlyAttendanceRow,
    SectionAttendanceSummary,
    StudentAttendanceSummary,
)

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@router.post(
    "/mark",
    response_model=ApiResponse[AttendanceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def mark_attendance(
    payload: AttendanceMark,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(teacher_or_admin),
) -> ApiResponse[AttendanceResponse]:
    try:
        record = await service.mark_attendance(db, payload, marked_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Attendance marked successfully", data=record)


@router.post(
    "/mark-bulk",
    response_model=ApiResponse[BulkMarkResult],
    status_code=status.HTTP_201_CREATED,
)
async def mark_bulk_attendance(
    payload: AttendanceBulkMark,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(teacher_or_admin),
) -> ApiResponse[BulkMarkResult]:
    """Records that fail (unknown student, already marked...) are listed under failed."""
    result = await service.mark_bulk_attendance(db, payload, marked_by=current_user.id)
    return ApiResponse(
        message=f"Attendance marked for {len(result.marked)} of {len(payload.records)} students",
        data=result,
    )


@router.get(
    "",
    response_model=ApiResponse[List[AttendanceResponse]],
    dependencies=[Depends(teacher_or_admin)],
)
async def list_attendance(
    params: ListParams = Depends(),
    student_id: Optional[int] = Query(None, alias="studentId"),
    section_id: Optional[int] = Query(None, alias="sectionId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    att_status: Optional[AttendanceStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[AttendanceResponse]]:
    try:
        records, total = await service.list_attendance(
            db, params, student_id, section_id, start_date, end_date, att_status
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Attendance records retrieved successfully",
        data=records,
        pagination=params.pagination(total),
    )


@router.get(
    "/stats",
    response_model=ApiResponse[AttendanceStats],
    dependencies=[Depends(admin_only)],
)
async def get_attendance_stats(db: AsyncSession = Depends(get_db)) -> ApiResponse[AttendanceStats]:
    stats = await service.get_attendance_stats(db)
    return ApiResponse(message="Attendance statistics retrieved successfully", data=stats)


@router.get(
    "/daily/{att_date}",
    response_model=ApiResponse[List[DailyAttendanceRow]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_daily_attendance_report(
    att_date: date,
    section_id: Optional[int] = Query(None, alias="sectionId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[DailyAttendanceRow]]:
    rows = await service.get_daily_attendance_report(db, att_date, section_id)
    return ApiResponse(message="Daily attendance report retrieved successfully", data=rows)


@router.get(
    "/monthly/{year}/{month}",
    response_model=ApiResponse[List[MonthlyAttendanceRow]],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_monthly_attendance_report(
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    section_id: Optional[int] = Query(None, alias="sectionId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[MonthlyAttendanceRow]]:
    try:
        rows = await service.get_monthly_attendance_report(db, year, month, section_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Monthly attendance report retrieved successfully", data=rows)


@router.get(
    "/student/{student_id}/summary",
    response_model=ApiResponse[StudentAttendanceSummary],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_student_attendance_summary(
    student_id: int,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StudentAttendanceSummary]:
    summary = await service.get_student_attendance_summary(db, student_id, start_date, end_date)
    return ApiResponse(message="Student attendance summary retrieved successfully", data=summary)


@router.get(
    "/section/{section_id}/summary",
    response_model=ApiResponse[SectionAttendanceSummary],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_section_attendance_summary(
    section_id: int,
    att_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[SectionAttendanceSummary]:
    summary = await service.get_section_attendance_summary(db, section_id, att_date)
    return ApiResponse(message="Section attendance summary retrieved successfully", data=summary)


@router.get(
    "/{attendance_id}",
    response_model=ApiResponse[AttendanceResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def get_attendance(
    attendance_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AttendanceResponse]:
    try:
        record = await service.get_attendance(db, attendance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Attendance record retrieved successfully", data=record)


@router.put(
    "/{attendance_id}",
    response_model=ApiResponse[AttendanceResponse],
    dependencies=[Depends(teacher_or_admin)],
)
async def update_attendance(
    attendance_id: int,
    payload: AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AttendanceResponse]:
    try:
        record = await service.update_attendance(db, attendance_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Attendance updated successfully", data=record)


@router.delete(
    "/{attendance_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_attendance(
    attendance_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_attendance(db, attendance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Attendance record deleted successfully")
