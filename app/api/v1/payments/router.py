from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.parents.service import ensure_student_access
from app.auth.rbac import admin_only, parent_or_admin
from app.auth.schemas import CurrentUser
from app.core.enums import PaymentStatus
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import (
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    MonthlyPaymentRow,
    OutstandingPayment,
    PaymentCreate,
    PaymentResponse,
    PaymentStats,
    PaymentUpdate,
    StatusRefreshResult,
)
from . import service

router = APIRouter(prefix="/api/payments", tags=["payments"])


# ----- Fee structures -----
@router.post(
    "/fee-structures",
    response_model=ApiResponse[FeeStructureResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeStructureResponse]:
    try:
        fee = await service.create_fee_structure(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Fee structure created successfully", data=fee)


@router.get(
    "/fee-structures",
    response_model=ApiResponse[List[FeeStructureResponse]],
    dependencies=[Depends(admin_only)],
)
async def list_fee_structures(
    params: ListParams = Depends(),
    grade_id: Optional[int] = Query(None, alias="gradeId"),
    academic_year_id: Optional[int] = Query(None, alias="academicYearId"),
    term_id: Optional[int] = Query(None, alias="termId"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[FeeStructureResponse]]:
    try:
        fees, total = await service.list_fee_structures(db, params, grade_id, academic_year_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Fee structures retrieved successfully",
        data=fees,
        pagination=params.pagination(total),
    )


@router.get(
    "/fee-structures/{fee_structure_id}",
    response_model=ApiResponse[FeeStructureResponse],
    dependencies=[Depends(admin_only)],
)
async def get_fee_structure(
    fee_structure_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeStructureResponse]:
    try:
        fee = await service.get_fee_structure(db, fee_structure_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Fee structure retrieved successfully", data=fee)


@router.put(
    "/fee-structures/{fee_structure_id}",
    response_model=ApiResponse[FeeStructureResponse],
    dependencies=[Depends(admin_only)],
)
async def update_fee_structure(
    fee_structure_id: int,
    payload: FeeStructureUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[FeeStructureResponse]:
    try:
        fee = await service.update_fee_structure(db, fee_structure_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Fee structure updated successfully", data=fee)


@router.delete(
    "/fee-structures/{fee_structure_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_fee_structure(
    fee_structure_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_fee_structure(db, fee_structure_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Fee structure deleted successfully")


# ----- Payments -----
@router.post(
    "",
    response_model=ApiResponse[PaymentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
) -> ApiResponse[PaymentResponse]:
    """Record a payment; the admin making the call is stored as the receiver."""
    try:
        payment = await service.create_payment(db, payload, received_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Payment recorded successfully", data=payment)


@router.get(
    "",
    response_model=ApiResponse[List[PaymentResponse]],
    dependencies=[Depends(admin_only)],
)
async def list_payments(
    params: ListParams = Depends(),
    student_id: Optional[int] = Query(None, alias="studentId"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[PaymentResponse]]:
    try:
        payments, total = await service.list_payments(
            db, params, student_id, payment_status, start_date, end_date
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Payments retrieved successfully",
        data=payments,
        pagination=params.pagination(total),
    )


@router.get(
    "/stats",
    response_model=ApiResponse[PaymentStats],
    dependencies=[Depends(admin_only)],
)
async def get_payment_stats(db: AsyncSession = Depends(get_db)) -> ApiResponse[PaymentStats]:
    stats = await service.get_payment_stats(db)
    return ApiResponse(message="Payment statistics retrieved successfully", data=stats)


@router.get(
    "/outstanding",
    response_model=ApiResponse[List[OutstandingPayment]],
    dependencies=[Depends(admin_only)],
)
async def get_outstanding_payments(db: AsyncSession = Depends(get_db)) -> ApiResponse[List[OutstandingPayment]]:
    rows = await service.get_outstanding_payments(db)
    return ApiResponse(message="Outstanding payments retrieved successfully", data=rows)


@router.get(
    "/monthly/{year}/{month}",
    response_model=ApiResponse[List[MonthlyPaymentRow]],
    dependencies=[Depends(admin_only)],
)
async def get_monthly_payment_report(
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[MonthlyPaymentRow]]:
    try:
        rows = await service.get_monthly_payment_report(db, year, month)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Monthly payment report retrieved successfully", data=rows)


@router.post(
    "/refresh-status",
    response_model=ApiResponse[StatusRefreshResult],
    dependencies=[Depends(admin_only)],
)
async def refresh_payment_statuses(
    as_of: Optional[date] = Query(None, alias="asOf"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[StatusRefreshResult]:
    """Mark past-due partial payments Overdue. Meant for a scheduler."""
    result = await service.refresh_payment_statuses(db, as_of)
    return ApiResponse(message="Payment statuses refreshed successfully", data=result)


@router.get(
    "/students/{student_id}",
    response_model=ApiResponse[List[PaymentResponse]],
)
async def get_student_payments(
    student_id: int,
    academic_year_id: Optional[int] = Query(None, alias="academicYearId"),
    term_id: Optional[int] = Query(None, alias="termId"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(parent_or_admin),
) -> ApiResponse[List[PaymentResponse]]:
    """Parents see only the payments of students linked to them."""
    try:
        await ensure_student_access(db, current_user, student_id)
        payments = await service.get_student_payments(db, student_id, academic_year_id, term_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Student payments retrieved successfully", data=payments)


@router.get(
    "/{payment_id}",
    response_model=ApiResponse[PaymentResponse],
    dependencies=[Depends(admin_only)],
)
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[PaymentResponse]:
    try:
        payment = await service.get_payment(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Payment retrieved successfully", data=payment)


@router.put(
    "/{payment_id}",
    response_model=ApiResponse[PaymentResponse],
    dependencies=[Depends(admin_only)],
)
async def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[PaymentResponse]:
    try:
        payment = await service.update_payment(db, payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Payment updated successfully", data=payment)


@router.delete(
    "/{payment_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def delete_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_payment(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Payment deleted successfully")
