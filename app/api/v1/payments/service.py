"""Fee structures, payments against them, and collection reporting."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import EnrollmentStatus, PaymentMethod, PaymentStatus
from app.core.exceptions import bad_request, conflict, not_found
from app.core.helpers import generate_receipt_number, month_bounds, percentage, to_decimal
from app.core.logging import get_logger
from app.core.models import (
    AcademicYear,
    FeeStructure,
    Grade,
    Payment,
    Section,
    Student,
    StudentSection,
    Term,
)
from app.core.pagination import ListParams, apply_search, apply_sort, fetch_page
from app.core.services import apply_updates, commit_or_conflict, get_or_404, model_to_dict, plain_values

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

logger = get_logger("payments")

RECEIPT_ATTEMPTS = 5

PAYMENT_SORT_FIELDS = {
    "amount": Payment.amount,
    "payment_date": Payment.payment_date,
    "receipt_number": Payment.receipt_number,
    "status": Payment.status,
    "created_at": Payment.created_at,
}

FEE_SORT_FIELDS = {
    "amount": FeeStructure.amount,
    "due_date": FeeStructure.due_date,
    "fee_type": FeeStructure.fee_type,
    "created_at": FeeStructure.created_at,
}


# --- Payments ---


def _payment_query():
    """Payment with student, fee and grade; section comes from the enrolment in the fee's year."""
    return (
        select(
            Payment,
            Student.first_name,
            Student.last_name,
            Student.student_id.label("student_number"),
            FeeStructure.fee_type,
            FeeStructure.amount.label("fee_amount"),
            FeeStructure.due_date,
            Grade.name.label("grade_name"),
            Section.name.label("section_name"),
        )
        .join(Student, Payment.student_id == Student.id)
        .join(FeeStructure, Payment.fee_structure_id == FeeStructure.id)
        .join(Grade, FeeStructure.grade_id == Grade.id)
        .outerjoin(
            StudentSection,
            and_(
                StudentSection.student_id == Student.id,
                StudentSection.academic_year_id == FeeStructure.academic_year_id,
                StudentSection.status == EnrollmentStatus.ACTIVE.value,
            ),
        )
        .outerjoin(Section, StudentSection.section_id == Section.id)
    )


def _payment_response(row: Dict[str, Any]) -> PaymentResponse:
    extra = {k: v for k, v in row.items() if k != "Payment"}
    return PaymentResponse(**model_to_dict(row["Payment"]), **extra)


async def _unique_receipt_number(db: AsyncSession, on: date) -> str:
    for _ in range(RECEIPT_ATTEMPTS):
        receipt = generate_receipt_number(on)
        taken = await db.execute(select(Payment.id).where(Payment.receipt_number == receipt))
        if not taken.first():
            return receipt
    raise conflict("Could not allocate a unique receipt number, please retry")


async def create_payment(
    db: AsyncSession, payload: PaymentCreate, received_by: Optional[int] = None
) -> PaymentResponse:
    """
    Record a payment against a fee structure.

    The amount may not exceed the fee amount. A payment covering the whole
    fee is Paid, anything less is Partial.
    """
    student = await db.execute(
        select(Student.id).where(Student.id == payload.student_id, Student.is_active.is_(True))
    )
    if not student.first():
        raise not_found("Student")
    fee = await get_or_404(db, FeeStructure, payload.fee_structure_id, "Fee structure")
    fee_amount = to_decimal(fee.amount)
    if payload.amount > fee_amount:
        raise bad_request("Payment amount cannot exceed fee amount")

    receipt_number = await _unique_receipt_number(db, payload.payment_date)
    payment_status = PaymentStatus.PAID if payload.amount == fee_amount else PaymentStatus.PARTIAL
    payment = Payment(
        **plain_values(payload.model_dump()),
        receipt_number=receipt_number,
        status=payment_status.value,
        received_by=received_by,
    )
    db.add(payment)
    await commit_or_conflict(db)
    logger.info(
        "Payment %s of %s for student %s (fee %s): %s",
        receipt_number,
        payload.amount,
        payload.student_id,
        payload.fee_structure_id,
        payment_status.value,
    )
    return await get_payment(db, payment.id)


async def list_payments(
    db: AsyncSession,
    params: ListParams,
    student_id: Optional[int] = None,
    payment_status: Optional[PaymentStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[List[PaymentResponse], int]:
    stmt = _payment_query()
    if student_id is not None:
        stmt = stmt.where(Payment.student_id == student_id)
    if payment_status is not None:
        stmt = stmt.where(Payment.status == payment_status.value)
    if start_date is not None:
        stmt = stmt.where(Payment.payment_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Payment.payment_date <= end_date)
    stmt = apply_search(
        stmt,
        params.search,
        [Student.first_name, Student.last_name, Student.student_id, Payment.receipt_number],
    )
    stmt = apply_sort(
        stmt,
        params,
        PAYMENT_SORT_FIELDS,
        [Payment.payment_date.desc(), Student.first_name, Student.last_name],
    )
    rows, total = await fetch_page(db, stmt, params)
    return [_payment_response(r) for r in rows], total


async def get_payment(db: AsyncSession, payment_id: int) -> PaymentResponse:
    row = (await db.execute(_payment_query().where(Payment.id == payment_id))).mappings().first()
    if not row:
        raise not_found("Payment")
    return _payment_response(dict(row))


async def update_payment(db: AsyncSession, payment_id: int, payload: PaymentUpdate) -> PaymentResponse:
    """
    Patch a payment. A new amount without an explicit status re-derives
    Paid / Partial against the fee amount, as at creation.
    """
    payment = await get_or_404(db, Payment, payment_id, "Payment")
    derived_status = None
    if payload.amount is not None:
        fee = await get_or_404(db, FeeStructure, payment.fee_structure_id, "Fee structure")
        fee_amount = to_decimal(fee.amount)
        if payload.amount > fee_amount:
            raise bad_request("Payment amount cannot exceed fee amount")
        if "status" not in payload.model_fields_set:
            derived_status = PaymentStatus.PAID if payload.amount == fee_amount else PaymentStatus.PARTIAL
    apply_updates(payment, payload)
    if derived_status is not None:
        payment.status = derived_status.value
    await commit_or_conflict(db)
    return await get_payment(db, payment_id)


async def delete_payment(db: AsyncSession, payment_id: int) -> None:
    payment = await get_or_404(db, Payment, payment_id, "Payment")
    await db.delete(payment)
    await db.commit()
    logger.info("Deleted payment id=%s (%s)", payment_id, payment.receipt_number)


async def get_student_payments(
    db: AsyncSession,
    student_id: int,
    academic_year_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> List[PaymentResponse]:
    stmt = (
        select(
            Payment,
            FeeStructure.fee_type,
            FeeStructure.amount.label("fee_amount"),
            FeeStructure.due_date,
            FeeStructure.description.label("fee_description"),
            AcademicYear.year.label("academic_year"),
            Term.name.label("term_name"),
        )
        .join(FeeStructure, Payment.fee_structure_id == FeeStructure.id)
        .join(AcademicYear, FeeStructure.academic_year_id == AcademicYear.id)
        .join(Term, FeeStructure.term_id == Term.id)
        .where(Payment.student_id == student_id)
    )
    if academic_year_id is not None:
        stmt = stmt.where(FeeStructure.academic_year_id == academic_year_id)
    if term_id is not None:
        stmt = stmt.where(FeeStructure.term_id == term_id)
    result = await db.execute(stmt.order_by(Payment.payment_date.desc(), Payment.id.desc()))
    return [_payment_response(dict(r)) for r in result.mappings().all()]


async def get_payment_stats(db: AsyncSession) -> PaymentStats:
    def count_status(value: PaymentStatus):
        return func.count(case((Payment.status == value.value, 1)))

    row = (
        await db.execute(
            select(
                func.count(Payment.id),
                func.sum(Payment.amount),
                count_status(PaymentStatus.PAID),
                count_status(PaymentStatus.PARTIAL),
                count_status(PaymentStatus.PENDING),
                count_status(PaymentStatus.OVERDUE),
                func.count(func.distinct(Payment.student_id)),
            )
        )
    ).one()
    total = row[0] or 0
    return PaymentStats(
        total_payments=total,
        total_amount_collected=to_decimal(row[1]),
        paid_count=row[2],
        partial_count=row[3],
        pending_count=row[4],
        overdue_count=row[5],
        students_with_payments=row[6],
        collection_rate=percentage(row[2], total),
    )


async def get_outstanding_payments(db: AsyncSession) -> List[OutstandingPayment]:
    """
    What each actively enrolled student still owes per fee structure of their
    section's grade and academic year. Fully paid fees are left out.
    """
    paid = func.coalesce(func.sum(Payment.amount), 0)
    outstanding = FeeStructure.amount - paid
    stmt = (
        select(
            Student.id.label("student_id"),
            Student.first_name,
            Student.last_name,
            Student.student_id.label("student_number"),
            FeeStructure.id.label("fee_structure_id"),
            FeeStructure.fee_type,
            FeeStructure.amount.label("fee_amount"),
            FeeStructure.due_date,
            paid.label("paid_amount"),
            outstanding.label("outstanding_amount"),
            Grade.name.label("grade_name"),
            Section.name.label("section_name"),
            AcademicYear.year.label("academic_year"),
        )
        .select_from(Student)
        .join(
            StudentSection,
            and_(
                StudentSection.student_id == Student.id,
                StudentSection.status == EnrollmentStatus.ACTIVE.value,
            ),
        )
        .join(Section, StudentSection.section_id == Section.id)
        .join(Grade, Section.grade_id == Grade.id)
        .join(
            FeeStructure,
            and_(
                FeeStructure.grade_id == Grade.id,
                FeeStructure.academic_year_id == StudentSection.academic_year_id,
            ),
        )
        .join(AcademicYear, FeeStructure.academic_year_id == AcademicYear.id)
        .outerjoin(
            Payment,
            and_(Payment.student_id == Student.id, Payment.fee_structure_id == FeeStructure.id),
        )
        .where(Student.is_active.is_(True))
        .group_by(Student.id, FeeStructure.id, Grade.id, Section.id, AcademicYear.id)
        .having(outstanding > 0)
        .order_by(outstanding.desc(), Student.first_name, Student.last_name)
    )
    result = await db.execute(stmt)
    return [OutstandingPayment(**r) for r in result.mappings().all()]


async def get_monthly_payment_report(db: AsyncSession, year: int, month: int) -> List[MonthlyPaymentRow]:
    try:
        first_day, last_day = month_bounds(year, month)
    except ValueError as e:
        raise bad_request(str(e)) from e

    def count_method(method: PaymentMethod):
        return func.count(case((Payment.payment_method == method.value, 1)))

    stmt = (
        select(
            Payment.payment_date,
            func.count(Payment.id).label("payment_count"),
            func.sum(Payment.amount).label("total_amount"),
            func.count(func.distinct(Payment.student_id)).label("unique_students"),
            count_method(PaymentMethod.CASH).label("cash_payments"),
            count_method(PaymentMethod.BANK_TRANSFER).label("bank_transfers"),
            count_method(PaymentMethod.MOBILE_MONEY).label("mobile_money_payments"),
        )
        .where(Payment.payment_date >= first_day, Payment.payment_date <= last_day)
        .group_by(Payment.payment_date)
        .order_by(Payment.payment_date)
    )
    result = await db.execute(stmt)
    return [MonthlyPaymentRow(**r) for r in result.mappings().all()]


async def refresh_payment_statuses(db: AsyncSession, as_of: Optional[date] = None) -> StatusRefreshResult:
    """
    Mark Partial payments Overdue once the fee's due date has passed and the
    student's cumulative payments for that fee are still short of the amount.
    """
    as_of = as_of or date.today()
    totals = (
        select(
            Payment.student_id.label("student_id"),
            Payment.fee_structure_id.label("fee_structure_id"),
            func.sum(Payment.amount).label("paid"),
        )
        .group_by(Payment.student_id, Payment.fee_structure_id)
        .subquery()
    )
    stmt = (
        select(Payment.id)
        .join(FeeStructure, Payment.fee_structure_id == FeeStructure.id)
        .join(
            totals,
            and_(
                totals.c.student_id == Payment.student_id,
                totals.c.fee_structure_id == Payment.fee_structure_id,
            ),
        )
        .where(
            Payment.status == PaymentStatus.PARTIAL.value,
            FeeStructure.due_date < as_of,
            totals.c.paid < FeeStructure.amount,
        )
    )
    ids = list((await db.execute(stmt)).scalars().all())
    if ids:
        await db.execute(
            update(Payment)
            .where(Payment.id.in_(ids))
            .values(status=PaymentStatus.OVERDUE.value, updated_at=datetime.utcnow())
        )
        await db.commit()
    logger.info("Payment status refresh as of %s: %d marked overdue", as_of, len(ids))
    return StatusRefreshResult(as_of=as_of, marked_overdue=len(ids))


# --- Fee structures ---


def _fee_structure_query():
    return (
        select(
            FeeStructure,
            Grade.name.label("grade_name"),
            AcademicYear.year.label("academic_year"),
            Term.name.label("term_name"),
        )
        .join(Grade, FeeStructure.grade_id == Grade.id)
        .join(AcademicYear, FeeStructure.academic_year_id == AcademicYear.id)
        .join(Term, FeeStructure.term_id == Term.id)
    )


def _fee_structure_response(row: Dict[str, Any]) -> FeeStructureResponse:
    extra = {k: v for k, v in row.items() if k != "FeeStructure"}
    return FeeStructureResponse(**model_to_dict(row["FeeStructure"]), **extra)


async def create_fee_structure(db: AsyncSession, payload: FeeStructureCreate) -> FeeStructureResponse:
    await get_or_404(db, Grade, payload.grade_id, "Grade")
    await get_or_404(db, AcademicYear, payload.academic_year_id, "Academic year")
    term = await get_or_404(db, Term, payload.term_id, "Term")
    if term.academic_year_id != payload.academic_year_id:
        raise bad_request("Term does not belong to the given academic year")

    fee = FeeStructure(**plain_values(payload.model_dump()))
    db.add(fee)
    await commit_or_conflict(db)
    logger.info("Created %s fee structure id=%s for grade %s", fee.fee_type, fee.id, fee.grade_id)
    return await get_fee_structure(db, fee.id)


async def list_fee_structures(
    db: AsyncSession,
    params: ListParams,
    grade_id: Optional[int] = None,
    academic_year_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> Tuple[List[FeeStructureResponse], int]:
    stmt = _fee_structure_query()
    if grade_id is not None:
        stmt = stmt.where(FeeStructure.grade_id == grade_id)
    if academic_year_id is not None:
        stmt = stmt.where(FeeStructure.academic_year_id == academic_year_id)
    if term_id is not None:
        stmt = stmt.where(FeeStructure.term_id == term_id)
    stmt = apply_search(stmt, params.search, [FeeStructure.fee_type, Grade.name])
    stmt = apply_sort(stmt, params, FEE_SORT_FIELDS, [Grade.level, FeeStructure.fee_type])
    rows, total = await fetch_page(db, stmt, params)
    return [_fee_structure_response(r) for r in rows], total


async def get_fee_structure(db: AsyncSession, fee_structure_id: int) -> FeeStructureResponse:
    result = await db.execute(_fee_structure_query().where(FeeStructure.id == fee_structure_id))
    row = result.mappings().first()
    if not row:
        raise not_found("Fee structure")
    return _fee_structure_response(dict(row))


async def update_fee_structure(
    db: AsyncSession, fee_structure_id: int, payload: FeeStructureUpdate
) -> FeeStructureResponse:
    fee = await get_or_404(db, FeeStructure, fee_structure_id, "Fee structure")
    apply_updates(fee, payload)
    await commit_or_conflict(db)
    return await get_fee_structure(db, fee_structure_id)


async def delete_fee_structure(db: AsyncSession, fee_structure_id: int) -> None:
    fee = await get_or_404(db, FeeStructure, fee_structure_id, "Fee structure")
    has_payments = await db.execute(
        select(Payment.id).where(Payment.fee_structure_id == fee_structure_id).limit(1)
    )
    if has_payments.first():
        raise conflict("Cannot delete fee structure. Fee structure has payments.")
    await db.delete(fee)
    await db.commit()
    logger.info("Deleted fee structure id=%s", fee_structure_id)
