from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import FeeType, PaymentMethod, PaymentStatus


class FeeStructureCreate(BaseModel):
    grade_id: int = Field(..., ge=1)
    academic_year_id: int = Field(..., ge=1)
    term_id: int = Field(..., ge=1)
    fee_type: FeeType
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: date
    is_mandatory: bool = True
    description: Optional[str] = Field(None, max_length=500)


class FeeStructureUpdate(BaseModel):
    fee_type: Optional[FeeType] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    is_mandatory: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=500)


class FeeStructureResponse(BaseModel):
    id: int
    grade_id: int
    academic_year_id: int
    term_id: int
    fee_type: str
    amount: Decimal
    due_date: date
    is_mandatory: bool
    description: Optional[str] = None
    grade_name: Optional[str] = None
    academic_year: Optional[str] = None
    term_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PaymentCreate(BaseModel):
    student_id: int = Field(..., ge=1)
    fee_structure_id: int = Field(..., ge=1)
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    payment_date: date
    payment_method: PaymentMethod
    reference_number: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = Field(None, max_length=500)


class PaymentUpdate(BaseModel):
    """Manual correction of a payment; any status may be set here."""

    amount: Optional[Decimal] = Field(None, ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    status: Optional[PaymentStatus] = None
    remarks: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    id: int
    student_id: int
    fee_structure_id: int
    amount: Decimal
    payment_date: date
    payment_method: str
    reference_number: Optional[str] = None
    receipt_number: str
    status: str
    remarks: Optional[str] = None
    received_by: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    student_number: Optional[str] = None
    fee_type: Optional[str] = None
    fee_amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    fee_description: Optional[str] = None
    grade_name: Optional[str] = None
    section_name: Optional[str] = None
    academic_year: Optional[str] = None
    term_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PaymentStats(BaseModel):
    total_payments: int
    total_amount_collected: Decimal
    paid_count: int
    partial_count: int
    pending_count: int
    overdue_count: int
    students_with_payments: int
    collection_rate: int


class OutstandingPayment(BaseModel):
    student_id: int
    first_name: str
    last_name: str
    student_number: str
    fee_structure_id: int
    fee_type: str
    fee_amount: Decimal
    due_date: date
    paid_amount: Decimal
    outstanding_amount: Decimal
    grade_name: str
    section_name: str
    academic_year: str


class MonthlyPaymentRow(BaseModel):
    payment_date: date
    payment_count: int
    total_amount: Decimal
    unique_students: int
    cash_payments: int
    bank_transfers: int
    mobile_money_payments: int


class StatusRefreshResult(BaseModel):
    as_of: date
    marked_overdue: int
