"""Fee owed per grade / academic year / term, and payments made against it."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from app.db.session import Base


class FeeStructure(Base):
    __tablename__ = "fee_structures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    grade_id = Column(Integer, ForeignKey("grades.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year_id = Column(
        Integer, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    term_id = Column(Integer, ForeignKey("terms.id", ondelete="RESTRICT"), nullable=False)
    # Tuition, Transport, Library, Sports, Exam, Other
    fee_type = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    is_mandatory = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Payment(Base):
    """Payment against a fee structure. Supports partial payments; receipt_number is unique."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    fee_structure_id = Column(
        Integer, ForeignKey("fee_structures.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    # Cash, Bank Transfer, Check, Mobile Money, Other
    payment_method = Column(String(20), nullable=False)
    reference_number = Column(String(100), nullable=True)
    receipt_number = Column(String(50), nullable=False, unique=True)
    # Paid, Partial, Pending, Overdue
    status = Column(String(10), nullable=False)
    remarks = Column(Text, nullable=True)
    received_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
