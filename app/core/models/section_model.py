"""Section (e.g. 5-A) of a grade for one academic year."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base

DEFAULT_SECTION_CAPACITY = 30


class Section(Base):
    __tablename__ = "sections"
    __table_args__ = (
        UniqueConstraint("grade_id", "academic_year_id", "name", name="uq_section_grade_year_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    grade_id = Column(Integer, ForeignKey("grades.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year_id = Column(
        Integer, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=DEFAULT_SECTION_CAPACITY)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    grade = relationship("Grade", back_populates="sections")
    academic_year = relationship("AcademicYear")
