from app.core.models.academic_year import AcademicYear, Term
from app.core.models.attendance import Attendance
from app.core.models.enrollment import StudentSection, TeacherSection, TeacherSubject
from app.core.models.examination import ExamResult, ExamType, Examination
from app.core.models.fee_structure import FeeStructure, Payment
from app.core.models.grade import Grade, GradeSubject
from app.core.models.parent import Parent
from app.core.models.section_model import Section
from app.core.models.student import Student, StudentParent
from app.core.models.subject import Subject
from app.core.models.teacher import Teacher

__all__ = [
    "AcademicYear",
    "Attendance",
    "ExamResult",
    "ExamType",
    "Examination",
    "FeeStructure",
    "Grade",
    "GradeSubject",
    "Parent",
    "Payment",
    "Section",
    "Student",
    "StudentParent",
    "StudentSection",
    "Subject",
    "Teacher",
    "TeacherSection",
    "TeacherSubject",
    "Term",
]
