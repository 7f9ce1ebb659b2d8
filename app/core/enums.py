from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"
    PARENT = "Parent"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class Relationship(str, Enum):
    FATHER = "Father"
    MOTHER = "Mother"
    GUARDIAN = "Guardian"
    OTHER = "Other"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    EXCUSED = "Excused"


class EnrollmentStatus(str, Enum):
    ACTIVE = "Active"
    TRANSFERRED = "Transferred"


class FeeType(str, Enum):
    TUITION = "Tuition"
    TRANSPORT = "Transport"
    LIBRARY = "Library"
    SPORTS = "Sports"
    EXAM = "Exam"
    OTHER = "Other"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHECK = "Check"
    MOBILE_MONEY = "Mobile Money"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PARTIAL = "Partial"
    PENDING = "Pending"
    OVERDUE = "Overdue"


class LetterGrade(str, Enum):
    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"
    C_PLUS = "C+"
    C = "C"
    C_MINUS = "C-"
    D = "D"
    F = "F"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"
