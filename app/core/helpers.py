"""Small pure helpers: receipt numbers, letter grades, percentages, page counts, month bounds."""

import calendar
import math
import secrets
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple, Union

Number = Union[int, float, Decimal]

# (minimum percentage, letter grade), checked top-down
GRADE_SCALE = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C+"),
    (40, "C"),
    (30, "D"),
)

GRADE_POINTS = {
    "A+": 4.0,
    "A": 4.0,
    "A-": 3.7,
    "B+": 3.3,
    "B": 3.0,
    "B-": 2.7,
    "C+": 2.3,
    "C": 2.0,
    "C-": 1.7,
    "D": 1.0,
    "F": 0.0,
}


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def generate_receipt_number(on: Optional[date] = None) -> str:
    """RCP-YYYY-MM-DD-NNNNNN. Callers must still check uniqueness against the DB."""
    on = on or datetime.utcnow().date()
    return f"RCP-{on.isoformat()}-{secrets.randbelow(1_000_000):06d}"


def percentage(part: Number, whole: Number) -> int:
    """Rounded whole-number percentage; 0 when whole is 0."""
    if not whole:
        return 0
    return round(float(part) / float(whole) * 100)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def calculate_grade(marks_obtained: Number, total_marks: Number) -> str:
    if not total_marks:
        return "F"
    pct = float(marks_obtained) / float(total_marks) * 100
    for threshold, letter in GRADE_SCALE:
        if pct >= threshold:
            return letter
    return "F"


def grade_points(letter: str) -> float:
    return GRADE_POINTS.get(letter, 0.0)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of the month (inclusive)."""
    if month < 1 or month > 12:
        raise ValueError("month must be between 1 and 12")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
