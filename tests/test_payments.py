import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Payment
from tests.helpers import bearer, parent_payload

RECEIPT_PATTERN = re.compile(r"^RCP-\d{4}-\d{2}-\d{2}-\d{6}$")


def _payment(student_id: int, fee_structure_id: int, amount: str, **extra) -> dict:
    payload = {
        "student_id": student_id,
        "fee_structure_id": fee_structure_id,
        "amount": amount,
        "payment_date": date.today().isoformat(),
        "payment_method": "Cash",
    }
    payload.update(extra)
    return payload


@pytest.mark.asyncio
async def test_fee_structure_crud(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, school: Dict[str, int]
) -> None:
    assert Decimal(fee_structure["amount"]) == Decimal("1000")
    assert fee_structure["grade_name"] == "Grade 5"
    assert fee_structure["term_name"] == "Term 1"
    assert fee_structure["is_mandatory"] is True

    listed = await client.get(
        "/api/payments/fee-structures", params={"gradeId": school["grade_id"]}, headers=admin_headers
    )
    assert listed.json()["pagination"]["total"] == 1

    updated = await client.put(
        f"/api/payments/fee-structures/{fee_structure['id']}",
        json={"description": "First term tuition"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["description"] == "First term tuition"

    deleted = await client.delete(f"/api/payments/fee-structures/{fee_structure['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    gone = await client.get(f"/api/payments/fee-structures/{fee_structure['id']}", headers=admin_headers)
    assert gone.status_code == 404
    assert gone.json()["message"] == "Fee structure not found"


@pytest.mark.asyncio
async def test_fee_structure_term_must_match_year(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int]
) -> None:
    other_year = await client.post(
        "/api/academic/academic-years",
        json={"year": "2025-2026", "start_date": "2025-09-01", "end_date": "2026-06-30"},
        headers=admin_headers,
    )
    response = await client.post(
        "/api/payments/fee-structures",
        json={
            "grade_id": school["grade_id"],
            "academic_year_id": other_year.json()["data"]["id"],
            "term_id": school["term_id"],
            "fee_type": "Library",
            "amount": "50.00",
            "due_date": "2025-10-01",
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Term does not belong to the given academic year"


@pytest.mark.asyncio
async def test_fee_structure_rejects_non_positive_amount(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int]
) -> None:
    response = await client.post(
        "/api/payments/fee-structures",
        json={
            "grade_id": school["grade_id"],
            "academic_year_id": school["academic_year_id"],
            "term_id": school["term_id"],
            "fee_type": "Sports",
            "amount": "0",
            "due_date": "2024-12-01",
        },
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_full_payment_is_paid_with_receipt(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    response = await client.post(
        "/api/payments",
        json=_payment(enrolled_student["student_id"], fee_structure["id"], "1000.00", payment_method="Bank Transfer"),
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "Paid"
    assert RECEIPT_PATTERN.match(data["receipt_number"])
    assert data["receipt_number"].startswith(f"RCP-{date.today().isoformat()}-")
    assert data["section_name"] == "A"
    assert data["grade_name"] == "Grade 5"
    assert data["received_by"] is not None


@pytest.mark.asyncio
async def test_partial_payment_and_overpayment(
    client: AsyncClient,
    db_session: AsyncSession,
    admin_headers: Dict[str, str],
    fee_structure: dict,
    enrolled_student: Dict[str, int],
) -> None:
    student = enrolled_student["student_id"]

    partial = await client.post("/api/payments", json=_payment(student, fee_structure["id"], "600"), headers=admin_headers)
    assert partial.status_code == 201
    assert partial.json()["data"]["status"] == "Partial"

    over = await client.post("/api/payments", json=_payment(student, fee_structure["id"], "1000.01"), headers=admin_headers)
    assert over.status_code == 400
    assert over.json()["message"] == "Payment amount cannot exceed fee amount"

    count = len((await db_session.execute(select(Payment.id))).all())
    assert count == 1


@pytest.mark.asyncio
async def test_payment_unknown_student_or_fee(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    no_student = await client.post("/api/payments", json=_payment(999, fee_structure["id"], "10"), headers=admin_headers)
    assert no_student.status_code == 404
    assert no_student.json()["message"] == "Student not found"

    no_fee = await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], 999, "10"), headers=admin_headers
    )
    assert no_fee.status_code == 404
    assert no_fee.json()["message"] == "Fee structure not found"

    zero = await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], fee_structure["id"], "0"), headers=admin_headers
    )
    assert zero.status_code == 422


@pytest.mark.asyncio
async def test_outstanding_after_partial_payment(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    student = enrolled_student["student_id"]
    before = await client.get("/api/payments/outstanding", headers=admin_headers)
    rows = before.json()["data"]
    assert len(rows) == 1
    assert Decimal(rows[0]["outstanding_amount"]) == Decimal("1000")

    await client.post("/api/payments", json=_payment(student, fee_structure["id"], "600"), headers=admin_headers)

    after = await client.get("/api/payments/outstanding", headers=admin_headers)
    row = after.json()["data"][0]
    assert row["student_id"] == student
    assert row["fee_structure_id"] == fee_structure["id"]
    assert Decimal(row["paid_amount"]) == Decimal("600")
    assert Decimal(row["outstanding_amount"]) == Decimal("400")
    assert row["section_name"] == "A"
    assert row["academic_year"] == "2024-2025"

    await client.post("/api/payments", json=_payment(student, fee_structure["id"], "400"), headers=admin_headers)
    settled = await client.get("/api/payments/outstanding", headers=admin_headers)
    assert settled.json()["data"] == []


@pytest.mark.asyncio
async def test_refresh_status_marks_overdue(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    created = await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], fee_structure["id"], "600"), headers=admin_headers
    )
    payment_id = created.json()["data"]["id"]

    not_yet = await client.post("/api/payments/refresh-status", headers=admin_headers)
    assert not_yet.json()["data"]["marked_overdue"] == 0

    as_of = (date.today() + timedelta(days=31)).isoformat()
    refreshed = await client.post("/api/payments/refresh-status", params={"asOf": as_of}, headers=admin_headers)
    assert refreshed.status_code == 200
    assert refreshed.json()["data"] == {"as_of": as_of, "marked_overdue": 1}

    payment = await client.get(f"/api/payments/{payment_id}", headers=admin_headers)
    assert payment.json()["data"]["status"] == "Overdue"

    again = await client.post("/api/payments/refresh-status", params={"asOf": as_of}, headers=admin_headers)
    assert again.json()["data"]["marked_overdue"] == 0


@pytest.mark.asyncio
async def test_delete_fee_structure_with_payments_conflicts(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], fee_structure["id"], "100"), headers=admin_headers
    )
    response = await client.delete(f"/api/payments/fee-structures/{fee_structure['id']}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete fee structure. Fee structure has payments."


@pytest.mark.asyncio
async def test_update_and_delete_payment(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    created = await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], fee_structure["id"], "100"), headers=admin_headers
    )
    payment_id = created.json()["data"]["id"]

    too_much = await client.put(f"/api/payments/{payment_id}", json={"amount": "5000"}, headers=admin_headers)
    assert too_much.status_code == 400

    corrected = await client.put(
        f"/api/payments/{payment_id}", json={"reference_number": "TX-42", "status": "Pending"}, headers=admin_headers
    )
    assert corrected.status_code == 200
    assert corrected.json()["data"]["reference_number"] == "TX-42"
    assert corrected.json()["data"]["status"] == "Pending"

    deleted = await client.delete(f"/api/payments/{payment_id}", headers=admin_headers)
    assert deleted.status_code == 200
    gone = await client.get(f"/api/payments/{payment_id}", headers=admin_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_list_stats_and_monthly_report(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    student = enrolled_student["student_id"]
    await client.post(
        "/api/payments",
        json=_payment(student, fee_structure["id"], "300", payment_date="2024-10-05"),
        headers=admin_headers,
    )
    await client.post(
        "/api/payments",
        json=_payment(student, fee_structure["id"], "700", payment_date="2024-10-20", payment_method="Mobile Money"),
        headers=admin_headers,
    )

    listed = await client.get("/api/payments", params={"status": "Partial"}, headers=admin_headers)
    assert listed.json()["pagination"]["total"] == 2
    ranged = await client.get(
        "/api/payments", params={"startDate": "2024-10-10", "endDate": "2024-10-31"}, headers=admin_headers
    )
    assert [Decimal(p["amount"]) for p in ranged.json()["data"]] == [Decimal("700")]

    stats = await client.get("/api/payments/stats", headers=admin_headers)
    data = stats.json()["data"]
    assert data["total_payments"] == 2
    assert Decimal(data["total_amount_collected"]) == Decimal("1000")
    assert data["partial_count"] == 2
    assert data["paid_count"] == 0
    assert data["students_with_payments"] == 1
    assert data["collection_rate"] == 0

    monthly = await client.get("/api/payments/monthly/2024/10", headers=admin_headers)
    rows = monthly.json()["data"]
    assert [r["payment_date"] for r in rows] == ["2024-10-05", "2024-10-20"]
    assert rows[0]["cash_payments"] == 1
    assert rows[1]["mobile_money_payments"] == 1

    empty = await client.get("/api/payments/monthly/2024/11", headers=admin_headers)
    assert empty.json()["data"] == []


@pytest.mark.asyncio
async def test_parent_sees_only_linked_student_payments(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    student = enrolled_student["student_id"]
    await client.post("/api/payments", json=_payment(student, fee_structure["id"], "250"), headers=admin_headers)

    registered = await client.post("/api/auth/register", json=parent_payload())
    parent = registered.json()["data"]
    parent_headers = bearer(parent["access_token"])

    denied = await client.get(f"/api/payments/students/{student}", headers=parent_headers)
    assert denied.status_code == 403

    await client.post(
        f"/api/parents/{parent['profile']['id']}/link-student",
        json={"studentId": student, "relationship": "Mother", "isPrimary": True},
        headers=admin_headers,
    )
    allowed = await client.get(f"/api/payments/students/{student}", headers=parent_headers)
    assert allowed.status_code == 200
    rows = allowed.json()["data"]
    assert len(rows) == 1
    assert rows[0]["term_name"] == "Term 1"
    assert rows[0]["academic_year"] == "2024-2025"

    listing = await client.get("/api/payments", headers=parent_headers)
    assert listing.status_code == 403


@pytest.mark.asyncio
async def test_update_payment_amount_rederives_status(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    created = await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], fee_structure["id"], "600"), headers=admin_headers
    )
    payment_id = created.json()["data"]["id"]
    assert created.json()["data"]["status"] == "Partial"

    full = await client.put(f"/api/payments/{payment_id}", json={"amount": "1000"}, headers=admin_headers)
    assert full.status_code == 200
    assert full.json()["data"]["status"] == "Paid"

    reduced = await client.put(f"/api/payments/{payment_id}", json={"amount": "250"}, headers=admin_headers)
    assert reduced.json()["data"]["status"] == "Partial"

    manual = await client.put(
        f"/api/payments/{payment_id}", json={"amount": "1000", "status": "Pending"}, headers=admin_headers
    )
    assert manual.json()["data"]["status"] == "Pending"


@pytest.mark.asyncio
async def test_update_payment_rejects_null_amount(
    client: AsyncClient, admin_headers: Dict[str, str], fee_structure: dict, enrolled_student: Dict[str, int]
) -> None:
    created = await client.post(
        "/api/payments", json=_payment(enrolled_student["student_id"], fee_structure["id"], "100"), headers=admin_headers
    )
    payment_id = created.json()["data"]["id"]

    response = await client.put(f"/api/payments/{payment_id}", json={"amount": None}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "amount cannot be null"

    payment = await client.get(f"/api/payments/{payment_id}", headers=admin_headers)
    assert Decimal(payment.json()["data"]["amount"]) == Decimal("100")
