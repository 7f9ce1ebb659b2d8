from datetime import date, timedelta
from decimal import Decimal
from typing import Dict

import pytest
from httpx import AsyncClient

from tests.helpers import create_student, enroll


@pytest.fixture()
async def exam_type_id(client: AsyncClient, admin_headers: Dict[str, str]) -> int:
    response = await client.post(
        "/api/exams/exam-types", json={"name": "Midterm", "description": "Mid-term exam"}, headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


def _examination(school: Dict[str, int], exam_type_id: int, **overrides) -> dict:
    payload = {
        "exam_type_id": exam_type_id,
        "subject_id": school["subject_id"],
        "grade_id": school["grade_id"],
        "section_id": school["section_id"],
        "academic_year_id": school["academic_year_id"],
        "term_id": school["term_id"],
        "title": "Mathematics Midterm",
        "exam_date": "2024-10-15",
        "start_time": "09:00:00",
        "end_time": "11:00:00",
        "total_marks": 100,
        "passing_marks": 40,
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
async def examination(
    client: AsyncClient, admin_headers: Dict[str, str], enrolled_student: Dict[str, int], exam_type_id: int
) -> dict:
    response = await client.post(
        "/api/exams/examinations", json=_examination(enrolled_student, exam_type_id), headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_exam_types(client: AsyncClient, admin_headers: Dict[str, str], exam_type_id: int) -> None:
    duplicate = await client.post("/api/exams/exam-types", json={"name": "Midterm"}, headers=admin_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Exam type already exists"

    listed = await client.get("/api/exams/exam-types", headers=admin_headers)
    assert [t["name"] for t in listed.json()["data"]] == ["Midterm"]


@pytest.mark.asyncio
async def test_create_examination_denormalized(
    examination: dict, enrolled_student: Dict[str, int]
) -> None:
    assert examination["title"] == "Mathematics Midterm"
    assert examination["subject_name"] == "Mathematics"
    assert examination["subject_code"] == "MATH5"
    assert examination["grade_name"] == "Grade 5"
    assert examination["section_name"] == "A"
    assert examination["exam_type_name"] == "Midterm"
    assert examination["academic_year"] == "2024-2025"
    assert examination["created_by"] is not None


@pytest.mark.asyncio
async def test_create_examination_validation(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int], exam_type_id: int
) -> None:
    passing_too_high = await client.post(
        "/api/exams/examinations",
        json=_examination(school, exam_type_id, passing_marks=120),
        headers=admin_headers,
    )
    assert passing_too_high.status_code == 422
    assert passing_too_high.json()["message"] == "Validation failed"

    end_before_start = await client.post(
        "/api/exams/examinations",
        json=_examination(school, exam_type_id, start_time="11:00:00", end_time="10:00:00"),
        headers=admin_headers,
    )
    assert end_before_start.status_code == 422

    short_title = await client.post(
        "/api/exams/examinations", json=_examination(school, exam_type_id, title="Quiz"), headers=admin_headers
    )
    assert short_title.status_code == 422

    unknown_term = await client.post(
        "/api/exams/examinations", json=_examination(school, exam_type_id, term_id=999), headers=admin_headers
    )
    assert unknown_term.status_code == 404
    assert unknown_term.json()["message"] == "Term not found"


@pytest.mark.asyncio
async def test_list_and_update_examination(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    listed = await client.get(
        "/api/exams/examinations", params={"subjectId": enrolled_student["subject_id"]}, headers=admin_headers
    )
    assert listed.json()["pagination"]["total"] == 1

    none = await client.get("/api/exams/examinations", params={"termId": 999}, headers=admin_headers)
    assert none.json()["data"] == []

    bad = await client.put(
        f"/api/exams/examinations/{examination['id']}", json={"passing_marks": 150}, headers=admin_headers
    )
    assert bad.status_code == 400
    assert bad.json()["message"] == "Passing marks cannot exceed total marks"

    ok = await client.put(
        f"/api/exams/examinations/{examination['id']}",
        json={"total_marks": 50, "passing_marks": 20},
        headers=admin_headers,
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["total_marks"] == 50


@pytest.mark.asyncio
async def test_upcoming_examinations(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int], exam_type_id: int
) -> None:
    today = date.today()
    for title, offset in (("Next week quiz", 3), ("Far away final", 60), ("Last month test", -30)):
        await client.post(
            "/api/exams/examinations",
            json=_examination(school, exam_type_id, title=title, exam_date=(today + timedelta(days=offset)).isoformat()),
            headers=admin_headers,
        )

    upcoming = await client.get("/api/exams/examinations/upcoming", headers=admin_headers)
    assert [e["title"] for e in upcoming.json()["data"]] == ["Next week quiz"]

    wider = await client.get("/api/exams/examinations/upcoming", params={"days": 90}, headers=admin_headers)
    assert [e["title"] for e in wider.json()["data"]] == ["Next week quiz", "Far away final"]


@pytest.mark.asyncio
async def test_add_result_derives_grade(
    client: AsyncClient, teacher_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    response = await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": enrolled_student["student_id"], "marks_obtained": "85"},
        headers=teacher_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert Decimal(data["marks_obtained"]) == Decimal("85")
    assert data["grade"] == "A"
    assert data["exam_title"] == "Mathematics Midterm"
    assert data["student_number"] == "STU001"


@pytest.mark.asyncio
async def test_add_result_keeps_explicit_grade(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    response = await client.post(
        "/api/exams/results",
        json={
            "examination_id": examination["id"],
            "student_id": enrolled_student["student_id"],
            "marks_obtained": "55.5",
            "grade": "B-",
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["grade"] == "B-"


@pytest.mark.asyncio
async def test_add_result_rejections(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    student = enrolled_student["student_id"]

    too_many = await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": student, "marks_obtained": "101"},
        headers=admin_headers,
    )
    assert too_many.status_code == 400
    assert too_many.json()["message"] == "Marks obtained cannot exceed total marks"

    no_exam = await client.post(
        "/api/exams/results",
        json={"examination_id": 999, "student_id": student, "marks_obtained": "50"},
        headers=admin_headers,
    )
    assert no_exam.status_code == 404
    assert no_exam.json()["message"] == "Examination not found"

    negative = await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": student, "marks_obtained": "-1"},
        headers=admin_headers,
    )
    assert negative.status_code == 422

    first = await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": student, "marks_obtained": "50"},
        headers=admin_headers,
    )
    assert first.status_code == 201
    duplicate = await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": student, "marks_obtained": "60"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Exam result already exists for this student"


@pytest.mark.asyncio
async def test_update_result_regrades(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    created = await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": enrolled_student["student_id"], "marks_obtained": "35"},
        headers=admin_headers,
    )
    assert created.json()["data"]["grade"] == "D"
    result_id = created.json()["data"]["id"]

    regraded = await client.put(
        f"/api/exams/results/{result_id}", json={"marks_obtained": "92"}, headers=admin_headers
    )
    assert regraded.status_code == 200
    assert regraded.json()["data"]["grade"] == "A+"

    too_many = await client.put(
        f"/api/exams/results/{result_id}", json={"marks_obtained": "150"}, headers=admin_headers
    )
    assert too_many.status_code == 400


@pytest.mark.asyncio
async def test_delete_examination_with_results_conflicts(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": enrolled_student["student_id"], "marks_obtained": "70"},
        headers=admin_headers,
    )

    response = await client.delete(f"/api/exams/examinations/{examination['id']}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete examination. Examination has results."

    still_there = await client.get(f"/api/exams/examinations/{examination['id']}", headers=admin_headers)
    assert still_there.status_code == 200


@pytest.mark.asyncio
async def test_delete_examination_without_results(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict
) -> None:
    response = await client.delete(f"/api/exams/examinations/{examination['id']}", headers=admin_headers)
    assert response.status_code == 200
    gone = await client.get(f"/api/exams/examinations/{examination['id']}", headers=admin_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_results_views_and_stats(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    other = await create_student(
        client, admin_headers, email="b@example.com", student_id="STU002", admission_number="ADM2024002", first_name="Bruce"
    )
    await enroll(client, admin_headers, other, enrolled_student["section_id"], enrolled_student["academic_year_id"])
    for student, marks in ((enrolled_student["student_id"], "80"), (other, "30")):
        await client.post(
            "/api/exams/results",
            json={"examination_id": examination["id"], "student_id": student, "marks_obtained": marks},
            headers=admin_headers,
        )

    by_exam = await client.get(f"/api/exams/examinations/{examination['id']}/results", headers=admin_headers)
    assert [r["first_name"] for r in by_exam.json()["data"]] == ["Bruce", "Clark"]

    filtered = await client.get("/api/exams/results", params={"studentId": other}, headers=admin_headers)
    assert filtered.json()["pagination"]["total"] == 1

    by_student = await client.get(
        f"/api/exams/students/{other}/results",
        params={"academicYearId": enrolled_student["academic_year_id"]},
        headers=admin_headers,
    )
    assert [r["grade"] for r in by_student.json()["data"]] == ["D"]

    stats = await client.get("/api/exams/stats", headers=admin_headers)
    data = stats.json()["data"]
    assert data["total_examinations"] == 1
    assert data["total_results"] == 2
    assert data["students_with_results"] == 2
    assert data["average_marks"] == 55.0
    assert data["passed_count"] == 1
    assert data["failed_count"] == 1
    assert data["pass_percentage"] == 50


@pytest.mark.asyncio
async def test_exam_stats_admin_only(client: AsyncClient, teacher_headers: Dict[str, str]) -> None:
    response = await client.get("/api/exams/stats", headers=teacher_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_examination_keeps_recorded_marks_valid(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict, enrolled_student: Dict[str, int]
) -> None:
    await client.post(
        "/api/exams/results",
        json={"examination_id": examination["id"], "student_id": enrolled_student["student_id"], "marks_obtained": "90"},
        headers=admin_headers,
    )

    lower = await client.put(
        f"/api/exams/examinations/{examination['id']}",
        json={"total_marks": 50, "passing_marks": 20},
        headers=admin_headers,
    )
    assert lower.status_code == 400
    assert lower.json()["message"] == "Total marks cannot be lower than marks already recorded"

    unchanged = await client.get(f"/api/exams/examinations/{examination['id']}", headers=admin_headers)
    assert unchanged.json()["data"]["total_marks"] == 100

    still_fits = await client.put(
        f"/api/exams/examinations/{examination['id']}", json={"total_marks": 90}, headers=admin_headers
    )
    assert still_fits.status_code == 200
    assert still_fits.json()["data"]["total_marks"] == 90


@pytest.mark.asyncio
async def test_update_examination_times_must_stay_ordered(
    client: AsyncClient, admin_headers: Dict[str, str], examination: dict
) -> None:
    response = await client.put(
        f"/api/exams/examinations/{examination['id']}", json={"end_time": "08:30:00"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "End time must be after start time"


@pytest.mark.asyncio
async def test_create_examination_checks_section_and_term_pairing(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int], exam_type_id: int
) -> None:
    other_grade = await client.post(
        "/api/academic/grades", json={"name": "Grade 6", "level": 6}, headers=admin_headers
    )
    wrong_section = await client.post(
        "/api/exams/examinations",
        json=_examination(school, exam_type_id, grade_id=other_grade.json()["data"]["id"]),
        headers=admin_headers,
    )
    assert wrong_section.status_code == 400
    assert wrong_section.json()["message"] == "Section does not belong to the given grade"

    other_year = await client.post(
        "/api/academic/academic-years",
        json={"year": "2025-2026", "start_date": "2025-09-01", "end_date": "2026-06-30"},
        headers=admin_headers,
    )
    wrong_term = await client.post(
        "/api/exams/examinations",
        json=_examination(school, exam_type_id, academic_year_id=other_year.json()["data"]["id"]),
        headers=admin_headers,
    )
    assert wrong_term.status_code == 400
    assert wrong_term.json()["message"] == "Term does not belong to the given academic year"
