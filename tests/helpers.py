"""Request payloads and auth helpers shared by the API tests."""

from typing import Dict

from httpx import AsyncClient

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Admin123"
DEFAULT_PASSWORD = "Secret123"


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def login(client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD) -> Dict[str, str]:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return bearer(response.json()["data"]["access_token"])


def teacher_payload(email: str = "teacher@example.com", employee_id: str = "EMP001") -> dict:
    return {
        "email": email,
        "password": DEFAULT_PASSWORD,
        "role": "Teacher",
        "profile": {
            "employee_id": employee_id,
            "first_name": "Grace",
            "last_name": "Hopper",
            "hire_date": "2020-01-15",
            "qualification": "MSc Mathematics",
        },
    }


def parent_payload(email: str = "parent@example.com") -> dict:
    return {
        "email": email,
        "password": DEFAULT_PASSWORD,
        "role": "Parent",
        "profile": {
            "first_name": "Martha",
            "last_name": "Kent",
            "phone": "5551234567",
            "relationship": "Mother",
        },
    }


def student_payload(
    email: str = "student@example.com",
    student_id: str = "STU001",
    admission_number: str = "ADM2024001",
    first_name: str = "Clark",
) -> dict:
    return {
        "email": email,
        "password": DEFAULT_PASSWORD,
        "student_id": student_id,
        "first_name": first_name,
        "last_name": "Kent",
        "date_of_birth": "2012-06-18",
        "gender": "Male",
        "admission_date": "2024-01-10",
        "admission_number": admission_number,
    }


async def create_student(client: AsyncClient, headers: Dict[str, str], **kwargs) -> int:
    response = await client.post("/api/students", json=student_payload(**kwargs), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def enroll(client: AsyncClient, headers: Dict[str, str], student_id: int, section_id: int, year_id: int) -> None:
    response = await client.post(
        f"/api/students/{student_id}/enroll",
        json={"sectionId": section_id, "academicYearId": year_id},
        headers=headers,
    )
    assert response.status_code == 201, response.text
