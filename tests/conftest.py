import os

# Settings are read at import time; point them at an in-memory database first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"

from datetime import date, timedelta
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.auth.models  # noqa: F401  register auth tables
import app.core.models  # noqa: F401  register domain tables
from app.db.seed_admin import seed_admin
from app.db.session import Base, get_db
from app.main import app
from tests.helpers import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    bearer,
    create_student,
    enroll,
    login,
    parent_payload,
    teacher_payload,
)


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema per test on a single shared in-memory connection; overrides get_db."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def admin_headers(client: AsyncClient, db_session: AsyncSession) -> Dict[str, str]:
    await seed_admin(db_session, ADMIN_EMAIL, ADMIN_PASSWORD)
    return await login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture()
async def teacher_headers(client: AsyncClient) -> Dict[str, str]:
    response = await client.post("/api/auth/register", json=teacher_payload())
    assert response.status_code == 201, response.text
    return bearer(response.json()["data"]["access_token"])


@pytest.fixture()
async def parent_headers(client: AsyncClient) -> Dict[str, str]:
    response = await client.post("/api/auth/register", json=parent_payload())
    assert response.status_code == 201, response.text
    return bearer(response.json()["data"]["access_token"])


@pytest.fixture()
async def school(client: AsyncClient, admin_headers: Dict[str, str]) -> Dict[str, int]:
    """A current academic year with one term, a grade with section A, and one subject."""
    year = await client.post(
        "/api/academic/academic-years",
        json={"year": "2024-2025", "start_date": "2024-09-01", "end_date": "2025-06-30"},
        headers=admin_headers,
    )
    assert year.status_code == 201, year.text
    year_id = year.json()["data"]["id"]
    current = await client.put(f"/api/academic/academic-years/{year_id}/set-current", headers=admin_headers)
    assert current.status_code == 200, current.text

    term = await client.post(
        "/api/academic/terms",
        json={
            "academic_year_id": year_id,
            "name": "Term 1",
            "start_date": "2024-09-01",
            "end_date": "2024-12-20",
        },
        headers=admin_headers,
    )
    assert term.status_code == 201, term.text

    grade = await client.post(
        "/api/academic/grades", json={"name": "Grade 5", "level": 5}, headers=admin_headers
    )
    assert grade.status_code == 201, grade.text
    grade_id = grade.json()["data"]["id"]

    section = await client.post(
        "/api/academic/sections",
        json={"grade_id": grade_id, "academic_year_id": year_id, "name": "A"},
        headers=admin_headers,
    )
    assert section.status_code == 201, section.text

    subject = await client.post(
        "/api/academic/subjects", json={"name": "Mathematics", "code": "MATH5"}, headers=admin_headers
    )
    assert subject.status_code == 201, subject.text

    return {
        "academic_year_id": year_id,
        "term_id": term.json()["data"]["id"],
        "grade_id": grade_id,
        "section_id": section.json()["data"]["id"],
        "subject_id": subject.json()["data"]["id"],
    }


@pytest.fixture()
async def enrolled_student(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int]
) -> Dict[str, int]:
    """A student enrolled in section A for the current year."""
    student_id = await create_student(client, admin_headers)
    await enroll(client, admin_headers, student_id, school["section_id"], school["academic_year_id"])
    return {**school, "student_id": student_id}


@pytest.fixture()
async def fee_structure(
    client: AsyncClient, admin_headers: Dict[str, str], school: Dict[str, int]
) -> dict:
    """A 1000.00 tuition fee for Grade 5, due in 30 days."""
    response = await client.post(
        "/api/payments/fee-structures",
        json={
            "grade_id": school["grade_id"],
            "academic_year_id": school["academic_year_id"],
            "term_id": school["term_id"],
            "fee_type": "Tuition",
            "amount": "1000.00",
            "due_date": (date.today() + timedelta(days=30)).isoformat(),
        },
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
