from typing import Dict

import pytest
from httpx import AsyncClient

from tests.helpers import DEFAULT_PASSWORD, create_student, login


def _parent_create(email: str = "mom@example.com", **extra) -> dict:
    payload = {
        "email": email,
        "password": DEFAULT_PASSWORD,
        "first_name": "Lois",
        "last_name": "Lane",
        "phone": "5559876543",
        "relationship": "Mother",
    }
    payload.update(extra)
    return payload


@pytest.fixture()
async def student_id(client: AsyncClient, admin_headers: Dict[str, str]) -> int:
    return await create_student(client, admin_headers)


@pytest.mark.asyncio
async def test_create_parent_linked_to_student(
    client: AsyncClient, admin_headers: Dict[str, str], student_id: int
) -> None:
    response = await client.post(
        "/api/parents", json=_parent_create(student_id=student_id), headers=admin_headers
    )
    assert response.status_code == 201
    parent = response.json()["data"]
    assert parent["email"] == "mom@example.com"
    assert parent["is_active"] is True

    students = await client.get(f"/api/parents/{parent['id']}/students", headers=admin_headers)
    assert students.status_code == 200
    linked = students.json()["data"]
    assert [s["id"] for s in linked] == [student_id]
    assert linked[0]["relationship"] == "Mother"
    assert linked[0]["is_primary"] is True


@pytest.mark.asyncio
async def test_create_parent_unknown_student(client: AsyncClient, admin_headers: Dict[str, str]) -> None:
    response = await client.post("/api/parents", json=_parent_create(student_id=999), headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Student not found"


@pytest.mark.asyncio
async def test_link_new_primary_demotes_previous(
    client: AsyncClient, admin_headers: Dict[str, str], student_id: int
) -> None:
    mom = await client.post("/api/parents", json=_parent_create(student_id=student_id), headers=admin_headers)
    dad = await client.post(
        "/api/parents",
        json=_parent_create(email="dad@example.com", first_name="Jonathan", relationship="Father"),
        headers=admin_headers,
    )
    dad_id = dad.json()["data"]["id"]

    link = await client.post(
        f"/api/parents/{dad_id}/link-student",
        json={"studentId": student_id, "relationship": "Father", "isPrimary": True},
        headers=admin_headers,
    )
    assert link.status_code == 201

    duplicate = await client.post(
        f"/api/parents/{dad_id}/link-student",
        json={"studentId": student_id, "relationship": "Father"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    parents = await client.get(f"/api/parents/student/{student_id}", headers=admin_headers)
    data = parents.json()["data"]
    assert [(p["id"], p["is_primary"]) for p in data] == [(dad_id, True), (mom.json()["data"]["id"], False)]


@pytest.mark.asyncio
async def test_unlink_and_delete_parent(
    client: AsyncClient, admin_headers: Dict[str, str], student_id: int
) -> None:
    created = await client.post(
        "/api/parents", json=_parent_create(student_id=student_id), headers=admin_headers
    )
    parent_id = created.json()["data"]["id"]

    blocked = await client.delete(f"/api/parents/{parent_id}", headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.json()["message"] == "Cannot delete parent. Parent has students linked."

    unlinked = await client.delete(f"/api/parents/{parent_id}/unlink-student/{student_id}", headers=admin_headers)
    assert unlinked.status_code == 200
    not_linked = await client.delete(
        f"/api/parents/{parent_id}/unlink-student/{student_id}", headers=admin_headers
    )
    assert not_linked.status_code == 404

    deleted = await client.delete(f"/api/parents/{parent_id}", headers=admin_headers)
    assert deleted.status_code == 200
    gone = await client.get(f"/api/parents/{parent_id}", headers=admin_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_parent_sees_only_own_records(
    client: AsyncClient, admin_headers: Dict[str, str], student_id: int
) -> None:
    mine = await client.post("/api/parents", json=_parent_create(student_id=student_id), headers=admin_headers)
    other = await client.post("/api/parents", json=_parent_create(email="other@example.com"), headers=admin_headers)
    mine_id = mine.json()["data"]["id"]
    other_id = other.json()["data"]["id"]
    other_student = await create_student(
        client, admin_headers, email="kid2@example.com", student_id="STU002", admission_number="ADM2024002"
    )

    parent_headers = await login(client, "mom@example.com")

    own = await client.get(f"/api/parents/{mine_id}", headers=parent_headers)
    assert own.status_code == 200
    updated = await client.put(
        f"/api/parents/{mine_id}", json={"occupation": "Reporter"}, headers=parent_headers
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["occupation"] == "Reporter"

    foreign = await client.get(f"/api/parents/{other_id}", headers=parent_headers)
    assert foreign.status_code == 403
    assert foreign.json()["message"] == "Access denied"

    own_child = await client.get(f"/api/parents/student/{student_id}", headers=parent_headers)
    assert own_child.status_code == 200
    foreign_child = await client.get(f"/api/parents/student/{other_student}", headers=parent_headers)
    assert foreign_child.status_code == 403

    listing = await client.get("/api/parents", headers=parent_headers)
    assert listing.status_code == 403


@pytest.mark.asyncio
async def test_teacher_cannot_view_parents(
    client: AsyncClient, admin_headers: Dict[str, str], teacher_headers: Dict[str, str]
) -> None:
    created = await client.post("/api/parents", json=_parent_create(), headers=admin_headers)
    response = await client.get(f"/api/parents/{created.json()['data']['id']}", headers=teacher_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_parent_stats(client: AsyncClient, admin_headers: Dict[str, str]) -> None:
    await client.post("/api/parents", json=_parent_create(), headers=admin_headers)
    await client.post(
        "/api/parents",
        json=_parent_create(email="dad@example.com", relationship="Father", is_primary=False),
        headers=admin_headers,
    )

    response = await client.get("/api/parents/stats", headers=admin_headers)
    data = response.json()["data"]
    assert data["total_parents"] == 2
    assert data["fathers"] == 1
    assert data["mothers"] == 1
    assert data["primary_parents"] == 1
