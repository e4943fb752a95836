"""Students API: row scoping per role and admin-only writes."""
from __future__ import annotations

import pytest

from utils.api import bearer, client

pytestmark = pytest.mark.anyio("asyncio")


async def test_teacher_lists_all_students_sorted_by_name():
    async with client() as c:
        r = await c.get("/api/students", headers=bearer("teacher"))
    assert r.status_code == 200
    assert [s["name"] for s in r.json()] == ["Alice", "Bob", "Carol"]


async def test_parent_and_student_see_only_linked_students():
    async with client() as c:
        parent = await c.get("/api/students", headers=bearer("parent"))
        student = await c.get("/api/students", headers=bearer("student"))
        lonely = await c.get("/api/students", headers=bearer("lonely_parent"))
    assert [s["id"] for s in parent.json()] == ["s-alice"]
    assert [s["id"] for s in student.json()] == ["s-alice"]
    assert student.json()[0]["user"] == {"name": "Student", "email": "alice@school.test"}
    assert lonely.status_code == 200 and lonely.json() == []


async def test_parent_get_other_child_is_forbidden():
    async with client() as c:
        own = await c.get("/api/students/s-alice", headers=bearer("parent"))
        other = await c.get("/api/students/s-bob", headers=bearer("parent"))
        missing = await c.get("/api/students/s-ghost", headers=bearer("parent"))
    assert own.status_code == 200
    assert other.status_code == 403
    assert other.json() == {"error": "forbidden", "detail": "not_parent_of_student"}
    assert missing.status_code == 404


async def test_list_by_grade():
    async with client() as c:
        r = await c.get("/api/students/grade/6", headers=bearer("teacher"))
    assert [s["name"] for s in r.json()] == ["Carol"]


async def test_admin_creates_updates_and_deletes_student(seeded):
    async with client() as c:
        created = await c.post("/api/students", json={"name": "Dana", "grade": "4"}, headers=bearer("admin"))
        sid = created.json()["id"]
        updated = await c.put(f"/api/students/{sid}", json={"grade": "5"}, headers=bearer("admin"))
        deleted = await c.delete(f"/api/students/{sid}", headers=bearer("admin"))
    assert created.status_code == 201
    assert updated.json()["grade"] == "5"
    assert deleted.status_code == 200 and "message" in deleted.json()
    assert seeded.repo.get("students", sid) is None


async def test_teacher_cannot_write_students(seeded):
    async with client() as c:
        r = await c.post("/api/students", json={"name": "Dana", "grade": "4"}, headers=bearer("teacher"))
        d = await c.delete("/api/students/s-alice", headers=bearer("teacher"))
    assert r.status_code == 403 and r.json()["detail"] == "students_read_only"
    assert d.status_code == 403
    assert seeded.repo.get("students", "s-alice") is not None


async def test_create_requires_name_and_grade():
    async with client() as c:
        r = await c.post("/api/students", json={"name": "Dana"}, headers=bearer("admin"))
        bad_email = await c.post(
            "/api/students", json={"name": "Dana", "grade": "4", "parent_email": "nope"}, headers=bearer("admin")
        )
    assert r.status_code == 400 and r.json()["detail"] == "missing_grade"
    assert bad_email.status_code == 400 and bad_email.json()["detail"] == "invalid_parent_email"
