"""Student record routes. Every role may read within its row scope; admins write."""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from school.services import StudentsService

from .. import wiring
from .common import current_actor, deleted, json_private

students_router = APIRouter(tags=["Students"])  # explicit paths below


class StudentPayload(BaseModel):
    # Accept raw strings (including empty) and validate in the service to return 400
    name: str | None = None
    grade: str | None = None
    parent_email: str | None = None
    user_id: str | None = None


def _service() -> StudentsService:
    return StudentsService(wiring.get_repo())


@students_router.get("/api/students")
async def list_students(request: Request, grade: str | None = None):
    return json_private(_service().list(current_actor(request), grade=grade))


@students_router.get("/api/students/grade/{grade}")
async def list_students_by_grade(request: Request, grade: str):
    return json_private(_service().list_by_grade(current_actor(request), grade))


@students_router.get("/api/students/{student_id}")
async def get_student(request: Request, student_id: str):
    return json_private(_service().get(current_actor(request), student_id))


@students_router.post("/api/students")
async def create_student(request: Request, payload: StudentPayload):
    created = _service().create(current_actor(request), payload.model_dump(exclude_unset=True))
    return json_private(created, status_code=201)


@students_router.put("/api/students/{student_id}")
async def update_student(request: Request, student_id: str, payload: StudentPayload):
    updated = _service().update(current_actor(request), student_id, payload.model_dump(exclude_unset=True))
    return json_private(updated)


@students_router.delete("/api/students/{student_id}")
async def delete_student(request: Request, student_id: str):
    _service().delete(current_actor(request), student_id)
    return deleted("Student deleted successfully")
