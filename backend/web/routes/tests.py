"""
Test (assessment) routes and their marks.

Behavior:
    - Tests embed the marks the caller may see.
    - POST /{id}/marks upserts marks by (test_id, student_id); 400 when any mark
      is invalid (nothing is written), 404 for an unknown test.
    - GET /student/{id}/history lists a student's marks, newest test first.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from school.services import AssessmentsService

from .. import wiring
from .common import current_actor, deleted, json_private

tests_router = APIRouter(tags=["Tests"])  # explicit paths below


class AssessmentPayload(BaseModel):
    subject: str | None = None
    chapter: str | None = None
    test_date: str | None = None
    grade: str | None = None


class MarksPayload(BaseModel):
    # Scores are validated by the service (numbers only, 0 <= score <= max_score)
    marks: Any = None


def _service() -> AssessmentsService:
    return AssessmentsService(wiring.get_repo())


@tests_router.get("/api/tests")
async def list_tests(request: Request, grade: str | None = None, subject: str | None = None):
    return json_private(_service().list(current_actor(request), grade=grade, subject=subject))


@tests_router.get("/api/tests/student/{student_id}/history")
async def student_test_history(request: Request, student_id: str):
    return json_private(_service().student_history(current_actor(request), student_id))


@tests_router.get("/api/tests/{test_id}")
async def get_test(request: Request, test_id: str):
    return json_private(_service().get(current_actor(request), test_id))


@tests_router.post("/api/tests")
async def create_test(request: Request, payload: AssessmentPayload):
    created = _service().create(current_actor(request), payload.model_dump(exclude_unset=True))
    return json_private(created, status_code=201)


@tests_router.put("/api/tests/{test_id}")
async def update_test(request: Request, test_id: str, payload: AssessmentPayload):
    updated = _service().update(current_actor(request), test_id, payload.model_dump(exclude_unset=True))
    return json_private(updated)


@tests_router.delete("/api/tests/{test_id}")
async def delete_test(request: Request, test_id: str):
    _service().delete(current_actor(request), test_id)
    return deleted("Test deleted successfully")


@tests_router.post("/api/tests/{test_id}/marks")
async def record_marks(request: Request, test_id: str, payload: MarksPayload):
    marks = _service().record_marks(current_actor(request), test_id, payload.marks)
    return json_private(marks, status_code=201)


@tests_router.get("/api/tests/{test_id}/marks")
async def list_marks(request: Request, test_id: str):
    return json_private(_service().list_marks(current_actor(request), test_id))
