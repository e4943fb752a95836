"""
Attendance routes.

Behavior:
    - GET lists are row-scoped: parents see their children, students themselves.
    - POST marks one record and POST /bulk marks many; both upsert by
      (student_id, date) and return 201.
    - GET /summary returns per-student present/absent/total counts.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from school.services import AttendanceService

from .. import wiring
from .common import current_actor, deleted, json_private

attendance_router = APIRouter(tags=["Attendance"])  # explicit paths below
logger = logging.getLogger("schoolhub.web.attendance")


class AttendancePayload(BaseModel):
    student_id: str | None = None
    date: str | None = None
    status: str | None = None


class BulkAttendancePayload(BaseModel):
    attendance_records: Any = None


class AttendanceUpdatePayload(BaseModel):
    status: str | None = None


def _service() -> AttendanceService:
    return AttendanceService(wiring.get_repo())


@attendance_router.get("/api/attendance")
async def list_attendance(
    request: Request,
    student_id: str | None = None,
    date: str | None = None,
    grade: str | None = None,
):
    actor = current_actor(request)
    return json_private(_service().list(actor, student_id=student_id, date=date, grade=grade))


@attendance_router.post("/api/attendance")
async def mark_attendance(request: Request, payload: AttendancePayload):
    record = _service().mark(current_actor(request), payload.model_dump())
    return json_private(record, status_code=201)


@attendance_router.post("/api/attendance/bulk")
async def bulk_mark_attendance(request: Request, payload: BulkAttendancePayload):
    actor = current_actor(request)
    records = _service().bulk_mark(actor, payload.attendance_records)
    logger.info("Bulk attendance by %s: %d records", actor.profile_id, len(records))
    return json_private(records, status_code=201)


@attendance_router.get("/api/attendance/summary")
async def attendance_summary(
    request: Request,
    start_date: str | None = None,
    end_date: str | None = None,
    grade: str | None = None,
):
    actor = current_actor(request)
    return json_private(_service().summary(actor, start_date=start_date, end_date=end_date, grade=grade))


@attendance_router.put("/api/attendance/{attendance_id}")
async def update_attendance(request: Request, attendance_id: str, payload: AttendanceUpdatePayload):
    return json_private(_service().update(current_actor(request), attendance_id, payload.model_dump()))


@attendance_router.delete("/api/attendance/{attendance_id}")
async def delete_attendance(request: Request, attendance_id: str):
    _service().delete(current_actor(request), attendance_id)
    return deleted("Attendance record deleted successfully")
