"""
Attendance use cases: list, mark, bulk mark, summary, update, delete.

Why:
    Keep validation, role scoping and the upsert-by-natural-key semantics out of
    the FastAPI adapter so they can be unit-tested against the in-memory repo.

Behavior:
    - Marking is idempotent per (student_id, date): re-marking replaces status.
    - Bulk marking validates every record before writing any; one invalid
      record rejects the whole batch. The write itself is one upsert call.
    - Marking a student absent notifies the parent via the notifier hook.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from identity_access.domain import Actor

from ..errors import NotFound, ValidationFailed
from ..filters import RowFilter
from ..notifier import LoggingNotifier, NotifierProtocol
from ..policy import Operation, ResourceKind
from ..repo import SchoolRepoProtocol
from ..validation import (
    optional_date,
    parse_date,
    require_batch,
    require_id,
    validate_attendance_record,
    validate_status,
)
from .base import STUDENT_SUMMARY_FIELDS, ResourceService, pick

NATURAL_KEY = ("student_id", "date")
_LIST_STUDENT_FIELDS = STUDENT_SUMMARY_FIELDS + ("parent_email",)


class AttendanceService(ResourceService):
    kind = ResourceKind.ATTENDANCE
    table = "attendance"

    def __init__(self, repo: SchoolRepoProtocol, *, notifier: Optional[NotifierProtocol] = None) -> None:
        super().__init__(repo)
        self.notifier = notifier or LoggingNotifier()

    # --- Queries -------------------------------------------------------------------

    def list(
        self,
        actor: Actor,
        *,
        student_id: Optional[str] = None,
        date: Optional[str] = None,
        grade: Optional[str] = None,
    ) -> List[dict]:
        client = (
            RowFilter()
            .where_if("student_id", student_id)
            .where_if("date", optional_date(date))
            .where_if("student.grade", grade)
        )
        rows = self.scoped_query(actor, client, order_by=[("date", True)])
        return self.attach_students(rows, _LIST_STUDENT_FIELDS)

    def summary(self, actor: Actor, *, start_date: Any, end_date: Any, grade: Optional[str] = None) -> List[dict]:
        """Per-student counts {present, absent, total} over a date range (unordered)."""
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")
        if start > end:
            raise ValidationFailed("invalid_date_range")
        client = (
            RowFilter()
            .where("date", start, op="gte")
            .where("date", end, op="lte")
            .where_if("student.grade", grade)
        )
        rows = self.scoped_query(actor, client)
        students = self.students_by_id(r.get("student_id") for r in rows)
        groups: Dict[str, dict] = {}
        for row in rows:
            key = str(row["student_id"])
            group = groups.get(key)
            if group is None:
                group = groups[key] = {
                    "student": pick(students.get(key), STUDENT_SUMMARY_FIELDS) or {"id": key},
                    "present": 0,
                    "absent": 0,
                    "total": 0,
                }
            group[row["status"]] += 1
            group["total"] += 1
        return list(groups.values())

    # --- Writes --------------------------------------------------------------------

    def _require_students(self, student_ids: List[str]) -> None:
        known = self.students_by_id(student_ids)
        missing = [sid for sid in student_ids if sid not in known]
        if missing:
            raise NotFound("student_not_found")

    def _notify_absences(self, rows: List[dict]) -> None:
        for row in rows:
            if row.get("status") != "absent":
                continue
            student = row.get("student") or {}
            parent = student.get("parent_email")
            if parent:
                self.notifier.notify(
                    recipient=parent,
                    kind="attendance_absent",
                    message=f"{student.get('name') or 'Your child'} was marked absent on {row.get('date')}.",
                )

    def _upsert(self, records: List[dict]) -> List[dict]:
        rows = self.repo.upsert(self.table, records, NATURAL_KEY)
        rows = self.attach_students(rows, _LIST_STUDENT_FIELDS)
        self._notify_absences(rows)
        for row in rows:
            if row.get("student"):
                row["student"].pop("parent_email", None)
        return rows

    def mark(self, actor: Actor, payload: Mapping[str, Any]) -> dict:
        record = validate_attendance_record(payload)
        self.authorize(actor, Operation.CREATE)
        self._require_students([record["student_id"]])
        return self._upsert([record])[0]

    def bulk_mark(self, actor: Actor, records: Any) -> List[dict]:
        items = require_batch(records, "attendance_records")
        # Validate the whole batch first; last entry wins for duplicate keys.
        validated: Dict[tuple, dict] = {}
        for item in items:
            record = validate_attendance_record(item)
            validated[(record["student_id"], record["date"])] = record
        self.authorize(actor, Operation.CREATE)
        batch = list(validated.values())
        self._require_students(sorted({r["student_id"] for r in batch}))
        return self._upsert(batch)

    def update(self, actor: Actor, attendance_id: str, payload: Mapping[str, Any]) -> dict:
        status = validate_status(payload.get("status"))
        target = self.fetch(attendance_id)
        self.authorize(actor, Operation.UPDATE, target)
        updated = self.repo.update(self.table, target["id"], {"status": status})
        if updated is None:
            raise NotFound("attendance_not_found")
        return self.attach_students([updated])[0]

    def delete(self, actor: Actor, attendance_id: str) -> None:
        target = self.fetch(require_id(attendance_id, "id"))
        self.authorize(actor, Operation.DELETE, target)
        self.repo.delete(self.table, target["id"])


__all__ = ["AttendanceService", "NATURAL_KEY"]
