"""
Tests and test marks.

Behavior:
    - Tests are readable by every role; each test embeds the marks the actor is
      allowed to see (marks are filtered by the test-mark list policy, so a
      parent only sees their children's marks).
    - Recording marks validates the whole list before writing and upserts by
      (test_id, student_id); re-recording replaces the score.
    - A student's history is an id-targeted read on the student record.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from identity_access.domain import Actor

from ..errors import NotFound
from ..filters import RowFilter
from ..policy import Operation, ResourceKind
from ..validation import optional_text, parse_date, require_batch, require_id, require_text, validate_mark
from .base import ResourceService, pick

MARKS_TABLE = "test_marks"
MARKS_NATURAL_KEY = ("test_id", "student_id")
TEST_SUMMARY_FIELDS = ("id", "subject", "chapter", "test_date", "grade")


class AssessmentsService(ResourceService):
    kind = ResourceKind.TEST
    table = "tests"

    # --- Projection ----------------------------------------------------------------

    def _visible_marks(self, actor: Actor, test_ids: List[str]) -> Dict[str, List[dict]]:
        if not test_ids:
            return {}
        client = RowFilter().where("test_id", sorted(set(test_ids)), op="in")
        marks = self.scoped_query(
            actor, client, kind=ResourceKind.TEST_MARK, table=MARKS_TABLE, order_by=[("created_at", False)]
        )
        self.attach_students(marks)
        grouped: Dict[str, List[dict]] = {}
        for mark in marks:
            grouped.setdefault(str(mark["test_id"]), []).append(mark)
        return grouped

    def _project(self, actor: Actor, tests: List[dict]) -> List[dict]:
        self.attach_people(tests, source="created_by", target="creator")
        marks = self._visible_marks(actor, [str(t["id"]) for t in tests])
        for test in tests:
            test["test_marks"] = marks.get(str(test["id"]), [])
        return tests

    # --- Tests ---------------------------------------------------------------------

    def list(self, actor: Actor, *, grade: Optional[str] = None, subject: Optional[str] = None) -> List[dict]:
        client = RowFilter().where_if("grade", grade).where_if("subject", subject)
        rows = self.scoped_query(actor, client, order_by=[("test_date", True)])
        return self._project(actor, rows)

    def get(self, actor: Actor, test_id: str) -> dict:
        test = self.fetch(test_id)
        self.authorize(actor, Operation.READ, test)
        return self._project(actor, [test])[0]

    def create(self, actor: Actor, payload: Mapping[str, Any]) -> dict:
        fields = {
            "subject": require_text(payload, "subject", max_length=100),
            "chapter": optional_text(payload, "chapter", max_length=100),
            "test_date": parse_date(payload.get("test_date"), "test_date"),
            "grade": require_text(payload, "grade", max_length=32),
        }
        self.authorize(actor, Operation.CREATE)
        fields["created_by"] = actor.profile_id
        created = self.repo.insert(self.table, fields)
        self.attach_people([created], source="created_by", target="creator")
        return created

    def update(self, actor: Actor, test_id: str, payload: Mapping[str, Any]) -> dict:
        changes: dict = {}
        if "subject" in payload:
            changes["subject"] = require_text(payload, "subject", max_length=100)
        if "chapter" in payload:
            changes["chapter"] = optional_text(payload, "chapter", max_length=100)
        if "test_date" in payload:
            changes["test_date"] = parse_date(payload.get("test_date"), "test_date")
        if "grade" in payload:
            changes["grade"] = require_text(payload, "grade", max_length=32)
        target = self.fetch(test_id)
        self.authorize(actor, Operation.UPDATE, target)
        updated = self.repo.update(self.table, target["id"], changes) if changes else target
        updated = updated if updated is not None else self.fetch(test_id)
        self.attach_people([updated], source="created_by", target="creator")
        return updated

    def delete(self, actor: Actor, test_id: str) -> None:
        target = self.fetch(test_id)
        self.authorize(actor, Operation.DELETE, target)
        # Marks cascade with the test (FK on delete cascade / in-memory CASCADES).
        self.repo.delete(self.table, target["id"])

    # --- Marks ---------------------------------------------------------------------

    def record_marks(self, actor: Actor, test_id: str, marks: Any) -> List[dict]:
        items = require_batch(marks, "marks")
        validated: Dict[str, dict] = {}
        for item in items:
            mark = validate_mark(item)
            validated[mark["student_id"]] = mark
        test = self.fetch(test_id)
        self.authorize(actor, Operation.CREATE, kind=ResourceKind.TEST_MARK)
        known = self.students_by_id(validated)
        if any(sid not in known for sid in validated):
            raise NotFound("student_not_found")
        records = [dict(mark, test_id=str(test["id"])) for mark in validated.values()]
        rows = self.repo.upsert(MARKS_TABLE, records, MARKS_NATURAL_KEY)
        return self.attach_students(rows)

    def list_marks(self, actor: Actor, test_id: str) -> List[dict]:
        test = self.fetch(test_id)
        self.authorize(actor, Operation.READ, test)
        return self._visible_marks(actor, [str(test["id"])]).get(str(test["id"]), [])

    def student_history(self, actor: Actor, student_id: str) -> List[dict]:
        """All marks of one student with their test, newest test first."""
        student = self.repo.get("students", require_id(student_id, "student_id"))
        if student is None:
            raise NotFound("student_not_found")
        self.authorize(actor, Operation.READ, student, kind=ResourceKind.STUDENT)
        marks = self.repo.query(MARKS_TABLE, RowFilter().where("student_id", str(student["id"])))
        tests = self._rows_by_id(self.table, (m.get("test_id") for m in marks))
        for mark in marks:
            mark["test"] = pick(tests.get(str(mark.get("test_id"))), TEST_SUMMARY_FIELDS)
        marks.sort(key=lambda m: ((m.get("test") or {}).get("test_date") or ""), reverse=True)
        return marks


__all__ = ["AssessmentsService", "MARKS_TABLE", "MARKS_NATURAL_KEY"]
