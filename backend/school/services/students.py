"""Student records: list/get for every role (row-scoped), writes for admins."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from identity_access.domain import Actor

from ..errors import ValidationFailed
from ..filters import RowFilter
from ..policy import Operation, ResourceKind
from ..validation import optional_text, require_text
from .base import PERSON_SUMMARY_FIELDS, ResourceService, pick


def _normalize_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if "@" not in value:
        raise ValidationFailed("invalid_parent_email")
    return value


class StudentsService(ResourceService):
    kind = ResourceKind.STUDENT
    table = "students"

    def _attach_users(self, records: List[dict]) -> List[dict]:
        # students.user_id holds the auth identity id of a student account.
        wanted = sorted({str(r["user_id"]) for r in records if r.get("user_id")})
        users = {}
        if wanted:
            rows = self.repo.query("users", RowFilter().where("auth_user_id", wanted, op="in"))
            users = {str(u["auth_user_id"]): u for u in rows}
        for record in records:
            record["user"] = pick(users.get(str(record.get("user_id"))), PERSON_SUMMARY_FIELDS)
        return records

    def list(self, actor: Actor, *, grade: Optional[str] = None) -> List[dict]:
        client = RowFilter().where_if("grade", grade)
        rows = self.scoped_query(actor, client, order_by=[("name", False)])
        return self._attach_users(rows)

    def list_by_grade(self, actor: Actor, grade: str) -> List[dict]:
        grade = (grade or "").strip()
        if not grade:
            raise ValidationFailed("missing_grade")
        return self.list(actor, grade=grade)

    def get(self, actor: Actor, student_id: str) -> dict:
        student = self.fetch(student_id)
        self.authorize(actor, Operation.READ, student)
        return self._attach_users([student])[0]

    def create(self, actor: Actor, payload: Mapping[str, Any]) -> dict:
        fields = {
            "name": require_text(payload, "name"),
            "grade": require_text(payload, "grade", max_length=32),
            "parent_email": _normalize_email(optional_text(payload, "parent_email", max_length=320)),
            "user_id": optional_text(payload, "user_id", max_length=64),
        }
        self.authorize(actor, Operation.CREATE)
        return self.repo.insert(self.table, fields)

    def update(self, actor: Actor, student_id: str, payload: Mapping[str, Any]) -> dict:
        changes: dict = {}
        if "name" in payload:
            changes["name"] = require_text(payload, "name")
        if "grade" in payload:
            changes["grade"] = require_text(payload, "grade", max_length=32)
        if "parent_email" in payload:
            changes["parent_email"] = _normalize_email(optional_text(payload, "parent_email", max_length=320))
        if "user_id" in payload:
            changes["user_id"] = optional_text(payload, "user_id", max_length=64)
        target = self.fetch(student_id)
        self.authorize(actor, Operation.UPDATE, target)
        if not changes:
            return target
        updated = self.repo.update(self.table, target["id"], changes)
        return updated if updated is not None else self.fetch(student_id)

    def delete(self, actor: Actor, student_id: str) -> None:
        target = self.fetch(student_id)
        self.authorize(actor, Operation.DELETE, target)
        self.repo.delete(self.table, target["id"])


__all__ = ["StudentsService"]
