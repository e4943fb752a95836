"""
Access policy engine: which actor may do what to which school record.

Why:
    Role checks used to be scattered per route (and drifted). This module is a
    single pure function over (actor, resource kind, operation, target) so the
    rules can be unit-tested as a table and every service consults the same
    source of truth.

Rules (first match wins):
    - admin: allow everything, no row filter.
    - notes and tests are readable by every authenticated role.
    - teacher: read everything; write attendance, notes, tests and marks;
      students are read-only; update/delete of a note/test requires ownership
      (`uploaded_by` / `created_by` equals the actor's profile id).
    - parent: read students, attendance and marks of their own children
      (matched by parent email); no writes.
    - student: read their own student record, attendance and marks; no writes.
    - users: non-admins only see their own profile.

Edge cases:
    - A parent or student without linked student records gets an empty row
      filter for list operations and DENY for id-targeted operations.
    - update/delete on notes/tests needs the already-fetched target; without
      it the decision is DENY.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from identity_access.domain import Actor, Role

from .filters import RowFilter


class ResourceKind(str, Enum):
    STUDENT = "student"
    ATTENDANCE = "attendance"
    NOTE = "note"
    TEST = "test"
    TEST_MARK = "test_mark"
    USER = "user"


class Operation(str, Enum):
    LIST = "list"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Attribute holding the creator's profile id for owner-checked kinds.
OWNER_FIELDS = {
    ResourceKind.NOTE: "uploaded_by",
    ResourceKind.TEST: "created_by",
}

# Kinds whose rows belong to a single student via `student_id`.
_STUDENT_SCOPED = frozenset({ResourceKind.ATTENDANCE, ResourceKind.TEST_MARK})
_OPEN_READ = frozenset({ResourceKind.NOTE, ResourceKind.TEST})


@dataclass(frozen=True)
class Decision:
    allow: bool
    filter: Optional[RowFilter] = None
    reason: Optional[str] = None

    @classmethod
    def permit(cls, row_filter: Optional[RowFilter] = None) -> "Decision":
        return cls(allow=True, filter=row_filter)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(allow=False, reason=reason)

    def scope(self, client_filter: Optional[RowFilter] = None) -> RowFilter:
        """Effective filter: client filter AND role filter."""
        base = client_filter or RowFilter()
        return base.merge(self.filter)


ALLOW = Decision.permit()


def decide(
    actor: Actor,
    kind: ResourceKind,
    operation: Operation,
    target: Optional[Mapping[str, Any]] = None,
) -> Decision:
    """Decide whether `actor` may perform `operation` on `kind`.

    Parameters:
        actor: The authenticated request actor.
        kind: Resource kind being accessed.
        operation: list/read/create/update/delete.
        target: Already-fetched record for id-targeted operations. Attendance
            and test-mark targets should carry their related `student` row.

    Returns:
        A Decision. For allowed list operations, `filter` holds the role-derived
        row filter (None means unrestricted).
    """
    if actor.role is Role.ADMIN:
        return ALLOW
    if kind is ResourceKind.USER:
        return _decide_user(actor, operation, target)
    if operation is Operation.LIST:
        return _list_scope(actor, kind)
    if operation is Operation.READ:
        return _check_read(actor, kind, target)
    return _check_write(actor, kind, operation, target)


def _decide_user(actor: Actor, operation: Operation, target: Optional[Mapping[str, Any]]) -> Decision:
    if operation is Operation.LIST:
        return Decision.permit(RowFilter().where("id", actor.profile_id))
    if operation is Operation.READ:
        if target is not None and str(target.get("id")) == actor.profile_id:
            return ALLOW
        return Decision.deny("not_own_profile")
    return Decision.deny("admin_only")


def _list_scope(actor: Actor, kind: ResourceKind) -> Decision:
    if kind in _OPEN_READ or actor.role is Role.TEACHER:
        return ALLOW
    if not actor.linked_student_ids:
        return Decision.permit(RowFilter.nothing())
    if actor.role is Role.PARENT:
        field = "parent_email" if kind is ResourceKind.STUDENT else "student.parent_email"
        return Decision.permit(RowFilter().where(field, actor.email))
    if actor.role is Role.STUDENT:
        field = "id" if kind is ResourceKind.STUDENT else "student_id"
        return Decision.permit(RowFilter().where(field, sorted(actor.linked_student_ids), op="in"))
    return Decision.deny("unknown_role")


def _check_read(actor: Actor, kind: ResourceKind, target: Optional[Mapping[str, Any]]) -> Decision:
    if kind in _OPEN_READ or actor.role is Role.TEACHER:
        return ALLOW
    if not actor.linked_student_ids:
        return Decision.deny("no_linked_student")
    if target is None:
        return Decision.deny("target_required")
    if kind is ResourceKind.STUDENT:
        student: Mapping[str, Any] = target
        student_id = target.get("id")
    elif kind in _STUDENT_SCOPED:
        student = target.get("student") or {}
        student_id = target.get("student_id")
    else:
        return Decision.deny("unsupported_kind")
    if actor.role is Role.PARENT:
        if student.get("parent_email") and student.get("parent_email") == actor.email:
            return ALLOW
        return Decision.deny("not_parent_of_student")
    if actor.role is Role.STUDENT:
        if student_id is not None and str(student_id) in actor.linked_student_ids:
            return ALLOW
        return Decision.deny("not_own_record")
    return Decision.deny("unknown_role")


def _check_write(
    actor: Actor,
    kind: ResourceKind,
    operation: Operation,
    target: Optional[Mapping[str, Any]],
) -> Decision:
    if actor.role is not Role.TEACHER:
        return Decision.deny("teacher_or_admin_required")
    if kind is ResourceKind.STUDENT:
        return Decision.deny("students_read_only")
    owner_field = OWNER_FIELDS.get(kind)
    if owner_field and operation in (Operation.UPDATE, Operation.DELETE):
        if target is None:
            return Decision.deny("target_required")
        owner = target.get(owner_field)
        if owner is None or str(owner) != actor.profile_id:
            return Decision.deny("not_owner")
    return ALLOW


__all__ = [
    "ResourceKind",
    "Operation",
    "Decision",
    "ALLOW",
    "OWNER_FIELDS",
    "decide",
]
