"""
Shared plumbing for the school resource services.

Every id-targeted write follows the same three steps, each a separate method
so it can be tested in isolation:

    fetch (NotFound short-circuits) -> authorize (Forbidden, no mutation) -> mutate

List operations authorize first and then query with the effective filter
(client filter AND role filter).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from identity_access.domain import Actor

from ..errors import Forbidden, NotFound
from ..filters import RowFilter
from ..policy import Decision, Operation, ResourceKind, decide
from ..repo import Ordering, SchoolRepoProtocol

logger = logging.getLogger("schoolhub.school.services")

STUDENT_SUMMARY_FIELDS = ("id", "name", "grade")
PERSON_SUMMARY_FIELDS = ("name", "email")


def pick(record: Optional[Mapping[str, Any]], fields: Iterable[str]) -> Optional[dict]:
    if record is None:
        return None
    return {f: record.get(f) for f in fields}


class ResourceService:
    kind: ResourceKind
    table: str

    def __init__(self, repo: SchoolRepoProtocol) -> None:
        self.repo = repo

    # --- Fetch -> Authorize -> Mutate ------------------------------------------

    def fetch(self, record_id: str) -> dict:
        record = self.repo.get(self.table, str(record_id))
        if record is None:
            raise NotFound(f"{self.kind.value}_not_found")
        return record

    def authorize(
        self,
        actor: Actor,
        operation: Operation,
        target: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[ResourceKind] = None,
    ) -> Decision:
        kind = kind or self.kind
        decision = decide(actor, kind, operation, target)
        if not decision.allow:
            logger.info(
                "policy_deny actor=%s role=%s kind=%s op=%s reason=%s",
                actor.profile_id,
                actor.role.value,
                kind.value,
                operation.value,
                decision.reason,
            )
            raise Forbidden(decision.reason or "forbidden")
        return decision

    def scoped_query(
        self,
        actor: Actor,
        client_filter: Optional[RowFilter] = None,
        *,
        order_by: Ordering = (),
        kind: Optional[ResourceKind] = None,
        table: Optional[str] = None,
    ) -> List[dict]:
        decision = self.authorize(actor, Operation.LIST, kind=kind)
        return self.repo.query(table or self.table, decision.scope(client_filter), order_by=order_by)

    # --- Projection helpers -----------------------------------------------------

    def _rows_by_id(self, table: str, ids: Iterable[Any]) -> Dict[str, dict]:
        wanted = sorted({str(i) for i in ids if i is not None})
        if not wanted:
            return {}
        rows = self.repo.query(table, RowFilter().where("id", wanted, op="in"))
        return {str(r["id"]): r for r in rows}

    def students_by_id(self, ids: Iterable[Any]) -> Dict[str, dict]:
        return self._rows_by_id("students", ids)

    def users_by_id(self, ids: Iterable[Any]) -> Dict[str, dict]:
        return self._rows_by_id("users", ids)

    def attach_students(self, records: List[dict], fields: Iterable[str] = STUDENT_SUMMARY_FIELDS) -> List[dict]:
        fields = tuple(fields)
        students = self.students_by_id(r.get("student_id") for r in records)
        for record in records:
            record["student"] = pick(students.get(str(record.get("student_id"))), fields)
        return records

    def attach_people(self, records: List[dict], *, source: str, target: str) -> List[dict]:
        people = self.users_by_id(r.get(source) for r in records)
        for record in records:
            record[target] = pick(people.get(str(record.get(source))), PERSON_SUMMARY_FIELDS)
        return records


__all__ = ["ResourceService", "pick", "STUDENT_SUMMARY_FIELDS", "PERSON_SUMMARY_FIELDS"]
