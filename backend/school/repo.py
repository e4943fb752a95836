"""
Persistence port for school records plus an in-memory implementation.

Why:
    Services depend on a small set of generic primitives (filtered query, get,
    insert, update, delete, upsert by natural key) instead of a concrete
    database client. Production wires the Postgres repository
    (`school.repo_db.DBSchoolRepo`); tests and offline development use
    `InMemorySchoolRepo`.

Tables:
    users, students, attendance, notes, tests, test_marks. Column lists live in
    `TABLE_COLUMNS` and double as an allow-list for the SQL repository.
"""
from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple
from uuid import uuid4

from .filters import RowFilter, lookup

TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "users": ("id", "auth_user_id", "name", "email", "role", "created_at"),
    "students": ("id", "name", "grade", "parent_email", "user_id", "created_at", "updated_at"),
    "attendance": ("id", "student_id", "date", "status", "created_at"),
    "notes": (
        "id",
        "title",
        "file_url",
        "grade",
        "subject",
        "chapter",
        "uploaded_by",
        "created_at",
        "updated_at",
    ),
    "tests": ("id", "subject", "chapter", "test_date", "grade", "created_by", "created_at", "updated_at"),
    "test_marks": ("id", "test_id", "student_id", "score", "max_score", "created_at"),
}

# Dotted filter prefixes resolve through these relations: prefix -> (table, local fk column).
RELATIONS: Dict[str, Tuple[str, str]] = {
    "student": ("students", "student_id"),
    "test": ("tests", "test_id"),
}

# Rows removed together with their parent (mirrors ON DELETE CASCADE in schema.sql).
CASCADES: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "students": (("attendance", "student_id"), ("test_marks", "student_id")),
    "tests": (("test_marks", "test_id"),),
}

Ordering = Sequence[Tuple[str, bool]]  # (column, descending)


class SchoolRepoProtocol(Protocol):
    def query(self, table: str, row_filter: Optional[RowFilter] = None, *, order_by: Ordering = ()) -> List[dict]:
        ...

    def get(self, table: str, record_id: str) -> Optional[dict]:
        ...

    def insert(self, table: str, fields: Mapping[str, Any]) -> dict:
        ...

    def update(self, table: str, record_id: str, fields: Mapping[str, Any]) -> Optional[dict]:
        ...

    def delete(self, table: str, record_id: str) -> bool:
        ...

    def upsert(self, table: str, records: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]) -> List[dict]:
        ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sort_key(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return str(value)


def sort_records(records: List[dict], order_by: Ordering) -> List[dict]:
    """Stable multi-column sort; None values go last in both directions (nulls last)."""
    items = list(records)
    for column, descending in reversed(list(order_by)):
        present = [r for r in items if lookup(r, column) is not None]
        missing = [r for r in items if lookup(r, column) is None]
        present.sort(key=lambda r: _sort_key(lookup(r, column)), reverse=descending)
        items = present + missing
    return items


class InMemorySchoolRepo:
    """Dict-backed repository with the same semantics as the SQL repository."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, dict]] = {name: {} for name in TABLE_COLUMNS}

    # --- Helpers ---------------------------------------------------------------

    def _table(self, table: str) -> Dict[str, dict]:
        if table not in self.tables:
            raise ValueError(f"unknown_table:{table}")
        return self.tables[table]

    def _with_relations(self, table: str, record: dict, row_filter: Optional[RowFilter]) -> dict:
        """Attach related rows needed to evaluate dotted filter fields."""
        if row_filter is None:
            return record
        view = dict(record)
        for field in row_filter.fields:
            prefix = field.split(".", 1)[0]
            if "." not in field or prefix not in RELATIONS or prefix in view:
                continue
            related_table, fk = RELATIONS[prefix]
            if fk not in TABLE_COLUMNS[table]:
                continue
            view[prefix] = self.tables[related_table].get(str(record.get(fk)))
        return view

    @staticmethod
    def _clean(table: str, fields: Mapping[str, Any]) -> dict:
        allowed = TABLE_COLUMNS[table]
        return {k: v for k, v in fields.items() if k in allowed and k not in ("id", "created_at")}

    # --- Protocol ----------------------------------------------------------------

    def query(self, table: str, row_filter: Optional[RowFilter] = None, *, order_by: Ordering = ()) -> List[dict]:
        rows = self._table(table).values()
        matched = [
            deepcopy(r) for r in rows if row_filter is None or row_filter.matches(self._with_relations(table, r, row_filter))
        ]
        return sort_records(matched, order_by)

    def get(self, table: str, record_id: str) -> Optional[dict]:
        row = self._table(table).get(str(record_id))
        return deepcopy(row) if row is not None else None

    def insert(self, table: str, fields: Mapping[str, Any]) -> dict:
        rows = self._table(table)
        record_id = str(fields.get("id") or uuid4())
        now = _now()
        row = {column: None for column in TABLE_COLUMNS[table]}
        row.update(self._clean(table, fields))
        row["id"] = record_id
        row["created_at"] = now
        if "updated_at" in row:
            row["updated_at"] = now
        rows[record_id] = row
        return deepcopy(row)

    def update(self, table: str, record_id: str, fields: Mapping[str, Any]) -> Optional[dict]:
        row = self._table(table).get(str(record_id))
        if row is None:
            return None
        row.update(self._clean(table, fields))
        if "updated_at" in row:
            row["updated_at"] = _now()
        return deepcopy(row)

    def delete(self, table: str, record_id: str) -> bool:
        rows = self._table(table)
        existed = rows.pop(str(record_id), None) is not None
        if existed:
            for child_table, fk in CASCADES.get(table, ()):
                children = self.tables[child_table]
                for child_id in [cid for cid, c in children.items() if str(c.get(fk)) == str(record_id)]:
                    self.delete(child_table, child_id)
        return existed

    def upsert(self, table: str, records: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]) -> List[dict]:
        rows = self._table(table)
        out: List[dict] = []
        for record in records:
            key = tuple(str(record.get(k)) for k in conflict_key)
            existing = next(
                (r for r in rows.values() if tuple(str(r.get(k)) for k in conflict_key) == key),
                None,
            )
            if existing is None:
                out.append(self.insert(table, record))
            else:
                out.append(self.update(table, existing["id"], record))  # type: ignore[arg-type]
        return out


__all__ = [
    "TABLE_COLUMNS",
    "RELATIONS",
    "CASCADES",
    "SchoolRepoProtocol",
    "InMemorySchoolRepo",
    "sort_records",
]
