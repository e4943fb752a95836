"""
Postgres-backed repository for school records.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- SQL is composed with `psycopg.sql` from the column allow-list in
  `school.repo.TABLE_COLUMNS`; values are always bound parameters.
- Returns plain dicts (ids, dates and timestamps as ISO text) to keep the
  services and web adapter independent of the driver.
- Driver errors surface as `PersistenceFailure` with the exception class logged
  but no row data.

Dotted filters (`student.parent_email`) become a sub-select on the related
table, e.g. `student_id in (select id from public.students where parent_email = %s)`.
"""
from __future__ import annotations

import logging
import os
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from .errors import PersistenceFailure
from .filters import Constraint, RowFilter
from .repo import RELATIONS, TABLE_COLUMNS, Ordering

logger = logging.getLogger("schoolhub.school.repo")

# uuid columns are compared as text so string ids bind without casts.
_UUID_COLUMNS = frozenset(
    {"id", "student_id", "test_id", "uploaded_by", "created_by", "auth_user_id", "user_id"}
)
_OPS = {"eq": "=", "gte": ">=", "lte": "<="}


def _dsn() -> str:
    """Resolve the DSN for DB access from the environment."""
    for key in ("SCHOOL_DATABASE_URL", "DATABASE_URL", "SUPABASE_DB_URL"):
        dsn = (os.getenv(key) or "").strip()
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBSchoolRepo")


def _to_plain(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _row_to_dict(row: Mapping[str, Any]) -> dict:
    return {k: _to_plain(v) for k, v in row.items()}


class DBSchoolRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize without connecting; connections are opened per call."""
        self._dsn = dsn or _dsn()

    # --- SQL helpers -------------------------------------------------------------

    @staticmethod
    def _columns(table: str) -> Tuple[str, ...]:
        try:
            return TABLE_COLUMNS[table]
        except KeyError as exc:
            raise ValueError(f"unknown_table:{table}") from exc

    @staticmethod
    def _column_ref(column: str) -> sql.Composable:
        ident = sql.Identifier(column)
        if column in _UUID_COLUMNS:
            return sql.SQL("{}::text").format(ident)
        return ident

    def _select_list(self, table: str) -> sql.Composable:
        return sql.SQL(", ").join(
            sql.SQL("{} as {}").format(self._column_ref(c), sql.Identifier(c)) for c in self._columns(table)
        )

    def _predicate(self, table: str, constraint: Constraint) -> Tuple[sql.Composable, List[Any]]:
        field = constraint.field
        if "." in field:
            prefix, column = field.split(".", 1)
            if prefix not in RELATIONS:
                raise ValueError(f"unknown_relation:{prefix}")
            related_table, fk = RELATIONS[prefix]
            if fk not in self._columns(table) or column not in self._columns(related_table):
                raise ValueError(f"invalid_filter_field:{field}")
            inner, params = self._predicate(related_table, Constraint(column, constraint.op, constraint.value))
            clause = sql.SQL("{fk} in (select id::text from {tbl} where {inner})").format(
                fk=self._column_ref(fk),
                tbl=sql.Identifier("public", related_table),
                inner=inner,
            )
            return clause, params
        if field not in self._columns(table):
            raise ValueError(f"invalid_filter_field:{field}")
        ref = self._column_ref(field)
        if constraint.op == "in":
            return sql.SQL("{} = any(%s)").format(ref), [[str(v) for v in constraint.value]]
        return sql.SQL("{} {} %s").format(ref, sql.SQL(_OPS[constraint.op])), [constraint.value]

    def _where(self, table: str, row_filter: Optional[RowFilter]) -> Tuple[sql.Composable, List[Any]]:
        if row_filter is None or (not row_filter.constraints and not row_filter.empty):
            return sql.SQL(""), []
        if row_filter.empty:
            return sql.SQL(" where false"), []
        parts: List[sql.Composable] = []
        params: List[Any] = []
        for constraint in row_filter.constraints:
            clause, values = self._predicate(table, constraint)
            parts.append(clause)
            params.extend(values)
        return sql.SQL(" where ") + sql.SQL(" and ").join(parts), params

    def _order(self, table: str, order_by: Ordering) -> sql.Composable:
        items = []
        for column, descending in order_by:
            if column not in self._columns(table):
                raise ValueError(f"invalid_order_field:{column}")
            direction = sql.SQL("desc nulls last" if descending else "asc nulls last")
            items.append(sql.SQL("{} {}").format(sql.Identifier(column), direction))
        if not items:
            return sql.SQL("")
        return sql.SQL(" order by ") + sql.SQL(", ").join(items)

    def _writable(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        allowed = self._columns(table)
        return {k: v for k, v in fields.items() if k in allowed and k not in ("id", "created_at", "updated_at")}

    def _execute(self, statement: sql.Composable, params: Sequence[Any]) -> List[dict]:
        try:
            with psycopg.connect(self._dsn, row_factory=dict_row) as conn:
                with conn.cursor() as cur:
                    cur.execute(statement, params)
                    rows = cur.fetchall() if cur.description else []
            return [_row_to_dict(r) for r in rows]
        except psycopg.Error as exc:
            logger.warning("School repo query failed: %s", exc.__class__.__name__)
            raise PersistenceFailure("database_error") from exc

    # --- Protocol ----------------------------------------------------------------

    def query(self, table: str, row_filter: Optional[RowFilter] = None, *, order_by: Ordering = ()) -> List[dict]:
        where, params = self._where(table, row_filter)
        statement = sql.SQL("select {cols} from {tbl}").format(
            cols=self._select_list(table), tbl=sql.Identifier("public", table)
        )
        return self._execute(statement + where + self._order(table, order_by), params)

    def get(self, table: str, record_id: str) -> Optional[dict]:
        rows = self.query(table, RowFilter().where("id", str(record_id)))
        return rows[0] if rows else None

    def insert(self, table: str, fields: Mapping[str, Any]) -> dict:
        values = self._writable(table, fields)
        if not values:
            raise ValueError("empty_insert")
        statement = sql.SQL("insert into {tbl} ({cols}) values ({vals}) returning {ret}").format(
            tbl=sql.Identifier("public", table),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in values),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in values),
            ret=self._select_list(table),
        )
        return self._execute(statement, list(values.values()))[0]

    def update(self, table: str, record_id: str, fields: Mapping[str, Any]) -> Optional[dict]:
        values = self._writable(table, fields)
        assignments = [sql.SQL("{} = %s").format(sql.Identifier(c)) for c in values]
        if "updated_at" in self._columns(table):
            assignments.append(sql.SQL("updated_at = now()"))
        if not assignments:
            return self.get(table, record_id)
        statement = sql.SQL("update {tbl} set {sets} where id::text = %s returning {ret}").format(
            tbl=sql.Identifier("public", table),
            sets=sql.SQL(", ").join(assignments),
            ret=self._select_list(table),
        )
        rows = self._execute(statement, [*values.values(), str(record_id)])
        return rows[0] if rows else None

    def delete(self, table: str, record_id: str) -> bool:
        statement = sql.SQL("delete from {tbl} where id::text = %s returning id::text as id").format(
            tbl=sql.Identifier("public", table)
        )
        return bool(self._execute(statement, [str(record_id)]))

    def upsert(self, table: str, records: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]) -> List[dict]:
        """Insert-or-replace by natural key in a single statement (one transaction)."""
        if not records:
            return []
        rows = [self._writable(table, r) for r in records]
        columns = list(rows[0].keys())
        if any(list(r.keys()) != columns for r in rows):
            raise ValueError("inconsistent_upsert_columns")
        updates = [c for c in columns if c not in conflict_key]
        set_clause = [sql.SQL("{c} = excluded.{c}").format(c=sql.Identifier(c)) for c in updates]
        if "updated_at" in self._columns(table):
            set_clause.append(sql.SQL("updated_at = now()"))
        row_sql = sql.SQL("({})").format(sql.SQL(", ").join(sql.Placeholder() for _ in columns))
        statement = sql.SQL(
            "insert into {tbl} ({cols}) values {rows} on conflict ({key}) do update set {sets} returning {ret}"
        ).format(
            tbl=sql.Identifier("public", table),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            rows=sql.SQL(", ").join(row_sql for _ in rows),
            key=sql.SQL(", ").join(sql.Identifier(c) for c in conflict_key),
            sets=sql.SQL(", ").join(set_clause),
            ret=self._select_list(table),
        )
        params = [row[c] for row in rows for c in columns]
        return self._execute(statement, params)


__all__ = ["DBSchoolRepo"]
