"""
Row filters: conjunctions of simple constraints spliced into repository queries.

Why:
    The access policy returns role-derived scoping as data, not as query code,
    so both the Postgres repository and the in-memory repository can apply it
    and tests can assert on it directly.

Semantics:
    - A filter is a conjunction (AND) of constraints.
    - `op` is one of "eq", "gte", "lte", "in".
    - Dotted fields ("student.parent_email") address the related student row of
      attendance and test-mark records.
    - An *empty* filter matches nothing. Merging with an empty filter is empty.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

OPERATORS = frozenset({"eq", "gte", "lte", "in"})


@dataclass(frozen=True)
class Constraint:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"unsupported_operator:{self.op}")
        if self.op == "in":
            # Normalize to a tuple so the constraint stays hashable.
            object.__setattr__(self, "value", tuple(self.value))

    def matches(self, actual: Any) -> bool:
        if self.op == "eq":
            return actual is not None and _same(actual, self.value)
        if self.op == "in":
            return actual is not None and any(_same(actual, v) for v in self.value)
        if actual is None:
            return False
        left, right = _comparable(actual, self.value)
        if self.op == "gte":
            return left >= right
        return left <= right


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, str) or isinstance(b, str):
        return str(a) == str(b)
    return a == b


def _comparable(a: Any, b: Any) -> tuple[Any, Any]:
    # ISO dates compare correctly as text; mixed str/date inputs are coerced.
    if isinstance(a, str) or isinstance(b, str):
        return str(a), str(b)
    return a, b


def lookup(record: Mapping[str, Any], field: str) -> Any:
    """Resolve a (possibly dotted) field against a record with nested dicts."""
    current: Any = record
    for part in field.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


@dataclass(frozen=True)
class RowFilter:
    constraints: tuple[Constraint, ...] = ()
    empty: bool = False

    @classmethod
    def nothing(cls) -> "RowFilter":
        """Filter that matches no rows (e.g. a parent without linked students)."""
        return cls(empty=True)

    def where(self, field: str, value: Any, op: str = "eq") -> "RowFilter":
        return RowFilter(self.constraints + (Constraint(field, op, value),), self.empty)

    def where_if(self, field: str, value: Any, op: str = "eq") -> "RowFilter":
        """Add a constraint only when a value was supplied (client query params)."""
        if value is None or value == "":
            return self
        return self.where(field, value, op)

    def merge(self, other: Optional["RowFilter"]) -> "RowFilter":
        """Intersect two filters; the result can only be narrower than either side."""
        if other is None:
            return self
        if self.empty or other.empty:
            return RowFilter.nothing()
        seen = list(self.constraints)
        for c in other.constraints:
            if c not in seen:
                seen.append(c)
        return RowFilter(tuple(seen))

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(c.field for c in self.constraints)

    def matches(self, record: Mapping[str, Any], resolve: Callable[[Mapping[str, Any], str], Any] = lookup) -> bool:
        if self.empty:
            return False
        return all(c.matches(resolve(record, c.field)) for c in self.constraints)

    def apply(self, records: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
        return [r for r in records if self.matches(r)]


__all__ = ["Constraint", "RowFilter", "OPERATORS", "lookup"]
