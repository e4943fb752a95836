"""Structural input validation shared by the school services.

Runs before the access policy is consulted; every failure raises
`ValidationFailed` with a stable detail code.
"""
from __future__ import annotations

import math
from datetime import date
from numbers import Real
from typing import Any, Mapping, Optional

from .errors import ValidationFailed

ATTENDANCE_STATUSES = frozenset({"present", "absent"})


def require_text(payload: Mapping[str, Any], field: str, *, max_length: int = 200) -> str:
    value = payload.get(field)
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"missing_{field}")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationFailed(f"invalid_{field}")
    return value


def optional_text(payload: Mapping[str, Any], field: str, *, max_length: int = 200) -> Optional[str]:
    value = payload.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailed(f"invalid_{field}")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationFailed(f"invalid_{field}")
    return value or None


def require_id(value: Any, field: str) -> str:
    if value is None or isinstance(value, bool):
        raise ValidationFailed(f"missing_{field}")
    text = str(value).strip()
    if not text:
        raise ValidationFailed(f"missing_{field}")
    return text


def parse_date(value: Any, field: str = "date") -> str:
    """Return an ISO `YYYY-MM-DD` string; accepts ISO datetimes and truncates them."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationFailed(f"missing_{field}")
    if isinstance(value, date):
        return value.isoformat()[:10]
    if not isinstance(value, str):
        raise ValidationFailed(f"invalid_{field}")
    try:
        return date.fromisoformat(value.strip()[:10]).isoformat()
    except ValueError as exc:
        raise ValidationFailed(f"invalid_{field}") from exc


def optional_date(value: Any, field: str = "date") -> Optional[str]:
    if value is None or value == "":
        return None
    return parse_date(value, field)


def validate_status(value: Any) -> str:
    if value is None or value == "":
        raise ValidationFailed("missing_status")
    if not isinstance(value, str) or value not in ATTENDANCE_STATUSES:
        raise ValidationFailed("invalid_status")
    return value


def validate_attendance_record(record: Any) -> dict:
    """Validate one attendance entry: {student_id, date, status}."""
    if not isinstance(record, Mapping):
        raise ValidationFailed("invalid_record")
    return {
        "student_id": require_id(record.get("student_id"), "student_id"),
        "date": parse_date(record.get("date")),
        "status": validate_status(record.get("status")),
    }


def _number(value: Any, field: str) -> float | int:
    if value is None:
        raise ValidationFailed(f"missing_{field}")
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationFailed(f"invalid_{field}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationFailed(f"invalid_{field}")
    return value


def validate_mark(mark: Any) -> dict:
    """Validate one test mark: 0 <= score <= max_score and max_score > 0."""
    if not isinstance(mark, Mapping):
        raise ValidationFailed("invalid_mark")
    student_id = require_id(mark.get("student_id"), "student_id")
    score = _number(mark.get("score"), "score")
    max_score = _number(mark.get("max_score"), "max_score")
    if max_score <= 0:
        raise ValidationFailed("invalid_max_score")
    if score < 0 or score > max_score:
        raise ValidationFailed("invalid_score")
    return {"student_id": student_id, "score": score, "max_score": max_score}


def require_batch(items: Any, field: str) -> list:
    if not isinstance(items, list) or not items:
        raise ValidationFailed(f"missing_{field}")
    return items


__all__ = [
    "ATTENDANCE_STATUSES",
    "require_text",
    "optional_text",
    "require_id",
    "parse_date",
    "optional_date",
    "validate_status",
    "validate_attendance_record",
    "validate_mark",
    "require_batch",
]
