"""
Error taxonomy for the school backend.

Why:
    Services raise one of these typed errors and the web adapter maps them to
    HTTP status codes in one place. Each error also subclasses the builtin the
    rest of the codebase already catches (ValueError, LookupError,
    PermissionError) so plain `except ValueError` blocks keep working.

Behavior:
    - `code` is a short machine-readable detail such as "invalid_status".
    - `PersistenceFailure` never exposes its code to clients; the adapter
      returns an opaque internal error.
"""
from __future__ import annotations


class SchoolError(Exception):
    """Base class; carries a stable `code` for the response detail."""

    status_code = 500
    error = "internal_error"

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class Unauthenticated(SchoolError):
    status_code = 401
    error = "unauthenticated"


class Forbidden(SchoolError, PermissionError):
    status_code = 403
    error = "forbidden"


class ValidationFailed(SchoolError, ValueError):
    status_code = 400
    error = "bad_request"


class NotFound(SchoolError, LookupError):
    status_code = 404
    error = "not_found"


class PersistenceFailure(SchoolError, RuntimeError):
    status_code = 500
    error = "internal_error"


__all__ = [
    "SchoolError",
    "Unauthenticated",
    "Forbidden",
    "ValidationFailed",
    "NotFound",
    "PersistenceFailure",
]
