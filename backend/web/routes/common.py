"""Shared helpers for the API routers: private JSON responses and the request actor."""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from identity_access.domain import Actor
from school.errors import PersistenceFailure, SchoolError, Unauthenticated

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers.

    Every endpoint serves role-scoped data about students; keep it out of
    proxies and browser history.
    """
    return JSONResponse(content=payload, status_code=status_code, headers=dict(PRIVATE_HEADERS))


def private_error(exc: SchoolError) -> JSONResponse:
    """Map a SchoolError to its JSON body; persistence details stay opaque."""
    body = {"error": exc.error}
    if not isinstance(exc, PersistenceFailure):
        body["detail"] = exc.code
    return JSONResponse(content=body, status_code=exc.status_code, headers=dict(PRIVATE_HEADERS))


def current_actor(request: Request) -> Actor:
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise Unauthenticated("missing_actor")
    return actor


def deleted(message: str) -> JSONResponse:
    return json_private({"message": message})
