"SchoolHub API"
from __future__ import annotations

import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from school.errors import SchoolError


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via SCHOOLHUB_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SCHOOLHUB_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


from dotenv import load_dotenv

if _should_load_dotenv():
    load_dotenv()

from . import config, wiring
from .routes.attendance import attendance_router
from .routes.auth import auth_router
from .routes.common import private_error
from .routes.notes import notes_router
from .routes.students import students_router
from .routes.tests import tests_router
from .routes.users import users_router

# Minimal production safety checks (fail-fast on insecure config)
config.ensure_secure_config_on_startup()

logging.getLogger("schoolhub").setLevel((os.getenv("SCHOOLHUB_LOG_LEVEL") or "INFO").upper())
logger = logging.getLogger("schoolhub.web")

app = FastAPI(title="SchoolHub", description="School management API", version="2.0.0")

PUBLIC_PATHS = frozenset({"/", "/health", "/api/auth/login", "/api/auth/logout"})


def _is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    # Interactive docs stay reachable in local development only.
    return path in ("/docs", "/openapi.json") and config.environment() == "dev"


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if request.method == "OPTIONS" or _is_public_path(path):
        return await call_next(request)
    try:
        actor = wiring.get_authenticator().authenticate(request.headers.get("Authorization"))
    except SchoolError as exc:
        # Exception handlers do not see errors raised in middleware.
        if exc.status_code == 401:
            logger.info("Rejected request to %s: %s", path, exc.code)
        return private_error(exc)
    request.state.actor = actor
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.frontend_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchoolError)
async def school_error_handler(request: Request, exc: SchoolError):
    return private_error(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Keep 400 semantics for malformed bodies and query params (not FastAPI's 422).
    return JSONResponse(
        {"error": "bad_request", "detail": "invalid_payload"},
        status_code=400,
        headers={"Cache-Control": "private, no-store"},
    )


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(students_router)
app.include_router(attendance_router)
app.include_router(notes_router)
app.include_router(tests_router)


@app.get("/")
async def index():
    return {"name": "SchoolHub API", "version": app.version}


@app.get("/health")
async def health_check():
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "no-store"})
