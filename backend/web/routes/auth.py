"""
Authentication routes: password login, logout and the current profile.

Notes:
    - Login and logout are public paths (see `main.PUBLIC_PATHS`); `/me` needs
      a bearer token like every other API route.
    - Logout always reports success; remote revocation is best effort.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

from identity_access.credentials import parse_bearer
from school.errors import SchoolError, ValidationFailed
from school.services import UsersService

from .. import wiring
from .common import current_actor, json_private

auth_router = APIRouter(tags=["Auth"])  # explicit paths below
logger = logging.getLogger("schoolhub.web.auth")


class LoginPayload(BaseModel):
    email: str | None = None
    password: str | None = None


@auth_router.post("/api/auth/login")
async def login(payload: LoginPayload):
    """Exchange email/password for a Supabase session (access + refresh token)."""
    email = (payload.email or "").strip()
    if not email or not payload.password:
        raise ValidationFailed("missing_credentials")
    session = wiring.get_session_issuer().login(email, payload.password)
    return json_private(session)


@auth_router.post("/api/auth/logout")
async def logout(request: Request):
    try:
        token = parse_bearer(request.headers.get("Authorization"))
        wiring.get_session_issuer().logout(token)
    except SchoolError as exc:
        logger.info("Logout without usable session: %s", exc.code)
    except Exception as exc:  # best effort; the client is logged out locally regardless
        logger.warning("Logout failed: %s", exc.__class__.__name__)
    return json_private({"message": "Logged out successfully"})


@auth_router.get("/api/auth/me")
async def me(request: Request):
    actor = current_actor(request)
    return json_private(UsersService(wiring.get_repo()).me(actor))
