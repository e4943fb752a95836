"""User profile routes: directory and role management for admins."""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from school.services import UsersService

from .. import wiring
from .common import current_actor, json_private

users_router = APIRouter(tags=["Users"])  # explicit paths below


class RoleUpdatePayload(BaseModel):
    role: str | None = None


def _service() -> UsersService:
    return UsersService(wiring.get_repo())


@users_router.get("/api/users")
async def list_users(request: Request, role: str | None = None):
    return json_private(_service().list(current_actor(request), role=role))


@users_router.get("/api/users/{user_id}")
async def get_user(request: Request, user_id: str):
    return json_private(_service().get(current_actor(request), user_id))


@users_router.patch("/api/users/{user_id}/role")
async def update_user_role(request: Request, user_id: str, payload: RoleUpdatePayload):
    """Change a profile's role. Admin only; 400 on unknown roles."""
    return json_private(_service().update_role(current_actor(request), user_id, payload.model_dump()))
