"""User profiles: own profile for everyone, directory and role changes for admins."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from identity_access.domain import Actor, Role

from ..errors import NotFound, ValidationFailed
from ..filters import RowFilter
from ..policy import Operation, ResourceKind
from .base import ResourceService


class UsersService(ResourceService):
    kind = ResourceKind.USER
    table = "users"

    def me(self, actor: Actor) -> dict:
        profile = self.repo.get(self.table, actor.profile_id)
        if profile is None:
            raise NotFound("user_not_found")
        profile["linked_student_ids"] = sorted(actor.linked_student_ids)
        return profile

    def list(self, actor: Actor, *, role: Optional[str] = None) -> List[dict]:
        """Admins see every profile; other roles only see their own row."""
        client = RowFilter()
        if role:
            parsed = Role.parse(role)
            if parsed is None:
                raise ValidationFailed("invalid_role")
            client = client.where("role", parsed.value)
        return self.scoped_query(actor, client, order_by=[("name", False)])

    def get(self, actor: Actor, user_id: str) -> dict:
        profile = self.fetch(user_id)
        self.authorize(actor, Operation.READ, profile)
        return profile

    def update_role(self, actor: Actor, user_id: str, payload: Mapping[str, Any]) -> dict:
        role = Role.parse(payload.get("role"))
        if role is None:
            raise ValidationFailed("invalid_role")
        target = self.fetch(user_id)
        self.authorize(actor, Operation.UPDATE, target)
        updated = self.repo.update(self.table, target["id"], {"role": role.value})
        if updated is None:
            raise NotFound("user_not_found")
        return updated


__all__ = ["UsersService"]
