"""Identity -> Actor: role-bearing profile plus the student records linked to it."""
from __future__ import annotations

import logging

from school.errors import Unauthenticated
from school.filters import RowFilter
from school.repo import SchoolRepoProtocol

from .domain import Actor, Identity, Role

logger = logging.getLogger("schoolhub.identity_access")


class ProfileLoader:
    def __init__(self, repo: SchoolRepoProtocol) -> None:
        self.repo = repo

    def _linked_students(self, role: Role, identity: Identity, email: str) -> frozenset[str]:
        if role is Role.PARENT and email:
            rows = self.repo.query("students", RowFilter().where("parent_email", email))
        elif role is Role.STUDENT:
            rows = self.repo.query("students", RowFilter().where("user_id", identity.id))
        else:
            return frozenset()
        return frozenset(str(r["id"]) for r in rows)

    def load(self, identity: Identity) -> Actor:
        rows = self.repo.query("users", RowFilter().where("auth_user_id", identity.id))
        if not rows:
            logger.info("No profile for identity %s", identity.id)
            raise Unauthenticated("profile_not_found")
        profile = rows[0]
        role = Role.parse(profile.get("role"))
        if role is None:
            logger.warning("Profile %s has unknown role", profile.get("id"))
            raise Unauthenticated("invalid_role")
        email = identity.email or str(profile.get("email") or "")
        return Actor(
            identity_id=identity.id,
            profile_id=str(profile["id"]),
            email=email,
            role=role,
            name=str(profile.get("name") or ""),
            linked_student_ids=self._linked_students(role, identity, email),
        )


__all__ = ["ProfileLoader"]
