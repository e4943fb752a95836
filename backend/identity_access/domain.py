"""
Identity domain types: roles, verified identities and request actors.

Why:
- Centralize the closed set of roles so the policy engine, the profile loader
  and the web layer cannot drift apart.
- Keep the per-request actor immutable; it is built once by the auth
  middleware and read by every downstream decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"

    @classmethod
    def parse(cls, value: object) -> "Role | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Identity:
    """Stable identity returned by the credential verifier (auth user id + email)."""

    id: str
    email: str


@dataclass(frozen=True)
class Actor:
    """Authenticated identity plus role, as seen by the access policy.

    `linked_student_ids` holds the student records the actor is related to:
    children (by parent email) for parents, the own record for students.
    """

    identity_id: str
    profile_id: str
    email: str
    role: Role
    name: str = ""
    linked_student_ids: frozenset[str] = field(default_factory=frozenset)


__all__ = ["Role", "Identity", "Actor"]
