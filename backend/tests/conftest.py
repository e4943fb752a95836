"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh,
seeded in-memory school repository plus a static credential verifier so API
tests never touch Supabase or Postgres.
"""
from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure modules in backend/ are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from identity_access.domain import Actor, Identity  # noqa: E402
from identity_access.profiles import ProfileLoader  # noqa: E402
from school.errors import Unauthenticated  # noqa: E402
from school.repo import InMemorySchoolRepo  # noqa: E402


class StaticVerifier:
    """Credential verifier backed by a fixed token -> identity table."""

    def __init__(self, identities: dict[str, Identity] | None = None) -> None:
        self.identities = dict(identities or {})

    def verify(self, token: str) -> Identity:
        identity = self.identities.get(token)
        if identity is None:
            raise Unauthenticated("invalid_token")
        return identity


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    def notify(self, *, recipient: str, kind: str, message: str) -> None:
        self.sent.append({"recipient": recipient, "kind": kind, "message": message})


# name -> (profile id, auth id, email, role)
PEOPLE = {
    "admin": ("u-admin", "auth-admin", "admin@school.test", "admin"),
    "teacher": ("u-teacher", "auth-teacher", "teacher@school.test", "teacher"),
    "teacher2": ("u-teacher2", "auth-teacher2", "teacher2@school.test", "teacher"),
    "parent": ("u-parent", "auth-parent", "parent@example.com", "parent"),
    "other_parent": ("u-other-parent", "auth-other-parent", "other@example.com", "parent"),
    "lonely_parent": ("u-lonely-parent", "auth-lonely-parent", "lonely@example.com", "parent"),
    "student": ("u-student", "auth-student", "alice@school.test", "student"),
}


def _seed(repo: InMemorySchoolRepo) -> SimpleNamespace:
    identities: dict[str, Identity] = {}
    for name, (profile_id, auth_id, email, role) in PEOPLE.items():
        repo.insert(
            "users",
            {"id": profile_id, "auth_user_id": auth_id, "name": name.replace("_", " ").title(), "email": email, "role": role},
        )
        identities[f"{name}-token"] = Identity(id=auth_id, email=email)

    students = {
        "alice": repo.insert(
            "students",
            {"id": "s-alice", "name": "Alice", "grade": "5", "parent_email": "parent@example.com", "user_id": "auth-student"},
        ),
        "bob": repo.insert(
            "students",
            {"id": "s-bob", "name": "Bob", "grade": "5", "parent_email": "other@example.com"},
        ),
        "carol": repo.insert("students", {"id": "s-carol", "name": "Carol", "grade": "6"}),
    }
    loader = ProfileLoader(repo)

    def actor(name: str) -> Actor:
        return loader.load(identities[f"{name}-token"])

    return SimpleNamespace(repo=repo, identities=identities, students=students, actor=actor)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repo() -> InMemorySchoolRepo:
    return InMemorySchoolRepo()


@pytest.fixture
def seeded(repo: InMemorySchoolRepo) -> SimpleNamespace:
    """Seeded repo: 7 profiles, students Alice/Bob (grade 5) and Carol (grade 6)."""
    return _seed(repo)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def _wire_in_memory_backends(monkeypatch: pytest.MonkeyPatch, seeded: SimpleNamespace):
    """Point the web wiring at the seeded repo and a static verifier per test.

    Why:
        The wiring module keeps process-wide singletons; without a reset a
        repository or verifier swapped by one test leaks into the next.
    """
    for var in ("SCHOOLHUB_ENV", "SUPABASE_JWT_SECRET", "SCHOOL_DATABASE_URL", "DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)
    from web import wiring

    wiring.set_repo(seeded.repo)
    wiring.set_verifier(StaticVerifier(seeded.identities))
    wiring.set_session_issuer(None)
    yield
    wiring.set_repo(None)
    wiring.set_verifier(None)
    wiring.set_session_issuer(None)
