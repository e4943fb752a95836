"""
Process-wide collaborators: repository, credential verifier, session issuer.

Why:
    Select the persistence and auth backends once (lazily, to avoid import-time
    network or DB access in tests) and let tests swap them via the setters.

Behavior:
    - Repository: Postgres (`DBSchoolRepo`) when a DSN is configured, otherwise
      the in-memory repository with a warning.
    - Verifier: local HS256 verification when SUPABASE_JWT_SECRET is set,
      otherwise Supabase `auth.get_user`.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Optional

from identity_access.credentials import (
    Authenticator,
    CredentialVerifier,
    JWTCredentialVerifier,
    SupabaseCredentialVerifier,
)
from identity_access.profiles import ProfileLoader
from identity_access.sessions import SessionIssuer, SupabaseSessionIssuer
from school.errors import Unauthenticated
from school.repo import InMemorySchoolRepo, SchoolRepoProtocol

from . import config

logger = logging.getLogger("schoolhub.web")

_REPO: Optional[SchoolRepoProtocol] = None
_VERIFIER: Optional[CredentialVerifier] = None
_SESSIONS: Optional[SessionIssuer] = None
_SUPABASE: Any = None


def _build_default_repo() -> SchoolRepoProtocol:
    """Prefer the Postgres repo; fall back to in-memory when no DSN is configured."""
    dsn = config.database_dsn()
    if not dsn:
        logger.warning("No database DSN configured; using in-memory school repo")
        return InMemorySchoolRepo()
    from school.repo_db import DBSchoolRepo

    logger.info("School repo wired to Postgres")
    return DBSchoolRepo(dsn)


def get_repo() -> SchoolRepoProtocol:
    global _REPO
    if _REPO is None:
        _REPO = _build_default_repo()
    return _REPO


def set_repo(repo: Optional[SchoolRepoProtocol]) -> None:
    """Allow tests to swap the repository implementation (None re-selects lazily)."""
    global _REPO
    _REPO = repo


def _supabase_client() -> Any:
    global _SUPABASE
    if _SUPABASE is None:
        url = (os.getenv("SUPABASE_URL") or "").strip()
        key = (os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
        if not url or not key:
            raise Unauthenticated("auth_unavailable")
        from supabase import create_client

        _SUPABASE = create_client(url, key)
        logger.info("Supabase client created for %s", url)
    return _SUPABASE


def get_verifier() -> CredentialVerifier:
    global _VERIFIER
    if _VERIFIER is None:
        secret = (os.getenv("SUPABASE_JWT_SECRET") or "").strip()
        if secret:
            _VERIFIER = JWTCredentialVerifier(secret)
        else:
            _VERIFIER = SupabaseCredentialVerifier(_supabase_client())
    return _VERIFIER


def set_verifier(verifier: Optional[CredentialVerifier]) -> None:
    global _VERIFIER
    _VERIFIER = verifier


def get_session_issuer() -> SessionIssuer:
    global _SESSIONS
    if _SESSIONS is None:
        _SESSIONS = SupabaseSessionIssuer(_supabase_client())
    return _SESSIONS


def set_session_issuer(issuer: Optional[SessionIssuer]) -> None:
    global _SESSIONS
    _SESSIONS = issuer


def get_authenticator() -> Authenticator:
    return Authenticator(get_verifier(), ProfileLoader(get_repo()))
