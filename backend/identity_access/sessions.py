"""
Password sessions against Supabase Auth.

Behavior:
    - `login` exchanges email/password for a session via
      `auth.sign_in_with_password`; bad credentials raise `Unauthenticated`.
    - `logout` revokes the token when possible and never fails: a client that
      wants to log out is logged out locally regardless of the remote outcome.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from school.errors import Unauthenticated

logger = logging.getLogger("schoolhub.identity_access")


class SessionIssuer(Protocol):
    def login(self, email: str, password: str) -> dict:
        ...

    def logout(self, token: str | None) -> None:
        ...


class SupabaseSessionIssuer:
    def __init__(self, client: Any) -> None:
        self._client = client

    def login(self, email: str, password: str) -> dict:
        try:
            response = self._client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:  # supabase raises AuthApiError for bad credentials
            logger.info("Login failed: %s", exc.__class__.__name__)
            raise Unauthenticated("invalid_credentials") from exc
        session = getattr(response, "session", None)
        user = getattr(response, "user", None)
        if session is None or user is None:
            raise Unauthenticated("invalid_credentials")
        return {
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
            "expires_in": session.expires_in,
            "user": {"id": str(user.id), "email": getattr(user, "email", None)},
        }

    def logout(self, token: str | None) -> None:
        if not token:
            return
        try:
            self._client.auth.admin.sign_out(token)
        except Exception as exc:  # best effort
            logger.info("Remote sign-out failed: %s", exc.__class__.__name__)


__all__ = ["SessionIssuer", "SupabaseSessionIssuer"]
