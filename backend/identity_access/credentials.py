"""
Credential verification for bearer tokens issued by Supabase Auth.

Why:
    Keep token validation outside the web adapter so it can be unit tested and
    swapped: production asks Supabase (`auth.get_user`), deployments holding the
    project's JWT secret verify locally with python-jose, and tests inject a
    static verifier.

Errors:
    Every failure surfaces as `Unauthenticated` with a stable detail code; the
    underlying exception is chained but never echoed to clients.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from jose import jwt
from jose.exceptions import JOSEError

from school.errors import Unauthenticated

from .domain import Actor, Identity

logger = logging.getLogger("schoolhub.identity_access")

SUPABASE_AUDIENCE = "authenticated"


class CredentialVerifier(Protocol):
    def verify(self, token: str) -> Identity:
        ...


class ProfileSource(Protocol):
    def load(self, identity: Identity) -> Actor:
        ...


def parse_bearer(header: Optional[str]) -> str:
    """Return the token of an `Authorization: Bearer <token>` header."""
    if not header:
        raise Unauthenticated("missing_token")
    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise Unauthenticated("malformed_authorization")
    return token


class SupabaseCredentialVerifier:
    """Ask Supabase Auth who owns the token (`client.auth.get_user`)."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def verify(self, token: str) -> Identity:
        try:
            response = self._client.auth.get_user(token)
        except Exception as exc:  # supabase raises transport and auth errors alike
            logger.info("Supabase token verification failed: %s", exc.__class__.__name__)
            raise Unauthenticated("invalid_token") from exc
        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise Unauthenticated("invalid_token")
        return Identity(id=str(user.id), email=str(getattr(user, "email", "") or ""))


class JWTCredentialVerifier:
    """Verify Supabase-issued HS256 access tokens with the project JWT secret."""

    def __init__(self, secret: str, *, audience: str = SUPABASE_AUDIENCE) -> None:
        if not secret:
            raise ValueError("jwt_secret_required")
        self._secret = secret
        self._audience = audience

    def verify(self, token: str) -> Identity:
        try:
            claims = jwt.decode(token, self._secret, algorithms=["HS256"], audience=self._audience)
        except JOSEError as exc:
            raise Unauthenticated("invalid_token") from exc
        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub:
            raise Unauthenticated("invalid_token")
        email = claims.get("email")
        return Identity(id=sub, email=email if isinstance(email, str) else "")


class Authenticator:
    """Authorization header -> Actor (verify credential, then load profile)."""

    def __init__(self, verifier: CredentialVerifier, profiles: ProfileSource) -> None:
        self.verifier = verifier
        self.profiles = profiles

    def authenticate(self, authorization: Optional[str]) -> Actor:
        token = parse_bearer(authorization)
        identity = self.verifier.verify(token)
        return self.profiles.load(identity)


__all__ = [
    "CredentialVerifier",
    "SupabaseCredentialVerifier",
    "JWTCredentialVerifier",
    "Authenticator",
    "parse_bearer",
    "SUPABASE_AUDIENCE",
]
