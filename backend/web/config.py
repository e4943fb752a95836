"""
Configuration and startup security checks for SchoolHub.

Why: The API serves personal data about minors (attendance, marks). This module
provides a single guard that refuses obviously insecure production deployments
without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

_PLACEHOLDERS = ("DUMMY", "CHANGE_ME", "YOUR_", "TEST_ONLY")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def environment() -> str:
    return (os.getenv("SCHOOLHUB_ENV", "dev") or "dev").strip().lower()


def database_dsn() -> str:
    for key in ("SCHOOL_DATABASE_URL", "DATABASE_URL"):
        value = (os.getenv(key) or "").strip()
        if value:
            return value
    return ""


def frontend_origins() -> list[str]:
    raw = os.getenv("FRONTEND_URL", "http://localhost:3000") or ""
    return [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]


def _is_placeholder(value: str) -> bool:
    upper = value.upper()
    return any(upper.startswith(p) for p in _PLACEHOLDERS)


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/staging only):
    - SUPABASE_URL must be set and use https.
    - SUPABASE_ANON_KEY (or SUPABASE_SERVICE_ROLE_KEY) must be set and not a
      placeholder.
    - A database DSN must be configured and must not disable TLS.
    """
    if not _is_prod_like(environment()):
        return  # dev/test remain permissive

    # 1) Supabase endpoint
    url = (os.getenv("SUPABASE_URL") or "").strip()
    if not url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if not url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")

    # 2) Supabase key
    key = (os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not key or _is_placeholder(key):
        raise SystemExit(
            "Refusing to start: SUPABASE_ANON_KEY is unset or a placeholder in production."
        )

    # 3) Postgres DSN with TLS
    dsn = database_dsn()
    if not dsn:
        raise SystemExit("Refusing to start: DATABASE_URL is unset in production.")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
