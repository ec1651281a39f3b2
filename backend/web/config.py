"""
Configuration and startup security checks for the Builder backend.

Why: The Builder writes into live Metro databases. A deployment with auth
switched off or a guessable token secret would let anyone publish to
production. This module provides a single guard that enforces minimal
production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os
from typing import List

from backend.identity_access.settings import DEV_TOKEN_SECRET, auth_enabled, get_env

MIN_TOKEN_SECRET_LENGTH = 32

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "https://builder.mentes.me",
    "https://builder-prod.mentes.me",
)


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - Auth must be enabled.
    - BUILDER_AUTH_TOKEN_SECRET must be set, not the dev placeholder and at
      least 32 characters long.
    - An enabled object store needs a bucket.
    - An enabled Metro data source (TEST or PRODUCTION) needs a URL.
    """

    if not _is_prod_like(get_env()):
        return  # dev/test remain permissive

    # 1) Auth cannot be switched off
    if not auth_enabled():
        raise SystemExit("Refusing to start: BUILDER_AUTH_ENABLED=false is not allowed in production/staging.")

    # 2) Token secret
    secret = (os.getenv("BUILDER_AUTH_TOKEN_SECRET") or "").strip()
    if not secret or secret == DEV_TOKEN_SECRET:
        raise SystemExit(
            "Refusing to start: BUILDER_AUTH_TOKEN_SECRET is unset or the development placeholder in production."
        )
    if len(secret) < MIN_TOKEN_SECRET_LENGTH:
        raise SystemExit(
            f"Refusing to start: BUILDER_AUTH_TOKEN_SECRET must be at least {MIN_TOKEN_SECRET_LENGTH} characters in production."
        )

    # 3) Object store
    if _flag("BUILDER_S3_ENABLED") and not (os.getenv("BUILDER_S3_BUCKET") or "").strip():
        raise SystemExit("Refusing to start: BUILDER_S3_ENABLED=true requires BUILDER_S3_BUCKET in production.")

    # 4) Metro data sources
    for flag, url_var in (
        ("BUILDER_METRO_ENABLED", "BUILDER_METRO_DATASOURCE_URL"),
        ("BUILDER_METRO_PROD_ENABLED", "BUILDER_METRO_PROD_DATASOURCE_URL"),
    ):
        if _flag(flag) and not (os.getenv(url_var) or "").strip():
            raise SystemExit(f"Refusing to start: {flag}=true requires {url_var}.")


def get_cors_origins() -> List[str]:
    raw = (os.getenv("BUILDER_CORS_ORIGINS") or "").strip()
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


__all__ = ["ensure_secure_config_on_startup", "get_cors_origins"]
