"""
Auth configuration read from the environment.

Notes:
    Getters read the environment on every call so tests can monkeypatch
    variables without reloading modules.
"""
from __future__ import annotations

import os

DEV_TOKEN_SECRET = "builder-dev-secret-change-me"
LOCAL_ENVS = frozenset({"dev", "test", "local"})


def get_env() -> str:
    return (os.getenv("BUILDER_ENV") or "dev").strip().lower()


def is_local_env() -> bool:
    return get_env() in LOCAL_ENVS


def auth_enabled() -> bool:
    raw = (os.getenv("BUILDER_AUTH_ENABLED") or "true").strip().lower()
    return raw not in ("0", "false", "no", "off")


def get_auth_username() -> str:
    return (os.getenv("BUILDER_AUTH_USERNAME") or "admin").strip()


def get_auth_password() -> str:
    return os.getenv("BUILDER_AUTH_PASSWORD") or ""


def get_token_secret() -> str:
    return (os.getenv("BUILDER_AUTH_TOKEN_SECRET") or DEV_TOKEN_SECRET).strip()


__all__ = [
    "DEV_TOKEN_SECRET",
    "get_env",
    "is_local_env",
    "auth_enabled",
    "get_auth_username",
    "get_auth_password",
    "get_token_secret",
]
