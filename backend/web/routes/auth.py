"""
Authentication routes: login and status.

Why:
    The Builder frontend exchanges a username/password for a bearer token once
    and sends it on every `/api/*` call. Both endpoints are public (see the
    auth middleware in `main.py`).

Behavior:
    - Auth disabled: login returns the fixed `auth-disabled` token as ADMIN.
    - Database users are tried first.
    - Only while no active database user exists, the env-configured
      username/password is accepted and yields a legacy ADMIN token.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter
from pydantic import BaseModel

from backend.identity_access.domain import ROLE_ADMIN, Unauthorized
from backend.identity_access.settings import auth_enabled, get_auth_password, get_auth_username
from backend.web import wiring


auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("builder.web.auth")

AUTH_DISABLED_TOKEN = "auth-disabled"
INVALID_CREDENTIALS = "Onjuiste inloggegevens"


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def _login_response(token: str, role: str, display_name: str, user_id: int) -> dict:
    return {"token": token, "role": role, "displayName": display_name, "userId": user_id}


def _matches_env_credentials(username: str, password: str) -> bool:
    expected = get_auth_password()
    if not expected:
        return False
    same_user = hmac.compare_digest(username.encode("utf-8"), get_auth_username().encode("utf-8"))
    same_password = hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))
    return same_user and same_password


@auth_router.post("/api/auth/login")
def login(payload: LoginRequest):
    if not auth_enabled():
        return _login_response(AUTH_DISABLED_TOKEN, ROLE_ADMIN, "Developer", 0)

    users = wiring.get_user_service()
    tokens = wiring.get_token_service()

    user = users.authenticate(payload.username, payload.password)
    if user is not None:
        token = tokens.generate(user.id, user.username, user.role)
        logger.info("Login for builder user %s", user.id)
        return _login_response(token, user.role, user.display_name or user.username, user.id)

    if users.has_users():
        logger.info("Rejected login attempt")
        raise Unauthorized(INVALID_CREDENTIALS)

    if _matches_env_credentials(payload.username, payload.password):
        logger.warning("Legacy env login used; create database users to disable it")
        token = tokens.generate_legacy(payload.username, ROLE_ADMIN)
        return _login_response(token, ROLE_ADMIN, payload.username, 0)

    raise Unauthorized(INVALID_CREDENTIALS)


@auth_router.get("/api/auth/status")
async def auth_status():
    return {"authEnabled": auth_enabled()}


__all__ = ["auth_router", "AUTH_DISABLED_TOKEN"]
