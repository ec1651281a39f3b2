"""
Shared authorization helpers for the routers.

Why:
    Publish, delete and user-admin routes all need the same "who is calling and
    may they do this" checks. Keeping them here avoids drift between routers.

Design:
    Helpers read the principal the auth middleware attached to
    `request.state.user` and raise `Unauthorized` / `Forbidden`; the app-level
    exception handler turns those into JSON responses.

Permissions:
    - ADMIN role is taken from the verified token.
    - Access flags come from the caller's `builder_users` record, read on every
      request so revoking a flag takes effect without a new login. An ADMIN
      principal without a user id (legacy env login, auth disabled) holds
      every flag.
"""

from __future__ import annotations

from fastapi import Request

from backend.identity_access.domain import ACCESS_FLAGS, Forbidden, Principal, Unauthorized
from backend.web import wiring


def current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "user", None)
    if not isinstance(principal, Principal):
        raise Unauthorized("Authentication required")
    return principal


def require_admin(request: Request) -> Principal:
    principal = current_principal(request)
    if not principal.is_admin:
        raise Forbidden("ADMIN role vereist")
    return principal


def require_access(request: Request, flag: str) -> Principal:
    """Ensure the caller holds the access flag (e.g. `assessmentProd`)."""
    if flag not in ACCESS_FLAGS:
        raise ValueError(f"Unknown access flag: {flag}")
    principal = current_principal(request)
    if principal.user_id is None:
        if principal.is_admin:
            return principal
        raise Forbidden("Geen toegang tot deze omgeving")

    user = wiring.get_user_service().find_by_id(principal.user_id)
    if user is None or not user.active:
        raise Forbidden("Geen toegang")
    if not user.has_access(flag):
        raise Forbidden("Geen toegang tot deze omgeving")
    return principal


__all__ = ["current_principal", "require_admin", "require_access"]
