"""
Identity domain constants, access flags and auth errors.

Why:
- Centralize roles and access-flag names to avoid drift between the token
  service, the user repository and the web layer.
- Auth failures share the `BuilderError` base so the web adapter maps them
  with the same handler as publish errors.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend.metro.errors import BuilderError

ROLE_ADMIN = "ADMIN"
ROLE_BUILDER = "BUILDER"

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({ROLE_ADMIN, ROLE_BUILDER})

# Access flag name -> builder_users column
ACCESS_FLAGS = {
    "assessmentTest": "access_assessment_test",
    "assessmentProd": "access_assessment_prod",
    "journeysTest": "access_journeys_test",
    "journeysProd": "access_journeys_prod",
}


class Unauthorized(BuilderError):
    code = "unauthenticated"
    status_code = 401


class Forbidden(BuilderError):
    code = "forbidden"
    status_code = 403


class Conflict(BuilderError):
    code = "conflict"
    status_code = 409


@dataclass(frozen=True)
class Principal:
    """Authenticated caller attached to `request.state.user`."""

    user_id: int | None
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def parse_role(value: str | None) -> str:
    role = (value or "").strip().upper()
    if role not in ALLOWED_ROLES:
        raise ValueError(f"Ongeldige rol: {value}. Gebruik ADMIN of BUILDER.")
    return role


__all__ = [
    "ROLE_ADMIN",
    "ROLE_BUILDER",
    "ALLOWED_ROLES",
    "ACCESS_FLAGS",
    "Unauthorized",
    "Forbidden",
    "Conflict",
    "Principal",
    "parse_role",
]
