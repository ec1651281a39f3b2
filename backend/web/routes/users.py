"""
User administration API (ADMIN only).

Permissions:
    Every endpoint requires the ADMIN role from the verified token.

Notes:
    - `DELETE` deactivates instead of removing, so publish history keeps its
      `updated_by` references.
    - Unknown roles are reported as `validation_failed` (400).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.identity_access.domain import ROLE_BUILDER, parse_role
from backend.metro.errors import ValidationFailed
from backend.web import wiring
from backend.web.auth_utils import require_admin


users_router = APIRouter(tags=["Users"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateUserRequest(_CamelModel):
    username: str = ""
    display_name: Optional[str] = None
    password: str = ""
    role: str = ROLE_BUILDER


class UpdateUserRequest(_CamelModel):
    display_name: Optional[str] = None
    role: Optional[str] = None
    active: Optional[bool] = None
    access_assessment_test: Optional[bool] = None
    access_assessment_prod: Optional[bool] = None
    access_journeys_test: Optional[bool] = None
    access_journeys_prod: Optional[bool] = None


class ChangePasswordRequest(BaseModel):
    password: str = ""


def _role(value: str | None) -> str:
    try:
        return parse_role(value)
    except ValueError as exc:
        raise ValidationFailed([f"role: {exc}"]) from exc


@users_router.get("/api/admin/users")
def list_users(request: Request):
    require_admin(request)
    return [u.to_public() for u in wiring.get_user_service().list_users()]


@users_router.post("/api/admin/users", status_code=201)
def create_user(request: Request, payload: CreateUserRequest):
    require_admin(request)
    user = wiring.get_user_service().create_user(
        payload.username, payload.display_name, payload.password, _role(payload.role)
    )
    return JSONResponse(user.to_public(), status_code=201)


@users_router.put("/api/admin/users/{user_id}")
def update_user(request: Request, user_id: int, payload: UpdateUserRequest):
    require_admin(request)
    changes = payload.model_dump(exclude_none=True)
    if "role" in changes:
        changes["role"] = _role(changes["role"])
    user = wiring.get_user_service().update_user(user_id, **changes)
    return user.to_public()


@users_router.put("/api/admin/users/{user_id}/password")
def change_password(request: Request, user_id: int, payload: ChangePasswordRequest):
    require_admin(request)
    wiring.get_user_service().change_password(user_id, payload.password)
    return {"status": "password_changed"}


@users_router.delete("/api/admin/users/{user_id}")
def deactivate_user(request: Request, user_id: int):
    require_admin(request)
    wiring.get_user_service().deactivate_user(user_id)
    return {"status": "deactivated"}


__all__ = ["users_router"]
