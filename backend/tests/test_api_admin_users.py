"""
User administration API: ADMIN-only management of builder accounts.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from backend.identity_access.users import InMemoryUserRepo, UserService
from backend.web import main, wiring


pytestmark = pytest.mark.anyio("asyncio")


async def _client():
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


def _auth(user_id, username: str, role: str) -> dict:
    tokens = wiring.get_token_service()
    if user_id is None:
        return {"Authorization": f"Bearer {tokens.generate_legacy(username, role)}"}
    return {"Authorization": f"Bearer {tokens.generate(user_id, username, role)}"}


@pytest.fixture
def users() -> UserService:
    service = UserService(InMemoryUserRepo())
    wiring.set_user_service(service)
    return service


@pytest.mark.anyio
async def test_builder_role_cannot_manage_users(users):
    async with (await _client()) as client:
        r = await client.get("/api/admin/users", headers=_auth(5, "b", "BUILDER"))
    assert r.status_code == 403
    assert r.json() == {"error": "forbidden", "detail": "ADMIN role vereist"}


@pytest.mark.anyio
async def test_admin_user_lifecycle(users):
    admin = _auth(1, "admin", "ADMIN")
    async with (await _client()) as client:
        created = await client.post(
            "/api/admin/users",
            headers=admin,
            json={"username": "editor@mentes.me", "displayName": "Editor", "password": "geheim123"},
        )
        assert created.status_code == 201
        user = created.json()
        assert user["role"] == "BUILDER"
        assert user["accessAssessmentTest"] is False
        assert "passwordHash" not in user and "password_hash" not in user

        dup = await client.post(
            "/api/admin/users", headers=admin, json={"username": "editor@mentes.me", "password": "geheim123"}
        )
        assert dup.status_code == 409
        assert dup.json()["error"] == "conflict"

        updated = await client.put(
            f"/api/admin/users/{user['id']}",
            headers=admin,
            json={"accessJourneysTest": True, "displayName": "Redacteur"},
        )
        assert updated.status_code == 200
        assert updated.json()["accessJourneysTest"] is True
        assert updated.json()["displayName"] == "Redacteur"

        pw = await client.put(f"/api/admin/users/{user['id']}/password", headers=admin, json={"password": "nieuwgeheim"})
        assert pw.json() == {"status": "password_changed"}
        assert users.authenticate("editor@mentes.me", "nieuwgeheim") is not None

        gone = await client.delete(f"/api/admin/users/{user['id']}", headers=admin)
        assert gone.json() == {"status": "deactivated"}
        listed = await client.get("/api/admin/users", headers=admin)
        assert [u["active"] for u in listed.json()] == [False]


@pytest.mark.anyio
async def test_invalid_role_and_short_password_are_validation_failures(users):
    admin = _auth(1, "admin", "ADMIN")
    async with (await _client()) as client:
        bad_role = await client.post(
            "/api/admin/users", headers=admin, json={"username": "x", "password": "geheim123", "role": "OWNER"}
        )
        short = await client.post("/api/admin/users", headers=admin, json={"username": "y", "password": "123"})
        missing = await client.put("/api/admin/users/404", headers=admin, json={"active": True})

    assert bad_role.status_code == 400
    assert bad_role.json()["error"] == "validation_failed"
    assert bad_role.json()["reasons"][0].startswith("role:")
    assert short.status_code == 400
    assert short.json()["reasons"] == ["password: minimaal 6 tekens"]
    assert missing.status_code == 404
