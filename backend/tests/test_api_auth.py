"""
API auth enforcement: bearer tokens, login flows and response headers.
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


def _users() -> UserService:
    service = UserService(InMemoryUserRepo())
    wiring.set_user_service(service)
    return service


@pytest.mark.anyio
async def test_api_unauthenticated_returns_401_json():
    async with (await _client()) as client:
        r1 = await client.get("/api/projects")
        assert r1.status_code == 401
        assert r1.headers.get("Cache-Control") == "private, no-store"
        assert r1.json() == {"error": "unauthenticated", "detail": "Missing or invalid Authorization header"}

        r2 = await client.get("/api/projects", headers={"Authorization": "Bearer garbage"})
        assert r2.status_code == 401
        assert r2.json()["detail"] == "Invalid or expired token"


@pytest.mark.anyio
async def test_public_endpoints_need_no_token():
    async with (await _client()) as client:
        health = await client.get("/api/health")
        status = await client.get("/api/auth/status")

    assert health.status_code == 200
    assert health.json() == {"status": "ok", "metro": False, "metroProduction": False, "s3": False}
    assert health.headers.get("Cache-Control") == "private, no-store"
    assert health.headers.get("X-Content-Type-Options") == "nosniff"
    assert health.headers.get("X-Frame-Options") == "DENY"
    assert status.json() == {"authEnabled": True}


@pytest.mark.anyio
async def test_env_login_yields_legacy_admin_token_while_no_users_exist(monkeypatch):
    monkeypatch.setenv("BUILDER_AUTH_USERNAME", "admin")
    monkeypatch.setenv("BUILDER_AUTH_PASSWORD", "s3cret-pass")
    _users()

    async with (await _client()) as client:
        r = await client.post("/api/auth/login", json={"username": "admin", "password": "s3cret-pass"})
        assert r.status_code == 200
        body = r.json()
        assert body["role"] == "ADMIN" and body["userId"] == 0

        listed = await client.get("/api/admin/users", headers={"Authorization": f"Bearer {body['token']}"})
        assert listed.status_code == 200
        assert listed.json() == []


@pytest.mark.anyio
async def test_database_user_login_and_env_fallback_disabled_afterwards(monkeypatch):
    monkeypatch.setenv("BUILDER_AUTH_PASSWORD", "s3cret-pass")
    users = _users()
    created = users.create_user("editor@mentes.me", "Editor", "geheim123")

    async with (await _client()) as client:
        ok = await client.post("/api/auth/login", json={"username": "editor@mentes.me", "password": "geheim123"})
        assert ok.status_code == 200
        assert ok.json()["userId"] == created.id
        assert ok.json()["displayName"] == "Editor"
        assert ok.json()["role"] == "BUILDER"

        legacy = await client.post("/api/auth/login", json={"username": "admin", "password": "s3cret-pass"})
        assert legacy.status_code == 401
        assert legacy.json() == {"error": "unauthenticated", "detail": "Onjuiste inloggegevens"}

        token = ok.json()["token"]
        projects = await client.get("/api/projects", headers={"Authorization": f"Bearer {token}"})
        assert projects.status_code == 200


@pytest.mark.anyio
async def test_login_with_wrong_password_is_401():
    _users().create_user("e", None, "geheim123")
    async with (await _client()) as client:
        r = await client.post("/api/auth/login", json={"username": "e", "password": "nope"})
    assert r.status_code == 401
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_auth_disabled_in_local_env_acts_as_admin(monkeypatch):
    monkeypatch.setenv("BUILDER_AUTH_ENABLED", "false")
    async with (await _client()) as client:
        login = await client.post("/api/auth/login", json={})
        users = await client.get("/api/admin/users")
    assert login.json() == {"token": "auth-disabled", "role": "ADMIN", "displayName": "Developer", "userId": 0}
    assert users.status_code == 200


@pytest.mark.anyio
async def test_auth_disabled_outside_local_env_still_rejects(monkeypatch):
    monkeypatch.setenv("BUILDER_AUTH_ENABLED", "false")
    monkeypatch.setenv("BUILDER_ENV", "staging")
    async with (await _client()) as client:
        r = await client.get("/api/projects")
    assert r.status_code == 401


@pytest.mark.anyio
async def test_cors_preflight_from_frontend_origin():
    async with (await _client()) as client:
        r = await client.options(
            "/api/projects",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "PUT"},
        )
    assert r.status_code == 200
    assert r.headers.get("access-control-allow-origin") == "http://localhost:5173"


@pytest.mark.anyio
async def test_unexpected_errors_become_internal_error_json():
    class Broken:
        def list_all(self):
            raise RuntimeError("db gone")

    wiring.set_project_repo(Broken())
    token = wiring.get_token_service().generate(1, "x", "ADMIN")
    async with (await _client()) as client:
        r = await client.get("/api/projects", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 500
    assert r.json() == {"error": "internal_error"}
