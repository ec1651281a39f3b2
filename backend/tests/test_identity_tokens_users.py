"""
Identity: HMAC tokens and the user service over the in-memory repository.
"""
from __future__ import annotations

import base64

import pytest

from backend.identity_access.domain import Conflict, Principal, parse_role
from backend.identity_access.tokens import TOKEN_VALIDITY_SECONDS, TokenService
from backend.identity_access.users import DEFAULT_ADMIN_USERNAME, InMemoryUserRepo, UserService
from backend.metro.errors import NotFound, ValidationFailed

SECRET = "unit-test-secret-unit-test-secret-123"


class _Clock:
    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_token_round_trip_carries_user_id_and_role():
    clock = _Clock()
    tokens = TokenService(SECRET, clock=clock)

    claims = tokens.verify(tokens.generate(7, "editor@mentes.me", "BUILDER"))

    assert claims is not None
    assert (claims.user_id, claims.username, claims.role) == (7, "editor@mentes.me", "BUILDER")
    assert claims.expires_at == int(clock.now) + TOKEN_VALIDITY_SECONDS


def test_legacy_token_has_no_user_id():
    tokens = TokenService(SECRET, clock=_Clock())
    claims = tokens.verify(tokens.generate_legacy("admin", "ADMIN"))
    assert claims is not None and claims.user_id is None and claims.role == "ADMIN"


def test_expired_tampered_and_foreign_tokens_are_rejected():
    clock = _Clock()
    tokens = TokenService(SECRET, clock=clock)
    token = tokens.generate(1, "a", "ADMIN")

    raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)).decode()
    forged = base64.urlsafe_b64encode(raw.replace(":ADMIN:", ":BUILDER:").encode()).decode().rstrip("=")
    assert tokens.verify(forged) is None
    assert TokenService("another-secret-another-secret-1234", clock=clock).verify(token) is None
    assert tokens.verify("not-a-token") is None
    assert tokens.verify("") is None

    clock.now += TOKEN_VALIDITY_SECONDS + 1
    assert tokens.verify(token) is None


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        TokenService("")


def test_role_parsing_and_principal():
    assert parse_role(" admin ") == "ADMIN"
    with pytest.raises(ValueError):
        parse_role("OWNER")
    assert Principal(None, "x", "ADMIN").is_admin is True


def test_create_authenticate_and_unique_usernames():
    service = UserService(InMemoryUserRepo())
    user = service.create_user("editor@mentes.me", "Editor", "geheim123")

    assert user.id == 1 and user.role == "BUILDER"
    assert "password_hash" not in user.to_public()
    assert service.authenticate("editor@mentes.me", "geheim123").id == 1
    assert service.authenticate("editor@mentes.me", "fout") is None
    with pytest.raises(Conflict):
        service.create_user("editor@mentes.me", None, "geheim123")


def test_short_password_and_blank_username_are_validation_errors():
    service = UserService(InMemoryUserRepo())
    with pytest.raises(ValidationFailed):
        service.create_user("a", None, "123")
    with pytest.raises(ValidationFailed):
        service.create_user("  ", None, "geheim123")


def test_update_flags_and_deactivate_blocks_login():
    service = UserService(InMemoryUserRepo())
    user = service.create_user("e", None, "geheim123")

    updated = service.update_user(user.id, access_journeys_test=True, role="admin")
    assert updated.has_access("journeysTest") is True
    assert updated.has_access("journeysProd") is False
    assert updated.role == "ADMIN"

    service.deactivate_user(user.id)
    assert service.authenticate("e", "geheim123") is None
    assert service.has_users() is False
    with pytest.raises(NotFound):
        service.update_user(404, active=True)


def test_change_password():
    service = UserService(InMemoryUserRepo())
    user = service.create_user("e", None, "geheim123")
    service.change_password(user.id, "nieuwgeheim")
    assert service.authenticate("e", "nieuwgeheim") is not None
    assert service.authenticate("e", "geheim123") is None


def test_seed_admin_only_on_empty_table_and_repairs_flags():
    repo = InMemoryUserRepo()
    service = UserService(repo)

    assert service.seed_admin(None) is None
    admin = service.seed_admin("support-pass")
    assert admin.username == DEFAULT_ADMIN_USERNAME
    assert all(admin.has_access(flag) for flag in ("assessmentTest", "assessmentProd", "journeysTest", "journeysProd"))

    service.update_user(admin.id, access_assessment_test=False)
    service.seed_admin("ignored")
    assert repo.count() == 1
    assert service.find_by_id(admin.id).has_access("assessmentTest") is True
