"""
Builder user accounts: domain record, repository port, in-memory store and service.

Why:
- Editors log in with a local username/password; bcrypt hashes live in the
  Builder's own database, never in Metro.
- The service owns the rules (unique usernames, password length, seed admin)
  so the DB and in-memory repositories stay dumb.

Security:
- Plain passwords are only held for the duration of a hash/check call and are
  never logged. `to_public()` never includes `password_hash`.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
import threading
from typing import Dict, List, Optional, Protocol

import bcrypt

from backend.identity_access.domain import ACCESS_FLAGS, ROLE_ADMIN, ROLE_BUILDER, Conflict, parse_role
from backend.metro.errors import NotFound, ValidationFailed


logger = logging.getLogger("builder.identity")

DEFAULT_ADMIN_USERNAME = "support@mentes.me"
DEFAULT_ADMIN_DISPLAY = "MentesMe Support"
MIN_PASSWORD_LENGTH = 6


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BuilderUser:
    id: int | None
    username: str
    display_name: str | None
    password_hash: str
    role: str = ROLE_BUILDER
    active: bool = True
    access_assessment_test: bool = False
    access_assessment_prod: bool = False
    access_journeys_test: bool = False
    access_journeys_prod: bool = False
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def has_access(self, flag: str) -> bool:
        column = ACCESS_FLAGS.get(flag)
        return bool(column and getattr(self, column))

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
            "role": self.role,
            "active": self.active,
            "accessAssessmentTest": self.access_assessment_test,
            "accessAssessmentProd": self.access_assessment_prod,
            "accessJourneysTest": self.access_journeys_test,
            "accessJourneysProd": self.access_journeys_prod,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class UserRepository(Protocol):
    def list_all(self) -> List[BuilderUser]: ...

    def find_by_id(self, user_id: int) -> Optional[BuilderUser]: ...

    def find_by_username(self, username: str) -> Optional[BuilderUser]: ...

    def save(self, user: BuilderUser) -> BuilderUser: ...

    def count(self) -> int: ...

    def count_active(self) -> int: ...


class InMemoryUserRepo:
    """Process-local repository for dev and tests."""

    def __init__(self) -> None:
        self._users: Dict[int, BuilderUser] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def list_all(self) -> List[BuilderUser]:
        return sorted((replace(u) for u in self._users.values()), key=lambda u: u.username)

    def find_by_id(self, user_id: int) -> Optional[BuilderUser]:
        user = self._users.get(int(user_id))
        return replace(user) if user else None

    def find_by_username(self, username: str) -> Optional[BuilderUser]:
        for user in self._users.values():
            if user.username == username:
                return replace(user)
        return None

    def save(self, user: BuilderUser) -> BuilderUser:
        with self._lock:
            if user.id is None:
                user = replace(user, id=self._next_id)
                self._next_id += 1
            self._users[user.id] = replace(user)
        return replace(user)

    def count(self) -> int:
        return len(self._users)

    def count_active(self) -> int:
        return sum(1 for u in self._users.values() if u.active)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _require_password(password: str | None) -> str:
    if password is None or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed([f"password: minimaal {MIN_PASSWORD_LENGTH} tekens"])
    return password


class UserService:
    def __init__(self, repo: UserRepository) -> None:
        self._repo = repo

    def _get(self, user_id: int) -> BuilderUser:
        user = self._repo.find_by_id(user_id)
        if user is None:
            raise NotFound(f"Gebruiker niet gevonden: {user_id}")
        return user

    def authenticate(self, username: str, password: str) -> Optional[BuilderUser]:
        user = self._repo.find_by_username((username or "").strip())
        if user is None or not user.active:
            return None
        if not check_password(password or "", user.password_hash):
            return None
        return user

    def list_users(self) -> List[BuilderUser]:
        return self._repo.list_all()

    def find_by_id(self, user_id: int) -> Optional[BuilderUser]:
        return self._repo.find_by_id(user_id)

    def create_user(self, username: str, display_name: str | None, password: str, role: str = ROLE_BUILDER) -> BuilderUser:
        name = (username or "").strip()
        if not name:
            raise ValidationFailed(["username: mag niet leeg zijn"])
        role = parse_role(role)
        _require_password(password)
        if self._repo.find_by_username(name) is not None:
            raise Conflict(f"Gebruikersnaam bestaat al: {name}")
        user = self._repo.save(
            BuilderUser(id=None, username=name, display_name=display_name, password_hash=hash_password(password), role=role)
        )
        logger.info("Created builder user %s (role=%s)", user.id, role)
        return user

    def update_user(
        self,
        user_id: int,
        *,
        display_name: str | None = None,
        role: str | None = None,
        active: bool | None = None,
        access_assessment_test: bool | None = None,
        access_assessment_prod: bool | None = None,
        access_journeys_test: bool | None = None,
        access_journeys_prod: bool | None = None,
    ) -> BuilderUser:
        user = self._get(user_id)
        if display_name is not None:
            user.display_name = display_name
        if role is not None:
            user.role = parse_role(role)
        if active is not None:
            user.active = active
        if access_assessment_test is not None:
            user.access_assessment_test = access_assessment_test
        if access_assessment_prod is not None:
            user.access_assessment_prod = access_assessment_prod
        if access_journeys_test is not None:
            user.access_journeys_test = access_journeys_test
        if access_journeys_prod is not None:
            user.access_journeys_prod = access_journeys_prod
        user.updated_at = _now()
        return self._repo.save(user)

    def change_password(self, user_id: int, new_password: str) -> None:
        user = self._get(user_id)
        user.password_hash = hash_password(_require_password(new_password))
        user.updated_at = _now()
        self._repo.save(user)
        logger.info("Password changed for builder user %s", user_id)

    def deactivate_user(self, user_id: int) -> BuilderUser:
        return self.update_user(user_id, active=False)

    def has_users(self) -> bool:
        return self._repo.count_active() > 0

    def seed_admin(self, password: str | None) -> Optional[BuilderUser]:
        """Create the support admin on an empty table; repair its flags otherwise."""
        if self._repo.count() == 0:
            if not password:
                logger.warning("No BUILDER_AUTH_PASSWORD set; cannot seed admin user")
                return None
            admin = BuilderUser(
                id=None,
                username=DEFAULT_ADMIN_USERNAME,
                display_name=DEFAULT_ADMIN_DISPLAY,
                password_hash=hash_password(password),
                role=ROLE_ADMIN,
                access_assessment_test=True,
                access_assessment_prod=True,
                access_journeys_test=True,
                access_journeys_prod=True,
            )
            saved = self._repo.save(admin)
            logger.info("Seeded admin user %s", DEFAULT_ADMIN_USERNAME)
            return saved
        admin = self._repo.find_by_username(DEFAULT_ADMIN_USERNAME)
        if admin is not None and not admin.access_assessment_test:
            for column in ACCESS_FLAGS.values():
                setattr(admin, column, True)
            admin.updated_at = _now()
            self._repo.save(admin)
            logger.info("Updated admin user access flags: %s", DEFAULT_ADMIN_USERNAME)
        return admin


__all__ = [
    "BuilderUser",
    "UserRepository",
    "InMemoryUserRepo",
    "UserService",
    "hash_password",
    "check_password",
    "DEFAULT_ADMIN_USERNAME",
    "MIN_PASSWORD_LENGTH",
]
