"""
Service wiring for the web adapter.

Why:
    Routes must not construct connections, S3 clients or repositories
    themselves. This module builds each collaborator once from the environment
    (lazily, on first use) and lets tests swap any of them with `set_*`.

Behavior:
    - Metro targets come from `BUILDER_METRO_*`; an unset source stays `None`
      and surfaces as `NotConfigured`/`ProductionNotConfigured` on use.
    - The object store is `None` when `BUILDER_S3_ENABLED` is false.
    - Users and projects use Postgres when `BUILDER_DATABASE_URL` (or
      `DATABASE_URL`) is set and psycopg is importable, in-memory otherwise.
    - `reset()` drops every cached instance (used by tests).
"""
from __future__ import annotations

import logging
import os
from typing import Any, ContextManager, Optional

from backend.assessments.publish import QuestionnairePublishService
from backend.identity_access.settings import get_token_secret
from backend.identity_access.tokens import TokenService
from backend.identity_access.users import InMemoryUserRepo, UserService
from backend.journeys.service import JourneyPublishService
from backend.metro.config import load_production_datasource, load_test_datasource
from backend.metro.connection import MetroTargets, PublishEnvironment
from backend.projects.repo import InMemoryProjectRepo, ProjectRepository
from backend.storage.config import get_docs_base_url, load_s3_settings
from backend.storage.ports import ObjectStore
from backend.storage.s3 import S3ObjectStore
from backend.translation.service import TranslationService, build_translation_service


logger = logging.getLogger("builder.web")

_TARGETS: Optional[MetroTargets] = None
_STORE: Optional[ObjectStore] = None
_STORE_RESOLVED = False
_USERS: Optional[UserService] = None
_PROJECTS: Optional[ProjectRepository] = None
_TOKENS: Optional[TokenService] = None
_TRANSLATION: Optional[TranslationService] = None


def _builder_dsn() -> str:
    return (os.getenv("BUILDER_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()


def get_metro_targets() -> MetroTargets:
    global _TARGETS
    if _TARGETS is None:
        _TARGETS = MetroTargets(load_test_datasource(), load_production_datasource())
        logger.info(
            "Metro targets: test=%s production=%s",
            _TARGETS.test_configured, _TARGETS.production_configured,
        )
    return _TARGETS


def set_metro_targets(targets: Optional[MetroTargets]) -> None:
    global _TARGETS
    _TARGETS = targets


def get_object_store() -> Optional[ObjectStore]:
    global _STORE, _STORE_RESOLVED
    if not _STORE_RESOLVED:
        settings = load_s3_settings()
        _STORE = S3ObjectStore(settings) if settings is not None else None
        _STORE_RESOLVED = True
        if _STORE is None:
            logger.info("Object store disabled (BUILDER_S3_ENABLED is false)")
    return _STORE


def set_object_store(store: Optional[ObjectStore]) -> None:
    global _STORE, _STORE_RESOLVED
    _STORE = store
    _STORE_RESOLVED = True


def get_user_service() -> UserService:
    global _USERS
    if _USERS is None:
        dsn = _builder_dsn()
        if dsn:
            from backend.identity_access.users_db import DBUserRepo

            _USERS = UserService(DBUserRepo(dsn))
        else:
            logger.warning("No Builder database configured; users are kept in memory")
            _USERS = UserService(InMemoryUserRepo())
    return _USERS


def set_user_service(service: Optional[UserService]) -> None:
    global _USERS
    _USERS = service


def get_project_repo() -> ProjectRepository:
    global _PROJECTS
    if _PROJECTS is None:
        dsn = _builder_dsn()
        if dsn:
            from backend.projects.repo import DBProjectRepo

            _PROJECTS = DBProjectRepo(dsn)
        else:
            _PROJECTS = InMemoryProjectRepo()
    return _PROJECTS


def set_project_repo(repo: Optional[ProjectRepository]) -> None:
    global _PROJECTS
    _PROJECTS = repo


def get_token_service() -> TokenService:
    global _TOKENS
    if _TOKENS is None:
        _TOKENS = TokenService(get_token_secret())
    return _TOKENS


def set_token_service(service: Optional[TokenService]) -> None:
    global _TOKENS
    _TOKENS = service


def get_translation_service() -> TranslationService:
    global _TRANSLATION
    if _TRANSLATION is None:
        _TRANSLATION = build_translation_service()
    return _TRANSLATION


def set_translation_service(service: Optional[TranslationService]) -> None:
    global _TRANSLATION
    _TRANSLATION = service


def metro_read() -> ContextManager[Any]:
    """Transaction on the TEST Metro database for read-only views."""
    return get_metro_targets().resolve(PublishEnvironment.TEST).transaction()


def questionnaire_service() -> QuestionnairePublishService:
    return QuestionnairePublishService(get_metro_targets(), get_object_store())


def journey_service() -> JourneyPublishService:
    return JourneyPublishService(get_metro_targets(), docs_base_url=get_docs_base_url())


def reset() -> None:
    global _TARGETS, _STORE, _STORE_RESOLVED, _USERS, _PROJECTS, _TOKENS, _TRANSLATION
    _TARGETS = None
    _STORE = None
    _STORE_RESOLVED = False
    _USERS = None
    _PROJECTS = None
    _TOKENS = None
    _TRANSLATION = None


__all__ = [
    "get_metro_targets",
    "set_metro_targets",
    "get_object_store",
    "set_object_store",
    "get_user_service",
    "set_user_service",
    "get_project_repo",
    "set_project_repo",
    "get_token_service",
    "set_token_service",
    "get_translation_service",
    "set_translation_service",
    "metro_read",
    "questionnaire_service",
    "journey_service",
    "reset",
]
