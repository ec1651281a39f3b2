"""
Metro connections, transactions and publish environments.

Intent:
    Scope a Metro connection to exactly one transaction and make the target
    environment (TEST / PRODUCTION) an explicit parameter instead of a global
    switch.

Behavior:
    - `metro_transaction(settings)` opens a PyMySQL connection with autocommit
      off, yields it, commits on success and rolls back on any exception.
    - `MetroTargets.resolve(env)` returns the transaction factory and the
      object-store prefix for the environment, or raises `NotConfigured` /
      `ProductionNotConfigured`.

Notes:
    Callers only rely on the DB-API surface (`cursor()`, `commit()`,
    `rollback()`, `close()`), so tests substitute a fake connection factory.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, ContextManager, Iterator

import pymysql
from pymysql.constants import CLIENT

from backend.metro.config import DataSourceSettings
from backend.metro.errors import NotConfigured, ProductionNotConfigured


logger = logging.getLogger("builder.metro")


class PublishEnvironment(str, Enum):
    TEST = "TEST"
    PRODUCTION = "PRODUCTION"


def connect(settings: DataSourceSettings):
    """Open a new Metro connection (autocommit disabled)."""
    return pymysql.connect(
        host=settings.host,
        port=settings.port,
        user=settings.username,
        password=settings.password,
        database=settings.database,
        charset="utf8mb4",
        autocommit=False,
        connect_timeout=settings.connect_timeout,
        client_flag=CLIENT.FOUND_ROWS,
    )


@contextmanager
def metro_transaction(
    settings: DataSourceSettings,
    *,
    connector: Callable[[DataSourceSettings], Any] = connect,
) -> Iterator[Any]:
    conn = connector(settings)
    try:
        yield conn
        conn.commit()
    except Exception:
        try:
            conn.rollback()
        except Exception as exc:  # pragma: no cover - connection already broken
            logger.warning("Metro rollback failed: %s", exc.__class__.__name__)
        raise
    finally:
        conn.close()


TransactionFactory = Callable[[], ContextManager[Any]]


@dataclass(frozen=True)
class EnvironmentTarget:
    environment: PublishEnvironment
    transaction: TransactionFactory
    storage_prefix: str

    @property
    def label(self) -> str:
        return self.environment.value


class MetroTargets:
    """Resolve per-environment transaction factories.

    Parameters
    ----------
    test / production:
        Either `DataSourceSettings` (opened via `metro_transaction`) or a
        ready-made transaction factory (tests). `None` means not configured.
    """

    def __init__(self, test: DataSourceSettings | TransactionFactory | None, production: DataSourceSettings | TransactionFactory | None = None) -> None:
        self._test = self._as_factory(test)
        self._production = self._as_factory(production)

    @staticmethod
    def _as_factory(source) -> TransactionFactory | None:
        if source is None:
            return None
        if isinstance(source, DataSourceSettings):
            return lambda: metro_transaction(source)
        return source

    @property
    def test_configured(self) -> bool:
        return self._test is not None

    @property
    def production_configured(self) -> bool:
        return self._production is not None

    def resolve(self, environment: PublishEnvironment) -> EnvironmentTarget:
        if environment == PublishEnvironment.PRODUCTION:
            if self._production is None:
                raise ProductionNotConfigured()
            return EnvironmentTarget(environment, self._production, "production")
        if self._test is None:
            raise NotConfigured("Metro database is not configured. Set BUILDER_METRO_ENABLED=true with a datasource URL.")
        return EnvironmentTarget(PublishEnvironment.TEST, self._test, "test")


__all__ = [
    "PublishEnvironment",
    "connect",
    "metro_transaction",
    "EnvironmentTarget",
    "MetroTargets",
    "TransactionFactory",
]
