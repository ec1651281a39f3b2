"""
Postgres-backed repository for Builder users (`builder_users`).

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- The table is created on first use when missing, so a fresh Builder database
  needs no separate migration step.

Note: imported only when a Builder DSN is configured. Tests use
`InMemoryUserRepo`.
"""
from __future__ import annotations

import os
from typing import List, Optional, Tuple

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.identity_access.users import BuilderUser


_DDL = """
create table if not exists builder_users (
    id bigserial primary key,
    username varchar(100) unique not null,
    display_name varchar(255),
    password_hash varchar(255) not null,
    role varchar(16) not null default 'BUILDER' check (role in ('ADMIN', 'BUILDER')),
    active boolean not null default true,
    access_assessment_test boolean not null default false,
    access_assessment_prod boolean not null default false,
    access_journeys_test boolean not null default false,
    access_journeys_prod boolean not null default false,
    created_at timestamptz not null default now(),
    updated_at timestamptz not null default now()
)
"""

_COLUMNS = (
    "id, username, display_name, password_hash, role, active, "
    "access_assessment_test, access_assessment_prod, access_journeys_test, access_journeys_prod, "
    "created_at, updated_at"
)


def _dsn() -> str:
    return (os.getenv("BUILDER_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()


def _row_to_user(row: Tuple) -> BuilderUser:
    return BuilderUser(
        id=int(row[0]),
        username=row[1],
        display_name=row[2],
        password_hash=row[3],
        role=row[4],
        active=bool(row[5]),
        access_assessment_test=bool(row[6]),
        access_assessment_prod=bool(row[7]),
        access_journeys_test=bool(row[8]),
        access_journeys_prod=bool(row[9]),
        created_at=row[10],
        updated_at=row[11],
    )


class DBUserRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBUserRepo")
        self._dsn = dsn or _dsn()
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBUserRepo")
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(_DDL)

    def _fetch(self, sql: str, params: tuple = ()) -> List[Tuple]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return list(cur.fetchall())

    def list_all(self) -> List[BuilderUser]:
        return [_row_to_user(r) for r in self._fetch(f"select {_COLUMNS} from builder_users order by username asc")]

    def find_by_id(self, user_id: int) -> Optional[BuilderUser]:
        rows = self._fetch(f"select {_COLUMNS} from builder_users where id = %s", (int(user_id),))
        return _row_to_user(rows[0]) if rows else None

    def find_by_username(self, username: str) -> Optional[BuilderUser]:
        rows = self._fetch(f"select {_COLUMNS} from builder_users where username = %s", (username,))
        return _row_to_user(rows[0]) if rows else None

    def save(self, user: BuilderUser) -> BuilderUser:
        values = (
            user.username,
            user.display_name,
            user.password_hash,
            user.role,
            user.active,
            user.access_assessment_test,
            user.access_assessment_prod,
            user.access_journeys_test,
            user.access_journeys_prod,
        )
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                if user.id is None:
                    cur.execute(
                        "insert into builder_users (username, display_name, password_hash, role, active, "
                        "access_assessment_test, access_assessment_prod, access_journeys_test, access_journeys_prod) "
                        f"values (%s, %s, %s, %s, %s, %s, %s, %s, %s) returning {_COLUMNS}",
                        values,
                    )
                else:
                    cur.execute(
                        "update builder_users set username = %s, display_name = %s, password_hash = %s, role = %s, "
                        "active = %s, access_assessment_test = %s, access_assessment_prod = %s, "
                        "access_journeys_test = %s, access_journeys_prod = %s, updated_at = now() "
                        f"where id = %s returning {_COLUMNS}",
                        values + (int(user.id),),
                    )
                row = cur.fetchone()
                conn.commit()
        return _row_to_user(row)

    def count(self) -> int:
        return int(self._fetch("select count(*) from builder_users")[0][0])

    def count_active(self) -> int:
        return int(self._fetch("select count(*) from builder_users where active")[0][0])


__all__ = ["DBUserRepo", "HAVE_PSYCOPG"]
