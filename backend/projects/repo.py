"""
Project draft repositories: in-memory and Postgres.

Intent:
    Persist the editor's work-in-progress (opaque `project_data` JSON text plus
    the wizard step) between sessions. Publishing never reads from here.

Behavior:
    - `list_all()` omits `projectData` and is ordered by `updatedAt` desc.
    - `save()` is an upsert keyed by the client-chosen id; `createdBy` is kept
      on update, `updatedBy` always becomes the saving user.
    - `delete()` returns whether a row was removed.
"""
from __future__ import annotations

from datetime import datetime, timezone
import os
import threading
from typing import Any, Dict, List, Optional, Protocol, Tuple

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False


class ProjectRepository(Protocol):
    def list_all(self) -> List[Dict[str, Any]]: ...

    def find_by_id(self, project_id: str) -> Optional[Dict[str, Any]]: ...

    def save(self, project_id: str, name: str | None, project_data: str | None, current_step: int, username: str) -> None: ...

    def delete(self, project_id: str) -> bool: ...


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts else None


def _summary(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in row.items() if k != "projectData"}


class InMemoryProjectRepo:
    def __init__(self) -> None:
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def list_all(self) -> List[Dict[str, Any]]:
        rows = sorted(self._rows.values(), key=lambda r: r["updatedAt"], reverse=True)
        return [_summary(r) for r in rows]

    def find_by_id(self, project_id: str) -> Optional[Dict[str, Any]]:
        row = self._rows.get(project_id)
        return dict(row) if row else None

    def save(self, project_id: str, name: str | None, project_data: str | None, current_step: int, username: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            existing = self._rows.get(project_id)
            self._rows[project_id] = {
                "id": project_id,
                "name": name,
                "projectData": project_data,
                "currentStep": int(current_step or 0),
                "createdBy": existing["createdBy"] if existing else username,
                "updatedBy": username,
                "createdAt": existing["createdAt"] if existing else now,
                "updatedAt": now,
            }

    def delete(self, project_id: str) -> bool:
        with self._lock:
            return self._rows.pop(project_id, None) is not None


_DDL = """
create table if not exists builder_projects (
    id text primary key,
    name varchar(255),
    project_data text,
    current_step integer not null default 0,
    created_by varchar(100),
    updated_by varchar(100),
    created_at timestamptz not null default now(),
    updated_at timestamptz not null default now()
)
"""


def _dsn() -> str:
    return (os.getenv("BUILDER_DATABASE_URL") or os.getenv("DATABASE_URL") or "").strip()


def _row_to_dict(row: Tuple, *, with_data: bool) -> Dict[str, Any]:
    out = {
        "id": row[0],
        "name": row[1],
        "currentStep": int(row[2] or 0),
        "createdBy": row[3],
        "updatedBy": row[4],
        "createdAt": _iso(row[5]),
        "updatedAt": _iso(row[6]),
    }
    if with_data:
        out["projectData"] = row[7]
    return out


class DBProjectRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBProjectRepo")
        self._dsn = dsn or _dsn()
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBProjectRepo")
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(_DDL)

    def list_all(self) -> List[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select id, name, current_step, created_by, updated_by, created_at, updated_at "
                    "from builder_projects order by updated_at desc"
                )
                return [_row_to_dict(r, with_data=False) for r in cur.fetchall()]

    def find_by_id(self, project_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select id, name, current_step, created_by, updated_by, created_at, updated_at, project_data "
                    "from builder_projects where id = %s",
                    (project_id,),
                )
                row = cur.fetchone()
        return _row_to_dict(row, with_data=True) if row else None

    def save(self, project_id: str, name: str | None, project_data: str | None, current_step: int, username: str) -> None:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    insert into builder_projects (id, name, project_data, current_step, created_by, updated_by)
                    values (%s, %s, %s, %s, %s, %s)
                    on conflict (id) do update
                       set name = excluded.name,
                           project_data = excluded.project_data,
                           current_step = excluded.current_step,
                           updated_by = excluded.updated_by,
                           updated_at = now()
                    """,
                    (project_id, name, project_data, int(current_step or 0), username, username),
                )
                conn.commit()

    def delete(self, project_id: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("delete from builder_projects where id = %s", (project_id,))
                deleted = cur.rowcount
                conn.commit()
        return bool(deleted and deleted > 0)


__all__ = ["ProjectRepository", "InMemoryProjectRepo", "DBProjectRepo", "HAVE_PSYCOPG"]
