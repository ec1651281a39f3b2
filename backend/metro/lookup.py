"""
Metro lookup DAO: parameterized reads and mutations against the Metro schema.

Intent:
    Keep every SQL string that touches Metro from the assessment side in one
    place. The DAO wraps a DB-API connection owned by the caller's transaction
    and returns plain Python values (ints, dicts, lists).

Behavior:
    - Name lookups are case-insensitive and fall back to the `*_translations`
      table when the top-level `name` column does not match.
    - `get_all_max_ids()` returns all max ids in one round-trip.
    - `execute_sql_statements()` runs a planned statement list sequentially,
      dropping and recreating the score triggers on `competence_questions`
      around it when the plan touches that table.
    - `update_translation_urls()` fails with `UrlPatchMissed` when no row changed.

Permissions:
    Requires a Metro login with DML rights and TRIGGER privilege on
    `competence_questions`.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

from backend.metro.errors import NotConfigured, UrlPatchMissed


logger = logging.getLogger("builder.metro")

MAX_ID_TABLES = ("questionnaires", "categories", "competences", "goals", "items")

SCORE_TRIGGER_NAMES = (
    "recalculate_user_competence_scores_on_insert_2",
    "recalculate_user_competence_scores_on_update_2",
    "recalculate_user_competence_scores_on_delete_2",
)

_TRIGGER_EVENTS = ("INSERT", "UPDATE", "DELETE")

SCORE_TRIGGER_DDL = tuple(
    f"CREATE TRIGGER {name} AFTER {event} ON competence_questions FOR EACH ROW "
    "CALL metro.calculate_user_competence_scores_for_all_assessments()"
    for name, event in zip(SCORE_TRIGGER_NAMES, _TRIGGER_EVENTS)
)

_SEARCH_LIMIT = 20


def _first_int(row) -> Optional[int]:
    if not row or row[0] is None:
        return None
    return int(row[0])


class MetroLookup:
    """DAO over one Metro connection (the caller owns the transaction)."""

    def __init__(self, conn: Any) -> None:
        if conn is None:
            raise NotConfigured("Metro database is not configured.")
        self._conn = conn

    # --- generic helpers -------------------------------------------------------

    def _fetchone(self, sql: str, params: Sequence[Any] = ()):
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            return cur.fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            return list(cur.fetchall() or [])

    def _find_id_by_name(self, table: str, translation_table: str, fk: str, name: str | None) -> Optional[int]:
        if name is None or not name.strip():
            return None
        value = name.strip()
        direct = _first_int(self._fetchone(f"SELECT id FROM {table} WHERE LOWER(name) = LOWER(%s) LIMIT 1", (value,)))
        if direct is not None:
            return direct
        return _first_int(
            self._fetchone(
                f"SELECT {fk} FROM {translation_table} WHERE LOWER(name) = LOWER(%s) LIMIT 1",
                (value,),
            )
        )

    # --- name lookups ----------------------------------------------------------

    def find_questionnaire_id_by_name(self, name: str | None) -> Optional[int]:
        return self._find_id_by_name("questionnaires", "questionnaire_translations", "questionnaireId", name)

    def find_category_id_by_name(self, name: str | None) -> Optional[int]:
        return self._find_id_by_name("categories", "category_translations", "categoryId", name)

    def find_goal_id_by_name(self, name: str | None) -> Optional[int]:
        return self._find_id_by_name("goals", "goal_translations", "goalId", name)

    def find_competence_id_by_name(self, name: str | None) -> Optional[int]:
        return self._find_id_by_name("competences", "competence_translations", "competenceId", name)

    # --- max ids ---------------------------------------------------------------

    def get_all_max_ids(self) -> Dict[str, int]:
        """Return max ids for all allocation tables plus MAX(cq_id) in one query."""
        columns = [f"(SELECT COALESCE(MAX(id), 0) FROM {table})" for table in MAX_ID_TABLES]
        columns.append("(SELECT COALESCE(MAX(cq_id), 0) FROM competence_questions)")
        row = self._fetchone("SELECT " + ", ".join(columns))
        keys = list(MAX_ID_TABLES) + ["competence_questions"]
        values = list(row or [0] * len(keys))
        return {key: int(values[idx] or 0) for idx, key in enumerate(keys)}

    # --- groups ----------------------------------------------------------------

    def find_missing_group_ids(self, ids: Iterable[int]) -> List[int]:
        wanted = []
        for gid in ids:
            if gid not in wanted:
                wanted.append(gid)
        if not wanted:
            return []
        placeholders = ", ".join(["%s"] * len(wanted))
        rows = self._fetchall(f"SELECT id FROM `groups` WHERE id IN ({placeholders})", wanted)
        present = {int(r[0]) for r in rows}
        return [gid for gid in wanted if int(gid) not in present]

    def search_groups(self, query: str) -> List[Dict[str, Any]]:
        like = "%" + (query or "").strip().lower() + "%"
        rows = self._fetchall(
            "SELECT id, name FROM `groups` WHERE LOWER(name) LIKE %s ORDER BY name LIMIT %s",
            (like, _SEARCH_LIMIT),
        )
        return [{"id": int(r[0]), "name": r[1]} for r in rows]

    def find_groups_for_questionnaire(self, questionnaire_id: int) -> List[Dict[str, Any]]:
        rows = self._fetchall(
            "SELECT g.id, g.name FROM group_questionnaires gq "
            "JOIN `groups` g ON g.id = gq.groupId "
            "WHERE gq.questionnaireId = %s ORDER BY g.name",
            (questionnaire_id,),
        )
        return [{"id": int(r[0]), "name": r[1]} for r in rows]

    # --- searches --------------------------------------------------------------

    def _search_translated(self, table: str, translation_table: str, fk: str, query: str) -> List[Dict[str, Any]]:
        like = "%" + (query or "").strip().lower() + "%"
        sql = (
            "SELECT c.id, "
            f"(SELECT t.name FROM {translation_table} t WHERE t.{fk} = c.id AND t.language = 'nl' LIMIT 1) AS nameNl, "
            f"(SELECT t.name FROM {translation_table} t WHERE t.{fk} = c.id AND t.language = 'en' LIMIT 1) AS nameEn "
            f"FROM {table} c "
            "WHERE LOWER(c.name) LIKE %s "
            f"OR EXISTS (SELECT 1 FROM {translation_table} t WHERE t.{fk} = c.id AND LOWER(t.name) LIKE %s) "
            "LIMIT %s"
        )
        rows = self._fetchall(sql, (like, like, _SEARCH_LIMIT))
        return [{"id": int(r[0]), "nameNl": r[1], "nameEn": r[2]} for r in rows]

    def search_competences(self, query: str) -> List[Dict[str, Any]]:
        return self._search_translated("competences", "competence_translations", "competenceId", query)

    def search_categories(self, query: str) -> List[Dict[str, Any]]:
        return self._search_translated("categories", "category_translations", "categoryId", query)

    def list_questionnaires(self, query: str | None = None, limit: int = 50) -> List[Dict[str, Any]]:
        limit = max(1, min(100, int(limit or 50)))
        sql = (
            "SELECT q.id, q.name, "
            "(SELECT t.name FROM questionnaire_translations t WHERE t.questionnaireId = q.id AND t.language = 'nl' LIMIT 1) AS nameNl, "
            "(SELECT t.name FROM questionnaire_translations t WHERE t.questionnaireId = q.id AND t.language = 'en' LIMIT 1) AS nameEn, "
            "(SELECT COUNT(*) FROM questionnaire_items qi WHERE qi.questionnaireId = q.id) AS itemCount, "
            "(SELECT COUNT(DISTINCT ci.competenceId) FROM questionnaire_items qi "
            " JOIN competence_items ci ON ci.itemId = qi.itemId WHERE qi.questionnaireId = q.id) AS competenceCount "
            "FROM questionnaires q "
        )
        params: list[Any] = []
        if query and query.strip():
            like = "%" + query.strip().lower() + "%"
            sql += (
                "WHERE LOWER(q.name) LIKE %s "
                "OR EXISTS (SELECT 1 FROM questionnaire_translations t WHERE t.questionnaireId = q.id AND LOWER(t.name) LIKE %s) "
            )
            params.extend([like, like])
        sql += "ORDER BY q.id DESC LIMIT %s"
        params.append(limit)
        rows = self._fetchall(sql, params)
        return [
            {
                "id": int(r[0]),
                "name": r[1],
                "nameNl": r[2],
                "nameEn": r[3],
                "itemCount": int(r[4] or 0),
                "competenceCount": int(r[5] or 0),
            }
            for r in rows
        ]

    # --- mutations -------------------------------------------------------------

    def execute_sql_statements(self, statements: Sequence[str]) -> List[Dict[str, Any]]:
        """Execute planned statements in order and return per-statement timings.

        Returns: [{"i": index, "ms": elapsed_ms, "sql": first 80 chars}]
        """
        plan = [s for s in statements if s is not None and s.strip()]
        bypass_triggers = any("competence_questions" in s for s in plan)
        timings: List[Dict[str, Any]] = []
        with self._conn.cursor() as cur:
            if bypass_triggers:
                for name in SCORE_TRIGGER_NAMES:
                    cur.execute(f"DROP TRIGGER IF EXISTS {name}")
            try:
                for idx, statement in enumerate(plan):
                    sql = statement.strip()
                    if sql.endswith(";"):
                        sql = sql[:-1]
                    started = time.perf_counter()
                    cur.execute(sql)
                    elapsed = int((time.perf_counter() - started) * 1000)
                    timings.append({"i": idx, "ms": elapsed, "sql": sql[:80]})
            finally:
                if bypass_triggers:
                    for ddl in SCORE_TRIGGER_DDL:
                        cur.execute(ddl)
        logger.debug("Executed %s statements (trigger bypass=%s)", len(timings), bypass_triggers)
        return timings

    def update_translation_urls(self, questionnaire_id: int, lang: str, questions_url: str, report_url: str) -> None:
        with self._conn.cursor() as cur:
            cur.execute(
                "UPDATE questionnaire_translations SET questions = %s, report = %s "
                "WHERE questionnaireId = %s AND language = %s",
                (questions_url, report_url, questionnaire_id, lang),
            )
            updated = cur.rowcount
        if not updated or updated <= 0:
            raise UrlPatchMissed(questionnaire_id, lang)


__all__ = [
    "MetroLookup",
    "MAX_ID_TABLES",
    "SCORE_TRIGGER_NAMES",
    "SCORE_TRIGGER_DDL",
]
