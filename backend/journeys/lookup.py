"""
Read views over published learning journeys.

Behavior:
    - `list_journeys()` returns `{id, name, ljKey}` newest first.
    - `get_journey(id)` resolves step titles, texts and questions from the
      `labels` table in both languages and derives the structural step type
      back from `size` (see `derive_structural_type`). Unknown id -> `NotFound`.
    - `aiCoachEnabled` is read only when the column exists; older schemas
      report `False`.
"""
from __future__ import annotations

from typing import Any, Dict, List

from backend.journeys.identifiers import LIKE_ESCAPE, journey_pattern
from backend.metro.errors import NotFound


def derive_structural_type(size: str | None, is_last: bool) -> str:
    if size == "small":
        return "substap"
    if size == "medium":
        return "hoofdstap"
    return "afsluiting" if is_last else "hoofdstap"


def _label_subquery(column: str, lang: str, alias: str) -> str:
    return f"(SELECT l.text FROM labels l WHERE l.identifier = {column} AND l.lang = '{lang}' LIMIT 1) AS {alias}"


_STEPS_SQL = (
    "SELECT s.id, s.position, s.type, s.colour, s.size, s.conversation, s.documents, "
    + ", ".join(
        [
            _label_subquery("s.title", "nl", "titleNl"),
            _label_subquery("s.title", "en", "titleEn"),
            _label_subquery("s.textContent", "nl", "textContentNl"),
            _label_subquery("s.textContent", "en", "textContentEn"),
        ]
    )
    + " FROM steps s WHERE s.learningJourneyId = %s ORDER BY s.position"
)

_QUESTIONS_SQL = (
    "SELECT sq.id, sq.`order`, sq.type, "
    + _label_subquery("sq.question", "nl", "textNl")
    + ", "
    + _label_subquery("sq.question", "en", "textEn")
    + " FROM step_question sq WHERE sq.stepId = %s ORDER BY sq.`order`"
)


class JourneyLookup:
    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self._has_ai_coach: bool | None = None

    def _fetchall(self, sql: str, params=()) -> List[tuple]:
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            return list(cur.fetchall() or [])

    def _has_ai_coach_column(self) -> bool:
        if self._has_ai_coach is None:
            rows = self._fetchall(
                "SELECT COUNT(*) FROM INFORMATION_SCHEMA.COLUMNS "
                "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = 'learning_journeys' AND COLUMN_NAME = 'aiCoachEnabled'"
            )
            self._has_ai_coach = bool(rows and rows[0][0])
        return self._has_ai_coach

    def list_journeys(self) -> List[Dict[str, Any]]:
        rows = self._fetchall("SELECT id, name, ljKey FROM learning_journeys ORDER BY id DESC")
        return [{"id": int(r[0]), "name": r[1], "ljKey": r[2]} for r in rows]

    def get_journey(self, journey_id: int) -> Dict[str, Any]:
        has_ai_coach = self._has_ai_coach_column()
        columns = "id, name, nameEn, ljKey, description, descriptionEn" + (", aiCoachEnabled" if has_ai_coach else "")
        rows = self._fetchall(f"SELECT {columns} FROM learning_journeys WHERE id = %s", (journey_id,))
        if not rows:
            raise NotFound(f"Learning journey {journey_id} not found")
        row = rows[0]
        return {
            "id": int(row[0]),
            "name": row[1],
            "nameEn": row[2],
            "ljKey": row[3],
            "description": row[4],
            "descriptionEn": row[5],
            "steps": self._steps(journey_id),
            "documents": self._documents(journey_id),
            "groupIds": self._group_ids(journey_id),
            "aiCoachEnabled": bool(has_ai_coach and int(row[6] or 0) == 1),
        }

    def _steps(self, journey_id: int) -> List[Dict[str, Any]]:
        rows = self._fetchall(_STEPS_SQL, (journey_id,))
        steps = []
        for idx, r in enumerate(rows):
            step_id = int(r[0])
            steps.append(
                {
                    "id": step_id,
                    "position": int(r[1]),
                    "structuralType": derive_structural_type(r[4], idx == len(rows) - 1),
                    "titleNl": r[7],
                    "titleEn": r[8],
                    "textContentNl": r[9],
                    "textContentEn": r[10],
                    "dbType": r[2],
                    "colour": r[3],
                    "size": r[4],
                    "chatboxEnabled": r[5] == "S",
                    "documentsIdentifier": r[6],
                    "questions": self._questions(step_id),
                }
            )
        return steps

    def _questions(self, step_id: int) -> List[Dict[str, Any]]:
        rows = self._fetchall(_QUESTIONS_SQL, (step_id,))
        return [
            {"id": int(r[0]), "order": int(r[1]), "questionType": r[2], "textNl": r[3], "textEn": r[4]}
            for r in rows
        ]

    def _documents(self, journey_id: int) -> List[Dict[str, Any]]:
        rows = self._fetchall(
            "SELECT d.id, d.identifier, d.label, d.url, d.lang FROM learning_journey_documents d "
            f"WHERE d.identifier LIKE %s ESCAPE '{LIKE_ESCAPE}' ORDER BY d.identifier, d.lang",
            (journey_pattern(journey_id),),
        )
        return [{"id": int(r[0]), "identifier": r[1], "label": r[2], "url": r[3], "lang": r[4]} for r in rows]

    def _group_ids(self, journey_id: int) -> List[int]:
        rows = self._fetchall("SELECT groupId FROM group_learning_journey WHERE learningJourneyId = %s", (journey_id,))
        return [int(r[0]) for r in rows]


__all__ = ["JourneyLookup", "derive_structural_type"]
