"""
Assessment definition export and compose.

Intent:
    Reverse a publish: read a questionnaire graph out of Metro and return a
    language-neutral definition document; compose several exports into one.

Behavior:
    - Items are grouped under competences, competences under categories, both
      in first-seen order of the item join, then sorted by the minimum item
      `order` underneath.
    - `invertOrder == 0` maps to polarity `positive`, anything else `negative`.
    - `questionnaire_translations.report` becomes `description` and
      `questionnaire_translations.questions` becomes `instruction`. Consumers
      depend on this exact mapping.
    - `compose` turns every source questionnaire into a single category named
      after the source (id 0) holding all of its competences; the composed
      document has the synthetic id 0 and is never persisted.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence


logger = logging.getLogger("builder.assessments.definitions")

DEFINITION_VERSION = "1.0"
SCALE = {"points": 6, "type": "bipolar"}
_UNSORTED = 2**31 - 1


class DefinitionRepository:
    """Read-only queries over one Metro connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            return list(cur.fetchall() or [])

    def find_questionnaire(self, questionnaire_id: int) -> Optional[Dict[str, Any]]:
        rows = self._fetchall("SELECT id, name FROM questionnaires WHERE id = %s", (questionnaire_id,))
        if not rows:
            return None
        return {"id": int(rows[0][0]), "name": rows[0][1]}

    def find_questionnaire_translations(self, questionnaire_id: int) -> List[Dict[str, Any]]:
        rows = self._fetchall(
            "SELECT language, name, questions, report FROM questionnaire_translations WHERE questionnaireId = %s",
            (questionnaire_id,),
        )
        return [{"language": r[0], "name": r[1], "questions": r[2], "report": r[3]} for r in rows]

    def find_item_details(self, questionnaire_id: int) -> List[Dict[str, Any]]:
        rows = self._fetchall(
            "SELECT qi.itemId, i.name, i.invertOrder, qi.`order`, ci.competenceId, cc.categoryId "
            "FROM questionnaire_items qi "
            "JOIN items i ON i.id = qi.itemId "
            "JOIN competence_items ci ON ci.itemId = qi.itemId "
            "JOIN category_competences cc ON cc.competenceId = ci.competenceId "
            "WHERE qi.questionnaireId = %s ORDER BY qi.`order` ASC",
            (questionnaire_id,),
        )
        return [
            {
                "item_id": int(r[0]),
                "item_name": r[1],
                "invert_order": int(r[2] or 0),
                "item_order": int(r[3] or 0),
                "competence_id": int(r[4]),
                "category_id": int(r[5]),
            }
            for r in rows
        ]

    def find_item_translations(self, questionnaire_id: int) -> List[tuple]:
        return self._fetchall(
            "SELECT it.itemId, it.language, it.leftText, it.rightText FROM item_translations it "
            "WHERE it.itemId IN (SELECT qi.itemId FROM questionnaire_items qi WHERE qi.questionnaireId = %s)",
            (questionnaire_id,),
        )

    def _for_ids(self, sql_prefix: str, ids: Sequence[int]) -> List[tuple]:
        if not ids:
            return []
        placeholders = ", ".join(["%s"] * len(ids))
        return self._fetchall(f"{sql_prefix} ({placeholders})", list(ids))

    def find_competence_translations(self, competence_ids: Sequence[int]) -> List[tuple]:
        return self._for_ids(
            "SELECT competenceId, language, name, description FROM competence_translations WHERE competenceId IN",
            competence_ids,
        )

    def find_category_translations(self, category_ids: Sequence[int]) -> List[tuple]:
        return self._for_ids(
            "SELECT categoryId, language, name FROM category_translations WHERE categoryId IN",
            category_ids,
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _texts_by_id(rows: List[tuple], build: Callable[[tuple], Dict[str, Any]]) -> Dict[int, Dict[str, Dict[str, Any]]]:
    out: Dict[int, Dict[str, Dict[str, Any]]] = {}
    for row in rows:
        out.setdefault(int(row[0]), {})[row[1]] = build(row)
    return out


def _document(definition_id: int, created_from: str, texts: Dict[str, Any], categories: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "id": definition_id,
        "version": DEFINITION_VERSION,
        "metadata": {"createdFrom": created_from, "exportedAt": _now_iso()},
        "texts": texts,
        "scale": dict(SCALE),
        "categories": categories,
    }


class DefinitionService:
    def __init__(self, repository: DefinitionRepository) -> None:
        self._repo = repository

    def export(self, questionnaire_id: int) -> Optional[Dict[str, Any]]:
        """Return the definition document or `None` when the id is unknown."""
        if self._repo.find_questionnaire(questionnaire_id) is None:
            return None

        texts: Dict[str, Any] = {}
        for tr in self._repo.find_questionnaire_translations(questionnaire_id):
            texts[tr["language"]] = {
                "name": tr["name"],
                "description": tr["report"],
                "instruction": tr["questions"],
            }

        rows = self._repo.find_item_details(questionnaire_id)
        if not rows:
            return _document(questionnaire_id, "metro-sql", texts, [])

        competence_ids: List[int] = []
        category_ids: List[int] = []
        competence_category: Dict[int, int] = {}
        for row in rows:
            if row["competence_id"] not in competence_ids:
                competence_ids.append(row["competence_id"])
            if row["category_id"] not in category_ids:
                category_ids.append(row["category_id"])
            competence_category.setdefault(row["competence_id"], row["category_id"])

        item_texts = _texts_by_id(
            self._repo.find_item_translations(questionnaire_id),
            lambda r: {"leftText": r[2], "rightText": r[3]},
        )
        competence_texts = _texts_by_id(
            self._repo.find_competence_translations(competence_ids),
            lambda r: {"name": r[2], "description": r[3]},
        )
        category_texts = _texts_by_id(
            self._repo.find_category_translations(category_ids),
            lambda r: {"name": r[2]},
        )

        items_by_competence: Dict[int, List[Dict[str, Any]]] = {}
        seen_items = set()
        for row in rows:
            if row["item_id"] in seen_items:
                continue
            seen_items.add(row["item_id"])
            items_by_competence.setdefault(row["competence_id"], []).append(
                {
                    "id": row["item_id"],
                    "polarity": "positive" if row["invert_order"] == 0 else "negative",
                    "sortOrder": row["item_order"],
                    "texts": item_texts.get(row["item_id"], {}),
                }
            )
        for items in items_by_competence.values():
            items.sort(key=lambda item: item["sortOrder"])

        competences_by_category: Dict[int, List[Dict[str, Any]]] = {}
        for competence_id in competence_ids:
            items = items_by_competence.get(competence_id, [])
            competences_by_category.setdefault(competence_category[competence_id], []).append(
                {
                    "id": competence_id,
                    "sortOrder": min((i["sortOrder"] for i in items), default=_UNSORTED),
                    "texts": competence_texts.get(competence_id, {}),
                    "items": items,
                }
            )
        for competences in competences_by_category.values():
            competences.sort(key=lambda c: c["sortOrder"])

        categories = []
        for category_id in category_ids:
            competences = competences_by_category.get(category_id, [])
            categories.append(
                {
                    "id": category_id,
                    "sortOrder": min((c["sortOrder"] for c in competences), default=_UNSORTED),
                    "texts": category_texts.get(category_id, {}),
                    "competences": competences,
                }
            )
        categories.sort(key=lambda c: c["sortOrder"])
        return _document(questionnaire_id, "metro-sql", texts, categories)

    def compose(self, questionnaire_ids: Sequence[int]) -> Dict[str, Any]:
        categories: List[Dict[str, Any]] = []
        for questionnaire_id in questionnaire_ids:
            definition = self.export(int(questionnaire_id))
            if definition is None:
                logger.info("compose: questionnaire %s not found; skipped", questionnaire_id)
                continue
            competences: List[Dict[str, Any]] = []
            for category in definition["categories"]:
                competences.extend(category["competences"])
            categories.append(
                {
                    "id": 0,
                    "sortOrder": len(categories),
                    "texts": {lang: {"name": t.get("name")} for lang, t in definition["texts"].items()},
                    "competences": competences,
                }
            )
        return _document(0, "compose", {}, categories)


__all__ = ["DefinitionRepository", "DefinitionService", "DEFINITION_VERSION"]
