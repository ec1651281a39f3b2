"""
Assessment SQL planner: turn an authoring request into an ordered SQL plan.

Intent:
    Decouple SQL emission from execution so a publish can be logged, replayed
    and unit-tested without a live Metro database. The planner only reads
    (max ids, name lookups, group existence) through the lookup port; all
    mutations are returned as literal statements for the executor.

Behavior:
    - Max ids are read once and seed a fresh `IdAllocator` per plan.
    - Unknown group ids fail fast with `UnknownGroup` before anything is emitted.
    - Questionnaire identity: `editQuestionnaireId` wins, then a name lookup
      (reuse with a clean-and-replace block), else a new id.
    - Competences are processed in received order; categories and goals are
      resolved through a per-plan cache, then lookup, then allocation.
    - Link rows without a uniqueness constraint use
      `INSERT ... SELECT ... FROM DUAL WHERE NOT EXISTS`.
    - `competence_questions.questionId` comes from the shared numbering so it
      always matches the XML identifiers.

Security:
    String literals are escaped by single-quote doubling; ids are integers
    produced here or by the database, never raw request text.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional, Protocol, Sequence

from backend.assessments.models import AssessmentBuildRequest, validate_assessment_request
from backend.assessments.numbering import question_ids
from backend.metro.errors import UnknownGroup
from backend.metro.ids import IdAllocator


logger = logging.getLogger("builder.assessments.planner")

MAX_QUESTIONNAIRE_NAME = 30


class PlannerLookup(Protocol):
    def get_all_max_ids(self) -> Dict[str, int]: ...

    def find_missing_group_ids(self, ids: Sequence[int]) -> List[int]: ...

    def find_questionnaire_id_by_name(self, name: str | None) -> Optional[int]: ...

    def find_category_id_by_name(self, name: str | None) -> Optional[int]: ...

    def find_goal_id_by_name(self, name: str | None) -> Optional[int]: ...

    def find_competence_id_by_name(self, name: str | None) -> Optional[int]: ...


@dataclass
class PlanSummary:
    questionnaire_id: int
    new_competences: int = 0
    new_categories: int = 0
    new_goals: int = 0
    new_items: int = 0
    reused_questionnaire: bool = False

    def to_dict(self) -> dict:
        return {
            "questionnaireId": self.questionnaire_id,
            "newCompetences": self.new_competences,
            "newCategories": self.new_categories,
            "newGoals": self.new_goals,
            "newItems": self.new_items,
        }


@dataclass
class IntegrationPlan:
    sql_statements: List[str]
    warnings: List[str]
    summary: PlanSummary


# --- SQL literal helpers ------------------------------------------------------

def _safe(value: str | None) -> str:
    return (value or "").strip()


def escape(value: str | None) -> str:
    return (value or "").replace("'", "''")


def quoted(value: str | None) -> str:
    return "'" + escape(value) + "'"


def null_or_quoted(value: str | None) -> str:
    if value is None or not value.strip():
        return "NULL"
    return quoted(value)


def truncate_name(value: str, warnings: List[str], limit: int = MAX_QUESTIONNAIRE_NAME) -> str:
    if len(value) <= limit:
        return value
    warnings.append(f"Assessment naam is langer dan {limit} tekens en is afgekapt voor Metro.")
    return value[:limit]


def _insert_if_absent(table: str, columns: Sequence[str], values: Sequence[int]) -> str:
    cols = ", ".join(columns)
    vals = ", ".join(str(v) for v in values)
    cond = " AND ".join(f"{c} = {v}" for c, v in zip(columns, values))
    return f"INSERT INTO {table} ({cols}) SELECT {vals} FROM DUAL WHERE NOT EXISTS (SELECT 1 FROM {table} WHERE {cond});"


@dataclass
class _PlanState:
    statements: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    category_ids: Dict[str, int] = field(default_factory=dict)
    goal_ids: Dict[str, int] = field(default_factory=dict)
    item_order: int = 0


class AssessmentPlanner:
    """Build an `IntegrationPlan` for one publish against one Metro lookup."""

    def __init__(self, lookup: PlannerLookup) -> None:
        self._lookup = lookup

    def plan(self, request: AssessmentBuildRequest) -> IntegrationPlan:
        validate_assessment_request(request)
        ids = IdAllocator(self._lookup.get_all_max_ids())

        missing = self._lookup.find_missing_group_ids(request.group_ids)
        if missing:
            raise UnknownGroup(missing)

        state = _PlanState()
        name_nl = truncate_name(_safe(request.assessment_name), state.warnings)
        name_en = _safe(request.assessment_name_en) or name_nl

        questionnaire_id, reused = self._resolve_questionnaire(request, name_nl, ids, state)
        if reused:
            self._emit_clean_block(questionnaire_id, name_nl, name_en, state)
        else:
            state.statements.append(
                f"INSERT INTO questionnaires(id, name) VALUES ({questionnaire_id}, {quoted(name_nl)});"
            )
            self._emit_questionnaire_translations(questionnaire_id, name_nl, name_en, state)

        summary = PlanSummary(questionnaire_id=questionnaire_id, reused_questionnaire=reused)
        numbering = question_ids(request.competences)
        linked_categories: List[int] = []
        linked_goals: List[int] = []

        for idx, competence in enumerate(request.competences):
            category_name = _safe(competence.category)
            category_id = self._resolve_category(category_name, ids, state, summary)
            if category_id not in linked_categories:
                linked_categories.append(category_id)

            goal_id: Optional[int] = None
            goal_name = _safe(competence.subcategory)
            if goal_name:
                goal_id = self._resolve_goal(goal_name, ids, state, summary)
                if goal_id not in linked_goals:
                    linked_goals.append(goal_id)

            competence_id = self._resolve_competence(competence, ids, state, summary)
            if competence_id is None:
                state.warnings.append(
                    f"Competence '{competence.name}' is gemarkeerd als bestaand maar heeft geen existingId. "
                    "Koppelingen zijn overgeslagen."
                )
                logger.warning("Skipping links for unresolved competence %r", competence.name)
                continue

            state.statements.append(
                _insert_if_absent("category_competences", ("categoryId", "competenceId"), (category_id, competence_id))
            )
            if goal_id is not None:
                state.statements.append(
                    _insert_if_absent("goal_competences", ("goalId", "competenceId"), (goal_id, competence_id))
                )

            left = _safe(competence.question_left)
            right = _safe(competence.question_right)
            if left or right:
                self._emit_item(
                    questionnaire_id, competence_id, competence, numbering[idx], ids, state
                )
                summary.new_items += 1

        for group_id in request.group_ids:
            state.statements.append(
                "INSERT IGNORE INTO group_questionnaires (groupId, questionnaireId, promoted, price) "
                f"VALUES ({int(group_id)}, {questionnaire_id}, 0, 0.00);"
            )
            for category_id in linked_categories:
                state.statements.append(
                    _insert_if_absent("group_categories", ("groupId", "categoryId"), (int(group_id), category_id))
                )
            for goal_id in linked_goals:
                state.statements.append(
                    _insert_if_absent("group_goals", ("groupId", "goalId"), (int(group_id), goal_id))
                )

        return IntegrationPlan(state.statements, state.warnings, summary)

    # --- questionnaire ---------------------------------------------------------

    def _resolve_questionnaire(self, request: AssessmentBuildRequest, name: str, ids: IdAllocator, state: _PlanState):
        if request.edit_questionnaire_id is not None:
            qid = int(request.edit_questionnaire_id)
            state.warnings.append(f"Questionnaire ID {qid} wordt bewerkt; questionnaire wordt bijgewerkt.")
            return qid, True
        existing = self._lookup.find_questionnaire_id_by_name(name)
        if existing is not None:
            state.warnings.append(
                f"Questionnaire '{name}' bestaat al (ID: {existing}); questionnaire wordt bijgewerkt."
            )
            return int(existing), True
        return ids.next("questionnaires"), False

    @staticmethod
    def _emit_questionnaire_translations(qid: int, name_nl: str, name_en: str, state: _PlanState) -> None:
        for lang, name in (("nl", name_nl), ("en", name_en)):
            state.statements.append(
                "INSERT INTO questionnaire_translations(questionnaireId, language, name, questions, report) "
                f"VALUES ({qid}, '{lang}', {quoted(name)}, NULL, NULL);"
            )

    def _emit_clean_block(self, qid: int, name_nl: str, name_en: str, state: _PlanState) -> None:
        state.statements.extend(
            [
                "DELETE it FROM item_translations it JOIN questionnaire_items qi ON qi.itemId = it.itemId "
                f"WHERE qi.questionnaireId = {qid};",
                "DELETE ci FROM competence_items ci JOIN questionnaire_items qi ON qi.itemId = ci.itemId "
                f"WHERE qi.questionnaireId = {qid};",
                "DELETE i FROM items i JOIN questionnaire_items qi ON qi.itemId = i.id "
                f"WHERE qi.questionnaireId = {qid};",
                f"DELETE FROM questionnaire_items WHERE questionnaireId = {qid};",
                f"DELETE FROM competence_questions WHERE questionnaireId = {qid};",
                f"DELETE FROM group_questionnaires WHERE questionnaireId = {qid};",
                f"DELETE FROM questionnaire_translations WHERE questionnaireId = {qid};",
            ]
        )
        self._emit_questionnaire_translations(qid, name_nl, name_en, state)
        state.statements.append(f"UPDATE questionnaires SET name = {quoted(name_nl)} WHERE id = {qid};")

    # --- taxonomy --------------------------------------------------------------

    def _resolve_category(self, name: str, ids: IdAllocator, state: _PlanState, summary: PlanSummary) -> int:
        key = name.lower()
        cached = state.category_ids.get(key)
        if cached is not None:
            return cached
        category_id = self._lookup.find_category_id_by_name(name)
        if category_id is None:
            category_id = ids.next("categories")
            state.statements.append(f"INSERT INTO categories(id, name) VALUES ({category_id}, {quoted(name)});")
            for lang in ("nl", "en"):
                state.statements.append(
                    "INSERT INTO category_translations(categoryId, language, name) "
                    f"VALUES ({category_id}, '{lang}', {quoted(name)});"
                )
            summary.new_categories += 1
        state.category_ids[key] = int(category_id)
        return int(category_id)

    def _resolve_goal(self, name: str, ids: IdAllocator, state: _PlanState, summary: PlanSummary) -> int:
        key = name.lower()
        cached = state.goal_ids.get(key)
        if cached is not None:
            return cached
        goal_id = self._lookup.find_goal_id_by_name(name)
        if goal_id is None:
            goal_id = ids.next("goals")
            state.statements.append(f"INSERT INTO goals(id, name) VALUES ({goal_id}, {quoted(name)});")
            for lang in ("nl", "en"):
                state.statements.append(
                    "INSERT INTO goal_translations(goalId, language, name) "
                    f"VALUES ({goal_id}, '{lang}', {quoted(name)});"
                )
            summary.new_goals += 1
        state.goal_ids[key] = int(goal_id)
        return int(goal_id)

    def _resolve_competence(self, competence, ids: IdAllocator, state: _PlanState, summary: PlanSummary) -> Optional[int]:
        if competence.existing_id is not None:
            return int(competence.existing_id)
        found = self._lookup.find_competence_id_by_name(competence.name)
        if found is not None:
            return int(found)
        if not competence.is_new:
            return None

        competence_id = ids.next("competences")
        name = _safe(competence.name)
        description = _safe(competence.description)
        name_en = _safe(competence.name_en) or name
        description_en = _safe(competence.description_en) or description
        state.statements.append(
            "INSERT INTO competences(id, name, description, defaultMinPassScore, defaultMinMentorScore) "
            f"VALUES ({competence_id}, {quoted(name)}, {null_or_quoted(description)}, NULL, NULL);"
        )
        state.statements.append(
            "INSERT INTO competence_translations(competenceId, language, name, description) "
            f"VALUES ({competence_id}, 'nl', {quoted(name)}, {null_or_quoted(description)});"
        )
        state.statements.append(
            "INSERT INTO competence_translations(competenceId, language, name, description) "
            f"VALUES ({competence_id}, 'en', {quoted(name_en)}, {null_or_quoted(description_en)});"
        )
        summary.new_competences += 1
        return competence_id

    # --- items -----------------------------------------------------------------

    @staticmethod
    def _emit_item(qid: int, competence_id: int, competence, question_id: str, ids: IdAllocator, state: _PlanState) -> None:
        item_id = ids.next("items")
        left = _safe(competence.question_left)
        right = _safe(competence.question_right)
        left_nl = left or right
        right_nl = right or left
        left_en = _safe(competence.question_left_en) or left_nl
        right_en = _safe(competence.question_right_en) or right_nl
        item_name = _safe(competence.name) + "_item"

        state.statements.append(f"INSERT INTO items(id, name, invertOrder) VALUES ({item_id}, {quoted(item_name)}, 0);")
        state.statements.append(
            "INSERT INTO item_translations(itemId, language, leftText, rightText) "
            f"VALUES ({item_id}, 'nl', {quoted(left_nl)}, {quoted(right_nl)});"
        )
        state.statements.append(
            "INSERT INTO item_translations(itemId, language, leftText, rightText) "
            f"VALUES ({item_id}, 'en', {quoted(left_en)}, {quoted(right_en)});"
        )
        state.item_order += 1
        state.statements.append(
            "INSERT INTO questionnaire_items (questionnaireId, itemId, `order`) "
            f"VALUES ({qid}, {item_id}, {state.item_order});"
        )
        state.statements.append(
            f"INSERT INTO competence_items (competenceId, itemId) VALUES ({competence_id}, {item_id});"
        )
        cq_id = ids.next("competence_questions")
        state.statements.append(
            "INSERT INTO competence_questions (competenceId, questionnaireId, questionId, cq_id) "
            f"VALUES ({competence_id}, {qid}, {quoted(question_id)}, {cq_id});"
        )


__all__ = [
    "AssessmentPlanner",
    "IntegrationPlan",
    "PlanSummary",
    "PlannerLookup",
    "escape",
    "null_or_quoted",
    "MAX_QUESTIONNAIRE_NAME",
]
