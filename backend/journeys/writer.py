"""
Learning journey writer: parameterized inserts, re-publish cleanup and delete.

Intent:
    Materialize a validated journey request into the Metro learning journey
    tables on a connection owned by the caller's transaction.

Behavior:
    - Phase order is fixed: journey row, labels + step rows, questions,
      documents, group bindings. Parents always precede children.
    - Re-publish (`editLearningJourneyId` that still exists) keeps the journey
      id and `user_learning_journey` rows; derived content is deleted and
      re-inserted. A stale edit id falls back to inserting a new journey.
    - Step colour/size come from the structural type only (`step_visuals`);
      `steps.type` is `QUESTION` iff the step has questions.
    - Group bindings end up exactly equal to the requested set.

Permissions:
    Requires DML rights on the learning journey tables and ALTER on
    `learning_journeys` the first time the bilingual columns are missing.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from backend.journeys.identifiers import (
    doc_group_id,
    generate_lj_key,
    journey_pattern,
    LIKE_ESCAPE,
    label_category,
    label_id,
    question_label_id,
    truncate,
)
from backend.journeys.media import ensure_media_in_en
from backend.journeys.models import DEFAULT_QUESTION_TYPE, JourneyPublishRequest, StepInput, StepType
from backend.metro.errors import UnknownGroup


logger = logging.getLogger("builder.journeys")

MAX_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 50
MAX_LABEL_TEXT_LENGTH = 10000

DB_TYPE_TEXT = "TEXT"
DB_TYPE_QUESTION = "QUESTION"
DEFAULT_ROLE = "principal"

COLOUR_BLUE = "blue"
COLOUR_ORANGE = "orange"
COLOUR_VIOLET = "violet"
SIZE_BIG = "big"
SIZE_MEDIUM = "medium"
SIZE_SMALL = "small"
# 2nd hoofdstap orange, 3rd violet, 4th orange, ...
ALTERNATING_COLOURS = (COLOUR_ORANGE, COLOUR_VIOLET)

_COLUMN_EXISTS_SQL = (
    "SELECT COUNT(*) FROM INFORMATION_SCHEMA.COLUMNS "
    "WHERE UPPER(TABLE_NAME) = UPPER(%s) AND UPPER(COLUMN_NAME) = UPPER(%s)"
)

_DELETE_USER_ANSWERS_SQL = (
    "DELETE usa FROM user_step_answer usa "
    "INNER JOIN user_step us ON us.id = usa.userStepId "
    "INNER JOIN user_learning_journey ulj ON ulj.id = us.userLearningJourneyId "
    "WHERE ulj.learningJourneyId = %s"
)
_DELETE_USER_STEPS_SQL = (
    "DELETE us FROM user_step us "
    "INNER JOIN user_learning_journey ulj ON ulj.id = us.userLearningJourneyId "
    "WHERE ulj.learningJourneyId = %s"
)
_DELETE_STEP_QUESTIONS_SQL = (
    "DELETE sq FROM step_question sq "
    "INNER JOIN steps s ON s.id = sq.stepId "
    "WHERE s.learningJourneyId = %s"
)
_DELETE_LABELS_SQL = f"DELETE FROM labels WHERE identifier LIKE %s ESCAPE '{LIKE_ESCAPE}'"
_DELETE_DOCUMENTS_SQL = f"DELETE FROM learning_journey_documents WHERE identifier LIKE %s ESCAPE '{LIKE_ESCAPE}'"


def _fallback(primary: str | None, fallback_value: str | None) -> str | None:
    return primary if primary is not None and primary.strip() else fallback_value


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def step_visuals(steps: Sequence[StepInput]) -> List[Tuple[str, str]]:
    """Return `(colour, size)` per step, derived from structural type only."""
    visuals: List[Tuple[str, str]] = []
    hoofdstap_counter = 0
    group_colour = COLOUR_BLUE
    for step in steps:
        if step.type == StepType.HOOFDSTAP:
            hoofdstap_counter += 1
            if hoofdstap_counter == 1:
                group_colour = COLOUR_BLUE
            else:
                group_colour = ALTERNATING_COLOURS[(hoofdstap_counter - 2) % len(ALTERNATING_COLOURS)]
            visuals.append((group_colour, SIZE_BIG if hoofdstap_counter == 1 else SIZE_MEDIUM))
        elif step.type == StepType.SUBSTAP:
            visuals.append((group_colour, SIZE_SMALL))
        elif step.type == StepType.AFSLUITING:
            visuals.append((COLOUR_BLUE, SIZE_BIG))
        else:  # pragma: no cover - guarded by the enum
            raise ValueError(f"Unknown step type: {step.type}")
    return visuals


def _ms_since(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class JourneyWriter:
    """Writes one journey on a caller-owned Metro connection."""

    def __init__(self, conn: Any, *, docs_base_url: str) -> None:
        self._conn = conn
        self._docs_base_url = docs_base_url if docs_base_url.endswith("/") else docs_base_url + "/"

    # --- helpers ---------------------------------------------------------------

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            return int(cur.rowcount or 0)

    def _insert(self, sql: str, params: Sequence[Any]) -> int:
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            new_id = cur.lastrowid
        if not new_id:
            raise RuntimeError("No generated key returned for: " + sql.split("(")[0].strip())
        return int(new_id)

    def _scalar(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self._conn.cursor() as cur:
            cur.execute(sql, tuple(params))
            row = cur.fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    def _insert_label(self, identifier: str, text: str | None, lang: str, category: str) -> None:
        self._execute(
            "INSERT INTO labels (identifier, text, lang, category) VALUES (%s, %s, %s, %s)",
            (identifier, text, lang, category),
        )

    # --- schema ----------------------------------------------------------------

    def ensure_bilingual_columns(self, environment: str) -> None:
        if self._scalar(_COLUMN_EXISTS_SQL, ("learning_journeys", "nameEn")) == 0:
            logger.info("[%s] Schema migration: adding nameEn/descriptionEn to learning_journeys", environment)
            self._execute("ALTER TABLE learning_journeys ADD COLUMN nameEn VARCHAR(50) NULL")
            self._execute("ALTER TABLE learning_journeys ADD COLUMN descriptionEn VARCHAR(50) NULL")
        if self._scalar(_COLUMN_EXISTS_SQL, ("learning_journeys", "aiCoachEnabled")) == 0:
            logger.info("[%s] Schema migration: adding aiCoachEnabled to learning_journeys", environment)
            self._execute("ALTER TABLE learning_journeys ADD COLUMN aiCoachEnabled INT NOT NULL DEFAULT 0")

    # --- journey row -----------------------------------------------------------

    @staticmethod
    def _journey_columns(request: JourneyPublishRequest) -> tuple:
        return (
            truncate(request.name, MAX_NAME_LENGTH),
            truncate(request.name_en, MAX_NAME_LENGTH),
            generate_lj_key(request.name),
            truncate(request.description or "", MAX_DESCRIPTION_LENGTH),
            truncate(request.description_en, MAX_DESCRIPTION_LENGTH),
            1 if request.ai_coach_enabled else 0,
        )

    def insert_journey(self, request: JourneyPublishRequest) -> int:
        return self._insert(
            "INSERT INTO learning_journeys (name, nameEn, ljKey, description, descriptionEn, aiCoachEnabled) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            self._journey_columns(request),
        )

    def update_journey(self, journey_id: int, request: JourneyPublishRequest) -> None:
        self._execute(
            "UPDATE learning_journeys SET name = %s, nameEn = %s, ljKey = %s, description = %s, "
            "descriptionEn = %s, aiCoachEnabled = %s WHERE id = %s",
            self._journey_columns(request) + (journey_id,),
        )

    def journey_exists(self, journey_id: int) -> bool:
        return self._scalar("SELECT COUNT(*) FROM learning_journeys WHERE id = %s", (journey_id,)) > 0

    def clean_journey_content(self, journey_id: int) -> Dict[str, int]:
        """Delete derived content but keep the journey row and user assignments."""
        counts = {"userAnswers": 0, "userSteps": 0}
        try:
            counts["userAnswers"] = self._execute(_DELETE_USER_ANSWERS_SQL, (journey_id,))
            counts["userSteps"] = self._execute(_DELETE_USER_STEPS_SQL, (journey_id,))
        except Exception as exc:
            logger.warning(
                "Could not clean user progress for journey %s (tables may not exist): %s",
                journey_id, exc.__class__.__name__,
            )
        pattern = journey_pattern(journey_id)
        counts["questions"] = self._execute(_DELETE_STEP_QUESTIONS_SQL, (journey_id,))
        counts["labels"] = self._execute(_DELETE_LABELS_SQL, (pattern,))
        counts["documents"] = self._execute(_DELETE_DOCUMENTS_SQL, (pattern,))
        counts["steps"] = self._execute("DELETE FROM steps WHERE learningJourneyId = %s", (journey_id,))
        logger.info("Cleaned journey %s content (id and user assignments kept): %s", journey_id, counts)
        return counts

    # --- publish ---------------------------------------------------------------

    def execute(self, request: JourneyPublishRequest, environment: str) -> Dict[str, Any]:
        """Write the whole journey and return `{learningJourneyId, success, environment, timings}`."""
        timings: Dict[str, int] = {}
        total_started = time.perf_counter()
        steps = request.steps

        self.ensure_bilingual_columns(environment)

        started = time.perf_counter()
        edit_id = request.edit_learning_journey_id
        if edit_id is not None and self.journey_exists(edit_id):
            logger.info("[%s] Re-publishing journey %s; clearing content, keeping id and user assignments", environment, edit_id)
            self.clean_journey_content(edit_id)
            self.update_journey(edit_id, request)
            journey_id = int(edit_id)
        else:
            if edit_id is not None:
                logger.warning("[%s] Journey %s no longer exists; creating new journey", environment, edit_id)
            journey_id = self.insert_journey(request)
        timings["phase1_journey_ms"] = _ms_since(started)
        logger.info("[%s] Phase 1: learning_journeys id=%s", environment, journey_id)

        lj_key = generate_lj_key(request.name)
        category = label_category(lj_key)

        started = time.perf_counter()
        step_ids, label_count = self._write_steps(journey_id, steps, category)
        timings["phase2_labelsAndSteps_ms"] = _ms_since(started)
        timings["stepCount"] = len(steps)
        timings["labelCount"] = label_count
        logger.info("[%s] Phase 2: %s steps, %s labels", environment, len(steps), label_count)

        started = time.perf_counter()
        question_count = self._write_questions(journey_id, steps, step_ids, category)
        label_count += 2 * question_count
        timings["phase3_questions_ms"] = _ms_since(started)
        timings["questionCount"] = question_count
        logger.info("[%s] Phase 3: %s questions", environment, question_count)

        started = time.perf_counter()
        document_count = self._write_documents(journey_id, steps, lj_key)
        timings["phase4_documents_ms"] = _ms_since(started)
        timings["documentCount"] = document_count
        logger.info("[%s] Phase 4: %s documents", environment, document_count)

        started = time.perf_counter()
        self.sync_groups(journey_id, request.group_ids, republish=edit_id is not None)
        timings["phase5_groups_ms"] = _ms_since(started)
        timings["groupCount"] = len(request.group_ids)
        logger.info("[%s] Phase 5: %s groups bound", environment, len(request.group_ids))

        timings["total_ms"] = _ms_since(total_started)
        timings["labelCountTotal"] = label_count
        logger.info("[%s] Journey %s written (%sms)", environment, journey_id, timings["total_ms"])
        return {
            "learningJourneyId": journey_id,
            "success": True,
            "environment": environment,
            "timings": timings,
        }

    def _write_steps(self, journey_id: int, steps: Sequence[StepInput], category: str) -> Tuple[List[int], int]:
        step_ids: List[int] = []
        label_count = 0
        for position, (step, (colour, size)) in enumerate(zip(steps, step_visuals(steps)), start=1):
            title_id = label_id(journey_id, position, "TITLE")
            self._insert_label(title_id, step.title, "nl", category)
            self._insert_label(title_id, _fallback(step.title_en, step.title), "en", category)
            label_count += 2

            text_id: Optional[str] = None
            if not _blank(step.text_content):
                text_id = label_id(journey_id, position, "TEXT")
                nl_text = step.text_content
                en_text = ensure_media_in_en(_fallback(step.text_content_en, nl_text), nl_text)
                self._insert_label(text_id, truncate(nl_text, MAX_LABEL_TEXT_LENGTH), "nl", category)
                self._insert_label(text_id, truncate(en_text, MAX_LABEL_TEXT_LENGTH), "en", category)
                label_count += 2

            docs_id = doc_group_id(journey_id, position) if (step.documents or step.upload_enabled) else None
            step_ids.append(
                self._insert(
                    "INSERT INTO steps (position, title, learningJourneyId, textContent, "
                    "conversation, type, colour, size, role, documents) "
                    "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                    (
                        position,
                        title_id,
                        journey_id,
                        text_id,
                        "S" if step.chatbox_enabled else None,
                        DB_TYPE_QUESTION if step.questions else DB_TYPE_TEXT,
                        colour,
                        size,
                        DEFAULT_ROLE,
                        docs_id,
                    ),
                )
            )
        return step_ids, label_count

    def _write_questions(self, journey_id: int, steps: Sequence[StepInput], step_ids: Sequence[int], category: str) -> int:
        count = 0
        for position, (step, step_id) in enumerate(zip(steps, step_ids), start=1):
            for order, question in enumerate(step.questions, start=1):
                identifier = question_label_id(journey_id, position, order)
                self._insert_label(identifier, question.text, "nl", category)
                self._insert_label(identifier, _fallback(question.text_en, question.text), "en", category)
                question_type = question.question_type if not _blank(question.question_type) else DEFAULT_QUESTION_TYPE
                self._execute(
                    "INSERT INTO step_question (stepId, question, `order`, type) VALUES (%s, %s, %s, %s)",
                    (step_id, identifier, order, question_type),
                )
                count += 1
        return count

    def _write_documents(self, journey_id: int, steps: Sequence[StepInput], lj_key: str) -> int:
        count = 0
        for position, step in enumerate(steps, start=1):
            if not step.documents:
                continue
            identifier = doc_group_id(journey_id, position)
            for doc in step.documents:
                url = doc.url if not _blank(doc.url) else f"{self._docs_base_url}{lj_key}/{doc.file_name}"
                self._execute(
                    "INSERT INTO learning_journey_documents (identifier, label, url, lang) VALUES (%s, %s, %s, %s)",
                    (identifier, doc.label, url, doc.lang),
                )
                count += 1
        return count

    def sync_groups(self, journey_id: int, group_ids: Sequence[int], *, republish: bool) -> None:
        if not group_ids:
            raise UnknownGroup([])
        wanted = list(dict.fromkeys(int(g) for g in group_ids))
        placeholders = ", ".join(["%s"] * len(wanted))
        with self._conn.cursor() as cur:
            cur.execute(f"SELECT id FROM `groups` WHERE id IN ({placeholders})", tuple(wanted))
            present = {int(r[0]) for r in (cur.fetchall() or [])}
        missing = [g for g in wanted if g not in present]
        if missing:
            raise UnknownGroup(missing)

        if republish:
            try:
                self._execute(
                    "UPDATE user_learning_journey SET groupLearningJourneyId = NULL "
                    "WHERE groupLearningJourneyId IN "
                    "(SELECT id FROM group_learning_journey WHERE learningJourneyId = %s)",
                    (journey_id,),
                )
            except Exception as exc:
                logger.warning(
                    "Could not nullify user_learning_journey references for journey %s: %s",
                    journey_id, exc.__class__.__name__,
                )
            self._execute("DELETE FROM group_learning_journey WHERE learningJourneyId = %s", (journey_id,))

        for group_id in wanted:
            self._execute(
                "INSERT INTO group_learning_journey (groupId, learningJourneyId) VALUES (%s, %s)",
                (group_id, journey_id),
            )

    # --- delete ----------------------------------------------------------------

    def delete_journey(self, journey_id: int) -> Dict[str, int]:
        """Remove a journey with all user progress; order follows FK direction."""
        pattern = journey_pattern(journey_id)
        counts = {
            "userAnswers": self._execute(_DELETE_USER_ANSWERS_SQL, (journey_id,)),
            "userSteps": self._execute(_DELETE_USER_STEPS_SQL, (journey_id,)),
            "userJourneys": self._execute("DELETE FROM user_learning_journey WHERE learningJourneyId = %s", (journey_id,)),
            "questions": self._execute(_DELETE_STEP_QUESTIONS_SQL, (journey_id,)),
            "labels": self._execute(_DELETE_LABELS_SQL, (pattern,)),
            "documents": self._execute(_DELETE_DOCUMENTS_SQL, (pattern,)),
            "groups": self._execute("DELETE FROM group_learning_journey WHERE learningJourneyId = %s", (journey_id,)),
            "steps": self._execute("DELETE FROM steps WHERE learningJourneyId = %s", (journey_id,)),
            "journeys": self._execute("DELETE FROM learning_journeys WHERE id = %s", (journey_id,)),
        }
        logger.info("Deleted journey %s: %s", journey_id, counts)
        return counts


__all__ = ["JourneyWriter", "step_visuals", "DB_TYPE_TEXT", "DB_TYPE_QUESTION"]
