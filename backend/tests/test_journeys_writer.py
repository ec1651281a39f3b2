"""
Learning journey writer, publish service and read views against a fake Metro.
"""
from __future__ import annotations

import sqlite3

import pytest

from fakes import FakeConnection, transaction_factory

from backend.journeys.lookup import JourneyLookup
from backend.journeys.models import JourneyPublishRequest
from backend.journeys.service import JourneyPublishService
from backend.journeys.writer import _DELETE_DOCUMENTS_SQL, _DELETE_LABELS_SQL, JourneyWriter
from backend.metro.connection import MetroTargets, PublishEnvironment
from backend.metro.errors import NotFound, UnknownGroup, ValidationFailed

DOCS_BASE = "https://metro-platform.s3.amazonaws.com/test/learning-journeys/"


def _journey(**overrides) -> JourneyPublishRequest:
    body = {
        "name": "Smoke Test",
        "groupIds": [1],
        "steps": [
            {"type": "hoofdstap", "title": "Intro"},
            {"type": "hoofdstap", "title": "Reflectie"},
            {"type": "afsluiting", "title": "Einde"},
        ],
    }
    body.update(overrides)
    return JourneyPublishRequest.model_validate(body)


def _metro(*, groups=((1,),), existing_journey: bool = False) -> FakeConnection:
    conn = FakeConnection()
    conn.on("INFORMATION_SCHEMA.COLUMNS", rows=[(1,)])
    conn.on("FROM `groups` WHERE id IN", rows=list(groups))
    conn.on("SELECT COUNT(*) FROM learning_journeys WHERE id", rows=[(1 if existing_journey else 0,)])
    return conn


def test_minimal_journey_writes_rows_in_phase_order():
    conn = _metro()

    result = JourneyWriter(conn, docs_base_url=DOCS_BASE).execute(_journey(), "TEST")

    journey_insert = conn.calls("INSERT INTO learning_journeys")
    assert len(journey_insert) == 1
    assert journey_insert[0][1][2] == "smoke-test"
    journey_id = result["learningJourneyId"]
    assert journey_id == 101
    assert result["success"] is True and result["environment"] == "TEST"

    steps = conn.calls("INSERT INTO steps")
    assert [(p[0], p[6], p[7]) for _sql, p in steps] == [
        (1, "blue", "big"),
        (2, "orange", "medium"),
        (3, "blue", "big"),
    ]
    assert all(p[5] == "TEXT" and p[8] == "principal" for _sql, p in steps)

    labels = conn.calls("INSERT INTO labels")
    assert len(labels) == 6
    assert labels[0][1] == ("LJ_101_STEP_1_TITLE", "Intro", "nl", "Learning_Journey_smoke-test")
    assert labels[1][1] == ("LJ_101_STEP_1_TITLE", "Intro", "en", "Learning_Journey_smoke-test")
    assert conn.calls("INSERT INTO step_question") == []
    assert conn.calls("INSERT INTO learning_journey_documents") == []
    assert [p for _sql, p in conn.calls("INSERT INTO group_learning_journey")] == [(1, 101)]
    assert conn.statements("ALTER TABLE") == []

    order = [sql.split(" (")[0] for sql, _ in conn.executed if sql.startswith("INSERT")]
    assert order.index("INSERT INTO learning_journeys") < order.index("INSERT INTO labels")
    assert order[-1] == "INSERT INTO group_learning_journey"
    assert result["timings"]["labelCountTotal"] == 6


def test_questions_documents_and_text_labels():
    request = _journey(
        steps=[
            {
                "type": "hoofdstap",
                "title": "Intro",
                "titleEn": "Intro EN",
                "textContent": '<p>A</p>\n<img src="x.jpg"/>',
                "textContentEn": "<p>A-en</p>",
                "chatboxEnabled": True,
                "documents": [
                    {"label": "Gids", "fileName": "gids.pdf", "lang": "nl"},
                    {"label": "Guide", "fileName": "guide.pdf", "url": "https://example.org/guide.pdf", "lang": "en"},
                ],
            },
            {"type": "hoofdstap", "title": "Reflectie", "questions": [{"text": "Wat zag je?"}, {"text": "Hoe voelde het?", "textEn": "How did it feel?", "questionType": "mentorValuation"}]},
            {"type": "afsluiting", "title": "Einde"},
        ]
    )
    conn = _metro()

    result = JourneyWriter(conn, docs_base_url=DOCS_BASE.rstrip("/")).execute(request, "TEST")

    text_labels = [p for _sql, p in conn.calls("INSERT INTO labels") if p[0] == "LJ_101_STEP_1_TEXT"]
    assert text_labels[1][1] == '<p>A-en</p>\n<img src="x.jpg"/>'

    steps = [p for _sql, p in conn.calls("INSERT INTO steps")]
    assert steps[0][4] == "S" and steps[0][9] == "LJ_101_STEP_1_DOCS"
    assert steps[1][5] == "QUESTION" and steps[1][4] is None

    questions = [p for _sql, p in conn.calls("INSERT INTO step_question")]
    assert [(q[1], q[2], q[3]) for q in questions] == [
        ("LJ_101_STEP_2_Q_1", 1, "menteeValuation"),
        ("LJ_101_STEP_2_Q_2", 2, "mentorValuation"),
    ]
    q2_labels = [p for _sql, p in conn.calls("INSERT INTO labels") if p[0] == "LJ_101_STEP_2_Q_2"]
    assert [p[1] for p in q2_labels] == ["Hoe voelde het?", "How did it feel?"]

    docs = [p for _sql, p in conn.calls("INSERT INTO learning_journey_documents")]
    assert docs[0] == ("LJ_101_STEP_1_DOCS", "Gids", DOCS_BASE + "smoke-test/gids.pdf", "nl")
    assert docs[1][2] == "https://example.org/guide.pdf"
    assert result["timings"]["questionCount"] == 2
    assert result["timings"]["documentCount"] == 2


def test_republish_keeps_id_and_replaces_group_bindings():
    conn = _metro(groups=((1,), (2,)), existing_journey=True)

    result = JourneyWriter(conn, docs_base_url=DOCS_BASE).execute(_journey(editLearningJourneyId=55, groupIds=[2, 1]), "TEST")

    assert result["learningJourneyId"] == 55
    assert conn.calls("INSERT INTO learning_journeys") == []
    assert conn.calls("UPDATE learning_journeys SET")[0][1][-1] == 55
    assert conn.calls("DELETE FROM labels WHERE identifier LIKE")[0][1] == ("LJ!_55!_%",)
    assert conn.calls("DELETE FROM steps WHERE learningJourneyId")[0][1] == (55,)
    assert conn.statements("DELETE FROM user_learning_journey") == []
    assert len(conn.calls("UPDATE user_learning_journey SET groupLearningJourneyId = NULL")) == 1
    assert [p for _sql, p in conn.calls("INSERT INTO group_learning_journey")] == [(2, 55), (1, 55)]


def test_stale_edit_id_inserts_a_new_journey():
    conn = _metro(existing_journey=False)
    result = JourneyWriter(conn, docs_base_url=DOCS_BASE).execute(_journey(editLearningJourneyId=55), "TEST")
    assert result["learningJourneyId"] == 101
    assert conn.statements("DELETE FROM steps") == []


def test_missing_bilingual_columns_are_added_once():
    conn = _metro()
    conn.on("INFORMATION_SCHEMA.COLUMNS", rows=[(0,)])
    JourneyWriter(conn, docs_base_url=DOCS_BASE).execute(_journey(), "TEST")
    assert len(conn.statements("ALTER TABLE learning_journeys ADD COLUMN")) == 3


def test_unknown_group_aborts_the_write():
    conn = _metro(groups=())
    with pytest.raises(UnknownGroup) as excinfo:
        JourneyWriter(conn, docs_base_url=DOCS_BASE).execute(_journey(groupIds=[404]), "TEST")
    assert excinfo.value.missing_ids == [404]


def test_delete_removes_user_progress_and_content():
    conn = FakeConnection()
    counts = JourneyWriter(conn, docs_base_url=DOCS_BASE).delete_journey(9)

    assert set(counts) == {"userAnswers", "userSteps", "userJourneys", "questions", "labels", "documents", "groups", "steps", "journeys"}
    executed = [sql for sql, _ in conn.executed]
    assert executed[-1] == "DELETE FROM learning_journeys WHERE id = %s"
    assert executed.index("DELETE FROM steps WHERE learningJourneyId = %s") < len(executed) - 1


def _label_store(*journey_ids: int) -> sqlite3.Connection:
    db = sqlite3.connect(":memory:")
    db.execute("CREATE TABLE labels (identifier TEXT)")
    db.execute("CREATE TABLE learning_journey_documents (identifier TEXT)")
    for journey_id in journey_ids:
        db.execute("INSERT INTO labels VALUES (?)", (f"LJ_{journey_id}_STEP_1_TITLE",))
        db.execute("INSERT INTO labels VALUES (?)", (f"LJ_{journey_id}_STEP_2_TEXT",))
        db.execute("INSERT INTO learning_journey_documents VALUES (?)", (f"LJ_{journey_id}_STEP_1_DOCS",))
    return db


def _run_label_deletes_in(conn: FakeConnection, db: sqlite3.Connection) -> None:
    for sql in (_DELETE_LABELS_SQL, _DELETE_DOCUMENTS_SQL):
        conn.on(sql, func=lambda params, sql=sql: db.execute(sql.replace("%s", "?"), params).fetchall())


def _journey_ids_left(db: sqlite3.Connection, table: str) -> list:
    return sorted({int(row[0].split("_")[1]) for row in db.execute(f"SELECT identifier FROM {table}")})


def test_republish_only_cleans_labels_of_its_own_journey():
    conn = _metro(existing_journey=True)
    db = _label_store(1, 12, 150)
    _run_label_deletes_in(conn, db)

    JourneyWriter(conn, docs_base_url=DOCS_BASE).execute(_journey(editLearningJourneyId=1), "TEST")

    assert _journey_ids_left(db, "labels") == [12, 150]
    assert _journey_ids_left(db, "learning_journey_documents") == [12, 150]


def test_delete_leaves_journeys_with_neighbouring_ids_alone():
    conn = FakeConnection()
    db = _label_store(1, 12, 120, 150)
    _run_label_deletes_in(conn, db)

    JourneyWriter(conn, docs_base_url=DOCS_BASE).delete_journey(12)

    assert _journey_ids_left(db, "labels") == [1, 120, 150]
    assert _journey_ids_left(db, "learning_journey_documents") == [1, 120, 150]


def test_service_validates_before_opening_a_transaction():
    opened = []

    def _tx():
        opened.append(True)
        return transaction_factory(FakeConnection())()

    service = JourneyPublishService(MetroTargets(_tx), docs_base_url=DOCS_BASE)
    bad = _journey(
        steps=[
            {"type": "hoofdstap", "title": "Intro", "documents": [{"fileName": "../admin.js"}]},
            {"type": "hoofdstap", "title": "Reflectie"},
            {"type": "afsluiting", "title": "Einde"},
        ]
    )
    with pytest.raises(ValidationFailed):
        service.publish(bad, PublishEnvironment.TEST)
    assert opened == []


def test_service_rolls_back_on_writer_failure_and_commits_on_success():
    failing = _metro(groups=())
    service = JourneyPublishService(MetroTargets(transaction_factory(failing)), docs_base_url=DOCS_BASE)
    with pytest.raises(UnknownGroup):
        service.publish(_journey(), PublishEnvironment.TEST)
    assert failing.rollbacks == 1 and failing.commits == 0

    ok = _metro()
    service = JourneyPublishService(MetroTargets(None, transaction_factory(ok)), docs_base_url=DOCS_BASE)
    result = service.publish(_journey(), PublishEnvironment.PRODUCTION)
    assert result["environment"] == "PRODUCTION"
    assert ok.commits == 1


def test_lookup_reads_journey_with_steps_questions_and_groups():
    conn = FakeConnection()
    conn.on("TABLE_NAME = 'learning_journeys' AND COLUMN_NAME = 'aiCoachEnabled'", rows=[(1,)])
    conn.on("FROM learning_journeys WHERE id = %s", rows=[(7, "Reis", "Journey", "reis", "", None, 1)])
    conn.on(
        "FROM steps s WHERE",
        rows=[
            (70, 1, "TEXT", "blue", "big", None, None, "Intro", "Intro", None, None),
            (71, 2, "QUESTION", "blue", "small", "S", None, "Vragen", "Questions", None, None),
            (72, 3, "TEXT", "blue", "big", None, None, "Einde", "End", None, None),
        ],
    )
    conn.on(
        "FROM step_question sq WHERE",
        func=lambda params: [(1, 1, "menteeValuation", "Wat?", "What?")] if params == (71,) else [],
    )
    conn.on("SELECT groupId FROM group_learning_journey", rows=[(1,), (3,)])

    journey = JourneyLookup(conn).get_journey(7)

    assert journey["aiCoachEnabled"] is True
    assert [s["structuralType"] for s in journey["steps"]] == ["hoofdstap", "substap", "afsluiting"]
    assert journey["steps"][1]["chatboxEnabled"] is True
    assert journey["steps"][1]["questions"] == [
        {"id": 1, "order": 1, "questionType": "menteeValuation", "textNl": "Wat?", "textEn": "What?"}
    ]
    assert journey["groupIds"] == [1, 3]
    assert journey["documents"] == []


def test_lookup_unknown_journey_is_not_found():
    conn = FakeConnection()
    with pytest.raises(NotFound):
        JourneyLookup(conn).get_journey(999)


def test_lookup_lists_newest_first():
    conn = FakeConnection()
    conn.on("SELECT id, name, ljKey FROM learning_journeys", rows=[(9, "B", "b"), (3, "A", "a")])
    assert JourneyLookup(conn).list_journeys() == [
        {"id": 9, "name": "B", "ljKey": "b"},
        {"id": 3, "name": "A", "ljKey": "a"},
    ]
