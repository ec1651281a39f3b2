"""
Metro lookup DAO: trigger bypass, name fallback and typed failures.
"""
from __future__ import annotations

import pytest

from fakes import FakeConnection

from backend.metro.errors import NotConfigured, UrlPatchMissed
from backend.metro.lookup import SCORE_TRIGGER_NAMES, MetroLookup


def test_statements_touching_competence_questions_bypass_score_triggers():
    conn = FakeConnection()
    timings = MetroLookup(conn).execute_sql_statements(
        [
            "INSERT INTO items(id, name, invertOrder) VALUES (1, 'x', 0);",
            "INSERT INTO competence_questions (competenceId, questionnaireId, questionId, cq_id) VALUES (1, 1, '1.1.', 1);",
        ]
    )
    executed = [sql for sql, _ in conn.executed]

    assert executed[:3] == [f"DROP TRIGGER IF EXISTS {name}" for name in SCORE_TRIGGER_NAMES]
    assert executed[3] == "INSERT INTO items(id, name, invertOrder) VALUES (1, 'x', 0)"
    assert all(sql.startswith("CREATE TRIGGER") for sql in executed[5:])
    assert len(executed) == 8
    assert [t["i"] for t in timings] == [0, 1]


def test_triggers_are_recreated_even_when_a_statement_fails():
    conn = FakeConnection()
    conn.on("INSERT INTO competence_questions", error=RuntimeError("duplicate"))

    with pytest.raises(RuntimeError):
        MetroLookup(conn).execute_sql_statements(
            ["INSERT INTO competence_questions (competenceId, questionnaireId, questionId, cq_id) VALUES (1, 1, '1.1.', 1);"]
        )

    assert len(conn.statements("CREATE TRIGGER recalculate_user_competence_scores_on_")) == 3


def test_plans_without_competence_questions_leave_triggers_alone():
    conn = FakeConnection()
    MetroLookup(conn).execute_sql_statements(["INSERT INTO goals(id, name) VALUES (1, 'g');", "   "])
    assert conn.statements("TRIGGER") == []
    assert len(conn.executed) == 1


def test_name_lookup_falls_back_to_translation_table():
    conn = FakeConnection()
    conn.on("SELECT categoryId FROM category_translations", rows=[(12,)])
    lookup = MetroLookup(conn)

    assert lookup.find_category_id_by_name("  Persoonlijk ") == 12
    assert conn.executed[0][1] == ("Persoonlijk",)
    assert lookup.find_category_id_by_name("   ") is None


def test_all_max_ids_read_in_one_query():
    conn = FakeConnection()
    conn.on("COALESCE(MAX(id), 0)", rows=[(4, 5, 6, 7, 8, 9)])

    ids = MetroLookup(conn).get_all_max_ids()

    assert ids == {"questionnaires": 4, "categories": 5, "competences": 6, "goals": 7, "items": 8, "competence_questions": 9}
    assert len(conn.executed) == 1


def test_missing_group_ids_preserve_request_order():
    conn = FakeConnection()
    conn.on("FROM `groups` WHERE id IN", rows=[(2,)])
    assert MetroLookup(conn).find_missing_group_ids([3, 2, 3, 1]) == [3, 1]


def test_url_patch_without_matching_row_raises():
    conn = FakeConnection()
    conn.on("UPDATE questionnaire_translations", rowcount=0)
    with pytest.raises(UrlPatchMissed) as excinfo:
        MetroLookup(conn).update_translation_urls(5, "en", "q", "r")
    assert excinfo.value.lang == "en"


def test_missing_connection_is_not_configured():
    with pytest.raises(NotConfigured):
        MetroLookup(None)
