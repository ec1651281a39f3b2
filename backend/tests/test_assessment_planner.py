"""
Assessment SQL planner: statement shape, id allocation and reuse semantics.

The planner is driven through an in-memory lookup; no Metro database needed.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from backend.assessments.models import AssessmentBuildRequest
from backend.assessments.planner import AssessmentPlanner, escape, null_or_quoted
from backend.metro.errors import UnknownGroup, ValidationFailed


class FakePlannerLookup:
    def __init__(
        self,
        *,
        max_ids: Optional[Dict[str, int]] = None,
        known_groups: Sequence[int] = (1, 2),
        questionnaires: Optional[Dict[str, int]] = None,
        categories: Optional[Dict[str, int]] = None,
        goals: Optional[Dict[str, int]] = None,
        competences: Optional[Dict[str, int]] = None,
    ) -> None:
        self.max_ids = dict(max_ids or {})
        self.known_groups = set(known_groups)
        self.questionnaires = dict(questionnaires or {})
        self.categories = dict(categories or {})
        self.goals = dict(goals or {})
        self.competences = dict(competences or {})
        self.max_id_reads = 0

    def get_all_max_ids(self) -> Dict[str, int]:
        self.max_id_reads += 1
        return dict(self.max_ids)

    def find_missing_group_ids(self, ids: Sequence[int]) -> List[int]:
        return [i for i in ids if i not in self.known_groups]

    def find_questionnaire_id_by_name(self, name):
        return self.questionnaires.get(name)

    def find_category_id_by_name(self, name):
        return self.categories.get(name)

    def find_goal_id_by_name(self, name):
        return self.goals.get(name)

    def find_competence_id_by_name(self, name):
        return self.competences.get(name)


def _leiderschap(**overrides) -> AssessmentBuildRequest:
    body = {
        "assessmentName": "Leiderschap",
        "competences": [
            {
                "category": "Persoonlijk",
                "name": "Visie",
                "isNew": True,
                "questionLeft": "Ik heb geen richting.",
                "questionRight": "Ik heb een duidelijke koers.",
            }
        ],
        "groupIds": [1],
    }
    body.update(overrides)
    return AssessmentBuildRequest.model_validate(body)


def _count(statements: List[str], prefix: str) -> int:
    return sum(1 for s in statements if s.startswith(prefix))


def test_new_questionnaire_plan_allocates_fresh_ids_and_links_group():
    plan = AssessmentPlanner(FakePlannerLookup()).plan(_leiderschap())
    sql = plan.sql_statements

    assert plan.summary.questionnaire_id == 1
    assert plan.summary.to_dict() == {
        "questionnaireId": 1,
        "newCompetences": 1,
        "newCategories": 1,
        "newGoals": 0,
        "newItems": 1,
    }
    assert "INSERT INTO questionnaires(id, name) VALUES (1, 'Leiderschap');" in sql
    assert _count(sql, "INSERT INTO questionnaire_translations") == 2
    assert _count(sql, "INSERT INTO categories(") == 1
    assert _count(sql, "INSERT INTO competences(") == 1
    assert _count(sql, "INSERT INTO items(") == 1
    assert _count(sql, "INSERT INTO item_translations") == 2
    cq = [s for s in sql if s.startswith("INSERT INTO competence_questions")]
    assert cq == ["INSERT INTO competence_questions (competenceId, questionnaireId, questionId, cq_id) VALUES (1, 1, '1.1.', 1);"]
    assert (
        "INSERT IGNORE INTO group_questionnaires (groupId, questionnaireId, promoted, price) VALUES (1, 1, 0, 0.00);"
        in sql
    )
    assert not any(s.startswith("DELETE") for s in sql)
    assert plan.warnings == []


def test_ids_continue_after_current_maxima():
    lookup = FakePlannerLookup(max_ids={"questionnaires": 41, "categories": 7, "competences": 300, "items": 900, "competence_questions": 55})
    plan = AssessmentPlanner(lookup).plan(_leiderschap())

    assert plan.summary.questionnaire_id == 42
    assert "INSERT INTO categories(id, name) VALUES (8, 'Persoonlijk');" in plan.sql_statements
    assert "INSERT INTO items(id, name, invertOrder) VALUES (901, 'Visie_item', 0);" in plan.sql_statements
    assert any(s.endswith("VALUES (301, 42, '1.1.', 56);") for s in plan.sql_statements)
    assert lookup.max_id_reads == 1


def test_republish_by_name_reuses_questionnaire_and_runs_clean_block():
    lookup = FakePlannerLookup(
        max_ids={"items": 1, "competence_questions": 1, "competences": 1, "categories": 1, "questionnaires": 1},
        questionnaires={"Leiderschap": 1},
        categories={"Persoonlijk": 1},
        competences={"Visie": 1},
    )
    plan = AssessmentPlanner(lookup).plan(_leiderschap())
    sql = plan.sql_statements

    assert plan.summary.questionnaire_id == 1
    assert plan.summary.reused_questionnaire is True
    assert any("questionnaire wordt bijgewerkt" in w for w in plan.warnings)
    assert "DELETE FROM questionnaire_items WHERE questionnaireId = 1;" in sql
    assert "DELETE FROM competence_questions WHERE questionnaireId = 1;" in sql
    assert "DELETE FROM group_questionnaires WHERE questionnaireId = 1;" in sql
    assert "UPDATE questionnaires SET name = 'Leiderschap' WHERE id = 1;" in sql
    assert not any(s.startswith("INSERT INTO questionnaires(") for s in sql)
    # new item id is strictly above the previous maximum
    assert "INSERT INTO items(id, name, invertOrder) VALUES (2, 'Visie_item', 0);" in sql
    # clean block precedes the new inserts
    assert sql.index("DELETE FROM questionnaire_items WHERE questionnaireId = 1;") < sql.index(
        "INSERT INTO items(id, name, invertOrder) VALUES (2, 'Visie_item', 0);"
    )


def test_edit_questionnaire_id_takes_precedence_over_name_lookup():
    lookup = FakePlannerLookup(questionnaires={"Leiderschap": 5})
    plan = AssessmentPlanner(lookup).plan(_leiderschap(editQuestionnaireId=17))

    assert plan.summary.questionnaire_id == 17
    assert "DELETE FROM questionnaire_translations WHERE questionnaireId = 17;" in plan.sql_statements


def test_unknown_group_fails_before_any_statement():
    with pytest.raises(UnknownGroup) as excinfo:
        AssessmentPlanner(FakePlannerLookup()).plan(_leiderschap(groupIds=[999999]))
    assert "999999" in excinfo.value.message
    assert excinfo.value.status_code == 400


def test_blank_request_reports_every_violation():
    request = AssessmentBuildRequest.model_validate({"assessmentName": "  ", "competences": [{"name": ""}], "groupIds": []})
    with pytest.raises(ValidationFailed) as excinfo:
        AssessmentPlanner(FakePlannerLookup()).plan(request)
    reasons = excinfo.value.reasons
    assert "assessmentName: must not be blank" in reasons
    assert "competences[1].category: must not be blank" in reasons
    assert "competences[1].name: must not be blank" in reasons
    assert "groupIds: at least one group is required" in reasons


def test_categories_and_goals_are_created_once_and_linked_per_group():
    request = _leiderschap(
        competences=[
            {"category": "Persoonlijk", "subcategory": "Zelfsturing", "name": "Visie", "isNew": True, "questionLeft": "a", "questionRight": "b"},
            {"category": "persoonlijk ", "subcategory": "Zelfsturing", "name": "Focus", "isNew": True, "questionLeft": "c", "questionRight": "d"},
            {"category": "Sociaal", "name": "Luisteren", "isNew": True, "questionLeft": "e", "questionRight": "f"},
        ],
        groupIds=[1, 2],
    )
    plan = AssessmentPlanner(FakePlannerLookup()).plan(request)
    sql = plan.sql_statements

    assert plan.summary.new_categories == 2
    assert plan.summary.new_goals == 1
    assert plan.summary.new_competences == 3
    assert _count(sql, "INSERT INTO group_categories") == 4
    assert _count(sql, "INSERT INTO group_goals") == 2
    question_ids = [s.split("VALUES")[1] for s in sql if s.startswith("INSERT INTO competence_questions")]
    assert ["'1.1.'" in question_ids[0], "'1.2.'" in question_ids[1], "'2.1.'" in question_ids[2]] == [True, True, True]


def test_existing_competence_without_id_skips_links_with_warning():
    request = _leiderschap(competences=[{"category": "Persoonlijk", "name": "Onbekend", "isNew": False, "questionLeft": "a", "questionRight": "b"}])
    plan = AssessmentPlanner(FakePlannerLookup()).plan(request)

    assert any("Onbekend" in w for w in plan.warnings)
    assert not any(s.startswith("INSERT INTO competence_items") for s in plan.sql_statements)
    assert plan.summary.new_items == 0


def test_long_names_are_truncated_with_warning():
    plan = AssessmentPlanner(FakePlannerLookup()).plan(_leiderschap(assessmentName="X" * 45))
    assert "INSERT INTO questionnaires(id, name) VALUES (1, '" + "X" * 30 + "');" in plan.sql_statements
    assert any("afgekapt" in w for w in plan.warnings)


def test_sql_literal_helpers_escape_quotes_and_blank_to_null():
    assert escape("O'Brien") == "O''Brien"
    assert null_or_quoted("   ") == "NULL"
    assert null_or_quoted("it's") == "'it''s'"
