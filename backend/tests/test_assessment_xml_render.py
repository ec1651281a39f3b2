"""
Questionnaire/report XML rendering and the shared `S.Q.` numbering.
"""
from __future__ import annotations

from backend.assessments.models import AssessmentBuildRequest, CompetenceInput
from backend.assessments.numbering import bucket_competences, display_id, question_ids
from backend.assessments.xml_render import escape_attribute, escape_text, render_all


def _request() -> AssessmentBuildRequest:
    return AssessmentBuildRequest.model_validate(
        {
            "assessmentName": "Leiderschap & Groei",
            "assessmentNameEn": "Leadership",
            "assessmentDescription": "Welkom",
            "assessmentInstruction": "Kies eerlijk",
            "competences": [
                {"category": "Persoonlijk", "name": "Visie", "questionLeft": "Geen richting", "questionRight": "Duidelijke koers", "questionRightEn": "Clear course"},
                {"category": "Sociaal", "categoryDescription": "Samen", "name": "Luisteren", "questionLeft": "Praat door", "questionRight": "Luistert"},
                {"category": "PERSOONLIJK", "subcategory": "Focus", "name": "Rust", "questionLeft": "Druk", "questionRight": "Kalm"},
            ],
            "groupIds": [1],
        }
    )


def test_question_ids_follow_first_seen_category_order():
    competences = [
        CompetenceInput(category="B", name="b1"),
        CompetenceInput(category="A", name="a1"),
        CompetenceInput(category="b", name="b2"),
    ]
    assert question_ids(competences) == ["1.1.", "2.1.", "1.2."]
    buckets = bucket_competences(competences)
    assert [(b.name, b.section) for b in buckets] == [("B", 1), ("A", 2)]
    assert display_id("1.2.") == "1.2"


def test_questionnaire_xml_uses_shared_identifiers_and_language_fallback():
    rendered = render_all(_request())

    nl = rendered.questionnaire_nl
    assert nl.startswith('<?xml version="1.0" encoding="utf-8"?>\n<questionnaire title="Leiderschap &amp; Groei"')
    assert '<rangeQuestion id="1.1." left="Geen richting" right="Duidelijke koers" />' in nl
    assert '<rangeQuestion id="1.2." left="Druk" right="Kalm" />' in nl
    assert '<rangeQuestion id="2.1." left="Praat door" right="Luistert" />' in nl
    # first section falls back to the assessment instruction, later ones use their description
    assert '<section title="Persoonlijk" instruction="Kies eerlijk">' in nl
    assert '<section title="Sociaal" instruction="Samen">' in nl

    en = rendered.questionnaire_en
    assert 'title="Leadership"' in en
    assert 'right="Clear course"' in en
    assert 'right="Kalm"' in en
    assert rendered.warnings == []


def test_report_xml_groups_by_subcategory_and_lists_series():
    report = render_all(_request()).report_nl

    assert '<graph type="bar" questions="1.|2." labels="Persoonlijk|Sociaal" />' in report
    assert "groupLabels=\"Zelf|Collega's|Ouders|Leiding\"" in report
    assert '<section title="FOCUS">' in report
    assert "<p>1.2 Kalm</p>" in report
    assert '<p>Welkom</p>' in report
    assert 'questions="1.1."' in report


def test_missing_question_text_warns_without_failing():
    request = AssessmentBuildRequest.model_validate(
        {"assessmentName": "X", "competences": [{"category": "C", "name": "Leeg", "questionLeft": "alleen links"}], "groupIds": [1]}
    )
    rendered = render_all(request)
    assert "Vraagtekst ontbreekt voor competence: Leeg" in rendered.warnings
    assert "right=" not in rendered.questionnaire_nl.split("<rangeQuestion", 1)[1].split("/>", 1)[0]
    assert set(rendered.to_dict()) == {"questionnaireNl", "questionnaireEn", "reportNl", "reportEn", "warnings"}


def test_escaping_collapses_newlines_and_quotes_attributes():
    assert escape_text("a\r\nb\nc <d> & e") == "a b c &lt;d&gt; &amp; e"
    assert escape_attribute('say "hi"') == "say &quot;hi&quot;"
