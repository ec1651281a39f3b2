"""
Questionnaire and report XML rendering for Metro.

Intent:
    Produce the two XML documents Metro loads per language from the same
    authoring request that drives the SQL plan.

Behavior:
    - Sections follow first-seen category order; identifiers come from the
      shared numbering (`S.Q.`), so graph series match `competence_questions`.
    - EN values fall back to NL field by field; missing left/right question
      text appends a warning but never aborts.
    - Blank attributes are omitted. Text is escaped (`&`, `<`, `>`, and `"` in
      attributes) and newlines collapse to a single space.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from backend.assessments.models import AssessmentBuildRequest
from backend.assessments.numbering import bucket_competences, display_id

XML_HEADER = '<?xml version="1.0" encoding="utf-8"?>\n'
GROUPS = "1|2|3|4"
LANGUAGES = ("nl", "en")


def _safe(value: str | None) -> str:
    return (value or "").strip()


def select(lang: str, nl_value: str | None, en_value: str | None) -> str:
    value = _safe(en_value) if (lang or "").lower() == "en" else _safe(nl_value)
    return value or _safe(nl_value)


def _title(lang: str, nl: str, en: str) -> str:
    return en if (lang or "").lower() == "en" else nl


def group_labels(lang: str) -> str:
    if (lang or "").lower() == "en":
        return "Self|Colleagues|Parents|Managers"
    return "Zelf|Collega's|Ouders|Leiding"


def escape_text(value: str | None) -> str:
    if value is None:
        return ""
    normalized = value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    return normalized.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_attribute(value: str | None) -> str:
    return escape_text(value).replace('"', "&quot;")


def attribute(name: str, value: str | None) -> str:
    if value is None or not value.strip():
        return ""
    return f' {name}="{escape_attribute(value)}"'


def _graph(**attrs: str) -> str:
    return "\t\t<graph" + "".join(attribute(k, v) for k, v in attrs.items()) + " />\n"


@dataclass
class _ReportSection:
    title: str
    description: str = ""
    questions: List[Tuple[str, str]] = field(default_factory=list)


def render_questionnaire(request: AssessmentBuildRequest, lang: str, warnings: List[str]) -> str:
    title = select(lang, request.assessment_name, request.assessment_name_en)
    instruction = select(lang, request.assessment_instruction, request.assessment_instruction_en)

    parts = [XML_HEADER, "<questionnaire", attribute("title", title)]
    parts.append('\n\tinstruction=""\n\tvaluators="7"\n\tdescription="">\n')

    for position, bucket in enumerate(bucket_competences(request.competences)):
        category_description = select(lang, bucket.description_nl, bucket.description_en)
        if category_description:
            section_instruction = category_description
        elif position == 0:
            section_instruction = instruction
        else:
            section_instruction = ""
        parts.append("\t<section" + attribute("title", bucket.name) + attribute("instruction", section_instruction) + ">\n")
        for _idx, competence, qid in bucket.entries:
            left = select(lang, competence.question_left, competence.question_left_en)
            right = select(lang, competence.question_right, competence.question_right_en)
            if not left or not right:
                warnings.append(f"Vraagtekst ontbreekt voor competence: {competence.name}")
            parts.append(
                "\t\t<rangeQuestion" + attribute("id", qid) + attribute("left", left) + attribute("right", right) + " />\n"
            )
        parts.append("\t</section>\n")

    parts.append("</questionnaire>")
    return "".join(parts)


def _report_sections(request: AssessmentBuildRequest, lang: str) -> List[_ReportSection]:
    sections: Dict[str, _ReportSection] = {}
    for bucket in bucket_competences(request.competences):
        for _idx, competence, qid in bucket.entries:
            subcategory = _safe(competence.subcategory)
            title = subcategory or bucket.name
            section = sections.get(title.lower())
            if section is None:
                section = _ReportSection(title=title)
                sections[title.lower()] = section
            if not section.description:
                if subcategory:
                    section.description = select(lang, competence.subcategory_description, competence.subcategory_description_en)
                else:
                    section.description = select(lang, competence.category_description, competence.category_description_en)
            label = select(lang, competence.question_right, competence.question_right_en)
            section.questions.append((qid, label))
    return list(sections.values())


def render_report(request: AssessmentBuildRequest, lang: str, warnings: List[str]) -> str:
    name = select(lang, request.assessment_name, request.assessment_name_en)
    intro = select(lang, request.assessment_description, request.assessment_description_en)
    buckets = bucket_competences(request.competences)
    category_questions = "|".join(f"{b.section}." for b in buckets)
    category_labels = "|".join(b.name for b in buckets)
    labels = group_labels(lang)
    compare_title = _title(lang, "Mijn score versus wat anderen vinden", "My score versus others")

    parts = [XML_HEADER, "<report", attribute("title", name), ">\n"]

    parts.append("\t<section" + attribute("title", _title(lang, "Inleiding", "Introduction")) + ">\n")
    if intro:
        parts.append(f"\t\t<p>{escape_text(intro)}</p>\n")
    parts.append("\t</section>\n")

    parts.append("\t<section" + attribute("title", _title(lang, "Overzicht van de scores", "Score overview")) + ">\n")
    parts.append(_graph(type="bar", questions=category_questions, labels=category_labels))
    parts.append(
        _graph(
            type="spider",
            title=_title(lang, "Alle gebieden op een rijtje", "All areas at a glance"),
            questions=category_questions,
            min="6",
            max="8",
            labels=category_labels,
        )
    )
    for graph_type in ("bar", "table"):
        parts.append(
            _graph(
                type=graph_type,
                title=compare_title,
                questions=category_questions,
                labels=category_labels,
                groupBy="0",
                groups=GROUPS,
                groupLabels=labels,
            )
        )
    parts.append("\t</section>\n")

    for section in _report_sections(request, lang):
        parts.append("\t<section" + attribute("title", section.title.upper()) + ">\n")
        if section.description:
            parts.append(f"\t\t<p>{escape_text(section.description)}</p>\n")
        if section.questions:
            parts.append("\t\t<list>\n")
            for qid, label in section.questions:
                parts.append(f"\t\t\t<p>{escape_text(display_id(qid) + ' ' + label)}</p>\n")
            parts.append("\t\t</list>\n")
            series = "|".join(qid for qid, _label in section.questions)
            parts.append(
                _graph(type="bar", title=_title(lang, "Gemiddelde score per vraag", "Average score per question"), questions=series)
            )
            parts.append(
                _graph(
                    type="bar",
                    title=_title(lang, "Gemiddelde score per vraag per respondentengroep", "Average score per group"),
                    questions=series,
                    groupBy="0",
                    groups=GROUPS,
                    groupLabels=labels,
                )
            )
        parts.append("\t</section>\n")

    parts.append("</report>")
    return "".join(parts)


@dataclass
class RenderedXml:
    questionnaire_nl: str
    questionnaire_en: str
    report_nl: str
    report_en: str
    warnings: List[str]

    def to_dict(self) -> dict:
        return {
            "questionnaireNl": self.questionnaire_nl,
            "questionnaireEn": self.questionnaire_en,
            "reportNl": self.report_nl,
            "reportEn": self.report_en,
            "warnings": list(self.warnings),
        }


def render_all(request: AssessmentBuildRequest) -> RenderedXml:
    """Render the four documents (NL/EN x questionnaire/report) in one pass."""
    warnings: List[str] = []
    return RenderedXml(
        questionnaire_nl=render_questionnaire(request, "nl", warnings),
        report_nl=render_report(request, "nl", warnings),
        questionnaire_en=render_questionnaire(request, "en", warnings),
        report_en=render_report(request, "en", warnings),
        warnings=warnings,
    )


__all__ = [
    "render_questionnaire",
    "render_report",
    "render_all",
    "RenderedXml",
    "escape_text",
    "escape_attribute",
    "select",
]
