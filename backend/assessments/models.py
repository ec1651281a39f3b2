"""
Authoring request models for assessment publish and XML preview.

Notes:
    - JSON uses camelCase (`assessmentName`, `groupIds`, `isNew`, ...); Python
      code uses snake_case attributes. Both spellings are accepted on input.
    - Fields are permissive on purpose: shape rules are enforced by
      `validate_assessment_request` so every violation is reported together
      with a 400 instead of the first one as a 422.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.metro.errors import ValidationFailed


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompetenceInput(_CamelModel):
    category: Optional[str] = None
    subcategory: Optional[str] = None
    category_description: Optional[str] = None
    category_description_en: Optional[str] = None
    subcategory_description: Optional[str] = None
    subcategory_description_en: Optional[str] = None
    name: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    description_en: Optional[str] = None
    question_left: Optional[str] = None
    question_right: Optional[str] = None
    question_left_en: Optional[str] = None
    question_right_en: Optional[str] = None
    is_new: bool = False
    existing_id: Optional[int] = None


class AssessmentBuildRequest(_CamelModel):
    assessment_name: Optional[str] = None
    assessment_name_en: Optional[str] = None
    assessment_description: Optional[str] = None
    assessment_description_en: Optional[str] = None
    assessment_instruction: Optional[str] = None
    assessment_instruction_en: Optional[str] = None
    competences: List[CompetenceInput] = Field(default_factory=list)
    group_ids: List[int] = Field(default_factory=list)
    edit_questionnaire_id: Optional[int] = None


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_assessment_request(request: AssessmentBuildRequest) -> None:
    """Raise `ValidationFailed` listing every shape violation of the request."""
    errors: list[str] = []
    if _blank(request.assessment_name):
        errors.append("assessmentName: must not be blank")
    if not request.competences:
        errors.append("competences: at least one competence is required")
    for idx, competence in enumerate(request.competences, start=1):
        if _blank(competence.category):
            errors.append(f"competences[{idx}].category: must not be blank")
        if _blank(competence.name):
            errors.append(f"competences[{idx}].name: must not be blank")
    if not request.group_ids:
        errors.append("groupIds: at least one group is required")
    if errors:
        raise ValidationFailed(errors)


__all__ = ["CompetenceInput", "AssessmentBuildRequest", "validate_assessment_request"]
