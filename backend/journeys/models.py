"""
Authoring request models for learning journey publish.

Notes:
    - JSON uses camelCase (`groupIds`, `textContentEn`, `editLearningJourneyId`);
      Python code uses snake_case. Both spellings are accepted on input.
    - Only the step `type` is enforced by the model (unknown types are a shape
      error). Every other rule lives in `validation.validate_journey_request`
      so all violations are reported together.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepType(str, Enum):
    HOOFDSTAP = "hoofdstap"
    SUBSTAP = "substap"
    AFSLUITING = "afsluiting"


DEFAULT_QUESTION_TYPE = "menteeValuation"


class QuestionInput(_CamelModel):
    text: Optional[str] = None
    text_en: Optional[str] = None
    question_type: Optional[str] = None


class DocumentInput(_CamelModel):
    label: Optional[str] = None
    file_name: Optional[str] = None
    url: Optional[str] = None
    lang: Optional[str] = None


class StepInput(_CamelModel):
    type: StepType
    title: Optional[str] = None
    title_en: Optional[str] = None
    text_content: Optional[str] = None
    text_content_en: Optional[str] = None
    chatbox_enabled: bool = False
    upload_enabled: bool = False
    video_url: Optional[str] = None
    questions: List[QuestionInput] = Field(default_factory=list)
    documents: List[DocumentInput] = Field(default_factory=list)


class JourneyPublishRequest(_CamelModel):
    name: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    description_en: Optional[str] = None
    group_ids: List[int] = Field(default_factory=list)
    ai_coach_enabled: bool = False
    steps: List[StepInput] = Field(default_factory=list)
    edit_learning_journey_id: Optional[int] = None


__all__ = [
    "StepType",
    "QuestionInput",
    "DocumentInput",
    "StepInput",
    "JourneyPublishRequest",
    "DEFAULT_QUESTION_TYPE",
]
