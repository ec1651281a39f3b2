"""Assessment definition endpoints (export from Metro and compose)."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.assessments.definitions import DefinitionRepository, DefinitionService
from backend.metro.errors import NotFound, ValidationFailed
from backend.metro.lookup import MetroLookup
from backend.web import wiring


definitions_router = APIRouter(tags=["Assessment definitions"])


class ComposeRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    questionnaire_ids: List[int] = Field(default_factory=list)


@definitions_router.get("/api/assessment-definitions")
def list_definitions(q: str = "", limit: int = 50):
    with wiring.metro_read() as conn:
        return MetroLookup(conn).list_questionnaires(q, limit)


@definitions_router.post("/api/assessment-definitions/compose")
def compose_definition(payload: ComposeRequest):
    if len(payload.questionnaire_ids) < 2:
        raise ValidationFailed(["questionnaireIds: minimaal 2 questionnaires nodig"])
    with wiring.metro_read() as conn:
        return DefinitionService(DefinitionRepository(conn)).compose(payload.questionnaire_ids)


@definitions_router.get("/api/assessment-definitions/{questionnaire_id}")
def get_definition(questionnaire_id: int):
    with wiring.metro_read() as conn:
        definition = DefinitionService(DefinitionRepository(conn)).export(questionnaire_id)
    if definition is None:
        raise NotFound(f"Questionnaire niet gevonden: {questionnaire_id}")
    return definition


@definitions_router.get("/api/assessment-definitions/{questionnaire_id}/groups")
def get_definition_groups(questionnaire_id: int):
    with wiring.metro_read() as conn:
        return MetroLookup(conn).find_groups_for_questionnaire(questionnaire_id)


__all__ = ["definitions_router"]
