"""Machine translation endpoint used by the editor's "translate to EN" buttons."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.web import wiring


translate_router = APIRouter(tags=["Translation"])


class TranslateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_language: str = "nl"
    target_language: str = "en"
    texts: List[str] = Field(default_factory=list)


@translate_router.post("/api/translate")
def translate(payload: TranslateRequest):
    """Translate texts; provider failures come back as `warning`, never as an error status."""
    result = wiring.get_translation_service().translate(
        payload.source_language, payload.target_language, payload.texts
    )
    return result.to_dict()


__all__ = ["translate_router"]
