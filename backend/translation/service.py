"""
Translation service: provider selection and non-fatal failure handling.

Behavior:
    - Empty input returns an empty result without calling a provider.
    - Any `UpstreamTranslationError` returns the original texts unchanged plus
      a `warning`; the editor keeps working and can translate by hand.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import List, Optional, Sequence

from backend.translation.providers import (
    GoogleTranslator,
    OpenAITranslator,
    TranslatorProtocol,
    UpstreamTranslationError,
)


logger = logging.getLogger("builder.translation")


@dataclass
class TranslationResult:
    translations: List[str]
    warning: Optional[str] = None

    def to_dict(self) -> dict:
        out: dict = {"translations": list(self.translations)}
        if self.warning:
            out["warning"] = self.warning
        return out


class TranslationService:
    def __init__(self, translator: TranslatorProtocol) -> None:
        self._translator = translator

    def translate(self, source: str, target: str, texts: Sequence[str] | None) -> TranslationResult:
        items = list(texts or [])
        if not items:
            return TranslationResult([])
        try:
            return TranslationResult(self._translator.translate(source, target, items))
        except UpstreamTranslationError as exc:
            logger.warning("Translation %s->%s via %s failed: %s", source, target, self._translator.name, exc)
            return TranslationResult(items, str(exc))


def build_translation_service() -> TranslationService:
    provider = (os.getenv("BUILDER_TRANSLATION_PROVIDER") or "google").strip().lower()
    if provider == "openai":
        translator: TranslatorProtocol = OpenAITranslator(
            os.getenv("OPENAI_API_KEY"),
            api_url=os.getenv("OPENAI_API_URL"),
            model=os.getenv("OPENAI_MODEL"),
        )
    else:
        translator = GoogleTranslator(os.getenv("GOOGLE_API_KEY"))
    return TranslationService(translator)


__all__ = ["TranslationService", "TranslationResult", "build_translation_service"]
