"""
Translation provider adapters.

Intent:
    Turn a list of texts into a list of translated texts of the same length.
    Adapters raise `UpstreamTranslationError` on any failure; deciding that a
    failure is non-fatal is the service's job.

Security:
    API keys are sent as query parameter (Google) or bearer header (OpenAI)
    and never logged.
"""
from __future__ import annotations

import json
from typing import List, Protocol, Sequence

import requests

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

# (connect, read) seconds
HTTP_TIMEOUT = (10, 30)


class UpstreamTranslationError(Exception):
    """Provider unavailable, misconfigured or answered with something unusable."""


class TranslatorProtocol(Protocol):
    name: str

    def translate(self, source: str, target: str, texts: Sequence[str]) -> List[str]:
        ...


class GoogleTranslator:
    name = "Google Translate"

    def __init__(self, api_key: str | None) -> None:
        self._api_key = (api_key or "").strip()

    def translate(self, source: str, target: str, texts: Sequence[str]) -> List[str]:
        if not self._api_key:
            raise UpstreamTranslationError("Google Translate is niet geconfigureerd. Zet GOOGLE_API_KEY.")
        payload = {"q": list(texts), "source": source, "target": target, "format": "html"}
        try:
            resp = requests.post(GOOGLE_TRANSLATE_URL, params={"key": self._api_key}, json=payload, timeout=HTTP_TIMEOUT)
        except requests.RequestException as exc:
            raise UpstreamTranslationError(f"Google Translate faalde: {exc.__class__.__name__}") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            raise UpstreamTranslationError(f"Google Translate faalde: {resp.status_code}")
        try:
            items = resp.json()["data"]["translations"]
            translations = [str(item["translatedText"]) for item in items]
        except (ValueError, KeyError, TypeError) as exc:
            raise UpstreamTranslationError("Google Translate faalde: onverwacht antwoord") from exc
        if len(translations) != len(texts):
            raise UpstreamTranslationError("Google Translate gaf een onverwachte lengte terug")
        return translations


class OpenAITranslator:
    name = "OpenAI"

    def __init__(self, api_key: str | None, *, api_url: str | None = None, model: str | None = None) -> None:
        self._api_key = (api_key or "").strip()
        self._api_url = (api_url or DEFAULT_OPENAI_URL).strip()
        self._model = (model or DEFAULT_OPENAI_MODEL).strip()

    def translate(self, source: str, target: str, texts: Sequence[str]) -> List[str]:
        if not self._api_key:
            raise UpstreamTranslationError("OpenAI vertaling is niet geconfigureerd. Zet OPENAI_API_KEY.")
        system_prompt = (
            f"You are a professional translator. Translate from {source} to {target}. "
            "Return ONLY a JSON array of strings in the same order. No extra text."
        )
        payload = {
            "model": self._model,
            "temperature": 0.2,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": json.dumps(list(texts), ensure_ascii=False)},
            ],
        }
        try:
            resp = requests.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=payload,
                timeout=HTTP_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise UpstreamTranslationError(f"OpenAI vertaling faalde: {exc.__class__.__name__}") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            raise UpstreamTranslationError(f"OpenAI vertaling faalde: {resp.status_code}")
        try:
            content = resp.json()["choices"][0]["message"]["content"]
            translations = json.loads(content)
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamTranslationError("OpenAI vertaling faalde: leeg of ongeldig antwoord") from exc
        if not isinstance(translations, list) or len(translations) != len(texts):
            raise UpstreamTranslationError("OpenAI vertaling gaf een onverwachte lengte terug")
        return [str(t) for t in translations]


__all__ = [
    "UpstreamTranslationError",
    "TranslatorProtocol",
    "GoogleTranslator",
    "OpenAITranslator",
    "HTTP_TIMEOUT",
]
