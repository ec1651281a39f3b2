"""
Error kinds raised by the publish pipeline and its collaborators.

Intent:
    Give every failure a stable machine code and an HTTP status so the web
    adapter can map exceptions to responses without inspecting messages.

Behavior:
    - `BuilderError.code` is a snake_case identifier returned as `error`.
    - `BuilderError.status_code` is the HTTP status used by the web layer.
    - `ValidationFailed` accumulates every reason instead of failing fast.
"""
from __future__ import annotations

from typing import Iterable, Sequence


class BuilderError(Exception):
    """Base class for all expected failures."""

    code = "builder_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationFailed(BuilderError):
    code = "validation_failed"
    status_code = 400

    def __init__(self, reasons: Sequence[str]):
        self.reasons = list(reasons)
        super().__init__("Validation failed:\n- " + "\n- ".join(self.reasons))


class UnknownGroup(BuilderError):
    code = "unknown_group"
    status_code = 400

    def __init__(self, missing_ids: Iterable[int]):
        self.missing_ids = list(missing_ids)
        super().__init__("Unknown group ids: " + ", ".join(str(i) for i in self.missing_ids))


class NotConfigured(BuilderError):
    """The Metro connection (or another backend) is not configured."""

    code = "metro_not_configured"
    status_code = 503


class ProductionNotConfigured(BuilderError):
    code = "production_not_configured"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Production database is not configured. Set BUILDER_METRO_PROD_ENABLED=true with valid credentials."
        )


class UrlPatchMissed(BuilderError):
    code = "url_patch_missed"
    status_code = 500

    def __init__(self, questionnaire_id: int, lang: str):
        self.questionnaire_id = questionnaire_id
        self.lang = lang
        super().__init__(f"No questionnaire_translations row updated for questionnaire {questionnaire_id} ({lang})")


class NotFound(BuilderError):
    code = "not_found"
    status_code = 404


__all__ = [
    "BuilderError",
    "ValidationFailed",
    "UnknownGroup",
    "NotConfigured",
    "ProductionNotConfigured",
    "UrlPatchMissed",
    "NotFound",
]
