"""
Pre-transaction validation of a learning journey publish request.

Intent:
    Reject structurally invalid journeys before any SQL runs, listing every
    problem at once so editors can fix them in one pass.

Security:
    Document file names end up in object-store URLs; only a conservative
    character set is accepted (no path separators, no leading dot).
"""
from __future__ import annotations

import re
from typing import List

from backend.journeys.identifiers import generate_lj_key
from backend.journeys.models import JourneyPublishRequest, StepType
from backend.metro.errors import ValidationFailed

MAX_NAME_LENGTH = 50
MAX_QUESTIONS_PER_SUBSTEP = 5
MIN_HOOFDSTAPPEN = 2
ALLOWED_DOCUMENT_LANGS = ("nl", "en")
SAFE_FILENAME = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9._-]*")


def validate_journey_request(request: JourneyPublishRequest) -> None:
    """Raise `ValidationFailed` with every violation; return None when valid."""
    errors: List[str] = []
    name = request.name

    if _blank(name):
        errors.append("Learning journey name is required.")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"Learning journey name exceeds {MAX_NAME_LENGTH} characters.")

    if name and " " in name and " " in generate_lj_key(name):
        errors.append("Generated ljKey must not contain spaces.")

    if not request.group_ids:
        errors.append("At least one group must be selected.")

    steps = request.steps
    if not steps:
        errors.append("At least one step is required.")
        raise ValidationFailed(errors)

    hoofdstappen = sum(1 for step in steps if step.type == StepType.HOOFDSTAP)
    if hoofdstappen < MIN_HOOFDSTAPPEN:
        errors.append(f"At least {MIN_HOOFDSTAPPEN} Hoofdstappen required (found {hoofdstappen}).")

    if steps[-1].type != StepType.AFSLUITING:
        errors.append("Last step must be Afsluiting.")

    for pos, step in enumerate(steps, start=1):
        if _blank(step.title):
            errors.append(f"Step {pos} has no title.")
        if step.type == StepType.SUBSTAP and len(step.questions) > MAX_QUESTIONS_PER_SUBSTEP:
            errors.append(f"Step {pos} has {len(step.questions)} questions (max {MAX_QUESTIONS_PER_SUBSTEP}).")
        for q_pos, question in enumerate(step.questions, start=1):
            if _blank(question.text):
                errors.append(f"Step {pos} question {q_pos} has no text.")
        for doc_pos, doc in enumerate(step.documents, start=1):
            where = f"Step {pos} document {doc_pos}"
            if _blank(doc.label):
                errors.append(f"{where} has no label.")
            if _blank(doc.file_name):
                errors.append(f"{where} has no file name.")
            elif not SAFE_FILENAME.fullmatch(doc.file_name):
                errors.append(f"{where}: invalid filename '{doc.file_name}'.")
            if _blank(doc.lang):
                errors.append(f"{where} has no language (allowed: nl, en).")
            elif doc.lang not in ALLOWED_DOCUMENT_LANGS:
                errors.append(f"{where}: unsupported language '{doc.lang}' (allowed: nl, en).")

    if errors:
        raise ValidationFailed(errors)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


__all__ = ["validate_journey_request", "SAFE_FILENAME", "MAX_QUESTIONS_PER_SUBSTEP"]
