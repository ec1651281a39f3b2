"""
Deterministic identifiers for learning journey rows.

Behavior:
    - `generate_lj_key("Smoke Test!")` -> `"smoke-test"`: lowercase, runs of
      non-alphanumerics collapse to `-`, edges trimmed, max 20 chars,
      `"unnamed"` when nothing is left.
    - Label identifiers are shared by the NL and EN rows of the same text:
      `LJ_<id>_STEP_<n>_TITLE`, `..._TEXT`, `..._Q_<q>`, `..._DOCS`.
"""
from __future__ import annotations

import re

MAX_LJKEY_LENGTH = 20
MAX_IDENTIFIER_LENGTH = 100
MAX_DOC_IDENTIFIER_LENGTH = 50
MAX_CATEGORY_LENGTH = 50

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value if len(value) <= limit else value[:limit]


def generate_lj_key(name: str | None) -> str:
    if name is None or not name.strip():
        return "unnamed"
    slug = _NON_ALNUM.sub("-", name.strip().lower()).strip("-")
    if not slug:
        return "unnamed"
    return slug[:MAX_LJKEY_LENGTH]


def label_category(lj_key: str) -> str:
    return truncate("Learning_Journey_" + lj_key, MAX_CATEGORY_LENGTH) or ""


def label_id(journey_id: int, step_index: int, suffix: str) -> str:
    return truncate(f"LJ_{journey_id}_STEP_{step_index}_{suffix}", MAX_IDENTIFIER_LENGTH) or ""


def question_label_id(journey_id: int, step_index: int, question_index: int) -> str:
    return truncate(f"LJ_{journey_id}_STEP_{step_index}_Q_{question_index}", MAX_IDENTIFIER_LENGTH) or ""


def doc_group_id(journey_id: int, step_index: int) -> str:
    return truncate(f"LJ_{journey_id}_STEP_{step_index}_DOCS", MAX_DOC_IDENTIFIER_LENGTH) or ""


LIKE_ESCAPE = "!"


def journey_pattern(journey_id: int) -> str:
    """LIKE pattern matching every label and document of one journey.

    Underscores are escaped with `LIKE_ESCAPE`, so journey 1 never matches the
    rows of journeys 10-19 or 100-199. Use with `LIKE %s ESCAPE '!'`.
    """
    return f"LJ!_{journey_id}!_%"


__all__ = [
    "generate_lj_key",
    "label_category",
    "label_id",
    "question_label_id",
    "doc_group_id",
    "journey_pattern",
    "LIKE_ESCAPE",
    "truncate",
]
