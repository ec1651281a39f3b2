"""
Section/question numbering shared by the SQL planner and the XML renderer.

Conventions:
    - Categories are ranked by first-seen order across the request
      (case-insensitive on the trimmed name); the rank is the section `S`.
    - Inside a category, competences keep their received order; the 1-based
      position is `Q`.
    - Identifiers are rendered as `S.Q.` (trailing dot included).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from backend.assessments.models import CompetenceInput


def category_key(name: str | None) -> str:
    return (name or "").strip().lower()


def question_id(section: int, position: int) -> str:
    return f"{section}.{position}."


def display_id(identifier: str) -> str:
    """Human form of an identifier: `1.2.` -> `1.2`."""
    return identifier[:-1] if identifier.endswith(".") else identifier


@dataclass
class CategoryBucket:
    name: str
    section: int
    description_nl: str = ""
    description_en: str = ""
    # (index in request, competence, question id)
    entries: List[Tuple[int, CompetenceInput, str]] = field(default_factory=list)


def bucket_competences(competences: Sequence[CompetenceInput]) -> List[CategoryBucket]:
    buckets: Dict[str, CategoryBucket] = {}
    for idx, competence in enumerate(competences):
        key = category_key(competence.category)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = CategoryBucket(name=(competence.category or "").strip(), section=len(buckets) + 1)
            buckets[key] = bucket
        if not bucket.description_nl and competence.category_description:
            bucket.description_nl = competence.category_description
        if not bucket.description_en and competence.category_description_en:
            bucket.description_en = competence.category_description_en
        qid = question_id(bucket.section, len(bucket.entries) + 1)
        bucket.entries.append((idx, competence, qid))
    return list(buckets.values())


def question_ids(competences: Sequence[CompetenceInput]) -> List[str]:
    """Return the `S.Q.` identifier for every competence, in request order."""
    ids = [""] * len(competences)
    for bucket in bucket_competences(competences):
        for idx, _competence, qid in bucket.entries:
            ids[idx] = qid
    return ids


__all__ = [
    "CategoryBucket",
    "bucket_competences",
    "category_key",
    "display_id",
    "question_id",
    "question_ids",
]
