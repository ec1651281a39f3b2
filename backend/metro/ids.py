"""Per-publish id counters seeded from MAX(id)+1 of each Metro table."""
from __future__ import annotations

from typing import Dict, Mapping

ID_COUNTERS = ("questionnaires", "categories", "competences", "goals", "items", "competence_questions")


class IdAllocator:
    """Monotonic in-memory counters; one instance per publish, never shared.

    New ids are claimed up-front because later statements of the same plan
    reference them before anything is executed.
    """

    def __init__(self, max_ids: Mapping[str, int]) -> None:
        self._next: Dict[str, int] = {name: int(max_ids.get(name) or 0) + 1 for name in ID_COUNTERS}

    def next(self, counter: str) -> int:
        if counter not in self._next:
            raise KeyError(f"Unknown id counter: {counter}")
        value = self._next[counter]
        self._next[counter] = value + 1
        return value


__all__ = ["IdAllocator", "ID_COUNTERS"]
