"""
Learning journey publish orchestrator.

Intent:
    Validate a journey request, then write it into the selected Metro
    environment inside one transaction.

Behavior:
    - Validation runs before a connection is opened; an invalid request never
      touches Metro.
    - Any exception inside the writer rolls the whole transaction back.
    - Delete runs in the TEST environment only, matching the admin tooling.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from backend.journeys.models import JourneyPublishRequest
from backend.journeys.validation import validate_journey_request
from backend.journeys.writer import JourneyWriter
from backend.metro.connection import MetroTargets, PublishEnvironment


logger = logging.getLogger("builder.journeys")


class JourneyPublishService:
    def __init__(
        self,
        targets: MetroTargets,
        *,
        docs_base_url: str,
        writer_factory: Callable[..., JourneyWriter] = JourneyWriter,
    ) -> None:
        self._targets = targets
        self._docs_base_url = docs_base_url
        self._writer_factory = writer_factory

    def _writer(self, conn: Any) -> JourneyWriter:
        return self._writer_factory(conn, docs_base_url=self._docs_base_url)

    def publish(self, request: JourneyPublishRequest, environment: PublishEnvironment = PublishEnvironment.TEST) -> Dict[str, Any]:
        logger.info("Publishing learning journey %r to %s", request.name, environment.value)
        validate_journey_request(request)
        target = self._targets.resolve(environment)
        if environment == PublishEnvironment.PRODUCTION:
            logger.warning("PRODUCTION publish triggered for learning journey %r", request.name)

        with target.transaction() as conn:
            result = self._writer(conn).execute(request, target.label)

        logger.info("[%s] Learning journey %r published (id=%s)", target.label, request.name, result["learningJourneyId"])
        return result

    def delete(self, journey_id: int) -> Dict[str, int]:
        target = self._targets.resolve(PublishEnvironment.TEST)
        logger.warning("Deleting learning journey %s", journey_id)
        with target.transaction() as conn:
            return self._writer(conn).delete_journey(journey_id)


__all__ = ["JourneyPublishService"]
