"""
Learning journey API: publish, delete and read views.

Permissions:
    - `publish` / `publish-test` need `journeysTest`; `publish-production`
      needs `journeysProd`.
    - `DELETE /api/learning-journeys/{id}` needs the ADMIN role and
      `journeysTest`; it always targets the TEST database.
    - Read views only need an authenticated caller.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.journeys.lookup import JourneyLookup
from backend.journeys.models import JourneyPublishRequest
from backend.metro.connection import PublishEnvironment
from backend.web import wiring
from backend.web.auth_utils import require_access, require_admin


journeys_router = APIRouter(tags=["Learning journeys"])
logger = logging.getLogger("builder.web.journeys")


def _publish(request: Request, payload: JourneyPublishRequest, environment: PublishEnvironment, flag: str) -> JSONResponse:
    principal = require_access(request, flag)
    logger.info("Learning journey publish to %s requested by %s", environment.value, principal.username)
    result = wiring.journey_service().publish(payload, environment)
    return JSONResponse(result, status_code=201)


@journeys_router.post("/api/learning-journeys/publish", status_code=201)
def publish(request: Request, payload: JourneyPublishRequest):
    return _publish(request, payload, PublishEnvironment.TEST, "journeysTest")


@journeys_router.post("/api/learning-journeys/publish-test", status_code=201)
def publish_test(request: Request, payload: JourneyPublishRequest):
    return _publish(request, payload, PublishEnvironment.TEST, "journeysTest")


@journeys_router.post("/api/learning-journeys/publish-production", status_code=201)
def publish_production(request: Request, payload: JourneyPublishRequest):
    return _publish(request, payload, PublishEnvironment.PRODUCTION, "journeysProd")


@journeys_router.delete("/api/learning-journeys/{journey_id}")
def delete_journey(request: Request, journey_id: int):
    principal = require_admin(request)
    require_access(request, "journeysTest")
    counts = wiring.journey_service().delete(journey_id)
    logger.warning("Learning journey %s deleted by %s: %s", journey_id, principal.username, counts)
    return {"status": "deleted", "id": str(journey_id)}


@journeys_router.get("/api/learning-journeys")
def list_journeys():
    with wiring.metro_read() as conn:
        return JourneyLookup(conn).list_journeys()


@journeys_router.get("/api/learning-journeys/{journey_id}")
def get_journey(journey_id: int):
    with wiring.metro_read() as conn:
        return JourneyLookup(conn).get_journey(journey_id)


__all__ = ["journeys_router"]
