"""
Assessment API: publish, XML preview and Metro lookups for the editor.

Permissions:
    - `publish` / `publish-test` need the `assessmentTest` access flag.
    - `publish-production` needs `assessmentProd`.
    - Preview and lookups only need an authenticated caller.

Notes:
    Lookups read from the TEST Metro database; they return `503` while Metro
    is not configured.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend.assessments.models import AssessmentBuildRequest
from backend.assessments.xml_render import render_all
from backend.metro.connection import PublishEnvironment
from backend.metro.lookup import MetroLookup
from backend.web import wiring
from backend.web.auth_utils import require_access


questionnaires_router = APIRouter(tags=["Assessments"])
logger = logging.getLogger("builder.web.assessments")


def _publish(request: Request, payload: AssessmentBuildRequest, environment: PublishEnvironment, flag: str) -> JSONResponse:
    principal = require_access(request, flag)
    logger.info("Questionnaire publish to %s requested by %s", environment.value, principal.username)
    result = wiring.questionnaire_service().publish(payload, environment)
    return JSONResponse(result, status_code=201)


@questionnaires_router.post("/api/questionnaires/publish", status_code=201)
def publish(request: Request, payload: AssessmentBuildRequest):
    return _publish(request, payload, PublishEnvironment.TEST, "assessmentTest")


@questionnaires_router.post("/api/questionnaires/publish-test", status_code=201)
def publish_test(request: Request, payload: AssessmentBuildRequest):
    return _publish(request, payload, PublishEnvironment.TEST, "assessmentTest")


@questionnaires_router.post("/api/questionnaires/publish-production", status_code=201)
def publish_production(request: Request, payload: AssessmentBuildRequest):
    return _publish(request, payload, PublishEnvironment.PRODUCTION, "assessmentProd")


@questionnaires_router.post("/api/assessments/xml-preview")
def xml_preview(payload: AssessmentBuildRequest):
    """Render the four XML documents without touching Metro or S3."""
    return render_all(payload).to_dict()


@questionnaires_router.get("/api/groups")
def search_groups(query: str = ""):
    with wiring.metro_read() as conn:
        return MetroLookup(conn).search_groups(query)


@questionnaires_router.get("/api/competences")
def search_competences(query: str = ""):
    with wiring.metro_read() as conn:
        return MetroLookup(conn).search_competences(query)


@questionnaires_router.get("/api/categories")
def search_categories(query: str = ""):
    with wiring.metro_read() as conn:
        return MetroLookup(conn).search_categories(query)


__all__ = ["questionnaires_router"]
