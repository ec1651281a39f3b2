"""Operations endpoints (health for load balancers and the frontend banner)."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from backend.web import wiring

operations_router = APIRouter(tags=["Operations"])


def _private_response(body: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


@operations_router.get("/api/health")
async def health():
    """
    Report which backends are configured.

    Behavior:
        Configuration flags only; no connection is opened, so the endpoint
        stays fast and public.
    """
    targets = wiring.get_metro_targets()
    body = {
        "status": "ok",
        "metro": targets.test_configured,
        "metroProduction": targets.production_configured,
        "s3": wiring.get_object_store() is not None,
    }
    return _private_response(body, status_code=200)
