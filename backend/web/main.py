"Builder backend"
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via BUILDER_ENABLE_DOTENV (default true outside
      pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("BUILDER_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


from dotenv import load_dotenv

if _should_load_dotenv():
    load_dotenv()

from backend.identity_access.domain import Principal, ROLE_ADMIN
from backend.identity_access.settings import auth_enabled, get_auth_password, is_local_env
from backend.metro.errors import BuilderError, ValidationFailed
from backend.web import config as _cfg
from backend.web import wiring
from backend.web.routes.auth import auth_router
from backend.web.routes.definitions import definitions_router
from backend.web.routes.journeys import journeys_router
from backend.web.routes.operations import operations_router
from backend.web.routes.projects import projects_router
from backend.web.routes.questionnaires import questionnaires_router
from backend.web.routes.translate import translate_router
from backend.web.routes.uploads import uploads_router
from backend.web.routes.users import users_router

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("builder.web")
auth_logger = logging.getLogger("builder.web.auth")

NO_STORE = {"Cache-Control": "private, no-store"}
PUBLIC_API_PATHS = frozenset({"/api/auth/login", "/api/auth/status", "/api/health"})
ANONYMOUS_PRINCIPAL = Principal(user_id=None, username="dev-anonymous", role=ROLE_ADMIN)


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create the support admin on an empty user table (skipped under pytest)."""
    if not _under_pytest():
        wiring.get_user_service().seed_admin(get_auth_password())
    yield


app = FastAPI(
    title="Builder",
    description="Assessment and learning journey builder for Metro",
    version="1.0.0",
    lifespan=lifespan,
)


def _error_response(status_code: int, body: dict) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=dict(NO_STORE))


# --- Error mapping -------------------------------------------------------------

@app.exception_handler(BuilderError)
async def builder_error_handler(request: Request, exc: BuilderError):
    body = {"error": exc.code, "detail": exc.message}
    reasons = getattr(exc, "reasons", None)
    if reasons:
        body["reasons"] = list(reasons)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return _error_response(exc.status_code, body)


def _field_error(err: dict) -> str:
    loc = [str(part) for part in err.get("loc", ()) if part != "body"]
    where = ".".join(loc) or "body"
    return f"{where}: {err.get('msg', 'invalid')}"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    failure = ValidationFailed([_field_error(err) for err in exc.errors()])
    return _error_response(400, {"error": failure.code, "detail": failure.message, "reasons": failure.reasons})


# --- Middleware -------------------------------------------------------------------

def _is_public_path(request: Request) -> bool:
    path = request.url.path
    if request.method == "OPTIONS":
        return True
    if not path.startswith("/api/"):
        return True
    return path in PUBLIC_API_PATHS


def _unauthenticated(detail: str) -> JSONResponse:
    headers = dict(NO_STORE)
    headers["Vary"] = "Origin"
    return JSONResponse({"error": "unauthenticated", "detail": detail}, status_code=401, headers=headers)


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    if _is_public_path(request):
        return await call_next(request)

    if not auth_enabled():
        if not is_local_env():
            auth_logger.error("Auth disabled outside a local environment; rejecting %s", request.url.path)
            return _unauthenticated("Authentication required")
        request.state.user = ANONYMOUS_PRINCIPAL
        return await call_next(request)

    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return _unauthenticated("Missing or invalid Authorization header")
    claims = wiring.get_token_service().verify(header[len("Bearer "):])
    if claims is None:
        return _unauthenticated("Invalid or expired token")

    # Expose minimal, read-only user context for downstream handlers.
    request.state.user = Principal(user_id=claims.user_id, username=claims.username, role=claims.role)
    return await call_next(request)


@app.middleware("http")
async def unexpected_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, {"error": "internal_error"})


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    if request.url.path.startswith("/api/"):
        response.headers.setdefault("Cache-Control", "private, no-store")
    return response


# Added last so preflights and 401s carry CORS headers.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cfg.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# --- Routers ----------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(questionnaires_router)
app.include_router(definitions_router)
app.include_router(journeys_router)
app.include_router(translate_router)
app.include_router(uploads_router)
app.include_router(operations_router)

