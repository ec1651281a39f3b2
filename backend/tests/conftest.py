"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
keep every test independent of a live Metro, Postgres or S3.
"""
import sys
from pathlib import Path

import pytest

# Ensure `backend.*` and the shared fakes are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


_BUILDER_ENV_VARS = (
    "BUILDER_ENV",
    "BUILDER_AUTH_ENABLED",
    "BUILDER_AUTH_USERNAME",
    "BUILDER_AUTH_PASSWORD",
    "BUILDER_AUTH_TOKEN_SECRET",
    "BUILDER_METRO_ENABLED",
    "BUILDER_METRO_DATASOURCE_URL",
    "BUILDER_METRO_PROD_ENABLED",
    "BUILDER_METRO_PROD_DATASOURCE_URL",
    "BUILDER_S3_ENABLED",
    "BUILDER_S3_BUCKET",
    "BUILDER_DATABASE_URL",
    "DATABASE_URL",
    "BUILDER_TRANSLATION_PROVIDER",
    "GOOGLE_API_KEY",
    "OPENAI_API_KEY",
    "BUILDER_MAX_DOCUMENT_BYTES",
    "BUILDER_MAX_IMAGE_BYTES",
)


@pytest.fixture(autouse=True)
def _clean_builder_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from a local, auth-enabled, backend-less configuration.

    Behavior:
        - Clears Builder env toggles so a developer's shell cannot leak in.
        - Resets the web wiring singletons so `set_*` overrides never bleed
          across tests.
    """
    for var in _BUILDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("BUILDER_ENV", "test")
    monkeypatch.setenv("BUILDER_AUTH_TOKEN_SECRET", "test-secret-for-builder-tokens-0123456789")

    from backend.web import wiring

    wiring.reset()
    yield
    wiring.reset()
