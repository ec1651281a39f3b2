"""
Centralized storage configuration for the Metro bucket and upload limits.

Intent:
    Provide a single source of truth for the S3 bucket, region and credentials
    used for XML publish and journey uploads, plus the public base URL under
    which journey documents are served. Prevents drift across modules and
    enables simple testing.

Behavior:
    - `load_s3_settings()` returns `None` unless `BUILDER_S3_ENABLED` is true.
    - Credentials are optional; boto3's default credential chain applies when
      `BUILDER_S3_ACCESS_KEY` / `BUILDER_S3_SECRET_KEY` are empty.
    - Size limits are clamped to contract maxima.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

from dataclasses import dataclass
import os


DEFAULT_REGION = "eu-west-1"
DEFAULT_BUCKET = "metro-platform"
DEFAULT_UPLOAD_PREFIX = "test"
DEFAULT_DOCS_BASE_URL = "https://s3-eu-west-1.amazonaws.com/metro-learningjourney/"


@dataclass(frozen=True)
class S3Settings:
    bucket: str = DEFAULT_BUCKET
    region: str = DEFAULT_REGION
    prefix: str = DEFAULT_UPLOAD_PREFIX
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: str = ""


def _flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def s3_enabled() -> bool:
    return _flag("BUILDER_S3_ENABLED")


def load_s3_settings() -> S3Settings | None:
    """Return S3 settings from env or `None` when the object store is disabled.

    Env:
        BUILDER_S3_ENABLED, BUILDER_S3_BUCKET, BUILDER_S3_REGION,
        BUILDER_S3_PREFIX (uploads only), BUILDER_S3_ACCESS_KEY,
        BUILDER_S3_SECRET_KEY, BUILDER_S3_ENDPOINT_URL (optional, e.g. MinIO).
    """
    if not s3_enabled():
        return None
    return S3Settings(
        bucket=(os.getenv("BUILDER_S3_BUCKET") or DEFAULT_BUCKET).strip(),
        region=(os.getenv("BUILDER_S3_REGION") or DEFAULT_REGION).strip(),
        prefix=(os.getenv("BUILDER_S3_PREFIX") or DEFAULT_UPLOAD_PREFIX).strip(),
        access_key=(os.getenv("BUILDER_S3_ACCESS_KEY") or "").strip(),
        secret_key=(os.getenv("BUILDER_S3_SECRET_KEY") or "").strip(),
        endpoint_url=(os.getenv("BUILDER_S3_ENDPOINT_URL") or "").strip(),
    )


def get_docs_base_url() -> str:
    """Base URL for journey documents without an explicit url (ends with `/`)."""
    base = (os.getenv("BUILDER_LJ_DOCS_BASE_URL") or DEFAULT_DOCS_BASE_URL).strip()
    return base if base.endswith("/") else base + "/"


# --- Size limits --------------------------------------------------------------

def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_document_max_upload_bytes() -> int:
    """Maximum upload size for journey documents (default/clamped 25 MiB)."""
    contract_max = 25 * 1024 * 1024
    return _parse_int_env("BUILDER_MAX_DOCUMENT_BYTES", contract_max, contract_max=contract_max)


def get_image_max_upload_bytes() -> int:
    """Maximum upload size for journey images (default/clamped 10 MiB)."""
    contract_max = 10 * 1024 * 1024
    return _parse_int_env("BUILDER_MAX_IMAGE_BYTES", contract_max, contract_max=contract_max)


__all__ = [
    "S3Settings",
    "s3_enabled",
    "load_s3_settings",
    "get_docs_base_url",
    "get_document_max_upload_bytes",
    "get_image_max_upload_bytes",
]
