"""
Learning journey uploads: documents and editor images.

Behavior:
    - Multipart field `file` plus optional form field `journeyId`; without a
      journey id the object lands in the `_draft` folder.
    - Key: `{prefix}/learning-journeys/{journeyId|_draft}/{docs|images}/{uuid}{ext}`.
    - Objects are stored public-read with a one-year cache header (see
      `S3ObjectStore.put_bytes`) because Metro embeds the URLs directly.
    - Object store disabled -> 503 `storage_not_configured`.

Security:
    Content type is checked against an allowlist; size is checked after
    reading against the configured limit.
"""

from __future__ import annotations

import logging
from typing import Optional
import uuid

from fastapi import APIRouter, File, Form, UploadFile
from starlette.concurrency import run_in_threadpool

from backend.metro.errors import BuilderError
from backend.storage.config import get_document_max_upload_bytes, get_image_max_upload_bytes
from backend.storage.keys import make_journey_upload_key
from backend.storage.ports import ObjectStore
from backend.web import wiring


uploads_router = APIRouter(tags=["Uploads"])
logger = logging.getLogger("builder.web.uploads")

DOCUMENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
    }
)
IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml"})


class StorageNotConfigured(BuilderError):
    code = "storage_not_configured"
    status_code = 503


class UploadRejected(BuilderError):
    code = "invalid_upload"
    status_code = 400


def _require_store() -> ObjectStore:
    store = wiring.get_object_store()
    if store is None:
        raise StorageNotConfigured("Object storage is not configured. Set BUILDER_S3_ENABLED=true.")
    return store


def _mib(limit: int) -> int:
    return limit // (1024 * 1024)


async def _store_upload(
    file: UploadFile,
    journey_id: Optional[int],
    *,
    kind: str,
    allowed: frozenset,
    allowed_label: str,
    max_bytes: int,
) -> tuple[str, str]:
    store = _require_store()
    body = await file.read()
    if not body:
        raise UploadRejected("Geen bestand geselecteerd")
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in allowed:
        raise UploadRejected(f"Ongeldig bestandstype. Toegestaan: {allowed_label}")
    if len(body) > max_bytes:
        raise UploadRejected(f"Bestand te groot (max {_mib(max_bytes)} MB)")

    key = make_journey_upload_key(
        prefix=store.upload_prefix,
        journey_id=journey_id,
        kind=kind,
        filename=file.filename,
        uuid_hex=uuid.uuid4().hex,
    )
    url = await run_in_threadpool(store.put_bytes, key, body, content_type=content_type)
    logger.info("%s uploaded (%s bytes) -> %s", kind, len(body), key)
    return url, key


@uploads_router.post("/api/documents/upload")
async def upload_document(file: UploadFile = File(...), journeyId: Optional[int] = Form(default=None)):
    url, key = await _store_upload(
        file,
        journeyId,
        kind="docs",
        allowed=DOCUMENT_TYPES,
        allowed_label="PDF, Word, Excel, PowerPoint, afbeeldingen",
        max_bytes=get_document_max_upload_bytes(),
    )
    return {"url": url, "fileName": file.filename or key.rsplit("/", 1)[-1]}


@uploads_router.post("/api/images/upload")
async def upload_image(file: UploadFile = File(...), journeyId: Optional[int] = Form(default=None)):
    url, _ = await _store_upload(
        file,
        journeyId,
        kind="images",
        allowed=IMAGE_TYPES,
        allowed_label="JPEG, PNG, GIF, WebP, SVG",
        max_bytes=get_image_max_upload_bytes(),
    )
    return {"url": url}


__all__ = ["uploads_router", "DOCUMENT_TYPES", "IMAGE_TYPES"]
