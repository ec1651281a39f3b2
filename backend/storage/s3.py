"""
S3 object store adapter (boto3).

Intent:
    Implement the `ObjectStore` port for the Metro bucket: XML puts,
    public-read upload puts, deletes and the global-endpoint public URL Metro expects.

Behavior:
    - `put_text` / `put_bytes` raise on failure so the publish transaction can
      roll back; they return the public URL of the stored object.
    - `delete_many` is best-effort: failures are logged per key and never
      raised, so a compensating cleanup cannot mask the primary error.
    - The boto3 client is created lazily and reused; boto3 clients are safe to
      share across threads.

Security:
    Credentials are never logged. When no explicit key pair is configured the
    default boto3 credential chain (instance role, env, profile) is used.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Iterable

import boto3

from backend.storage.config import S3Settings
from backend.storage.keys import public_url


logger = logging.getLogger("builder.storage")

XML_CONTENT_TYPE = "application/xml; charset=utf-8"
UPLOAD_CACHE_CONTROL = "public, max-age=31536000"


class S3ObjectStore:
    def __init__(self, settings: S3Settings, *, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client
        self._lock = threading.Lock()

    @property
    def bucket(self) -> str:
        return self._settings.bucket

    @property
    def upload_prefix(self) -> str:
        return self._settings.prefix

    def _get_client(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    kwargs: dict[str, Any] = {"region_name": self._settings.region}
                    if self._settings.access_key and self._settings.secret_key:
                        kwargs["aws_access_key_id"] = self._settings.access_key
                        kwargs["aws_secret_access_key"] = self._settings.secret_key
                    if self._settings.endpoint_url:
                        kwargs["endpoint_url"] = self._settings.endpoint_url
                    self._client = boto3.client("s3", **kwargs)
        return self._client

    def url_for(self, key: str) -> str:
        return public_url(self._settings.bucket, key)

    def put_text(self, key: str, content: str, *, content_type: str = XML_CONTENT_TYPE) -> str:
        self._get_client().put_object(
            Bucket=self._settings.bucket,
            Key=key,
            Body=content.encode("utf-8"),
            ContentType=content_type,
        )
        logger.info("Uploaded s3://%s/%s", self._settings.bucket, key)
        return self.url_for(key)

    def put_bytes(self, key: str, body: bytes, *, content_type: str) -> str:
        self._get_client().put_object(
            Bucket=self._settings.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ACL="public-read",
            CacheControl=UPLOAD_CACHE_CONTROL,
        )
        logger.info("Uploaded s3://%s/%s (%s bytes)", self._settings.bucket, key, len(body))
        return self.url_for(key)

    def delete(self, key: str) -> None:
        self._get_client().delete_object(Bucket=self._settings.bucket, Key=key)

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            logger.warning("Rolling back upload: deleting s3://%s/%s", self._settings.bucket, key)
            try:
                self.delete(key)
            except Exception as exc:
                logger.error("Failed to delete %s during rollback: %s", key, exc.__class__.__name__)


__all__ = ["S3ObjectStore", "XML_CONTENT_TYPE", "UPLOAD_CACHE_CONTROL"]
