"""
Storage ports used by the publish pipeline and the upload routes.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from typing import Iterable, Protocol


class ObjectStore(Protocol):
    """Minimal interface to write public objects to the Metro bucket.

    Intent:
        Allow publish code to persist XML documents and uploads without
        depending on a specific cloud SDK.

    Permissions:
        Uploads (`put_bytes`) are written public-read; XML documents rely on
        the bucket policy for anonymous reads by Metro.
    """

    upload_prefix: str

    def put_text(self, key: str, content: str, *, content_type: str = "application/xml; charset=utf-8") -> str: ...

    def put_bytes(self, key: str, body: bytes, *, content_type: str) -> str: ...

    def delete(self, key: str) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> None: ...

    def url_for(self, key: str) -> str: ...


__all__ = ["ObjectStore"]
