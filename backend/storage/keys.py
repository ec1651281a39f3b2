"""
Helpers to generate standardized object keys for the Metro S3 bucket.

Why:
    Keep key shapes consistent between assessment publish and journey uploads
    and provide simple, testable sanitization that avoids path traversal and
    exotic characters while remaining human-readable.

Conventions:
    - Assessment XML: {prefix}/{lang}/{type}_{slug}_{LANG}.xml
      (type is `questionnaire` or `report`, prefix is `test` or `production`)
    - Journey uploads: {prefix}/learning-journeys/{journey|_draft}/{kind}/{uuid}.{ext}

Security:
    - Sanitization removes characters outside [A-Za-z0-9._-] from segments.
    - Filename extensions are lowercased and filtered to alphanumeric + dot.
"""
from __future__ import annotations

import os
import re
import unicodedata

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s_-]")
_SLUG_SPACE_RE = re.compile(r"[\s-]+")
_SLUG_UNDERSCORE_RE = re.compile(r"_+")

XML_TYPES = ("questionnaire", "report")
UPLOAD_KINDS = ("docs", "images")


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


def _sanitize_ext_from_filename(filename: str | None, default_ext: str = "") -> str:
    if not filename:
        ext = default_ext
    else:
        _, ext = os.path.splitext(os.path.basename(filename))
    ext = (ext or default_ext or "").lower()
    ext = "".join(ch for ch in ext if ch.isalnum() or ch == ".")
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


def assessment_slug(name: str | None) -> str:
    """Slug used in XML object keys.

    Lowercase; drop everything but [a-z0-9], whitespace, `_` and `-`; turn runs
    of whitespace/hyphens into `_`; collapse and trim underscores. Blank input
    yields `unnamed`.
    """
    value = (name or "").lower()
    value = _SLUG_STRIP_RE.sub("", value)
    value = _SLUG_SPACE_RE.sub("_", value)
    value = _SLUG_UNDERSCORE_RE.sub("_", value).strip("_")
    return value or "unnamed"


def make_assessment_xml_key(*, prefix: str, lang: str, xml_type: str, assessment_name: str | None) -> str:
    """Build the object key for a questionnaire or report XML document.

    Returns: {prefix}/{lang}/{type}_{slug}_{LANG}.xml
    """
    if xml_type not in XML_TYPES:
        raise ValueError(f"Unknown XML type: {xml_type}")
    lang_norm = (lang or "").strip().lower()
    slug = assessment_slug(assessment_name)
    return f"{prefix}/{lang_norm}/{xml_type}_{slug}_{lang_norm.upper()}.xml"


def make_journey_upload_key(*, prefix: str, journey_id: int | None, kind: str, filename: str | None, uuid_hex: str) -> str:
    """Build the object key for a learning-journey document or image upload.

    Returns: {prefix}/learning-journeys/{journey|_draft}/{kind}/{uuid}.{ext}
    """
    if kind not in UPLOAD_KINDS:
        raise ValueError(f"Unknown upload kind: {kind}")
    p = _sanitize_segment(prefix, fallback="test")
    folder = str(int(journey_id)) if journey_id is not None else "_draft"
    ext = _sanitize_ext_from_filename(filename)
    hexpart = (uuid_hex or "").strip() or "file"
    return f"{p}/learning-journeys/{folder}/{kind}/{hexpart}{ext}"


def public_url(bucket: str, key: str) -> str:
    return f"https://{bucket}.s3.amazonaws.com/{key}"


__all__ = [
    "assessment_slug",
    "make_assessment_xml_key",
    "make_journey_upload_key",
    "public_url",
    "XML_TYPES",
    "UPLOAD_KINDS",
]
