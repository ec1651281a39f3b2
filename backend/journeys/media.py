"""
EN media interleaving for step text.

The editor sends EN text without media; the NL text carries the `<img>` and
`<video>` lines. `ensure_media_in_en` is the only place that puts media into
EN content, always deriving the layout from NL.
"""
from __future__ import annotations

import re

_IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_VIDEO_BLOCK = re.compile(r"<video\b[^>]*>.*?</video\s*>", re.DOTALL | re.IGNORECASE)
# unclosed openers and stray closers left after the block pass
_VIDEO_FRAGMENT = re.compile(r"<video\b[^>]*>|</video\s*>", re.IGNORECASE)
_STRIPPED = "\x00"


def _is_media_line(line: str) -> bool:
    trimmed = line.strip().lower()
    return trimmed.startswith("<img ") or trimmed.startswith("<video ") or trimmed.startswith("</video")


def _strip_media(text: str) -> str:
    """Remove every img/video tag; lines that held only media disappear."""
    marked = _VIDEO_BLOCK.sub(_STRIPPED, text)
    marked = _VIDEO_FRAGMENT.sub(_STRIPPED, marked)
    marked = _IMG_TAG.sub(_STRIPPED, marked)
    kept = []
    for line in marked.split("\n"):
        if _STRIPPED in line:
            line = line.replace(_STRIPPED, "")
            if not line.strip():
                continue
        kept.append(line)
    return "\n".join(kept).strip()


def ensure_media_in_en(en_text: str | None, nl_text: str | None) -> str | None:
    """Return EN text with the NL media lines at their NL positions.

    Walks NL lines: media lines are copied verbatim, every other line takes
    the next EN segment (or "" once EN runs out). Surplus EN segments are
    appended. Stale media already present in EN is stripped first, including
    videos spread over several lines or left unclosed.
    """
    if en_text is None or nl_text is None:
        return en_text
    if not (_IMG_TAG.search(nl_text) or _VIDEO_FRAGMENT.search(nl_text)):
        return en_text

    en_parts = _strip_media(en_text).split("\n")

    result = []
    en_idx = 0
    for nl_part in nl_text.split("\n"):
        if _is_media_line(nl_part):
            result.append(nl_part)
        elif en_idx < len(en_parts):
            result.append(en_parts[en_idx])
            en_idx += 1
        else:
            result.append("")
    result.extend(en_parts[en_idx:])
    return "\n".join(result)


__all__ = ["ensure_media_in_en"]
