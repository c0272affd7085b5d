"""Text normalization utilities for entry search."""

from __future__ import annotations

import re
import unicodedata

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_WHITESPACE = re.compile(r"\s+")


def normalize_search_text(text: str, *, limit: int = 4096) -> str:
    """Return case-folded text suitable for substring matching.

    Args:
        text: Source text such as a title, tag list, or excerpt.
        limit: Maximum number of characters retained in the normalized output.

    Returns:
        str: Text with control characters removed, whitespace collapsed, and
        case folded, capped to ``limit`` characters when ``limit`` is positive.
    """

    sanitized = unicodedata.normalize("NFKC", text)
    sanitized = _CONTROL_CHARS.sub(" ", sanitized)
    sanitized = _WHITESPACE.sub(" ", sanitized).strip().casefold()
    if limit > 0:
        return sanitized[:limit]
    return sanitized


def tokenize_query(query: str) -> list[str]:
    """Split a query into distinct normalized terms."""
    terms: list[str] = []
    for term in normalize_search_text(query, limit=0).split(" "):
        if term and term not in terms:
            terms.append(term)
    return terms


__all__ = ["normalize_search_text", "tokenize_query"]
