"""YAML frontmatter parsing and excerpt cleanup for markdown entries."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Tuple

import yaml

from lifespeed.cache import EXCERPT_LIMIT

LOGGER = logging.getLogger(__name__)

_DELIMITER = "---"

# Applied in order; later patterns assume earlier markup is gone.
_EXCERPT_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^#+\s+", re.MULTILINE), ""),
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),
    (re.compile(r"!\[.*?\]\(.*?\)"), ""),
    (re.compile(r"\[(.+?)\]\(.*?\)"), r"\1"),
    (re.compile(r"^>\s+", re.MULTILINE), ""),
    (re.compile(r"^[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"^\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"\n{2,}"), " "),
    (re.compile(r"\n"), " "),
    (re.compile(r"\s{2,}"), " "),
)


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Split markdown ``content`` into frontmatter data and body.

    Content without a leading ``---`` block, or whose block is not a YAML
    mapping, is returned as body with empty data.

    Args:
        content: Full markdown document.

    Returns:
        Tuple[Dict[str, Any], str]: Parsed frontmatter mapping and the stripped body.
    """
    if not content or not content.startswith(_DELIMITER):
        return {}, content or ""

    end = content.find("\n" + _DELIMITER, len(_DELIMITER))
    if end == -1:
        return {}, content

    raw = content[len(_DELIMITER) + 1 : end]
    body = content[end + len(_DELIMITER) + 1 :].strip()
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        LOGGER.debug("Ignoring malformed frontmatter: %s", exc)
        return {}, body
    if not isinstance(data, dict):
        return {}, body
    return data, body


def clean_excerpt(body: str, limit: int = EXCERPT_LIMIT) -> str:
    """Strip markdown syntax from ``body`` and cap it at ``limit`` characters."""
    text = body.strip()
    for pattern, replacement in _EXCERPT_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()[: max(0, min(limit, EXCERPT_LIMIT))]


def coerce_date(value: Any) -> str:
    """Render a frontmatter date value as an ISO-8601 string."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None:
        return ""
    return str(value)


__all__ = ["parse_frontmatter", "clean_excerpt", "coerce_date"]
