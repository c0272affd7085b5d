"""Search helpers for journal entries."""

from .index import FIELD_WEIGHTS, EntrySearchIndex, SearchHit
from .text import normalize_search_text, tokenize_query

__all__ = [
    "EntrySearchIndex",
    "FIELD_WEIGHTS",
    "SearchHit",
    "normalize_search_text",
    "tokenize_query",
]
