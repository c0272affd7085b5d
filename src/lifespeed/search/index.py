"""Metadata search over cached entry summaries."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional

from lifespeed.cache import EntrySummary
from lifespeed.sync import CacheEvent, EntriesChanged, EntriesDiscovered, JournalSwitched

from .text import normalize_search_text, tokenize_query

LOGGER = logging.getLogger(__name__)

# Relative weight of each summary field when ranking matches.
FIELD_WEIGHTS: dict[str, float] = {
    "title": 0.4,
    "tags": 0.3,
    "excerpt": 0.2,
    "date": 0.1,
}


@dataclass(slots=True)
class SearchHit:
    """A ranked search result.

    Attributes:
        entry: Matching summary.
        score: Sum of field weights over matched query terms.
        fields: Fields that matched at least one term.
    """

    entry: EntrySummary
    score: float
    fields: list[str]


@dataclass(slots=True)
class _Document:
    entry: EntrySummary
    fields: dict[str, str]


class EntrySearchIndex:
    """Lazily built search index fed by the engine's entry list.

    The index is built on first use from ``loader`` and discarded whenever the
    cache reports a change or a journal switch, so results never mix entries
    from two journals. Subscribe the instance to the engine to get that reset.
    """

    def __init__(self, loader: Callable[[], list[EntrySummary]]) -> None:
        self._loader = loader
        self._documents: Optional[list[_Document]] = None

    @property
    def is_built(self) -> bool:
        return self._documents is not None

    def reset(self) -> None:
        """Discard the index; it is rebuilt on the next query."""
        if self._documents is not None:
            LOGGER.debug("Discarding search index of %d entries", len(self._documents))
        self._documents = None

    def __call__(self, event: CacheEvent) -> None:
        if isinstance(event, (EntriesChanged, EntriesDiscovered, JournalSwitched)):
            self.reset()

    def search(self, query: str, *, limit: int = 0) -> list[SearchHit]:
        """Return entries matching every term of ``query``, best first.

        Args:
            query: Free-text query; terms are matched as case-insensitive substrings.
            limit: Maximum number of hits; non-positive means unlimited.

        Returns:
            list[SearchHit]: Hits ordered by score, then by modification time.
        """
        terms = tokenize_query(query)
        if not terms:
            return []

        hits: list[SearchHit] = []
        for document in self._ensure_built():
            score = 0.0
            matched: list[str] = []
            satisfied = True
            for term in terms:
                term_fields = [name for name, text in document.fields.items() if term in text]
                if not term_fields:
                    satisfied = False
                    break
                score += sum(FIELD_WEIGHTS[name] for name in term_fields)
                matched.extend(name for name in term_fields if name not in matched)
            if satisfied:
                hits.append(SearchHit(entry=document.entry, score=round(score, 4), fields=matched))

        hits.sort(key=lambda hit: (-hit.score, -hit.entry.mtime_ms, hit.entry.path))
        return hits[:limit] if limit > 0 else hits

    def tag_counts(self) -> Counter[str]:
        """Return how many entries carry each tag."""
        counts: Counter[str] = Counter()
        for document in self._ensure_built():
            counts.update(document.entry.tags)
        return counts

    def _ensure_built(self) -> list[_Document]:
        if self._documents is None:
            entries = self._loader()
            self._documents = [
                _Document(
                    entry=entry,
                    fields={
                        "title": normalize_search_text(entry.title),
                        "tags": normalize_search_text(" ".join(entry.tags)),
                        "excerpt": normalize_search_text(entry.excerpt),
                        "date": normalize_search_text(entry.date),
                    },
                )
                for entry in entries
            ]
            LOGGER.debug("Built search index of %d entries", len(self._documents))
        return self._documents


__all__ = ["EntrySearchIndex", "FIELD_WEIGHTS", "SearchHit"]
