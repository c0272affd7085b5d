"""Entry cache data models."""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator

from .mtime import normalize_mtime

EXCERPT_LIMIT = 300

_JSON_SCALARS = (str, int, float, bool)


def _serialize_ref(value: Any) -> Any:
    """Return a JSON-safe form of an opaque entry handle.

    Scalars, lists and mappings pass through; any other handle object is
    stored as its string form.
    """
    if value is None or isinstance(value, (*_JSON_SCALARS, list, dict)):
        return value
    return str(value)


class FsEntry(BaseModel):
    """One row of the cheap filesystem listing.

    Attributes:
        path: Unique entry identifier (file path or content URI).
        dirname: Entry directory name, conventionally ``YYYY-MM-DD-slug``.
        mtime: Last-modified marker as epoch milliseconds or ISO-8601 string.
        entry_ref: Opaque platform handle locating entry content.
    """

    path: str
    dirname: str = ""
    mtime: Union[int, str, None] = None
    entry_ref: Optional[Any] = None

    @property
    def mtime_ms(self) -> int:
        """Return the normalized modification time."""
        return normalize_mtime(self.mtime)

    @field_serializer("entry_ref", when_used="json")
    def _dump_entry_ref(self, value: Any) -> Any:
        return _serialize_ref(value)


class EntrySummary(BaseModel):
    """Cached metadata describing a single journal entry.

    Attributes:
        path: Primary key; at most one summary exists per path.
        dirname: Display-oriented directory name.
        entry_ref: Opaque platform handle, stored but never interpreted. Handles
            that are not JSON values are persisted as their string form.
        title: Entry title from frontmatter or the dirname convention.
        date: ISO-8601 entry date.
        tags: Distinct tags in first-seen order.
        excerpt: Plain-text excerpt of at most 300 characters.
        mtime: Last-modified marker as epoch milliseconds or ISO-8601 string.
    """

    path: str
    dirname: str = ""
    entry_ref: Optional[Any] = None
    title: str = ""
    date: str = ""
    tags: List[str] = Field(default_factory=list)
    excerpt: str = ""
    mtime: Union[int, str, None] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen: list[str] = []
        for tag in value:
            text = str(tag).strip()
            if text and text not in seen:
                seen.append(text)
        return seen

    @field_validator("excerpt", mode="before")
    @classmethod
    def _cap_excerpt(cls, value: Any) -> str:
        return (value or "")[:EXCERPT_LIMIT]

    @property
    def mtime_ms(self) -> int:
        """Return the normalized modification time."""
        return normalize_mtime(self.mtime)

    @field_serializer("entry_ref", when_used="json")
    def _dump_entry_ref(self, value: Any) -> Any:
        return _serialize_ref(value)


class CacheMeta(BaseModel):
    """Singleton metadata record stored alongside the entries.

    Attributes:
        folder_path: Journal folder the store currently represents.
        last_sync: Epoch milliseconds of the last successful index or reconciliation.
        entry_count: Cached number of entries for fast usefulness checks.
        version: Store schema version that wrote the record.
    """

    folder_path: Optional[str] = None
    last_sync: Optional[int] = None
    entry_count: int = 0
    version: Optional[int] = None


class DiffResult(BaseModel):
    """Differences between the store and a filesystem listing."""

    added: List[FsEntry] = Field(default_factory=list)
    modified: List[FsEntry] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when the store already matches the listing."""
        return not (self.added or self.modified or self.deleted)

    @property
    def to_fetch(self) -> List[FsEntry]:
        """Return added then modified entries, the set whose metadata must be read."""
        return [*self.added, *self.modified]

    def counts(self) -> dict[str, int]:
        """Return the size of each change set."""
        return {
            "added": len(self.added),
            "modified": len(self.modified),
            "deleted": len(self.deleted),
        }


__all__ = ["EXCERPT_LIMIT", "FsEntry", "EntrySummary", "CacheMeta", "DiffResult"]
