"""Persistent per-journal entry store backed by SQLite."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TypeVar

from pydantic import ValidationError

from .errors import StoreClosedError, StoreError, StoreUnavailableError
from .models import CacheMeta, EntrySummary
from .mtime import now_ms

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 2
DEFAULT_JOURNAL_ID = "default"
DEFAULT_STORE_NAME = "lifespeed-metadata"
MEMORY_STORE = ":memory:"
_META_ID = "cache"

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS entries (
    path     TEXT PRIMARY KEY,
    dirname  TEXT NOT NULL DEFAULT '',
    mtime_ms INTEGER NOT NULL DEFAULT 0,
    payload  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS entries_mtime ON entries (mtime_ms DESC);

CREATE TABLE IF NOT EXISTS meta (
    id      TEXT PRIMARY KEY,
    payload TEXT NOT NULL
);
"""

T = TypeVar("T")


def store_name_for(journal_id: str) -> str:
    """Return the store identity for a journal.

    The default journal keeps the legacy un-namespaced name so caches built
    before multi-journal support stay valid.
    """
    if journal_id == DEFAULT_JOURNAL_ID:
        return DEFAULT_STORE_NAME
    return f"{DEFAULT_STORE_NAME}-{journal_id}"


def store_path_for(state_dir: Path, journal_id: str) -> Path:
    """Return the store file for ``journal_id`` inside ``state_dir``."""
    return state_dir.expanduser() / f"{store_name_for(journal_id)}.sqlite3"


def normalize_folder(folder: str | Path) -> str:
    """Return ``folder`` with forward slashes and no trailing separator."""
    text = str(folder).replace("\\", "/")
    stripped = text.rstrip("/")
    return stripped or text[:1]


class EntryStore:
    """Key-value table of entry summaries plus a singleton meta record.

    Reads that hit a storage error degrade to empty results; writes raise
    :class:`StoreError`. Every operation on a closed store raises
    :class:`StoreClosedError`.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = path if path == MEMORY_STORE else Path(path).expanduser()
        self._conn: sqlite3.Connection | None = None

    @classmethod
    def open_path(cls, path: Path | str) -> "EntryStore":
        """Create a store for ``path`` and open it."""
        store = cls(path)
        store.open()
        return store

    @property
    def path(self) -> Path | str:
        """Return the backing file, or ``:memory:`` for session-only stores."""
        return self._path

    @property
    def is_open(self) -> bool:
        """Return whether the handle can serve reads and writes."""
        return self._conn is not None

    @property
    def is_memory(self) -> bool:
        """Return whether the store lives only for this session."""
        return self._path == MEMORY_STORE

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    def open(self) -> "EntryStore":
        """Open or create the store, discarding unreadable or stale data.

        Raises:
            StoreUnavailableError: If the store cannot be opened even after
                discarding the existing file.
        """
        if self._conn is not None:
            return self
        if not self.is_memory:
            try:
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreUnavailableError(f"Cannot create store directory: {exc}") from exc

        try:
            self._conn = self._connect()
        except sqlite3.DatabaseError as exc:
            if self.is_memory:
                raise StoreUnavailableError(f"Cannot open in-memory store: {exc}") from exc
            LOGGER.warning("Discarding unreadable entry store %s: %s", self._path, exc)
            self._discard_files()
            try:
                self._conn = self._connect()
            except (sqlite3.Error, OSError) as retry_exc:
                raise StoreUnavailableError(
                    f"Cannot open entry store {self._path}: {retry_exc}"
                ) from retry_exc
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot open entry store {self._path}: {exc}") from exc
        LOGGER.debug("Opened entry store %s", self._path)
        return self

    def close(self) -> None:
        """Close the handle; later operations raise :class:`StoreClosedError`."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            LOGGER.debug("Closed entry store %s", self._path)

    # ------------------------------------------------------------------ #
    # Entries                                                            #
    # ------------------------------------------------------------------ #

    def get(self, path: str) -> Optional[EntrySummary]:
        """Return the summary stored for ``path``, if any."""

        def _query(conn: sqlite3.Connection) -> Optional[EntrySummary]:
            row = conn.execute("SELECT payload FROM entries WHERE path = ?", (path,)).fetchone()
            return _decode_summary(row["payload"]) if row else None

        return self._read(_query, None)

    def put(self, summary: EntrySummary) -> None:
        """Upsert a single summary."""
        self.put_batch([summary])

    def put_batch(self, summaries: Iterable[EntrySummary]) -> int:
        """Upsert summaries in one transaction and return how many were written."""
        try:
            rows = [
                (item.path, item.dirname, item.mtime_ms, item.model_dump_json())
                for item in summaries
            ]
        except ValueError as exc:
            raise StoreError(f"Entry summary cannot be serialized: {exc}") from exc
        if not rows:
            return 0
        self._write(
            lambda conn: conn.executemany(
                "INSERT INTO entries (path, dirname, mtime_ms, payload) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(path) DO UPDATE SET dirname = excluded.dirname, "
                "mtime_ms = excluded.mtime_ms, payload = excluded.payload",
                rows,
            )
        )
        LOGGER.debug("Saved %d entries", len(rows))
        return len(rows)

    def delete(self, path: str) -> None:
        """Remove the summary for ``path``; missing paths are ignored."""
        self.delete_batch([path])

    def delete_batch(self, paths: Iterable[str]) -> int:
        """Remove summaries for ``paths`` and return how many paths were requested."""
        rows = [(path,) for path in paths]
        if not rows:
            return 0
        self._write(lambda conn: conn.executemany("DELETE FROM entries WHERE path = ?", rows))
        LOGGER.debug("Deleted %d entries", len(rows))
        return len(rows)

    def list_all(self) -> list[EntrySummary]:
        """Return every summary, newest modification first, ties ordered by path."""

        def _query(conn: sqlite3.Connection) -> list[EntrySummary]:
            rows = conn.execute(
                "SELECT payload FROM entries ORDER BY mtime_ms DESC, path ASC"
            ).fetchall()
            decoded = (_decode_summary(row["payload"]) for row in rows)
            return [summary for summary in decoded if summary is not None]

        return self._read(_query, [])

    def get_mtime_map(self) -> dict[str, Any]:
        """Return ``path -> raw mtime`` for every stored summary."""
        return {summary.path: summary.mtime for summary in self.list_all()}

    def count(self) -> int:
        """Return the number of stored summaries."""
        return self._read(
            lambda conn: conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0], 0
        )

    def clear(self) -> None:
        """Remove every summary while leaving the meta record in place."""
        self._write(lambda conn: conn.execute("DELETE FROM entries"))
        LOGGER.info("Cleared all entries in %s", self._path)

    def search(self, query: str) -> list[EntrySummary]:
        """Return summaries whose title, tags, excerpt, or dirname contain ``query``."""
        entries = self.list_all()
        needle = query.strip().lower()
        if not needle:
            return entries
        return [entry for entry in entries if _matches(entry, needle)]

    # ------------------------------------------------------------------ #
    # Meta                                                               #
    # ------------------------------------------------------------------ #

    def get_meta(self) -> Optional[CacheMeta]:
        """Return the meta record, or ``None`` before the first update."""

        def _query(conn: sqlite3.Connection) -> Optional[CacheMeta]:
            row = conn.execute("SELECT payload FROM meta WHERE id = ?", (_META_ID,)).fetchone()
            if row is None:
                return None
            try:
                return CacheMeta.model_validate_json(row["payload"])
            except ValidationError as exc:
                LOGGER.warning("Ignoring unreadable cache meta record: %s", exc)
                return None

        return self._read(_query, None)

    def update_meta(self, **changes: Any) -> CacheMeta:
        """Merge ``changes`` into the meta record; unspecified fields are kept."""
        current = self.get_meta() or CacheMeta()
        merged = {**current.model_dump(), **changes, "version": SCHEMA_VERSION}
        try:
            updated = CacheMeta.model_validate(merged)
        except ValidationError as exc:
            raise StoreError(f"Invalid cache meta update: {exc}") from exc
        payload = updated.model_dump_json()
        self._write(
            lambda conn: conn.execute(
                "INSERT INTO meta (id, payload) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                (_META_ID, payload),
            )
        )
        return updated

    def has_cache_for_folder(self, folder: str | Path) -> bool:
        """Return whether the store holds a non-empty index of ``folder``.

        An index with zero entries counts as absent so that a folder which was
        never indexed successfully is rebuilt instead of shown empty.
        """
        meta = self.get_meta()
        if meta is None or not meta.folder_path:
            return False
        return (
            normalize_folder(meta.folder_path) == normalize_folder(folder)
            and meta.entry_count > 0
        )

    def is_fresh(self, max_age_ms: int = 3_600_000, *, now: int | None = None) -> bool:
        """Return whether the last sync happened less than ``max_age_ms`` ago."""
        meta = self.get_meta()
        if meta is None or not meta.last_sync:
            return False
        current = now if now is not None else now_ms()
        return current - meta.last_sync < max_age_ms

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path))
        conn.row_factory = sqlite3.Row
        try:
            self._prepare_schema(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _prepare_schema(self, conn: sqlite3.Connection) -> None:
        with conn:
            conn.executescript(_SCHEMA)
            row = conn.execute("SELECT version FROM schema_version").fetchone()
            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
                return
            if row["version"] == SCHEMA_VERSION:
                return
            conn.execute("DELETE FROM entries")
            conn.execute("DELETE FROM meta")
            conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
        LOGGER.info(
            "Upgraded entry store %s from v%s to v%s; cleared stale cache",
            self._path,
            row["version"],
            SCHEMA_VERSION,
        )

    def _discard_files(self) -> None:
        base = Path(self._path)
        siblings = (base.with_name(base.name + "-journal"), base.with_name(base.name + "-wal"))
        for candidate in (base, *siblings):
            try:
                candidate.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                LOGGER.warning("Could not remove %s: %s", candidate, exc)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError(f"Entry store {self._path} is closed.")
        return self._conn

    def _read(self, query: Callable[[sqlite3.Connection], T], default: T) -> T:
        conn = self._require_conn()
        try:
            return query(conn)
        except sqlite3.Error as exc:
            LOGGER.warning("Entry store read failed; treating as empty: %s", exc)
            return default

    def _write(self, statement: Callable[[sqlite3.Connection], Any]) -> None:
        conn = self._require_conn()
        try:
            with conn:
                statement(conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Entry store write failed: {exc}") from exc


def _decode_summary(payload: str) -> Optional[EntrySummary]:
    try:
        return EntrySummary.model_validate_json(payload)
    except ValidationError as exc:
        LOGGER.warning("Skipping unreadable cached entry: %s", exc)
        return None


def _matches(entry: EntrySummary, needle: str) -> bool:
    fields = (entry.title, " ".join(entry.tags), entry.excerpt, entry.dirname)
    return any(needle in field.lower() for field in fields)


__all__ = [
    "DEFAULT_JOURNAL_ID",
    "DEFAULT_STORE_NAME",
    "MEMORY_STORE",
    "SCHEMA_VERSION",
    "EntryStore",
    "normalize_folder",
    "store_name_for",
    "store_path_for",
]
