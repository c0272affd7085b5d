"""Configuration models describing Lifespeed settings."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class LifespeedBaseModel(BaseModel):
    """Shared configuration for Lifespeed settings models."""

    model_config = ConfigDict(extra="forbid")


class CacheSettings(LifespeedBaseModel):
    """Entry metadata cache tuning.

    Attributes:
        state_dir: Directory holding one store file per journal.
        index_batch_size: Entries per metadata batch during initial indexing.
        sync_batch_size: Entries per metadata batch during reconciliation.
        preview_threshold: Indexed entries required before a partial view is offered.
        quiet_window_seconds: Time since the last keystroke during which
            reconciliation is deferred.
        long_yield_every: Entry interval at which indexing yields for longer.
        long_yield_seconds: Duration of the longer indexing yield.
        excerpt_length: Maximum excerpt length stored per entry.
    """

    state_dir: str = "~/.lifespeed/cache"
    index_batch_size: int = Field(default=100, ge=1)
    sync_batch_size: int = Field(default=50, ge=1)
    preview_threshold: int = Field(default=50, ge=0)
    quiet_window_seconds: float = Field(default=2.0, ge=0)
    long_yield_every: int = Field(default=500, ge=1)
    long_yield_seconds: float = Field(default=0.01, ge=0)
    excerpt_length: int = Field(default=300, ge=0, le=300)


class JournalSettings(LifespeedBaseModel):
    """A named journal location.

    Attributes:
        id: Settings-safe identifier; also selects the journal's store.
        name: Display name.
        path: Filesystem directory containing the journal entries.
    """

    id: str
    name: str
    path: str


class WatchSettings(LifespeedBaseModel):
    """Settings for the filesystem watch command.

    Attributes:
        debounce_seconds: Quiet period after the last filesystem event before
            a reconciliation is attempted.
    """

    debounce_seconds: float = Field(default=1.0, gt=0)


class LoggingSettings(LifespeedBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 3


class CLIOptions(LifespeedBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        list_limit: Default number of entries shown by ``lifespeed list``.
    """

    quiet_default: bool = False
    list_limit: int = 25


class LifespeedConfig(LifespeedBaseModel):
    """Top-level configuration struct for Lifespeed.

    Attributes:
        cache: Entry cache settings.
        journals: Configured journals; empty means a single default journal.
        active_journal: Identifier of the journal opened by default.
        default_entries_dir: Entries directory for the implicit default journal.
        watch: Watch command settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    cache: CacheSettings = Field(default_factory=CacheSettings)
    journals: List[JournalSettings] = Field(default_factory=list)
    active_journal: str = "default"
    default_entries_dir: str = "~/.lifespeed/journal"
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "LifespeedBaseModel",
    "CacheSettings",
    "JournalSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "LifespeedConfig",
]
