"""Command line interface for the Lifespeed entry cache."""

from __future__ import annotations

import asyncio
import difflib
from functools import partial
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from lifespeed.cache import CacheError, EntrySummary, format_mtime
from lifespeed.config import ConfigError, ConfigManager, LifespeedConfig
from lifespeed.journals import JournalError, JournalManager
from lifespeed.logs import configure_logging
from lifespeed.search import EntrySearchIndex
from lifespeed.sync import CacheEngine, EntryView
from lifespeed.watch import JournalWatcher

console = Console()

T = TypeVar("T")


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ConfigError):
        return "config_error"
    if isinstance(exc, JournalError):
        return "journal_error"
    return "cache_error"


def _emit(message: Any, *, quiet: bool) -> None:
    if not quiet:
        console.print(message)


def _load_config() -> tuple[ConfigManager, LifespeedConfig]:
    manager = ConfigManager()
    manager.ensure_exists()
    config = manager.load()
    configure_logging(config.logging, Path(config.cache.state_dir))
    return manager, config


def _build_engine(config: LifespeedConfig, journal_id: Optional[str]) -> CacheEngine:
    """Return an unopened engine for ``journal_id`` or the active journal."""
    journals = JournalManager(config)
    journal = journals.require(journal_id) if journal_id else journals.active
    platform_for = partial(journals.platform_for, excerpt_length=config.cache.excerpt_length)
    return CacheEngine(
        platform_for(journal.id),
        journal_id=journal.id,
        settings=config.cache,
        resolve_platform=platform_for,
    )


def _run(
    engine: CacheEngine,
    operation: Callable[[CacheEngine], Awaitable[T]],
    *,
    reconcile_on_exit: bool = True,
) -> T:
    """Run ``operation`` against an open engine.

    View commands end the way the app does when it exits: one reconciliation
    attempt, so entries changed on disk are picked up before output is shown.
    """

    async def _main() -> T:
        with engine:
            result = await operation(engine)
            await engine.wait_for_background()
            if reconcile_on_exit:
                await engine.on_exit()
            return result

    return asyncio.run(_main())


def _summary_payload(entry: EntrySummary) -> dict[str, Any]:
    return {
        "path": entry.path,
        "dirname": entry.dirname,
        "title": entry.title,
        "date": entry.date,
        "tags": entry.tags,
        "excerpt": entry.excerpt,
        "mtime": format_mtime(entry.mtime_ms),
    }


def _entries_table(title: str, entries: list[EntrySummary]) -> Table:
    table = Table(title=title)
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Tags", style="magenta")
    table.add_column("Directory", style="dim")
    for entry in entries:
        table.add_row(
            entry.date[:10], entry.title or "Untitled", ", ".join(entry.tags), entry.dirname
        )
    return table


def _resolve_quiet(
    ctx: click.Context, quiet: bool, config: LifespeedConfig, json_output: bool
) -> bool:
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        return False
    return quiet_enabled


_journal_option = click.option(
    "--journal", "journal_id", type=str, help="Journal id to use instead of the active journal."
)
_json_option = click.option("--json", "json_output", is_flag=True, help="Emit JSON output.")
_quiet_option = click.option("--quiet", is_flag=True, help="Suppress non-error output.")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="lifespeed")
def cli() -> None:
    """Lifespeed keeps a fast metadata cache of your journal entries."""


@cli.command("list")
@_journal_option
@click.option("--limit", type=int, help="Maximum number of entries to show.")
@_json_option
@_quiet_option
@click.pass_context
def list_entries(
    ctx: click.Context,
    journal_id: Optional[str],
    limit: Optional[int],
    json_output: bool,
    quiet: bool,
) -> None:
    """List journal entries, newest first, building the cache if needed."""

    try:
        _, config = _load_config()
        quiet_enabled = _resolve_quiet(ctx, quiet, config, json_output)
        engine = _build_engine(config, journal_id)
        view = EntryView()
        engine.subscribe(view)

        activation = _run(engine, lambda active: active.activate())
        entries = view.entries if view.refreshes else activation.entries
        effective_limit = limit if limit is not None else config.cli.list_limit
        shown = entries[:effective_limit] if effective_limit > 0 else entries

        if json_output:
            console.print_json(
                data={
                    "journal": engine.journal_id,
                    "source": activation.source,
                    "degraded": engine.degraded,
                    "total": len(entries),
                    "entries": [_summary_payload(entry) for entry in shown],
                }
            )
            return

        _emit(_entries_table(f"Entries in {engine.journal_id}", shown), quiet=quiet_enabled)
        _emit(
            f"[green]Showing {len(shown)} of {len(entries)} entries "
            f"(source: {activation.source}).[/green]",
            quiet=quiet_enabled,
        )
    except (ConfigError, CacheError, JournalError) as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)


@cli.command()
@_journal_option
@_json_option
@_quiet_option
@click.pass_context
def sync(ctx: click.Context, journal_id: Optional[str], json_output: bool, quiet: bool) -> None:
    """Reconcile the cache with the journal folder."""

    try:
        _, config = _load_config()
        quiet_enabled = _resolve_quiet(ctx, quiet, config, json_output)
        engine = _build_engine(config, journal_id)

        async def _sync(active: CacheEngine) -> dict[str, Any]:
            folder = await active.platform.get_entries_dir()
            if not active.has_cache_for_folder(folder):
                indexed = await active.index()
                return {"mode": "index", "indexed": indexed.indexed, "total": indexed.total}
            result = await active.reconcile()
            return {"mode": "reconcile", **result.diff.counts()}

        payload = _run(engine, _sync, reconcile_on_exit=False)
        payload["journal"] = engine.journal_id

        if json_output:
            console.print_json(data=payload)
            return

        metrics = ", ".join(f"{key}={value}" for key, value in payload.items() if key != "journal")
        _emit(
            f"[green]Sync summary for {engine.journal_id}: {metrics}.[/green]",
            quiet=quiet_enabled,
        )
    except (ConfigError, CacheError, JournalError) as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)


@cli.command()
@_journal_option
@_json_option
def rebuild(journal_id: Optional[str], json_output: bool) -> None:
    """Discard the cache and index the journal folder from scratch."""

    try:
        _, config = _load_config()
        engine = _build_engine(config, journal_id)
        result = _run(engine, lambda active: active.index(), reconcile_on_exit=False)

        if json_output:
            console.print_json(
                data={
                    "journal": engine.journal_id,
                    "folder": result.folder,
                    "indexed": result.indexed,
                    "total": result.total,
                    "failed_batches": result.failed_batches,
                }
            )
            return
        console.print(
            f"[green]Indexed {result.indexed} of {result.total} entries in {result.folder}.[/green]"
        )
    except (ConfigError, CacheError, JournalError) as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)


@cli.command()
@_journal_option
@_json_option
def status(journal_id: Optional[str], json_output: bool) -> None:
    """Show cache state for a journal without touching the folder."""

    try:
        _, config = _load_config()
        engine = _build_engine(config, journal_id)
        with engine:
            meta = engine.get_meta()
            count = len(engine.get_all_entries())
            payload = {
                "journal": engine.journal_id,
                "store": str(engine.store_path),
                "degraded": engine.degraded,
                "folder": meta.folder_path,
                "entries": count,
                "entry_count": meta.entry_count,
                "last_sync": format_mtime(meta.last_sync) if meta.last_sync else None,
                "version": meta.version,
            }

        if json_output:
            console.print_json(data=payload)
            return

        table = Table(title=f"Cache status for {engine.journal_id}")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in payload.items():
            table.add_row(key, "-" if value is None else str(value))
        console.print(table)
    except (ConfigError, CacheError, JournalError) as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)


@cli.command()
@click.argument("query")
@_journal_option
@click.option("--limit", type=int, default=20, show_default=True, help="Maximum number of results.")
@_json_option
def search(query: str, journal_id: Optional[str], limit: int, json_output: bool) -> None:
    """Search entry titles, tags, excerpts, and dates for QUERY."""

    try:
        _, config = _load_config()
        engine = _build_engine(config, journal_id)
        view = EntryView()
        engine.subscribe(view)

        activation = _run(engine, lambda active: active.activate())
        entries = view.entries if view.refreshes else activation.entries
        hits = EntrySearchIndex(lambda: entries).search(query, limit=limit)

        if json_output:
            console.print_json(
                data={
                    "query": query,
                    "results": [
                        {**_summary_payload(hit.entry), "score": hit.score, "fields": hit.fields}
                        for hit in hits
                    ],
                }
            )
            return

        if not hits:
            console.print(f"[yellow]No entries match '{query}'.[/yellow]")
            return
        console.print(_entries_table(f"Results for '{query}'", [hit.entry for hit in hits]))
    except (ConfigError, CacheError, JournalError) as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)


@cli.command()
@_journal_option
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--once", is_flag=True, help="Reconcile once and exit.")
@_quiet_option
@click.pass_context
def watch(
    ctx: click.Context,
    journal_id: Optional[str],
    debounce: Optional[float],
    once: bool,
    quiet: bool,
) -> None:
    """Keep the cache in sync while files in the journal folder change."""

    try:
        _, config = _load_config()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    quiet_enabled = _resolve_quiet(ctx, quiet, config, False)

    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    try:
        engine = _build_engine(config, journal_id)
    except JournalError as exc:
        raise click.ClickException(str(exc)) from exc

    def _report(result: Any) -> None:
        if result is None:
            _emit("[yellow]Reconciliation skipped.[/yellow]", quiet=quiet_enabled)
            return
        counts = result.diff.counts()
        metrics = ", ".join(f"{key}={value}" for key, value in counts.items())
        _emit(
            f"[green]Watch summary for {engine.journal_id}: {metrics}.[/green]",
            quiet=quiet_enabled,
        )

    loop = asyncio.new_event_loop()
    watcher: Optional[JournalWatcher] = None
    try:
        engine.open()
        activation = loop.run_until_complete(engine.activate())
        loop.run_until_complete(engine.wait_for_background())
        _emit(
            f"[green]Loaded {len(activation.entries)} entries "
            f"(source: {activation.source}).[/green]",
            quiet=quiet_enabled,
        )
        if once:
            _report(loop.run_until_complete(engine.attempt_reconciliation()))
            return

        folder = loop.run_until_complete(engine.platform.get_entries_dir())
        watcher = JournalWatcher(
            Path(folder),
            debounce_seconds=debounce if debounce is not None else config.watch.debounce_seconds,
        )
        _emit(f"[cyan]Watching {folder}. Press Ctrl+C to stop.[/cyan]", quiet=quiet_enabled)

        def _on_batch(paths: list[Path]) -> None:
            _report(loop.run_until_complete(engine.attempt_reconciliation()))

        watcher.watch(_on_batch)
    except KeyboardInterrupt:
        _emit("[yellow]Stopping watch.[/yellow]", quiet=quiet_enabled)
    except CacheError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        if watcher is not None:
            watcher.stop()
        engine.close()
        loop.close()


@cli.group()
def journal() -> None:
    """Manage configured journals."""


def _save_journals(manager: ConfigManager, journals: JournalManager) -> None:
    try:
        manager.update(journals.to_settings_data())
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _journal_manager() -> tuple[ConfigManager, JournalManager]:
    try:
        manager, config = _load_config()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    return manager, JournalManager(config)


@journal.command("list")
@_json_option
def journal_list(json_output: bool) -> None:
    """Show configured journals and which one is active."""
    _, journals = _journal_manager()
    if json_output:
        console.print_json(data=journals.to_settings_data())
        return

    table = Table(title="Journals")
    table.add_column("", no_wrap=True)
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Path", style="dim")
    for item in journals.journals:
        marker = "*" if item.id == journals.active_id else ""
        table.add_row(marker, item.id, item.name, item.path)
    console.print(table)


@journal.command("add")
@click.argument("name")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--use", "activate", is_flag=True, help="Make the new journal active.")
def journal_add(name: str, path: Path, activate: bool) -> None:
    """Register the journal folder PATH under NAME."""
    manager, journals = _journal_manager()
    try:
        added = journals.add(name, path.expanduser())
        if activate:
            journals.activate(added.id)
    except JournalError as exc:
        raise click.ClickException(str(exc)) from exc
    _save_journals(manager, journals)
    console.print(f"[green]Added journal {added.id} ({added.name}).[/green]")


@journal.command("remove")
@click.argument("journal_id")
def journal_remove(journal_id: str) -> None:
    """Forget a journal; its files are left on disk."""
    manager, journals = _journal_manager()
    if journals.get(journal_id) is None:
        raise click.ClickException(f"Journal not found: {journal_id}")
    if not journals.remove(journal_id):
        raise click.ClickException("Cannot remove the active journal or the only journal.")
    _save_journals(manager, journals)
    console.print(f"[green]Removed journal {journal_id}.[/green]")


@journal.command("rename")
@click.argument("journal_id")
@click.argument("name")
def journal_rename(journal_id: str, name: str) -> None:
    """Change the display name of a journal."""
    manager, journals = _journal_manager()
    try:
        renamed = journals.rename(journal_id, name)
    except JournalError as exc:
        raise click.ClickException(str(exc)) from exc
    _save_journals(manager, journals)
    console.print(f"[green]Renamed journal {renamed.id} to {renamed.name}.[/green]")


@journal.command("use")
@click.argument("journal_id")
def journal_use(journal_id: str) -> None:
    """Make JOURNAL_ID the active journal."""
    manager, journals = _journal_manager()
    try:
        active = journals.activate(journal_id)
    except JournalError as exc:
        raise click.ClickException(str(exc)) from exc
    _save_journals(manager, journals)
    console.print(f"[green]Active journal is now {active.id} ({active.name}).[/green]")


@cli.group()
def config() -> None:
    """Manage Lifespeed configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'cache.sync_batch_size'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        before, after = manager.update({".".join(segments): parsed_value})
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    diff = list(
        difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    changed = [
        line for line in diff[2:] if line.startswith(("+", "-")) and "Last updated" not in line
    ]
    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
