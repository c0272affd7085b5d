"""CLI tests for the entry cache commands."""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path

from click.testing import CliRunner

from lifespeed.cli import cli
from lifespeed.config import ConfigManager


def _env_with_home(tmp_path: Path, journal_dir: Path | None = None) -> dict[str, str]:
    """Return environment variables pointing HOME to a temp directory."""
    env = dict(os.environ)
    env["HOME"] = str(tmp_path / "home")
    if journal_dir is not None:
        env["LIFESPEED__DEFAULT_ENTRIES_DIR"] = str(journal_dir)
    return env


def _write_entry(root: Path, dirname: str, title: str, *, mtime: int, tags: str = "[]") -> Path:
    entry_dir = root / dirname
    entry_dir.mkdir(parents=True, exist_ok=True)
    path = entry_dir / "index.md"
    path.write_text(f"---\ntitle: {title}\ntags: {tags}\n---\nBody of {title}.\n", encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


def _journal(tmp_path: Path) -> Path:
    root = tmp_path / "journal"
    _write_entry(root, "2024-01-01-first", "First Day", mtime=1_704_067_200, tags="[winter]")
    _write_entry(root, "2024-01-02-second", "Second Day", mtime=1_704_153_600)
    return root


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Lifespeed keeps a fast metadata cache" in result.output
    for command in ("list", "sync", "rebuild", "status", "search", "watch", "journal", "config"):
        assert command in result.output


def test_list_indexes_then_serves_from_cache(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    first = runner.invoke(cli, ["list", "--json"], env=env)
    assert first.exit_code == 0, first.output
    payload = json.loads(first.output)
    assert payload["source"] == "index"
    assert payload["total"] == 2
    assert [entry["title"] for entry in payload["entries"]] == ["Second Day", "First Day"]
    assert payload["entries"][1]["tags"] == ["winter"]

    second = runner.invoke(cli, ["list", "--json", "--limit", "1"], env=env)
    assert second.exit_code == 0, second.output
    cached = json.loads(second.output)
    assert cached["source"] == "cache"
    assert cached["total"] == 2
    assert len(cached["entries"]) == 1


def test_list_renders_table(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    result = runner.invoke(cli, ["list"], env=env)

    assert result.exit_code == 0, result.output
    assert "Second Day" in result.output
    assert "Showing 2 of 2 entries" in result.output


def test_list_rejects_json_with_quiet(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    result = runner.invoke(cli, ["list", "--json", "--quiet"], env=env)

    assert result.exit_code != 0
    assert "--json cannot be combined with --quiet" in result.output


def test_list_drops_entries_deleted_outside_the_app(tmp_path: Path) -> None:
    runner = CliRunner()
    root = _journal(tmp_path)
    env = _env_with_home(tmp_path, root)

    first = runner.invoke(cli, ["list", "--json"], env=env)
    assert first.exit_code == 0, first.output
    assert json.loads(first.output)["total"] == 2

    shutil.rmtree(root / "2024-01-01-first")

    result = runner.invoke(cli, ["list", "--json"], env=env)
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["source"] == "cache"
    assert payload["total"] == 1
    assert [entry["title"] for entry in payload["entries"]] == ["Second Day"]

    status = runner.invoke(cli, ["status", "--json"], env=env)
    assert json.loads(status.output)["entries"] == 1


def test_search_skips_entries_deleted_outside_the_app(tmp_path: Path) -> None:
    runner = CliRunner()
    root = _journal(tmp_path)
    env = _env_with_home(tmp_path, root)
    assert runner.invoke(cli, ["sync"], env=env).exit_code == 0

    shutil.rmtree(root / "2024-01-01-first")
    result = runner.invoke(cli, ["search", "winter", "--json"], env=env)

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["results"] == []


def test_sync_reports_external_changes(tmp_path: Path) -> None:
    runner = CliRunner()
    root = _journal(tmp_path)
    env = _env_with_home(tmp_path, root)

    initial = runner.invoke(cli, ["sync", "--json"], env=env)
    assert initial.exit_code == 0, initial.output
    assert json.loads(initial.output)["mode"] == "index"

    _write_entry(root, "2024-01-03-third", "Third Day", mtime=1_704_240_000)
    _write_entry(root, "2024-01-01-first", "First Day Revised", mtime=1_704_300_000)

    result = runner.invoke(cli, ["sync", "--json"], env=env)
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload == {
        "mode": "reconcile",
        "added": 1,
        "modified": 1,
        "deleted": 0,
        "journal": "default",
    }


def test_status_and_rebuild(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    empty = runner.invoke(cli, ["status", "--json"], env=env)
    assert empty.exit_code == 0, empty.output
    assert json.loads(empty.output)["entries"] == 0

    rebuilt = runner.invoke(cli, ["rebuild", "--json"], env=env)
    assert rebuilt.exit_code == 0, rebuilt.output
    assert json.loads(rebuilt.output)["indexed"] == 2

    status = runner.invoke(cli, ["status", "--json"], env=env)
    payload = json.loads(status.output)
    assert payload["entries"] == 2
    assert payload["entry_count"] == 2
    assert payload["folder"] == str(tmp_path / "journal")
    assert payload["last_sync"] is not None
    assert payload["store"].endswith("lifespeed-metadata.sqlite3")


def test_search_ranks_title_matches(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    result = runner.invoke(cli, ["search", "winter", "--json"], env=env)

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert [hit["title"] for hit in payload["results"]] == ["First Day"]
    assert payload["results"][0]["fields"] == ["tags"]

    missing = runner.invoke(cli, ["search", "summer"], env=env)
    assert missing.exit_code == 0
    assert "No entries match" in missing.output


def test_unknown_journal_reports_json_error(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    result = runner.invoke(cli, ["list", "--journal", "missing", "--json"], env=env)

    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "journal_error"


def test_watch_once_reconciles_and_exits(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    result = runner.invoke(cli, ["watch", "--once"], env=env)

    assert result.exit_code == 0, result.output
    assert "Loaded 2 entries" in result.output
    assert "Watch summary for default: added=0, modified=0, deleted=0." in result.output


def test_watch_rejects_non_positive_debounce(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))

    result = runner.invoke(cli, ["watch", "--debounce", "0"], env=env)

    assert result.exit_code != 0
    assert "--debounce must be greater than zero" in result.output


def test_journal_add_use_and_remove(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path, _journal(tmp_path))
    work_dir = tmp_path / "work"
    _write_entry(work_dir, "2024-02-01-standup", "Standup", mtime=1_706_745_600)

    added = runner.invoke(cli, ["journal", "add", "Work Notes", str(work_dir), "--use"], env=env)
    assert added.exit_code == 0, added.output
    assert "work-notes" in added.output

    listed = runner.invoke(cli, ["journal", "list", "--json"], env=env)
    journals = json.loads(listed.output)
    assert journals["active_journal"] == "work-notes"
    assert [item["id"] for item in journals["journals"]] == ["default", "work-notes"]

    entries = runner.invoke(cli, ["list", "--json"], env=env)
    payload = json.loads(entries.output)
    assert payload["journal"] == "work-notes"
    assert [entry["title"] for entry in payload["entries"]] == ["Standup"]

    blocked = runner.invoke(cli, ["journal", "remove", "work-notes"], env=env)
    assert blocked.exit_code != 0

    assert runner.invoke(cli, ["journal", "use", "default"], env=env).exit_code == 0
    removed = runner.invoke(cli, ["journal", "remove", "work-notes"], env=env)
    assert removed.exit_code == 0, removed.output
    assert work_dir.exists()

    renamed = runner.invoke(cli, ["journal", "rename", "default", "Personal"], env=env)
    assert renamed.exit_code == 0, renamed.output
    manager = ConfigManager(config_path=tmp_path / "home" / ".lifespeed" / "config.yaml")
    config = manager.load(include_env=False)
    assert [(item.id, item.name) for item in config.journals] == [("default", "Personal")]


def test_config_view_creates_and_displays_config(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "view"], env=env)

    assert result.exit_code == 0
    assert "cache:" in result.output
    assert (tmp_path / "home" / ".lifespeed" / "config.yaml").exists()


def test_config_set_updates_value_and_writes_diff(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli, ["config", "set", "cache.sync_batch_size", "--value", "25"], env=env
    )

    assert result.exit_code == 0, result.output
    assert "Updated cache.sync_batch_size" in result.output

    manager = ConfigManager(config_path=tmp_path / "home" / ".lifespeed" / "config.yaml")
    config = manager.load(include_env=False)
    assert config.cache.sync_batch_size == 25

    again = runner.invoke(cli, ["config", "set", "cache.sync_batch_size", "--value", "25"], env=env)
    assert "No changes applied" in again.output


def test_config_set_rejects_invalid_value(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "set", "cache.sync_batch_size", "--value", "0"], env=env)

    assert result.exit_code != 0
    assert "Invalid configuration values" in result.output
