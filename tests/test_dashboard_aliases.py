from pathlib import Path

import pytest

from plugdeck.dashboard.aliases import (
    AliasLedger,
    LedgerError,
    alias_line,
    alias_name_for,
    sync_fetched,
    sync_removed,
)


def test_alias_name_is_derived_from_file_stem():
    assert alias_name_for("Weather.py") == "weather"
    assert alias_name_for("my tool.sh") == "my-tool"
    assert alias_name_for("plain") == "plain"
    assert alias_name_for("+++.py") == "plugin"


def test_alias_line_quotes_path():
    line = alias_line("it's.py", Path("/p/it's.py"))
    assert line == "alias it-s='/p/it'\\''s.py'"


def test_append_is_idempotent(tmp_path):
    ledger = AliasLedger(tmp_path / "aliases.sh")

    assert ledger.append("alias a='/p/a'") is True
    assert ledger.append("alias a='/p/a'") is False
    assert ledger.lines() == ["alias a='/p/a'"]


def test_append_replaces_stale_line_for_same_alias(tmp_path):
    ledger = AliasLedger(tmp_path / "aliases.sh")
    ledger.append("alias a='/old/a'")
    ledger.append("alias b='/p/b'")

    assert ledger.append("alias a='/new/a'", replace_prefix="alias a=") is True
    assert ledger.lines() == ["alias b='/p/b'", "alias a='/new/a'"]


def test_remove_missing_prefix_is_noop(tmp_path):
    ledger = AliasLedger(tmp_path / "aliases.sh")
    assert ledger.remove_lines_with_prefix("alias nope=") == 0
    assert not ledger.path.exists()


def test_fetch_then_remove_restores_ledger(tmp_path):
    ledger = AliasLedger(tmp_path / "aliases.sh")
    ledger.append("# managed by plugdeck")
    before = ledger.lines()

    assert sync_fetched(ledger, "a.py", tmp_path / "plugins" / "a.py") is True
    assert sync_fetched(ledger, "a.py", tmp_path / "plugins" / "a.py") is False
    assert sum(line.startswith("alias a=") for line in ledger.lines()) == 1

    assert sync_removed(ledger, "a.py") is True
    assert ledger.lines() == before


def test_unwritable_ledger_raises_ledger_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    ledger = AliasLedger(blocker / "aliases.sh")

    with pytest.raises(LedgerError):
        ledger.append("alias a='/p/a'")
