"""Alias ledger: one shell alias per fetched plugin.

The ledger is a small text file meant to be sourced from a shell profile:

    alias weather='/home/me/.plugdeck/plugins/weather.py'

Lines are appended when a plugin is fetched and filtered out when it is
removed. Both operations are idempotent. The ledger is best-effort: a
failure here never undoes the fetch or remove that triggered it.
"""

import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """The alias ledger could not be read or written."""


def alias_name_for(plugin_name: str) -> str:
    """Derive the shell alias for a plugin file name."""
    stem = Path(plugin_name).stem or plugin_name
    alias = re.sub(r"[^0-9a-z_-]+", "-", stem.lower()).strip("-")
    return alias or "plugin"


def alias_prefix(plugin_name: str) -> str:
    return f"alias {alias_name_for(plugin_name)}="


def alias_line(plugin_name: str, plugin_path: Path) -> str:
    quoted = str(plugin_path).replace("'", "'\\''")
    return f"{alias_prefix(plugin_name)}'{quoted}'"


class AliasLedger:
    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def lines(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            return self.path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise LedgerError(f"Couldn't read {self.path}: {e}") from e

    def _write(self, lines: list[str]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp.exists():
                tmp.unlink()
            raise LedgerError(f"Couldn't write {self.path}: {e}") from e

    def append(self, line: str, *, replace_prefix: str | None = None) -> bool:
        """Add ``line`` unless present; return whether the file changed.

        With ``replace_prefix``, other lines starting with it are dropped so
        a plugin never has two aliases.
        """
        current = self.lines()
        stale = {
            existing
            for existing in current
            if existing != line and replace_prefix and existing.startswith(replace_prefix)
        }
        if current.count(line) == 1 and not stale:
            return False

        kept: list[str] = []
        seen = False
        for existing in current:
            if existing in stale:
                continue
            if existing == line:
                if seen:
                    continue
                seen = True
            kept.append(existing)
        if not seen:
            kept.append(line)
        self._write(kept)
        return True

    def remove_lines_with_prefix(self, prefix: str) -> int:
        """Drop every line starting with ``prefix``; return how many went."""
        current = self.lines()
        kept = [line for line in current if not line.startswith(prefix)]
        removed = len(current) - len(kept)
        if removed:
            self._write(kept)
        return removed


def sync_fetched(ledger: AliasLedger, plugin_name: str, plugin_path: Path) -> bool:
    prefix = alias_prefix(plugin_name)
    changed = ledger.append(alias_line(plugin_name, plugin_path), replace_prefix=prefix)
    if changed:
        logger.info("Added alias for '%s' to %s", plugin_name, ledger.path)
    return changed


def sync_removed(ledger: AliasLedger, plugin_name: str) -> bool:
    removed = ledger.remove_lines_with_prefix(alias_prefix(plugin_name))
    if removed:
        logger.info("Removed alias for '%s' from %s", plugin_name, ledger.path)
    return bool(removed)
