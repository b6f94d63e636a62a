"""Catalog model: repositories, their entries, and the flattened display lines.

Also holds the two small sets the state machine keeps next to the catalog:
the local inventory (which entry names exist in plugin storage) and the
operator's selection, keyed by ``(repo_index, entry_index)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

EntryKey = tuple[int, int]


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    kind: EntryKind = EntryKind.FILE
    fetch_locator: str = ""

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE


@dataclass
class Repository:
    name: str
    locator: str
    entries: list[CatalogEntry] = field(default_factory=list)
    collapsed: bool = False


@dataclass(frozen=True)
class DisplayLine:
    """One rendered row: a repository header, or one of its entries."""

    repo_index: int
    entry_index: int | None = None

    @property
    def is_header(self) -> bool:
        return self.entry_index is None

    @property
    def key(self) -> EntryKey | None:
        if self.entry_index is None:
            return None
        return (self.repo_index, self.entry_index)


def project(repositories: list[Repository]) -> list[DisplayLine]:
    """Flatten repositories into display lines, skipping collapsed entries."""
    lines: list[DisplayLine] = []
    for repo_index, repo in enumerate(repositories):
        lines.append(DisplayLine(repo_index))
        if repo.collapsed:
            continue
        lines.extend(DisplayLine(repo_index, i) for i in range(len(repo.entries)))
    return lines


class CatalogModel:
    def __init__(self, repositories: list[Repository] | None = None) -> None:
        self.repositories: list[Repository] = []
        self.lines: list[DisplayLine] = []
        self.load(repositories or [])

    def load(self, repositories: list[Repository]) -> None:
        self.repositories = list(repositories)
        self.lines = project(self.repositories)

    def toggle_collapse(self, repo_index: int) -> None:
        repo = self.repositories[repo_index]
        repo.collapsed = not repo.collapsed
        self.lines = project(self.repositories)

    def clamp(self, cursor: int) -> int:
        """Clamp a cursor position to the current display lines."""
        if not self.lines:
            return 0
        return max(0, min(cursor, len(self.lines) - 1))

    def line(self, index: int) -> DisplayLine | None:
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None

    def entry(self, key: EntryKey) -> CatalogEntry | None:
        repo_index, entry_index = key
        if not 0 <= repo_index < len(self.repositories):
            return None
        entries = self.repositories[repo_index].entries
        if not 0 <= entry_index < len(entries):
            return None
        return entries[entry_index]

    def is_valid(self, key: EntryKey) -> bool:
        return self.entry(key) is not None

    def entry_names(self) -> list[str]:
        return [entry.name for repo in self.repositories for entry in repo.entries]

    @property
    def entry_count(self) -> int:
        return sum(len(repo.entries) for repo in self.repositories)

    @property
    def empty(self) -> bool:
        return not self.repositories


class LocalInventory:
    """Cached view of which entry names are present in plugin storage."""

    def __init__(self, present: Iterable[str] = ()) -> None:
        self._present: dict[str, bool] = {name: True for name in present}

    def refresh(self, names: Iterable[str], present: Iterable[str]) -> None:
        found = set(present)
        self._present = {name: name in found for name in names}

    def mark(self, name: str, present: bool) -> None:
        self._present[name] = present

    def __contains__(self, name: object) -> bool:
        return self._present.get(name, False)  # type: ignore[arg-type]

    def present(self) -> set[str]:
        return {name for name, here in self._present.items() if here}

    def as_dict(self) -> dict[str, bool]:
        return dict(self._present)


class SelectionSet:
    def __init__(self, keys: Iterable[EntryKey] = ()) -> None:
        self._keys: set[EntryKey] = set(keys)

    def toggle(self, key: EntryKey) -> bool:
        """Flip membership; return whether the key is now selected."""
        if key in self._keys:
            self._keys.discard(key)
            return False
        self._keys.add(key)
        return True

    def clear(self) -> None:
        self._keys.clear()

    def purge(self, catalog: CatalogModel) -> int:
        """Drop keys that no longer resolve; return how many were dropped."""
        stale = {key for key in self._keys if not catalog.is_valid(key)}
        self._keys -= stale
        return len(stale)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[EntryKey]:
        return iter(sorted(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)
