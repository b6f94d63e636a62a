"""Events delivered to the dashboard's update loop.

Every piece of asynchronous work is a *pending action*: a zero-argument
callable (plain or async) that produces at most one event. The runtime runs
actions off the update step and feeds their results back, one at a time,
into ``state.update``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from plugdeck.dashboard.catalog import Repository

PendingAction = Callable[[], Union[Awaitable[Any], Any]]


class OperationKind(str, Enum):
    FETCH = "fetch"
    REMOVE = "remove"


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class SourceFailure:
    locator: str
    error: str


@dataclass(frozen=True)
class CatalogLoaded:
    repositories: list[Repository]
    present: frozenset[str] = frozenset()
    failures: list[SourceFailure] = field(default_factory=list)

    @property
    def source_count(self) -> int:
        return len(self.repositories) + len(self.failures)


@dataclass(frozen=True)
class OperationComplete:
    name: str
    kind: OperationKind
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchScheduled:
    count: int


@dataclass(frozen=True)
class LedgerSynced:
    name: str
    kind: OperationKind
    error: str | None = None


@dataclass(frozen=True)
class StatusExpired:
    generation: int


@dataclass(frozen=True)
class SessionLoaded:
    token: str
    component: Any


@dataclass(frozen=True)
class SessionFailed:
    token: str
    error: str


@dataclass(frozen=True)
class QuitSignal:
    """Emitted by a guest to ask the host to tear its session down."""

    session_id: str | None = None
