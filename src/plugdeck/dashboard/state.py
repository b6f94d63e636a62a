"""Dashboard state machine.

One ``DashboardState`` value is threaded through ``update(state, event)``,
the only place state changes. Each call handles exactly one event, bumps
``state.version`` and returns the follow-up actions for the runtime to run.
No I/O happens in here: network, filesystem and module loading are all
pending actions whose results come back later as events.

Panels: CATALOG (0) and LOG (1) always; EMBEDDED (2) only while a guest
session is active. Catalog keys are ignored while the catalog loads, and
navigation/selection keys while a batch is processing.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any

from plugdeck.dashboard.batch import dispatch_batch, ledger_action, plan_batch
from plugdeck.dashboard.catalog import (
    CatalogEntry,
    CatalogModel,
    LocalInventory,
    SelectionSet,
)
from plugdeck.dashboard.events import (
    BatchScheduled,
    CatalogLoaded,
    KeyPressed,
    LedgerSynced,
    OperationComplete,
    OperationKind,
    PendingAction,
    Resized,
    SessionFailed,
    SessionLoaded,
    StatusExpired,
    Tick,
)
from plugdeck.dashboard.host import EmbeddedHost
from plugdeck.dashboard.services import Services
from plugdeck.dashboard.sources import load_catalogs

logger = logging.getLogger(__name__)

SPINNER_FRAMES = ("|", "/", "-", "\\")
NO_REPOSITORY = "no repository found"


class Panel(IntEnum):
    CATALOG = 0
    LOG = 1
    EMBEDDED = 2


@dataclass
class DashboardState:
    services: Services
    catalog: CatalogModel = field(default_factory=CatalogModel)
    inventory: LocalInventory = field(default_factory=LocalInventory)
    selection: SelectionSet = field(default_factory=SelectionSet)
    host: EmbeddedHost | None = None
    focus: Panel = Panel.CATALOG
    cursor: int = 0
    loading: bool = True
    processing: bool = False
    load_error: str | None = None
    source_count: int = 0
    failed_sources: int = 0
    logs: list[str] = field(default_factory=list)
    log_offset: int = 0
    status: str = ""
    status_generation: int = 0
    spinner_frame: int = 0
    ticking: bool = False
    width: int = 0
    height: int = 0
    quitting: bool = False
    version: int = 0

    def __post_init__(self) -> None:
        if self.host is None:
            self.host = self.services.new_host()

    @property
    def spinner(self) -> str:
        return SPINNER_FRAMES[self.spinner_frame % len(SPINNER_FRAMES)]

    @property
    def available_panels(self) -> int:
        return 3 if self.host.active else 2

    def add_log(self, message: str, level: int = logging.INFO) -> None:
        """Append a timestamped activity line and mirror it to the logger."""
        self.logs.append(f"[{datetime.now():%H:%M:%S}] {message}")
        overflow = len(self.logs) - self.services.log_limit
        if overflow > 0:
            del self.logs[:overflow]
        logger.log(level, message)

    def current_entry(self) -> CatalogEntry | None:
        line = self.catalog.line(self.cursor)
        if line is None or line.key is None:
            return None
        return self.catalog.entry(line.key)


# ─── Actions ────────────────────────────────────────────────────────────


def load_action(services: Services) -> PendingAction:
    async def _load() -> CatalogLoaded:
        result = await load_catalogs(
            services.get_client(),
            services.sources,
            api_base=services.api_base,
            attempts=services.fetch_retries,
        )
        names = [entry.name for repo in result.repositories for entry in repo.entries]
        present = await asyncio.to_thread(services.storage.probe_all, names)
        return CatalogLoaded(result.repositories, present, result.failures)

    return _load


def tick_action(interval: float) -> PendingAction:
    async def _tick() -> Tick:
        await asyncio.sleep(interval)
        return Tick()

    return _tick


def expire_action(ttl: float, generation: int) -> PendingAction:
    async def _expire() -> StatusExpired:
        await asyncio.sleep(ttl)
        return StatusExpired(generation)

    return _expire


def initial_actions(state: DashboardState) -> list[PendingAction]:
    state.loading = True
    state.add_log(f"Loading {len(state.services.sources)} catalog source(s)")
    return [load_action(state.services), *_ensure_tick(state)]


def _ensure_tick(state: DashboardState) -> list[PendingAction]:
    if state.ticking:
        return []
    state.ticking = True
    return [tick_action(state.services.tick_interval)]


def _set_status(state: DashboardState, message: str, *, transient: bool = True) -> list[PendingAction]:
    state.status = message
    state.status_generation += 1
    if not transient:
        return []
    return [expire_action(state.services.status_ttl, state.status_generation)]


# ─── Update ─────────────────────────────────────────────────────────────


def update(state: DashboardState, event: Any) -> list[PendingAction]:
    state.version += 1

    if isinstance(event, KeyPressed):
        return _on_key(state, event.key)
    if isinstance(event, Tick):
        return _on_tick(state)
    if isinstance(event, CatalogLoaded):
        return _on_catalog_loaded(state, event)
    if isinstance(event, OperationComplete):
        return _on_operation_complete(state, event)
    if isinstance(event, BatchScheduled):
        return _on_batch_scheduled(state, event)
    if isinstance(event, LedgerSynced):
        return _on_ledger_synced(state, event)
    if isinstance(event, StatusExpired):
        if event.generation == state.status_generation and not state.processing:
            state.status = ""
        return []
    if isinstance(event, SessionLoaded):
        return _on_session_loaded(state, event)
    if isinstance(event, SessionFailed):
        return _on_session_failed(state, event)
    if isinstance(event, Resized):
        state.width, state.height = event.width, event.height

    # Guest messages, quit signals, resizes: the guest sees them all.
    return _forward(state, event)


def _forward(state: DashboardState, event: Any) -> list[PendingAction]:
    name = state.host.plugin_name
    result = state.host.forward(event)
    if result.error:
        state.add_log(f"✗ {result.error}", logging.ERROR)
    elif result.consumed:
        state.add_log(f"⏹ {name} stopped")
    if result.consumed:
        _leave_embedded(state)
    return result.commands


def _leave_embedded(state: DashboardState) -> None:
    if state.focus is Panel.EMBEDDED:
        state.focus = Panel.CATALOG


def _stop_session(state: DashboardState, reason: str) -> None:
    session = state.host.terminate()
    if session is not None:
        state.add_log(f"⏹ {session.plugin_name} {reason}")
    _leave_embedded(state)


def _on_key(state: DashboardState, key: str) -> list[PendingAction]:
    if key == "ctrl+c":
        return _quit(state)
    if key == "tab":
        state.focus = Panel((state.focus + 1) % state.available_panels)
        return []

    if state.focus is Panel.EMBEDDED:
        if state.host.active:
            return _forward(state, KeyPressed(key))
        return []

    if key == "q":
        return _quit(state)
    if key == "s":
        if state.host.session is not None:
            _stop_session(state, "stopped")
        return []

    if state.focus is Panel.LOG:
        _scroll_log(state, key)
        return []
    return _on_catalog_key(state, key)


def _quit(state: DashboardState) -> list[PendingAction]:
    state.quitting = True
    if state.host.session is not None:
        state.host.terminate()
    return []


def _scroll_log(state: DashboardState, key: str) -> None:
    # Newest line is on top; the offset counts newer lines scrolled past.
    last = max(0, len(state.logs) - 1)
    if key in ("down", "j"):
        state.log_offset = min(last, state.log_offset + 1)
    elif key in ("up", "k"):
        state.log_offset = max(0, state.log_offset - 1)
    elif key == "home":
        state.log_offset = 0
    elif key == "end":
        state.log_offset = last


def _on_catalog_key(state: DashboardState, key: str) -> list[PendingAction]:
    if state.loading:
        return []

    line = state.catalog.line(state.cursor)
    if key == "enter" and line is not None and not line.is_header:
        return _execute(state)

    if state.processing:
        return []

    if key in ("up", "k"):
        state.cursor = state.catalog.clamp(state.cursor - 1)
    elif key in ("down", "j"):
        state.cursor = state.catalog.clamp(state.cursor + 1)
    elif key == "home":
        state.cursor = 0
    elif key == "end":
        state.cursor = state.catalog.clamp(len(state.catalog.lines))
    elif key in ("space", "enter") and line is not None:
        if line.is_header:
            state.catalog.toggle_collapse(line.repo_index)
            state.cursor = state.catalog.clamp(state.cursor)
        else:
            state.selection.toggle(line.key)
    elif key == "d":
        return _commit(state)
    elif key == "c":
        if state.selection:
            state.selection.clear()
            state.add_log("Selection cleared")
    elif key == "r":
        state.loading = True
        state.load_error = None
        state.add_log("Reloading catalogs")
        return [load_action(state.services), *_ensure_tick(state)]
    return []


def _execute(state: DashboardState) -> list[PendingAction]:
    entry = state.current_entry()
    if entry is None:
        return []
    if entry.name not in state.inventory:
        state.add_log(f"⚠ {entry.name} is not fetched", logging.WARNING)
        return []

    if state.host.session is not None:
        _stop_session(state, "replaced")
    action = state.host.start(entry.name, state.services.storage.path(entry.name))
    state.focus = Panel.EMBEDDED
    state.add_log(f"▶ Launching {entry.name}")
    return [action]


def _commit(state: DashboardState) -> list[PendingAction]:
    if not state.selection:
        return []
    plan = plan_batch(state.selection, state.catalog, state.inventory)
    if not plan:
        state.selection.clear()
        return []

    state.processing = True
    message = f"Processing {len(plan)} plugin(s)..."
    actions = _set_status(state, message, transient=False)
    state.add_log(message)
    actions.extend(dispatch_batch(state.services, plan))
    actions.extend(_ensure_tick(state))
    return actions


def _on_tick(state: DashboardState) -> list[PendingAction]:
    if state.loading or state.processing:
        state.spinner_frame = (state.spinner_frame + 1) % len(SPINNER_FRAMES)
        return [tick_action(state.services.tick_interval)]
    state.ticking = False
    return []


def _on_catalog_loaded(state: DashboardState, event: CatalogLoaded) -> list[PendingAction]:
    state.loading = False
    state.catalog.load(event.repositories)
    dropped = state.selection.purge(state.catalog)
    if dropped:
        logger.info("Dropped %d stale selection(s) after reload", dropped)
    state.inventory.refresh(state.catalog.entry_names(), event.present)
    state.cursor = state.catalog.clamp(state.cursor)
    state.source_count = event.source_count
    state.failed_sources = len(event.failures)

    for failure in event.failures:
        state.add_log(f"✗ {failure.locator}: {failure.error}", logging.ERROR)

    if state.catalog.empty:
        state.load_error = NO_REPOSITORY
        state.add_log(f"✗ Catalog load failed: {NO_REPOSITORY}", logging.ERROR)
        return []

    state.load_error = None
    loaded = len(event.repositories)
    summary = f"✓ {state.catalog.entry_count} plugin(s) loaded"
    if event.failures:
        summary += f" from {loaded} of {event.source_count} source(s)"
    state.add_log(summary)
    return []


def _on_operation_complete(state: DashboardState, event: OperationComplete) -> list[PendingAction]:
    if not event.ok:
        state.add_log(f"✗ {event.kind.value} {event.name}: {event.error}", logging.ERROR)
        return _set_status(state, f"✗ {event.name}: {event.error}")

    actions: list[PendingAction] = [ledger_action(state.services, event.name, event.kind)]
    if event.kind is OperationKind.FETCH:
        state.inventory.mark(event.name, True)
        state.add_log(f"⬇ {event.name} fetched")
        actions.extend(_set_status(state, f"✓ {event.name} fetched"))
    else:
        state.inventory.mark(event.name, False)
        state.add_log(f"🗑 {event.name} removed")
        actions.extend(_set_status(state, f"🗑 {event.name} removed"))
        if state.host.plugin_name == event.name:
            _stop_session(state, "stopped (file removed)")
    return actions


def _on_batch_scheduled(state: DashboardState, event: BatchScheduled) -> list[PendingAction]:
    state.processing = False
    state.selection.clear()
    message = f"✓ {event.count} operation(s) dispatched"
    state.add_log(message)
    return _set_status(state, message)


def _on_ledger_synced(state: DashboardState, event: LedgerSynced) -> list[PendingAction]:
    if event.error:
        state.add_log(f"⚠ alias for {event.name} not updated: {event.error}", logging.WARNING)
    return []


def _on_session_loaded(state: DashboardState, event: SessionLoaded) -> list[PendingAction]:
    name = state.host.plugin_name
    result = state.host.activate(event)
    if result is None:
        return []
    if result.error:
        state.add_log(f"✗ {result.error}", logging.ERROR)
        _leave_embedded(state)
        return []
    state.add_log(f"▶ {name} running")
    return result.commands


def _on_session_failed(state: DashboardState, event: SessionFailed) -> list[PendingAction]:
    name = state.host.plugin_name
    if state.host.fail(event):
        state.add_log(f"✗ Couldn't start {name}: {event.error}", logging.ERROR)
        _leave_embedded(state)
    return []
