"""Batch operations: turn the selection into concurrent fetch/remove actions.

Each selected entry becomes one independent action: *fetch* when the entry
is not in the local inventory, *remove* when it is. The actions are followed
by a terminal action reporting ``BatchScheduled``; since the runtime starts
actions in order, that event lands once every entry action has been
scheduled, while their completions keep arriving on their own.
"""

import logging
from dataclasses import dataclass

from plugdeck.dashboard.aliases import LedgerError, sync_fetched, sync_removed
from plugdeck.dashboard.catalog import (
    CatalogEntry,
    CatalogModel,
    EntryKey,
    LocalInventory,
    SelectionSet,
)
from plugdeck.dashboard.events import (
    BatchScheduled,
    LedgerSynced,
    OperationComplete,
    OperationKind,
    PendingAction,
)
from plugdeck.dashboard.services import Services
from plugdeck.dashboard.storage import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedOperation:
    key: EntryKey
    entry: CatalogEntry
    kind: OperationKind


def plan_batch(
    selection: SelectionSet, catalog: CatalogModel, inventory: LocalInventory
) -> list[PlannedOperation]:
    plan: list[PlannedOperation] = []
    for key in selection:
        entry = catalog.entry(key)
        if entry is None:
            logger.debug("Skipping stale selection %s", key)
            continue
        kind = OperationKind.REMOVE if entry.name in inventory else OperationKind.FETCH
        plan.append(PlannedOperation(key, entry, kind))
    return plan


def fetch_action(services: Services, entry: CatalogEntry) -> PendingAction:
    async def _fetch() -> OperationComplete:
        if not entry.is_file or not entry.fetch_locator:
            return OperationComplete(entry.name, OperationKind.FETCH, "cannot fetch a directory")
        try:
            await services.storage.fetch(services.get_client(), entry.fetch_locator, entry.name)
        except StorageError as e:
            logger.warning("Fetch of '%s' failed: %s", entry.name, e)
            return OperationComplete(entry.name, OperationKind.FETCH, str(e))
        except Exception as e:
            logger.exception("Unexpected error fetching '%s'", entry.name)
            return OperationComplete(entry.name, OperationKind.FETCH, str(e) or type(e).__name__)
        return OperationComplete(entry.name, OperationKind.FETCH)

    return _fetch


def remove_action(services: Services, name: str) -> PendingAction:
    async def _remove() -> OperationComplete:
        try:
            await services.storage.remove(name)
        except StorageError as e:
            logger.warning("Removal of '%s' failed: %s", name, e)
            return OperationComplete(name, OperationKind.REMOVE, str(e))
        except Exception as e:
            logger.exception("Unexpected error removing '%s'", name)
            return OperationComplete(name, OperationKind.REMOVE, str(e) or type(e).__name__)
        return OperationComplete(name, OperationKind.REMOVE)

    return _remove


def dispatch_batch(services: Services, plan: list[PlannedOperation]) -> list[PendingAction]:
    actions: list[PendingAction] = []
    for op in plan:
        if op.kind is OperationKind.FETCH:
            actions.append(fetch_action(services, op.entry))
        else:
            actions.append(remove_action(services, op.entry.name))

    count = len(plan)

    async def _scheduled() -> BatchScheduled:
        return BatchScheduled(count)

    actions.append(_scheduled)
    logger.info("Dispatching batch of %d operation(s)", count)
    return actions


def ledger_action(services: Services, name: str, kind: OperationKind) -> PendingAction:
    """Sync the alias ledger after a successful fetch or remove.

    The body never awaits, so ledger edits run atomically on the loop.
    """

    async def _sync() -> LedgerSynced:
        try:
            if kind is OperationKind.FETCH:
                sync_fetched(services.ledger, name, services.storage.path(name))
            else:
                sync_removed(services.ledger, name)
        except (LedgerError, StorageError) as e:
            return LedgerSynced(name, kind, str(e))
        return LedgerSynced(name, kind)

    return _sync
