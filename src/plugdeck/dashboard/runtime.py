"""Serial update loop.

Events are queued and applied to the state one at a time; each pending
action returned by ``update`` runs as its own task and its result is queued
as the next event. The state is therefore only ever touched from the loop
itself, never from inside an action.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from plugdeck.dashboard.events import PendingAction
from plugdeck.dashboard.state import DashboardState, initial_actions, update

logger = logging.getLogger(__name__)


class DashboardRuntime:
    def __init__(
        self,
        state: DashboardState,
        on_change: Callable[[DashboardState], None] | None = None,
    ) -> None:
        self.state = state
        self.on_change = on_change
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, event: Any) -> None:
        self._queue.put_nowait(event)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def run(self) -> DashboardState:
        self._schedule(initial_actions(self.state))
        self._notify()
        try:
            while not self.state.quitting:
                event = await self._queue.get()
                actions = update(self.state, event)
                self._notify()
                if self.state.quitting:
                    break
                self._schedule(actions)
        finally:
            await self.shutdown()
        return self.state

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        await self.state.services.aclose()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    def _schedule(self, actions: list[PendingAction]) -> None:
        for action in actions:
            task = asyncio.create_task(self._run_action(action))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_action(self, action: PendingAction) -> None:
        try:
            result = action()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Action %r failed", action)
            return
        if result is not None:
            self.dispatch(result)
