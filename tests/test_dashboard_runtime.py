import asyncio

import httpx
import pytest

from plugdeck.dashboard.aliases import AliasLedger
from plugdeck.dashboard.events import KeyPressed
from plugdeck.dashboard.runtime import DashboardRuntime
from plugdeck.dashboard.services import Services
from plugdeck.dashboard.state import DashboardState
from plugdeck.dashboard.storage import PluginStorage

LISTING = [
    {"name": "a.sh", "type": "file", "download_url": "https://raw.test/a.sh"},
    {"name": "b.sh", "type": "file", "download_url": "https://raw.test/b.sh"},
]


async def _catalog_and_downloads(request: httpx.Request) -> httpx.Response:
    if request.url.host == "api.test":
        return httpx.Response(200, json=LISTING)
    return httpx.Response(200, content=b"#!/bin/sh\necho hi\n")


def _runtime(tmp_path, handler=_catalog_and_downloads) -> DashboardRuntime:
    services = Services(
        storage=PluginStorage(tmp_path / "plugins"),
        ledger=AliasLedger(tmp_path / "aliases.sh"),
        sources=["o/r"],
        api_base="http://api.test",
        fetch_retries=1,
        tick_interval=0.01,
        status_ttl=0.01,
    )
    services.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DashboardRuntime(DashboardState(services))


async def _until(runtime: DashboardRuntime, predicate, timeout: float = 5.0) -> None:
    changed = asyncio.Event()
    runtime.on_change = lambda state: changed.set()
    async with asyncio.timeout(timeout):
        while not predicate(runtime.state):
            changed.clear()
            await changed.wait()


@pytest.mark.asyncio
async def test_load_fetch_and_quit(tmp_path):
    runtime = _runtime(tmp_path)
    runner = asyncio.create_task(runtime.run())

    await _until(runtime, lambda s: not s.loading)
    assert runtime.state.catalog.entry_names() == ["a.sh", "b.sh"]

    for key in ("down", "space", "d"):
        runtime.dispatch(KeyPressed(key))
    await _until(
        runtime,
        lambda s: not s.processing and "a.sh" in s.inventory and s.services.ledger.lines(),
    )
    await _until(runtime, lambda s: s.status == "" and not s.ticking)

    runtime.dispatch(KeyPressed("ctrl+c"))
    state = await asyncio.wait_for(runner, 5)

    assert state.quitting
    assert state.inventory.as_dict() == {"a.sh": True, "b.sh": False}
    assert state.services.ledger.lines() == [f"alias a='{tmp_path / 'plugins' / 'a.sh'}'"]
    assert state.services.client is None
    assert runtime.pending == 0


@pytest.mark.asyncio
async def test_quit_cancels_outstanding_actions(tmp_path):
    started = asyncio.Event()

    async def hang(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(3600)
        return httpx.Response(200, json=[])

    runtime = _runtime(tmp_path, hang)
    runner = asyncio.create_task(runtime.run())
    await asyncio.wait_for(started.wait(), 5)
    assert runtime.state.loading

    runtime.dispatch(KeyPressed("ctrl+c"))
    await asyncio.wait_for(runner, 5)

    assert runtime.pending == 0


@pytest.mark.asyncio
async def test_failing_action_is_dropped(tmp_path, caplog):
    runtime = _runtime(tmp_path)
    runner = asyncio.create_task(runtime.run())
    await _until(runtime, lambda s: not s.loading)

    def explode():
        raise RuntimeError("boom")

    runtime._schedule([explode])
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    runtime.dispatch(KeyPressed("q"))
    await asyncio.wait_for(runner, 5)

    assert "boom" in caplog.text
