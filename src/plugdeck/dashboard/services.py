"""Collaborators the dashboard's actions talk to, built once from Settings."""

from dataclasses import dataclass, field

import httpx

from plugdeck import __version__
from plugdeck.config import Settings
from plugdeck.dashboard.aliases import AliasLedger
from plugdeck.dashboard.host import EmbeddedHost, ModuleLoader, PythonFileLoader
from plugdeck.dashboard.storage import PluginStorage


@dataclass
class Services:
    storage: PluginStorage
    ledger: AliasLedger
    loader: ModuleLoader = field(default_factory=PythonFileLoader)
    sources: list[str] = field(default_factory=list)
    api_base: str = "https://api.github.com"
    fetch_retries: int = 3
    request_timeout: float = 15.0
    entry_point: str = "create_component"
    tick_interval: float = 0.1
    status_ttl: float = 3.0
    log_limit: int = 1000
    client: httpx.AsyncClient | None = None

    def get_client(self) -> httpx.AsyncClient:
        """Create the shared HTTP client on first use (inside the running loop)."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.request_timeout),
                follow_redirects=True,
                headers={"User-Agent": f"plugdeck/{__version__}"},
            )
        return self.client

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    def new_host(self) -> EmbeddedHost:
        return EmbeddedHost(self.loader, self.entry_point)


def build_services(settings: Settings) -> Services:
    return Services(
        storage=PluginStorage(settings.plugin_dir),
        ledger=AliasLedger(settings.alias_file),
        sources=list(settings.sources),
        api_base=settings.api_base,
        fetch_retries=settings.fetch_retries,
        request_timeout=settings.request_timeout,
        entry_point=settings.entry_point,
        tick_interval=settings.tick_interval,
        status_ttl=settings.status_ttl,
        log_limit=settings.log_limit,
    )
