"""Remote catalog sources: list the fetchable entries of each configured source.

A locator is either a GitHub-style ``owner/repo[/path]`` (resolved against
the contents API) or a full ``http(s)://`` URL that returns the same JSON
listing: an array of ``{"name", "type", "download_url"}`` objects.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from plugdeck.dashboard.catalog import CatalogEntry, EntryKind, Repository
from plugdeck.dashboard.events import SourceFailure

logger = logging.getLogger(__name__)

_KIND_BY_TYPE = {"file": EntryKind.FILE, "dir": EntryKind.DIRECTORY}


class CatalogError(Exception):
    """A catalog source could not be reached or returned a bad listing."""


@dataclass
class CatalogResult:
    repositories: list[Repository] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.repositories) and bool(self.failures)


def listing_url(locator: str, api_base: str = "https://api.github.com") -> str:
    """Turn a locator into the URL that returns its JSON listing."""
    locator = locator.strip()
    if locator.startswith(("http://", "https://")):
        return locator
    parts = [p for p in locator.strip("/").split("/") if p]
    if len(parts) < 2:
        raise CatalogError(
            f"Invalid catalog source '{locator}'. Use owner/repo or owner/repo/path."
        )
    owner, repo, path = parts[0], parts[1], "/".join(parts[2:])
    return f"{api_base.rstrip('/')}/repos/{owner}/{repo}/contents/{path}".rstrip("/")


def parse_listing(payload: object, locator: str) -> list[CatalogEntry]:
    if not isinstance(payload, list):
        raise CatalogError(f"Catalog '{locator}' did not return a file listing")

    entries: list[CatalogEntry] = []
    for item in payload:
        if not isinstance(item, dict) or not item.get("name"):
            raise CatalogError(f"Catalog '{locator}' returned a malformed entry")
        kind = _KIND_BY_TYPE.get(str(item.get("type", "file")), EntryKind.FILE)
        download_url = item.get("download_url") or ""
        entries.append(
            CatalogEntry(
                name=str(item["name"]),
                kind=kind,
                fetch_locator=str(download_url) if kind is EntryKind.FILE else "",
            )
        )
    return entries


async def fetch_listing(
    client: httpx.AsyncClient,
    locator: str,
    *,
    api_base: str = "https://api.github.com",
    attempts: int = 3,
) -> list[CatalogEntry]:
    """Fetch and decode one source's listing.

    Transport errors are retried with exponential backoff; HTTP error
    statuses and malformed payloads fail immediately.
    """
    url = listing_url(locator, api_base)

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    try:
        resp = await retrying(client.get, url, headers={"Accept": "application/json"})
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise CatalogError(f"Couldn't reach '{locator}': {e}") from e

    if resp.status_code != 200:
        raise CatalogError(f"Catalog '{locator}' answered HTTP {resp.status_code}")
    try:
        payload = resp.json()
    except ValueError as e:
        raise CatalogError(f"Catalog '{locator}' returned invalid JSON") from e

    return parse_listing(payload, locator)


async def load_catalogs(
    client: httpx.AsyncClient,
    locators: list[str],
    *,
    api_base: str = "https://api.github.com",
    attempts: int = 3,
) -> CatalogResult:
    """Load every source concurrently; one bad source never blocks the rest."""
    results = await asyncio.gather(
        *(fetch_listing(client, loc, api_base=api_base, attempts=attempts) for loc in locators),
        return_exceptions=True,
    )

    result = CatalogResult()
    for locator, outcome in zip(locators, results):
        if isinstance(outcome, CatalogError):
            logger.warning("Catalog source failed: %s", outcome)
            result.failures.append(SourceFailure(locator, str(outcome)))
        elif isinstance(outcome, Exception):
            logger.error("Catalog source %s crashed", locator, exc_info=outcome)
            result.failures.append(
                SourceFailure(locator, str(outcome) or type(outcome).__name__)
            )
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.repositories.append(Repository(name=locator, locator=locator, entries=outcome))

    logger.info(
        "Loaded %d of %d catalog source(s)", len(result.repositories), len(locators)
    )
    return result
