"""Plugin storage: the directory fetched plugins live in.

A fetch streams into a hidden ``.<name>.part`` file and is moved into
place with ``os.replace`` only once complete, so ``probe`` never reports a
partially written plugin.
"""

import asyncio
import logging
import os
import stat
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

_PART_PREFIX = "."
_PART_SUFFIX = ".part"


class StorageError(Exception):
    """A storage operation failed or was refused."""


def _discard(part: Path) -> None:
    # exists() is False when a parent is not a directory; unlink would raise.
    if part.exists():
        part.unlink()


class PluginStorage:
    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def path(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
            raise StorageError(f"Invalid plugin name '{name}'")
        return self.root / name

    def probe(self, name: str) -> bool:
        try:
            return self.path(name).is_file()
        except StorageError:
            return False

    def probe_all(self, names: list[str]) -> frozenset[str]:
        return frozenset(name for name in names if self.probe(name))

    def mark_executable(self, name: str) -> None:
        target = self.path(name)
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    async def fetch(self, client: httpx.AsyncClient, locator: str, name: str) -> Path:
        """Download ``locator`` into storage as ``name`` and make it executable."""
        dest = self.path(name)
        if not locator:
            raise StorageError(f"'{name}' has no download address")

        part = self.root / f"{_PART_PREFIX}{name}{_PART_SUFFIX}"
        try:
            await asyncio.to_thread(self.ensure_root)
            async with client.stream("GET", locator) as resp:
                if resp.status_code != 200:
                    raise StorageError(f"HTTP {resp.status_code} while fetching '{name}'")
                out = await asyncio.to_thread(part.open, "wb")
                try:
                    async for chunk in resp.aiter_bytes():
                        await asyncio.to_thread(out.write, chunk)
                finally:
                    await asyncio.to_thread(out.close)
            await asyncio.to_thread(self._install, part, name)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise StorageError(f"Couldn't download '{name}': {e}") from e
        except OSError as e:
            raise StorageError(f"Couldn't write '{name}': {e}") from e
        finally:
            await asyncio.to_thread(_discard, part)

        logger.info("Fetched '%s' into %s", name, dest)
        return dest

    def _install(self, part: Path, name: str) -> None:
        os.replace(part, self.path(name))
        self.mark_executable(name)

    async def remove(self, name: str) -> None:
        target = self.path(name)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError as e:
            raise StorageError(f"'{name}' is not in {self.root}") from e
        except OSError as e:
            raise StorageError(f"Couldn't remove '{name}': {e}") from e
        logger.info("Removed '%s' from %s", name, self.root)
