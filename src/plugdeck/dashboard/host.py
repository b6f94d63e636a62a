"""Embedded host: runs a fetched plugin's interactive component in a panel.

A plugin file is plain Python source (it is also an executable script, so
the suffix may be missing). It must expose a zero-argument entry point,
``create_component`` by default, returning an object with::

    init() -> command
    update(event) -> command
    view() -> str

and optionally ``bind_session(session_id)``. A *command* is ``None``, a
zero-argument callable (sync or async) producing one event, or a list of
those. The host forwards events to the guest and passes its commands
through untouched; the only thing it intercepts is a ``QuitSignal``
addressed to the current session.

Session lifecycle: LOADING -> ACTIVE -> TERMINATED. Only one session exists
at a time; load results carrying an outdated token are dropped.
"""

import asyncio
import importlib.machinery
import importlib.util
import inspect
import logging
import sys
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Protocol, runtime_checkable

from plugdeck.dashboard.events import (
    PendingAction,
    QuitSignal,
    SessionFailed,
    SessionLoaded,
)

logger = logging.getLogger(__name__)


class HostError(Exception):
    """A guest component could not be loaded or constructed."""


class ModuleLoadError(HostError):
    pass


class EntryPointError(HostError):
    pass


@runtime_checkable
class InteractiveComponent(Protocol):
    def init(self) -> Any: ...

    def update(self, event: Any) -> Any: ...

    def view(self) -> str: ...


class ModuleLoader(Protocol):
    def load(self, path: Path) -> Any: ...

    def resolve_entry_point(self, handle: Any, symbol: str) -> Callable[[], Any]: ...


class PythonFileLoader:
    """Load a plugin file as a Python module with ``importlib``."""

    def load(self, path: Path) -> ModuleType:
        module_name = f"plugdeck_guest_{uuid.uuid4().hex}"
        loader = importlib.machinery.SourceFileLoader(module_name, str(path))
        spec = importlib.util.spec_from_loader(module_name, loader)
        if spec is None:
            raise ModuleLoadError(f"Cannot build a module spec for {path}")
        module = importlib.util.module_from_spec(spec)
        # Registered only while executing; each session gets a fresh copy.
        sys.modules[module_name] = module
        try:
            loader.exec_module(module)
        except SystemExit as e:
            raise ModuleLoadError(f"{path.name} exited while loading (code {e.code})") from e
        except Exception as e:
            raise ModuleLoadError(f"Failed to load {path.name}: {e}") from e
        finally:
            sys.modules.pop(module_name, None)
        return module

    def resolve_entry_point(self, handle: ModuleType, symbol: str) -> Callable[[], Any]:
        factory = getattr(handle, symbol, None)
        if factory is None:
            raise EntryPointError(f"Entry point '{symbol}' not found")
        return factory


def check_entry_point(factory: Any, symbol: str) -> None:
    """Require a callable that can be invoked with no arguments."""
    if not callable(factory):
        raise EntryPointError(f"Entry point '{symbol}' is not callable")
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        return
    required = [
        p
        for p in signature.parameters.values()
        if p.default is p.empty and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]
    if required:
        names = ", ".join(p.name for p in required)
        raise EntryPointError(f"Entry point '{symbol}' must take no arguments (wants {names})")


def build_component(loader: ModuleLoader, path: Path, symbol: str) -> InteractiveComponent:
    handle = loader.load(path)
    factory = loader.resolve_entry_point(handle, symbol)
    check_entry_point(factory, symbol)
    try:
        component = factory()
    except (Exception, SystemExit) as e:
        raise EntryPointError(f"Entry point '{symbol}' raised: {e}") from e
    if not isinstance(component, InteractiveComponent):
        raise EntryPointError(
            f"Entry point '{symbol}' returned {type(component).__name__}, "
            "which lacks init/update/view"
        )
    return component


def normalize_commands(command: Any) -> list[PendingAction]:
    if command is None:
        return []
    if isinstance(command, (list, tuple)):
        return [c for c in command if c is not None]
    return [command]


def quit_command(session_id: str | None = None) -> PendingAction:
    """Command a guest returns to ask the host to end its session."""

    def _quit() -> QuitSignal:
        return QuitSignal(session_id)

    return _quit


class SessionState(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    TERMINATED = "terminated"


@dataclass
class EmbeddedSession:
    plugin_name: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    session_id: str | None = None
    guest: InteractiveComponent | None = None
    state: SessionState = SessionState.LOADING

    def accepts(self, signal: QuitSignal) -> bool:
        """Unset session id accepts any signal; otherwise ids must match."""
        if self.session_id is None:
            return True
        return signal.session_id == self.session_id


@dataclass
class ForwardResult:
    consumed: bool = False
    commands: list[PendingAction] = field(default_factory=list)
    error: str | None = None


class EmbeddedHost:
    def __init__(self, loader: ModuleLoader | None = None, entry_point: str = "create_component"):
        self.loader = loader or PythonFileLoader()
        self.entry_point = entry_point
        self.session: EmbeddedSession | None = None

    @property
    def active(self) -> bool:
        return self.session is not None and self.session.state is SessionState.ACTIVE

    @property
    def loading(self) -> bool:
        return self.session is not None and self.session.state is SessionState.LOADING

    @property
    def plugin_name(self) -> str | None:
        return self.session.plugin_name if self.session else None

    def start(self, plugin_name: str, path: Path) -> PendingAction:
        """Open a LOADING session and return the action that builds the guest."""
        session = EmbeddedSession(plugin_name)
        self.session = session
        loader, symbol, token = self.loader, self.entry_point, session.token

        async def _load() -> SessionLoaded | SessionFailed:
            try:
                component = await asyncio.to_thread(build_component, loader, path, symbol)
            except HostError as e:
                return SessionFailed(token, str(e))
            return SessionLoaded(token, component)

        logger.info("Loading embedded session for '%s' from %s", plugin_name, path)
        return _load

    def activate(self, loaded: SessionLoaded) -> ForwardResult | None:
        """Move the matching LOADING session to ACTIVE; ``None`` if stale."""
        session = self.session
        if session is None or session.token != loaded.token or session.state is not SessionState.LOADING:
            logger.debug("Dropping stale session load %s", loaded.token)
            return None

        guest = loaded.component
        session.guest = guest
        bind = getattr(guest, "bind_session", None)
        try:
            if callable(bind):
                session.session_id = uuid.uuid4().hex
                bind(session.session_id)
            command = guest.init()
        except (Exception, SystemExit) as e:
            logger.exception("Guest '%s' failed to initialise", session.plugin_name)
            self.terminate()
            return ForwardResult(consumed=True, error=f"{session.plugin_name} failed to start: {e}")

        session.state = SessionState.ACTIVE
        return ForwardResult(commands=normalize_commands(command))

    def fail(self, failed: SessionFailed) -> bool:
        """Drop the LOADING session a failure belongs to; False if stale."""
        if self.session is None or self.session.token != failed.token:
            return False
        self.terminate()
        return True

    def forward(self, event: Any) -> ForwardResult:
        """Hand ``event`` to the active guest, then check for its quit signal."""
        session = self.session
        if session is None or session.state is not SessionState.ACTIVE or session.guest is None:
            return ForwardResult()

        try:
            command = session.guest.update(event)
        except (Exception, SystemExit) as e:
            logger.exception("Guest '%s' raised while handling %r", session.plugin_name, event)
            self.terminate()
            return ForwardResult(consumed=True, error=f"{session.plugin_name} crashed: {e}")

        if isinstance(event, QuitSignal):
            if session.accepts(event):
                logger.info("Guest '%s' asked to stop", session.plugin_name)
                self.terminate()
                return ForwardResult(consumed=True)
            logger.debug(
                "Ignoring quit signal for session %s (active %s)",
                event.session_id,
                session.session_id,
            )

        return ForwardResult(commands=normalize_commands(command))

    def view(self) -> str:
        session = self.session
        if session is None or session.guest is None or session.state is not SessionState.ACTIVE:
            return ""
        try:
            return str(session.guest.view())
        except Exception as e:
            logger.exception("Guest '%s' failed to render", session.plugin_name)
            return f"view error: {e}"

    def terminate(self) -> EmbeddedSession | None:
        session, self.session = self.session, None
        if session is not None:
            session.state = SessionState.TERMINATED
            logger.info("Embedded session for '%s' terminated", session.plugin_name)
        return session
