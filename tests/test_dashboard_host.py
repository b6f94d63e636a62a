import shutil
from pathlib import Path

import pytest

import plugdeck.templates
from plugdeck.dashboard.events import KeyPressed, QuitSignal, SessionFailed, SessionLoaded
from plugdeck.dashboard.host import (
    EmbeddedHost,
    EntryPointError,
    ModuleLoadError,
    PythonFileLoader,
    SessionState,
    build_component,
    check_entry_point,
    quit_command,
)

COUNTER = Path(plugdeck.templates.__file__).parent / "counter.py"


class _Guest:
    """Guest without bind_session: its session keeps no identifier."""

    def __init__(self) -> None:
        self.seen = []

    def init(self):
        return None

    def update(self, event):
        self.seen.append(event)
        return "guest-command"

    def view(self) -> str:
        return f"{len(self.seen)} event(s)"


class _BoundGuest(_Guest):
    def bind_session(self, session_id: str) -> None:
        self.session_id = session_id


def _active_host(guest) -> EmbeddedHost:
    host = EmbeddedHost()
    host.start("demo.py", Path("/nowhere/demo.py"))
    assert host.activate(SessionLoaded(host.session.token, guest)) is not None
    return host


def _write(tmp_path, name: str, source: str) -> Path:
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return path


def test_loads_counter_template_without_suffix(tmp_path):
    target = tmp_path / "counter"
    shutil.copy(COUNTER, target)

    component = build_component(PythonFileLoader(), target, "create_component")

    component.init()
    component.update(KeyPressed("plus"))
    assert "1" in component.view()


def test_missing_file_is_module_load_error(tmp_path):
    with pytest.raises(ModuleLoadError):
        build_component(PythonFileLoader(), tmp_path / "gone.py", "create_component")


def test_syntax_error_is_module_load_error(tmp_path):
    path = _write(tmp_path, "broken.py", "def nope(:\n")
    with pytest.raises(ModuleLoadError, match="broken.py"):
        build_component(PythonFileLoader(), path, "create_component")


def test_exit_at_import_is_module_load_error(tmp_path):
    path = _write(tmp_path, "quitter.py", "import sys\nsys.exit(3)\n")
    with pytest.raises(ModuleLoadError, match="exited while loading"):
        build_component(PythonFileLoader(), path, "create_component")


@pytest.mark.asyncio
async def test_exit_at_import_fails_session_without_stopping_host(tmp_path):
    path = _write(tmp_path, "quitter.py", "import sys\nsys.exit(0)\n")
    host = EmbeddedHost()

    event = await host.start("quitter.py", path)()

    assert isinstance(event, SessionFailed)
    assert "quitter.py" in event.error
    assert host.fail(event) is True


def test_guest_exit_during_update_terminates_session():
    class _Exiting(_Guest):
        def update(self, event):
            raise SystemExit(1)

    host = _active_host(_Exiting())
    result = host.forward(KeyPressed("x"))

    assert result.consumed is True
    assert result.error is not None
    assert host.session is None


def test_missing_entry_point(tmp_path):
    path = _write(tmp_path, "empty.py", "VALUE = 1\n")
    with pytest.raises(EntryPointError, match="not found"):
        build_component(PythonFileLoader(), path, "create_component")


def test_entry_point_with_required_argument_is_rejected():
    def factory(size):
        return None

    with pytest.raises(EntryPointError, match="must take no arguments"):
        check_entry_point(factory, "create_component")
    check_entry_point(lambda scale=1: None, "create_component")


def test_entry_point_returning_wrong_shape(tmp_path):
    path = _write(tmp_path, "shape.py", "def create_component():\n    return 42\n")
    with pytest.raises(EntryPointError, match="lacks init/update/view"):
        build_component(PythonFileLoader(), path, "create_component")


@pytest.mark.asyncio
async def test_start_action_reports_failure_with_session_token(tmp_path):
    host = EmbeddedHost()
    action = host.start("gone.py", tmp_path / "gone.py")
    assert host.session.state is SessionState.LOADING

    event = await action()

    assert isinstance(event, SessionFailed)
    assert event.token == host.session.token
    assert host.fail(event) is True
    assert host.session is None


@pytest.mark.asyncio
async def test_start_action_builds_component(tmp_path):
    host = EmbeddedHost()
    event = await host.start("counter.py", COUNTER)()

    assert isinstance(event, SessionLoaded)
    result = host.activate(event)
    assert result is not None and result.error is None
    assert host.active
    assert host.session.session_id is not None


def test_stale_load_is_dropped():
    host = EmbeddedHost()
    host.start("a.py", Path("/x/a.py"))
    old_token = host.session.token
    host.start("b.py", Path("/x/b.py"))

    assert host.activate(SessionLoaded(old_token, _Guest())) is None
    assert host.fail(SessionFailed(old_token, "late")) is False
    assert host.plugin_name == "b.py"
    assert host.loading


def test_events_reach_guest_and_commands_pass_through():
    guest = _Guest()
    host = _active_host(guest)

    result = host.forward(KeyPressed("x"))

    assert guest.seen == [KeyPressed("x")]
    assert result.consumed is False
    assert result.commands == ["guest-command"]


def test_quit_signal_with_other_session_id_is_ignored():
    guest = _BoundGuest()
    host = _active_host(guest)

    result = host.forward(QuitSignal("someone-else"))

    assert guest.seen == [QuitSignal("someone-else")]
    assert result.consumed is False
    assert host.active


def test_quit_signal_without_id_rejected_when_session_has_one():
    host = _active_host(_BoundGuest())

    assert host.forward(QuitSignal()).consumed is False
    assert host.active


def test_matching_quit_signal_terminates_session():
    guest = _BoundGuest()
    host = _active_host(guest)
    session = host.session

    result = host.forward(quit_command(guest.session_id)())

    assert guest.seen == [QuitSignal(guest.session_id)]
    assert result.consumed is True
    assert result.commands == []
    assert host.session is None
    assert session.state is SessionState.TERMINATED


def test_legacy_guest_accepts_any_quit_signal():
    host = _active_host(_Guest())
    assert host.session.session_id is None

    assert host.forward(QuitSignal("whatever")).consumed is True
    assert host.session is None


def test_guest_crash_terminates_session():
    class _Crashy(_Guest):
        def update(self, event):
            raise RuntimeError("kaboom")

    host = _active_host(_Crashy())
    result = host.forward(KeyPressed("x"))

    assert result.consumed is True
    assert "kaboom" in result.error
    assert host.session is None


def test_forward_without_session_is_noop():
    result = EmbeddedHost().forward(KeyPressed("x"))
    assert result.consumed is False
    assert result.commands == []
