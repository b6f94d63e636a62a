"""Textual app: draws the panels and feeds key presses to the runtime.

The app never changes dashboard state itself: keys and resizes become
events for the runtime, and every processed event triggers a redraw from
the state through ``view``.
"""

from __future__ import annotations

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Static

from plugdeck.dashboard import view
from plugdeck.dashboard.events import KeyPressed, Resized
from plugdeck.dashboard.runtime import DashboardRuntime
from plugdeck.dashboard.state import DashboardState, Panel

_PANEL_IDS = {
    Panel.CATALOG: "catalog",
    Panel.LOG: "log",
    Panel.EMBEDDED: "embedded",
}


class DashboardApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #panels {
        height: 1fr;
    }

    #left {
        width: 40;
    }

    .panel {
        border: round $surface;
        padding: 1 2;
    }

    .panel.focused {
        border: round $accent;
    }

    #catalog {
        height: 60%;
    }

    #log {
        height: 1fr;
    }

    #embedded {
        width: 1fr;
        height: 1fr;
    }

    #status {
        height: 1;
        color: $text-muted;
        padding: 0 1;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("tab", "send_key('tab')", "Panel", show=False, priority=True),
        Binding("ctrl+c", "send_key('ctrl+c')", "Quit", show=False, priority=True),
    ]

    def __init__(self, runtime: DashboardRuntime) -> None:
        super().__init__()
        self.runtime = runtime

    def compose(self) -> ComposeResult:
        with Horizontal(id="panels"):
            with Vertical(id="left"):
                yield Static("", id="catalog", classes="panel")
                yield Static("", id="log", classes="panel")
            yield Static("", id="embedded", classes="panel")
        yield Static("", id="status")

    def on_mount(self) -> None:
        self.query_one("#catalog", Static).border_title = "Plugins"
        self.query_one("#log", Static).border_title = "Activity"
        self.runtime.on_change = self.refresh_panels
        self.run_worker(self._drive(), name="dashboard-runtime", exclusive=True)

    async def _drive(self) -> None:
        await self.runtime.run()
        self.exit()

    def action_send_key(self, key: str) -> None:
        self.runtime.dispatch(KeyPressed(key))

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.runtime.dispatch(KeyPressed(event.key))

    def on_resize(self, event: events.Resize) -> None:
        self.runtime.dispatch(Resized(event.size.width, event.size.height))

    def refresh_panels(self, state: DashboardState) -> None:
        catalog = self.query_one("#catalog", Static)
        log = self.query_one("#log", Static)
        embedded = self.query_one("#embedded", Static)

        catalog.update(view.render_catalog(state))
        log_size = log.content_size
        log.update(view.render_log(state, rows=log_size.height or None, width=log_size.width or None))
        embedded.update(view.render_embedded(state))
        embedded.border_title = view.embedded_title(state)
        self.query_one("#status", Static).update(view.render_status(state))

        for panel, widget_id in _PANEL_IDS.items():
            self.query_one(f"#{widget_id}", Static).set_class(state.focus is panel, "focused")
