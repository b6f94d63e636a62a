#!/usr/bin/env python3
"""Counter: minimal plugin template for the plugdeck embedded panel.

Keys: ``+``/``up`` increment, ``-``/``down`` decrement, ``0`` reset,
``escape``/``q`` hand control back to the dashboard.
"""

from plugdeck.dashboard.events import KeyPressed
from plugdeck.dashboard.host import quit_command


class Counter:
    def __init__(self) -> None:
        self.value = 0
        self.session_id: str | None = None

    def bind_session(self, session_id: str) -> None:
        self.session_id = session_id

    def init(self):
        return None

    def update(self, event):
        if not isinstance(event, KeyPressed):
            return None
        if event.key in ("plus", "+", "up"):
            self.value += 1
        elif event.key in ("minus", "-", "down"):
            self.value -= 1
        elif event.key == "0":
            self.value = 0
        elif event.key in ("escape", "q"):
            return quit_command(self.session_id)
        return None

    def view(self) -> str:
        return f"Counter\n\n    {self.value}\n\n+/-: change | 0: reset | Esc: back"


def create_component() -> Counter:
    return Counter()


if __name__ == "__main__":
    print("This plugin runs inside plugdeck: select it and press Enter.")
