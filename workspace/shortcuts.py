# workspace/shortcuts.py
"""
Window-level keyboard shortcuts.

A KeyboardHub plays the role of the window: components add a keydown listener
when they mount and must remove it when they are torn down.
"""

from dataclasses import dataclass
from typing import Callable, List

from utils.logger import get_workspace_logger

logger = get_workspace_logger("shortcuts")

KeyListener = Callable[["KeyEvent"], bool]


@dataclass(frozen=True)
class KeyEvent:
    """A keydown event. `key` uses browser names: "Enter", "k", ..."""
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def command(self) -> bool:
        """Cmd on macOS, Ctrl elsewhere."""
        return self.ctrl or self.meta

    def is_chord(self, key: str) -> bool:
        return self.command and self.key.lower() == key.lower()


class KeyboardHub:
    """Registry of keydown listeners; dispatch reports whether any handled the event."""

    def __init__(self):
        self._listeners: List[KeyListener] = []

    def add_listener(self, listener: KeyListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: KeyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch(self, event: KeyEvent) -> bool:
        handled = False
        for listener in list(self._listeners):
            if listener(event):
                handled = True
        if handled:
            logger.debug(f"Shortcut handled: {event}")
        return handled
