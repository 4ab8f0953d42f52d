"""
Keyboard Input Adapter.

============================================================
PURPOSE
============================================================
Maps discrete key events onto engine operations:

    ArrowRight -> go_to_next_step
    ArrowLeft  -> go_to_previous_step
    Space      -> toggle_auto_play

Whatever front end owns the real keyboard feeds KeyEvents into
a KeyboardDispatcher. The binding listens on that dispatcher
only while a scenario is running, ignores events coming from
text-input controls, and marks handled events so the front end
can suppress its own default behaviour.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol, Set


logger = logging.getLogger(__name__)


KEY_NEXT = "ArrowRight"
KEY_PREVIOUS = "ArrowLeft"
KEY_TOGGLE = " "

TEXT_INPUT_TAGS = frozenset({"INPUT", "TEXTAREA"})


# ============================================================
# EVENTS
# ============================================================

@dataclass
class KeyEvent:
    """A key press as delivered by the front end."""
    key: str
    target_tag: str = "BODY"
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    @property
    def from_text_input(self) -> bool:
        return self.target_tag.upper() in TEXT_INPUT_TAGS


KeyListener = Callable[[KeyEvent], None]


class KeyboardDispatcher:
    """Global key event source. Listeners see every dispatched event."""

    def __init__(self):
        self._listeners: List[KeyListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: KeyListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: KeyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, event: KeyEvent) -> KeyEvent:
        """Deliver event to all listeners and return it."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Key listener error: {e}", exc_info=True)
        return event


# ============================================================
# BINDING
# ============================================================

class SteppingControls(Protocol):
    """The slice of the engine surface the binding drives."""

    @property
    def is_running(self) -> bool:
        ...

    def go_to_next_step(self) -> Awaitable[None]:
        ...

    def go_to_previous_step(self) -> None:
        ...

    def toggle_auto_play(self) -> None:
        ...


class KeyboardBinding:
    """
    Connects a dispatcher to the engine while a scenario runs.

    The engine calls sync(is_running) whenever its running flag
    changes; the listener is installed on True and removed on
    False. close() removes it for good.
    """

    def __init__(self, controls: SteppingControls, dispatcher: KeyboardDispatcher):
        self._controls = controls
        self._dispatcher = dispatcher
        self._installed = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if not self._installed:
            self._dispatcher.add_listener(self.handle)
            self._installed = True
            logger.debug("Keyboard shortcuts bound")

    def uninstall(self) -> None:
        if self._installed:
            self._dispatcher.remove_listener(self.handle)
            self._installed = False
            logger.debug("Keyboard shortcuts unbound")

    def sync(self, is_running: bool) -> None:
        if is_running:
            self.install()
        else:
            self.uninstall()

    def close(self) -> None:
        self.uninstall()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def handle(self, event: KeyEvent) -> Optional[asyncio.Task]:
        """
        React to one key event.

        Returns the task running go_to_next_step for ArrowRight,
        None otherwise.
        """
        if not self._controls.is_running:
            return None

        if event.from_text_input:
            return None

        if event.key == KEY_NEXT:
            event.prevent_default()
            return self._spawn_next()

        if event.key == KEY_PREVIOUS:
            event.prevent_default()
            self._controls.go_to_previous_step()
        elif event.key == KEY_TOGGLE:
            event.prevent_default()
            self._controls.toggle_auto_play()

        return None

    def _spawn_next(self) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"{KEY_NEXT} ignored: no running event loop")
            return None

        task = loop.create_task(self._controls.go_to_next_step())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


__all__ = [
    "KEY_NEXT",
    "KEY_PREVIOUS",
    "KEY_TOGGLE",
    "TEXT_INPUT_TAGS",
    "KeyEvent",
    "KeyListener",
    "KeyboardDispatcher",
    "SteppingControls",
    "KeyboardBinding",
]
