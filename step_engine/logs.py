"""
Scenario Log & Message Board.

============================================================
PURPOSE
============================================================
In-memory sinks that builder steps write into while a
scenario plays:

- LogBuffer keeps a rolling window of the newest log lines
- MessageBoard holds the messages currently in flight

Both are plain objects; StepBuilderContext.from_sinks wires
them into the step builder.

============================================================
"""

import itertools
import logging
from typing import Callable, List, Optional, Union

from core.clock import ClockFactory, ClockProtocol
from core.constants import LOG_BUFFER_SIZE

from .models import LogEntry, LogType, Message, MessageUpdater


logger = logging.getLogger(__name__)


# LogType -> stdlib logging level for the mirrored record
_LEVELS = {
    LogType.INFO: logging.INFO,
    LogType.REQUEST: logging.INFO,
    LogType.SUCCESS: logging.INFO,
    LogType.WARNING: logging.WARNING,
    LogType.ERROR: logging.ERROR,
}


# ============================================================
# LOG BUFFER
# ============================================================

class LogBuffer:
    """
    Rolling scenario log.

    Keeps only the newest max_entries lines. Every line is also
    emitted through the module logger.
    """

    def __init__(
        self,
        max_entries: int = LOG_BUFFER_SIZE,
        clock: Optional[ClockProtocol] = None,
    ):
        self._max_entries = max_entries
        self._clock = clock
        self._entries: List[LogEntry] = []
        self._ids = itertools.count(1)

    @property
    def entries(self) -> List[LogEntry]:
        """Current window, oldest first."""
        return list(self._entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def add_log(
        self,
        message: str,
        log_type: Union[LogType, str] = LogType.INFO,
    ) -> LogEntry:
        """Append a line and drop anything beyond the window."""
        log_type = LogType(log_type)
        clock = self._clock or ClockFactory.get_clock()

        entry = LogEntry(
            entry_id=next(self._ids),
            timestamp=clock.time_of_day(),
            message=message,
            log_type=log_type,
        )
        self._entries.append(entry)
        self._entries = self._entries[-self._max_entries:]

        logger.log(_LEVELS[log_type], f"[{log_type.value}] {message}")
        return entry

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)


# ============================================================
# MESSAGE BOARD
# ============================================================

class MessageBoard:
    """Messages currently travelling between services."""

    def __init__(self):
        self._messages: List[Message] = []
        self._listeners: List[Callable[[List[Message]], None]] = []

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def update(self, updater: MessageUpdater) -> None:
        """Replace the message list with updater(current_list)."""
        self._messages = list(updater(list(self._messages)))
        for listener in list(self._listeners):
            try:
                listener(self.messages)
            except Exception as e:
                logger.error(f"Message listener error: {e}", exc_info=True)

    def append(self, message: Message) -> None:
        self.update(lambda messages: [*messages, message])

    def clear(self) -> None:
        self.update(lambda messages: [])

    def subscribe(self, listener: Callable[[List[Message]], None]) -> None:
        """Register a callback that receives the list after each change."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[List[Message]], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


__all__ = [
    "LogBuffer",
    "MessageBoard",
]
