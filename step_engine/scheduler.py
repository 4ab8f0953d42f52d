"""
Auto-Play Scheduler.

============================================================
PURPOSE
============================================================
Drives auto-play by scheduling a single delayed advance.

- At most one advance is pending at any time
- Every reschedule cancels the previous timer first
- The wait is the active step's duration divided by the
  speed multiplier (default duration when the step has none)

The scheduler never touches engine state. It reads an
ExecutionState handed to it and calls the advance coroutine
it was built with.

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from core.constants import DEFAULT_STEP_DURATION_MS

from .models import ExecutionState, Step


logger = logging.getLogger(__name__)


class AutoPlayScheduler:
    """
    Owns the single cancellable auto-advance timer.

    The timer is an event-loop handle (loop.call_later). When it
    fires, the advance coroutine runs as its own task so that a
    reschedule issued from inside that advance never cancels the
    advance itself.
    """

    def __init__(
        self,
        advance: Callable[[], Awaitable[None]],
        default_duration_ms: int = DEFAULT_STEP_DURATION_MS,
    ):
        """
        Initialize the scheduler.

        Args:
            advance: Coroutine function moving the engine one step forward
            default_duration_ms: Wait for steps that carry no duration
        """
        self._advance = advance
        self._default_duration_ms = default_duration_ms
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending_delay_ms: Optional[float] = None
        self._tasks: Set[asyncio.Task] = set()

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def has_pending(self) -> bool:
        """Check if an auto-advance is scheduled."""
        return self._handle is not None

    @property
    def pending_delay_ms(self) -> Optional[float]:
        """Wait of the pending auto-advance, None when idle."""
        return self._pending_delay_ms if self._handle is not None else None

    # --------------------------------------------------------
    # Scheduling
    # --------------------------------------------------------

    def compute_delay_ms(self, step: Optional[Step], speed_multiplier: float) -> float:
        """Scaled wait before advancing past step."""
        duration = (step.duration if step is not None else None) or self._default_duration_ms
        return duration / speed_multiplier

    @staticmethod
    def should_schedule(state: ExecutionState) -> bool:
        """Auto-play only runs between the first and the last step."""
        return (
            state.is_auto_playing
            and state.is_running
            and 0 < state.current_step < state.total_steps
        )

    def reschedule(self, state: ExecutionState, speed_multiplier: float) -> Optional[float]:
        """
        Cancel the pending timer and schedule a new one if due.

        Returns:
            The scheduled wait in milliseconds, or None
        """
        self.cancel()

        if not self.should_schedule(state):
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, auto-advance not scheduled")
            return None

        delay_ms = self.compute_delay_ms(state.steps[state.current_step - 1], speed_multiplier)
        self._handle = loop.call_later(delay_ms / 1000, self._fire)
        self._pending_delay_ms = delay_ms

        logger.debug(
            f"Auto-advance scheduled | step={state.current_step} | delay_ms={delay_ms:.0f}"
        )
        return delay_ms

    def cancel(self) -> bool:
        """Cancel the pending timer. Returns True if one was pending."""
        if self._handle is None:
            return False

        self._handle.cancel()
        self._handle = None
        self._pending_delay_ms = None
        return True

    def close(self) -> None:
        """Cancel the timer and any advance still running from it."""
        self.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    # --------------------------------------------------------
    # Internal
    # --------------------------------------------------------

    def _fire(self) -> None:
        self._handle = None
        self._pending_delay_ms = None

        task = asyncio.get_running_loop().create_task(self._advance())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = [
    "AutoPlayScheduler",
]
