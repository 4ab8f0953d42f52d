"""
Step Engine Models.

============================================================
PURPOSE
============================================================
Data contracts shared by the DSL, the engine, the scheduler
and the input adapter.

- Step: one unit of simulated work
- Scenario: a named, ordered sequence of steps
- ExecutionState: the engine's public, mutable state
- Message / LogEntry: what builder steps emit while running

A Step is one uniform shape with a free-form action. Builder
helpers produce Steps; they are not step "kinds".

============================================================
"""

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from core.constants import DEFAULT_STEP_DURATION_MS


# ============================================================
# TYPE ALIASES
# ============================================================

StepAction = Callable[[], Union[None, Awaitable[None]]]
"""Side effect of a step. May be a plain function or a coroutine function."""

DelayFn = Callable[[float], Awaitable[None]]
"""Waits the given number of milliseconds."""


async def wait_ms(ms: float) -> None:
    """Sleep for ms milliseconds on the running event loop."""
    await asyncio.sleep(max(ms, 0) / 1000)


# ============================================================
# ENUMS
# ============================================================

class LogType(str, Enum):
    """Category of a scenario log line."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    REQUEST = "request"


class MessageType(str, Enum):
    """Kind of traffic a message represents."""
    HTTP = "http"
    EVENT = "event"
    CACHE = "cache"


# ============================================================
# STEP / SCENARIO
# ============================================================

@dataclass
class Step:
    """
    One unit of scenario work.

    A step without an action is inert: the engine still moves
    onto it and fires callbacks, but nothing runs.
    """
    explanation: str = ""
    action: Optional[StepAction] = None
    duration: Optional[int] = DEFAULT_STEP_DURATION_MS
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Scenario:
    """Named, ordered sequence of steps."""
    name: str
    description: str = ""
    steps: Tuple[Step, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def step_count(self) -> int:
        """Number of steps (always len(steps))."""
        return len(self.steps)


@dataclass
class LoadScenarioConfig:
    """Options for StepByStepEngine.load_scenario."""
    auto_start: bool = True
    auto_play: bool = False


@dataclass
class ValidationResult:
    """Outcome of validate_scenario. Never raised, only reported."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


# ============================================================
# EXECUTION STATE
# ============================================================

@dataclass
class ExecutionState:
    """
    Public state owned by the engine.

    current_step is 0 while idle, otherwise a 1-indexed
    position into steps.
    """
    current_step: int = 0
    steps: Tuple[Step, ...] = ()
    is_auto_playing: bool = False
    is_running: bool = False
    scenario_name: str = ""

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def is_idle(self) -> bool:
        return self.current_step == 0 and not self.is_running

    def snapshot(self) -> "ExecutionState":
        """Copy safe to hand to readers."""
        return replace(self)


# ============================================================
# MESSAGES & LOGS
# ============================================================

@dataclass(frozen=True)
class Position:
    """Layout position of a service, in percent of the canvas."""
    x: float
    y: float


@dataclass
class Message:
    """A request, response or event travelling between two services."""
    message_id: str
    from_service: str
    to_service: str
    message_type: MessageType
    label: str
    path: Tuple[Optional[Position], Optional[Position]] = (None, None)
    success: Optional[bool] = None


@dataclass
class LogEntry:
    """One line in the scenario log."""
    entry_id: int
    timestamp: str
    message: str
    log_type: LogType = LogType.INFO


# ============================================================
# BUILDER CONTEXT
# ============================================================

MessageUpdater = Callable[[List[Message]], List[Message]]


def _ignore_log(message: str, log_type: LogType = LogType.INFO) -> None:
    return None


def _ignore_messages(updater: MessageUpdater) -> None:
    return None


@dataclass
class StepBuilderContext:
    """
    Shared collaborators wired into builder-generated actions.

    Attributes:
        add_log: Log sink, called as add_log(message, log_type)
        update_messages: Receives a function old_messages -> new_messages
        delay: Waits a number of milliseconds
        positions: Service name -> layout position
    """
    add_log: Callable[..., None] = _ignore_log
    update_messages: Callable[[MessageUpdater], None] = _ignore_messages
    delay: DelayFn = wait_ms
    positions: Dict[str, Position] = field(default_factory=dict)

    @classmethod
    def from_sinks(
        cls,
        log_buffer: Any = None,
        message_board: Any = None,
        delay: Optional[DelayFn] = None,
        positions: Optional[Dict[str, Position]] = None,
    ) -> "StepBuilderContext":
        """Build a context from a LogBuffer and a MessageBoard."""
        return cls(
            add_log=log_buffer.add_log if log_buffer is not None else _ignore_log,
            update_messages=(
                message_board.update if message_board is not None else _ignore_messages
            ),
            delay=delay or wait_ms,
            positions=dict(positions or {}),
        )


__all__ = [
    "StepAction",
    "DelayFn",
    "MessageUpdater",
    "wait_ms",
    "LogType",
    "MessageType",
    "Step",
    "Scenario",
    "LoadScenarioConfig",
    "ValidationResult",
    "ExecutionState",
    "Position",
    "Message",
    "LogEntry",
    "StepBuilderContext",
]
