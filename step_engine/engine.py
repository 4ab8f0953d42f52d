"""
Step Engine - Execution State Machine.

============================================================
RESPONSIBILITY
============================================================
Drives an ordered sequence of steps, one moment at a time.

- Single source of truth for the current position
- Executes step actions, one at a time
- Notifies the consumer through lifecycle callbacks
- Keeps the auto-play timer and keyboard binding in sync

============================================================
STATE MACHINE
============================================================
IDLE    current_step = 0, is_running = False
ACTIVE  is_running = True, 1 <= current_step <= total_steps

load_scenario  -> ACTIVE (IDLE when auto_start is off or no steps)
stop_scenario  -> IDLE

is_auto_playing is orthogonal and can flip in either state.

============================================================
NAVIGATION POLICY
============================================================
- Forward (go_to_next_step) executes the step it lands on
- Backward and jumps only move the pointer; side effects of
  earlier actions are neither undone nor replayed
- A forward request arriving while an action is still running
  moves the pointer but its action is dropped, not queued
- Action failures are logged and swallowed; the show goes on

============================================================
"""

import inspect
import logging
from typing import Any, Callable, Optional, Sequence, Tuple

from core.exceptions import (
    ConfigurationError,
    InvalidConfigError,
    StepExecutionError,
    wrap_exception,
)

from .config import EngineConfig
from .keyboard import KeyboardBinding, KeyboardDispatcher
from .models import ExecutionState, LoadScenarioConfig, Scenario, Step
from .scheduler import AutoPlayScheduler


logger = logging.getLogger(__name__)


ScenarioStartCallback = Callable[[str], Any]
ScenarioCompleteCallback = Callable[[], Any]
StepChangeCallback = Callable[[int, Step], Any]
StepErrorCallback = Callable[[int, Step, StepExecutionError], Any]


# ============================================================
# STEP-BY-STEP ENGINE
# ============================================================

class StepByStepEngine:
    """
    Execution state machine for step-by-step scenarios.

    Single-threaded and cooperative: every operation runs on the
    asyncio event loop. The engine exclusively owns its
    ExecutionState; the scheduler and the keyboard binding only
    call public operations.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        on_scenario_start: Optional[ScenarioStartCallback] = None,
        on_scenario_complete: Optional[ScenarioCompleteCallback] = None,
        on_step_change: Optional[StepChangeCallback] = None,
        on_step_error: Optional[StepErrorCallback] = None,
        keyboard: Optional[KeyboardDispatcher] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (speed multiplier, defaults)
            on_scenario_start: Called with the scenario name on every load
            on_scenario_complete: Called when forward motion reaches the last step
            on_step_change: Called with (step_number, step) on every pointer move
            on_step_error: Called with (step_number, step, error) when an action raises
            keyboard: Key event source to bind while a scenario runs

        Raises:
            ConfigurationError: If config is invalid
        """
        self._config = config or EngineConfig()

        errors = self._config.validate()
        if errors:
            raise ConfigurationError(
                message=f"Invalid configuration: {', '.join(errors)}",
            )

        self._on_scenario_start = on_scenario_start
        self._on_scenario_complete = on_scenario_complete
        self._on_step_change = on_step_change
        self._on_step_error = on_step_error

        self._state = ExecutionState()
        self._speed_multiplier = self._config.speed_multiplier

        # Reentrancy guard: token of the execution holding it
        self._executing: Optional[object] = None

        # Bumped on every load/stop; stale in-flight work checks it
        self._generation = 0

        self._scheduler = AutoPlayScheduler(
            advance=self.go_to_next_step,
            default_duration_ms=self._config.default_step_duration_ms,
        )
        self._keyboard: Optional[KeyboardBinding] = None
        if keyboard is not None:
            self._keyboard = KeyboardBinding(self, keyboard)

        self._effect_key: Optional[Tuple[Any, ...]] = None
        self._closed = False

        logger.info(f"StepByStepEngine initialized | speed={self._speed_multiplier}")

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def current_step(self) -> int:
        """Current step number (1-indexed, 0 = not started)."""
        return self._state.current_step

    @property
    def total_steps(self) -> int:
        return self._state.total_steps

    @property
    def steps(self) -> Tuple[Step, ...]:
        return self._state.steps

    @property
    def is_auto_playing(self) -> bool:
        return self._state.is_auto_playing

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def scenario_name(self) -> str:
        return self._state.scenario_name

    @property
    def current_step_data(self) -> Optional[Step]:
        """The step at the pointer, None while idle."""
        if 1 <= self._state.current_step <= self._state.total_steps:
            return self._state.steps[self._state.current_step - 1]
        return None

    @property
    def step_explanation(self) -> str:
        step = self.current_step_data
        return (step.explanation or "") if step is not None else ""

    @property
    def can_go_next(self) -> bool:
        return self._state.current_step < self._state.total_steps

    @property
    def can_go_previous(self) -> bool:
        return self._state.current_step > 1

    @property
    def is_complete(self) -> bool:
        total = self._state.total_steps
        return total > 0 and self._state.current_step == total

    @property
    def progress(self) -> float:
        """Completion percentage, 0 when no steps are loaded."""
        total = self._state.total_steps
        if total == 0:
            return 0
        return self._state.current_step / total * 100

    @property
    def state(self) -> ExecutionState:
        """Copy of the current public state."""
        return self._state.snapshot()

    @property
    def scheduler(self) -> AutoPlayScheduler:
        return self._scheduler

    @property
    def speed_multiplier(self) -> float:
        return self._speed_multiplier

    @speed_multiplier.setter
    def speed_multiplier(self, value: float) -> None:
        if value <= 0:
            raise InvalidConfigError("speed_multiplier", value, "must be positive")
        self._speed_multiplier = value
        self._sync_effects()

    # --------------------------------------------------------
    # Scenario management
    # --------------------------------------------------------

    async def load(self, scenario: Scenario, config: Optional[LoadScenarioConfig] = None) -> None:
        """Load a Scenario built with the DSL."""
        await self.load_scenario(scenario.name, scenario.steps, config)

    async def load_scenario(
        self,
        name: str,
        steps: Sequence[Step],
        config: Optional[LoadScenarioConfig] = None,
    ) -> None:
        """
        Load a new scenario, discarding any previous one.

        With auto_start and at least one step, step 1 executes
        before this coroutine returns.
        """
        if config is None:
            config = LoadScenarioConfig(
                auto_start=self._config.auto_start,
                auto_play=self._config.auto_play,
            )

        self._scheduler.cancel()
        self._generation += 1
        generation = self._generation

        self._state = ExecutionState(
            current_step=0,
            steps=tuple(steps),
            is_auto_playing=config.auto_play,
            is_running=False,
            scenario_name=name,
        )
        self._executing = None
        self._sync_effects()

        logger.info(
            f"Scenario loaded | name={name} | steps={self._state.total_steps} "
            f"| auto_start={config.auto_start} | auto_play={config.auto_play}"
        )

        self._notify(self._on_scenario_start, name)

        if not config.auto_start or not self._state.steps:
            return

        first = self._state.steps[0]
        self._state.is_running = True
        self._state.current_step = 1
        self._sync_effects()

        await self._execute_step(1, first)

        if generation == self._generation:
            self._notify(self._on_step_change, 1, first)

    def stop_scenario(self) -> None:
        """Return to IDLE. Calling it again changes nothing."""
        self._scheduler.cancel()
        self._generation += 1
        self._state = ExecutionState()
        self._executing = None
        self._sync_effects()

        logger.info("Scenario stopped")

    async def reset_scenario(self) -> None:
        """Rewind to step 1 and execute it again. Auto-play is switched off."""
        if not self._state.steps:
            return

        self._scheduler.cancel()
        self._generation += 1
        generation = self._generation

        first = self._state.steps[0]
        self._state.current_step = 1
        self._state.is_auto_playing = False
        self._executing = None
        self._sync_effects()

        logger.info(f"Scenario reset | name={self._state.scenario_name}")

        await self._execute_step(1, first)

        if generation == self._generation:
            self._notify(self._on_step_change, 1, first)

    # --------------------------------------------------------
    # Navigation
    # --------------------------------------------------------

    async def go_to_next_step(self) -> None:
        """
        Advance one step and execute it.

        No-op at the end (and while idle). Fires the completion
        callback when the pointer lands on the last step.
        """
        total = self._state.total_steps
        if self._state.current_step >= total:
            return

        generation = self._generation
        next_step = self._state.current_step + 1
        step = self._state.steps[next_step - 1]

        self._state.current_step = next_step
        self._sync_effects()

        await self._execute_step(next_step, step)

        if generation != self._generation:
            logger.debug(f"Scenario replaced during step {next_step}, callbacks skipped")
            return

        self._notify(self._on_step_change, next_step, step)

        if next_step == total:
            logger.info(f"Scenario complete | name={self._state.scenario_name}")
            self._notify(self._on_scenario_complete)

    def go_to_previous_step(self) -> None:
        """Move back one step without re-executing it."""
        if self._state.current_step <= 1:
            return

        prev_step = self._state.current_step - 1
        self._state.current_step = prev_step
        self._sync_effects()

        self._notify(self._on_step_change, prev_step, self._state.steps[prev_step - 1])

    def go_to_step(self, step_number: int) -> None:
        """Jump to step_number without executing anything on the way."""
        if step_number < 1 or step_number > self._state.total_steps:
            return

        self._state.current_step = step_number
        self._sync_effects()

        self._notify(self._on_step_change, step_number, self._state.steps[step_number - 1])

    # --------------------------------------------------------
    # Playback control
    # --------------------------------------------------------

    def toggle_auto_play(self) -> None:
        self._state.is_auto_playing = not self._state.is_auto_playing
        self._sync_effects()

    def start_auto_play(self) -> None:
        self._state.is_auto_playing = True
        self._sync_effects()

    def pause_auto_play(self) -> None:
        self._state.is_auto_playing = False
        self._sync_effects()

    # --------------------------------------------------------
    # Teardown
    # --------------------------------------------------------

    def close(self) -> None:
        """Discard the engine: no timer, no key binding, no pending advance."""
        if self._closed:
            return

        self._closed = True
        self._scheduler.close()
        if self._keyboard is not None:
            self._keyboard.close()

        logger.debug("StepByStepEngine closed")

    async def __aenter__(self) -> "StepByStepEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------------------------------------------------
    # Internal
    # --------------------------------------------------------

    async def _execute_step(self, step_number: int, step: Optional[Step]) -> None:
        """
        Run one action under the reentrancy guard.

        A second call while the guard is held is skipped. The
        guard is released even when the action raises or is
        cancelled.
        """
        if step is None or step.action is None:
            return

        if self._executing is not None:
            logger.warning(f"Step already executing, skipping | step={step_number}")
            return

        token = object()
        self._executing = token
        error: Optional[StepExecutionError] = None

        try:
            result = step.action()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            error = wrap_exception(
                e,
                StepExecutionError,
                step_number=step_number,
                explanation=step.explanation,
            )
            logger.error(f"Error executing step: {error.to_log_format()}", exc_info=True)
        finally:
            if self._executing is token:
                self._executing = None

        if error is not None:
            self._notify(self._on_step_error, step_number, step, error)

    def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        """Invoke a consumer callback; its failures never reach engine state."""
        if callback is None:
            return

        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Engine callback error: {e}", exc_info=True)

    def _sync_effects(self) -> None:
        """
        Re-evaluate timer and key binding after a state change.

        The timer is rescheduled only when one of its inputs
        (auto-play flag, pointer, loaded steps, running flag,
        speed) actually changed.
        """
        if self._closed:
            return

        key = (
            self._state.is_auto_playing,
            self._state.current_step,
            self._generation,
            self._state.is_running,
            self._speed_multiplier,
        )
        if key != self._effect_key:
            self._effect_key = key
            self._scheduler.reschedule(self._state, self._speed_multiplier)

        if self._keyboard is not None:
            self._keyboard.sync(self._state.is_running)


__all__ = [
    "StepByStepEngine",
    "ScenarioStartCallback",
    "ScenarioCompleteCallback",
    "StepChangeCallback",
    "StepErrorCallback",
]
