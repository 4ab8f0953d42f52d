"""
Scenario Definition DSL.

============================================================
PURPOSE
============================================================
Factories that produce well-formed Step and Scenario values,
plus builder shortcuts for the interaction shapes scenarios
repeat over and over (request, response, cache check, cache
hit/miss, event publish, cleanup).

Malformed definitions are reported, not rejected:
- create_step warns and still returns a Step
- create_scenario raises only when the name is missing
- validate_scenario never raises

Builders are pure. Every observable effect (log line, message,
delay) happens when the produced Step's action runs.

============================================================
"""

import inspect
import logging
import uuid
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from core.constants import (
    BUILDER_MESSAGE_DELAY_MS,
    BUILDER_STEP_DURATION_MS,
    DEFAULT_STEP_DURATION_MS,
)
from core.exceptions import ScenarioDefinitionError

from .models import (
    DelayFn,
    LogType,
    Message,
    MessageType,
    Scenario,
    Step,
    StepAction,
    StepBuilderContext,
    ValidationResult,
    wait_ms,
)


logger = logging.getLogger(__name__)


# ============================================================
# DELAYS
# ============================================================

def create_speed_delay(speed_multiplier: float = 1.0) -> DelayFn:
    """
    Create a delay function that respects playback speed.

    delay_fn(1000) waits 1000ms at 1x speed and 500ms at 2x.
    speed_multiplier must be positive; it is not checked here.
    """
    async def speed_delay(ms: float) -> None:
        await wait_ms(ms / speed_multiplier)

    return speed_delay


# ============================================================
# STEP / SCENARIO FACTORIES
# ============================================================

def create_step(
    explanation: str,
    action: Optional[StepAction],
    duration: int = DEFAULT_STEP_DURATION_MS,
    metadata: Optional[Dict[str, Any]] = None,
) -> Step:
    """
    Create a step with defaults filled in.

    Missing or malformed explanation/action is logged as a
    warning; the Step is returned regardless.
    """
    if not explanation or not isinstance(explanation, str):
        logger.warning("Step missing required explanation text")

    if action is None or not callable(action):
        logger.warning(
            f"Step missing required action function | explanation={explanation!r}"
        )

    return Step(
        explanation=explanation,
        action=action,
        duration=duration,
        metadata=metadata or {},
    )


def create_scenario(
    name: str,
    description: str = "",
    steps: Optional[Iterable[Step]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Scenario:
    """
    Create a scenario ready for StepByStepEngine.load_scenario.

    Raises:
        ScenarioDefinitionError: If name is missing
    """
    if not name or not isinstance(name, str):
        raise ScenarioDefinitionError("Scenario must have a name")

    step_tuple = tuple(steps or ())
    if not step_tuple:
        logger.warning(f'Scenario "{name}" has no steps defined')

    return Scenario(
        name=name,
        description=description,
        steps=step_tuple,
        metadata=metadata or {},
    )


# ============================================================
# STEP BUILDER
# ============================================================

class StepBuilder:
    """
    Named constructors for common interaction shapes.

    Every constructor returns a plain Step via create_step. The
    context's log sink, message mutator and delay are captured
    by the generated action and only touched when it runs.
    """

    def __init__(self, context: StepBuilderContext):
        self._context = context

    @property
    def context(self) -> StepBuilderContext:
        return self._context

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------

    def _message(
        self,
        from_service: str,
        to_service: str,
        message_type: MessageType,
        label: str,
        success: Optional[bool] = None,
    ) -> Message:
        positions = self._context.positions
        return Message(
            message_id=str(uuid.uuid4()),
            from_service=from_service,
            to_service=to_service,
            message_type=message_type,
            label=label,
            path=(positions.get(from_service), positions.get(to_service)),
            success=success,
        )

    def _emit(self, message: Message) -> None:
        self._context.update_messages(lambda messages: [*messages, message])

    # --------------------------------------------------------
    # Constructors
    # --------------------------------------------------------

    def request_step(
        self,
        from_service: str,
        to_service: str,
        label: str,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
        log_message: Optional[str] = None,
    ) -> Step:
        """HTTP request from one service to another."""
        ctx = self._context

        async def action() -> None:
            if log_message:
                ctx.add_log(log_message, LogType.REQUEST)
            self._emit(self._message(from_service, to_service, MessageType.HTTP, label))
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)

        return create_step(explanation, action, duration)

    def response_step(
        self,
        from_service: str,
        to_service: str,
        label: str,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
        success: bool = True,
        log_message: Optional[str] = None,
    ) -> Step:
        """HTTP response, successful or failed."""
        ctx = self._context

        async def action() -> None:
            if log_message:
                ctx.add_log(log_message, LogType.SUCCESS if success else LogType.ERROR)
            self._emit(
                self._message(from_service, to_service, MessageType.HTTP, label, success)
            )
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)

        return create_step(explanation, action, duration)

    def cache_check_step(
        self,
        service: str,
        cache: str,
        key: str,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
    ) -> Step:
        """Service looks a key up in a cache."""
        ctx = self._context

        async def action() -> None:
            ctx.add_log(f"Checking {cache} cache...", LogType.INFO)
            self._emit(self._message(service, cache, MessageType.CACHE, f"GET {key}"))
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)

        return create_step(explanation, action, duration)

    def cache_hit_step(
        self,
        cache: str,
        service: str,
        value: str,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
    ) -> Step:
        """Cache answers with the stored value."""
        ctx = self._context

        async def action() -> None:
            ctx.add_log(f"Cache HIT! Retrieved from {cache}", LogType.SUCCESS)
            self._emit(self._message(cache, service, MessageType.CACHE, value, True))
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)

        return create_step(explanation, action, duration)

    def cache_miss_step(
        self,
        cache: str,
        service: str,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
    ) -> Step:
        """Cache has nothing for the key."""
        ctx = self._context

        async def action() -> None:
            ctx.add_log("Cache MISS! Need to fetch from source", LogType.WARNING)
            self._emit(self._message(cache, service, MessageType.CACHE, "null", False))
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)

        return create_step(explanation, action, duration)

    def publish_event_step(
        self,
        from_service: str,
        to_service: str,
        event_name: str,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
    ) -> Step:
        """Service publishes an event to a broker or subscriber."""
        ctx = self._context

        async def action() -> None:
            ctx.add_log(f"Publishing {event_name} event...", LogType.INFO)
            self._emit(
                self._message(from_service, to_service, MessageType.EVENT, f"{event_name} event")
            )
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)

        return create_step(explanation, action, duration)

    def cleanup_step(
        self,
        explanation: str,
        duration: int = BUILDER_STEP_DURATION_MS,
        custom_action: Optional[StepAction] = None,
    ) -> Step:
        """Closing step. Clears all messages unless custom_action is given."""
        ctx = self._context

        async def action() -> None:
            await ctx.delay(BUILDER_MESSAGE_DELAY_MS)
            if custom_action is not None:
                result = custom_action()
                if inspect.isawaitable(result):
                    await result
            else:
                ctx.update_messages(lambda messages: [])

        return create_step(explanation, action, duration)

    def custom_step(
        self,
        explanation: str,
        action: Optional[StepAction],
        duration: int = DEFAULT_STEP_DURATION_MS,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Step:
        """Escape hatch for steps that fit none of the shapes above."""
        return create_step(explanation, action, duration, metadata)


def create_step_builder(context: Optional[StepBuilderContext] = None) -> StepBuilder:
    """Create a step builder bound to context (defaults when omitted)."""
    return StepBuilder(context or StepBuilderContext())


# ============================================================
# VALIDATION
# ============================================================

def _read(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def validate_scenario(scenario: Any) -> ValidationResult:
    """
    Validate a scenario definition.

    Accepts a Scenario or a mapping with the same keys. Never
    raises; every problem found is listed in the result.
    """
    errors: List[str] = []

    if scenario is None:
        errors.append("Scenario is null or undefined")
        return ValidationResult(valid=False, errors=errors)

    name = _read(scenario, "name")
    if not name or not isinstance(name, str):
        errors.append("Scenario must have a name (string)")

    steps = _read(scenario, "steps")
    if steps is None or isinstance(steps, (str, bytes, Mapping)) or not isinstance(
        steps, (list, tuple)
    ):
        errors.append("Scenario must have steps (array)")
    elif len(steps) == 0:
        errors.append("Scenario has no steps defined")
    else:
        for index, step in enumerate(steps, 1):
            if not _read(step, "explanation"):
                errors.append(f"Step {index} missing explanation")

            action = _read(step, "action")
            if action is None or not callable(action):
                errors.append(f"Step {index} missing or invalid action function")

            duration = _read(step, "duration")
            if duration and (
                isinstance(duration, bool) or not isinstance(duration, (int, float))
            ):
                errors.append(f"Step {index} has invalid duration (must be number)")

    return ValidationResult(valid=not errors, errors=errors)


__all__ = [
    "create_speed_delay",
    "create_step",
    "create_scenario",
    "StepBuilder",
    "create_step_builder",
    "validate_scenario",
]
