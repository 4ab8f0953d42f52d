"""
Step-by-Step Scenario Engine.

============================================================
PURPOSE
============================================================
Plays narrated, step-by-step simulations of distributed-system
interactions (requests, cache lookups, events) one moment at a
time.

A scenario is an ordered list of Steps. Each Step carries an
explanation, an action (the side effect performed when the step
executes) and a duration used by auto-play.

============================================================
COMPONENTS
============================================================

1. DSL (dsl.py)
   - create_step / create_scenario factories
   - StepBuilder shortcuts for common interaction shapes
   - validate_scenario

2. ENGINE (engine.py)
   - StepByStepEngine state machine: load, next, previous,
     jump, reset, stop, auto-play
   - Reentrancy guard around step actions
   - Lifecycle callbacks

3. SCHEDULER (scheduler.py)
   - Single cancellable auto-advance timer
   - Waits scaled by the speed multiplier

4. KEYBOARD (keyboard.py)
   - ArrowRight / ArrowLeft / Space bindings, active only
     while a scenario runs

5. SUPPORT
   - LogBuffer / MessageBoard sinks (logs.py)
   - ScenarioRegistry (registry.py)
   - JSON scenario files (schemas.py, loader.py)
   - Terminal player (cli.py)

============================================================
USAGE
============================================================

    from step_engine import (
        LogBuffer, MessageBoard, StepBuilderContext,
        StepByStepEngine, create_scenario, create_step_builder,
    )

    logs = LogBuffer()
    board = MessageBoard()
    builder = create_step_builder(StepBuilderContext.from_sinks(logs, board))

    scenario = create_scenario("Cache-aside read", steps=[
        builder.request_step("client", "api", "GET /users/1",
                             "Client asks the API for a user"),
        builder.cache_check_step("api", "redis", "user:1",
                                 "API looks in Redis first"),
        builder.cache_hit_step("redis", "api", "{id: 1}",
                               "Redis already has it"),
        builder.cleanup_step("Done"),
    ])

    engine = StepByStepEngine(on_scenario_complete=lambda: print("done"))
    await engine.load(scenario)       # executes step 1
    await engine.go_to_next_step()    # executes step 2
    engine.start_auto_play()          # timer takes it from here

============================================================
"""

from .config import EngineConfig
from .dsl import (
    StepBuilder,
    create_scenario,
    create_speed_delay,
    create_step,
    create_step_builder,
    validate_scenario,
)
from .engine import StepByStepEngine
from .keyboard import KeyboardBinding, KeyboardDispatcher, KeyEvent
from .loader import build_scenario, load_scenario_file
from .logs import LogBuffer, MessageBoard
from .models import (
    ExecutionState,
    LoadScenarioConfig,
    LogEntry,
    LogType,
    Message,
    MessageType,
    Position,
    Scenario,
    Step,
    StepBuilderContext,
    ValidationResult,
)
from .registry import (
    Difficulty,
    PatternCategory,
    ScenarioDefinition,
    ScenarioRegistry,
)
from .scheduler import AutoPlayScheduler


__all__ = [
    # Config
    "EngineConfig",
    # Models
    "Step",
    "Scenario",
    "LoadScenarioConfig",
    "ValidationResult",
    "ExecutionState",
    "LogType",
    "LogEntry",
    "MessageType",
    "Message",
    "Position",
    "StepBuilderContext",
    # DSL
    "create_step",
    "create_scenario",
    "create_speed_delay",
    "create_step_builder",
    "validate_scenario",
    "StepBuilder",
    # Engine
    "StepByStepEngine",
    "AutoPlayScheduler",
    # Input
    "KeyEvent",
    "KeyboardDispatcher",
    "KeyboardBinding",
    # Support
    "LogBuffer",
    "MessageBoard",
    "ScenarioRegistry",
    "ScenarioDefinition",
    "PatternCategory",
    "Difficulty",
    "build_scenario",
    "load_scenario_file",
]
