"""
Step Engine - CLI.

============================================================
RESPONSIBILITY
============================================================
Terminal player for declarative (JSON or YAML) scenario files.

- Provides argparse-based CLI
- Validates or lists a scenario file without playing it
- Plays a scenario with auto-play, or steps through it manually
- Loads configuration from CLI and environment

============================================================
USAGE
============================================================
python -m step_engine.cli scenarios/cache_aside.json
python -m step_engine.cli scenarios/cache_aside.json --speed 2
python -m step_engine.cli scenarios/cache_aside.json --validate-only
python -m step_engine.cli scenarios/cache_aside.yaml --show-steps

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from core.exceptions import ConfigurationError, StepEngineException

from .config import LOG_FORMATS, LOG_LEVELS, EngineConfig
from .dsl import create_speed_delay, validate_scenario
from .engine import StepByStepEngine
from .loader import load_scenario_file
from .logs import LogBuffer, MessageBoard
from .models import LoadScenarioConfig, Scenario, Step, StepBuilderContext


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up logging for the terminal player.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("step_engine")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="step-engine",
        description="Play a step-by-step scenario file in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s cache_aside.json                  # Auto-play at normal speed
  %(prog)s cache_aside.json --speed 2        # Auto-play twice as fast
  %(prog)s cache_aside.json --manual         # Step through without timers
  %(prog)s cache_aside.json --validate-only  # Check the file and exit
        """
    )

    parser.add_argument(
        "scenario_file",
        type=str,
        metavar="SCENARIO_FILE",
        help="Path to a JSON or YAML scenario file",
    )

    # --------------------------------------------------------
    # Playback Options
    # --------------------------------------------------------
    playback_group = parser.add_argument_group("Playback Options")

    playback_group.add_argument(
        "--speed",
        type=float,
        default=None,
        help="Playback speed multiplier (default: STEP_ENGINE_SPEED or 1.0)",
    )

    playback_group.add_argument(
        "--manual",
        action="store_true",
        help="Advance step by step without the auto-play timer",
    )

    # --------------------------------------------------------
    # Inspection Options
    # --------------------------------------------------------
    inspect_group = parser.add_argument_group("Inspection Options")

    inspect_group.add_argument(
        "--validate-only",
        action="store_true",
        help="Validate the scenario and exit (0 = valid, 1 = invalid)",
    )

    inspect_group.add_argument(
        "--show-steps",
        action="store_true",
        help="List the scenario steps and exit",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=list(LOG_LEVELS),
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=list(LOG_FORMATS),
        default=None,
        help="Logging format (default: LOG_FORMAT or text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Args:
        args: Parsed arguments

    Returns:
        List of validation errors
    """
    errors = []

    if not Path(args.scenario_file).is_file():
        errors.append(f"Scenario file not found: {args.scenario_file}")

    if args.speed is not None and args.speed <= 0:
        errors.append("--speed must be positive")

    if args.validate_only and args.show_steps:
        errors.append("--validate-only and --show-steps are mutually exclusive")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> EngineConfig:
    """
    Build engine configuration from environment and CLI arguments.

    CLI values win over environment values.
    """
    config = EngineConfig.from_env()

    if args.speed is not None:
        config.speed_multiplier = args.speed
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    config.auto_start = True
    config.auto_play = not args.manual

    return config


# ============================================================
# SHOW STEPS
# ============================================================

def show_steps(scenario: Scenario) -> None:
    """Print the numbered steps of a scenario."""
    print(f"\nScenario: {scenario.name}")
    if scenario.description:
        print(f"  {scenario.description}")
    print("=" * 60)

    for i, step in enumerate(scenario.steps, 1):
        duration = f"{step.duration}ms" if step.duration else "default"
        print(f"  {i:2d}. [{duration:>8s}] {step.explanation}")

    print()


# ============================================================
# PLAYBACK
# ============================================================

async def play_scenario(
    scenario: Scenario,
    config: EngineConfig,
    log_buffer: LogBuffer,
) -> int:
    """
    Play a scenario to its last step.

    With config.auto_play the auto-advance timer drives the
    engine; otherwise every step is requested in turn.

    Returns:
        Exit code (1 if any step action failed)
    """
    finished = asyncio.Event()
    failures: List[int] = []
    total = scenario.step_count

    def on_step_change(step_number: int, step: Step) -> None:
        print(f"[{step_number}/{total}] {step.explanation}")

    def on_step_error(step_number: int, step: Step, error: StepEngineException) -> None:
        failures.append(step_number)
        print(f"  ! step {step_number} failed: {error.message}")

    engine = StepByStepEngine(
        config=config,
        on_scenario_complete=finished.set,
        on_step_change=on_step_change,
        on_step_error=on_step_error,
    )

    async with engine:
        await engine.load(
            scenario,
            LoadScenarioConfig(auto_start=config.auto_start, auto_play=config.auto_play),
        )

        if config.auto_play:
            if not engine.is_complete:
                await finished.wait()
        else:
            while engine.can_go_next:
                await engine.go_to_next_step()

    print("\nRecent log:")
    for entry in log_buffer.entries:
        print(f"  {entry.timestamp} [{entry.log_type.value:>7s}] {entry.message}")
    print()

    return 1 if failures else 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, config: EngineConfig) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments
        config: Engine configuration

    Returns:
        Exit code
    """
    log_buffer = LogBuffer(max_entries=config.log_buffer_size)
    context = StepBuilderContext.from_sinks(
        log_buffer=log_buffer,
        message_board=MessageBoard(),
        delay=create_speed_delay(config.speed_multiplier),
    )

    try:
        scenario = load_scenario_file(args.scenario_file, context)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        errors = e.context.get("errors")
        if errors:
            print(errors, file=sys.stderr)
        return 1

    if args.validate_only:
        result = validate_scenario(scenario)
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        if result.valid:
            print(f"{scenario.name}: valid ({scenario.step_count} steps)")
        return 0 if result.valid else 1

    if args.show_steps:
        show_steps(scenario)
        return 0

    try:
        return await play_scenario(scenario, config, log_buffer)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: invalid environment configuration: {e}", file=sys.stderr)
        return 1

    config_errors = config.validate()
    if config_errors:
        for error in config_errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)

    try:
        return asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
