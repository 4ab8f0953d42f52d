"""
Step Engine - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the step engine and its terminal player.

Values come from code, from the CLI, or from the environment
(a .env file is honoured through python-dotenv).

============================================================
"""

import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_SPEED_MULTIPLIER,
    DEFAULT_STEP_DURATION_MS,
    LOG_BUFFER_SIZE,
)


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ============================================================
# ENGINE CONFIGURATION
# ============================================================

@dataclass
class EngineConfig:
    """Configuration for StepByStepEngine."""

    # Playback
    speed_multiplier: float = DEFAULT_SPEED_MULTIPLIER
    """Divides every auto-play wait. Must be positive."""

    default_step_duration_ms: int = DEFAULT_STEP_DURATION_MS
    """Auto-advance wait for steps without a duration."""

    # load_scenario defaults
    auto_start: bool = True
    """Execute step 1 immediately when a scenario is loaded."""

    auto_play: bool = False
    """Enable auto-play when a scenario is loaded."""

    # Logging
    log_level: str = "INFO"
    """Logging level."""

    log_format: str = "text"
    """Log output format (json or text)."""

    log_buffer_size: int = LOG_BUFFER_SIZE
    """Lines kept by the scenario LogBuffer."""

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables (and .env)."""
        load_dotenv()
        return cls(
            speed_multiplier=float(
                os.getenv("STEP_ENGINE_SPEED", str(DEFAULT_SPEED_MULTIPLIER))
            ),
            default_step_duration_ms=int(
                os.getenv("STEP_ENGINE_DEFAULT_DURATION_MS", str(DEFAULT_STEP_DURATION_MS))
            ),
            auto_start=_env_flag("STEP_ENGINE_AUTO_START", "true"),
            auto_play=_env_flag("STEP_ENGINE_AUTO_PLAY", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
            log_buffer_size=int(
                os.getenv("STEP_ENGINE_LOG_BUFFER_SIZE", str(LOG_BUFFER_SIZE))
            ),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.speed_multiplier <= 0:
            errors.append("speed_multiplier must be positive")

        if self.default_step_duration_ms <= 0:
            errors.append("default_step_duration_ms must be positive")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.log_format not in LOG_FORMATS:
            errors.append(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        if self.log_buffer_size < 1:
            errors.append("log_buffer_size must be at least 1")

        return errors


__all__ = [
    "EngineConfig",
    "LOG_LEVELS",
    "LOG_FORMATS",
]
