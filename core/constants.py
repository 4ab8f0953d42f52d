"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all engine-wide constants.

- Provides single source of truth for timing values
- Enables consistent behavior across modules
- Documents the meaning of each constant

All durations are milliseconds, matching Step.duration.

============================================================
"""

# ============================================================
# STEP TIMING
# ============================================================

DEFAULT_STEP_DURATION_MS = 1500
"""Auto-advance wait for a step that does not set its own duration."""

BUILDER_STEP_DURATION_MS = 2000
"""Duration given to every step produced by the step builder."""

BUILDER_MESSAGE_DELAY_MS = 500
"""Pause a builder step takes after emitting its message."""

# ============================================================
# PLAYBACK
# ============================================================

DEFAULT_SPEED_MULTIPLIER = 1.0
"""Normal playback speed. 2.0 halves every wait."""

# ============================================================
# LOGGING
# ============================================================

LOG_BUFFER_SIZE = 10
"""Number of entries the rolling scenario log keeps."""


__all__ = [
    "DEFAULT_STEP_DURATION_MS",
    "BUILDER_STEP_DURATION_MS",
    "BUILDER_MESSAGE_DELAY_MS",
    "DEFAULT_SPEED_MULTIPLIER",
    "LOG_BUFFER_SIZE",
]
