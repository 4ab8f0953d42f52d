"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the step engine.

- Provides clear exception hierarchy
- Enables specific error handling
- Supports error categorization for logging
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
StepEngineException (base)
├── ConfigurationError
│   ├── InvalidConfigError
│   └── ScenarioDefinitionError
├── ScenarioNotFoundError
└── StepExecutionError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the caller must act on it."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Playback can continue."""

    NON_RECOVERABLE = "non_recoverable"
    """The caller has to fix its input first."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class StepEngineException(Exception):
    """
    Base exception for all step engine errors.

    All exceptions carry:
    - severity: for log levels
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification == ErrorClassification.RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(StepEngineException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


class ScenarioDefinitionError(ConfigurationError):
    """A scenario cannot be built from its definition."""

    def __init__(
        self,
        message: str,
        scenario_name: Optional[str] = None,
        source: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if scenario_name:
            context["scenario_name"] = scenario_name
        if source:
            context["source"] = source

        super().__init__(message, context=context, **kwargs)


# ============================================================
# LOOKUP ERRORS
# ============================================================

class ScenarioNotFoundError(StepEngineException):
    """No scenario is registered under the requested id."""

    default_severity = Severity.MEDIUM

    def __init__(self, scenario_id: str, **kwargs):
        context = kwargs.pop("context", {})
        context["scenario_id"] = scenario_id
        super().__init__(
            f"Scenario not registered: {scenario_id}",
            context=context,
            **kwargs,
        )


# ============================================================
# EXECUTION ERRORS
# ============================================================

class StepExecutionError(StepEngineException):
    """
    A step action raised.

    Raised objects of this type never leave the engine; they are
    logged and handed to the on_step_error callback.
    """

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        step_number: Optional[int] = None,
        explanation: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if step_number is not None:
            context["step_number"] = step_number
        if explanation:
            context["explanation"] = explanation[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# EXCEPTION UTILITIES
# ============================================================

def wrap_exception(
    exc: BaseException,
    wrapper_class: type = StepEngineException,
    message: Optional[str] = None,
    **kwargs,
) -> StepEngineException:
    """Wrap a standard exception in a StepEngineException."""
    msg = message or f"{type(exc).__name__}: {exc}"
    return wrapper_class(message=msg, cause=exc, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "StepEngineException",
    "ConfigurationError",
    "InvalidConfigError",
    "ScenarioDefinitionError",
    "ScenarioNotFoundError",
    "StepExecutionError",
    "wrap_exception",
]
