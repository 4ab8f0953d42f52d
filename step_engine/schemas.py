"""
Pydantic Schemas for Declarative Scenario Files.

A scenario file is JSON:

    {
      "name": "Cache-aside read",
      "description": "...",
      "positions": {"api": {"x": 20, "y": 50}, "redis": {"x": 60, "y": 30}},
      "steps": [
        {"kind": "request", "from": "client", "to": "api",
         "label": "GET /users/1", "explanation": "Client asks for a user"},
        {"kind": "cache_check", "service": "api", "cache": "redis",
         "key": "user:1", "explanation": "API checks Redis first"}
      ]
    }
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.constants import BUILDER_MESSAGE_DELAY_MS


# =============================================================
# ENUMS
# =============================================================

class StepKind(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    CACHE_CHECK = "cache_check"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    PUBLISH_EVENT = "publish_event"
    CLEANUP = "cleanup"
    NOTE = "note"


# Fields each kind needs besides explanation
REQUIRED_FIELDS: Dict[StepKind, tuple] = {
    StepKind.REQUEST: ("from_service", "to_service", "label"),
    StepKind.RESPONSE: ("from_service", "to_service", "label"),
    StepKind.CACHE_CHECK: ("service", "cache", "key"),
    StepKind.CACHE_HIT: ("cache", "service", "value"),
    StepKind.CACHE_MISS: ("cache", "service"),
    StepKind.PUBLISH_EVENT: ("from_service", "to_service", "event_name"),
    StepKind.CLEANUP: (),
    StepKind.NOTE: (),
}


# =============================================================
# STEP & SCENARIO SCHEMAS
# =============================================================

class PositionSchema(BaseModel):
    """Service position on the canvas, in percent."""
    x: float
    y: float


class StepSpecSchema(BaseModel):
    """One step as written in a scenario file."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    kind: StepKind
    explanation: str = Field(min_length=1)
    duration: Optional[int] = Field(default=None, gt=0)

    from_service: Optional[str] = Field(default=None, alias="from")
    to_service: Optional[str] = Field(default=None, alias="to")
    label: Optional[str] = None
    service: Optional[str] = None
    cache: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None
    event_name: Optional[str] = None
    success: bool = True
    log_message: Optional[str] = None
    pause_ms: int = Field(default=BUILDER_MESSAGE_DELAY_MS, ge=0)

    @model_validator(mode="after")
    def check_kind_fields(self) -> "StepSpecSchema":
        missing = [name for name in REQUIRED_FIELDS[self.kind] if not getattr(self, name)]
        if missing:
            raise ValueError(
                f"{self.kind.value} step requires: {', '.join(missing)}"
            )
        return self


class ScenarioFileSchema(BaseModel):
    """Top-level document of a scenario file."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: str = ""
    positions: Dict[str, PositionSchema] = Field(default_factory=dict)
    steps: List[StepSpecSchema] = Field(min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)
