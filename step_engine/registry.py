"""
Step Engine - Scenario Registry.

============================================================
RESPONSIBILITY
============================================================
Catalogue of scenario factories, keyed by id.

- Register scenario factories with descriptive metadata
- Look definitions up by id, category or tag
- Build a Scenario from a definition for a given builder context

Factories are called lazily: nothing is built until build() is
asked for it, so each build gets a fresh set of Steps wired to
the caller's log buffer and message board.

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from core.clock import now_utc
from core.exceptions import (
    ScenarioDefinitionError,
    ScenarioNotFoundError,
)

from .models import Scenario, StepBuilderContext


logger = logging.getLogger(__name__)


ScenarioFactory = Callable[[StepBuilderContext], Scenario]


# ============================================================
# ENUMS
# ============================================================

class PatternCategory(str, Enum):
    """Family of communication pattern a scenario demonstrates."""
    ASYNC = "async"
    SYNC = "sync"
    HYBRID = "hybrid"
    RESILIENCE = "resilience"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# ============================================================
# DEFINITION
# ============================================================

@dataclass
class ScenarioDefinition:
    """A registered scenario factory and what it is about."""
    scenario_id: str
    name: str
    factory: ScenarioFactory
    description: str = ""
    category: PatternCategory = PatternCategory.ASYNC
    difficulty: Difficulty = Difficulty.BEGINNER
    tags: List[str] = field(default_factory=list)
    registered_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, object]:
        return {
            "scenario_id": self.scenario_id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "difficulty": self.difficulty.value,
            "tags": list(self.tags),
            "registered_at": self.registered_at.isoformat(),
        }


# ============================================================
# REGISTRY
# ============================================================

class ScenarioRegistry:
    """
    Central registry for scenario factories.

    Ids are unique; registering an id twice is a definition
    error rather than a silent overwrite.
    """

    def __init__(self):
        self._definitions: Dict[str, ScenarioDefinition] = {}

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, scenario_id: object) -> bool:
        return scenario_id in self._definitions

    # --------------------------------------------------------
    # Registration
    # --------------------------------------------------------

    def register(
        self,
        scenario_id: str,
        name: str,
        factory: ScenarioFactory,
        description: str = "",
        category: PatternCategory = PatternCategory.ASYNC,
        difficulty: Difficulty = Difficulty.BEGINNER,
        tags: Optional[Iterable[str]] = None,
    ) -> ScenarioDefinition:
        """
        Register a scenario factory.

        Args:
            scenario_id: Unique id
            name: Display name
            factory: Callable building the Scenario from a StepBuilderContext
            description: One-line summary
            category: Pattern family
            difficulty: Intended audience level
            tags: Free-form search tags

        Raises:
            ScenarioDefinitionError: If the id is taken or the factory is not callable
        """
        definition = ScenarioDefinition(
            scenario_id=scenario_id,
            name=name,
            factory=factory,
            description=description,
            category=PatternCategory(category),
            difficulty=Difficulty(difficulty),
            tags=list(tags or []),
        )
        self.register_definition(definition)
        return definition

    def register_definition(self, definition: ScenarioDefinition) -> None:
        """Register a scenario from a definition."""
        if not definition.scenario_id:
            raise ScenarioDefinitionError(
                "Scenario definition must have an id",
                scenario_name=definition.name,
            )

        if definition.scenario_id in self._definitions:
            raise ScenarioDefinitionError(
                f"Scenario already registered: {definition.scenario_id}",
                scenario_name=definition.name,
            )

        if not callable(definition.factory):
            raise ScenarioDefinitionError(
                f"Scenario factory is not callable: {definition.scenario_id}",
                scenario_name=definition.name,
            )

        self._definitions[definition.scenario_id] = definition
        logger.debug(f"Registered scenario: {definition.scenario_id}")

    def unregister(self, scenario_id: str) -> bool:
        """Unregister a scenario. Returns True if it was registered."""
        if scenario_id in self._definitions:
            del self._definitions[scenario_id]
            logger.debug(f"Unregistered scenario: {scenario_id}")
            return True
        return False

    # --------------------------------------------------------
    # Lookup
    # --------------------------------------------------------

    def get(self, scenario_id: str) -> ScenarioDefinition:
        definition = self._definitions.get(scenario_id)
        if definition is None:
            raise ScenarioNotFoundError(scenario_id)
        return definition

    def list_definitions(self) -> List[ScenarioDefinition]:
        """All definitions in registration order."""
        return list(self._definitions.values())

    def get_by_category(self, category: PatternCategory) -> List[ScenarioDefinition]:
        category = PatternCategory(category)
        return [d for d in self._definitions.values() if d.category == category]

    def get_by_tag(self, tag: str) -> List[ScenarioDefinition]:
        return [d for d in self._definitions.values() if tag in d.tags]

    # --------------------------------------------------------
    # Building
    # --------------------------------------------------------

    def build(
        self,
        scenario_id: str,
        context: Optional[StepBuilderContext] = None,
    ) -> Scenario:
        """
        Build a fresh Scenario from a registered factory.

        Raises:
            ScenarioNotFoundError: If the id is not registered
            ScenarioDefinitionError: If the factory does not return a Scenario
        """
        definition = self.get(scenario_id)
        scenario = definition.factory(context or StepBuilderContext())
        if not isinstance(scenario, Scenario):
            raise ScenarioDefinitionError(
                f"Factory for {scenario_id} returned {type(scenario).__name__}, "
                f"expected Scenario",
                scenario_name=definition.name,
            )

        logger.info(f"Scenario built | id={scenario_id} | steps={scenario.step_count}")
        return scenario


__all__ = [
    "ScenarioFactory",
    "PatternCategory",
    "Difficulty",
    "ScenarioDefinition",
    "ScenarioRegistry",
]
