"""
Step Engine - Scenario File Loader.

============================================================
PURPOSE
============================================================
Turns declarative scenario documents into Scenario values.

- Reads JSON or YAML (by file suffix)
- Validates the document with the pydantic schemas
- Maps every step spec onto the matching StepBuilder method
- Reports any parse or validation failure as a
  ScenarioDefinitionError

============================================================
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from core.exceptions import ScenarioDefinitionError

from .dsl import StepBuilder, create_scenario, create_step_builder
from .models import LogType, Position, Scenario, Step, StepBuilderContext
from .schemas import ScenarioFileSchema, StepKind, StepSpecSchema


logger = logging.getLogger(__name__)


YAML_SUFFIXES = (".yaml", ".yml")


def _builder_kwargs(spec: StepSpecSchema) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"explanation": spec.explanation}
    if spec.duration is not None:
        kwargs["duration"] = spec.duration
    return kwargs


def _note_step(builder: StepBuilder, spec: StepSpecSchema) -> Step:
    ctx = builder.context
    log_message = spec.log_message
    pause_ms = spec.pause_ms

    async def action() -> None:
        if log_message:
            ctx.add_log(log_message, LogType.INFO)
        await ctx.delay(pause_ms)

    return builder.custom_step(action=action, **_builder_kwargs(spec))


def build_step(builder: StepBuilder, spec: StepSpecSchema) -> Step:
    """Build one Step from a validated spec."""
    kwargs = _builder_kwargs(spec)

    if spec.kind == StepKind.REQUEST:
        return builder.request_step(
            spec.from_service, spec.to_service, spec.label,
            log_message=spec.log_message, **kwargs,
        )
    if spec.kind == StepKind.RESPONSE:
        return builder.response_step(
            spec.from_service, spec.to_service, spec.label,
            success=spec.success, log_message=spec.log_message, **kwargs,
        )
    if spec.kind == StepKind.CACHE_CHECK:
        return builder.cache_check_step(spec.service, spec.cache, spec.key, **kwargs)
    if spec.kind == StepKind.CACHE_HIT:
        return builder.cache_hit_step(spec.cache, spec.service, spec.value, **kwargs)
    if spec.kind == StepKind.CACHE_MISS:
        return builder.cache_miss_step(spec.cache, spec.service, **kwargs)
    if spec.kind == StepKind.PUBLISH_EVENT:
        return builder.publish_event_step(
            spec.from_service, spec.to_service, spec.event_name, **kwargs,
        )
    if spec.kind == StepKind.CLEANUP:
        return builder.cleanup_step(**kwargs)
    return _note_step(builder, spec)


def build_scenario(
    data: Dict[str, Any],
    context: Optional[StepBuilderContext] = None,
    source: Optional[str] = None,
) -> Scenario:
    """
    Build a Scenario from a parsed scenario document.

    Positions declared in the document are merged over the
    context's own positions.

    Raises:
        ScenarioDefinitionError: If the document does not validate
    """
    try:
        document = ScenarioFileSchema.model_validate(data)
    except ValidationError as e:
        name = data.get("name") if isinstance(data, dict) else None
        raise ScenarioDefinitionError(
            f"Invalid scenario document: {e.error_count()} error(s)",
            scenario_name=name if isinstance(name, str) else None,
            source=source,
            context={"errors": str(e)},
            cause=e,
        ) from e

    context = context or StepBuilderContext()
    if document.positions:
        positions = dict(context.positions)
        for service, pos in document.positions.items():
            positions[service] = Position(x=pos.x, y=pos.y)
        context = replace(context, positions=positions)

    builder = create_step_builder(context)

    steps = [build_step(builder, spec) for spec in document.steps]

    logger.debug(f"Scenario document built | name={document.name} | steps={len(steps)}")
    return create_scenario(
        document.name,
        description=document.description,
        steps=steps,
        metadata=document.metadata,
    )


def _parse_document(text: str, path: Path) -> Any:
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ScenarioDefinitionError(
                f"Scenario file is not valid YAML: {e}",
                source=str(path),
                cause=e,
            ) from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ScenarioDefinitionError(
            f"Scenario file is not valid JSON: {e.msg} (line {e.lineno})",
            source=str(path),
            cause=e,
        ) from e


def load_scenario_file(
    path: Union[str, Path],
    context: Optional[StepBuilderContext] = None,
) -> Scenario:
    """
    Read and build a scenario file.

    Files ending in .yaml or .yml are read with PyYAML, anything
    else as JSON.

    Raises:
        ScenarioDefinitionError: If the file cannot be read, parsed or validated
    """
    path = Path(path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ScenarioDefinitionError(
            f"Cannot read scenario file: {e.strerror or e}",
            source=str(path),
            cause=e,
        ) from e

    data = _parse_document(text, path)

    if not isinstance(data, dict):
        raise ScenarioDefinitionError(
            "Scenario file must contain a mapping at the top level",
            source=str(path),
        )

    scenario = build_scenario(data, context, source=str(path))
    logger.info(f"Scenario file loaded | path={path} | name={scenario.name}")
    return scenario


__all__ = [
    "build_step",
    "build_scenario",
    "load_scenario_file",
]
