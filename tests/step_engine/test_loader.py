"""
Tests for declarative scenario files.
"""

import json
import pytest
import yaml
from unittest.mock import AsyncMock

from core.exceptions import ConfigurationError, ScenarioDefinitionError
from step_engine.dsl import validate_scenario
from step_engine.loader import build_scenario, load_scenario_file
from step_engine.logs import LogBuffer, MessageBoard
from step_engine.models import LogType, MessageType, Position, StepBuilderContext
from step_engine.schemas import ScenarioFileSchema, StepKind, StepSpecSchema


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def document():
    return {
        "name": "Cache-aside read",
        "description": "Read through Redis",
        "positions": {"api": {"x": 20, "y": 50}, "redis": {"x": 60, "y": 30}},
        "steps": [
            {"kind": "request", "from": "client", "to": "api",
             "label": "GET /users/1", "explanation": "Client asks for a user",
             "log_message": "GET /users/1"},
            {"kind": "cache_check", "service": "api", "cache": "redis",
             "key": "user:1", "explanation": "API checks Redis", "duration": 3000},
            {"kind": "cache_hit", "cache": "redis", "service": "api",
             "value": "{id: 1}", "explanation": "Redis has it"},
            {"kind": "cache_miss", "cache": "redis", "service": "api",
             "explanation": "Or not"},
            {"kind": "publish_event", "from": "api", "to": "kafka",
             "event_name": "UserRead", "explanation": "API publishes"},
            {"kind": "response", "from": "api", "to": "client", "label": "200 OK",
             "explanation": "API answers", "success": True},
            {"kind": "note", "explanation": "Pause for effect",
             "log_message": "Thinking", "pause_ms": 250},
            {"kind": "cleanup", "explanation": "Done"},
        ],
    }


@pytest.fixture
def sinks():
    return LogBuffer(), MessageBoard(), AsyncMock()


@pytest.fixture
def context(sinks):
    buffer, board, delay = sinks
    return StepBuilderContext.from_sinks(buffer, board, delay)


# ============================================================
# SCHEMAS
# ============================================================

class TestSchemas:
    """Test pydantic validation of scenario documents."""

    def test_valid_document(self, document):
        parsed = ScenarioFileSchema.model_validate(document)

        assert parsed.name == "Cache-aside read"
        assert parsed.steps[0].kind == StepKind.REQUEST
        assert parsed.steps[0].from_service == "client"
        assert parsed.positions["api"].x == 20

    def test_kind_requires_fields(self):
        with pytest.raises(ValueError):
            StepSpecSchema.model_validate(
                {"kind": "cache_check", "explanation": "x", "service": "api"}
            )

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            StepSpecSchema.model_validate({"kind": "note", "explanation": "x", "colour": "red"})

    def test_non_positive_duration_rejected(self):
        with pytest.raises(ValueError):
            StepSpecSchema.model_validate({"kind": "note", "explanation": "x", "duration": 0})

    def test_empty_steps_rejected(self):
        with pytest.raises(ValueError):
            ScenarioFileSchema.model_validate({"name": "Empty", "steps": []})


# ============================================================
# BUILDING
# ============================================================

class TestBuildScenario:
    """Test build_scenario."""

    def test_builds_every_step(self, document, context):
        scenario = build_scenario(document, context)

        assert scenario.name == "Cache-aside read"
        assert scenario.description == "Read through Redis"
        assert scenario.step_count == 8
        assert validate_scenario(scenario).valid is True

    def test_durations(self, document, context):
        """Test explicit durations win over the builder default."""
        scenario = build_scenario(document, context)

        assert scenario.steps[0].duration == 2000
        assert scenario.steps[1].duration == 3000

    @pytest.mark.asyncio
    async def test_actions_use_context(self, document, context, sinks):
        """Test built actions write to the given sinks."""
        buffer, board, delay = sinks
        scenario = build_scenario(document, context)

        for step in scenario.steps[:3]:
            await step.action()

        assert [e.message for e in buffer.entries] == [
            "GET /users/1",
            "Checking redis cache...",
            "Cache HIT! Retrieved from redis",
        ]
        assert [m.message_type for m in board.messages] == [
            MessageType.HTTP,
            MessageType.CACHE,
            MessageType.CACHE,
        ]
        assert board.messages[1].path == (Position(20, 50), Position(60, 30))

    @pytest.mark.asyncio
    async def test_note_step(self, document, context, sinks):
        buffer, board, delay = sinks
        scenario = build_scenario(document, context)

        await scenario.steps[6].action()

        assert buffer.entries[-1].message == "Thinking"
        assert buffer.entries[-1].log_type == LogType.INFO
        delay.assert_awaited_once_with(250)

    def test_positions_do_not_leak_into_context(self, document, context):
        """Test document positions leave the caller's context untouched."""
        build_scenario(document, context)

        assert context.positions == {}

    def test_invalid_document(self):
        with pytest.raises(ScenarioDefinitionError) as exc_info:
            build_scenario({"name": "Broken", "steps": [{"kind": "teleport", "explanation": "x"}]})

        assert exc_info.value.context["scenario_name"] == "Broken"
        assert "errors" in exc_info.value.context


class TestLoadScenarioFile:
    """Test load_scenario_file."""

    def test_load(self, tmp_path, document, context):
        path = tmp_path / "cache.json"
        path.write_text(json.dumps(document), encoding="utf-8")

        scenario = load_scenario_file(path, context)

        assert scenario.step_count == 8

    def test_load_yaml(self, tmp_path, document, context):
        """Test .yaml files are read with PyYAML."""
        path = tmp_path / "cache.yaml"
        path.write_text(yaml.safe_dump(document), encoding="utf-8")

        scenario = load_scenario_file(path, context)

        assert scenario.name == "Cache-aside read"
        assert scenario.steps[0].duration == 2000
        assert scenario.steps[1].duration == 3000

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("name: [unclosed", encoding="utf-8")

        with pytest.raises(ScenarioDefinitionError) as exc_info:
            load_scenario_file(path)

        assert "YAML" in exc_info.value.message

    def test_missing_file(self, tmp_path):
        with pytest.raises(ScenarioDefinitionError) as exc_info:
            load_scenario_file(tmp_path / "missing.json")

        assert exc_info.value.context["source"].endswith("missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_scenario_file(path)

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ScenarioDefinitionError):
            load_scenario_file(path)
