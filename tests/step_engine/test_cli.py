"""
Tests for the terminal player CLI.
"""

import json
import logging
import pytest

from step_engine.cli import (
    build_config,
    create_parser,
    main,
    setup_logging,
    validate_args,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scenario_file(tmp_path):
    path = tmp_path / "demo.json"
    path.write_text(json.dumps({
        "name": "Demo",
        "description": "Three quick steps",
        "steps": [
            {"kind": "note", "explanation": "First", "duration": 20, "pause_ms": 0},
            {"kind": "note", "explanation": "Second", "duration": 20, "pause_ms": 0,
             "log_message": "halfway"},
            {"kind": "note", "explanation": "Third", "duration": 20, "pause_ms": 0},
        ],
    }), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("STEP_ENGINE_SPEED", "STEP_ENGINE_AUTO_PLAY", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("step_engine.config.load_dotenv", lambda: False)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


# ============================================================
# PARSER & CONFIG
# ============================================================

class TestArguments:
    """Test parsing, validation and config building."""

    def test_defaults(self, scenario_file):
        args = create_parser().parse_args([str(scenario_file)])

        assert args.speed is None
        assert args.manual is False
        assert validate_args(args) == []

    def test_missing_file(self, tmp_path):
        args = create_parser().parse_args([str(tmp_path / "nope.json")])

        assert any("not found" in e for e in validate_args(args))

    def test_bad_speed(self, scenario_file):
        args = create_parser().parse_args([str(scenario_file), "--speed", "0"])

        assert "--speed must be positive" in validate_args(args)

    def test_build_config(self, scenario_file):
        args = create_parser().parse_args([
            str(scenario_file), "--speed", "3", "--manual",
            "--log-level", "DEBUG", "--log-format", "json",
        ])

        config = build_config(args)

        assert config.speed_multiplier == 3
        assert config.auto_play is False
        assert config.auto_start is True
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_setup_logging(self):
        setup_logging("WARNING", "json")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1


# ============================================================
# MAIN
# ============================================================

class TestMain:
    """Test main entry point end to end."""

    def test_validate_only(self, scenario_file, capsys):
        assert main([str(scenario_file), "--validate-only"]) == 0
        assert "valid (3 steps)" in capsys.readouterr().out

    def test_show_steps(self, scenario_file, capsys):
        assert main([str(scenario_file), "--show-steps"]) == 0

        out = capsys.readouterr().out
        assert "Scenario: Demo" in out
        assert "3. [    20ms] Third" in out

    def test_invalid_file(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"name": "Bad", "steps": []}), encoding="utf-8")

        assert main([str(path), "--validate-only"]) == 1
        assert "Invalid scenario document" in capsys.readouterr().err

    def test_argument_errors(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.json")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_auto_play(self, scenario_file, capsys):
        assert main([str(scenario_file), "--speed", "4", "--log-level", "ERROR"]) == 0

        out = capsys.readouterr().out
        assert "[1/3] First" in out
        assert "[3/3] Third" in out
        assert "halfway" in out

    def test_manual(self, scenario_file, capsys):
        assert main([str(scenario_file), "--manual", "--log-level", "ERROR"]) == 0

        out = capsys.readouterr().out
        assert out.index("[1/3] First") < out.index("[2/3] Second") < out.index("[3/3] Third")
