"""
Tests for the Keyboard Input Adapter.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from step_engine.keyboard import (
    KEY_NEXT,
    KEY_PREVIOUS,
    KEY_TOGGLE,
    KeyboardBinding,
    KeyboardDispatcher,
    KeyEvent,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def controls():
    controls = MagicMock()
    controls.is_running = True
    controls.go_to_next_step = AsyncMock()
    return controls


@pytest.fixture
def dispatcher():
    return KeyboardDispatcher()


@pytest.fixture
def binding(controls, dispatcher):
    binding = KeyboardBinding(controls, dispatcher)
    yield binding
    binding.close()


# ============================================================
# EVENTS & DISPATCHER
# ============================================================

class TestKeyEvent:
    """Test KeyEvent."""

    def test_prevent_default(self):
        event = KeyEvent(KEY_NEXT)
        event.prevent_default()
        assert event.default_prevented is True

    def test_text_input_detection(self):
        """Test INPUT and TEXTAREA targets are text inputs."""
        assert KeyEvent(KEY_TOGGLE, target_tag="input").from_text_input is True
        assert KeyEvent(KEY_TOGGLE, target_tag="TEXTAREA").from_text_input is True
        assert KeyEvent(KEY_TOGGLE, target_tag="BUTTON").from_text_input is False
        assert KeyEvent(KEY_TOGGLE).from_text_input is False


class TestKeyboardDispatcher:
    """Test KeyboardDispatcher."""

    def test_listener_registration(self, dispatcher):
        listener = MagicMock()

        dispatcher.add_listener(listener)
        dispatcher.add_listener(listener)
        assert dispatcher.listener_count == 1

        dispatcher.remove_listener(listener)
        dispatcher.remove_listener(listener)
        assert dispatcher.listener_count == 0

    def test_listener_error_isolated(self, dispatcher):
        """Test a raising listener does not stop the others."""
        good = MagicMock()
        dispatcher.add_listener(MagicMock(side_effect=RuntimeError("boom")))
        dispatcher.add_listener(good)

        event = dispatcher.dispatch(KeyEvent(KEY_PREVIOUS))

        good.assert_called_once_with(event)


# ============================================================
# BINDING
# ============================================================

class TestKeyboardBinding:
    """Test KeyboardBinding."""

    def test_sync_installs_and_removes(self, binding, dispatcher):
        """Test the listener follows the running flag."""
        binding.sync(True)
        binding.sync(True)
        assert binding.is_installed is True
        assert dispatcher.listener_count == 1

        binding.sync(False)
        assert binding.is_installed is False
        assert dispatcher.listener_count == 0

    @pytest.mark.asyncio
    async def test_arrow_right_advances(self, binding, controls):
        """Test ArrowRight spawns go_to_next_step."""
        event = KeyEvent(KEY_NEXT)

        task = binding.handle(event)
        await task

        assert event.default_prevented is True
        controls.go_to_next_step.assert_awaited_once()

    def test_arrow_left_goes_back(self, binding, controls):
        event = KeyEvent(KEY_PREVIOUS)

        assert binding.handle(event) is None

        assert event.default_prevented is True
        controls.go_to_previous_step.assert_called_once()

    def test_space_toggles(self, binding, controls):
        event = KeyEvent(KEY_TOGGLE)

        binding.handle(event)

        assert event.default_prevented is True
        controls.toggle_auto_play.assert_called_once()

    def test_other_keys_ignored(self, binding, controls):
        """Test unbound keys pass through untouched."""
        event = KeyEvent("Enter")

        binding.handle(event)

        assert event.default_prevented is False
        controls.go_to_previous_step.assert_not_called()
        controls.toggle_auto_play.assert_not_called()

    def test_ignored_when_not_running(self, binding, controls):
        controls.is_running = False
        event = KeyEvent(KEY_TOGGLE)

        binding.handle(event)

        assert event.default_prevented is False
        controls.toggle_auto_play.assert_not_called()

    def test_ignored_from_text_input(self, binding, controls):
        event = KeyEvent(KEY_PREVIOUS, target_tag="TEXTAREA")

        binding.handle(event)

        assert event.default_prevented is False
        controls.go_to_previous_step.assert_not_called()

    def test_arrow_right_without_loop(self, binding, controls):
        """Test ArrowRight outside an event loop is dropped."""
        event = KeyEvent(KEY_NEXT)

        assert binding.handle(event) is None
        controls.go_to_next_step.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_unbinds_and_cancels(self, controls, dispatcher):
        """Test close removes the listener and pending advances."""
        gate = asyncio.Event()

        async def slow_next():
            await gate.wait()

        controls.go_to_next_step = slow_next
        binding = KeyboardBinding(controls, dispatcher)
        binding.install()

        task = binding.handle(KeyEvent(KEY_NEXT))
        await asyncio.sleep(0)
        binding.close()
        await asyncio.sleep(0)

        assert dispatcher.listener_count == 0
        assert task.cancelled()
