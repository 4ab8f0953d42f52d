"""
Tests for the Auto-Play Scheduler.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from step_engine.models import ExecutionState, Step
from step_engine.scheduler import AutoPlayScheduler


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def advance():
    return AsyncMock()


@pytest.fixture
def scheduler(advance):
    scheduler = AutoPlayScheduler(advance, default_duration_ms=1500)
    yield scheduler
    scheduler.close()


def running_state(current_step=1, durations=(100, 100, 100), auto_play=True):
    return ExecutionState(
        current_step=current_step,
        steps=tuple(Step(explanation=f"s{i}", duration=d) for i, d in enumerate(durations)),
        is_auto_playing=auto_play,
        is_running=True,
        scenario_name="Demo",
    )


# ============================================================
# TESTS
# ============================================================

class TestComputeDelay:
    """Test wait computation."""

    def test_scaled_by_speed(self, scheduler):
        """Test the wait is duration divided by speed."""
        assert scheduler.compute_delay_ms(Step(duration=1000), 2.0) == 500

    def test_default_duration(self, scheduler):
        """Test steps without a duration use the default."""
        assert scheduler.compute_delay_ms(Step(duration=None), 1.0) == 1500
        assert scheduler.compute_delay_ms(Step(duration=0), 3.0) == 500
        assert scheduler.compute_delay_ms(None, 1.0) == 1500


class TestShouldSchedule:
    """Test the scheduling condition."""

    def test_schedules_mid_scenario(self):
        assert AutoPlayScheduler.should_schedule(running_state(current_step=2)) is True

    def test_not_on_last_step(self):
        assert AutoPlayScheduler.should_schedule(running_state(current_step=3)) is False

    def test_not_when_paused(self):
        assert AutoPlayScheduler.should_schedule(running_state(auto_play=False)) is False

    def test_not_when_idle(self):
        state = running_state()
        state.is_running = False
        assert AutoPlayScheduler.should_schedule(state) is False

    def test_not_before_start(self):
        assert AutoPlayScheduler.should_schedule(running_state(current_step=0)) is False


class TestReschedule:
    """Test timer lifecycle."""

    @pytest.mark.asyncio
    async def test_reschedule_arms_timer(self, scheduler):
        """Test a due state arms exactly one timer."""
        delay = scheduler.reschedule(running_state(durations=(1000, 1000)), 2.0)

        assert delay == 500
        assert scheduler.has_pending is True
        assert scheduler.pending_delay_ms == 500

    @pytest.mark.asyncio
    async def test_reschedule_replaces_pending(self, scheduler, advance):
        """Test at most one advance is ever pending."""
        scheduler.reschedule(running_state(durations=(30, 30)), 1.0)
        scheduler.reschedule(running_state(durations=(30, 30)), 1.0)

        await asyncio.sleep(0.1)

        assert advance.await_count == 1

    @pytest.mark.asyncio
    async def test_reschedule_not_due_cancels(self, scheduler, advance):
        """Test rescheduling into a non-due state leaves nothing pending."""
        scheduler.reschedule(running_state(durations=(30, 30)), 1.0)
        result = scheduler.reschedule(running_state(current_step=2, durations=(30, 30)), 1.0)

        await asyncio.sleep(0.08)

        assert result is None
        assert scheduler.has_pending is False
        advance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timer_fires_after_delay(self, scheduler, advance):
        """Test the advance runs once the wait has elapsed."""
        scheduler.reschedule(running_state(durations=(40, 40)), 1.0)

        await asyncio.sleep(0.01)
        advance.assert_not_awaited()

        await asyncio.sleep(0.1)
        advance.assert_awaited_once()
        assert scheduler.has_pending is False
        assert scheduler.pending_delay_ms is None

    @pytest.mark.asyncio
    async def test_cancel(self, scheduler, advance):
        """Test cancel drops the pending advance."""
        scheduler.reschedule(running_state(durations=(30, 30)), 1.0)

        assert scheduler.cancel() is True
        assert scheduler.cancel() is False

        await asyncio.sleep(0.08)
        advance.assert_not_awaited()

    def test_no_event_loop(self, advance):
        """Test scheduling outside a running loop is a no-op."""
        scheduler = AutoPlayScheduler(advance)

        assert scheduler.reschedule(running_state(), 1.0) is None
        assert scheduler.has_pending is False

    @pytest.mark.asyncio
    async def test_close_cancels_running_advance(self):
        """Test close also cancels an advance already in progress."""
        started = asyncio.Event()

        async def slow_advance():
            started.set()
            await asyncio.sleep(10)

        scheduler = AutoPlayScheduler(slow_advance)
        scheduler.reschedule(running_state(durations=(10, 10)), 1.0)
        await asyncio.wait_for(started.wait(), timeout=1.0)

        tasks = list(scheduler._tasks)
        scheduler.close()
        await asyncio.sleep(0)

        assert tasks and all(task.cancelled() or task.done() for task in tasks)
