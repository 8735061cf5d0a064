"""Tests for EventScheduler: fan-out, first-error propagation and cancellation."""

import asyncio

import pytest

from psnoti.errors import ConfigError
from psnoti.scheduler.config import CronEventConfig, RandomEventConfig
from psnoti.scheduler.manager import EventScheduler
from psnoti.scheduler.task import task_for


def random_event(name, random_min="10ms", random_max="20ms"):
    return RandomEventConfig(name, random_min, random_max, ["a", "b"], f"ua-{name}")


def cron_event(name, cron_expr):
    return CronEventConfig(name, cron_expr, ["bell"], f"ua-{name}")


def factory_for(dispatcher):
    def build(event, context):
        return task_for(event, context, dispatcher=dispatcher)
    return build


class TestFanOut:
    @pytest.mark.asyncio
    async def test_every_event_gets_a_task(self, context, recorder):
        events = [random_event("one"), random_event("two"), cron_event("three", "0 0 1 1 *")]
        scheduler = EventScheduler(events, context, task_factory=factory_for(recorder))
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.2)

        assert set(scheduler.tasks) == {"one", "two", "three"}
        assert len(recorder.payloads) >= 2

        context.cancel()
        await asyncio.wait_for(runner, timeout=1)
        assert runner.exception() is None
        assert all(t.done() for t in scheduler.tasks.values())
        assert scheduler.first_error is None

    @pytest.mark.asyncio
    async def test_no_events(self, context):
        await asyncio.wait_for(EventScheduler([], context).run(), timeout=0.5)

    def test_unknown_policy(self, context):
        with pytest.raises(ValueError):
            EventScheduler([], context, on_config_error="ignore")


class TestFailurePropagation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("expression", ["* * * *", "not-a-cron"])
    async def test_bad_cron_cancels_everything(self, context, recorder, expression):
        events = [
            random_event("sleepy", random_min="1h", random_max="2h"),
            cron_event("broken", expression),
            cron_event("yearly", "0 0 1 1 *"),
        ]
        scheduler = EventScheduler(events, context, task_factory=factory_for(recorder))

        with pytest.raises(ConfigError) as exc_info:
            await asyncio.wait_for(scheduler.run(), timeout=1)

        assert exc_info.value.event == "broken"
        assert context.cancelled
        assert all(t.done() for t in scheduler.tasks.values())
        # Only the misconfigured event failed; the rest stopped cleanly
        assert set(scheduler.failures) == {"broken"}
        assert context.session is None

    @pytest.mark.asyncio
    async def test_bad_duration_cancels_everything(self, context, recorder):
        events = [random_event("ok"), random_event("broken", random_min="2s", random_max="1s")]
        scheduler = EventScheduler(events, context, task_factory=factory_for(recorder))

        with pytest.raises(ConfigError, match="random_max"):
            await asyncio.wait_for(scheduler.run(), timeout=1)
        assert set(scheduler.failures) == {"broken"}

    @pytest.mark.asyncio
    async def test_dispatch_failures_do_not_escalate(self, context, failing_recorder):
        events = [random_event("one"), random_event("two")]
        scheduler = EventScheduler(events, context, task_factory=factory_for(failing_recorder))
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.2)

        assert not context.cancelled
        assert len(failing_recorder.payloads) >= 4

        context.cancel()
        await asyncio.wait_for(runner, timeout=1)
        assert runner.exception() is None


class TestIsolatePolicy:
    @pytest.mark.asyncio
    async def test_bad_event_is_skipped(self, context, recorder):
        events = [random_event("good"), cron_event("broken", "not-a-cron")]
        scheduler = EventScheduler(
            events, context, on_config_error="isolate", task_factory=factory_for(recorder)
        )
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.2)

        assert not context.cancelled
        assert set(scheduler.failures) == {"broken"}
        assert len(recorder.payloads) >= 3

        context.cancel()
        await asyncio.wait_for(runner, timeout=1)
        assert runner.exception() is None

    @pytest.mark.asyncio
    async def test_all_events_failing_is_fatal(self, context, recorder):
        events = [cron_event("first", "not-a-cron"), cron_event("second", "* * * *")]
        scheduler = EventScheduler(
            events, context, on_config_error="isolate", task_factory=factory_for(recorder)
        )
        with pytest.raises(ConfigError) as exc_info:
            await asyncio.wait_for(scheduler.run(), timeout=1)
        assert exc_info.value.event == "first"


class TestCancellation:
    @pytest.mark.asyncio
    async def test_shared_signal_is_clean(self, context, recorder):
        events = [random_event("one", "1h", "2h"), cron_event("two", "0 0 1 1 *")]
        scheduler = EventScheduler(events, context, task_factory=factory_for(recorder))
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)

        await asyncio.wait_for(scheduler.stop(), timeout=0.5)
        await asyncio.wait_for(runner, timeout=0.5)
        assert runner.exception() is None
        assert scheduler.failures == {}

    @pytest.mark.asyncio
    async def test_cancelling_the_run_joins_every_task(self, context, recorder):
        events = [random_event("one", "1h", "2h"), random_event("two", "1h", "2h")]
        scheduler = EventScheduler(events, context, task_factory=factory_for(recorder))
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)

        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner
        assert context.cancelled
        assert context.session is None
        assert all(t.done() for t in scheduler.tasks.values())
        assert scheduler.first_error is None

    @pytest.mark.asyncio
    async def test_in_flight_dispatch_finishes(self, context, slow_recorder):
        events = [random_event("one", "1ms", "2ms")]
        scheduler = EventScheduler(events, context, task_factory=factory_for(slow_recorder))
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.02)

        context.cancel()
        await asyncio.wait_for(runner, timeout=0.5)
        assert slow_recorder.in_flight == 0
        assert runner.exception() is None
