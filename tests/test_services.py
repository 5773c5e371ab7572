"""Tests for the event bus, run manager and rate limiter."""

import pytest

from fake_engines import FakeEngine, make_config
from readycheck.errors import RunNotFoundError
from readycheck.models.execution import PhaseId
from readycheck.services.event_bus import EventBus
from readycheck.services.rate_limiter import TokenBucketRateLimiter
from readycheck.services.run_manager import RunManager


# ─── Tests: EventBus ──────────────────────────────────────────────────────────


class TestEventBus:
    @pytest.mark.asyncio
    async def test_publish_reaches_listeners_and_history(self):
        bus = EventBus()
        received = []

        async def listener(event):
            received.append(event)

        bus.subscribe("run_1", listener)
        await bus.publish("run_1", {"type": "run_started"})
        await bus.publish("run_2", {"type": "other"})

        assert received == [{"type": "run_started"}]
        assert bus.get_history("run_1") == [{"type": "run_started"}]

    @pytest.mark.asyncio
    async def test_failing_listener_is_dropped(self):
        bus = EventBus()

        async def broken(event):
            raise ConnectionError("gone")

        bus.subscribe("run_1", broken)
        await bus.publish("run_1", {"type": "a"})

        assert bus.listener_count("run_1") == 0
        assert bus.get_history("run_1") == [{"type": "a"}]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus(max_history=3)
        callback = bus.create_callback("run_1")
        for i in range(5):
            await callback({"seq": i})

        assert [e["seq"] for e in bus.get_history("run_1")] == [2, 3, 4]

        bus.cleanup("run_1")
        assert bus.get_history("run_1") == []


# ─── Tests: RunManager ────────────────────────────────────────────────────────


class TestRunManager:
    @pytest.mark.asyncio
    async def test_execute_completes_and_publishes(self):
        bus = EventBus()
        manager = RunManager(bus)
        engine = FakeEngine()
        record = manager.create_run(make_config(enabled_phases=["static_analysis"]), {PhaseId.STATIC_ANALYSIS: engine})

        assert record.status == "pending"
        await manager.execute(record.run_id)

        assert record.status == "complete"
        assert record.completed_at is not None
        assert record.controller.get_current_result().overall_status == "PASS"
        # Run-level cleanup after the phase-level one
        assert engine.calls == ["initialize", "validate", "cleanup", "cleanup"]
        assert bus.get_history(record.run_id)[-1]["type"] == "run_completed"

    @pytest.mark.asyncio
    async def test_start_schedules_a_task(self):
        manager = RunManager(EventBus())
        record = manager.create_run(make_config(enabled_phases=["static_analysis"]), {"static_analysis": FakeEngine()})

        await manager.start(record.run_id)

        assert record.task.done()
        assert record.status == "complete"

    @pytest.mark.asyncio
    async def test_run_level_failure_marks_error(self, monkeypatch):
        bus = EventBus()
        manager = RunManager(bus)
        record = manager.create_run(make_config(), {})

        async def explode():
            raise RuntimeError("controller crashed")

        monkeypatch.setattr(record.controller, "execute_validation", explode)
        await manager.execute(record.run_id)

        assert record.status == "error"
        assert record.error == "controller crashed"
        assert bus.get_history(record.run_id)[-1]["recoverable"] is False

    def test_unknown_run(self):
        with pytest.raises(RunNotFoundError):
            RunManager(EventBus()).get("run_missing")

    @pytest.mark.asyncio
    async def test_history_evicts_oldest_finished_runs(self):
        manager = RunManager(EventBus(), max_history=2)
        first = manager.create_run(make_config(enabled_phases=[]), {})
        await manager.execute(first.run_id)
        second = manager.create_run(make_config(enabled_phases=[]), {})
        third = manager.create_run(make_config(enabled_phases=[]), {})

        ids = [r.run_id for r in manager.list_runs()]
        assert first.run_id not in ids
        assert set(ids) == {second.run_id, third.run_id}

    def test_pending_runs_are_never_evicted(self):
        manager = RunManager(EventBus(), max_history=1)
        first = manager.create_run(make_config(), {})
        second = manager.create_run(make_config(), {})

        assert {r.run_id for r in manager.list_runs()} == {first.run_id, second.run_id}


# ─── Tests: Rate limiter ──────────────────────────────────────────────────────


def test_token_bucket_limits_per_key():
    limiter = TokenBucketRateLimiter(max_tokens=2, refill_seconds=3600)

    assert limiter.allow_request("a")
    assert limiter.allow_request("a")
    assert not limiter.allow_request("a")
    assert limiter.allow_request("b")
    assert limiter.remaining_tokens("a") == 0
    assert limiter.remaining_tokens("unused") == 2
    assert limiter.reset_time("a") > 0
