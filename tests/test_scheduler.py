from __future__ import annotations

import asyncio

import pytest

from core.scheduler import AsyncioScheduler


async def _settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_tick_is_skipped_not_queued_while_job_runs() -> None:
    async def scenario() -> tuple:
        scheduler = AsyncioScheduler()
        release = asyncio.Event()
        state = {"active": 0, "max_active": 0, "started": 0}

        async def job() -> None:
            state["started"] += 1
            state["active"] += 1
            state["max_active"] = max(state["max_active"], state["active"])
            await release.wait()
            state["active"] -= 1

        handle = scheduler.every(3600, job, name="poll")
        fired = [scheduler.trigger(handle)]
        await _settle()
        fired.append(scheduler.trigger(handle))
        fired.append(scheduler.trigger(handle))
        release.set()
        await _settle()
        in_progress_after = handle.in_progress
        await scheduler.shutdown()
        return fired, handle, state, in_progress_after

    fired, handle, state, in_progress_after = asyncio.run(scenario())

    assert fired == [True, False, False]
    assert handle.skips == 2
    assert handle.runs == 1
    assert state["started"] == 1
    assert state["max_active"] == 1
    assert in_progress_after is False


def test_slow_job_never_runs_concurrently_with_itself() -> None:
    async def scenario() -> tuple:
        scheduler = AsyncioScheduler()
        state = {"active": 0, "max_active": 0}

        async def slow_job() -> None:
            state["active"] += 1
            state["max_active"] = max(state["max_active"], state["active"])
            await asyncio.sleep(0.035)
            state["active"] -= 1

        handle = scheduler.every(0.01, slow_job, name="poll", run_immediately=True)
        await asyncio.sleep(0.12)
        await scheduler.shutdown()
        return handle, state

    handle, state = asyncio.run(scenario())

    assert state["max_active"] == 1
    assert handle.skips > 0
    assert handle.runs >= 2


def test_timeout_abandons_the_run_and_frees_the_next_tick() -> None:
    async def scenario() -> tuple:
        scheduler = AsyncioScheduler()
        release = asyncio.Event()
        state = {"started": 0, "finished": 0}

        async def stuck_job() -> None:
            state["started"] += 1
            await release.wait()
            state["finished"] += 1

        handle = scheduler.every(3600, stuck_job, name="alert", timeout=0.01)
        scheduler.trigger(handle)
        await asyncio.sleep(0.05)
        timed_out_in_progress = handle.in_progress
        retriggered = scheduler.trigger(handle)
        # Abandoned work is not cancelled and may still finish on its own.
        release.set()
        await _settle()
        await scheduler.shutdown()
        return handle, state, timed_out_in_progress, retriggered

    handle, state, timed_out_in_progress, retriggered = asyncio.run(scenario())

    assert handle.timeouts == 1
    assert timed_out_in_progress is False
    assert retriggered is True
    assert state["started"] == 2
    assert state["finished"] == 2


def test_failing_job_is_reported_as_a_fault() -> None:
    faults: list[tuple[str, BaseException]] = []

    async def scenario():
        scheduler = AsyncioScheduler(on_fault=lambda name, error: faults.append((name, error)))

        async def broken_job() -> None:
            raise RuntimeError("boom")

        handle = scheduler.every(3600, broken_job, name="flush", run_immediately=True)
        await _settle()
        await scheduler.shutdown()
        return handle

    handle = asyncio.run(scenario())

    assert handle.failures == 1
    assert handle.in_progress is False
    assert [name for name, _ in faults] == ["flush"]
    assert isinstance(faults[0][1], RuntimeError)


def test_cancel_stops_future_ticks() -> None:
    async def scenario():
        scheduler = AsyncioScheduler()
        calls = []

        async def job() -> None:
            calls.append(1)

        handle = scheduler.every(0.01, job, name="poll")
        scheduler.cancel(handle)
        await asyncio.sleep(0.05)
        triggered = scheduler.trigger(handle)
        return handle, calls, triggered, scheduler.handles

    handle, calls, triggered, handles = asyncio.run(scenario())

    assert handle.cancelled
    assert calls == []
    assert triggered is False
    assert handles == []


def test_interval_must_be_positive() -> None:
    async def scenario() -> None:
        async def job() -> None:
            return None

        AsyncioScheduler().every(0, job, name="poll")

    with pytest.raises(ValueError):
        asyncio.run(scenario())
