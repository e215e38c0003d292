"""Tests for the bounded worker pool."""

import asyncio

from pg_backup.pool import PoolSummary, run_pool


class _Tracker:
    """Counts concurrent units and records what ran."""

    def __init__(self, delay: float = 0.01) -> None:
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.started: list[str] = []
        self.finished: list[str] = []

    async def unit(self, name: str) -> None:
        self.started.append(name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        self.finished.append(name)


class TestRunPool:
    """Exactly-once processing with bounded concurrency."""

    async def test_each_name_once_with_bound(self):
        names = [f"db{i}" for i in range(10)]
        tracker = _Tracker()

        summary = await run_pool(names, 3, tracker.unit)

        assert sorted(tracker.started) == sorted(names)
        assert len(tracker.started) == 10
        assert tracker.max_active == 3
        # Barrier: every unit finished before run_pool returned
        assert sorted(tracker.finished) == sorted(names)
        assert tracker.active == 0
        assert sorted(summary.completed) == sorted(names)
        assert summary.failed == []
        assert summary.not_started == []

    async def test_more_workers_than_names(self):
        tracker = _Tracker()
        summary = await run_pool(["a", "b"], 8, tracker.unit)
        assert sorted(summary.completed) == ["a", "b"]
        assert tracker.max_active == 2

    async def test_workers_floored_at_one(self):
        tracker = _Tracker()
        summary = await run_pool(["a", "b", "c"], 0, tracker.unit)
        assert tracker.max_active == 1
        assert len(summary.completed) == 3

    async def test_empty_queue(self):
        tracker = _Tracker()
        summary = await run_pool([], 4, tracker.unit)
        assert summary == PoolSummary()
        assert tracker.started == []

    async def test_failures_logged_and_pool_continues(self, recorder):
        async def unit(name: str) -> None:
            await asyncio.sleep(0)
            if name in ("b", "d"):
                raise RuntimeError(f"{name} broke")

        summary = await run_pool(
            ["a", "b", "c", "d", "e"], 2, unit, logger=recorder, action="Backing up"
        )

        assert sorted(summary.completed) == ["a", "c", "e"]
        assert sorted(summary.failed) == ["b", "d"]
        warnings = recorder.messages("warning")
        assert "Backing up b failed: b broke" in warnings
        assert "Backing up d failed: d broke" in warnings

    async def test_cancel_before_start(self):
        tracker = _Tracker()
        cancel = asyncio.Event()
        cancel.set()

        summary = await run_pool(["a", "b", "c"], 2, tracker.unit, cancel)

        assert tracker.started == []
        assert summary.not_started == ["a", "b", "c"]

    async def test_cancel_stops_new_jobs(self):
        names = [f"db{i}" for i in range(10)]
        cancel = asyncio.Event()
        release = asyncio.Event()
        started: list[str] = []

        async def unit(name: str) -> None:
            started.append(name)
            if len(started) == 2:
                cancel.set()
                release.set()
            await release.wait()

        summary = await run_pool(names, 2, unit, cancel)

        assert len(started) == 2
        assert len(summary.completed) == 2
        assert len(summary.not_started) == 8
        assert set(summary.not_started).isdisjoint(started)

    async def test_three_databases_two_workers(self, recorder):
        tracker = _Tracker(delay=0.02)

        async def unit(name: str) -> None:
            await tracker.unit(name)
            recorder.info(f"Finished {name}")

        summary = await run_pool(["a", "b", "c"], 2, unit, logger=recorder)

        assert tracker.max_active <= 2
        assert sorted(summary.completed) == ["a", "b", "c"]
        for name in ("a", "b", "c"):
            assert recorder.messages().count(f"Finished {name}") == 1


class TestPoolSummary:
    def test_format_report(self):
        summary = PoolSummary(completed=["a", "b"], failed=["c"])
        assert summary.format_report() == "2 finished, 1 failed"
        assert summary.total == 3

    def test_format_report_with_not_started(self):
        summary = PoolSummary(completed=["a"], not_started=["b", "c"])
        assert summary.format_report() == "1 finished, 0 failed, 2 not started"
