"""Unit tests for ReportScheduler and CycleWorker."""

from datetime import datetime

import pytest
from PySide6.QtCore import QCoreApplication, QThreadPool

from pushmtr.errors import DeliveryError
from pushmtr.models import Report
from pushmtr.scheduler import ReportScheduler
from pushmtr.workers import CycleWorker


@pytest.fixture(scope="module")
def qapp():
    """Create QCoreApplication instance for tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


class FakePipeline:
    def __init__(self, error=None):
        self.error = error
        self.cycles = 0

    def run_cycle(self):
        self.cycles += 1
        if self.error is not None:
            raise self.error
        return Report(time=datetime.now())


class SyncPool:
    """Thread pool stand-in that runs workers inline."""

    def __init__(self, run=True):
        self.run = run
        self.started = []

    def start(self, worker):
        self.started.append(worker)
        if self.run:
            worker.run()


class TestReportScheduler:
    """Test suite for ReportScheduler class."""

    def test_initial_state(self, qapp):
        """Verify scheduler starts in correct initial state."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=60)

        assert not scheduler.is_running
        assert scheduler.get_stats()["in_flight"] == 0
        assert scheduler.max_concurrent == 2

    def test_invalid_interval(self, qapp):
        """Test the interval must be positive."""
        with pytest.raises(ValueError, match="interval_s must be positive"):
            ReportScheduler(FakePipeline(), interval_s=0)

    def test_start_sets_timer_interval(self, qapp):
        """Test the timer fires every interval_s seconds."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=30)
        scheduler.start()

        assert scheduler.is_running
        assert scheduler.timer.isActive()
        assert scheduler.timer.interval() == 30_000

        scheduler.stop()

    def test_stop(self, qapp):
        """Test stopping halts the timer and bumps the generation."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=30)
        scheduler.start()
        scheduler.stop()

        assert not scheduler.is_running
        assert not scheduler.timer.isActive()
        assert scheduler.get_stats()["generation_id"] == 1

    def test_thread_pool_reference(self, qapp):
        """Test that scheduler has thread pool reference."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=30)
        assert isinstance(scheduler.thread_pool, QThreadPool)

    def test_tick_runs_cycle(self, qapp):
        """Test a tick starts a cycle and forwards the report."""
        pipeline = FakePipeline()
        scheduler = ReportScheduler(pipeline, interval_s=30)
        scheduler.thread_pool = SyncPool()
        reports = []
        scheduler.report_ready.connect(reports.append)

        scheduler.start()
        scheduler._schedule_tick()
        scheduler.stop()

        assert pipeline.cycles == 1
        assert len(reports) == 1
        assert scheduler.get_stats()["in_flight"] == 0

    def test_tick_ignored_when_stopped(self, qapp):
        """Test ticks do nothing when not running."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=30)
        scheduler.thread_pool = SyncPool()

        scheduler._schedule_tick()

        assert scheduler.thread_pool.started == []

    def test_failed_cycle_keeps_running(self, qapp):
        """Test a failed cycle is reported and the next tick still runs."""
        pipeline = FakePipeline(error=DeliveryError("Connection to the broker(s) failed"))
        scheduler = ReportScheduler(pipeline, interval_s=30)
        scheduler.thread_pool = SyncPool()
        errors = []
        scheduler.error.connect(errors.append)

        scheduler.start()
        scheduler._schedule_tick()
        scheduler._schedule_tick()

        assert scheduler.is_running
        assert pipeline.cycles == 2
        assert errors == ["Connection to the broker(s) failed"] * 2
        assert scheduler.get_stats()["cycles_failed"] == 2
        scheduler.stop()

    def test_overlap_bounded(self, qapp):
        """Test cycles overlap up to max_concurrent, then ticks are skipped."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=30, max_concurrent=2)
        pool = SyncPool(run=False)
        scheduler.thread_pool = pool

        scheduler.start()
        scheduler._schedule_tick()
        scheduler._schedule_tick()
        scheduler._schedule_tick()

        assert len(pool.started) == 2
        assert scheduler.get_stats()["in_flight"] == 2

        # One cycle completes, so the next tick may start another
        pool.started[0].run()
        scheduler._schedule_tick()

        assert len(pool.started) == 3
        scheduler.stop()

    def test_stale_report_ignored(self, qapp):
        """Test reports finishing after stop() are not forwarded."""
        scheduler = ReportScheduler(FakePipeline(), interval_s=30)
        pool = SyncPool(run=False)
        scheduler.thread_pool = pool
        reports = []
        scheduler.report_ready.connect(reports.append)

        scheduler.start()
        scheduler._schedule_tick()
        scheduler.stop()
        pool.started[0].run()

        assert reports == []
        assert scheduler.get_stats()["in_flight"] == 0


class TestCycleWorker:
    """Test the runnable wrapping one cycle."""

    def test_emits_report(self, qapp):
        """Test a successful cycle emits report_ready then finished."""
        worker = CycleWorker(FakePipeline(), generation_id=3)
        events = []
        worker.signals.report_ready.connect(lambda report, gen: events.append(("report", gen)))
        worker.signals.finished.connect(lambda: events.append(("finished", None)))

        worker.run()

        assert events == [("report", 3), ("finished", None)]

    def test_unexpected_exception_contained(self, qapp):
        """Test non push-mtr exceptions are reported, not raised."""
        worker = CycleWorker(FakePipeline(error=RuntimeError("bug")), generation_id=0)
        errors = []
        worker.signals.error.connect(lambda msg, gen: errors.append(msg))

        worker.run()

        assert errors == ["bug"]
