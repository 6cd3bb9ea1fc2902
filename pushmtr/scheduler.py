"""Repeat-interval report scheduler with bounded overlap."""

import logging
from PySide6.QtCore import QObject, QTimer, QThreadPool, Signal
from pushmtr.workers import CycleWorker

logger = logging.getLogger(__name__)


class ReportScheduler(QObject):
    """Starts a report cycle every ``interval_s`` seconds.

    Key features:
    - Fixed wall-clock ticks; a cycle's duration does not delay the next tick
    - Slow cycles may overlap, up to ``max_concurrent`` at once
    - Ticks over capacity are skipped, not queued
    - Failed cycles are logged and the next tick proceeds

    Thread-safe: All state access on Qt main thread via signals/slots.
    """

    # Signals
    report_ready = Signal(object)  # Report
    error = Signal(str)  # error message

    def __init__(
        self,
        pipeline,
        interval_s: int,
        max_concurrent: int = 2,
        parent=None,
    ):
        """Initialize report scheduler.

        Args:
            pipeline: ReportPipeline executed on every tick
            interval_s: Seconds between ticks
            max_concurrent: Maximum number of overlapping cycles
            parent: Qt parent object
        """
        super().__init__(parent)

        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")

        self.pipeline = pipeline
        self.interval_s = interval_s
        self.max_concurrent = max_concurrent

        self._in_flight = 0
        self._cycles_started = 0
        self._cycles_failed = 0

        # Generation ID for invalidating results that arrive after stop()
        self._generation_id = 0

        self.thread_pool = QThreadPool.globalInstance()

        self.timer = QTimer()
        self.timer.timeout.connect(self._schedule_tick)

        self.is_running = False

    def start(self):
        """Start ticking."""
        if self.is_running:
            return

        self.is_running = True
        self.timer.start(self.interval_s * 1000)
        logger.info(
            "Repeat mode started: interval=%ds, max_concurrent=%d",
            self.interval_s,
            self.max_concurrent,
        )

    def stop(self):
        """Stop ticking and ignore results of cycles still in flight."""
        if not self.is_running:
            return

        self.is_running = False
        self.timer.stop()
        self._generation_id += 1
        logger.info("Repeat mode stopped (generation_id=%d)", self._generation_id)

    def _schedule_tick(self):
        """Handle timer tick - start a cycle unless at capacity."""
        if not self.is_running:
            return

        if self._in_flight >= self.max_concurrent:
            logger.warning(
                "Tick skipped: %d report cycles still running",
                self._in_flight,
            )
            return

        self._start_cycle()

    def _start_cycle(self):
        self._in_flight += 1
        self._cycles_started += 1

        worker = CycleWorker(self.pipeline, self._generation_id)
        worker.signals.report_ready.connect(self._on_report_ready)
        worker.signals.error.connect(self._on_cycle_error)
        worker.signals.finished.connect(self._on_cycle_finished)

        self.thread_pool.start(worker)

    def _on_report_ready(self, report, generation_id):
        if generation_id != self._generation_id:
            logger.debug("Ignoring stale report: generation_id=%d", generation_id)
            return

        self.report_ready.emit(report)

    def _on_cycle_error(self, error_msg, generation_id):
        self._cycles_failed += 1
        if generation_id != self._generation_id:
            return

        self.error.emit(error_msg)

    def _on_cycle_finished(self):
        self._in_flight = max(0, self._in_flight - 1)
        logger.debug("Cycle finished (in-flight: %d/%d)", self._in_flight, self.max_concurrent)

    def get_stats(self):
        """Get scheduler statistics.

        Returns:
            Dict with scheduler state info
        """
        return {
            "in_flight": self._in_flight,
            "max_concurrent": self.max_concurrent,
            "running": self.is_running,
            "cycles_started": self._cycles_started,
            "cycles_failed": self._cycles_failed,
            "generation_id": self._generation_id,
        }
