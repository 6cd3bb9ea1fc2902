"""Worker classes for running report cycles in the background."""

import logging

from PySide6.QtCore import QObject, QRunnable, Signal

from pushmtr.errors import PushMtrError

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    """Signals for communicating between worker threads and main thread."""

    report_ready = Signal(object, int)  # Emits (Report, generation_id)
    error = Signal(str, int)  # Emits (error message, generation_id)
    finished = Signal()  # Emits when worker completes


class CycleWorker(QRunnable):
    """Worker that executes pipeline.run_cycle() in a pool thread."""

    def __init__(self, pipeline, generation_id: int):
        super().__init__()
        self.pipeline = pipeline
        self.generation_id = generation_id
        self.signals = WorkerSignals()

    def run(self):
        """Run one report cycle; failures are reported, never raised."""
        try:
            logger.debug("Cycle starting: generation_id=%d", self.generation_id)

            report = self.pipeline.run_cycle()

            self.signals.report_ready.emit(report, self.generation_id)

        except PushMtrError as e:
            logger.error("Report cycle failed: %s", e)
            self.signals.error.emit(str(e), self.generation_id)

        except Exception as e:
            logger.exception("Unexpected error in report cycle: %s", e)
            self.signals.error.emit(str(e), self.generation_id)

        finally:
            self.signals.finished.emit()
