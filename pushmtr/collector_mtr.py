"""mtr collector for push-mtr using the system mtr binary."""

import logging
import shutil
import subprocess
import time
from datetime import datetime, timedelta

from pushmtr.errors import MeasurementError, MtrNotFoundError
from pushmtr.models import Location, Report
from pushmtr.mtr_parser import parse_mtr_report

logger = logging.getLogger(__name__)


def find_mtr_bin(name: str = "mtr") -> str | None:
    """Return the full path of the mtr binary found on PATH, or None."""
    return shutil.which(name)


class MtrCollector:
    """Collector that runs ``mtr`` in report mode and builds a Report.

    The binary path is resolved once, at construction time. A missing binary
    is a configuration error and is never retried.
    """

    def __init__(
        self,
        count: int = 10,
        extra_args: list[str] | tuple[str, ...] = (),
        mtr_bin: str | None = None,
    ):
        """Initialize mtr collector.

        Args:
            count: Report cycles passed to ``mtr -c``
            extra_args: Additional arguments appended after the host
            mtr_bin: Path to mtr; looked up on PATH when omitted

        Raises:
            ValueError: If count is not positive
            MtrNotFoundError: If mtr is not on PATH
        """
        if count <= 0:
            raise ValueError("count must be positive")

        if mtr_bin is None:
            mtr_bin = find_mtr_bin()
            if mtr_bin is None:
                raise MtrNotFoundError("mtr binary not found in path")

        self.count = count
        self.extra_args = list(extra_args)
        self.mtr_bin = mtr_bin

        logger.debug("MtrCollector initialized: mtr_bin=%s, count=%d", mtr_bin, count)

    def build_command(self, host: str) -> list[str]:
        """Build the mtr report-mode command line."""
        return [
            self.mtr_bin,
            "--report",
            "-n",
            "-c",
            str(self.count),
            host,
            *self.extra_args,
        ]

    def run(self, host: str) -> tuple[str, timedelta]:
        """Run mtr against ``host`` and return its raw output and elapsed time.

        Raises:
            ValueError: If host is empty
            MeasurementError: If mtr cannot be executed or exits non-zero
        """
        if not host or not host.strip():
            raise ValueError("Host cannot be empty")

        cmd = self.build_command(host)
        logger.debug("Executing mtr: %s", " ".join(cmd))

        start = time.perf_counter()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, shell=False)
        except OSError as e:
            raise MeasurementError(f"Error running the mtr command: {e}") from e
        elapsed = timedelta(seconds=time.perf_counter() - start)

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.debug(
                "mtr failed: host=%s, returncode=%d, stderr=%s",
                host,
                result.returncode,
                stderr[:200] or "(empty)",
            )
            raise MeasurementError(
                f"Error running the mtr command (exit status {result.returncode})",
                returncode=result.returncode,
                stderr=stderr,
            )

        logger.debug("mtr completed: host=%s, elapsed=%.3fs", host, elapsed.total_seconds())
        return result.stdout, elapsed

    def generate_report(self, host: str, location: Location | None = None) -> Report:
        """Measure the path to ``host`` and return a Report.

        Raises:
            MeasurementError: If mtr fails
            ReportParseError: If mtr output is malformed
        """
        timestamp = datetime.now().astimezone()
        raw, elapsed = self.run(host)
        hosts = parse_mtr_report(raw)
        return Report(time=timestamp, hosts=tuple(hosts), elapsed=elapsed, location=location)
