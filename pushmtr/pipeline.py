"""One report cycle: measure, locate, join and deliver."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from pushmtr.models import Location, Report
from pushmtr.publisher import Publisher

logger = logging.getLogger(__name__)


class Collector(Protocol):
    """Protocol defining the interface for report collectors."""

    def generate_report(self, host: str, location: Location | None = None) -> Report:
        """Measure the path to host and return a Report."""
        ...


class Resolver(Protocol):
    def resolve(self, query: str | None = None) -> Location:
        ...


class ReportPipeline:
    """Runs report cycles for a single target host.

    The mtr run and the location lookup execute concurrently; the report is
    only finalized once both are done, and only then delivered.
    """

    def __init__(
        self,
        collector: Collector,
        resolver: Resolver,
        publisher: Publisher,
        host: str,
        location_query: str | None = None,
    ):
        self.collector = collector
        self.resolver = resolver
        self.publisher = publisher
        self.host = host
        self.location_query = location_query

    def measure(self) -> Report:
        """Run mtr and the location lookup concurrently and join them.

        Raises:
            MeasurementError: If mtr fails or its output cannot be parsed
            LocationResolutionError: If a requested place name was not found
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="cycle") as pool:
            location_future = pool.submit(self.resolver.resolve, self.location_query)
            report_future = pool.submit(self.collector.generate_report, self.host)
            report = report_future.result()
            location = location_future.result()

        if location.is_unknown:
            logger.info("Probe location unknown for this cycle")
        return report.with_location(location)

    def run_cycle(self) -> Report:
        """Measure and deliver one report.

        Raises:
            PushMtrError: Any measurement, resolution or delivery failure
        """
        report = self.measure()
        logger.info(
            "Report ready: host=%s, hops=%d, elapsed=%.2fs",
            self.host,
            report.hops,
            report.elapsed.total_seconds(),
        )
        self.publisher.publish(report)
        return report
