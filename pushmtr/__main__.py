"""Entry point for push-mtr."""

import logging
import os
import signal
import sys
from typing import Mapping

from PySide6.QtCore import QCoreApplication

from pushmtr.collector_mtr import MtrCollector
from pushmtr.config import ProbeConfig
from pushmtr.errors import ConfigurationError, PushMtrError
from pushmtr.geoip import LocationResolver
from pushmtr.logging_config import configure_logging
from pushmtr.pipeline import ReportPipeline
from pushmtr.publisher import MqttPublisher, StdoutPublisher
from pushmtr.scheduler import ReportScheduler
from pushmtr.transport import new_tls_context, select_candidates

logger = logging.getLogger(__name__)


def build_pipeline(config: ProbeConfig) -> ReportPipeline:
    """Wire collector, resolver and publisher for the given configuration.

    Raises:
        ConfigurationError: If mtr is missing or the CA file is unreadable
    """
    collector = MtrCollector(count=config.count, extra_args=config.extra_args)

    if config.stdout:
        publisher = StdoutPublisher()
    else:
        tls_context = new_tls_context(config.cafile, config.insecure)
        candidates = select_candidates(config.broker_urls, tls_context)
        publisher = MqttPublisher(
            candidates,
            topic=config.topic,
            client_id=config.client_id,
            tls_context=tls_context,
            insecure=config.insecure,
            reselect=lambda: select_candidates(config.broker_urls, tls_context),
        )

    return ReportPipeline(
        collector=collector,
        resolver=LocationResolver(),
        publisher=publisher,
        host=config.host,
        location_query=config.location_query,
    )


def run_repeat(pipeline: ReportPipeline, config: ProbeConfig) -> int:
    """Run report cycles on a timer until the process is interrupted."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    # Let Ctrl-C terminate the Qt event loop
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    scheduler = ReportScheduler(
        pipeline,
        interval_s=config.repeat,
        max_concurrent=config.max_concurrent,
    )
    scheduler.error.connect(lambda msg: print(msg, file=sys.stderr))
    scheduler.start()

    status = app.exec()

    scheduler.stop()
    scheduler.thread_pool.waitForDone()
    return status


def main(environ: Mapping[str, str] | None = None) -> int:
    """Main entry point for push-mtr.

    Returns:
        Process exit status: 0 on success, 1 on any fatal failure
    """
    configure_logging()
    logger.info("Starting push-mtr")

    try:
        config = ProbeConfig.from_env(environ if environ is not None else os.environ)
        pipeline = build_pipeline(config)
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 1

    try:
        if not config.single_shot:
            return run_repeat(pipeline, config)

        try:
            pipeline.run_cycle()
        except PushMtrError as e:
            print(str(e), file=sys.stderr)
            return 1
        return 0
    finally:
        pipeline.publisher.close()


if __name__ == "__main__":
    sys.exit(main())
