"""Entry point for the speedmon service."""

import logging
import shutil
import sys

from PySide6.QtCore import QCoreApplication

from speedmon.config import Settings
from speedmon.errors import PersistenceError
from speedmon.logging_config import configure_logging
from speedmon.runner import FakeRunnerAdapter, Runner
from speedmon.runner_speedtest import SpeedtestRunner
from speedmon.scheduler import MeasurementScheduler, install_signal_handlers
from speedmon.sink import CsvSink

logger = logging.getLogger(__name__)


def build_runner(settings: Settings) -> Runner:
    """Create the runner selected by the settings."""
    if settings.fake_runner:
        logger.info("Using FakeRunnerAdapter (SPEEDMON_RUNNER=fake)")
        return FakeRunnerAdapter(output_mode=settings.output_mode)

    if shutil.which(settings.command) is None:
        # Not fatal: every cycle will fail and be logged until it is installed
        logger.warning("speedtest executable not found on PATH: %s", settings.command)

    return SpeedtestRunner(
        command=settings.command,
        output_mode=settings.output_mode,
        extra_args=settings.extra_args,
        timeout_s=settings.timeout_s,
    )


def main() -> int:
    """Main entry point for the speedmon service."""
    configure_logging()
    logger.info("Starting speedtest monitoring service...")

    try:
        settings = Settings.from_env()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    runner = build_runner(settings)

    sink = CsvSink(settings.csv_path)
    try:
        sink.open()
    except PersistenceError as e:
        logger.critical("Failed to initialize CSV file: %s", e)
        return 1

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)

    scheduler = MeasurementScheduler(
        runner,
        sink,
        interval_ms=settings.interval_ms,
        max_attempts=settings.max_attempts,
        retry_delay_s=settings.retry_delay_s,
    )
    wake_timer = install_signal_handlers(scheduler, app)

    try:
        scheduler.start()
        exit_code = app.exec()
    finally:
        wake_timer.stop()
        scheduler.shutdown()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
