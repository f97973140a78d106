"""Periodic measurement scheduler with graceful shutdown."""

import enum
import json
import logging
import signal
import time

from PySide6.QtCore import QCoreApplication, QObject, QTimer, Signal

from speedmon.config import MAX_INTERVAL_MS
from speedmon.errors import PersistenceError, RetriesExhausted, RetryCancelled
from speedmon.models import Measurement
from speedmon.retry import RetryPolicy
from speedmon.runner import Runner
from speedmon.sink import CsvSink

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# Longest uninterrupted sleep while waiting between retry attempts
WAIT_SLICE_S = 0.5


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class MeasurementScheduler(QObject):
    """Runs one retry-wrapped measurement cycle per timer tick.

    Key features:
    - One immediate cycle on start, then one per interval
    - Interval is fixed; a slow cycle shortens the wait for the next tick
    - Cycles never overlap: the event loop runs them one at a time
    - Results are logged as JSON and appended to the CSV sink
    - Shutdown requests cancel pending retries, not a running speedtest

    Single-threaded: all state is touched from the Qt event loop, or from
    Python signal handlers that run on the same thread.
    """

    # Signals
    measurement_ready = Signal(object)  # Measurement
    cycle_failed = Signal(str)  # error message
    stopped = Signal()

    def __init__(
        self,
        runner: Runner,
        sink: CsvSink,
        interval_ms: int = 30 * 60 * 1000,
        max_attempts: int = 3,
        retry_delay_s: float = 60.0,
        retry_policy: RetryPolicy | None = None,
        parent=None,
    ):
        """Initialize the scheduler.

        Args:
            runner: Runner performing one measurement attempt
            sink: Open CSV sink; closed by shutdown()
            interval_ms: Period between cycles in milliseconds
            max_attempts: Attempts per cycle
            retry_delay_s: Delay between attempts; cut short by a shutdown request
            retry_policy: Replaces the policy built from max_attempts and
                retry_delay_s
            parent: Qt parent object
        """
        super().__init__(parent)

        if not 0 < interval_ms <= MAX_INTERVAL_MS:
            raise ValueError(f"interval_ms must be between 1 and {MAX_INTERVAL_MS}")

        self.runner = runner
        self.sink = sink
        self.interval_ms = interval_ms

        # Plain attributes only: request_shutdown() may run inside a signal
        # handler that interrupted this thread, so it must not take locks
        self._shutdown_requested = False
        self._shutdown_signal = None

        if retry_policy is None:
            retry_policy = RetryPolicy(
                max_attempts=max_attempts,
                delay_s=retry_delay_s,
                sleep=self.wait_unless_stopped,
            )
        self.retry_policy = retry_policy

        self.state = SchedulerState.IDLE
        self.cycle_count = 0

        # Timer for periodic cycles
        self.timer = QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self._on_tick)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    def wait_unless_stopped(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, returning early once shutdown is requested.

        Sleeps in short slices so a signal handler setting the flag is
        noticed within WAIT_SLICE_S.

        Returns:
            True if shutdown was requested
        """
        deadline = time.monotonic() + seconds
        while not self._shutdown_requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(WAIT_SLICE_S, remaining))
        return self._shutdown_requested

    def start(self):
        """Start the periodic timer and run the first cycle immediately."""
        if self.state is not SchedulerState.IDLE:
            return

        self.state = SchedulerState.RUNNING
        self.timer.start()
        logger.info(
            "Speedtest monitoring started: interval=%ds, max_attempts=%d, retry_delay=%ds",
            self.interval_ms // 1000,
            self.retry_policy.max_attempts,
            self.retry_policy.delay_s,
        )
        self.run_cycle()

    def run_cycle(self) -> Measurement | None:
        """Run one measurement cycle, including retries.

        Returns:
            The measurement, or None if the cycle failed
        """
        self.cycle_count += 1
        logger.debug("Cycle %d starting", self.cycle_count)

        try:
            measurement = self.retry_policy.run(
                self.runner.run, should_stop=lambda: self._shutdown_requested
            )
        except RetryCancelled as e:
            logger.warning("Speed test cycle cancelled by shutdown: %s", e)
            self.cycle_failed.emit(str(e))
            return None
        except RetriesExhausted as e:
            logger.error("Error after retries: %s", e)
            self.cycle_failed.emit(str(e))
            return None
        except Exception as e:
            logger.exception("Unexpected error in speed test cycle: %s", e)
            self.cycle_failed.emit(str(e))
            return None

        logger.info(
            "Speed test results:\n%s", json.dumps(measurement.to_dict(), indent=4)
        )

        try:
            self.sink.append(measurement)
        except PersistenceError as e:
            logger.error("Error writing to CSV: %s", e)

        self.measurement_ready.emit(measurement)
        return measurement

    def request_shutdown(self, signum: int | None = None):
        """Ask the scheduler to stop; safe to call from a signal handler.

        Only sets a flag and queues shutdown() on the event loop, which runs
        it once the current cycle (if any) has returned. Logging waits for
        shutdown(): a handler writing to stderr could re-enter a write the
        interrupted code was in the middle of.
        """
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        self._shutdown_signal = signum
        QTimer.singleShot(0, self.shutdown)

    def shutdown(self):
        """Stop the timer, close the sink and emit stopped. Idempotent."""
        if self.state is SchedulerState.SHUTTING_DOWN:
            return

        if self._shutdown_signal is not None:
            logger.info(
                "Received signal %s, shutting down...",
                signal.Signals(self._shutdown_signal).name,
            )
        else:
            logger.info("Shutting down...")

        self.state = SchedulerState.SHUTTING_DOWN
        self._shutdown_requested = True
        self.timer.stop()

        try:
            self.sink.close()
        except PersistenceError as e:
            logger.error("Error closing CSV log: %s", e)

        logger.info("Speedtest monitoring stopped after %d cycles", self.cycle_count)
        self.stopped.emit()

    def _on_tick(self):
        """Handle timer tick."""
        if self.state is not SchedulerState.RUNNING or self.shutdown_requested:
            return
        self.run_cycle()


def install_signal_handlers(
    scheduler: MeasurementScheduler,
    app: QCoreApplication,
    wake_interval_ms: int = 250,
) -> QTimer:
    """Route SIGINT and SIGTERM to a graceful scheduler shutdown.

    Python runs signal handlers only between bytecodes, which never happens
    while Qt's event loop sleeps in C++. A short repeating timer hands
    control back to the interpreter so pending handlers run.

    Returns:
        The wake-up timer (keep a reference to it)
    """

    def handle_signal(signum, frame):
        scheduler.request_shutdown(signum)

    for signum in SHUTDOWN_SIGNALS:
        signal.signal(signum, handle_signal)

    scheduler.stopped.connect(app.quit)

    wake_timer = QTimer(app)
    wake_timer.timeout.connect(lambda: None)
    wake_timer.start(wake_interval_ms)
    return wake_timer
