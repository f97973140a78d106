"""Bounded retry with a fixed delay for measurement attempts."""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from speedmon.errors import RetriesExhausted, RetryCancelled, SpeedtestError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Calls an operation up to ``max_attempts`` times, sleeping between attempts.

    Only SpeedtestError is retried; anything else is treated as a bug and
    propagates unchanged.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay_s: float = 60.0,
        sleep: Callable[[float], object] = time.sleep,
    ):
        """Initialize the policy.

        Args:
            max_attempts: Total attempts per call, including the first
            delay_s: Delay before each attempt after the first, in seconds
            sleep: Delay function; may return early (e.g. on shutdown)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if delay_s < 0:
            raise ValueError("delay_s must not be negative")

        self.max_attempts = max_attempts
        self.delay_s = delay_s
        self._sleep = sleep

    def run(
        self,
        operation: Callable[[], T],
        should_stop: Callable[[], bool] | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or the attempts are used up.

        Args:
            operation: Callable performing one attempt
            should_stop: Checked around each delay; a true result abandons
                the remaining attempts

        Returns:
            The result of the first successful attempt

        Raises:
            RetriesExhausted: every attempt failed
            RetryCancelled: should_stop returned true before the next attempt
        """
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                if should_stop is not None and should_stop():
                    raise RetryCancelled(attempt - 1, last_error) from last_error
                logger.info(
                    "Retry attempt %d/%d in %.0fs after error: %s",
                    attempt,
                    self.max_attempts,
                    self.delay_s,
                    last_error,
                )
                self._sleep(self.delay_s)
                if should_stop is not None and should_stop():
                    raise RetryCancelled(attempt - 1, last_error) from last_error

            try:
                result = operation()
            except SpeedtestError as e:
                last_error = e
                logger.warning(
                    "Speed test attempt %d/%d failed: %s", attempt, self.max_attempts, e
                )
                continue

            if attempt > 1:
                logger.info(
                    "Successfully completed speed test after %d retries", attempt - 1
                )
            return result

        raise RetriesExhausted(self.max_attempts, last_error) from last_error
