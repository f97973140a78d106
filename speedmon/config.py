"""Service settings read from SPEEDMON_* environment variables."""

import math
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from speedmon.parser import OutputMode

DEFAULT_INTERVAL_S = 30 * 60
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_S = 60.0
DEFAULT_CSV_PATH = "output.csv"
DEFAULT_COMMAND = "speedtest"

# QTimer intervals are signed 32-bit milliseconds
MAX_INTERVAL_MS = 2**31 - 1


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the measurement service.

    Environment Variables:
        SPEEDMON_INTERVAL_S: Seconds between cycles (default 1800)
        SPEEDMON_MAX_ATTEMPTS: Attempts per cycle (default 3)
        SPEEDMON_RETRY_DELAY_S: Seconds between attempts (default 60)
        SPEEDMON_CSV_PATH: CSV log path (default output.csv)
        SPEEDMON_OUTPUT_MODE: "json" or "jsonl" (default json)
        SPEEDMON_COMMAND: speedtest executable (default speedtest)
        SPEEDMON_EXTRA_ARGS: Extra speedtest arguments, shell-quoted
        SPEEDMON_TIMEOUT_S: Subprocess timeout in seconds (default: none)
        SPEEDMON_RUNNER: "fake" to use simulated measurements
        SPEEDMON_LOG_LEVEL: Logging level, read by configure_logging() (default INFO)

    Examples:
        # Hourly measurements, licence prompts accepted
        $ SPEEDMON_INTERVAL_S=3600 \\
          SPEEDMON_EXTRA_ARGS="--accept-license --accept-gdpr" python -m speedmon
    """

    interval_s: float = DEFAULT_INTERVAL_S
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_s: float = DEFAULT_RETRY_DELAY_S
    csv_path: Path = Path(DEFAULT_CSV_PATH)
    output_mode: OutputMode = OutputMode.JSON
    command: str = DEFAULT_COMMAND
    extra_args: tuple[str, ...] = field(default_factory=tuple)
    timeout_s: float | None = None
    fake_runner: bool = False

    def __post_init__(self):
        for name in ("interval_s", "retry_delay_s", "timeout_s"):
            value = getattr(self, name)
            if value is not None and not math.isfinite(value):
                raise ValueError(f"{name} must be a finite number, got {value!r}")
        if self.interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if not 1 <= self.interval_ms <= MAX_INTERVAL_MS:
            raise ValueError(
                f"interval_s must be between 0.001 and {MAX_INTERVAL_MS // 1000} seconds"
            )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_delay_s < 0:
            raise ValueError("retry_delay_s must not be negative")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")

    @property
    def interval_ms(self) -> int:
        return int(self.interval_s * 1000)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ValueError: a variable holds an invalid value
        """
        if environ is None:
            environ = os.environ

        def get(name: str) -> str | None:
            value = environ.get(name, "").strip()
            return value or None

        kwargs = {}

        value = get("SPEEDMON_INTERVAL_S")
        if value is not None:
            kwargs["interval_s"] = _parse_float("SPEEDMON_INTERVAL_S", value)

        value = get("SPEEDMON_MAX_ATTEMPTS")
        if value is not None:
            try:
                kwargs["max_attempts"] = int(value)
            except ValueError:
                raise ValueError(f"SPEEDMON_MAX_ATTEMPTS must be an integer, got {value!r}") from None

        value = get("SPEEDMON_RETRY_DELAY_S")
        if value is not None:
            kwargs["retry_delay_s"] = _parse_float("SPEEDMON_RETRY_DELAY_S", value)

        value = get("SPEEDMON_CSV_PATH")
        if value is not None:
            kwargs["csv_path"] = Path(value)

        value = get("SPEEDMON_OUTPUT_MODE")
        if value is not None:
            try:
                kwargs["output_mode"] = OutputMode(value.lower())
            except ValueError:
                choices = ", ".join(mode.value for mode in OutputMode)
                raise ValueError(
                    f"SPEEDMON_OUTPUT_MODE must be one of {choices}, got {value!r}"
                ) from None

        value = get("SPEEDMON_COMMAND")
        if value is not None:
            kwargs["command"] = value

        value = get("SPEEDMON_EXTRA_ARGS")
        if value is not None:
            kwargs["extra_args"] = tuple(shlex.split(value))

        value = get("SPEEDMON_TIMEOUT_S")
        if value is not None:
            kwargs["timeout_s"] = _parse_float("SPEEDMON_TIMEOUT_S", value)

        kwargs["fake_runner"] = (get("SPEEDMON_RUNNER") or "").lower() == "fake"

        return cls(**kwargs)


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None
