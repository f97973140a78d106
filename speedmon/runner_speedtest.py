"""Runner that measures network speed with the Ookla speedtest CLI."""

import logging
import subprocess
from collections.abc import Sequence

from speedmon.errors import (
    ConfigurationError,
    ExecutionError,
    NetworkOffline,
    output_preview,
)
from speedmon.models import Measurement
from speedmon.parser import OutputMode, decode_output, parse_output

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "speedtest"


def classify_failure(output: str, returncode: int | None = None) -> ExecutionError:
    """Map the output of a failed speedtest run to an error (pure function).

    The CLI does not use distinct exit codes, so the captured text is
    inspected for known messages.

    Args:
        output: Combined stdout+stderr of the failed run
        returncode: Process exit status

    Returns:
        NetworkOffline, ConfigurationError, or a generic ExecutionError
    """
    if "offline" in output:
        return NetworkOffline("network appears to be offline", output, returncode)
    if "Configuration" in output:
        return ConfigurationError("speedtest configuration error", output, returncode)
    return ExecutionError("speedtest error", output, returncode)


class SpeedtestRunner:
    """Runs one speedtest measurement per call.

    Output is captured as one combined stdout+stderr stream, because the CLI
    writes its error messages to stderr and results to stdout.

    No timeout is applied unless ``timeout_s`` is given: a hung speedtest
    process then blocks the caller until it exits.
    """

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        output_mode: OutputMode = OutputMode.JSON,
        extra_args: Sequence[str] = (),
        timeout_s: float | None = None,
    ):
        """Initialize the runner.

        Args:
            command: speedtest executable name or path
            output_mode: JSON document or JSON lines output
            extra_args: Additional CLI arguments (e.g. --accept-license)
            timeout_s: Optional limit for one run in seconds
        """
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be positive")

        self.command = command
        self.output_mode = output_mode
        self.extra_args = tuple(extra_args)
        self.timeout_s = timeout_s

        logger.debug(
            "SpeedtestRunner initialized: command=%s, output_mode=%s, timeout_s=%s",
            command,
            output_mode.value,
            timeout_s,
        )

    def build_command(self) -> list[str]:
        """Build the speedtest command line."""
        if self.output_mode is OutputMode.JSONL:
            output_format = "jsonl"
        else:
            output_format = "json-pretty"
        return [self.command, "--progress=no", f"--format={output_format}", *self.extra_args]

    def run(self) -> Measurement:
        """Run the speedtest CLI once and return the parsed measurement.

        Raises:
            ExecutionError: the process could not be started, timed out, or
                exited with a non-zero status (NetworkOffline and
                ConfigurationError for recognized messages)
            ParseError, InvalidResult, NoResultFound: from the parser
        """
        cmd = self.build_command()
        logger.debug("Executing speedtest: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_s,
                shell=False,
            )
        except subprocess.TimeoutExpired as e:
            output = decode_output(e.output or b"")
            raise ExecutionError(
                f"speedtest timed out after {self.timeout_s}s", output
            ) from None
        except OSError as e:
            raise ExecutionError(f"could not run {self.command!r}: {e}") from e

        output = decode_output(result.stdout or b"")
        logger.debug("Speedtest completed: returncode=%d", result.returncode)

        if result.returncode != 0:
            logger.debug("Speedtest failed: output_preview=%s", output_preview(output))
            raise classify_failure(output, result.returncode)

        return parse_output(output, self.output_mode)
