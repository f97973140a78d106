"""Error types raised while measuring and persisting speed test results."""

OUTPUT_PREVIEW_CHARS = 500


def output_preview(output: str) -> str:
    """Return captured tool output shortened for log messages."""
    if not output:
        return "(empty)"
    output = output.strip()
    if len(output) > OUTPUT_PREVIEW_CHARS:
        return output[:OUTPUT_PREVIEW_CHARS] + "..."
    return output


class SpeedtestError(Exception):
    """Base class for all failures of a single measurement attempt."""


class ExecutionError(SpeedtestError):
    """The speedtest process failed to run or exited with a non-zero status."""

    def __init__(self, message: str, output: str = "", returncode: int | None = None):
        super().__init__(message)
        self.output = output
        self.returncode = returncode

    def __str__(self):
        text = super().__str__()
        if self.returncode is not None:
            text = f"{text} (exit code {self.returncode})"
        if self.output:
            text = f"{text}\nOutput: {output_preview(self.output)}"
        return text


class NetworkOffline(ExecutionError):
    """The tool reported that the network is offline."""


class ConfigurationError(ExecutionError):
    """The tool could not fetch or apply its server configuration."""


class _OutputError(SpeedtestError):
    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output

    def __str__(self):
        text = super().__str__()
        if self.output:
            text = f"{text}\nOutput: {output_preview(self.output)}"
        return text


class ParseError(_OutputError):
    """The tool output is not well-formed JSON of the expected shape."""


class InvalidResult(_OutputError):
    """The tool output parsed but describes an unusable result."""


class NoResultFound(_OutputError):
    """A JSON lines stream contained no record of type "result"."""


class PersistenceError(Exception):
    """The CSV log could not be created or appended to."""


class RetriesExhausted(SpeedtestError):
    """Every attempt of a measurement cycle failed."""

    def __init__(self, attempts: int, last_error: Exception | None):
        super().__init__(f"failed after {attempts} attempts, last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryCancelled(SpeedtestError):
    """A measurement cycle was abandoned because shutdown was requested."""

    def __init__(self, attempts: int, last_error: Exception | None):
        super().__init__(f"cancelled after {attempts} attempts, last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
