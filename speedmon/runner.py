"""Runner abstraction for speedmon measurement sources."""

from typing import Protocol

from speedmon.fake_runner import FakeSpeedtest
from speedmon.models import Measurement
from speedmon.parser import OutputMode, parse_output


class Runner(Protocol):
    """Protocol defining the interface for measurement runners."""

    def run(self) -> Measurement:
        """Run one measurement, raising SpeedtestError on failure."""
        ...


class FakeRunnerAdapter:
    """Adapter that implements Runner protocol using FakeSpeedtest.

    The simulated output goes through the real parser, so a dry run
    exercises the same code path as the speedtest CLI.
    """

    def __init__(
        self,
        fake_speedtest: FakeSpeedtest | None = None,
        output_mode: OutputMode = OutputMode.JSON,
    ):
        """Initialize with optional FakeSpeedtest instance."""
        if fake_speedtest is None:
            fake_speedtest = FakeSpeedtest()
        self._fake_speedtest = fake_speedtest
        self.output_mode = output_mode

    def run(self) -> Measurement:
        """Parse a run of the underlying FakeSpeedtest."""
        output = self._fake_speedtest.generate_output(self.output_mode)
        return parse_output(output, self.output_mode)
