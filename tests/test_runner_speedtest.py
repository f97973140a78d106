"""Unit tests for SpeedtestRunner."""

import subprocess

import pytest

from speedmon.errors import (
    ConfigurationError,
    ExecutionError,
    InvalidResult,
    NetworkOffline,
    NoResultFound,
    ParseError,
)
from speedmon.models import Measurement
from speedmon.parser import OutputMode
from speedmon.runner_speedtest import SpeedtestRunner, classify_failure

RESULT_LINE = (
    b'{"type":"result","timestamp":"2024-01-01T00:00:00Z","ping":{"latency":12.5},'
    b'"download":{"bandwidth":12500000},"upload":{"bandwidth":1250000}}'
)


class FakeRun:
    """Stand-in for subprocess.run that records its calls."""

    def __init__(self, returncode=0, stdout=b"", exc=None):
        self.returncode = returncode
        self.stdout = stdout
        self.exc = exc
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        if self.exc is not None:
            raise self.exc
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout)


@pytest.fixture
def fake_run(monkeypatch):
    def install(**kwargs):
        fake = FakeRun(**kwargs)
        monkeypatch.setattr(subprocess, "run", fake)
        return fake

    return install


class TestClassifyFailure:
    """Test mapping of failed-run output to error types."""

    def test_offline(self):
        output = "[error] Cannot read: Network is offline"
        error = classify_failure(output, 2)
        assert isinstance(error, NetworkOffline)
        assert error.output == output
        assert error.returncode == 2

    def test_configuration(self):
        error = classify_failure("[error] Configuration - Couldn't resolve host name", 1)
        assert isinstance(error, ConfigurationError)

    def test_offline_takes_precedence(self):
        error = classify_failure("Configuration failed: network offline", 1)
        assert isinstance(error, NetworkOffline)

    def test_generic(self):
        error = classify_failure("Segmentation fault", 139)
        assert type(error) is ExecutionError
        assert "exit code 139" in str(error)
        assert "Segmentation fault" in str(error)

    def test_case_sensitive_match(self):
        """Only the CLI's own spelling is recognized."""
        assert type(classify_failure("OFFLINE")) is ExecutionError
        assert type(classify_failure("configuration")) is ExecutionError

    def test_specific_errors_are_execution_errors(self):
        assert isinstance(classify_failure("offline"), ExecutionError)
        assert isinstance(classify_failure("Configuration"), ExecutionError)


class TestSpeedtestRunnerBuildCommand:
    """Test command construction."""

    def test_json_mode(self):
        runner = SpeedtestRunner()
        assert runner.build_command() == ["speedtest", "--progress=no", "--format=json-pretty"]

    def test_jsonl_mode(self):
        runner = SpeedtestRunner(output_mode=OutputMode.JSONL)
        assert runner.build_command() == ["speedtest", "--progress=no", "--format=jsonl"]

    def test_custom_command_and_extra_args(self):
        runner = SpeedtestRunner(
            command="/usr/local/bin/speedtest",
            extra_args=["--accept-license", "--server-id=1234"],
        )
        assert runner.build_command() == [
            "/usr/local/bin/speedtest",
            "--progress=no",
            "--format=json-pretty",
            "--accept-license",
            "--server-id=1234",
        ]


class TestSpeedtestRunnerInitialization:
    """Test SpeedtestRunner initialization and configuration."""

    def test_defaults(self):
        runner = SpeedtestRunner()
        assert runner.command == "speedtest"
        assert runner.output_mode is OutputMode.JSON
        assert runner.extra_args == ()
        assert runner.timeout_s is None

    def test_invalid_timeout_zero(self):
        with pytest.raises(ValueError, match="timeout_s must be positive"):
            SpeedtestRunner(timeout_s=0)

    def test_invalid_timeout_negative(self):
        with pytest.raises(ValueError, match="timeout_s must be positive"):
            SpeedtestRunner(timeout_s=-5)


class TestSpeedtestRunnerRun:
    """Test one run against a substituted subprocess.run."""

    def test_success(self, fake_run):
        fake = fake_run(stdout=RESULT_LINE)
        measurement = SpeedtestRunner().run()

        assert isinstance(measurement, Measurement)
        assert measurement.download_mbps == 100.0
        assert measurement.upload_mbps == 10.0

    def test_captures_combined_output_without_shell(self, fake_run):
        fake = fake_run(stdout=RESULT_LINE)
        SpeedtestRunner(timeout_s=300).run()

        cmd, kwargs = fake.calls[0]
        assert cmd == ["speedtest", "--progress=no", "--format=json-pretty"]
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["timeout"] == 300
        assert kwargs["shell"] is False

    def test_no_timeout_by_default(self, fake_run):
        fake = fake_run(stdout=RESULT_LINE)
        SpeedtestRunner().run()
        assert fake.calls[0][1]["timeout"] is None

    def test_jsonl_stream(self, fake_run):
        fake_run(stdout=b'{"type":"testStart"}\nprogress...\n' + RESULT_LINE + b"\n")
        measurement = SpeedtestRunner(output_mode=OutputMode.JSONL).run()
        assert measurement.ping_ms == 12.5

    def test_nonzero_exit_offline(self, fake_run):
        fake_run(returncode=2, stdout=b"[error] Cannot read: Network is offline")
        with pytest.raises(NetworkOffline) as exc_info:
            SpeedtestRunner().run()
        assert exc_info.value.returncode == 2
        assert "offline" in exc_info.value.output

    def test_nonzero_exit_configuration(self, fake_run):
        fake_run(returncode=1, stdout=b"[error] Configuration - Cannot retrieve configuration")
        with pytest.raises(ConfigurationError):
            SpeedtestRunner().run()

    def test_nonzero_exit_generic(self, fake_run):
        fake_run(returncode=1, stdout=b"License acceptance required")
        with pytest.raises(ExecutionError) as exc_info:
            SpeedtestRunner().run()
        assert type(exc_info.value) is ExecutionError
        assert exc_info.value.output == "License acceptance required"

    def test_nonzero_exit_with_valid_json_still_fails(self, fake_run):
        fake_run(returncode=1, stdout=RESULT_LINE)
        with pytest.raises(ExecutionError):
            SpeedtestRunner().run()

    def test_command_not_found(self, fake_run):
        fake_run(exc=FileNotFoundError(2, "No such file or directory", "speedtest"))
        with pytest.raises(ExecutionError, match="could not run 'speedtest'"):
            SpeedtestRunner().run()

    def test_timeout(self, fake_run):
        fake_run(exc=subprocess.TimeoutExpired(["speedtest"], 5, output=b"partial"))
        with pytest.raises(ExecutionError, match="timed out after 5s") as exc_info:
            SpeedtestRunner(timeout_s=5).run()
        assert exc_info.value.output == "partial"

    def test_parse_errors_propagate(self, fake_run):
        fake_run(stdout=b"not json at all")
        with pytest.raises(ParseError):
            SpeedtestRunner().run()

    def test_invalid_result_propagates(self, fake_run):
        fake_run(stdout=RESULT_LINE.replace(b"12500000", b"0"))
        with pytest.raises(InvalidResult):
            SpeedtestRunner().run()

    def test_no_result_propagates(self, fake_run):
        fake_run(stdout=b'{"type":"testStart"}\n')
        with pytest.raises(NoResultFound):
            SpeedtestRunner(output_mode=OutputMode.JSONL).run()
