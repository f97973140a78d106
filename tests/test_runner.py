"""Tests for speedmon.runner.FakeRunnerAdapter behavior."""

from datetime import datetime, timezone

import pytest

from speedmon.errors import NetworkOffline
from speedmon.fake_runner import FakeSpeedtest
from speedmon.models import Measurement
from speedmon.parser import OutputMode, parse_output
from speedmon.runner import FakeRunnerAdapter


def reliable_fake(seed=None):
    fake = FakeSpeedtest(seed=seed)
    fake.offline_probability = 0.0
    return fake


class TestFakeSpeedtest:
    """Test the simulated CLI output."""

    def test_json_output_parses(self):
        output = reliable_fake(seed=1).generate_output(OutputMode.JSON)
        assert isinstance(parse_output(output, OutputMode.JSON), Measurement)

    def test_jsonl_output_has_progress_records(self):
        output = reliable_fake(seed=1).generate_output(OutputMode.JSONL)
        lines = output.strip().splitlines()

        assert len(lines) == 5
        assert '"testStart"' in lines[0]
        assert isinstance(parse_output(output, OutputMode.JSONL), Measurement)

    def test_always_offline(self):
        fake = FakeSpeedtest(seed=3)
        fake.offline_probability = 1.0
        with pytest.raises(NetworkOffline):
            fake.generate_output()


class TestFakeRunnerAdapter:
    """Test FakeRunnerAdapter behavior and contracts."""

    def test_adapter_default_constructor(self):
        adapter = FakeRunnerAdapter(reliable_fake())
        measurement = adapter.run()

        assert isinstance(measurement, Measurement)
        assert adapter.output_mode is OutputMode.JSON

    def test_adapter_jsonl_mode(self):
        adapter = FakeRunnerAdapter(reliable_fake(seed=5), output_mode=OutputMode.JSONL)
        assert isinstance(adapter.run(), Measurement)

    def test_adapter_deterministic_with_seed(self):
        """Same seed yields the same latency and throughput."""
        first = FakeRunnerAdapter(reliable_fake(seed=42)).run()
        second = FakeRunnerAdapter(reliable_fake(seed=42)).run()

        assert first.ping_ms == second.ping_ms
        assert first.download_mbps == second.download_mbps
        assert first.upload_mbps == second.upload_mbps

    def test_adapter_enforces_measurement_invariants(self):
        adapter = FakeRunnerAdapter(reliable_fake(seed=100))

        for _ in range(20):
            measurement = adapter.run()
            assert measurement.ping_ms > 0
            assert measurement.download_mbps > 0
            assert measurement.upload_mbps > 0

    def test_adapter_generates_recent_timestamps(self):
        measurement = FakeRunnerAdapter(reliable_fake()).run()
        ts = datetime.fromisoformat(measurement.timestamp.replace("Z", "+00:00"))

        time_diff = abs((datetime.now(timezone.utc) - ts).total_seconds())
        assert time_diff < 2.0, f"Timestamp too old: {time_diff}s difference"

    def test_adapter_error_propagation(self):
        fake = FakeSpeedtest()
        fake.offline_probability = 1.0
        with pytest.raises(NetworkOffline):
            FakeRunnerAdapter(fake).run()
