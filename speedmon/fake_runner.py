"""Simulated speedtest CLI output for dry runs and testing."""

import json
import random
from datetime import datetime, timezone

from speedmon.errors import NetworkOffline
from speedmon.parser import OutputMode


class FakeSpeedtest:
    """Generates fake speedtest CLI output."""

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic behavior."""
        self._random = random.Random(seed)

        # Simulation parameters
        self.base_latency = 12.0  # ms
        self.latency_variance = 2.0
        self.base_download = 12_500_000  # bytes/s (100 Mbps)
        self.base_upload = 1_250_000  # bytes/s (10 Mbps)
        self.bandwidth_variance = 0.1  # relative standard deviation
        self.offline_probability = 0.05  # 5% chance the run fails

    def generate_output(self, mode: OutputMode = OutputMode.JSON) -> str:
        """Generate the output of one successful run in the given format.

        Raises:
            NetworkOffline: the simulated run failed
        """
        if self._random.random() < self.offline_probability:
            raise NetworkOffline(
                "network appears to be offline",
                "[error] Cannot read: Network is offline",
                returncode=2,
            )

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        latency = max(0.1, self._random.gauss(self.base_latency, self.latency_variance))
        result = {
            "type": "result",
            "timestamp": timestamp,
            "ping": {"jitter": round(abs(self._random.gauss(0, 1)), 3), "latency": round(latency, 3)},
            "download": {"bandwidth": self._bandwidth(self.base_download)},
            "upload": {"bandwidth": self._bandwidth(self.base_upload)},
        }

        if mode is OutputMode.JSONL:
            lines = [
                json.dumps({"type": "testStart", "timestamp": timestamp}),
                json.dumps({"type": "ping", "timestamp": timestamp, "ping": {"progress": 1.0}}),
                json.dumps({"type": "download", "timestamp": timestamp, "download": {"progress": 1.0}}),
                json.dumps({"type": "upload", "timestamp": timestamp, "upload": {"progress": 1.0}}),
                json.dumps(result),
            ]
            return "\n".join(lines) + "\n"

        return json.dumps(result, indent=4)

    def _bandwidth(self, base: int) -> int:
        factor = self._random.gauss(1.0, self.bandwidth_variance)
        # Ensure bandwidth is positive
        return max(1, int(base * factor))
