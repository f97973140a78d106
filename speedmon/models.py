"""Data models for speed test measurements."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from speedmon.errors import InvalidResult, ParseError

BITS_PER_BYTE = 8
BITS_PER_MEGABIT = 1_000_000


def bandwidth_to_mbps(bytes_per_second: int) -> float:
    """Convert a bandwidth in bytes/second to megabits/second."""
    return bytes_per_second * BITS_PER_BYTE / BITS_PER_MEGABIT


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; values without an offset are taken as UTC."""
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_timestamp(ts: datetime) -> str:
    """Format a timestamp as RFC 3339 with second precision ("Z" for UTC)."""
    text = ts.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


@dataclass
class RawMeasurement:
    """A result record as emitted by the speedtest tool."""

    timestamp: datetime
    ping_latency_ms: float
    download_bandwidth: int  # bytes/second
    upload_bandwidth: int  # bytes/second

    @classmethod
    def from_json(cls, record: dict[str, Any]) -> "RawMeasurement":
        """Build a raw measurement from a decoded JSON result object.

        Missing bandwidth sections read as zero, the same as the tool's own
        zero value, so they are rejected later as an invalid result rather
        than as a parse failure.

        Raises:
            ParseError: timestamp or ping latency is missing, or a field has
                the wrong type.
        """
        try:
            timestamp = parse_timestamp(record["timestamp"])
        except KeyError:
            raise ParseError("result has no timestamp") from None
        except (AttributeError, TypeError, ValueError) as e:
            raise ParseError(f"invalid timestamp {record['timestamp']!r}: {e}") from None

        try:
            latency = record["ping"]["latency"]
        except (KeyError, TypeError):
            raise ParseError("result has no ping latency") from None

        return cls(
            timestamp=timestamp,
            ping_latency_ms=_as_float(latency, "ping.latency"),
            download_bandwidth=_bandwidth(record, "download"),
            upload_bandwidth=_bandwidth(record, "upload"),
        )


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(f"{field} is not a number: {value!r}")
    try:
        number = float(value)
    except OverflowError:
        raise ParseError(f"{field} is out of range: {value!r}") from None
    # json accepts NaN, Infinity and overflowing literals such as 1e400
    if not math.isfinite(number):
        raise ParseError(f"{field} is not a finite number: {value!r}")
    return number


def _bandwidth(record: dict[str, Any], section: str) -> int:
    value = record.get(section, {})
    if not isinstance(value, dict):
        raise ParseError(f"{section} is not an object: {value!r}")
    return int(_as_float(value.get("bandwidth", 0), f"{section}.bandwidth"))


@dataclass
class Measurement:
    """A normalized measurement, ready to be logged and persisted."""

    timestamp: str
    ping_ms: float
    download_mbps: float
    upload_mbps: float

    def __post_init__(self):
        """Refuse measurements without positive throughput in both directions."""
        if self.download_mbps <= 0 or self.upload_mbps <= 0:
            raise InvalidResult(
                "invalid speed test results - zero bandwidth detected "
                f"(download={self.download_mbps}, upload={self.upload_mbps})"
            )

    @classmethod
    def from_raw(cls, raw: RawMeasurement) -> "Measurement":
        """Normalize a raw result: RFC 3339 timestamp and Mbps throughput."""
        if raw.download_bandwidth <= 0 or raw.upload_bandwidth <= 0:
            raise InvalidResult(
                "invalid speed test results - zero bandwidth detected "
                f"(download={raw.download_bandwidth} B/s, upload={raw.upload_bandwidth} B/s)"
            )
        return cls(
            timestamp=format_timestamp(raw.timestamp),
            ping_ms=raw.ping_latency_ms,
            download_mbps=bandwidth_to_mbps(raw.download_bandwidth),
            upload_mbps=bandwidth_to_mbps(raw.upload_bandwidth),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "ping_ms": self.ping_ms,
            "download_mbps": self.download_mbps,
            "upload_mbps": self.upload_mbps,
        }

    def to_csv_row(self) -> list[str]:
        """Render the measurement as a CSV row with two-decimal numbers."""
        return [
            self.timestamp,
            f"{self.ping_ms:.2f}",
            f"{self.download_mbps:.2f}",
            f"{self.upload_mbps:.2f}",
        ]
