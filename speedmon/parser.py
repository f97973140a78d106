"""Parsing of speedtest CLI output into normalized measurements."""

import enum
import json
import logging
from typing import Any

from speedmon.errors import NoResultFound, ParseError, SpeedtestError
from speedmon.models import Measurement, RawMeasurement

logger = logging.getLogger(__name__)

RESULT_TYPE = "result"


class OutputMode(enum.Enum):
    """Output format requested from the speedtest CLI."""

    JSON = "json"  # one JSON document (--format=json or json-pretty)
    JSONL = "jsonl"  # one JSON object per line, progress records included


def decode_output(output: bytes | str) -> str:
    """Decode raw process output; undecodable bytes are replaced."""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def parse_output(output: bytes | str, mode: OutputMode = OutputMode.JSON) -> Measurement:
    """Parse speedtest output into exactly one normalized measurement (pure function).

    In JSON mode the whole output must be a single JSON object. In JSONL mode
    each non-blank line is decoded on its own; lines that are not JSON
    objects (progress text, log lines) are skipped and the first object of
    type "result" is used.

    Args:
        output: Raw process output (bytes or text)
        mode: Output format the tool was asked to produce

    Returns:
        Normalized Measurement

    Raises:
        ParseError: output (or the selected record) is malformed
        InvalidResult: download or upload bandwidth is zero
        NoResultFound: JSONL stream holds no "result" record

    Examples:
        >>> out = ('{"type":"result","timestamp":"2024-01-01T00:00:00Z",'
        ...        '"ping":{"latency":12.5},"download":{"bandwidth":12500000},'
        ...        '"upload":{"bandwidth":1250000}}')
        >>> parse_output(out).to_csv_row()
        ['2024-01-01T00:00:00Z', '12.50', '100.00', '10.00']
    """
    text = decode_output(output)

    if mode is OutputMode.JSONL:
        record = select_result_record(text)
    else:
        record = parse_document(text)

    try:
        return Measurement.from_raw(RawMeasurement.from_json(record))
    except SpeedtestError as e:
        # Attach the full output so failures can be diagnosed from the logs
        if not getattr(e, "output", None):
            e.output = text
        raise


def parse_document(text: str) -> dict[str, Any]:
    """Decode output that must be exactly one JSON object."""
    try:
        record = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"error parsing JSON: {e}", output=text) from None

    if not isinstance(record, dict):
        raise ParseError(
            f"expected a JSON object, got {type(record).__name__}", output=text
        )
    return record


def select_result_record(text: str) -> dict[str, Any]:
    """Return the first JSON object of type "result" in a JSON lines stream."""
    skipped = 0
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            skipped += 1
            continue
        if isinstance(record, dict) and record.get("type") == RESULT_TYPE:
            if skipped:
                logger.debug("Skipped %d non-JSON lines before result", skipped)
            return record

    raise NoResultFound("no record of type 'result' in output", output=text)
