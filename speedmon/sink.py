"""Append-only CSV log of measurements."""

import csv
import logging
import os
from pathlib import Path

from speedmon.errors import PersistenceError
from speedmon.models import Measurement

logger = logging.getLogger(__name__)

CSV_HEADER = ["timestamp", "ping_ms", "download_mbps", "upload_mbps"]


class CsvSink:
    """Owns the CSV file handle for the lifetime of the service.

    The header is written only when the file is created (or found empty);
    existing files are opened for append and never truncated. Every row is
    flushed and fsynced before append() returns.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._file = None
        self._writer = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> "CsvSink":
        """Open the CSV file, creating it with a header row if needed.

        Raises:
            PersistenceError: file or header could not be written
        """
        if self.is_open:
            return self

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            needs_header = not self.path.exists() or self.path.stat().st_size == 0
            self._file = self.path.open("a", encoding="utf-8", newline="")
            self._writer = csv.writer(self._file)
            if needs_header:
                self._writer.writerow(CSV_HEADER)
                self._sync()
                logger.info("Created CSV log: %s", self.path)
            else:
                logger.info("Appending to existing CSV log: %s", self.path)
        except OSError as e:
            self._close_quietly()
            raise PersistenceError(f"error initializing CSV file {self.path}: {e}") from e

        return self

    def append(self, measurement: Measurement) -> None:
        """Append one measurement row and flush it to disk.

        Raises:
            PersistenceError: sink is closed or the write failed
        """
        if not self.is_open:
            raise PersistenceError(f"CSV log {self.path} is not open")

        try:
            self._writer.writerow(measurement.to_csv_row())
            self._sync()
        except OSError as e:
            raise PersistenceError(f"error writing to CSV {self.path}: {e}") from e

        logger.debug("Appended row: %s", measurement.timestamp)

    def flush(self) -> None:
        if self.is_open:
            try:
                self._sync()
            except OSError as e:
                raise PersistenceError(f"error flushing CSV {self.path}: {e}") from e

    def close(self) -> None:
        """Flush and close the file. Safe to call more than once."""
        if not self.is_open:
            return
        try:
            self._sync()
        except OSError as e:
            raise PersistenceError(f"error closing CSV {self.path}: {e}") from e
        finally:
            self._close_quietly()
        logger.info("Closed CSV log: %s", self.path)

    def _sync(self) -> None:
        self._file.flush()
        os.fsync(self._file.fileno())

    def _close_quietly(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug("Ignoring error while closing %s", self.path, exc_info=True)
        self._file = None
        self._writer = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
