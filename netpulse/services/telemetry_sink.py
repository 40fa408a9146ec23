"""Rotating JSON-array file sink for metric readings."""

import json
import logging
import threading
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, TextIO

from ..config.models import TelemetryConfig
from ..utils.metrics import MetricReading
from ..utils.paths import probe_writable, resolve_data_directory
from ..utils.results import as_utc, utc_now


START_MARKER = "[\n"
SEPARATOR = ",\n"
END_MARKER = "\n]\n"


class ExportResult(Enum):
    """Outcome of one export call."""

    SUCCESS = "success"
    FAILURE = "failure"


def reading_to_record(reading: MetricReading) -> dict:
    """Convert a metric reading to its JSON record shape."""
    return {
        "timestamp": as_utc(reading.timestamp).isoformat(),
        "name": reading.name,
        "description": reading.description,
        "unit": reading.unit,
        "type": reading.metric_type.value,
        "tags": dict(reading.tags),
        "value": reading.value,
    }


class FileTelemetrySink:
    """
    Append metric readings to size- and date-rotated JSON files.

    Each file holds one JSON array. A file is finalized with the closing
    bracket on rotation and on close(); a process killed mid-file leaves an
    unterminated array behind, which readers have to tolerate. All failures
    are logged and reported as ExportResult.FAILURE, never raised.
    """

    def __init__(
        self,
        config: TelemetryConfig,
        logger: logging.Logger = None,
        directory: Optional[Path] = None,
        run_id: Optional[str] = None,
        clock: Callable[[], datetime] = None,
    ):
        """
        Initialize telemetry sink.

        Args:
            config: Telemetry configuration
            logger: Optional logger instance (failures go to logger.error)
            directory: Explicit output directory (default: resolved)
            run_id: Identifier used in file names (default: UTC start time)
            clock: Source of the current UTC time, used for date rotation
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock or utc_now
        self.run_id = run_id or as_utc(self._clock()).strftime("%Y%m%d_%H%M%S")
        self._run_date = as_utc(self._clock()).date()

        self._lock = threading.Lock()
        self._writer: Optional[TextIO] = None
        self._current_path: Optional[Path] = None
        self._current_date: Optional[date] = None
        self._current_size = 0
        self._file_number = 0
        self._first_record = True
        self._closed = False

        self.directory = self._resolve_directory(directory)
        if self.directory is None:
            self.logger.warning("No writable telemetry directory found - telemetry export disabled")
        else:
            self.logger.info(f"Telemetry directory: {self.directory}")

    @property
    def enabled(self) -> bool:
        """False when no telemetry directory could be resolved."""
        return self.directory is not None

    @property
    def current_path(self) -> Optional[Path]:
        """File currently being written, if any."""
        return self._current_path

    def export(self, readings: Iterable[MetricReading]) -> ExportResult:
        """
        Write a batch of readings, one JSON record each.

        Args:
            readings: Metric readings to append

        Returns:
            ExportResult: SUCCESS, or FAILURE if anything went wrong
        """
        if not self.enabled or self._closed:
            return ExportResult.FAILURE

        try:
            payloads = [json.dumps(reading_to_record(reading), indent=2) for reading in readings]
            with self._lock:
                try:
                    self._ensure_writer()
                    for payload in payloads:
                        self._write_record(payload)
                    self._writer.flush()
                except Exception:
                    self._abandon_writer()
                    raise
            return ExportResult.SUCCESS
        except Exception as e:
            self.logger.error(f"Telemetry export failed: {e}", exc_info=True)
            return ExportResult.FAILURE

    def close(self) -> None:
        """Finalize the current file. Further exports are rejected."""
        try:
            with self._lock:
                self._close_writer()
                self._closed = True
        except Exception as e:
            self.logger.error(f"Failed to close telemetry file: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Internal helpers (called with the lock held)
    # ------------------------------------------------------------------

    def _resolve_directory(self, directory: Optional[Path]) -> Optional[Path]:
        explicit = directory or self.config.directory
        if explicit:
            explicit = Path(explicit)
            if probe_writable(explicit):
                return explicit
            self.logger.warning(f"Configured telemetry directory {explicit} is not writable, resolving fallback")
        return resolve_data_directory(self.config.application_name, "telemetry")

    def _today(self) -> date:
        return as_utc(self._clock()).date()

    def _ensure_writer(self) -> None:
        if self._writer is None and self._current_path is not None:
            # Previous file was abandoned after a failed write
            self._rotate()
        elif self._writer is None:
            self._open_new_file(self._today())
        elif self._current_date != self._today():
            self._rotate()

    def _write_record(self, payload: str) -> None:
        payload_size = len(payload.encode("utf-8"))
        size = payload_size if self._first_record else payload_size + len(SEPARATOR)

        # An empty file always takes the record, however large
        if not self._first_record and self._should_rotate(size):
            self._rotate()
            size = payload_size

        self._writer.write(payload if self._first_record else SEPARATOR + payload)
        self._first_record = False
        self._current_size += size

    def _should_rotate(self, size: int) -> bool:
        return (
            self._current_size + size > self.config.max_file_size_bytes
            or self._current_date != self._today()
        )

    def _rotate(self) -> None:
        today = self._today()
        self._close_writer()
        if today == self._current_date:
            self._file_number += 1
        else:
            self._file_number = 0
        self._open_new_file(today)

    def _open_new_file(self, today: date) -> None:
        path = self.directory / self._file_name(today)
        self.directory.mkdir(parents=True, exist_ok=True)

        self._writer = open(path, "w", encoding="utf-8")
        self._current_date = today
        self._current_path = path
        self._writer.write(START_MARKER)
        # Room for the closing marker is reserved up front
        self._current_size = len(START_MARKER) + len(END_MARKER)
        self._first_record = True
        self.logger.debug(f"Opened telemetry file {self._current_path}")

    def _file_name(self, today: date) -> str:
        stem = f"metrics_{self.run_id}"
        if today != self._run_date:
            stem = f"{stem}_{today:%Y%m%d}"
        if self._file_number:
            stem = f"{stem}_{self._file_number:03d}"
        return f"{stem}.json"

    def _close_writer(self) -> None:
        if self._writer is None:
            return
        try:
            self._writer.write(END_MARKER)
            self._writer.flush()
        finally:
            self._writer.close()
            self._writer = None

    def _abandon_writer(self) -> None:
        """Finalize the current file after a failed write; the next export starts a new file."""
        try:
            self._close_writer()
        except Exception as e:
            self.logger.error(f"Failed to finalize telemetry file {self._current_path}: {e}", exc_info=True)
