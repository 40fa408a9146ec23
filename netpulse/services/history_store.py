"""SQLite-backed history of probe samples and cycle summaries."""

import asyncio
import logging
import random
import sqlite3
import threading
from contextlib import closing
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..config.models import StorageConfig
from ..utils.paths import probe_writable, resolve_data_directory
from ..utils.results import (
    Granularity,
    HistoricalBucket,
    NetworkStatus,
    ProbeResult,
    as_utc,
    utc_now,
)


# Fixed-width UTC format so timestamps compare correctly as text
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

SCHEMA = """
CREATE TABLE IF NOT EXISTS probe_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    target TEXT NOT NULL,
    success INTEGER NOT NULL,
    round_trip_ms INTEGER,
    timestamp TEXT NOT NULL,
    error_detail TEXT,
    target_type TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_probe_results_timestamp
ON probe_results(timestamp DESC);

CREATE INDEX IF NOT EXISTS idx_probe_results_target_type
ON probe_results(target_type, timestamp DESC);

CREATE TABLE IF NOT EXISTS network_status (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    health TEXT NOT NULL,
    message TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    router_latency_ms INTEGER,
    internet_latency_ms INTEGER
);

CREATE INDEX IF NOT EXISTS idx_network_status_timestamp
ON network_status(timestamp DESC);
"""


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as fixed-width UTC text."""
    return as_utc(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse text produced by format_timestamp back to an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def aggregate_buckets(samples: List[ProbeResult], granularity: Granularity) -> List[HistoricalBucket]:
    """
    Group raw samples into time buckets and compute per-bucket statistics.

    Latency statistics use successful samples only; packet loss and sample
    count use every sample in the bucket.

    Args:
        samples: Raw probe results, any order
        granularity: Bucket width

    Returns:
        List[HistoricalBucket]: Buckets ordered by period_start ascending
    """
    grouped: Dict[datetime, List[ProbeResult]] = {}
    for sample in samples:
        grouped.setdefault(granularity.truncate(sample.timestamp), []).append(sample)

    buckets = []
    for period_start in sorted(grouped):
        group = grouped[period_start]
        latencies = [s.round_trip_ms for s in group if s.success]
        failed = len(group) - len(latencies)
        buckets.append(HistoricalBucket(
            period_start=period_start,
            avg_latency_ms=sum(latencies) / len(latencies) if latencies else 0.0,
            min_latency_ms=min(latencies) if latencies else 0,
            max_latency_ms=max(latencies) if latencies else 0,
            packet_loss_percent=failed / len(group) * 100,
            sample_count=len(group),
        ))
    return buckets


class HistoricalStore:
    """
    Durable history of every monitoring cycle.

    Storage failures never escape: writes and reads are logged and absorbed so
    the monitoring loop keeps running. A connection is opened per operation
    and blocking SQLite work runs in a worker thread. When no writable data
    directory exists the store runs with persistence disabled.
    """

    def __init__(
        self,
        config: StorageConfig,
        logger: logging.Logger = None,
        data_dir: Optional[Path] = None,
        rng: Callable[[], float] = None,
    ):
        """
        Initialize historical store.

        Args:
            config: Storage configuration
            logger: Optional logger instance
            data_dir: Explicit directory for the database (default: resolved)
            rng: Source of uniform [0, 1) values for opportunistic pruning
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._rng = rng or random.random

        self._schema_lock = threading.Lock()
        self._schema_ready = False

        directory = self._resolve_directory(data_dir)
        self.db_path: Optional[Path] = directory / config.database_name if directory else None

        if self.db_path is None:
            self.logger.warning("No writable data directory found - history persistence disabled")
        else:
            self.logger.info(f"SQLite database path: {self.db_path}")

    @property
    def enabled(self) -> bool:
        """False when the store is running without persistence."""
        return self.db_path is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def record_cycle(self, status: NetworkStatus) -> None:
        """
        Persist a cycle summary and its probe results. Never raises on storage errors.

        Args:
            status: Snapshot produced by the health monitor
        """
        if not self.enabled:
            return

        try:
            await asyncio.to_thread(self._write_cycle, status)
        except Exception as e:
            # Storage failures must not stop monitoring
            self.logger.error(f"Failed to save status to SQLite: {e}", exc_info=True)

    async def query(
        self,
        start: datetime,
        end: datetime,
        granularity: Granularity = Granularity.HOUR,
    ) -> List[HistoricalBucket]:
        """
        Aggregate raw samples in [start, end] into time buckets.

        Args:
            start: Window start (inclusive)
            end: Window end (inclusive)
            granularity: Bucket width

        Returns:
            List[HistoricalBucket]: Ascending buckets; empty for an empty window
        """
        if not self.enabled or as_utc(end) < as_utc(start):
            return []

        try:
            samples = await asyncio.to_thread(self._load_window, start, end)
        except Exception as e:
            self.logger.error(f"Failed to load historical data: {e}", exc_info=True)
            return []

        return aggregate_buckets(samples, granularity)

    async def recent_samples(self, count: int) -> List[ProbeResult]:
        """
        Most recent raw probe results across all target types, newest first.

        Args:
            count: Maximum number of samples

        Returns:
            List[ProbeResult]: Newest first
        """
        if not self.enabled or count <= 0:
            return []

        try:
            return await asyncio.to_thread(self._load_recent_samples, count)
        except Exception as e:
            self.logger.error(f"Failed to load recent samples: {e}", exc_info=True)
            return []

    async def recent_statuses(self, count: int) -> List[dict]:
        """
        Most recent cycle summaries, newest first.

        Returns:
            List[dict]: Rows with health, message, timestamp and both latencies
        """
        if not self.enabled or count <= 0:
            return []

        try:
            return await asyncio.to_thread(self._load_recent_statuses, count)
        except Exception as e:
            self.logger.error(f"Failed to load recent statuses: {e}", exc_info=True)
            return []

    async def prune(self) -> int:
        """
        Delete rows older than the retention horizon.

        Returns:
            int: Number of deleted rows (0 on failure)
        """
        if not self.enabled:
            return 0

        try:
            return await asyncio.to_thread(self._prune_now)
        except Exception as e:
            self.logger.error(f"Failed to prune old data: {e}", exc_info=True)
            return 0

    # ------------------------------------------------------------------
    # Internal helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _resolve_directory(self, data_dir: Optional[Path]) -> Optional[Path]:
        explicit = data_dir or self.config.directory
        if explicit:
            explicit = Path(explicit)
            if probe_writable(explicit):
                return explicit
            self.logger.warning(f"Configured data directory {explicit} is not writable, resolving fallback")
        return resolve_data_directory(self.config.application_name)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), timeout=5.0)

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            conn.executescript(SCHEMA)
            self._schema_ready = True
            self.logger.debug("Database schema initialized")

    def _write_cycle(self, status: NetworkStatus) -> None:
        with closing(self._connect()) as conn:
            self._ensure_schema(conn)
            with conn:
                conn.execute(
                    """
                    INSERT INTO network_status
                        (health, message, timestamp, router_latency_ms, internet_latency_ms)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        status.health.label,
                        status.message,
                        format_timestamp(status.timestamp),
                        status.router_result.round_trip_ms if status.router_result else None,
                        status.internet_result.round_trip_ms if status.internet_result else None,
                    ),
                )
                if status.router_result is not None:
                    self._insert_probe(conn, status.router_result, "router")
                if status.internet_result is not None:
                    self._insert_probe(conn, status.internet_result, "internet")

            # Amortized retention pruning, roughly every 1/prune_probability writes
            if self._rng() < self.config.prune_probability:
                try:
                    self._prune(conn)
                except Exception as e:
                    self.logger.error(f"Failed to prune old data: {e}", exc_info=True)

    @staticmethod
    def _insert_probe(conn: sqlite3.Connection, result: ProbeResult, target_type: str) -> None:
        conn.execute(
            """
            INSERT INTO probe_results
                (target, success, round_trip_ms, timestamp, error_detail, target_type)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                result.target,
                1 if result.success else 0,
                result.round_trip_ms,
                format_timestamp(result.timestamp),
                result.error_detail,
                target_type,
            ),
        )

    def _prune_now(self) -> int:
        with closing(self._connect()) as conn:
            self._ensure_schema(conn)
            return self._prune(conn)

    def _prune(self, conn: sqlite3.Connection) -> int:
        cutoff = format_timestamp(utc_now() - timedelta(days=self.config.retention_days))
        with conn:
            deleted = conn.execute(
                "DELETE FROM probe_results WHERE timestamp < ?", (cutoff,)
            ).rowcount
            deleted += conn.execute(
                "DELETE FROM network_status WHERE timestamp < ?", (cutoff,)
            ).rowcount
        if deleted > 0:
            self.logger.debug(f"Pruned {deleted} old records")
        return deleted

    def _load_window(self, start: datetime, end: datetime) -> List[ProbeResult]:
        with closing(self._connect()) as conn:
            self._ensure_schema(conn)
            rows = conn.execute(
                """
                SELECT target, success, round_trip_ms, timestamp, error_detail
                FROM probe_results
                WHERE timestamp >= ? AND timestamp <= ?
                ORDER BY timestamp
                """,
                (format_timestamp(start), format_timestamp(end)),
            ).fetchall()
        return [self._row_to_result(row) for row in rows]

    def _load_recent_samples(self, count: int) -> List[ProbeResult]:
        with closing(self._connect()) as conn:
            self._ensure_schema(conn)
            rows = conn.execute(
                """
                SELECT target, success, round_trip_ms, timestamp, error_detail
                FROM probe_results
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (count,),
            ).fetchall()
        return [self._row_to_result(row) for row in rows]

    def _load_recent_statuses(self, count: int) -> List[dict]:
        with closing(self._connect()) as conn:
            self._ensure_schema(conn)
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT health, message, timestamp, router_latency_ms, internet_latency_ms
                FROM network_status
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (count,),
            ).fetchall()
        return [
            {**dict(row), "timestamp": parse_timestamp(row["timestamp"])}
            for row in rows
        ]

    @staticmethod
    def _row_to_result(row) -> ProbeResult:
        target, success, round_trip_ms, timestamp, error_detail = row
        if success:
            return ProbeResult(
                target=target,
                success=True,
                round_trip_ms=round_trip_ms if round_trip_ms is not None else 0,
                timestamp=parse_timestamp(timestamp),
            )
        return ProbeResult(
            target=target,
            success=False,
            timestamp=parse_timestamp(timestamp),
            error_detail=error_detail or "Unknown error",
        )
