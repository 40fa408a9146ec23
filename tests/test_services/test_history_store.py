"""Tests for the SQLite historical store."""

import sqlite3
from contextlib import closing
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from netpulse.config.models import StorageConfig
from netpulse.services.history_store import HistoricalStore, aggregate_buckets
from netpulse.utils.results import Granularity, NetworkStatus, ProbeResult, utc_now
from netpulse.utils.status import HealthLevel


ROUTER = "192.168.1.1"
INTERNET = "8.8.8.8"
BASE = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


def sample(ms, ts, target=INTERNET):
    """Build a probe result at a fixed time; ms=None means failure."""
    if ms is None:
        return ProbeResult(target=target, success=False, timestamp=ts, error_detail="TimedOut")
    return ProbeResult(target=target, success=True, round_trip_ms=ms, timestamp=ts)


def status_at(ts, internet_ms, router_ms=None, health=HealthLevel.GOOD):
    return NetworkStatus(
        health=health,
        router_result=sample(router_ms, ts, ROUTER) if router_ms is not None else None,
        internet_result=sample(internet_ms, ts),
        timestamp=ts,
        message="test status",
    )


@pytest.fixture
def store(tmp_path, storage_config, logger):
    return HistoricalStore(storage_config, logger=logger, data_dir=tmp_path)


class TestAggregateBuckets:
    """Test suite for bucket aggregation."""

    def test_bucket_statistics(self):
        """Test successes [10, 20, 30] plus one failure in one hour."""
        samples = [
            sample(10, BASE + timedelta(minutes=1)),
            sample(20, BASE + timedelta(minutes=2)),
            sample(None, BASE + timedelta(minutes=3)),
            sample(30, BASE + timedelta(minutes=4)),
        ]

        (bucket,) = aggregate_buckets(samples, Granularity.HOUR)

        assert bucket.period_start == BASE
        assert bucket.avg_latency_ms == 20
        assert bucket.min_latency_ms == 10
        assert bucket.max_latency_ms == 30
        assert bucket.packet_loss_percent == 25
        assert bucket.sample_count == 4

    def test_all_failed_bucket(self):
        """Test latency defaults to zero and loss to 100% without successes."""
        (bucket,) = aggregate_buckets([sample(None, BASE), sample(None, BASE)], Granularity.MINUTE)
        assert bucket.avg_latency_ms == 0
        assert bucket.min_latency_ms == 0
        assert bucket.max_latency_ms == 0
        assert bucket.packet_loss_percent == 100
        assert bucket.sample_count == 2

    def test_buckets_sorted_ascending(self):
        samples = [sample(5, BASE + timedelta(hours=2)), sample(7, BASE)]
        buckets = aggregate_buckets(samples, Granularity.HOUR)
        assert [b.period_start for b in buckets] == [BASE, BASE + timedelta(hours=2)]

    def test_day_granularity_merges_hours(self):
        samples = [sample(5, BASE), sample(7, BASE + timedelta(hours=5))]
        (bucket,) = aggregate_buckets(samples, Granularity.DAY)
        assert bucket.period_start == datetime(2026, 5, 1, tzinfo=timezone.utc)
        assert bucket.sample_count == 2


class TestHistoricalStore:
    """Test suite for HistoricalStore persistence."""

    @pytest.mark.asyncio
    async def test_empty_window_returns_empty_list(self, store):
        """Test that a window without samples is not an error."""
        assert await store.query(BASE, BASE + timedelta(hours=1)) == []

    @pytest.mark.asyncio
    async def test_query_aggregates_recorded_cycles(self, store):
        """Test record then query for the reference bucket."""
        for minute, ms in enumerate([10, 20, None, 30], start=1):
            await store.record_cycle(status_at(BASE + timedelta(minutes=minute), ms))

        buckets = await store.query(BASE, BASE + timedelta(hours=1), Granularity.HOUR)

        assert len(buckets) == 1
        bucket = buckets[0]
        assert bucket.period_start == BASE
        assert (bucket.avg_latency_ms, bucket.min_latency_ms, bucket.max_latency_ms) == (20, 10, 30)
        assert bucket.packet_loss_percent == 25
        assert bucket.sample_count == 4

    @pytest.mark.asyncio
    async def test_query_window_bounds(self, store):
        await store.record_cycle(status_at(BASE - timedelta(hours=2), 10))
        await store.record_cycle(status_at(BASE + timedelta(minutes=5), 20))

        buckets = await store.query(BASE, BASE + timedelta(hours=1))

        assert [b.sample_count for b in buckets] == [1]

    @pytest.mark.asyncio
    async def test_inverted_window(self, store):
        assert await store.query(BASE, BASE - timedelta(hours=1)) == []

    @pytest.mark.asyncio
    async def test_recent_samples_newest_first(self, store):
        """Test router and internet rows are returned newest first."""
        await store.record_cycle(status_at(BASE, 10, router_ms=2))
        await store.record_cycle(status_at(BASE + timedelta(seconds=5), 11))
        await store.record_cycle(status_at(BASE + timedelta(seconds=10), None, router_ms=3))

        recent = await store.recent_samples(3)

        assert [r.timestamp for r in recent] == [
            BASE + timedelta(seconds=10),
            BASE + timedelta(seconds=10),
            BASE + timedelta(seconds=5),
        ]
        assert {r.target for r in recent[:2]} == {ROUTER, INTERNET}
        failed = [r for r in recent if not r.success]
        assert failed[0].error_detail == "TimedOut"
        assert await store.recent_samples(0) == []

    @pytest.mark.asyncio
    async def test_recent_statuses(self, store):
        await store.record_cycle(status_at(BASE, 10, router_ms=2, health=HealthLevel.EXCELLENT))

        (row,) = await store.recent_statuses(5)

        assert row["health"] == "Excellent"
        assert row["router_latency_ms"] == 2
        assert row["internet_latency_ms"] == 10
        assert row["timestamp"] == BASE

    @pytest.mark.asyncio
    async def test_rows_tagged_by_target_type(self, store):
        await store.record_cycle(status_at(BASE, 10, router_ms=2))

        with closing(sqlite3.connect(store.db_path)) as conn:
            rows = conn.execute(
                "SELECT target, target_type FROM probe_results ORDER BY target_type"
            ).fetchall()

        assert rows == [(INTERNET, "internet"), (ROUTER, "router")]

    @pytest.mark.asyncio
    async def test_schema_creation_is_idempotent(self, tmp_path, storage_config, logger):
        """Test that repeated startups reuse the same schema."""
        first = HistoricalStore(storage_config, logger=logger, data_dir=tmp_path)
        await first.record_cycle(status_at(BASE, 10))
        second = HistoricalStore(storage_config, logger=logger, data_dir=tmp_path)
        await second.record_cycle(status_at(BASE + timedelta(minutes=1), 12))

        with closing(sqlite3.connect(first.db_path)) as conn:
            names = [row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")]

        assert len(names) == len(set(names)) == 3
        assert len(await second.recent_samples(10)) == 2
        logger.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_is_absorbed(self, store, logger):
        """Test that a persistence exception is logged, not raised."""
        with patch.object(store, "_write_cycle", side_effect=sqlite3.OperationalError("disk I/O error")):
            result = await store.record_cycle(status_at(BASE, 10))

        assert result is None
        logger.error.assert_called_once()
        assert "Failed to save status" in logger.error.call_args.args[0]

    @pytest.mark.asyncio
    async def test_read_failure_is_absorbed(self, store, logger):
        with patch.object(store, "_load_window", side_effect=sqlite3.DatabaseError("malformed")):
            assert await store.query(BASE, BASE + timedelta(hours=1)) == []
        logger.error.assert_called_once()


class TestRetention:
    """Test suite for retention pruning."""

    @pytest.mark.asyncio
    async def test_prune_removes_rows_past_retention(self, store):
        old = utc_now() - timedelta(days=45)
        recent = utc_now() - timedelta(days=1)
        await store.record_cycle(status_at(old, 10, router_ms=1))
        await store.record_cycle(status_at(recent, 12))

        deleted = await store.prune()

        assert deleted == 3
        remaining = await store.recent_samples(10)
        assert [r.round_trip_ms for r in remaining] == [12]

    @pytest.mark.asyncio
    async def test_opportunistic_prune_after_write(self, tmp_path, logger):
        """Test that pruning runs when the random draw falls under the probability."""
        config = StorageConfig(retention_days=7, prune_probability=0.5)
        store = HistoricalStore(config, logger=logger, data_dir=tmp_path, rng=lambda: 0.0)

        await store.record_cycle(status_at(utc_now() - timedelta(days=30), 10))
        await store.record_cycle(status_at(utc_now(), 11))

        remaining = await store.recent_samples(10)
        assert [r.round_trip_ms for r in remaining] == [11]

    @pytest.mark.asyncio
    async def test_prune_failure_after_write_keeps_rows(self, tmp_path, logger):
        """Test a failed opportunistic prune is logged as such and the cycle stays saved."""
        config = StorageConfig(retention_days=7, prune_probability=0.5)
        store = HistoricalStore(config, logger=logger, data_dir=tmp_path, rng=lambda: 0.0)

        with patch.object(store, "_prune", side_effect=sqlite3.OperationalError("database is locked")):
            await store.record_cycle(status_at(utc_now(), 11))

        logger.error.assert_called_once()
        message = logger.error.call_args.args[0]
        assert "prune" in message
        assert "Failed to save status" not in message
        assert [r.round_trip_ms for r in await store.recent_samples(10)] == [11]

    @pytest.mark.asyncio
    async def test_no_prune_when_draw_is_high(self, tmp_path, logger):
        config = StorageConfig(retention_days=7, prune_probability=0.01)
        store = HistoricalStore(config, logger=logger, data_dir=tmp_path, rng=lambda: 0.99)

        await store.record_cycle(status_at(utc_now() - timedelta(days=30), 10))

        assert len(await store.recent_samples(10)) == 1


class TestDisabledStore:
    """Test suite for running without a writable directory."""

    @pytest.mark.asyncio
    async def test_persistence_disabled(self, tmp_path, storage_config, logger):
        """Test that the store keeps working as a no-op."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with patch("netpulse.services.history_store.resolve_data_directory", return_value=None):
            store = HistoricalStore(storage_config, logger=logger, data_dir=blocker / "db")

        assert not store.enabled
        assert store.db_path is None
        await store.record_cycle(status_at(BASE, 10))
        assert await store.query(BASE, BASE + timedelta(hours=1)) == []
        assert await store.recent_samples(5) == []
        assert await store.prune() == 0
        logger.warning.assert_called()
        logger.error.assert_not_called()
