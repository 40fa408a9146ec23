"""Result data structures shared by probes, the monitor and the stores."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .status import HealthLevel


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC. Naive values are assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single reachability probe."""

    target: str
    success: bool
    round_trip_ms: Optional[int] = None
    timestamp: datetime = field(default_factory=utc_now)
    error_detail: Optional[str] = None

    def __post_init__(self):
        """Enforce that exactly one of round_trip_ms/error_detail is meaningful."""
        if self.success:
            if self.round_trip_ms is None:
                raise ValueError("successful probe requires round_trip_ms")
            if self.round_trip_ms < 0:
                raise ValueError("round_trip_ms must be non-negative")
            if self.error_detail is not None:
                raise ValueError("successful probe cannot carry error_detail")
        else:
            if self.round_trip_ms is not None:
                raise ValueError("failed probe cannot carry round_trip_ms")
            if not self.error_detail:
                raise ValueError("failed probe requires error_detail")

    @classmethod
    def succeeded(cls, target: str, round_trip_ms: int) -> "ProbeResult":
        """Create a successful probe result stamped with the current time."""
        return cls(target=target, success=True, round_trip_ms=int(round_trip_ms))

    @classmethod
    def failed(cls, target: str, error_detail: str) -> "ProbeResult":
        """Create a failed probe result stamped with the current time."""
        return cls(target=target, success=False, error_detail=error_detail or "Unknown error")


@dataclass(frozen=True)
class NetworkStatus:
    """Network health snapshot produced once per monitoring cycle."""

    health: HealthLevel
    router_result: Optional[ProbeResult]
    internet_result: ProbeResult
    timestamp: datetime
    message: str

    @property
    def is_usable(self) -> bool:
        """True when health is EXCELLENT, GOOD or DEGRADED."""
        return self.health.is_usable


class Granularity(Enum):
    """Bucket width for historical aggregation."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    def truncate(self, timestamp: datetime) -> datetime:
        """
        Truncate a timestamp to the start of its bucket.

        Args:
            timestamp: Sample time (normalized to UTC)

        Returns:
            datetime: Start of the minute, hour or day containing the timestamp
        """
        ts = as_utc(timestamp)
        if self is Granularity.MINUTE:
            return ts.replace(second=0, microsecond=0)
        if self is Granularity.HOUR:
            return ts.replace(minute=0, second=0, microsecond=0)
        return ts.replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass(frozen=True)
class HistoricalBucket:
    """Aggregated probe statistics for one time bucket."""

    period_start: datetime
    avg_latency_ms: float
    min_latency_ms: int
    max_latency_ms: int
    packet_loss_percent: float
    sample_count: int
