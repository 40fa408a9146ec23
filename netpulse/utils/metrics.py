"""In-process metric data structures: named counters, gauges and histograms with tags."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .results import utc_now


class MetricType(Enum):
    """Kinds of metric instruments."""

    COUNTER = "Counter"
    GAUGE = "Gauge"
    HISTOGRAM = "Histogram"


@dataclass(frozen=True)
class MetricReading:
    """
    One metric data point ready for export.

    value is a number for counters and gauges and a {"count", "sum"} dict for histograms.
    """

    name: str
    metric_type: MetricType
    value: Any
    tags: Dict[str, str] = field(default_factory=dict)
    unit: Optional[str] = None
    description: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class HistogramStats:
    """Running histogram aggregate."""

    count: int = 0
    sum: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None

    def record(self, value: float) -> None:
        """Record a single observation."""
        self.count += 1
        self.sum += value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)


SeriesKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def _series_key(name: str, tags: Optional[Dict[str, str]]) -> SeriesKey:
    return name, tuple(sorted((tags or {}).items()))


class MetricsRegistry:
    """
    Thread-safe registry of cumulative metric series.

    A series is identified by metric name plus its tag set, so
    "netpulse.failures{target_type=router}" and "{target_type=internet}"
    accumulate independently.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._types: Dict[str, MetricType] = {}
        self._meta: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        self._counters: Dict[SeriesKey, float] = {}
        self._gauges: Dict[SeriesKey, float] = {}
        self._histograms: Dict[SeriesKey, HistogramStats] = {}

    def add_counter(
        self,
        name: str,
        amount: float = 1,
        tags: Optional[Dict[str, str]] = None,
        unit: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """Increase a counter series by amount (must be non-negative)."""
        if amount < 0:
            raise ValueError("counter increments must be non-negative")
        with self._lock:
            self._register(name, MetricType.COUNTER, unit, description)
            key = _series_key(name, tags)
            self._counters[key] = self._counters.get(key, 0) + amount

    def set_gauge(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        unit: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """Set the last value of a gauge series."""
        with self._lock:
            self._register(name, MetricType.GAUGE, unit, description)
            self._gauges[_series_key(name, tags)] = value

    def record_histogram(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        unit: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """Record one observation into a histogram series."""
        with self._lock:
            self._register(name, MetricType.HISTOGRAM, unit, description)
            key = _series_key(name, tags)
            self._histograms.setdefault(key, HistogramStats()).record(value)

    def counter_value(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        """Current cumulative value of a counter series (0 if never incremented)."""
        with self._lock:
            return self._counters.get(_series_key(name, tags), 0)

    def histogram(self, name: str, tags: Optional[Dict[str, str]] = None) -> Optional[HistogramStats]:
        """Snapshot of a histogram series, or None if nothing was recorded."""
        with self._lock:
            stats = self._histograms.get(_series_key(name, tags))
            if stats is None:
                return None
            return HistogramStats(stats.count, stats.sum, stats.min, stats.max)

    def collect(self) -> List[MetricReading]:
        """
        Snapshot every series as a list of readings.

        Returns:
            List[MetricReading]: Cumulative readings, all stamped with the same time
        """
        now = utc_now()
        readings = []
        with self._lock:
            for (name, tags), value in self._counters.items():
                readings.append(self._reading(name, MetricType.COUNTER, value, tags, now))
            for (name, tags), value in self._gauges.items():
                readings.append(self._reading(name, MetricType.GAUGE, value, tags, now))
            for (name, tags), stats in self._histograms.items():
                value = {"count": stats.count, "sum": stats.sum}
                readings.append(self._reading(name, MetricType.HISTOGRAM, value, tags, now))
        return readings

    def _register(
        self,
        name: str,
        metric_type: MetricType,
        unit: Optional[str],
        description: Optional[str],
    ) -> None:
        registered = self._types.setdefault(name, metric_type)
        if registered is not metric_type:
            raise ValueError(f"metric {name} already registered as {registered.value}")
        if name not in self._meta or (unit or description):
            old_unit, old_description = self._meta.get(name, (None, None))
            self._meta[name] = (unit or old_unit, description or old_description)

    def _reading(self, name, metric_type, value, tags, timestamp) -> MetricReading:
        unit, description = self._meta.get(name, (None, None))
        return MetricReading(
            name=name,
            metric_type=metric_type,
            value=value,
            tags=dict(tags),
            unit=unit,
            description=description,
            timestamp=timestamp,
        )
