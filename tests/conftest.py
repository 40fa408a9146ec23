"""Shared pytest configuration and fixtures."""

import asyncio
import logging
from collections import defaultdict, deque
from typing import Dict, List, Optional
from unittest.mock import Mock

import pytest

from netpulse.config.models import MonitorConfig, StorageConfig, TelemetryConfig
from netpulse.probes.base import Prober
from netpulse.utils.results import ProbeResult


class FakeProber(Prober):
    """
    Prober returning scripted results per target.

    Queued values are consumed first (int = latency in ms, None = failure);
    afterwards the target's default applies, and unknown targets fail.
    """

    inter_probe_delay_s = 0

    def __init__(self):
        super().__init__(logging.getLogger("test.prober"))
        self.calls: List[str] = []
        self._queues: Dict[str, deque] = defaultdict(deque)
        self._defaults: Dict[str, Optional[int]] = {}
        self._errors: Dict[str, Exception] = {}
        self.blocker: Optional[asyncio.Event] = None

    def always(self, target: str, latency_ms: Optional[int]) -> "FakeProber":
        self._defaults[target] = latency_ms
        return self

    def queue(self, target: str, *latencies: Optional[int]) -> "FakeProber":
        self._queues[target].extend(latencies)
        return self

    def raise_for(self, target: str, error: Exception) -> "FakeProber":
        self._errors[target] = error
        return self

    def count(self, target: str) -> int:
        return self.calls.count(target)

    async def probe(self, target: str, timeout_ms: int) -> ProbeResult:
        self.calls.append(target)
        if self.blocker is not None:
            await self.blocker.wait()
        if target in self._errors:
            raise self._errors[target]
        if self._queues[target]:
            latency = self._queues[target].popleft()
        else:
            latency = self._defaults.get(target)
        if latency is None:
            return ProbeResult.failed(target, "TimedOut")
        return ProbeResult.succeeded(target, latency)


class FakeGatewayDiscoverer:
    """Gateway discoverer with a fixed answer."""

    def __init__(self, detected: Optional[str] = None, common: Optional[List[str]] = None):
        self.detected = detected
        self.common = common if common is not None else ["192.168.1.1", "192.168.0.1", "10.0.0.1"]
        self.discover_calls = 0

    def discover(self) -> Optional[str]:
        self.discover_calls += 1
        return self.detected

    def common_gateways(self) -> List[str]:
        return list(self.common)


@pytest.fixture
def prober():
    """Scriptable fake prober."""
    return FakeProber()


@pytest.fixture
def discoverer():
    """Gateway discoverer that finds 192.168.1.1."""
    return FakeGatewayDiscoverer(detected="192.168.1.1")


@pytest.fixture
def logger():
    """Mock logger so tests can assert on emitted log calls."""
    return Mock(spec=logging.Logger)


@pytest.fixture
def monitor_config():
    """Monitor configuration with an explicit router and defaults elsewhere."""
    return MonitorConfig(router_address="192.168.1.1", internet_target="8.8.8.8", timeout_ms=500)


@pytest.fixture
def storage_config():
    """Storage configuration that never prunes opportunistically."""
    return StorageConfig(prune_probability=0.0)


@pytest.fixture
def telemetry_config():
    """Telemetry configuration with a small rotation size."""
    return TelemetryConfig(max_file_size_bytes=2048)
