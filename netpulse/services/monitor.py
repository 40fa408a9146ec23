"""Network health monitor: one probing cycle, classification and change notification."""

import asyncio
import logging
import statistics
from typing import Callable, List, Optional

from ..config.models import MonitorConfig
from ..probes.base import Prober
from ..utils.metrics import MetricsRegistry
from ..utils.results import NetworkStatus, ProbeResult, utc_now
from .classification import LatencyThresholds, classify
from .resolver import ConfigurationResolver


StatusCallback = Callable[[NetworkStatus, Optional[NetworkStatus]], None]

CHECKS_METRIC = "netpulse.checks"
LATENCY_METRIC = "netpulse.latency_ms"
FAILURES_METRIC = "netpulse.failures"
HEALTH_METRIC = "netpulse.health"


def aggregate_batch(target: str, results: List[ProbeResult]) -> Optional[ProbeResult]:
    """
    Reduce repeated probes of one target to a single representative result.

    Any success yields a success carrying the median of the successful round
    trips (upper median for even counts); if every probe failed the last
    failure is returned.

    Args:
        target: Probed target
        results: Probe results in issue order

    Returns:
        Optional[ProbeResult]: Representative result, None for an empty batch
    """
    if not results:
        return None

    latencies = [r.round_trip_ms for r in results if r.success]
    if not latencies:
        return results[-1]

    return ProbeResult.succeeded(target, statistics.median_high(latencies))


class HealthMonitor:
    """
    Runs monitoring cycles and announces health transitions.

    The previous status is private state of this instance; cycles must not
    overlap (the scheduler runs one at a time).
    """

    def __init__(
        self,
        prober: Prober,
        resolver: ConfigurationResolver,
        config: MonitorConfig,
        metrics: Optional[MetricsRegistry] = None,
        logger: logging.Logger = None,
    ):
        """
        Initialize health monitor.

        Args:
            prober: Prober used for the router and internet batches
            resolver: Source of the router address and internet target
            config: Monitor configuration
            metrics: Registry receiving cycle, latency and failure metrics
            logger: Optional logger instance
        """
        self.prober = prober
        self.resolver = resolver
        self.config = config
        self.metrics = metrics or MetricsRegistry()
        self.logger = logger or logging.getLogger(__name__)
        self.thresholds = LatencyThresholds.from_config(config)

        self._subscribers: List[StatusCallback] = []
        self._last_status: Optional[NetworkStatus] = None

    @property
    def last_status(self) -> Optional[NetworkStatus]:
        """Status produced by the most recent completed cycle."""
        return self._last_status

    def subscribe(self, callback: StatusCallback) -> None:
        """Register a callback invoked with (current, previous) when health changes."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: StatusCallback) -> None:
        """Remove a previously registered callback."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def check(self) -> NetworkStatus:
        """
        Execute one monitoring cycle.

        Returns:
            NetworkStatus: Classified snapshot for this cycle

        Raises:
            asyncio.CancelledError: If the cycle is cancelled; no status is produced
        """
        router_address = await self.resolver.resolve_router()
        internet_target = await self.resolver.resolve_internet_target()

        self.logger.debug("Starting network health check")

        router_result, internet_result = await asyncio.gather(
            self._probe_batch(router_address, "router"),
            self._probe_batch(internet_target, "internet"),
        )
        self.metrics.add_counter(
            CHECKS_METRIC, description="Number of network health checks performed"
        )

        if internet_result is None:
            internet_result = ProbeResult.failed(internet_target, "No probe results")

        router_enabled = router_address is not None
        if router_enabled:
            self._record_metrics(router_result, "router")
        self._record_metrics(internet_result, "internet")

        health, message = classify(
            router_result, internet_result, self.thresholds, router_enabled
        )
        self.metrics.set_gauge(
            HEALTH_METRIC, int(health), description="Current health level (0=Offline, 4=Excellent)"
        )

        status = NetworkStatus(
            health=health,
            router_result=router_result,
            internet_result=internet_result,
            timestamp=utc_now(),
            message=message,
        )

        previous = self._last_status
        self._last_status = status

        if previous is None or previous.health != status.health:
            self.logger.info(
                f"Network status changed: "
                f"{previous.health.label if previous else 'Unknown'} -> {health.label}: {message}"
            )
            self._notify(status, previous)

        return status

    async def _probe_batch(self, target: Optional[str], target_type: str) -> Optional[ProbeResult]:
        if target is None:
            return None
        try:
            results = await self.prober.probe_many(
                target, self.config.pings_per_cycle, self.config.timeout_ms
            )
        except Exception as e:
            self.logger.warning(f"Error probing {target_type} {target}: {e}", exc_info=True)
            return ProbeResult.failed(target, str(e) or type(e).__name__)
        return aggregate_batch(target, results)

    def _record_metrics(self, result: Optional[ProbeResult], target_type: str) -> None:
        tags = {"target_type": target_type}
        if result is not None and result.success:
            self.metrics.record_histogram(
                LATENCY_METRIC,
                result.round_trip_ms,
                tags=tags,
                unit="ms",
                description="Probe latency distribution",
            )
        else:
            self.metrics.add_counter(
                FAILURES_METRIC, tags=tags, description="Number of probe failures by target type"
            )

    def _notify(self, status: NetworkStatus, previous: Optional[NetworkStatus]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(status, previous)
            except Exception as e:
                self.logger.error(f"Status change subscriber failed: {e}", exc_info=True)
