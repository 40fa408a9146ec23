"""Ordered health classification rules."""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..config.models import MonitorConfig
from ..utils.results import ProbeResult
from ..utils.status import HealthLevel


@dataclass(frozen=True)
class LatencyThresholds:
    """Upper latency bounds (inclusive, ms) for each quality band."""

    excellent_ms: int = 20
    good_ms: int = 100
    degraded_ms: int = 200

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "LatencyThresholds":
        """Build thresholds from monitor configuration."""
        return cls(
            excellent_ms=config.excellent_latency_ms,
            good_ms=config.good_latency_ms,
            degraded_ms=config.degraded_latency_ms,
        )


@dataclass(frozen=True)
class ClassificationInput:
    """Aggregated batch results for one cycle."""

    router: Optional[ProbeResult]
    internet: Optional[ProbeResult]
    thresholds: LatencyThresholds
    router_enabled: bool = True

    @property
    def router_ok(self) -> bool:
        return self.router is not None and self.router.success

    @property
    def internet_ok(self) -> bool:
        return self.internet is not None and self.internet.success

    @property
    def router_ms(self) -> int:
        return self.router.round_trip_ms if self.router_ok else 0

    @property
    def internet_ms(self) -> int:
        return self.internet.round_trip_ms if self.internet_ok else 0


@dataclass(frozen=True)
class ClassificationRule:
    """A (predicate, level, message) rule; message is formatted with the input."""

    name: str
    predicate: Callable[[ClassificationInput], bool]
    level: HealthLevel
    message: str

    def render(self, data: ClassificationInput) -> str:
        return self.message.format(
            router_ms=data.router_ms,
            internet_ms=data.internet_ms,
            router=data.router.target if data.router else "none",
            internet=data.internet.target if data.internet else "none",
        )


def _router_within_excellent(data: ClassificationInput) -> bool:
    if not data.router_enabled:
        return True
    return data.router_ms <= data.thresholds.excellent_ms


# Evaluated top to bottom, first match wins
RULES: List[ClassificationRule] = [
    ClassificationRule(
        "router_down",
        lambda d: d.router_enabled and not d.router_ok,
        HealthLevel.OFFLINE,
        "Cannot reach local network",
    ),
    ClassificationRule(
        "no_router_no_internet",
        lambda d: not d.router_enabled and not d.internet_ok,
        HealthLevel.OFFLINE,
        "No internet access (no router to check)",
    ),
    ClassificationRule(
        "internet_down",
        lambda d: not d.internet_ok,
        HealthLevel.POOR,
        "Local network OK, no internet access",
    ),
    ClassificationRule(
        "excellent",
        lambda d: d.internet_ms <= d.thresholds.excellent_ms and _router_within_excellent(d),
        HealthLevel.EXCELLENT,
        "Network is excellent (internet {internet_ms}ms)",
    ),
    ClassificationRule(
        "good",
        lambda d: d.internet_ms <= d.thresholds.good_ms,
        HealthLevel.GOOD,
        "Network is good (internet {internet_ms}ms)",
    ),
    ClassificationRule(
        "degraded",
        lambda d: d.internet_ms <= d.thresholds.degraded_ms,
        HealthLevel.DEGRADED,
        "Network is degraded (high latency: internet {internet_ms}ms)",
    ),
    ClassificationRule(
        "very_high_latency",
        lambda d: True,
        HealthLevel.POOR,
        "Network is poor (very high latency: internet {internet_ms}ms)",
    ),
]


def classify(
    router: Optional[ProbeResult],
    internet: Optional[ProbeResult],
    thresholds: LatencyThresholds = LatencyThresholds(),
    router_enabled: bool = True,
    rules: List[ClassificationRule] = RULES,
) -> Tuple[HealthLevel, str]:
    """
    Classify overall network health.

    Args:
        router: Aggregated router batch result (None if absent)
        internet: Aggregated internet batch result
        thresholds: Latency bands
        router_enabled: False when no router address could be resolved
        rules: Ordered rule list

    Returns:
        Tuple of (HealthLevel, human-readable message)
    """
    data = ClassificationInput(router, internet, thresholds, router_enabled)
    for rule in rules:
        if rule.predicate(data):
            message = rule.render(data)
            if router_enabled and data.router_ok:
                message = f"{message}, router {data.router_ms}ms"
            return rule.level, message
    raise ValueError("no classification rule matched")
