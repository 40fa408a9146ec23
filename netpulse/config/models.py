"""Pydantic configuration models for NetPulse."""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional


AUTO_DETECT = "auto"


class MonitorConfig(BaseModel):
    """Probe targets, cadence and classification thresholds."""
    router_address: str = AUTO_DETECT  # "auto" or an explicit gateway address
    internet_target: str = "8.8.8.8"
    timeout_ms: int = Field(default=3000, ge=100, le=60000)
    interval_ms: int = Field(default=5000, ge=100)
    pings_per_cycle: int = Field(default=3, ge=1, le=100)
    excellent_latency_ms: int = Field(default=20, ge=0)
    good_latency_ms: int = Field(default=100, ge=0)
    degraded_latency_ms: int = Field(default=200, ge=0)
    enable_fallback_targets: bool = True

    @field_validator('internet_target')
    @classmethod
    def validate_internet_target(cls, v: str) -> str:
        """Internet target must be a non-blank host."""
        v = v.strip()
        if not v:
            raise ValueError('internet_target must not be empty')
        return v

    @field_validator('router_address')
    @classmethod
    def normalize_router_address(cls, v: str) -> str:
        """Blank router address means auto-detection."""
        return v.strip() or AUTO_DETECT

    @model_validator(mode='after')
    def thresholds_ascending(self) -> "MonitorConfig":
        """Ensure excellent <= good <= degraded."""
        if not (self.excellent_latency_ms <= self.good_latency_ms <= self.degraded_latency_ms):
            raise ValueError(
                'Latency thresholds must satisfy excellent <= good <= degraded'
            )
        return self

    @property
    def is_router_auto_detect(self) -> bool:
        """True when the router address should be discovered rather than used as-is."""
        return self.router_address.lower() == AUTO_DETECT


class StorageConfig(BaseModel):
    """SQLite historical store configuration."""
    application_name: str = "NetPulse"
    database_name: str = "netpulse.db"
    directory: Optional[str] = None  # Overrides directory auto-resolution
    retention_days: int = Field(default=30, ge=1)
    prune_probability: float = Field(default=0.01, ge=0.0, le=1.0)


class TelemetryConfig(BaseModel):
    """Rotating JSON telemetry file configuration."""
    enabled: bool = True
    application_name: str = "NetPulse"
    directory: Optional[str] = None  # Overrides directory auto-resolution
    max_file_size_bytes: int = Field(default=25 * 1024 * 1024, ge=1024)
    export_interval_seconds: int = Field(default=60, ge=1)


class NetPulseConfig(BaseModel):
    """Root configuration model."""
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
