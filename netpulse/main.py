"""Main application entry point for NetPulse network health monitoring."""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional, TextIO

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config.loader import ConfigLoader
from .config.models import NetPulseConfig
from .config.settings import Settings
from .probes.base import Prober
from .probes.gateway import GatewayDiscoverer
from .probes.ping import PingProber
from .probes.targets import TargetCatalog
from .services.console_display import ConsoleStatusDisplay
from .services.history_store import HistoricalStore
from .services.monitor import HealthMonitor
from .services.resolver import ConfigurationResolver
from .services.telemetry_sink import ExportResult, FileTelemetrySink
from .utils.logger import setup_logger
from .utils.metrics import MetricsRegistry
from .utils.results import Granularity, NetworkStatus, utc_now
from .utils.status import HealthLevel


class NetPulseApp:
    """
    Main monitoring application.

    Wires the prober, resolver, monitor, history store, telemetry sink and
    console display together and drives monitoring cycles on a schedule.
    """

    def __init__(
        self,
        config: NetPulseConfig,
        logger: logging.Logger = None,
        prober: Optional[Prober] = None,
        gateway_discoverer: Optional[GatewayDiscoverer] = None,
        display: Optional[ConsoleStatusDisplay] = None,
        store: Optional[HistoricalStore] = None,
        sink: Optional[FileTelemetrySink] = None,
    ):
        """
        Initialize monitoring application.

        Args:
            config: Validated configuration
            logger: Optional logger (default: JSON logger "netpulse")
            prober: Prober override (default: PingProber)
            gateway_discoverer: Gateway discoverer override
            display: Status display override
            store: Historical store override
            sink: Telemetry sink override (default: built when telemetry is enabled)
        """
        self.config = config
        self.logger = logger or setup_logger("netpulse")
        self.metrics = MetricsRegistry()

        self.prober = prober or PingProber(self.logger.getChild("probe"))
        self.gateway_discoverer = gateway_discoverer or GatewayDiscoverer(
            self.logger.getChild("gateway")
        )
        self.resolver = ConfigurationResolver(
            self.gateway_discoverer,
            TargetCatalog(config.monitor.internet_target),
            self.prober,
            config.monitor,
            self.logger.getChild("resolver"),
        )
        self.monitor = HealthMonitor(
            self.prober,
            self.resolver,
            config.monitor,
            self.metrics,
            self.logger.getChild("monitor"),
        )
        self.store = store or HistoricalStore(config.storage, self.logger.getChild("store"))
        if sink is None and config.telemetry.enabled:
            sink = FileTelemetrySink(config.telemetry, self.logger.getChild("telemetry"))
        self.sink = sink
        self.display = display or ConsoleStatusDisplay()

        self.monitor.subscribe(self._on_status_changed)

        self.scheduler: Optional[AsyncIOScheduler] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def run_cycle(self) -> Optional[NetworkStatus]:
        """
        Execute one monitoring cycle: check, display, persist.

        Non-cancellation errors are logged and the loop carries on.

        Returns:
            Optional[NetworkStatus]: Cycle status, or None if the cycle failed
        """
        try:
            status = await self.monitor.check()
        except Exception as e:
            self.logger.error(
                "Monitoring cycle failed",
                exc_info=True,
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }
            )
            return None

        self.display.update(status)
        await self.store.record_cycle(status)
        return status

    async def export_telemetry(self) -> Optional[ExportResult]:
        """
        Flush current metric readings to the telemetry sink.

        Returns:
            Optional[ExportResult]: Export outcome, None when telemetry is disabled
        """
        if self.sink is None:
            return None

        readings = self.metrics.collect()
        result = await asyncio.to_thread(self.sink.export, readings)
        if result is ExportResult.FAILURE:
            self.logger.warning("Telemetry export failed, monitoring continues")
        return result

    async def run(self, run_once: bool = False) -> None:
        """
        Run monitoring until stopped (SIGINT/SIGTERM), or a single cycle.

        Args:
            run_once: Run one cycle, export telemetry and return
        """
        try:
            if run_once:
                await self.run_cycle()
                await self.export_telemetry()
                return

            self._stop_event = asyncio.Event()
            self._install_signal_handlers()
            self.start_scheduler()

            self.logger.info("Scheduler running. Press Ctrl+C to exit.")
            await self._stop_event.wait()

        finally:
            if self.scheduler and self.scheduler.running:
                self.scheduler.shutdown(wait=False)
                self.logger.info("Scheduler stopped")
            if not run_once:
                await self.export_telemetry()
            self.shutdown()

    def start_scheduler(self) -> None:
        """
        Schedule monitoring cycles and telemetry export.

        The first cycle runs immediately; cycles never overlap.
        """
        monitor_config = self.config.monitor
        self.logger.info(
            f"NetPulse starting. Interval: {monitor_config.interval_ms}ms, "
            f"Router: {monitor_config.router_address}, Internet: {monitor_config.internet_target}"
        )

        self.scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())

        self.scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=monitor_config.interval_ms / 1000.0),
            id='monitoring_cycle',
            name='Network Health Cycle',
            max_instances=1,  # Prevent overlapping executions
            coalesce=True,  # If missed, run once
            next_run_time=datetime.now(timezone.utc),
        )

        if self.sink is not None:
            self.scheduler.add_job(
                self.export_telemetry,
                trigger=IntervalTrigger(seconds=self.config.telemetry.export_interval_seconds),
                id='telemetry_export',
                name='Telemetry Export',
                max_instances=1,
                coalesce=True,
            )

        self.scheduler.start()

    def stop(self) -> None:
        """Request shutdown of a running scheduler loop."""
        if self._stop_event is not None:
            self._stop_event.set()

    def shutdown(self) -> None:
        """Release resources: clear the display, finalize telemetry, dispose the resolver."""
        self.display.clear()
        if self.sink is not None:
            self.sink.close()
        self.resolver.close()
        self.logger.info("NetPulse stopped")

    async def show_history(
        self,
        hours: float,
        granularity: Granularity = Granularity.HOUR,
        stream: TextIO = None,
    ) -> None:
        """
        Print aggregated history for the last hours and the most recent samples.

        Args:
            hours: Size of the look-back window
            granularity: Bucket width
            stream: Output stream (default: stdout)
        """
        stream = stream or sys.stdout
        end = utc_now()
        start = end - timedelta(hours=hours)

        buckets = await self.store.query(start, end, granularity)
        print(f"History for the last {hours:g}h ({granularity.value} buckets):", file=stream)
        if not buckets:
            print("  no samples recorded", file=stream)
        for bucket in buckets:
            print(
                f"  {bucket.period_start:%Y-%m-%d %H:%M}  "
                f"avg {bucket.avg_latency_ms:7.1f}ms  "
                f"min {bucket.min_latency_ms:5d}ms  "
                f"max {bucket.max_latency_ms:5d}ms  "
                f"loss {bucket.packet_loss_percent:5.1f}%  "
                f"n={bucket.sample_count}",
                file=stream,
            )

        samples = await self.store.recent_samples(10)
        if samples:
            print("Most recent samples:", file=stream)
        for sample in samples:
            outcome = f"{sample.round_trip_ms}ms" if sample.success else sample.error_detail
            print(f"  {sample.timestamp:%Y-%m-%d %H:%M:%S}  {sample.target:<16} {outcome}", file=stream)

    def _on_status_changed(self, status: NetworkStatus, previous: Optional[NetworkStatus]) -> None:
        if status.health in (HealthLevel.OFFLINE, HealthLevel.POOR):
            self.logger.warning(f"Network is {status.health.label.upper()}: {status.message}")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
            except NotImplementedError:
                # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
                self.logger.debug(f"Signal handler for {sig.name} not supported on this platform")

    def _signal_handler(self, signum: signal.Signals) -> None:
        self.logger.info(f"Received {signum.name}, initiating graceful shutdown...")
        self.stop()


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts monitoring or prints history.
    """
    parser = argparse.ArgumentParser(
        description='NetPulse - at-a-glance network health monitoring',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Monitor continuously with defaults (router auto-detected)
  netpulse

  # Run one cycle and exit
  netpulse --run-once

  # Show hourly trend data for the last day
  netpulse --history 24 --granularity hour

  # Use custom config file
  netpulse --config /path/to/config.yaml
        """
    )

    parser.add_argument(
        '--config',
        default=Settings.config_path(),
        help='Path to configuration file (default: config/config.yaml or NETPULSE_CONFIG)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run one monitoring cycle and exit (no scheduler)'
    )

    parser.add_argument(
        '--history',
        type=float,
        metavar='HOURS',
        help='Print aggregated history for the last HOURS and exit'
    )

    parser.add_argument(
        '--granularity',
        default='hour',
        choices=[g.value for g in Granularity],
        help='Bucket width for --history (default: hour)'
    )

    parser.add_argument(
        '--log-level',
        default=Settings.log_level(),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or NETPULSE_LOG_LEVEL env var)'
    )

    args = parser.parse_args()
    logger = setup_logger("netpulse", args.log_level)

    try:
        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load_or_default(args.config)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}", exc_info=True)
        sys.exit(1)

    app = NetPulseApp(config, logger)

    try:
        if args.history is not None:
            asyncio.run(app.show_history(args.history, Granularity(args.granularity)))
        else:
            asyncio.run(app.run(run_once=args.run_once))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Application failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
