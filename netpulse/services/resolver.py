"""Resolution of the router and internet probe targets."""

import asyncio
import logging
from typing import Optional

from ..config.models import MonitorConfig
from ..probes.base import Prober
from ..probes.gateway import GatewayDiscoverer
from ..probes.targets import TargetCatalog


class ResolverDisposedError(RuntimeError):
    """Raised when a resolver is used after close()."""


class ConfigurationResolver:
    """
    Resolve which router and internet target to probe, once per process.

    "auto" router addresses are discovered from the routing table and verified
    by probing, falling back to common gateway addresses. The internet target
    falls back through the target catalog when the configured one does not
    respond. Results are cached for the lifetime of the resolver; a fresh
    process is needed to re-resolve.
    """

    def __init__(
        self,
        gateway_discoverer: GatewayDiscoverer,
        target_catalog: TargetCatalog,
        prober: Prober,
        config: MonitorConfig,
        logger: logging.Logger = None,
    ):
        """
        Initialize configuration resolver.

        Args:
            gateway_discoverer: Source of the OS default gateway and fallback gateways
            target_catalog: Ordered internet target candidates
            prober: Prober used to verify reachability
            config: Monitor configuration (router address, target, timeout, fallback flag)
            logger: Optional logger instance
        """
        self.gateway_discoverer = gateway_discoverer
        self.target_catalog = target_catalog
        self.prober = prober
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._lock = asyncio.Lock()
        self._initialized = False
        self._disposed = False
        self._router_address: Optional[str] = None
        self._internet_target: Optional[str] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        """True once both addresses have been resolved."""
        return self._initialized

    async def resolve_router(self, timeout_ms: Optional[int] = None) -> Optional[str]:
        """
        Router address to probe, or None if no gateway could be found.

        Args:
            timeout_ms: Per-probe timeout for the first resolution (default: config)

        Returns:
            Optional[str]: Router address; None disables router monitoring

        Raises:
            ResolverDisposedError: If called after close()
        """
        await self.initialize(timeout_ms)
        return self._router_address

    async def resolve_internet_target(self, timeout_ms: Optional[int] = None) -> str:
        """
        Internet target to probe. Never None.

        Args:
            timeout_ms: Per-probe timeout for the first resolution (default: config)

        Returns:
            str: First reachable candidate, or the configured target if none respond

        Raises:
            ResolverDisposedError: If called after close()
        """
        await self.initialize(timeout_ms)
        return self._internet_target or self.target_catalog.primary_target

    async def initialize(self, timeout_ms: Optional[int] = None) -> None:
        """
        Resolve both addresses if not done yet.

        Concurrent callers wait for the first one and then read its cached result.

        Args:
            timeout_ms: Per-probe timeout (default: config.timeout_ms)
        """
        self._ensure_not_disposed()
        if self._initialized:
            return

        async with self._lock:
            self._ensure_not_disposed()
            if self._initialized:
                return

            timeout_ms = timeout_ms or self.config.timeout_ms
            self.logger.info("Initializing network configuration...")

            self._router_address = await self._resolve_router_address(timeout_ms)
            if self._router_address is not None:
                self.logger.info(f"Router address resolved to: {self._router_address}")
            else:
                self.logger.warning(
                    "Could not resolve router address - router monitoring will be skipped"
                )

            self._internet_target = await self._resolve_internet_target(timeout_ms)
            self.logger.info(f"Internet target resolved to: {self._internet_target}")

            self._initialized = True

    def close(self) -> None:
        """Dispose the resolver. Later accessor calls raise ResolverDisposedError."""
        self._disposed = True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise ResolverDisposedError("ConfigurationResolver used after disposal")

    async def _resolve_router_address(self, timeout_ms: int) -> Optional[str]:
        # Operator intent wins, even if the address is down right now
        if not self.config.is_router_auto_detect:
            self.logger.debug(f"Using configured router address: {self.config.router_address}")
            return self.config.router_address

        self.logger.debug("Attempting router auto-detection...")
        detected = await asyncio.to_thread(self.gateway_discoverer.discover)
        if detected:
            if await self._is_reachable(detected, timeout_ms):
                self.logger.debug(f"Auto-detected gateway {detected} is reachable")
                return detected
            self.logger.warning(f"Auto-detected gateway {detected} is not reachable")

        self.logger.debug("Trying common gateway addresses...")
        for address in self.gateway_discoverer.common_gateways():
            if address == detected:
                continue
            if await self._is_reachable(address, timeout_ms):
                self.logger.info(f"Found reachable gateway at common address: {address}")
                return address

        return None

    async def _resolve_internet_target(self, timeout_ms: int) -> str:
        primary = self.target_catalog.primary_target

        if not self.config.enable_fallback_targets:
            self.logger.debug(f"Fallback targets disabled, using primary: {primary}")
            if not await self._is_reachable(primary, timeout_ms):
                self.logger.warning(f"Internet target {primary} is not reachable")
            return primary

        for target in self.target_catalog.candidates():
            if await self._is_reachable(target, timeout_ms):
                if target != primary:
                    self.logger.info(
                        f"Primary target {primary} unreachable, using fallback: {target}"
                    )
                return target
            self.logger.debug(f"Internet target {target} is not reachable")

        # Might come back online; the monitor will report the failure meanwhile
        self.logger.warning(f"No internet targets are reachable, defaulting to: {primary}")
        return primary

    async def _is_reachable(self, target: str, timeout_ms: int) -> bool:
        try:
            result = await self.prober.probe(target, timeout_ms)
        except Exception as e:
            self.logger.debug(f"Probe to {target} failed: {e}")
            return False
        return result.success
