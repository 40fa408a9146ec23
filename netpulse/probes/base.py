"""Base prober abstract class for reachability probes."""

from abc import ABC, abstractmethod
from typing import List
import asyncio
import logging
from functools import wraps

from ..utils.results import ProbeResult


class Prober(ABC):
    """Abstract base class for reachability probers."""

    # Pause between repeated probes so a batch does not flood the target
    inter_probe_delay_s: float = 0.05

    def __init__(self, logger: logging.Logger = None):
        """
        Initialize base prober.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    async def probe(self, target: str, timeout_ms: int) -> ProbeResult:
        """
        Send one timed probe to target.

        Args:
            target: Hostname or IP address
            timeout_ms: Maximum time to wait for a reply

        Returns:
            ProbeResult: Reachability outcome

        Note:
            Implementations should use @safe_probe so unexpected errors become
            failed results. asyncio.CancelledError must always propagate.
        """
        pass

    async def probe_many(self, target: str, count: int, timeout_ms: int) -> List[ProbeResult]:
        """
        Probe target count times, sequentially, with the same timeout.

        Args:
            target: Hostname or IP address
            count: Number of probes to send
            timeout_ms: Per-probe timeout

        Returns:
            List[ProbeResult]: Results in the order the probes were issued
        """
        results = []
        for i in range(count):
            results.append(await self.probe(target, timeout_ms))
            if i < count - 1 and self.inter_probe_delay_s > 0:
                await asyncio.sleep(self.inter_probe_delay_s)
        return results


def safe_probe(func):
    """
    Decorator converting unexpected probe exceptions into failed results.

    asyncio.CancelledError derives from BaseException and is never caught here.

    Args:
        func: Prober coroutine taking (self, target, timeout_ms)

    Returns:
        Wrapped coroutine that always returns a ProbeResult
    """
    @wraps(func)
    async def wrapper(self, target: str, timeout_ms: int, *args, **kwargs):
        try:
            return await func(self, target, timeout_ms, *args, **kwargs)
        except Exception as e:
            self.logger.error(f"Unexpected error probing {target}: {e}", exc_info=True)
            return ProbeResult.failed(target, f"Unexpected error: {e}")
    return wrapper
