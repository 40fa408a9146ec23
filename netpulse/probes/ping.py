"""ICMP reachability prober using the system ping command."""

import asyncio
import logging
import platform
import re
from math import ceil
from typing import List, Optional

from ..utils.results import ProbeResult
from .base import Prober, safe_probe


# "time<1ms" (Windows fast reply) and "time=12.3 ms" / "time = 12 ms"
_LESS_THAN_PATTERN = re.compile(r"time<(\d+)", re.IGNORECASE)
_LATENCY_PATTERN = re.compile(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)


def parse_ping_latency_ms(output: str) -> Optional[float]:
    """Parse latency value from ping command output.

    Handles various ping output formats across platforms:
    - Linux/macOS: "time=12.3 ms"
    - Windows: "time=12ms" or "time<1ms"

    Windows "time<Nms" is interpreted as N/2 ms (midpoint estimate).

    Args:
        output: Raw ping command output (stdout or combined stdout+stderr)

    Returns:
        Latency in milliseconds (float), or None if parsing failed

    Examples:
        >>> parse_ping_latency_ms("time=12.3 ms")
        12.3
        >>> parse_ping_latency_ms("time<1ms")
        0.5
        >>> parse_ping_latency_ms("Request timed out.")
    """
    if not output:
        return None

    match = _LESS_THAN_PATTERN.search(output)
    if match:
        return float(match.group(1)) / 2.0

    match = _LATENCY_PATTERN.search(output)
    if match:
        try:
            return float(match.group(1))
        except (ValueError, IndexError):
            return None

    return None


def build_ping_command(system: str, host: str, timeout_ms: int) -> List[str]:
    """Build a single-echo ping command for the given platform.

    Args:
        system: platform.system() value ("Windows", "Linux", "Darwin", ...)
        host: Target host to ping
        timeout_ms: Reply timeout in milliseconds

    Returns:
        List of command arguments for subprocess
    """
    if system == "Windows":
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]

    if system == "Linux":
        # -W takes whole seconds
        timeout_secs = max(1, ceil(timeout_ms / 1000.0))
        return ["ping", "-c", "1", "-W", str(timeout_secs), host]

    # macOS/BSD: -W has different semantics, rely on the subprocess timeout
    return ["ping", "-c", "1", host]


class PingProber(Prober):
    """Prober that shells out to the OS ping command.

    Each probe runs in its own child process, so concurrent probes never share
    state. Parsing relies on the English keyword "time" in ping output; on
    other locales successful replies are reported as unparseable failures.
    """

    # Extra slack on top of the ping timeout before the child is killed
    timeout_buffer_s: float = 0.5

    def __init__(self, logger: logging.Logger = None, system: Optional[str] = None):
        """
        Initialize ping prober.

        Args:
            logger: Optional logger instance
            system: Platform name override (default: platform.system())
        """
        super().__init__(logger)
        self.system = system or platform.system()

    @safe_probe
    async def probe(self, target: str, timeout_ms: int) -> ProbeResult:
        """
        Ping target once.

        Args:
            target: Hostname or IP address
            timeout_ms: Maximum time to wait for the echo reply

        Returns:
            ProbeResult: Succeeded with integer round-trip ms, or failed with a reason
        """
        if not target or not target.strip():
            return ProbeResult.failed(target, "Empty target")
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        cmd = build_ping_command(self.system, target, timeout_ms)
        self.logger.debug(f"Pinging {target} with timeout {timeout_ms}ms")

        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )

        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout_ms / 1000.0 + self.timeout_buffer_s,
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            self.logger.debug(f"Ping to {target} timed out")
            return ProbeResult.failed(target, "TimedOut")
        except asyncio.CancelledError:
            await self._kill(process)
            self.logger.debug(f"Ping to {target} cancelled")
            raise

        output = stdout.decode(errors="replace") if stdout else ""

        if process.returncode != 0:
            self.logger.debug(f"Ping to {target} failed: returncode={process.returncode}")
            return ProbeResult.failed(target, "Unreachable")

        latency = parse_ping_latency_ms(output)
        if latency is None:
            self.logger.debug(f"Ping to {target} reply unparseable: {output[:100]!r}")
            return ProbeResult.failed(target, "Unparseable reply")

        # Platform reply timeouts are coarser than timeout_ms
        if latency > timeout_ms:
            self.logger.debug(f"Ping to {target} replied after {latency:.1f}ms, over {timeout_ms}ms")
            return ProbeResult.failed(target, "TimedOut")

        self.logger.debug(f"Ping to {target} succeeded: {latency:.1f}ms")
        return ProbeResult.succeeded(target, int(round(latency)))

    @staticmethod
    async def _kill(process) -> None:
        """Kill a ping child process that is still running and reap it."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
