"""Single-line colorized terminal status display."""

import sys
import threading
from typing import Optional, TextIO

from ..utils.results import NetworkStatus, ProbeResult

RESET = "\x1b[0m"
BOLD = "\x1b[1m"
GREEN = "\x1b[32m"
RED = "\x1b[31m"
CYAN = "\x1b[36m"
MAGENTA = "\x1b[35m"


def _format_latency(result: Optional[ProbeResult]) -> str:
    if result is not None and result.success:
        return f"{GREEN}{result.round_trip_ms:>4}ms{RESET}"
    return f"{RED}FAIL{RESET}  "


class ConsoleStatusDisplay:
    """Renders each NetworkStatus as one overwriting terminal line."""

    def __init__(self, stream: TextIO = None, width: int = 80):
        """
        Initialize console display.

        Args:
            stream: Output stream (default: stdout)
            width: Line width blanked by clear()
        """
        self.stream = stream or sys.stdout
        self.width = width
        self._lock = threading.Lock()

    def render(self, status: NetworkStatus) -> str:
        """Build the colorized status line for a snapshot."""
        health = status.health
        router = (
            _format_latency(status.router_result)
            if status.router_result is not None
            else f"{MAGENTA}n/a{RESET}   "
        )
        return (
            f"{health.ansi_color()}{BOLD}{health.to_symbol()} {health.label:<10}{RESET} "
            f"{CYAN}Router:{RESET} {router} "
            f"{CYAN}Internet:{RESET} {_format_latency(status.internet_result)} "
            f"{MAGENTA}[{status.timestamp:%H:%M:%S}]{RESET}"
        )

    def update(self, status: NetworkStatus) -> None:
        """Overwrite the current line with the new status."""
        with self._lock:
            # Trailing padding clears leftovers of a longer previous line
            self.stream.write(f"\r{self.render(status)}          ")
            self.stream.flush()

    def clear(self) -> None:
        """Blank the status line."""
        with self._lock:
            self.stream.write("\r" + " " * (self.width - 1) + "\r")
            self.stream.flush()
