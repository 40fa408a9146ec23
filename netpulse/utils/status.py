"""Network health level enumeration."""

from enum import IntEnum


class HealthLevel(IntEnum):
    """
    Overall network health, ordered worst to best.

    Integer values allow direct comparison, e.g. HealthLevel.EXCELLENT > HealthLevel.POOR.
    """

    OFFLINE = 0
    POOR = 1
    DEGRADED = 2
    GOOD = 3
    EXCELLENT = 4

    @property
    def label(self) -> str:
        """Human-readable name, e.g. "Excellent"."""
        return self.name.capitalize()

    @property
    def is_usable(self) -> bool:
        """True for levels where the network can still be used."""
        return self >= HealthLevel.DEGRADED

    def to_symbol(self) -> str:
        """
        Convert level to a single-character status symbol.

        Returns:
            str: Symbol representing the health level
        """
        return {
            HealthLevel.EXCELLENT: "●",
            HealthLevel.GOOD: "○",
            HealthLevel.DEGRADED: "◐",
            HealthLevel.POOR: "◑",
            HealthLevel.OFFLINE: "○",
        }[self]

    def ansi_color(self) -> str:
        """
        ANSI escape sequence used when rendering this level in a terminal.

        Returns:
            str: Color escape code
        """
        return {
            HealthLevel.EXCELLENT: "\x1b[32m",
            HealthLevel.GOOD: "\x1b[32m",
            HealthLevel.DEGRADED: "\x1b[33m",
            HealthLevel.POOR: "\x1b[31m",
            HealthLevel.OFFLINE: "\x1b[31m",
        }[self]
