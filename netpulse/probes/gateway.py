"""Default gateway discovery from the OS routing table."""

import ipaddress
import logging
import platform
import re
import subprocess
from pathlib import Path
from typing import List, Optional

# Common consumer router addresses, ordered by popularity
COMMON_GATEWAYS = (
    "192.168.1.1",    # Linksys, TP-Link, many ISP routers
    "192.168.0.1",    # D-Link, Netgear, some ISPs
    "10.0.0.1",       # Apple AirPort, some enterprise networks
    "192.168.2.1",    # Belkin, SMC
    "192.168.1.254",  # Some ISP-provided routers
    "192.168.0.254",  # Some ISP-provided routers
    "10.0.1.1",       # Apple AirPort alternate
    "192.168.10.1",   # Some business routers
    "192.168.100.1",  # Some cable modems
    "172.16.0.1",     # Private range, less common for home
)

PROC_NET_ROUTE = Path("/proc/net/route")

# Route flags from linux/route.h
_RTF_UP = 0x0001
_RTF_GATEWAY = 0x0002

_ROUTE_OUTPUT_PATTERNS = (
    re.compile(r"^default\s+via\s+(\S+)", re.MULTILINE),             # ip route
    re.compile(r"^\s*gateway:\s*(\S+)", re.MULTILINE),               # route -n get default
    re.compile(r"^\s*0\.0\.0\.0\s+0\.0\.0\.0\s+(\S+)", re.MULTILINE),  # route print
)


def _usable_ipv4(value: str) -> Optional[str]:
    """Return value if it is a routable IPv4 gateway address, else None."""
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return None
    if address.version != 4 or address.is_unspecified:
        return None
    return str(address)


def parse_proc_net_route(text: str) -> Optional[str]:
    """Extract the default IPv4 gateway from /proc/net/route contents.

    Gateways are little-endian hex. When several default routes exist the one
    with the lowest metric wins.

    Args:
        text: Raw /proc/net/route file contents

    Returns:
        Dotted-quad gateway address, or None if there is no default route
    """
    candidates = []
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 7:
            continue
        iface, destination, gateway, flags = fields[0], fields[1], fields[2], fields[3]
        try:
            flag_bits = int(flags, 16)
            metric = int(fields[6])
            gateway_int = int.from_bytes(bytes.fromhex(gateway), "little")
        except ValueError:
            continue
        if destination != "00000000" or iface == "lo":
            continue
        if not (flag_bits & _RTF_UP and flag_bits & _RTF_GATEWAY):
            continue
        address = _usable_ipv4(str(ipaddress.IPv4Address(gateway_int)))
        if address:
            candidates.append((metric, address))

    if not candidates:
        return None
    return min(candidates)[1]


def parse_route_output(text: str) -> Optional[str]:
    """Extract the default IPv4 gateway from `ip route`, `route -n get` or `route print` output."""
    if not text:
        return None
    for pattern in _ROUTE_OUTPUT_PATTERNS:
        for match in pattern.finditer(text):
            address = _usable_ipv4(match.group(1))
            if address:
                return address
    return None


class GatewayDiscoverer:
    """Reads the configured default gateway from the local routing table."""

    command_timeout_s = 2.0

    def __init__(self, logger: logging.Logger = None, system: Optional[str] = None):
        """
        Initialize gateway discoverer.

        Args:
            logger: Optional logger instance
            system: Platform name override (default: platform.system())
        """
        self.logger = logger or logging.getLogger(__name__)
        self.system = system or platform.system()

    def discover(self) -> Optional[str]:
        """
        Detect the default gateway.

        Never raises: any failure is logged and reported as None.

        Returns:
            Optional[str]: Gateway IPv4 address, or None if none was found
        """
        try:
            self.logger.debug("Attempting to detect default gateway...")

            if self.system == "Linux" and PROC_NET_ROUTE.exists():
                gateway = parse_proc_net_route(PROC_NET_ROUTE.read_text())
                if gateway:
                    self.logger.info(f"Detected default gateway: {gateway}")
                    return gateway

            for command in self._route_commands():
                gateway = parse_route_output(self._run(command))
                if gateway:
                    self.logger.info(f"Detected default gateway: {gateway} via {command[0]}")
                    return gateway

            self.logger.warning("No default gateway found in routing table")
            return None

        except Exception as e:
            self.logger.error(f"Failed to detect default gateway: {e}", exc_info=True)
            return None

    def common_gateways(self) -> List[str]:
        """Fallback gateway addresses in priority order."""
        return list(COMMON_GATEWAYS)

    def _route_commands(self) -> List[List[str]]:
        if self.system == "Windows":
            return [["route", "print", "0.0.0.0"]]
        if self.system == "Linux":
            return [["ip", "-4", "route", "show", "default"]]
        return [["route", "-n", "get", "default"]]

    def _run(self, command: List[str]) -> str:
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.command_timeout_s,
                shell=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.debug(f"Route command {command[0]} unavailable: {e}")
            return ""
        return result.stdout or ""
