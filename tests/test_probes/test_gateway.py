"""Tests for default gateway discovery."""

import logging
from unittest.mock import Mock, patch

from netpulse.probes.gateway import (
    COMMON_GATEWAYS,
    GatewayDiscoverer,
    parse_proc_net_route,
    parse_route_output,
)


PROC_NET_ROUTE_TEXT = (
    "Iface\tDestination\tGateway \tFlags\tRefCnt\tUse\tMetric\tMask\t\tMTU\tWindow\tIRTT\n"
    "wlan0\t00000000\t0100000A\t0003\t0\t0\t600\t00000000\t0\t0\t0\n"
    "eth0\t00000000\t0101A8C0\t0003\t0\t0\t100\t00000000\t0\t0\t0\n"
    "eth0\t0001A8C0\t00000000\t0001\t0\t0\t100\t00FFFFFF\t0\t0\t0\n"
)


class TestParseProcNetRoute:
    """Test suite for /proc/net/route parsing."""

    def test_lowest_metric_default_route(self):
        """Test that the default route with the lowest metric wins."""
        assert parse_proc_net_route(PROC_NET_ROUTE_TEXT) == "192.168.1.1"

    def test_no_default_route(self):
        """Test a table without a default route."""
        text = PROC_NET_ROUTE_TEXT.splitlines()[0] + "\n" + PROC_NET_ROUTE_TEXT.splitlines()[3]
        assert parse_proc_net_route(text) is None

    def test_route_without_gateway_flag_ignored(self):
        """Test that default routes lacking RTF_GATEWAY are skipped."""
        text = (
            "Iface\tDestination\tGateway\tFlags\tRefCnt\tUse\tMetric\tMask\n"
            "tun0\t00000000\t00000000\t0001\t0\t0\t0\t00000000\n"
        )
        assert parse_proc_net_route(text) is None

    def test_empty(self):
        assert parse_proc_net_route("") is None


class TestParseRouteOutput:
    """Test suite for route command output parsing."""

    def test_ip_route(self):
        """Test `ip route show default` output."""
        assert parse_route_output("default via 192.168.0.1 dev eth0 proto dhcp metric 100\n") == "192.168.0.1"

    def test_route_get_default(self):
        """Test macOS `route -n get default` output."""
        text = "   route to: default\ndestination: default\n    gateway: 10.0.1.1\n  interface: en0\n"
        assert parse_route_output(text) == "10.0.1.1"

    def test_route_print(self):
        """Test Windows `route print` output."""
        text = (
            "Network Destination        Netmask          Gateway       Interface  Metric\n"
            "          0.0.0.0          0.0.0.0      192.168.1.254    192.168.1.10     25\n"
        )
        assert parse_route_output(text) == "192.168.1.254"

    def test_non_ipv4_ignored(self):
        """Test that IPv6 or link-local names are not returned."""
        assert parse_route_output("default via fe80::1 dev eth0\n") is None

    def test_empty(self):
        assert parse_route_output("") is None


class TestGatewayDiscoverer:
    """Test suite for GatewayDiscoverer."""

    def test_reads_proc_net_route_on_linux(self, tmp_path):
        """Test Linux discovery via /proc/net/route."""
        route_file = tmp_path / "route"
        route_file.write_text(PROC_NET_ROUTE_TEXT)
        discoverer = GatewayDiscoverer(logger=logging.getLogger("test.gateway"), system="Linux")

        with patch("netpulse.probes.gateway.PROC_NET_ROUTE", route_file), \
                patch.object(discoverer, "_run") as run:
            assert discoverer.discover() == "192.168.1.1"
            run.assert_not_called()

    def test_falls_back_to_route_command(self):
        """Test route command parsing when /proc is unavailable."""
        discoverer = GatewayDiscoverer(logger=logging.getLogger("test.gateway"), system="Darwin")
        with patch.object(discoverer, "_run", return_value="    gateway: 10.0.0.1\n") as run:
            assert discoverer.discover() == "10.0.0.1"
            assert run.call_args.args[0] == ["route", "-n", "get", "default"]

    def test_nothing_found(self):
        """Test that no gateway yields None."""
        discoverer = GatewayDiscoverer(logger=logging.getLogger("test.gateway"), system="Windows")
        with patch.object(discoverer, "_run", return_value=""):
            assert discoverer.discover() is None

    def test_errors_are_logged_not_raised(self):
        """Test that discovery never raises."""
        logger = Mock(spec=logging.Logger)
        discoverer = GatewayDiscoverer(logger=logger, system="Darwin")
        with patch.object(discoverer, "_run", side_effect=RuntimeError("boom")):
            assert discoverer.discover() is None
        logger.error.assert_called_once()

    def test_missing_route_binary(self):
        """Test that a missing route binary is treated as empty output."""
        discoverer = GatewayDiscoverer(logger=logging.getLogger("test.gateway"), system="Darwin")
        with patch("netpulse.probes.gateway.subprocess.run", side_effect=FileNotFoundError("route")):
            assert discoverer.discover() is None

    def test_common_gateways(self):
        """Test the fallback list order."""
        gateways = GatewayDiscoverer(system="Linux").common_gateways()
        assert gateways == list(COMMON_GATEWAYS)
        assert gateways[:3] == ["192.168.1.1", "192.168.0.1", "10.0.0.1"]
