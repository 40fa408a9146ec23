"""Tests for the internet target catalog."""

from netpulse.probes.targets import DEFAULT_TARGETS, TargetCatalog


class TestTargetCatalog:
    """Test suite for TargetCatalog."""

    def test_configured_target_first(self):
        """Test that the configured target leads the candidate list."""
        catalog = TargetCatalog("example.net")
        candidates = catalog.candidates()
        assert candidates[0] == "example.net"
        assert candidates[1:] == list(DEFAULT_TARGETS)

    def test_duplicate_not_repeated(self):
        """Test that a configured default target is not listed twice."""
        catalog = TargetCatalog("1.1.1.1")
        candidates = catalog.candidates()
        assert candidates[0] == "1.1.1.1"
        assert candidates.count("1.1.1.1") == 1
        assert len(candidates) == len(DEFAULT_TARGETS)

    def test_primary_target_is_stripped(self):
        """Test surrounding whitespace is dropped from the configured target."""
        catalog = TargetCatalog("  dns.example ")
        assert catalog.primary_target == "dns.example"
        assert catalog.candidates()[0] == "dns.example"

    def test_defaults(self):
        """Test the built-in list."""
        assert TargetCatalog("8.8.8.8").defaults()[:2] == ["8.8.8.8", "1.1.1.1"]
