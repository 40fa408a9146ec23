"""Tests for HealthLevel ordering and display helpers."""

import itertools

import pytest

from netpulse.utils.status import HealthLevel


ORDER = [
    HealthLevel.OFFLINE,
    HealthLevel.POOR,
    HealthLevel.DEGRADED,
    HealthLevel.GOOD,
    HealthLevel.EXCELLENT,
]


class TestHealthLevelOrdering:
    def test_numeric_values(self):
        assert [int(level) for level in ORDER] == [0, 1, 2, 3, 4]

    def test_ordering_is_total_and_consistent(self):
        for a, b in itertools.product(ORDER, repeat=2):
            assert (a < b) == (ORDER.index(a) < ORDER.index(b))
            assert (a == b) == (ORDER.index(a) == ORDER.index(b))
            assert (a > b) == (ORDER.index(a) > ORDER.index(b))

    def test_excellent_beats_good(self):
        assert HealthLevel.EXCELLENT > HealthLevel.GOOD
        assert max(ORDER) is HealthLevel.EXCELLENT
        assert min(ORDER) is HealthLevel.OFFLINE


class TestHealthLevelHelpers:
    @pytest.mark.parametrize("level,usable", [
        (HealthLevel.EXCELLENT, True),
        (HealthLevel.GOOD, True),
        (HealthLevel.DEGRADED, True),
        (HealthLevel.POOR, False),
        (HealthLevel.OFFLINE, False),
    ])
    def test_is_usable(self, level, usable):
        assert level.is_usable is usable

    def test_label(self):
        assert HealthLevel.DEGRADED.label == "Degraded"

    def test_every_level_has_symbol_and_color(self):
        for level in HealthLevel:
            assert level.to_symbol()
            assert level.ansi_color().startswith("\x1b[")
