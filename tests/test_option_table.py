"""
Test stepped option tables, constrained ranges and nearest-stop search
"""
import math
import os
import sys

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from metering.option_table import (
    OptionTable,
    ConstrainedRange,
    nearest_index,
    stop_distance,
    ISO_TABLE,
    APERTURE_TABLE,
    SHUTTER_TABLE,
)


def brute_force_nearest(target, values, constraint):
    """Reference: first index with the minimal stop distance"""
    best = None
    for i in constraint.indices():
        d = stop_distance(target, values[i])
        if best is None or d < best[0]:
            best = (d, i)
    return best[1]


class TestStopDistance:

    def test_one_stop(self):
        assert stop_distance(200.0, 100.0) == pytest.approx(1.0)

    def test_symmetric(self):
        assert stop_distance(2.8, 5.6) == pytest.approx(stop_distance(5.6, 2.8))

    def test_non_positive_is_infinite(self):
        assert stop_distance(0.0, 1.0) == math.inf
        assert stop_distance(1.0, -2.0) == math.inf


class TestConstrainedRange:

    def test_full(self):
        r = ConstrainedRange.full(10)
        assert (r.min_index, r.max_index) == (0, 9)

    def test_clamp(self):
        r = ConstrainedRange(2, 5)
        assert r.clamp(0) == 2
        assert r.clamp(3) == 3
        assert r.clamp(9) == 5

    def test_min_above_max_pulls_max_up(self):
        r = ConstrainedRange(0, 3).with_min(7, 10)
        assert (r.min_index, r.max_index) == (7, 7)

    def test_max_below_min_pulls_min_down(self):
        r = ConstrainedRange(6, 9).with_max(2, 10)
        assert (r.min_index, r.max_index) == (2, 2)

    def test_bounds_clamped_to_table(self):
        r = ConstrainedRange(0, 9).with_max(42, 10)
        assert r.max_index == 9
        r = ConstrainedRange(0, 9).with_min(-3, 10)
        assert r.min_index == 0

    def test_indices_inclusive(self):
        assert list(ConstrainedRange(3, 5).indices()) == [3, 4, 5]


class TestOptionTable:

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            OptionTable("EMPTY", [])

    def test_rejects_non_increasing(self):
        with pytest.raises(ValueError):
            OptionTable("BAD", [100, 50, 200])

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            OptionTable("BAD", [0, 1, 2])

    def test_default_table_sizes(self):
        assert len(ISO_TABLE) == 10
        assert len(APERTURE_TABLE) == 30
        assert len(SHUTTER_TABLE) == 18

    def test_labels(self):
        assert ISO_TABLE.label(5) == "400"
        assert APERTURE_TABLE.label(8) == "f/2.8"
        assert SHUTTER_TABLE.label(5) == "1/125"
        assert SHUTTER_TABLE.label(13) == "2.0s"

    def test_index_of(self):
        assert ISO_TABLE.index_of(400) == 5
        assert ISO_TABLE.index_of(123) is None


class TestNearestIndex:
    """nearest_index must match an exhaustive search over the range"""

    @pytest.mark.parametrize("table", [ISO_TABLE, APERTURE_TABLE, SHUTTER_TABLE])
    def test_matches_exhaustive_search(self, table):
        size = len(table)
        targets = [table[0] / 3.0, table[-1] * 3.0]
        # Targets between and on every stop
        for a, b in zip(table.values, table.values[1:]):
            targets.extend([a, a * 1.1, (a + b) / 2.0, b * 0.93])

        ranges = [ConstrainedRange(0, size - 1), ConstrainedRange(2, size // 2),
                  ConstrainedRange(size // 3, size - 2), ConstrainedRange(4, 4)]

        for constraint in ranges:
            for target in targets:
                expected = brute_force_nearest(target, table.values, constraint)
                assert nearest_index(target, table.values, constraint) == expected
                assert constraint.contains(expected)

    def test_only_scans_range(self):
        """An out-of-range exact match is not selected"""
        constraint = ConstrainedRange(0, 3)
        assert ISO_TABLE.nearest_index(6400.0, constraint) == 3

    def test_uses_stop_distance_not_linear(self):
        """120 is linearly closer to 100 than 160 but also in stops"""
        assert ISO_TABLE.nearest_index(120.0) == 2
        # 130: linear says 100 (30 vs 30 tie), stops say 160
        assert ISO_TABLE.nearest_index(130.0) == 3

    def test_tie_goes_to_lowest_index(self):
        table = OptionTable("T", [1.0, 4.0])
        # 2.0 is exactly one stop from both
        assert table.nearest_index(2.0) == 0

    def test_non_positive_target_returns_lower_bound(self):
        assert SHUTTER_TABLE.nearest_index(0.0, ConstrainedRange(3, 8)) == 3

    def test_nan_target_returns_lower_bound(self):
        assert SHUTTER_TABLE.nearest_index(float('nan'), ConstrainedRange(3, 8)) == 3

    def test_infinite_target_returns_lower_bound(self):
        assert SHUTTER_TABLE.nearest_index(math.inf, ConstrainedRange(3, 8)) == 3
