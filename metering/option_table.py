"""
Stepped option tables and nearest-stop search

An OptionTable is the ordered list of values a lens or shutter dial can
actually be set to. A ConstrainedRange is the user-selected sub-range of
that table that the auto-exposure solver is allowed to use.
"""
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .exposure_math import format_shutter


def stop_distance(a: float, b: float) -> float:
    """
    Distance between two values in stops: |log2(a) - log2(b)|

    Returns infinity if either value is non-positive.
    """
    if a <= 0 or b <= 0:
        return math.inf
    return abs(math.log2(a) - math.log2(b))


@dataclass(frozen=True)
class ConstrainedRange:
    """Inclusive index range [min_index, max_index] into an OptionTable"""
    min_index: int
    max_index: int

    @classmethod
    def full(cls, size: int) -> "ConstrainedRange":
        """Range covering a whole table of the given size"""
        return cls(0, max(0, size - 1))

    def clamp(self, index: int) -> int:
        """Clamp an index into this range"""
        if index < self.min_index:
            return self.min_index
        if index > self.max_index:
            return self.max_index
        return index

    def contains(self, index: int) -> bool:
        return self.min_index <= index <= self.max_index

    def indices(self) -> range:
        return range(self.min_index, self.max_index + 1)

    def with_min(self, index: int, size: int) -> "ConstrainedRange":
        """
        New range with a different lower bound

        The bound is clamped to the table; if it ends up above the current
        upper bound, the upper bound is pulled up to match.
        """
        new_min = _clamp_to_table(index, size)
        return ConstrainedRange(new_min, max(new_min, _clamp_to_table(self.max_index, size)))

    def with_max(self, index: int, size: int) -> "ConstrainedRange":
        """
        New range with a different upper bound

        If the new upper bound is below the current lower bound, the lower
        bound is pulled down to match.
        """
        new_max = _clamp_to_table(index, size)
        return ConstrainedRange(min(new_max, _clamp_to_table(self.min_index, size)), new_max)


def _clamp_to_table(index: int, size: int) -> int:
    return max(0, min(index, max(0, size - 1)))


class OptionTable:
    """Immutable ordered sequence of admissible stepped values"""

    def __init__(self, name: str, values: Iterable[float],
                 formatter: Optional[Callable[[float], str]] = None):
        values = tuple(float(v) for v in values)
        if not values:
            raise ValueError(f"Option table '{name}' is empty")
        if any(v <= 0 for v in values):
            raise ValueError(f"Option table '{name}' contains non-positive values")
        if any(b <= a for a, b in zip(values, values[1:])):
            raise ValueError(f"Option table '{name}' is not strictly increasing")

        self.name = name
        self.values: Tuple[float, ...] = values
        self._formatter = formatter or (lambda v: f"{v:g}")

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    def __iter__(self):
        return iter(self.values)

    def __repr__(self) -> str:
        return f"OptionTable({self.name!r}, {len(self.values)} values)"

    def full_range(self) -> ConstrainedRange:
        return ConstrainedRange.full(len(self.values))

    def label(self, index: int) -> str:
        """Display label of the value at index"""
        return self._formatter(self.values[index])

    def labels(self) -> list:
        return [self._formatter(v) for v in self.values]

    def index_of(self, value: float) -> Optional[int]:
        """Index of an exact table value, or None"""
        try:
            return self.values.index(float(value))
        except ValueError:
            return None

    def nearest_index(self, target: float, constraint: Optional[ConstrainedRange] = None) -> int:
        """Nearest in-range index to target, see nearest_index()"""
        return nearest_index(target, self.values, constraint or self.full_range())


def nearest_index(target: float, values: Sequence[float], constraint: ConstrainedRange) -> int:
    """
    Find the table index whose value is closest to target in stops

    Only indices inside the constrained range are considered. Ties go to
    the lowest index because only a strictly smaller distance replaces the
    current best.

    Args:
        target: Ideal value (ISO, f-number or seconds)
        values: Table values
        constraint: Allowed index range

    Returns:
        Best index (the range lower bound if target is non-positive or NaN)
    """
    best_index = constraint.min_index
    best_distance = math.inf
    for i in constraint.indices():
        distance = stop_distance(target, values[i])
        if distance < best_distance:
            best_distance = distance
            best_index = i
    return best_index


def format_iso(value: float) -> str:
    return str(int(value))


def format_aperture(value: float) -> str:
    return f"f/{value:.1f}"


# Default tables of the meter
ISO_VALUES = (25, 50, 100, 160, 200, 400, 800, 1600, 3200, 6400)

APERTURE_VALUES = (
    1.0, 1.2, 1.4, 1.6, 1.8, 2.0, 2.2, 2.5, 2.8, 3.2, 3.5, 4.0, 4.5, 5.0, 5.6,
    6.3, 7.1, 8.0, 9.0, 10, 11, 13, 14, 16, 18, 20, 22, 25, 29, 32,
)

# Leaf shutter stops plus extra slow speeds
SHUTTER_VALUES = (
    1.0 / 4000.0, 1.0 / 2000.0, 1.0 / 1000.0, 1.0 / 500.0,
    1.0 / 250.0, 1.0 / 125.0, 1.0 / 60.0, 1.0 / 30.0,
    1.0 / 15.0, 1.0 / 8.0, 1.0 / 4.0, 1.0 / 2.0,
    1.0, 2.0, 4.0, 8.0, 15.0, 30.0,
)

ISO_TABLE = OptionTable("ISO", ISO_VALUES, format_iso)
APERTURE_TABLE = OptionTable("APERTURE", APERTURE_VALUES, format_aperture)
SHUTTER_TABLE = OptionTable("SHUTTER", SHUTTER_VALUES, format_shutter)

DEFAULT_ISO_INDEX = 5        # 400
DEFAULT_APERTURE_INDEX = 4   # f/1.8
DEFAULT_SHUTTER_INDEX = 7    # 1/30
