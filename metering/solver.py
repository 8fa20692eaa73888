"""
Auto-exposure solver

Given a priority mode, a target EV and the three stepped tables with their
allowed ranges, pick the nearest achievable (ISO, aperture, shutter)
combination. The priority parameter stays where the user put it; the other
two are solved with one seed-then-refine pass:

    1. Hold the second free parameter at its current (in-range) index.
    2. Solve the first free parameter from the target EV and snap it.
    3. Recompute the second parameter from the snapped first one and snap it.
    4. If step 3 moved away from the seed, solve the first parameter again.

Changes are debounced: a candidate must be proposed on two consecutive ticks
before it is committed, so a single noisy EV sample cannot move the dials.
"""
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from . import exposure_math
from .option_table import (
    APERTURE_TABLE,
    ISO_TABLE,
    SHUTTER_TABLE,
    ConstrainedRange,
    OptionTable,
)


class PriorityMode(Enum):
    """Which exposure parameter the user holds fixed"""
    MANUAL = "manual"
    APERTURE_PRIORITY = "aperture_priority"
    SHUTTER_PRIORITY = "shutter_priority"
    ISO_PRIORITY = "iso_priority"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]

    @property
    def is_auto(self) -> bool:
        return self is not PriorityMode.MANUAL

    def iso_editable(self) -> bool:
        return self in (PriorityMode.MANUAL, PriorityMode.ISO_PRIORITY)

    def aperture_editable(self) -> bool:
        return self in (PriorityMode.MANUAL, PriorityMode.APERTURE_PRIORITY)

    def shutter_editable(self) -> bool:
        return self in (PriorityMode.MANUAL, PriorityMode.SHUTTER_PRIORITY)

    @classmethod
    def parse(cls, value) -> "PriorityMode":
        """Accept a PriorityMode, its value, its name or its label"""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for mode in cls:
            if text.lower() in (mode.value, mode.name.lower(), mode.label.lower()):
                return mode
        raise ValueError(f"Unknown priority mode: {value!r}")


_MODE_LABELS = {
    PriorityMode.MANUAL: "MANUAL",
    PriorityMode.APERTURE_PRIORITY: "A-PRI",
    PriorityMode.SHUTTER_PRIORITY: "S-PRI",
    PriorityMode.ISO_PRIORITY: "ISO-PRI",
}


class AutoCandidate(NamedTuple):
    """A proposed set of table indices"""
    iso_index: int
    aperture_index: int
    shutter_index: int


@dataclass(frozen=True)
class ExposureTables:
    iso: OptionTable = ISO_TABLE
    aperture: OptionTable = APERTURE_TABLE
    shutter: OptionTable = SHUTTER_TABLE


@dataclass(frozen=True)
class ExposureRanges:
    iso: ConstrainedRange
    aperture: ConstrainedRange
    shutter: ConstrainedRange

    @classmethod
    def full(cls, tables: ExposureTables) -> "ExposureRanges":
        return cls(tables.iso.full_range(), tables.aperture.full_range(),
                   tables.shutter.full_range())


DEFAULT_TABLES = ExposureTables()


class StepOutcome(Enum):
    SKIPPED = "skipped"        # manual mode, nothing to solve
    CONVERGED = "converged"    # candidate equals current settings
    PENDING = "pending"        # new candidate stored, awaiting confirmation
    COMMITTED = "committed"    # candidate confirmed and applied


class SolverStep(NamedTuple):
    outcome: StepOutcome
    candidate: Optional[AutoCandidate]
    pending: Optional[AutoCandidate]


class AutoExposureSolver:
    """Solves priority modes over a set of stepped tables"""

    def __init__(self, tables: ExposureTables = DEFAULT_TABLES):
        self.tables = tables

    def solve(self, mode: PriorityMode, target_ev: float, current: AutoCandidate,
              ranges: ExposureRanges) -> AutoCandidate:
        """
        Best achievable candidate for the mode

        Args:
            mode: Priority mode (MANUAL returns current unchanged)
            target_ev: Scene EV100 minus compensation
            current: Live indices
            ranges: Allowed index ranges

        Returns:
            AutoCandidate
        """
        if mode is PriorityMode.APERTURE_PRIORITY:
            return self.solve_aperture_priority(target_ev, current, ranges)
        if mode is PriorityMode.SHUTTER_PRIORITY:
            return self.solve_shutter_priority(target_ev, current, ranges)
        if mode is PriorityMode.ISO_PRIORITY:
            return self.solve_iso_priority(target_ev, current, ranges)
        return current

    def solve_aperture_priority(self, target_ev, current, ranges):
        """Aperture fixed: seed ISO, solve shutter, refine ISO"""
        iso, shutter = self.tables.iso, self.tables.shutter
        fixed_aperture = self.tables.aperture[current.aperture_index]

        iso_seed_index = ranges.iso.clamp(current.iso_index)
        ideal_shutter = exposure_math.shutter_for_ev(target_ev, iso[iso_seed_index], fixed_aperture)
        shutter_index = shutter.nearest_index(ideal_shutter, ranges.shutter)

        ideal_iso = exposure_math.iso_for_ev(target_ev, fixed_aperture, shutter[shutter_index])
        iso_index = iso.nearest_index(ideal_iso, ranges.iso)

        if iso_index != iso_seed_index:
            ideal_shutter = exposure_math.shutter_for_ev(target_ev, iso[iso_index], fixed_aperture)
            shutter_index = shutter.nearest_index(ideal_shutter, ranges.shutter)

        return AutoCandidate(iso_index, current.aperture_index, shutter_index)

    def solve_shutter_priority(self, target_ev, current, ranges):
        """Shutter fixed: seed ISO, solve aperture, refine ISO"""
        iso, aperture = self.tables.iso, self.tables.aperture
        fixed_shutter = self.tables.shutter[current.shutter_index]

        iso_seed_index = ranges.iso.clamp(current.iso_index)
        ideal_aperture = exposure_math.aperture_for_ev(target_ev, iso[iso_seed_index], fixed_shutter)
        aperture_index = aperture.nearest_index(ideal_aperture, ranges.aperture)

        ideal_iso = exposure_math.iso_for_ev(target_ev, aperture[aperture_index], fixed_shutter)
        iso_index = iso.nearest_index(ideal_iso, ranges.iso)

        if iso_index != iso_seed_index:
            ideal_aperture = exposure_math.aperture_for_ev(target_ev, iso[iso_index], fixed_shutter)
            aperture_index = aperture.nearest_index(ideal_aperture, ranges.aperture)

        return AutoCandidate(iso_index, aperture_index, current.shutter_index)

    def solve_iso_priority(self, target_ev, current, ranges):
        """ISO fixed: seed aperture, solve shutter, refine aperture"""
        aperture, shutter = self.tables.aperture, self.tables.shutter
        fixed_iso = self.tables.iso[current.iso_index]

        aperture_seed_index = ranges.aperture.clamp(current.aperture_index)
        ideal_shutter = exposure_math.shutter_for_ev(target_ev, fixed_iso, aperture[aperture_seed_index])
        shutter_index = shutter.nearest_index(ideal_shutter, ranges.shutter)

        ideal_aperture = exposure_math.aperture_for_ev(target_ev, fixed_iso, shutter[shutter_index])
        aperture_index = aperture.nearest_index(ideal_aperture, ranges.aperture)

        if aperture_index != aperture_seed_index:
            ideal_shutter = exposure_math.shutter_for_ev(target_ev, fixed_iso, aperture[aperture_index])
            shutter_index = shutter.nearest_index(ideal_shutter, ranges.shutter)

        return AutoCandidate(current.iso_index, aperture_index, shutter_index)

    def step(self, mode: PriorityMode, target_ev: float, current: AutoCandidate,
             ranges: ExposureRanges, pending: Optional[AutoCandidate]) -> SolverStep:
        """
        One debounced evaluation

        The returned pending value replaces the caller's. On COMMITTED the
        caller applies the candidate's indices.
        """
        if not mode.is_auto:
            return SolverStep(StepOutcome.SKIPPED, None, pending)

        candidate = self.solve(mode, target_ev, current, ranges)
        return debounce(candidate, current, pending)


def debounce(candidate: AutoCandidate, current: AutoCandidate,
             pending: Optional[AutoCandidate]) -> SolverStep:
    """Confirm/commit rule: a change must be proposed twice in a row"""
    if candidate == current:
        return SolverStep(StepOutcome.CONVERGED, candidate, None)
    if pending is not None and pending == candidate:
        return SolverStep(StepOutcome.COMMITTED, candidate, None)
    return SolverStep(StepOutcome.PENDING, candidate, candidate)
