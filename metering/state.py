"""
Exposure state of the meter

ExposureState owns the three selected indices, their range limits, the
priority mode, the compensation step, the metering mode and the pending
auto-exposure candidate. Every mutation keeps the selected indices inside
their ranges and invalidates the pending candidate.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from . import compensation, exposure_math
from .logger import app_logger
from .option_table import (
    DEFAULT_APERTURE_INDEX,
    DEFAULT_ISO_INDEX,
    DEFAULT_SHUTTER_INDEX,
    ConstrainedRange,
)
from .solver import (
    DEFAULT_TABLES,
    AutoCandidate,
    AutoExposureSolver,
    ExposureRanges,
    ExposureTables,
    PriorityMode,
    StepOutcome,
)

MATCH_TOLERANCE_EV = 0.5


class ExposureStatus(Enum):
    MATCHED = "MATCHED"
    OVER = "OVER"
    UNDER = "UNDER"


class MeteringMode(Enum):
    SPOT = "SPOT"
    AVERAGE = "AVERAGE"


def exposure_status(deviation: float) -> Optional[ExposureStatus]:
    """Classify a deviation in stops (None if it cannot be computed)"""
    if deviation is None or not math.isfinite(deviation):
        return None
    if abs(deviation) < MATCH_TOLERANCE_EV:
        return ExposureStatus.MATCHED
    return ExposureStatus.OVER if deviation > 0 else ExposureStatus.UNDER


def format_distance(meters: Optional[float]) -> str:
    """Distance readout: centimetres under 1 m, '--' when unavailable"""
    if meters is None or not math.isfinite(meters) or meters <= 0:
        return "--"
    if meters < 1:
        return f"{meters * 100.0:.0f} cm"
    return f"{meters:.2f} m"


def format_deviation(deviation: Optional[float]) -> str:
    if deviation is None or not math.isfinite(deviation):
        return "--"
    return f"{deviation:+.1f} EV"


@dataclass(frozen=True)
class MeterSnapshot:
    """
    Pull-based view of the meter for the UI

    scene_ev, deviation and status are computed from the smoothed EV the
    solver sees, not the raw per-frame reading, so the deviation readout
    lags a sudden brightness change by a few ticks.
    """
    scene_ev: Optional[float]
    ev_text: str
    iso_index: int
    aperture_index: int
    shutter_index: int
    iso_label: str
    aperture_label: str
    shutter_label: str
    priority_mode: PriorityMode
    compensation_step: int
    compensation_label: str
    metering_mode: MeteringMode
    deviation: Optional[float]
    deviation_text: str
    status: Optional[ExposureStatus]
    distance_m: Optional[float]
    distance_text: str
    has_pending: bool


class ExposureState:
    """Mutable meter state, the unit of change for one convergence tick"""

    def __init__(self, tables: ExposureTables = DEFAULT_TABLES,
                 solver: Optional[AutoExposureSolver] = None):
        self.tables = tables
        self.solver = solver or AutoExposureSolver(tables)

        self.iso_range = tables.iso.full_range()
        self.aperture_range = tables.aperture.full_range()
        self.shutter_range = tables.shutter.full_range()

        self.iso_index = self.iso_range.clamp(DEFAULT_ISO_INDEX)
        self.aperture_index = self.aperture_range.clamp(DEFAULT_APERTURE_INDEX)
        self.shutter_index = self.shutter_range.clamp(DEFAULT_SHUTTER_INDEX)

        self.priority_mode = PriorityMode.MANUAL
        self.compensation_index = compensation.ZERO_STEP_INDEX
        self.metering_mode = MeteringMode.SPOT
        self.pending: Optional[AutoCandidate] = None
        self._applying_auto = False

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def compensation_step(self) -> int:
        return compensation.COMPENSATION_STEPS[self.compensation_index]

    @property
    def compensation_ev(self) -> float:
        return compensation.step_to_ev(self.compensation_step)

    @property
    def ranges(self) -> ExposureRanges:
        return ExposureRanges(self.iso_range, self.aperture_range, self.shutter_range)

    def current_candidate(self) -> AutoCandidate:
        return AutoCandidate(self.iso_index, self.aperture_index, self.shutter_index)

    def current_values(self):
        """(iso, aperture, shutter_seconds) of the current selection"""
        return (self.tables.iso[self.iso_index],
                self.tables.aperture[self.aperture_index],
                self.tables.shutter[self.shutter_index])

    def settings_ev(self) -> float:
        """EV100 implied by the current settings"""
        iso, aperture, shutter = self.current_values()
        return exposure_math.ev100(aperture, shutter, iso)

    def target_ev(self, scene_ev: float) -> float:
        return scene_ev - self.compensation_ev

    def deviation(self, scene_ev: Optional[float]) -> Optional[float]:
        """Settings EV minus target EV; positive means overexposed"""
        if scene_ev is None:
            return None
        return self.settings_ev() - self.target_ev(scene_ev)

    # ------------------------------------------------------------------
    # User mutations
    # ------------------------------------------------------------------

    def set_priority_mode(self, mode) -> None:
        mode = PriorityMode.parse(mode)
        if mode is not self.priority_mode:
            app_logger.info(f"Priority mode: {self.priority_mode.label} -> {mode.label}")
        self.priority_mode = mode
        self.pending = None

    def set_compensation_index(self, index: int) -> None:
        self.compensation_index = compensation.normalize_index(index)
        self.pending = None

    def set_compensation_step(self, step: int) -> None:
        self.set_compensation_index(compensation.index_for_step(step))

    def set_iso_index(self, index: int) -> None:
        self.iso_index = self.iso_range.clamp(index)
        self.pending = None

    def set_aperture_index(self, index: int) -> None:
        self.aperture_index = self.aperture_range.clamp(index)
        self.pending = None

    def set_shutter_index(self, index: int) -> None:
        self.shutter_index = self.shutter_range.clamp(index)
        self.pending = None

    def toggle_metering_mode(self) -> MeteringMode:
        if self.metering_mode is MeteringMode.SPOT:
            self.metering_mode = MeteringMode.AVERAGE
        else:
            self.metering_mode = MeteringMode.SPOT
        return self.metering_mode

    # ------------------------------------------------------------------
    # Range limits
    # ------------------------------------------------------------------

    def set_iso_min_index(self, index: int) -> None:
        self._set_iso_range(self.iso_range.with_min(index, len(self.tables.iso)))

    def set_iso_max_index(self, index: int) -> None:
        self._set_iso_range(self.iso_range.with_max(index, len(self.tables.iso)))

    def set_aperture_min_index(self, index: int) -> None:
        self._set_aperture_range(self.aperture_range.with_min(index, len(self.tables.aperture)))

    def set_aperture_max_index(self, index: int) -> None:
        self._set_aperture_range(self.aperture_range.with_max(index, len(self.tables.aperture)))

    def set_shutter_min_index(self, index: int) -> None:
        self._set_shutter_range(self.shutter_range.with_min(index, len(self.tables.shutter)))

    def set_shutter_max_index(self, index: int) -> None:
        self._set_shutter_range(self.shutter_range.with_max(index, len(self.tables.shutter)))

    def _set_iso_range(self, new_range: ConstrainedRange) -> None:
        self.iso_range = new_range
        self.iso_index = new_range.clamp(self.iso_index)
        self.pending = None
        app_logger.debug(f"ISO range: {new_range.min_index}..{new_range.max_index}")

    def _set_aperture_range(self, new_range: ConstrainedRange) -> None:
        self.aperture_range = new_range
        self.aperture_index = new_range.clamp(self.aperture_index)
        self.pending = None
        app_logger.debug(f"Aperture range: {new_range.min_index}..{new_range.max_index}")

    def _set_shutter_range(self, new_range: ConstrainedRange) -> None:
        self.shutter_range = new_range
        self.shutter_index = new_range.clamp(self.shutter_index)
        self.pending = None
        app_logger.debug(f"Shutter range: {new_range.min_index}..{new_range.max_index}")

    # ------------------------------------------------------------------
    # Auto exposure
    # ------------------------------------------------------------------

    def auto_tick(self, scene_ev: Optional[float]) -> StepOutcome:
        """
        Run one debounced auto-exposure evaluation

        Args:
            scene_ev: Smoothed scene EV100 (None if no reading yet)

        Returns:
            StepOutcome of the evaluation
        """
        if not self.priority_mode.is_auto or self._applying_auto:
            return StepOutcome.SKIPPED
        if scene_ev is None or not math.isfinite(scene_ev):
            return StepOutcome.SKIPPED

        self._applying_auto = True
        try:
            result = self.solver.step(self.priority_mode, self.target_ev(scene_ev),
                                      self.current_candidate(), self.ranges, self.pending)
            self.pending = result.pending
            if result.outcome is StepOutcome.COMMITTED:
                self._apply_candidate(result.candidate)
            return result.outcome
        finally:
            self._applying_auto = False

    def _apply_candidate(self, candidate: AutoCandidate) -> None:
        self.iso_index = self.iso_range.clamp(candidate.iso_index)
        self.aperture_index = self.aperture_range.clamp(candidate.aperture_index)
        self.shutter_index = self.shutter_range.clamp(candidate.shutter_index)
        app_logger.debug(
            f"Auto exposure committed: ISO {self.tables.iso.label(self.iso_index)}, "
            f"{self.tables.aperture.label(self.aperture_index)}, "
            f"{self.tables.shutter.label(self.shutter_index)}"
        )

    # ------------------------------------------------------------------
    # Snapshot & persistence
    # ------------------------------------------------------------------

    def snapshot(self, scene_ev: Optional[float] = None,
                 distance_m: Optional[float] = None) -> MeterSnapshot:
        deviation = self.deviation(scene_ev)
        return MeterSnapshot(
            scene_ev=scene_ev,
            ev_text=exposure_math.format_ev(scene_ev),
            iso_index=self.iso_index,
            aperture_index=self.aperture_index,
            shutter_index=self.shutter_index,
            iso_label=self.tables.iso.label(self.iso_index),
            aperture_label=self.tables.aperture.label(self.aperture_index),
            shutter_label=self.tables.shutter.label(self.shutter_index),
            priority_mode=self.priority_mode,
            compensation_step=self.compensation_step,
            compensation_label=compensation.format_step(self.compensation_step),
            metering_mode=self.metering_mode,
            deviation=deviation,
            deviation_text=format_deviation(deviation),
            status=exposure_status(deviation),
            distance_m=distance_m,
            distance_text=format_distance(distance_m),
            has_pending=self.pending is not None,
        )

    def to_settings(self) -> Dict[str, Any]:
        """Plain values for the settings file"""
        return {
            "limits": {
                "iso_min_index": self.iso_range.min_index,
                "iso_max_index": self.iso_range.max_index,
                "aperture_min_index": self.aperture_range.min_index,
                "aperture_max_index": self.aperture_range.max_index,
                "shutter_min_index": self.shutter_range.min_index,
                "shutter_max_index": self.shutter_range.max_index,
            },
            "selection": {
                "iso_index": self.iso_index,
                "aperture_index": self.aperture_index,
                "shutter_index": self.shutter_index,
            },
            "priority_mode": self.priority_mode.value,
            "compensation_index": self.compensation_index,
            "metering_mode": self.metering_mode.value,
        }

    def apply_settings(self, settings: Dict[str, Any]) -> None:
        """
        Restore state from settings produced by to_settings()

        Missing keys keep their current value; out-of-range values are
        clamped the same way user edits are. Values that are not whole
        numbers are logged and ignored.
        """
        limits = _section(settings, "limits")
        self.set_iso_max_index(_index(limits, "iso_max_index", self.iso_range.max_index))
        self.set_iso_min_index(_index(limits, "iso_min_index", self.iso_range.min_index))
        self.set_aperture_max_index(_index(limits, "aperture_max_index", self.aperture_range.max_index))
        self.set_aperture_min_index(_index(limits, "aperture_min_index", self.aperture_range.min_index))
        self.set_shutter_max_index(_index(limits, "shutter_max_index", self.shutter_range.max_index))
        self.set_shutter_min_index(_index(limits, "shutter_min_index", self.shutter_range.min_index))

        selection = _section(settings, "selection")
        self.set_iso_index(_index(selection, "iso_index", self.iso_index))
        self.set_aperture_index(_index(selection, "aperture_index", self.aperture_index))
        self.set_shutter_index(_index(selection, "shutter_index", self.shutter_index))

        try:
            self.set_priority_mode(settings.get("priority_mode", self.priority_mode))
        except ValueError as e:
            app_logger.warning(f"Ignoring saved priority mode: {e}")

        self.set_compensation_index(_index(settings, "compensation_index", self.compensation_index))

        try:
            self.metering_mode = MeteringMode(settings.get("metering_mode", self.metering_mode.value))
        except ValueError:
            app_logger.warning(f"Ignoring saved metering mode: {settings.get('metering_mode')!r}")

    @classmethod
    def from_settings(cls, settings: Dict[str, Any],
                      tables: ExposureTables = DEFAULT_TABLES) -> "ExposureState":
        state = cls(tables)
        state.apply_settings(settings)
        return state


def _section(settings: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = settings.get(key, {})
    if not isinstance(value, dict):
        app_logger.warning(f"Ignoring malformed '{key}' settings: {value!r}")
        return {}
    return value


def _index(section: Dict[str, Any], key: str, current: int) -> int:
    """Saved index as an int, or current if it is missing or not a whole number"""
    value = section.get(key, current)
    if isinstance(value, bool):
        value = None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        try:
            value = int(str(value).strip())
        except ValueError:
            app_logger.warning(f"Ignoring saved {key}: {section.get(key)!r}")
            return current
    return value
