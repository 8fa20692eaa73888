"""
Exposure metering core for Film Light Meter.

Package structure:
    metering/
    ├── __init__.py          # This file - exports
    ├── exposure_math.py     # EV100 <-> aperture / shutter / ISO
    ├── option_table.py      # Stepped tables, ranges, nearest-stop search
    ├── compensation.py      # Third-stop exposure compensation
    ├── smoothing.py         # ExponentialSmoother, LatestValue
    ├── solver.py            # Priority modes, AutoExposureSolver
    ├── state.py             # ExposureState, MeterSnapshot
    ├── camera_interface.py  # Camera collaborator boundary
    ├── meter_runner.py      # Control loop
    ├── config.py            # Settings persistence
    └── logger.py            # App logger

Usage:
    from metering import ExposureState, PriorityMode

    state = ExposureState()
    state.set_priority_mode(PriorityMode.APERTURE_PRIORITY)
    state.auto_tick(scene_ev=9.0)   # proposes
    state.auto_tick(scene_ev=9.0)   # confirms and commits
    print(state.snapshot(9.0).shutter_label)
"""

from .exposure_math import (
    ev100,
    ev100_with_offset_and_compensation,
    shutter_for_ev,
    aperture_for_ev,
    iso_for_ev,
    format_shutter,
)

from .option_table import (
    OptionTable,
    ConstrainedRange,
    nearest_index,
    stop_distance,
    ISO_TABLE,
    APERTURE_TABLE,
    SHUTTER_TABLE,
)

from .smoothing import ExponentialSmoother, LatestValue

from .solver import (
    AutoCandidate,
    AutoExposureSolver,
    ExposureRanges,
    ExposureTables,
    PriorityMode,
    StepOutcome,
)

from .state import ExposureState, ExposureStatus, MeteringMode, MeterSnapshot

__all__ = [
    'ev100',
    'ev100_with_offset_and_compensation',
    'shutter_for_ev',
    'aperture_for_ev',
    'iso_for_ev',
    'format_shutter',
    'OptionTable',
    'ConstrainedRange',
    'nearest_index',
    'stop_distance',
    'ISO_TABLE',
    'APERTURE_TABLE',
    'SHUTTER_TABLE',
    'ExponentialSmoother',
    'LatestValue',
    'AutoCandidate',
    'AutoExposureSolver',
    'ExposureRanges',
    'ExposureTables',
    'PriorityMode',
    'StepOutcome',
    'ExposureState',
    'ExposureStatus',
    'MeteringMode',
    'MeterSnapshot',
]
