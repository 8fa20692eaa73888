"""
Film Light Meter
Command-line entry point - solve an exposure from a metered EV
"""
import argparse
import sys

from app_config import APP_DISPLAY_NAME, APP_SUBTITLE
from metering import ExposureState, PriorityMode, StepOutcome
from metering.config import Config
from metering.exposure_math import format_ev

# Two ticks are needed for a change to be confirmed; a few more cover the
# case where committing one pair changes the next proposal
MAX_TICKS = 8


def solve(state, scene_ev):
    """Tick the state until it converges, returns the number of ticks used"""
    for tick in range(1, MAX_TICKS + 1):
        outcome = state.auto_tick(scene_ev)
        if outcome in (StepOutcome.CONVERGED, StepOutcome.SKIPPED):
            return tick
    return MAX_TICKS


def build_state(args):
    if args.config:
        state = ExposureState.from_settings(Config(args.config).meter_settings())
    else:
        state = ExposureState()

    tables = state.tables
    if args.iso is not None:
        state.set_iso_index(tables.iso.nearest_index(args.iso, state.iso_range))
    if args.aperture is not None:
        state.set_aperture_index(tables.aperture.nearest_index(args.aperture, state.aperture_range))
    if args.shutter is not None:
        state.set_shutter_index(tables.shutter.nearest_index(args.shutter, state.shutter_range))
    if args.comp is not None:
        state.set_compensation_step(args.comp)
    if args.mode is not None:
        state.set_priority_mode(args.mode)
    return state


def main(argv=None):
    parser = argparse.ArgumentParser(
        description=f'{APP_DISPLAY_NAME} - {APP_SUBTITLE}',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  python main.py --ev 9 --mode aperture_priority --aperture 2.8 --iso 400
  python main.py --ev 12 --mode S-PRI --shutter 0.004 --comp -1
  python main.py --ev 7.5 --iso 400 --aperture 2.8 --shutter 0.0333   # manual check
        """)

    parser.add_argument('--ev', type=float, required=True,
                        help='Metered scene EV100')
    parser.add_argument('--mode', type=str, default=None,
                        help='manual, aperture_priority (A-PRI), shutter_priority (S-PRI), iso_priority (ISO-PRI)')
    parser.add_argument('--iso', type=float, help='ISO (snapped to the nearest table value)')
    parser.add_argument('--aperture', type=float, help='f-number (snapped)')
    parser.add_argument('--shutter', type=float, help='Shutter in seconds (snapped)')
    parser.add_argument('--comp', type=int, help='Exposure compensation in third stops (-9..9)')
    parser.add_argument('--config', type=str, help='Settings file with range limits and selections')

    args = parser.parse_args(argv)

    try:
        state = build_state(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    ticks = solve(state, args.ev)
    snap = state.snapshot(args.ev)

    print(f"EV {format_ev(args.ev)}  comp {snap.compensation_label}  mode {snap.priority_mode.label}")
    print(f"ISO {snap.iso_label}  {snap.aperture_label}  {snap.shutter_label}")
    status = snap.status.value if snap.status else "--"
    print(f"Deviation {snap.deviation_text} ({status})  [{ticks} ticks]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
