"""
Exposure math for the light meter

Conversions between EV100 and the exposure triangle (aperture, shutter, ISO).
All functions are pure. EV is expressed in stops at ISO 100:

    EV = log2(N^2 / t) - log2(S / 100)
"""
import math

NOMINAL_ISO = 100.0


def ev100(aperture, shutter_seconds, iso):
    """
    Calculate exposure value at ISO 100

    Args:
        aperture: f-number
        shutter_seconds: Shutter duration in seconds
        iso: Sensitivity

    Returns:
        EV100, or NaN if any input is non-positive (caller must check)
    """
    if shutter_seconds <= 0 or aperture <= 0 or iso <= 0:
        return math.nan
    return math.log2(aperture ** 2 / shutter_seconds) - math.log2(iso / NOMINAL_ISO)


def ev100_with_offset_and_compensation(aperture, shutter_seconds, iso,
                                       device_offset=0.0, user_compensation=0.0):
    """
    EV100 plus the device metering offset and the user compensation

    Args:
        aperture: f-number
        shutter_seconds: Shutter duration in seconds
        iso: Sensitivity
        device_offset: Metering offset reported by the device (stops)
        user_compensation: User exposure compensation (stops)

    Returns:
        Corrected EV100 (NaN propagates from ev100)
    """
    return ev100(aperture, shutter_seconds, iso) + device_offset + user_compensation


def _ev_scale(ev, iso):
    """2^EV * S/100, saturating to inf (or 0.0) for extreme EVs"""
    try:
        scale = 2.0 ** ev
    except OverflowError:
        scale = math.inf
    return scale * (iso / NOMINAL_ISO)


def shutter_for_ev(ev, film_iso, aperture):
    """
    Shutter duration (seconds) for a given EV100, film ISO and aperture

    An EV too large for a float gives 0.0 and one too small gives inf;
    neither has a stop distance to any table value.
    """
    scale = _ev_scale(ev, film_iso)
    if scale == 0:
        return math.inf
    return aperture ** 2 / scale


def aperture_for_ev(ev, film_iso, shutter_seconds):
    """f-number for a given EV100, film ISO and shutter duration"""
    return math.sqrt(shutter_seconds * _ev_scale(ev, film_iso))


def iso_for_ev(ev, aperture, shutter_seconds):
    """
    ISO needed for a given EV100, aperture and shutter duration

    Falls back to the nominal ISO 100 when the shutter is not positive.
    """
    if shutter_seconds <= 0:
        return NOMINAL_ISO
    denominator = shutter_seconds * _ev_scale(ev, NOMINAL_ISO)
    if denominator == 0:
        return math.inf
    return NOMINAL_ISO * aperture ** 2 / denominator


def format_shutter(seconds):
    """
    Format a shutter duration the way it is printed on a shutter dial

    Examples:
        format_shutter(1/125) -> "1/125"
        format_shutter(2.0)   -> "2.0s"
    """
    if seconds is None or not math.isfinite(seconds) or seconds <= 0:
        return "--"
    if seconds >= 1:
        return f"{seconds:.1f}s"
    # Round half away from zero, not to even
    return f"1/{int(math.floor(1.0 / seconds + 0.5))}"


def format_ev(ev):
    """Format an EV reading with one decimal, '--' when unavailable"""
    if ev is None or not math.isfinite(ev):
        return "--"
    return f"{ev:.1f}"
