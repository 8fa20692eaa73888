"""
Signal smoothing and cross-thread handoff

ExponentialSmoother is a one-pole low-pass filter with an optional clamp on
how far a single sample may pull the output. LatestValue is the single-slot
cell a sensor callback publishes into and the control loop reads from.
"""
import threading
from typing import Optional

# Depth readings: follow real subject motion but reject sensor spikes
DISTANCE_ALPHA = 0.2
DISTANCE_MAX_JUMP_M = 1.5

# Scene EV: damp metering jitter before it drives the solver
EV_ALPHA = 0.12


class ExponentialSmoother:
    """
    Exponential moving average with an optional per-update jump clamp

    The first sample after construction or reset() is returned unfiltered
    and seeds the filter.
    """

    def __init__(self, alpha: float, max_jump: Optional[float] = None):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if max_jump is not None and max_jump < 0:
            raise ValueError(f"max_jump must be non-negative, got {max_jump}")
        self.alpha = alpha
        self.max_jump = max_jump
        self._last: Optional[float] = None

    @property
    def value(self) -> Optional[float]:
        """Last filtered value, None until the first sample"""
        return self._last

    @property
    def has_value(self) -> bool:
        return self._last is not None

    def clamp(self, raw: float) -> float:
        """Limit raw to within max_jump of the last value"""
        if self._last is None or self.max_jump is None:
            return raw
        low = self._last - self.max_jump
        high = self._last + self.max_jump
        return min(max(raw, low), high)

    def update(self, raw: float) -> float:
        """Feed one sample and return the filtered value"""
        if self._last is None:
            self._last = raw
            return raw
        clamped = self.clamp(raw)
        filtered = self._last + (clamped - self._last) * self.alpha
        self._last = filtered
        return filtered

    def reset(self) -> None:
        """Forget history (signal source lost or reconfigured)"""
        self._last = None


def distance_smoother() -> ExponentialSmoother:
    return ExponentialSmoother(DISTANCE_ALPHA, DISTANCE_MAX_JUMP_M)


def ev_smoother() -> ExponentialSmoother:
    return ExponentialSmoother(EV_ALPHA)


class LatestValue:
    """
    Single-slot, last-value-wins cell

    The writer never blocks on the reader; intermediate values are dropped.
    None means the signal is currently unavailable.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._value = None
        self._version = 0

    def publish(self, value) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    def clear(self) -> None:
        self.publish(None)

    def get(self):
        with self._lock:
            return self._value

    def read(self):
        """Return (value, version); version increments on every publish"""
        with self._lock:
            return self._value, self._version
