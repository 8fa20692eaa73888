"""
Camera collaborator boundary

The meter core never talks to camera hardware directly. This module defines
what it hands to, and takes from, the capture pipeline:

- DeviceReading: what the sensor reports per frame, turned into EV100
- DeviceExposure: a film setting mapped onto the device's own lens/sensor
- sample_depth(): reading the subject distance out of a float depth map
- CameraBackend: the abstract collaborator the runner pushes settings to
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from . import exposure_math


@dataclass(frozen=True)
class DeviceExposureLimits:
    """Exposure limits of the active capture format"""
    min_iso: float
    max_iso: float
    min_duration: float     # seconds
    max_duration: float     # seconds
    lens_aperture: float    # fixed f-number of the device lens

    def __post_init__(self):
        if self.min_iso > self.max_iso or self.min_duration > self.max_duration:
            raise ValueError(f"Inverted device limits: {self}")


@dataclass(frozen=True)
class DeviceReading:
    """Auto-exposure state reported by the device for one frame"""
    iso: float
    duration: float             # seconds
    aperture: float
    target_offset: float = 0.0  # metering offset in stops

    def ev100(self) -> float:
        """Scene EV100 with the device offset folded in (NaN if invalid)"""
        return exposure_math.ev100_with_offset_and_compensation(
            self.aperture, self.duration, self.iso, device_offset=self.target_offset
        )


@dataclass(frozen=True)
class DeviceExposure:
    """Manual exposure to program into the device"""
    iso: float
    duration: float


def adapt_to_device(iso: float, shutter_seconds: float, aperture: float,
                    limits: DeviceExposureLimits) -> DeviceExposure:
    """
    Map a film setting onto the device so the preview matches it

    The device lens cannot stop down, so the difference between the chosen
    aperture and the device aperture is moved into the duration. ISO and
    duration are then clamped to what the capture format allows.

    Args:
        iso: Selected ISO
        shutter_seconds: Selected shutter duration
        aperture: Selected f-number
        limits: Device limits

    Returns:
        DeviceExposure
    """
    clamped_iso = max(limits.min_iso, min(iso, limits.max_iso))

    if limits.lens_aperture > 0 and aperture > 0:
        ratio = limits.lens_aperture / aperture
    else:
        ratio = 1.0
    adjusted = shutter_seconds * ratio * ratio
    duration = max(min(adjusted, limits.max_duration), limits.min_duration)

    return DeviceExposure(iso=clamped_iso, duration=duration)


def sample_depth(depth_map, point: Tuple[float, float]) -> Optional[float]:
    """
    Depth in metres at a normalized point of a depth map

    Args:
        depth_map: 2D array (height, width) of float depths in metres
        point: (x, y) in 0..1, clamped to the map edges

    Returns:
        Depth, or None if the map is empty or the sample is not a
        finite positive number
    """
    depth = np.asarray(depth_map, dtype=np.float32)
    if depth.ndim != 2 or depth.size == 0:
        return None

    height, width = depth.shape
    x = min(max(int((width - 1) * point[0]), 0), width - 1)
    y = min(max(int((height - 1) * point[1]), 0), height - 1)

    value = float(depth[y, x])
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def view_point_to_device(x: float, y: float, width: float, height: float) -> Tuple[float, float]:
    """
    Convert a tap in portrait view coordinates to a normalized sensor point

    The sensor is mounted landscape, so view y becomes sensor x and view x
    is mirrored into sensor y.
    """
    if width <= 0 or height <= 0:
        return (0.5, 0.5)
    return (y / height, 1.0 - (x / width))


class CameraBackend(ABC):
    """
    Abstract capture pipeline the meter drives

    Implementations wrap the platform camera. Calls come from the control
    loop thread and must not block for long.
    """

    @property
    @abstractmethod
    def limits(self) -> DeviceExposureLimits:
        """Exposure limits of the active format"""
        pass

    @property
    def supports_depth(self) -> bool:
        """Whether a depth-capable sensor is active"""
        return False

    @abstractmethod
    def apply_manual_exposure(self, exposure: DeviceExposure) -> None:
        """Program a manual exposure into the device"""
        pass

    def set_exposure_point(self, point: Tuple[float, float]) -> None:
        """Move the spot metering point (normalized sensor coordinates)"""
        pass
