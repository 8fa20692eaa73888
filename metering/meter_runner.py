"""
Meter control loop

Connects the sensor callbacks, the smoothers, the exposure state and the
camera collaborator:

    sensor thread:  raw EV / depth -> ExponentialSmoother -> LatestValue
    control thread: every tick, LatestValue -> ExposureState.auto_tick()
                    -> on commit, push to camera and notify listeners

Sensor callbacks never wait on the control loop; they only publish the
newest smoothed value. User edits go through the runner so they are
serialized with the tick.
"""
import math
import threading
from typing import Callable, List, Optional

from app_config import DEFAULT_TICK_SECONDS
from .camera_interface import CameraBackend, DeviceReading, adapt_to_device, sample_depth, view_point_to_device
from .logger import app_logger
from .smoothing import LatestValue, distance_smoother, ev_smoother
from .solver import StepOutcome
from .state import ExposureState, MeterSnapshot, MeteringMode


class MeterRunner:
    """Runs auto exposure on a fixed period and publishes the result

    Designed to be driven by a capture pipeline that calls the on_* sensor
    callbacks from its own thread.
    """

    def __init__(self, state: ExposureState = None, camera: CameraBackend = None,
                 config=None, tick_seconds: float = DEFAULT_TICK_SECONDS):
        """
        Args:
            state: Exposure state to drive (new default state if None)
            camera: Capture pipeline to program (None = no device)
            config: Config used by save_settings() (optional)
            tick_seconds: Control loop period
        """
        if tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be positive, got {tick_seconds}")
        self.state = state or ExposureState()
        self.camera = camera
        self.config = config
        self.tick_seconds = tick_seconds

        self._ev_smoother = ev_smoother()
        self._distance_smoother = distance_smoother()
        self._sensor_lock = threading.Lock()
        self._scene_ev = LatestValue()
        self._distance = LatestValue()
        self._exposure_point = (0.5, 0.5)

        self._lock = threading.RLock()
        self._listeners: List[Callable[[MeterSnapshot], None]] = []
        self._shutdown_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config, camera: CameraBackend = None) -> "MeterRunner":
        """Build a runner whose state is restored from a Config"""
        state = ExposureState.from_settings(config.meter_settings())
        tick = config.get("tick_seconds", DEFAULT_TICK_SECONDS)
        try:
            tick = float(tick)
        except (TypeError, ValueError):
            tick = None
        if tick is None or not math.isfinite(tick) or tick <= 0:
            app_logger.warning(f"Ignoring invalid tick_seconds in config: {config.get('tick_seconds')!r}")
            tick = DEFAULT_TICK_SECONDS
        return cls(state=state, camera=camera, config=config, tick_seconds=tick)

    # =========================================================================
    # Sensor callbacks (producer thread)
    # =========================================================================

    def on_exposure_sample(self, raw_ev: float) -> None:
        """Feed one raw scene EV100 sample (device offset already applied)"""
        if raw_ev is None or not math.isfinite(raw_ev):
            return
        with self._sensor_lock:
            smoothed = self._ev_smoother.update(raw_ev)
        self._scene_ev.publish(smoothed)

    def on_device_reading(self, reading: DeviceReading) -> None:
        """Feed the device's own auto-exposure reading for a frame"""
        self.on_exposure_sample(reading.ev100())

    def on_exposure_unavailable(self) -> None:
        """Metering source lost or reconfigured"""
        with self._sensor_lock:
            self._ev_smoother.reset()
        self._scene_ev.clear()

    def on_depth_sample(self, meters: float) -> None:
        """Feed one raw depth reading in metres; invalid samples are dropped"""
        if meters is None or not math.isfinite(meters) or meters <= 0:
            return
        with self._sensor_lock:
            smoothed = self._distance_smoother.update(meters)
        self._distance.publish(smoothed)

    def on_depth_map(self, depth_map) -> None:
        """Feed a full depth map; the value at the metering point is used"""
        self.on_depth_sample(sample_depth(depth_map, self._exposure_point))

    def on_depth_unavailable(self) -> None:
        """No depth-capable sensor is active"""
        with self._sensor_lock:
            self._distance_smoother.reset()
        self._distance.clear()
        app_logger.info("Depth sensor unavailable, distance readout disabled")

    @property
    def scene_ev(self) -> Optional[float]:
        """Latest smoothed scene EV100, None before the first sample"""
        return self._scene_ev.get()

    @property
    def distance(self) -> Optional[float]:
        """Latest smoothed subject distance in metres"""
        return self._distance.get()

    # =========================================================================
    # Control loop
    # =========================================================================

    def tick(self) -> StepOutcome:
        """One auto-exposure evaluation; no-op in manual mode"""
        with self._lock:
            outcome = self.state.auto_tick(self.scene_ev)
        if outcome is StepOutcome.COMMITTED:
            self._apply_and_notify()
        return outcome

    def start(self):
        """Start the control loop thread"""
        if self.is_running:
            return False
        self._shutdown_event.clear()
        self._thread = threading.Thread(target=self._control_loop, name="MeterControlLoop", daemon=True)
        self._thread.start()
        app_logger.info(f"Meter control loop started (tick: {self.tick_seconds}s)")
        return True

    def stop(self, timeout: float = 2.0):
        """Stop the control loop and wait for the thread to finish"""
        self._shutdown_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        app_logger.info("Meter control loop stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _control_loop(self):
        while not self._shutdown_event.wait(self.tick_seconds):
            try:
                self.tick()
            except Exception as e:
                app_logger.error(f"Auto exposure tick failed: {e}")

    # =========================================================================
    # User edits
    # =========================================================================

    def set_priority_mode(self, mode):
        self._edit(lambda: self.state.set_priority_mode(mode), push_camera=False)

    def set_compensation_step(self, step: int):
        self._edit(lambda: self.state.set_compensation_step(step), push_camera=False)

    def set_compensation_index(self, index: int):
        self._edit(lambda: self.state.set_compensation_index(index), push_camera=False)

    def set_iso_index(self, index: int):
        self._edit(lambda: self.state.set_iso_index(index))

    def set_aperture_index(self, index: int):
        self._edit(lambda: self.state.set_aperture_index(index))

    def set_shutter_index(self, index: int):
        self._edit(lambda: self.state.set_shutter_index(index))

    def set_limit(self, name: str, index: int):
        """
        Set one range limit by name, e.g. 'iso_min_index' or 'shutter_max_index'
        """
        setter = getattr(self.state, f"set_{name}", None)
        if setter is None or not name.endswith(("_min_index", "_max_index")):
            raise ValueError(f"Unknown range limit: {name}")
        self._edit(lambda: setter(index))

    def toggle_metering_mode(self) -> MeteringMode:
        with self._lock:
            mode = self.state.toggle_metering_mode()
        app_logger.info(f"Metering mode: {mode.value}")
        self._notify(self.snapshot())
        return mode

    def set_exposure_point(self, x: float, y: float, width: float, height: float):
        """Spot-meter at a tap position in view coordinates (SPOT mode only)"""
        with self._lock:
            if self.state.metering_mode is not MeteringMode.SPOT:
                return
            point = view_point_to_device(x, y, width, height)
            self._exposure_point = point
        if self.camera is not None:
            try:
                self.camera.set_exposure_point(point)
            except Exception as e:
                app_logger.error(f"Failed to set exposure point: {e}")

    def _edit(self, action, push_camera=True):
        with self._lock:
            action()
        if push_camera:
            self._apply_and_notify()
        else:
            self._notify(self.snapshot())

    # =========================================================================
    # Output
    # =========================================================================

    def snapshot(self) -> MeterSnapshot:
        with self._lock:
            return self.state.snapshot(self.scene_ev, self.distance)

    def add_listener(self, callback: Callable[[MeterSnapshot], None]):
        """Register a callback invoked with a MeterSnapshot after each change"""
        self._listeners.append(callback)

    def remove_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _apply_and_notify(self):
        with self._lock:
            iso, aperture, shutter = self.state.current_values()
        if self.camera is not None:
            try:
                exposure = adapt_to_device(iso, shutter, aperture, self.camera.limits)
                self.camera.apply_manual_exposure(exposure)
            except Exception as e:
                app_logger.error(f"Manual exposure error: {e}")
        self._notify(self.snapshot())

    def _notify(self, snapshot: MeterSnapshot):
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception as e:
                app_logger.error(f"Error in meter listener: {e}")

    def save_settings(self) -> bool:
        """Persist limits, selections and modes to the config file"""
        if self.config is None:
            return False
        with self._lock:
            settings = self.state.to_settings()
        self.config.update_from_meter(settings)
        return self.config.save()
