"""
Test the meter control loop: sensor callbacks, ticks, camera push and listeners
"""
import os
import sys
import time

import numpy as np
import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from metering.camera_interface import DeviceExposure, DeviceReading, adapt_to_device
from metering.config import Config
from metering.meter_runner import MeterRunner
from metering.option_table import ISO_TABLE, APERTURE_TABLE, SHUTTER_TABLE
from metering.solver import PriorityMode, StepOutcome
from metering.state import MeteringMode

ISO_400 = ISO_TABLE.index_of(400)
F_2_8 = APERTURE_TABLE.index_of(2.8)
S_250 = SHUTTER_TABLE.index_of(1.0 / 250.0)


@pytest.fixture
def runner(mock_camera):
    runner = MeterRunner(camera=mock_camera)
    runner.set_iso_index(ISO_400)
    runner.set_aperture_index(F_2_8)
    runner.set_priority_mode(PriorityMode.APERTURE_PRIORITY)
    mock_camera.apply_manual_exposure.reset_mock()
    yield runner
    runner.stop()


class TestInit:

    def test_defaults(self):
        runner = MeterRunner()
        assert runner.tick_seconds == 0.75
        assert runner.scene_ev is None
        assert runner.distance is None

    @pytest.mark.parametrize("tick", [0, -1.0])
    def test_invalid_tick(self, tick):
        with pytest.raises(ValueError):
            MeterRunner(tick_seconds=tick)

    def test_from_config(self, temp_config, mock_camera):
        config = Config(temp_config)
        config.set("priority_mode", "shutter_priority")
        config.set("tick_seconds", 0.5)
        config.set_selection({"iso_index": 2, "aperture_index": 6, "shutter_index": 5})

        runner = MeterRunner.from_config(config, mock_camera)

        assert runner.tick_seconds == 0.5
        assert runner.state.priority_mode is PriorityMode.SHUTTER_PRIORITY
        assert runner.state.iso_index == 2
        assert runner.camera is mock_camera


class TestSensorCallbacks:

    def test_first_exposure_sample_passes_through(self):
        runner = MeterRunner()
        runner.on_exposure_sample(9.0)
        assert runner.scene_ev == 9.0

    def test_exposure_samples_are_smoothed(self):
        runner = MeterRunner()
        runner.on_exposure_sample(9.0)
        runner.on_exposure_sample(10.0)
        assert runner.scene_ev == pytest.approx(9.12)

    def test_invalid_exposure_sample_dropped(self):
        runner = MeterRunner()
        runner.on_exposure_sample(9.0)
        runner.on_exposure_sample(float('nan'))
        runner.on_exposure_sample(None)
        assert runner.scene_ev == 9.0

    def test_device_reading(self):
        runner = MeterRunner()
        reading = DeviceReading(iso=100.0, duration=1.0, aperture=1.0, target_offset=0.5)
        runner.on_device_reading(reading)
        assert runner.scene_ev == pytest.approx(0.5)

    def test_exposure_unavailable_resets(self):
        runner = MeterRunner()
        runner.on_exposure_sample(9.0)
        runner.on_exposure_unavailable()
        assert runner.scene_ev is None
        # Smoother restarts from the next sample
        runner.on_exposure_sample(4.0)
        assert runner.scene_ev == 4.0

    def test_depth_jump_is_clamped(self):
        runner = MeterRunner()
        runner.on_depth_sample(2.0)
        runner.on_depth_sample(10.0)
        assert runner.distance == pytest.approx(2.0 + 1.5 * 0.2)

    @pytest.mark.parametrize("bad", [0.0, -1.0, float('nan'), float('inf'), None])
    def test_invalid_depth_dropped(self, bad):
        runner = MeterRunner()
        runner.on_depth_sample(1.0)
        runner.on_depth_sample(bad)
        assert runner.distance == 1.0

    def test_depth_map_sampled_at_exposure_point(self):
        runner = MeterRunner()
        depth = np.full((3, 3), 4.0, dtype=np.float32)
        depth[1, 1] = 0.8
        runner.on_depth_map(depth)
        assert runner.distance == pytest.approx(0.8)

    def test_depth_unavailable_clears(self):
        runner = MeterRunner()
        runner.on_depth_sample(1.0)
        runner.on_depth_unavailable()
        assert runner.distance is None
        assert runner.snapshot().distance_text == "--"


class TestTick:

    def test_manual_mode_skips(self, mock_camera):
        runner = MeterRunner(camera=mock_camera)
        runner.on_exposure_sample(9.0)
        mock_camera.apply_manual_exposure.reset_mock()

        assert runner.tick() is StepOutcome.SKIPPED
        mock_camera.apply_manual_exposure.assert_not_called()

    def test_no_reading_skips(self, runner):
        assert runner.tick() is StepOutcome.SKIPPED

    def test_commit_pushes_adapted_exposure(self, runner, mock_camera):
        runner.on_exposure_sample(9.0)

        assert runner.tick() is StepOutcome.PENDING
        mock_camera.apply_manual_exposure.assert_not_called()

        assert runner.tick() is StepOutcome.COMMITTED
        assert runner.state.shutter_index == S_250

        expected = adapt_to_device(400.0, 1.0 / 250.0, 2.8, mock_camera.limits)
        mock_camera.apply_manual_exposure.assert_called_once_with(expected)
        assert expected.duration == pytest.approx(0.004 * (1.78 / 2.8) ** 2)

    def test_converged_does_not_push(self, runner, mock_camera):
        runner.on_exposure_sample(9.0)
        runner.tick()
        runner.tick()
        mock_camera.apply_manual_exposure.reset_mock()

        assert runner.tick() is StepOutcome.CONVERGED
        mock_camera.apply_manual_exposure.assert_not_called()

    def test_camera_error_is_logged_not_raised(self, runner, mock_camera):
        mock_camera.apply_manual_exposure.side_effect = RuntimeError("device busy")
        runner.on_exposure_sample(9.0)
        runner.tick()
        assert runner.tick() is StepOutcome.COMMITTED
        assert runner.state.shutter_index == S_250

    def test_listener_sees_commit(self, runner):
        snapshots = []
        runner.add_listener(snapshots.append)
        runner.on_exposure_sample(9.0)
        runner.tick()
        runner.tick()

        assert len(snapshots) == 1
        assert snapshots[0].shutter_label == "1/250"
        assert snapshots[0].status is not None


class TestControlLoop:

    @pytest.mark.slow
    def test_loop_converges(self, mock_camera):
        runner = MeterRunner(camera=mock_camera, tick_seconds=0.01)
        runner.set_iso_index(ISO_400)
        runner.set_aperture_index(F_2_8)
        runner.set_priority_mode(PriorityMode.APERTURE_PRIORITY)
        runner.on_exposure_sample(9.0)

        assert runner.start() is True
        assert runner.start() is False
        try:
            deadline = time.time() + 5.0
            while runner.state.shutter_index != S_250 and time.time() < deadline:
                time.sleep(0.01)
        finally:
            runner.stop()

        assert runner.state.shutter_index == S_250
        assert not runner.is_running

    def test_stop_without_start(self):
        runner = MeterRunner()
        runner.stop()
        assert not runner.is_running


class TestUserEdits:

    def test_manual_edit_pushes_to_camera(self, runner, mock_camera):
        runner.set_shutter_index(S_250)
        mock_camera.apply_manual_exposure.assert_called_once()
        pushed = mock_camera.apply_manual_exposure.call_args[0][0]
        assert isinstance(pushed, DeviceExposure)
        assert pushed.iso == 400.0

    def test_mode_edit_does_not_push(self, runner, mock_camera):
        runner.set_priority_mode("S-PRI")
        runner.set_compensation_step(3)
        mock_camera.apply_manual_exposure.assert_not_called()
        assert runner.state.compensation_step == 3

    def test_edit_clears_pending(self, runner):
        runner.on_exposure_sample(9.0)
        runner.tick()
        assert runner.state.pending is not None
        runner.set_compensation_index(10)
        assert runner.state.pending is None

    def test_set_limit(self, runner):
        runner.set_limit("shutter_max_index", 3)
        assert runner.state.shutter_range.max_index == 3
        assert runner.state.shutter_index <= 3

    @pytest.mark.parametrize("name", ["iso_index", "bogus_max_index", "priority_mode"])
    def test_set_limit_unknown(self, runner, name):
        with pytest.raises(ValueError):
            runner.set_limit(name, 1)

    def test_exposure_point_in_spot_mode(self, runner, mock_camera):
        runner.set_exposure_point(100.0, 200.0, 400.0, 800.0)
        mock_camera.set_exposure_point.assert_called_once_with((0.25, 0.75))

    def test_exposure_point_ignored_in_average_mode(self, runner, mock_camera):
        assert runner.toggle_metering_mode() is MeteringMode.AVERAGE
        runner.set_exposure_point(100.0, 200.0, 400.0, 800.0)
        mock_camera.set_exposure_point.assert_not_called()


class TestListeners:

    def test_failing_listener_does_not_break_others(self, runner):
        seen = []

        def broken(snapshot):
            raise RuntimeError("listener bug")

        runner.add_listener(broken)
        runner.add_listener(seen.append)
        runner.toggle_metering_mode()

        assert len(seen) == 1
        assert seen[0].metering_mode is MeteringMode.AVERAGE

    def test_remove_listener(self, runner):
        seen = []
        runner.add_listener(seen.append)
        runner.remove_listener(seen.append)
        runner.toggle_metering_mode()
        assert seen == []


class TestSaveSettings:

    def test_without_config(self, runner):
        assert runner.save_settings() is False

    def test_round_trip_through_config(self, temp_config):
        config = Config(temp_config)
        runner = MeterRunner(config=config)
        runner.set_limit("iso_max_index", 7)
        runner.set_aperture_index(12)
        runner.set_priority_mode(PriorityMode.ISO_PRIORITY)

        assert runner.save_settings() is True
        assert os.path.exists(temp_config)

        restored = MeterRunner.from_config(Config(temp_config))
        assert restored.state.to_settings() == runner.state.to_settings()


class TestExposurePoint:

    def test_depth_follows_exposure_point(self):
        runner = MeterRunner()
        depth = np.full((5, 5), 4.0, dtype=np.float32)
        depth[4, 4] = 0.6
        # Bottom-left of the portrait view is the far corner of the sensor
        runner.set_exposure_point(0.0, 800.0, 400.0, 800.0)
        runner.on_depth_map(depth)
        assert runner.distance == pytest.approx(0.6)

    def test_average_mode_keeps_previous_point(self):
        runner = MeterRunner()
        runner.toggle_metering_mode()
        runner.set_exposure_point(0.0, 0.0, 400.0, 800.0)
        depth = np.full((3, 3), 2.0, dtype=np.float32)
        depth[1, 1] = 0.9
        runner.on_depth_map(depth)
        assert runner.distance == pytest.approx(0.9)


class TestConfigTick:

    @pytest.mark.parametrize("tick", ["fast", 0, -0.5, None, float('nan')])
    def test_invalid_tick_uses_default(self, temp_config, tick):
        config = Config(temp_config)
        config.set("tick_seconds", tick)
        runner = MeterRunner.from_config(config)
        assert runner.tick_seconds == 0.75

    def test_numeric_string_tick(self, temp_config):
        config = Config(temp_config)
        config.set("tick_seconds", "0.25")
        assert MeterRunner.from_config(config).tick_seconds == 0.25


class TestSnapshotInput:

    def test_deviation_uses_smoothed_ev(self, runner):
        runner.set_shutter_index(S_250)
        runner.on_exposure_sample(9.0)
        runner.on_exposure_sample(10.0)

        snap = runner.snapshot()

        assert snap.scene_ev == pytest.approx(9.12)
        assert snap.deviation == pytest.approx(runner.state.deviation(9.12))
        assert snap.status.value == "MATCHED"
