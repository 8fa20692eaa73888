"""
Pytest configuration and fixtures
"""
import pytest
import os
import sys
import tempfile
import shutil

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Keep logs and settings out of the user's home directory
os.environ.setdefault("FILMLIGHTMETER_HOME", tempfile.mkdtemp(prefix="flm_home_"))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    temp_path = tempfile.mkdtemp(prefix="flm_test_")
    yield temp_path
    # Cleanup after test
    if os.path.exists(temp_path):
        shutil.rmtree(temp_path)


@pytest.fixture
def temp_config(temp_dir):
    """Path for a temporary config file"""
    config_path = os.path.join(temp_dir, "config.json")
    return config_path


@pytest.fixture
def state():
    """Fresh exposure state with default tables"""
    from metering.state import ExposureState
    return ExposureState()


@pytest.fixture
def mock_camera():
    """Camera backend double with iPhone-like limits"""
    from unittest.mock import Mock
    from metering.camera_interface import CameraBackend, DeviceExposureLimits

    camera = Mock(spec=CameraBackend)
    camera.limits = DeviceExposureLimits(
        min_iso=32.0,
        max_iso=3072.0,
        min_duration=1.0 / 100000.0,
        max_duration=1.0,
        lens_aperture=1.78,
    )
    return camera


# Mark slow tests
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
