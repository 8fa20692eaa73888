"""
Configuration management for the light meter

Only plain numbers and short strings are persisted: the six range-limit
indices, the three selected indices, priority mode, compensation index,
metering mode and the control loop period.
"""
import copy
import json
import os

from app_config import MAIN_CONFIG_FILE, DEFAULT_TICK_SECONDS
from utils_paths import get_config_path
from .logger import app_logger
from .option_table import (
    APERTURE_TABLE,
    DEFAULT_APERTURE_INDEX,
    DEFAULT_ISO_INDEX,
    DEFAULT_SHUTTER_INDEX,
    ISO_TABLE,
    SHUTTER_TABLE,
)

DEFAULT_CONFIG = {
    # Range limits (indices into the option tables, inclusive)
    "limits": {
        "iso_min_index": 0,
        "iso_max_index": len(ISO_TABLE) - 1,
        "aperture_min_index": 0,
        "aperture_max_index": len(APERTURE_TABLE) - 1,
        "shutter_min_index": 0,                         # fastest
        "shutter_max_index": len(SHUTTER_TABLE) - 1,    # slowest
    },

    # Current dial positions
    "selection": {
        "iso_index": DEFAULT_ISO_INDEX,
        "aperture_index": DEFAULT_APERTURE_INDEX,
        "shutter_index": DEFAULT_SHUTTER_INDEX,
    },

    "priority_mode": "manual",  # "manual" | "aperture_priority" | "shutter_priority" | "iso_priority"
    "compensation_index": 9,    # index into -9..+9 third stops, 9 = 0 EV
    "metering_mode": "SPOT",    # "SPOT" | "AVERAGE"

    # Control loop
    "tick_seconds": DEFAULT_TICK_SECONDS,
}


class Config:
    def __init__(self, config_path=None):
        if config_path is None:
            config_path = get_config_path(MAIN_CONFIG_FILE)

        self.config_path = config_path
        self.data = self.load()

    def load(self):
        """Load configuration from JSON file or return defaults"""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r') as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    app_logger.error(f"Error loading config: expected an object, got {type(loaded).__name__}")
                    return copy.deepcopy(DEFAULT_CONFIG)

                # Merge with defaults to ensure new keys exist
                config = copy.deepcopy(DEFAULT_CONFIG)

                # Deep merge for nested sections like limits, selection
                for key, value in loaded.items():
                    if key in config and isinstance(config[key], dict):
                        if isinstance(value, dict):
                            config[key].update(value)
                        else:
                            app_logger.warning(f"Ignoring malformed '{key}' section in config")
                    else:
                        config[key] = value

                return config
            except (OSError, ValueError) as e:
                app_logger.error(f"Error loading config: {e}")
                return copy.deepcopy(DEFAULT_CONFIG)
        return copy.deepcopy(DEFAULT_CONFIG)

    def save(self):
        """Save current configuration to JSON file"""
        try:
            directory = os.path.dirname(self.config_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
            return True
        except (OSError, TypeError) as e:
            app_logger.error(f"Error saving config: {e}")
            return False

    def get(self, key, default=None):
        """Get configuration value"""
        return self.data.get(key, default)

    def set(self, key, value):
        """Set configuration value"""
        self.data[key] = value

    def get_limits(self):
        """Get range-limit indices"""
        return self.data.get("limits", {})

    def set_limits(self, limits):
        """Set range-limit indices"""
        self.data["limits"] = dict(limits)

    def get_selection(self):
        """Get selected indices"""
        return self.data.get("selection", {})

    def set_selection(self, selection):
        """Set selected indices"""
        self.data["selection"] = dict(selection)

    def meter_settings(self):
        """Settings in the shape ExposureState.apply_settings() expects"""
        return {
            "limits": self.get_limits(),
            "selection": self.get_selection(),
            "priority_mode": self.get("priority_mode", "manual"),
            "compensation_index": self.get("compensation_index", 9),
            "metering_mode": self.get("metering_mode", "SPOT"),
        }

    def update_from_meter(self, settings):
        """Copy ExposureState.to_settings() output into this config"""
        self.set_limits(settings["limits"])
        self.set_selection(settings["selection"])
        for key in ("priority_mode", "compensation_index", "metering_mode"):
            self.set(key, settings[key])
