"""
Application Configuration - Central place for app identity
Change these values when renaming the application
"""

# Application Identity
APP_NAME = "FilmLightMeter"
APP_DISPLAY_NAME = "Film Light Meter"
APP_SUBTITLE = "Exposure calculator and auto-exposure solver"

# Directory names (used for app data paths)
APP_DATA_FOLDER = APP_NAME

# File names
MAIN_CONFIG_FILE = "config.json"
LOG_FILE = "meter.log"

# Control loop period in seconds
DEFAULT_TICK_SECONDS = 0.75
