"""
Path utilities for settings and log files
Resolves per-user data locations on Windows and POSIX systems
"""
import os
import sys

from app_config import APP_DATA_FOLDER

# Overrides the data directory (tests, portable installs)
HOME_ENV_VAR = "FILMLIGHTMETER_HOME"


def get_app_data_dir():
    r"""
    Get application data directory (for logs, user config, etc.)

    Returns:
        $FILMLIGHTMETER_HOME if set, else %LOCALAPPDATA%\{APP_DATA_FOLDER}
        on Windows and ~/.{APP_DATA_FOLDER} elsewhere
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        app_dir = override
    elif sys.platform == 'win32':
        local_app_data = os.environ.get('LOCALAPPDATA')
        if not local_app_data:
            # Fallback to APPDATA if LOCALAPPDATA not available
            local_app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
        app_dir = os.path.join(local_app_data, APP_DATA_FOLDER)
    else:
        app_dir = os.path.join(os.path.expanduser('~'), f'.{APP_DATA_FOLDER}')

    os.makedirs(app_dir, exist_ok=True)
    return app_dir


def get_log_dir():
    """
    Get log directory path

    Returns:
        Path to {app data dir}/Logs
    """
    log_dir = os.path.join(get_app_data_dir(), 'Logs')
    os.makedirs(log_dir, exist_ok=True)
    return log_dir


def get_config_path(filename):
    """Path of a settings file inside the app data directory"""
    return os.path.join(get_app_data_dir(), filename)
