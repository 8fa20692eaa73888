"""
Thread-safe logging module with console echo and 7-day rotating file logs
"""
import logging
import logging.handlers
from datetime import datetime, timedelta
from pathlib import Path

from app_config import APP_NAME, LOG_FILE
from utils_paths import get_log_dir


class AppLogger:
    """Thread-safe logger with console echo and 7-day rotating file logs"""

    def __init__(self, log_dir=None, name=APP_NAME):
        # Set up file logging
        self.log_dir = Path(log_dir) if log_dir else Path(get_log_dir())
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._setup_file_logging(name)
        self._cleanup_old_logs()

    def _setup_file_logging(self, name):
        """Set up rotating file handler for 7-day logs"""
        # Dedicated logger for the app (not root logger)
        self.file_logger = logging.getLogger(name)
        self.file_logger.setLevel(logging.DEBUG)

        # Prevent propagation to root logger to avoid duplicate messages
        self.file_logger.propagate = False

        # Remove any existing handlers to avoid duplicates
        for handler in list(self.file_logger.handlers):
            self.file_logger.removeHandler(handler)
            handler.close()

        handler = logging.handlers.TimedRotatingFileHandler(
            self.log_dir / LOG_FILE,
            when='midnight',
            interval=1,
            backupCount=7,  # Keep 7 days
            encoding='utf-8',
            delay=True
        )

        # Format: [2025-12-22 18:30:43] INFO - Message
        formatter = logging.Formatter('[%(asctime)s] %(levelname)-8s - %(message)s',
                                     datefmt='%Y-%m-%d %H:%M:%S')
        handler.setFormatter(formatter)

        self.file_logger.addHandler(handler)
        self.file_handler = handler

    def _cleanup_old_logs(self):
        """Delete log files older than 7 days"""
        cutoff = datetime.now() - timedelta(days=7)
        for log_file in self.log_dir.glob(f'{LOG_FILE}*'):
            try:
                mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
                if mtime < cutoff:
                    log_file.unlink()
            except OSError as e:
                print(f"Error cleaning up old log: {e}")

    def log(self, message, level="INFO"):
        """Write a message to the console and the log file"""
        # Console (debug goes to file only, the control loop is chatty)
        if level != "DEBUG":
            timestamp = datetime.now().strftime('%H:%M:%S')
            print(f"[{timestamp}] {level}: {message}")

        log_level = getattr(logging, level, logging.INFO)
        self.file_logger.log(log_level, message)

    def info(self, message):
        """Log info message"""
        self.log(message, "INFO")

    def error(self, message):
        """Log error message"""
        self.log(message, "ERROR")

    def warning(self, message):
        """Log warning message"""
        self.log(message, "WARNING")

    def debug(self, message):
        """Log debug message"""
        self.log(message, "DEBUG")

    def close(self):
        """Detach and close the file handler"""
        self.file_logger.removeHandler(self.file_handler)
        self.file_handler.close()


# Singleton pattern to ensure only one logger instance
_logger_instance = None

def get_app_logger():
    """Get or create the singleton logger instance"""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = AppLogger()
    return _logger_instance

# Global logger instance (singleton)
app_logger = get_app_logger()
