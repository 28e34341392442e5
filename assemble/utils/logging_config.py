"""
Centralized logging configuration for the assembly service.

This module provides:
- Consistent logging setup across all modules
- Environment-based configuration (level, format, optional log file)
- A timing helper used around pipeline stages
"""

import logging
import logging.handlers
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Dict, Iterator, Union


# ===== LOGGING CONFIGURATION =====

class LogLevel:
    """Standard log levels with string representations."""

    @staticmethod
    def from_string(level_str: str) -> int:
        """Convert string log level to integer."""
        level_map = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'WARN': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL,
            'FATAL': logging.CRITICAL,
        }
        return level_map.get(level_str.upper(), logging.INFO)


class LogConfig:
    """Logging settings read from the environment."""

    DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    DEV_FORMAT = '%(asctime)s [%(levelname)8s] %(name)s:%(lineno)d - %(message)s'

    JSON_FORMAT = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'

    # Chatty third-party loggers kept at WARNING
    QUIET_LOGGERS = ('httpx', 'httpcore', 'multipart')

    @staticmethod
    def _env(name: str) -> Optional[str]:
        return os.getenv(f'ASSEMBLE_{name}', os.getenv(name))

    @staticmethod
    def get_log_level() -> int:
        """Get log level from environment; WARNING under pytest, INFO otherwise."""
        level_str = LogConfig._env('LOG_LEVEL')
        if level_str:
            return LogLevel.from_string(level_str)

        if 'pytest' in sys.modules or 'PYTEST_CURRENT_TEST' in os.environ:
            return logging.WARNING

        return logging.INFO

    @staticmethod
    def get_log_format(format_type: Optional[str] = None) -> str:
        """Get log format by name (standard, dev, json), defaulting to the environment."""
        format_type = (format_type or LogConfig._env('LOG_FORMAT') or 'standard').lower()

        if format_type in ('dev', 'development'):
            return LogConfig.DEV_FORMAT
        elif format_type == 'json':
            return LogConfig.JSON_FORMAT
        return LogConfig.DEFAULT_FORMAT

    @staticmethod
    def should_log_to_file() -> bool:
        """Check if logging to file is enabled."""
        return (LogConfig._env('LOG_TO_FILE') or 'false').lower() in ('true', '1', 'yes')

    @staticmethod
    def get_log_file_path() -> Optional[Path]:
        """Get log file path from environment."""
        log_file = LogConfig._env('LOG_FILE')
        if log_file:
            return Path(log_file)
        return None


# ===== LOGGER FACTORY =====

class LoggerFactory:
    """Configures the root logger once and hands out named loggers."""

    _loggers: Dict[str, logging.Logger] = {}
    _configured = False

    @classmethod
    def configure_logging(cls, level: Optional[int] = None,
                          format_str: Optional[str] = None,
                          log_to_file: bool = False,
                          log_file: Optional[Union[str, Path]] = None,
                          force: bool = False) -> None:
        """Configure the root logger with consistent settings."""
        if cls._configured and not force:
            return

        log_level = level or LogConfig.get_log_level()
        log_format = format_str or LogConfig.get_log_format()
        should_log_to_file = log_to_file or LogConfig.should_log_to_file()
        log_file_path = Path(log_file) if log_file else LogConfig.get_log_file_path()

        formatter = logging.Formatter(log_format)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if should_log_to_file and log_file_path:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        for name in LogConfig.QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get or create a logger with the given name."""
        if name not in cls._loggers:
            cls.configure_logging()
            cls._loggers[name] = logging.getLogger(name)
        return cls._loggers[name]


# ===== UTILITY FUNCTIONS =====

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Convenience function to get a logger (defaults to the service logger)."""
    return LoggerFactory.get_logger(name or 'assemble')


def setup_logging(level: Optional[Union[str, int]] = None,
                  format_type: Optional[str] = None,
                  log_to_file: bool = False,
                  log_file: Optional[Union[str, Path]] = None) -> None:
    """Reconfigure logging explicitly, e.g. from the service entrypoint."""
    if isinstance(level, str):
        level = LogLevel.from_string(level)

    LoggerFactory.configure_logging(
        level=level,
        format_str=LogConfig.get_log_format(format_type),
        log_to_file=log_to_file,
        log_file=log_file,
        force=True
    )


@contextmanager
def log_timing(logger: logging.Logger, label: str, level: int = logging.INFO) -> Iterator[None]:
    """Log how long the wrapped block took, including when it raises."""
    start = time.perf_counter()
    logger.log(level, f"Starting {label}")
    try:
        yield
    except Exception as e:
        logger.log(level, f"Failed {label} after {time.perf_counter() - start:.3f}s: {e}")
        raise
    logger.log(level, f"Completed {label} in {time.perf_counter() - start:.3f}s")
