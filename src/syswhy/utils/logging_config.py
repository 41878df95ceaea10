"""
syswhy Logging Configuration

Provides centralized logging setup for consistent log formatting
and configuration across the application.

Logs always go to stderr so that report output on stdout (in particular
--json) stays machine-parseable.

Usage:
    from syswhy.utils.logging_config import setup_logging
    setup_logging(level=logging.DEBUG, log_file="/tmp/syswhy.log")
"""

import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import Optional

# Thread-safe initialization
_initialized = False
_lock = threading.Lock()

DEFAULT_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
SIMPLE_FORMAT = "%(levelname)s: %(message)s"
DEBUG_FORMAT = "%(asctime)s | %(name)s:%(lineno)d | %(levelname)s | %(message)s"

LEVEL_COLORS = {
    'DEBUG': '\033[36m',     # Cyan
    'INFO': '\033[32m',      # Green
    'WARNING': '\033[33m',   # Yellow
    'ERROR': '\033[31m',     # Red
    'CRITICAL': '\033[35m',  # Magenta
}
RESET = '\033[0m'


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to log levels for terminal output."""

    def __init__(self, fmt=None, datefmt=None, use_colors=True, stream=None):
        super().__init__(fmt, datefmt)
        stream = stream or sys.stderr
        self.use_colors = use_colors and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record):
        if self.use_colors:
            levelname = record.levelname
            if levelname in LEVEL_COLORS:
                # Work on a copy so the file handler sees the plain name
                record = logging.makeLogRecord(record.__dict__)
                record.levelname = f"{LEVEL_COLORS[levelname]}{levelname}{RESET}"
        return super().format(record)


def parse_level(name: str, default: int = logging.WARNING) -> int:
    """Map a level name such as 'debug' to its logging constant"""
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    use_colors: bool = True,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
    force: bool = False,
) -> None:
    """
    Configure the root logger with consistent settings.

    Args:
        level: Logging level (default WARNING)
        log_file: Optional file path for logging
        log_format: Log message format string (derived from level if None)
        use_colors: Enable colored level names when stderr is a TTY
        max_bytes: Max log file size before rotation
        backup_count: Number of backup files to keep
        force: Reconfigure even if already initialized
    """
    global _initialized

    with _lock:
        if _initialized and not force:
            return

        if log_format is None:
            log_format = DEBUG_FORMAT if level <= logging.DEBUG else SIMPLE_FORMAT

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        if use_colors:
            console_handler.setFormatter(ColoredFormatter(log_format))
        else:
            console_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file).expanduser()
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    log_path,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                )
            except OSError as e:
                root_logger.warning(f"Cannot open log file {log_path}: {e}")
            else:
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
                root_logger.addHandler(file_handler)
                # The file always captures debug detail
                root_logger.setLevel(min(level, logging.DEBUG))

        _initialized = True


def reset_logging() -> None:
    """Forget previous setup so the next setup_logging() call applies"""
    global _initialized
    with _lock:
        _initialized = False
