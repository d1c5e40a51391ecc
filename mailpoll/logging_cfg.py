"""Logging configuration for mailpoll.

Records are written to stdout, so every log handler writes to stderr or
to a rotating log file.
"""

import logging
import logging.handlers
from pathlib import Path

# Maximum log file size (10 MB)
MAX_LOG_SIZE = 10 * 1024 * 1024

# Number of backup log files to keep
BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    debug: bool = False,
) -> None:
    """Configure the root logger.

    Sets up a stderr handler and, when ``log_file`` is given, a rotating
    file handler next to it.

    Args:
        level: Level name (e.g. "INFO", "WARNING").
        log_file: Optional path of a rotating log file.
        debug: Force DEBUG level regardless of ``level``.
    """
    log_level = logging.DEBUG if debug else _parse_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear any existing handlers so repeated calls don't duplicate output
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = log_file.expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _suppress_noisy_loggers()


def _parse_level(level: str) -> int:
    """Map a level name to its numeric value, defaulting to INFO."""
    value = logging.getLevelName(level.upper())
    if isinstance(value, int):
        return value
    return logging.INFO


def _suppress_noisy_loggers() -> None:
    """Keep protocol chatter out of the logs unless it is a problem."""
    # imapclient logs every command/response at DEBUG
    logging.getLogger("imapclient").setLevel(logging.WARNING)
