"""Logging setup for the scraper.

Console output is short and colored on a terminal. Two size-rotated JSON-lines
files live in the log directory: ``scrape.jsonl`` with every record and
``error.jsonl`` with errors only.
"""

import json
import logging
import sys
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

__all__ = [
    "ROOT_LOGGER",
    "JSONLineFormatter",
    "ConsoleFormatter",
    "parse_level",
    "setup_logging",
    "get_logger",
    "log_scrape_event",
]

ROOT_LOGGER = "sysco_scrape"

_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def parse_level(level: Union[int, str]) -> int:
    """Accept a logging level as int or name ('info', 'DEBUG', ...)."""
    if isinstance(level, int):
        return level
    try:
        return _LEVEL_NAMES[level.strip().lower()]
    except KeyError as e:
        raise ValueError(f"Unknown log level: {level!r}") from e


class JSONLineFormatter(logging.Formatter):
    """One JSON object per record.

    Records created by ``log_scrape_event`` also carry ``event_type`` and the
    event's fields at the top level of the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event_type = getattr(record, "event_type", None)
        if event_type:
            entry["event_type"] = event_type
            entry.update(getattr(record, "event_data", {}))
        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS [LEVEL] message``, colored by level when writing to a TTY."""

    _COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    _RESET = "\033[0m"

    def __init__(self, use_color: bool = False):
        super().__init__("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = self._COLORS.get(record.levelno) if self.use_color else None
        return f"{color}{text}{self._RESET}" if color else text


def _jsonl_handler(path: Path, level: int, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(path), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(JSONLineFormatter())
    return handler


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Optional[Union[str, Path]] = None,
    max_bytes: int = 20 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the package logger. Safe to call again; old handlers are closed.

    Args:
        level: Console level (int or name). Files always get DEBUG.
        log_to_file: Write scrape.jsonl and error.jsonl
        log_to_console: Write to stdout
        log_dir: Directory for the JSONL files (default: config.LOG_DIR)
        max_bytes: Size at which a file is rotated
        backup_count: Rotated files to keep

    Returns:
        The ``sysco_scrape`` logger
    """
    from sysco_scrape.config import LOG_DIR

    console_level = parse_level(level)
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if log_to_file else console_level)

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(console_level)
        console.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty()))
        logger.addHandler(console)

    if log_to_file:
        directory = Path(log_dir or LOG_DIR)
        logger.addHandler(_jsonl_handler(directory / "scrape.jsonl", logging.DEBUG, max_bytes, backup_count))
        logger.addHandler(_jsonl_handler(directory / "error.jsonl", logging.ERROR, max_bytes, backup_count))

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger ``sysco_scrape.<name>`` (or the package logger itself)."""
    if name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def log_scrape_event(
    event_type: str,
    data: Dict[str, Any],
    level: int = logging.INFO,
    logger_name: str = "events",
) -> None:
    """Log a structured event such as 'category_start' or 'product_error'.

    ``data['message']``, if present, becomes the log message; the event type
    is used otherwise. Every other key is written to the JSON line.
    """
    fields = dict(data)
    message = fields.pop("message", event_type)
    get_logger(logger_name).log(
        level,
        message,
        extra={"event_type": event_type, "event_data": fields},
    )
