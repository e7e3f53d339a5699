"""Structured logging configuration for voice_devops."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from config import config

LOGGER_NAME = "voice_devops"
CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Handlers pass structured data as ``extra={"extra": {...}}``. A
    ``correlation_id`` in that payload is lifted to the top level so every
    line of one command can be grepped together.
    """

    def format(self, record: logging.LogRecord) -> str:
        extra: Dict[str, Any] = dict(getattr(record, "extra", {}) or {})
        log_data: Dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if "correlation_id" in extra:
            log_data["correlation_id"] = extra.pop("correlation_id")
        log_data["extra"] = extra
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str = LOGGER_NAME,
    level: str | int = config.logging.log_level,
    log_path: Path = config.logging.log_path,
) -> logging.Logger:
    """
    Configure structured logging with both file and console output.

    - File output: JSON lines to LOG_PATH (logs/voice_devops.log)
    - Console output: human-readable, on stderr so CLI JSON on stdout stays clean

    Args:
        name: Logger name (default: "voice_devops")
        level: Level name or number (default: LOG_LEVEL)
        log_path: JSON log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(_resolve_level(level))
    logger.propagate = False

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(JSONFormatter())
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(console_handler)

    return logger


# Initialize global logger instance
logger = setup_logger()
