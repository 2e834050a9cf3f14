# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Logging setup for typedep-graph.

Two modes are supported:
- Console only (stderr), used by default by the CLI
- Structured JSON lines in a daily log file, plus optional console output

stdout is never used for log output because the CLI prints its JSON results there.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

if TYPE_CHECKING:
    from typedep_graph.config import Config

DEFAULT_LOG_DIR_NAME = ".typedep_graph_logs"
LOG_FILE_PREFIX = "typedep_graph_"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class StructuredFormatter(logging.Formatter):
    """Formats records as one JSON object per line.

    Fields passed as ``extra={"extra_fields": {...}}`` are merged into the object,
    e.g. the unit name and timing of a compilation unit analysis.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            entry.update(extra_fields)

        return json.dumps(entry, default=str)


def resolve_log_level(
    log_level: Union[int, str, None] = None, config: Optional["Config"] = None
) -> int:
    """Resolve the effective logging level.

    An explicit level wins over the configured ``log_level``; INFO is the fallback.

    Args:
        log_level: Level number or name ("DEBUG", "info", ...).
        config: Configuration supplying ``log_level`` when no level is given.

    Returns:
        Numeric logging level.

    Raises:
        ValueError: If a level name is unknown.
    """
    if log_level is None:
        log_level = config.log_level if config is not None else logging.INFO
    if isinstance(log_level, int):
        return log_level

    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    return level


def _reset_root_logger(level: int) -> logging.Logger:
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    return root_logger


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
    return handler


def setup_console_logging(
    log_level: Union[int, str, None] = None, config: Optional["Config"] = None
) -> None:
    """Send human-readable logs to stderr only."""
    level = resolve_log_level(log_level, config)
    _reset_root_logger(level).addHandler(_console_handler(level))


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: Union[int, str, None] = None,
    console_output: bool = True,
    config: Optional["Config"] = None,
) -> Path:
    """Set up structured JSON file logging.

    Args:
        log_dir: Directory for log files. If None, uses .typedep_graph_logs/
        log_level: Level number or name. If None, uses config.log_level (or INFO)
        console_output: Whether to also log to stderr
        config: Configuration supplying the default level

    Returns:
        Path of the daily log file.
    """
    if log_dir is None:
        log_dir = Path.cwd() / DEFAULT_LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)

    level = resolve_log_level(log_level, config)
    root_logger = _reset_root_logger(level)

    log_file = log_dir / f"{LOG_FILE_PREFIX}{datetime.now(timezone.utc):%Y%m%d}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(file_handler)

    if console_output:
        root_logger.addHandler(_console_handler(level))

    logging.getLogger(__name__).info(
        f"Logging to {log_file} at {logging.getLevelName(level)}",
        extra={"extra_fields": {"log_dir": str(log_dir)}},
    )
    return log_file
