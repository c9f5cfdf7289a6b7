"""Logging setup for the billing CLI and any process embedding the engine.

Engine modules only create module-level loggers; handlers are attached once
here, at the entry point. LOG_LEVEL (or Settings.log_level) picks the level,
INFO by default.
"""

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level(level_name: str | None = None) -> int:
    """Resolve a level name, falling back to LOG_LEVEL, then INFO."""
    name = level_name or os.getenv("LOG_LEVEL", "INFO")
    return LOG_LEVEL_MAP.get(name.upper(), logging.INFO)


def setup_logging(
    log_file: str = "logs/rent_billing.log",
    level: str | None = None,
    sql_echo: bool = False,
) -> logging.Logger:
    """Send every logger's records to stdout and to ``log_file``.

    Previously installed root handlers are closed and replaced, so calling
    this twice does not duplicate output.

    Args:
        log_file: Log file path; parent directories are created
        level: Level name overriding LOG_LEVEL
        sql_echo: Keep SQLAlchemy's statement log at INFO instead of WARNING

    Returns:
        The "rent_billing" package logger
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    log_level = get_log_level(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(log_level)

    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_path)):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)

    return logging.getLogger("rent_billing")


__all__ = ["LOG_LEVEL_MAP", "get_log_level", "setup_logging"]
