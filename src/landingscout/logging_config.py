"""Logging setup for the landingscout CLI and scheduler."""

import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

# Timestamps are UTC, like every time stored by the crawler
LOG_FORMAT = "%(asctime)sZ %(levelname)-7s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

QUIET_LOGGERS = ("asyncio", "apscheduler", "playwright")


class UTCFormatter(logging.Formatter):
    converter = time.gmtime


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """Configure the root logger.

    Console logs go to stderr; stdout is left to command output such as
    CSV exports and JSON session dumps.

    Args:
        level: Log level name; unknown names fall back to INFO
        log_file: Also append to this file, creating parent directories
        format_string: Overrides LOG_FORMAT
        quiet_loggers: Library loggers held at WARNING
    """
    formatter = UTCFormatter(format_string or LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
