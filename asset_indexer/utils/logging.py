"""
Logging setup.

Configures loguru logger for the daemon and operator scripts.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

SCRIPT_FORMAT = "{time:HH:mm:ss} | {level} | {message}"


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    fmt: str | None = None,
) -> None:
    """
    Configure logger with stderr sink and optional rotating file.

    Args:
        level: Minimum level for both sinks
        log_file: Path of the rotating log file (None disables it)
        fmt: Custom stderr format (scripts use SCRIPT_FORMAT)
    """
    logger.remove()
    if fmt:
        logger.add(sys.stderr, level=level, format=fmt)
    else:
        logger.add(sys.stderr, level=level)

    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )
