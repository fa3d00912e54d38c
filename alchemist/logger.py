"""
Logging setup based on loguru.

Every module logs with ``from loguru import logger``; this module only decides
where the records go. ``setup_logging`` is called once by the entry point so
that importing the package (e.g. from tests) never reconfigures sinks.
"""

import logging
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{message}</cyan>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"
)

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure loguru sinks.

    Args:
        level: Console log level
        log_file: Optional path of a rotating log file (always DEBUG)
    """
    level = level.upper()

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="50 MB",
            retention="14 days",
            compression="gz",
            encoding="utf-8",
            enqueue=False,
            catch=True,
        )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured (level={level}, file={log_file or '-'})")
