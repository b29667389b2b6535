"""
log.py
------

Process-wide logging setup for programs embedding cfgwatch.

The library modules only call ``logging.getLogger(__name__)``; an entry point
calls :py:func:`configure_logging` once to get JSON log lines on the console
and, optionally, in a rotating file.
"""

import logging
import logging.handlers
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(threadName)s %(message)s"


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Attach JSON handlers to the ``cfgwatch`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level name or number.
        log_file: Optional path of a rotating log file.
        max_bytes: Rotation size of the log file.
        backup_count: Rotated files to keep.

    Returns:
        The configured ``cfgwatch`` logger.
    """
    logger = logging.getLogger("cfgwatch")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(logger.handlers):
        if getattr(handler, "_cfgwatch", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = jsonlogger.JsonFormatter(LOG_FORMAT)
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._cfgwatch = True
        logger.addHandler(handler)
    return logger
