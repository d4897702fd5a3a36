"""
Logging setup for the controller entry points.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attribute marking the console handler installed by setup_logging
CONSOLE_MARKER = "_nodeman_console"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Calling it again only updates the level, so Lambda warm starts do not
    duplicate output.
    """
    logger = logging.getLogger("nodeman")
    logger.setLevel(level)

    if not any(getattr(h, CONSOLE_MARKER, False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        setattr(handler, CONSOLE_MARKER, True)
        logger.addHandler(handler)
        logger.propagate = False

    # Suppress AWS SDK verbose logging
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logger
