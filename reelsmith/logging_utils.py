"""Console logging for the ``reelsmith`` package logger."""

import logging
import os
import sys

PACKAGE_LOGGER = "reelsmith"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _level(name: str) -> int:
    value = getattr(logging, name.upper(), None)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    The level comes from ``level``, then ``$LOG_LEVEL``, then INFO. Calling
    again only changes the level; the handler is installed once. The root
    logger is left alone so a host application keeps its own setup.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_level(level or os.getenv("LOG_LEVEL") or "INFO"))

    if not any(getattr(h, "reelsmith_console", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.reelsmith_console = True
        logger.addHandler(handler)
    return logger
