"""Logging helpers for walletid components.

Every stateful component gets a named logger under ``walletid.*``. Handlers are
attached lazily on first use so importing the library never touches logging
configuration of the host application.
"""

import logging
import os

from walletid.config import LOG_LEVEL_ENV

_FORMAT = "[%(asctime)s.%(msecs)03d] %(levelname)s [%(name)s]: %(message)s"
_DATEFMT = "%H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Return the ``walletid.<name>`` logger, configured on first call."""
    logger = logging.getLogger(f"walletid.{name}")
    _setup_logging(logger)
    return logger


def _setup_logging(logger: logging.Logger) -> None:
    """Setup logging configuration for a walletid logger."""
    if logger.handlers:
        return

    handler = logging.StreamHandler()

    # Use different log levels based on environment
    level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Structured formatting
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(handler)


def log(logger: logging.Logger, level: str, message: str, **kwargs) -> None:
    """Structured logging with optional context."""
    log_method = getattr(logger, level.lower(), logger.info)

    if kwargs:
        # Add context to message
        context = " ".join([f"{k}={v}" for k, v in kwargs.items()])
        message = f"{message} | {context}"

    log_method(message)
