"""Logging setup utilities for shellgate.

Configures the ``shellgate`` logger hierarchy from the application
configuration.
"""

from __future__ import annotations

import logging
import sys

from shellgate.config import Config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config | None = None) -> logging.Logger:
    """Configure logging for the shellgate application.

    Sets up the ``shellgate`` logger with a stderr handler and an optional
    file handler. Calling it again replaces previously installed handlers.

    Args:
        config: Application configuration. If None, uses defaults
                (INFO level, stderr output).

    Returns:
        The configured package logger.
    """
    if config is None:
        config = Config()

    root_logger = logging.getLogger("shellgate")
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.debug("Logging initialized at %s level", logging.getLevelName(level))
    return root_logger
