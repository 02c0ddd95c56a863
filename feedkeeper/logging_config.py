"""Logging setup for feedkeeper.

Every module logs through ``logging.getLogger(__name__)`` below the
``feedkeeper`` logger. Output goes to stderr because stdout carries the MCP
stdio transport.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from feedkeeper.config import ServerConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("feedkeeper")


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the feedkeeper logger from the server configuration.

    Safe to call more than once: handlers installed by an earlier call are
    replaced.

    Args:
        config: Server configuration (log_level, log_file)

    Returns:
        The configured package logger
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=3)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
