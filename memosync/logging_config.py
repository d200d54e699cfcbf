"""Loguru logging setup."""

import os
import sys

from loguru import logger

from memosync.config.schema import LoggingConfig

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <7}</level> | "
    "<cyan>{name}</cyan>:{line} | "
    "<level>{message}</level>"
)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Replace loguru's default handler with a single stderr sink.

    The level comes from ``config``, or from ``LOG_LEVEL`` when no config is
    given.
    """
    level = config.level if config is not None else os.environ.get("LOG_LEVEL", "INFO")

    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level.upper(),
        colorize=sys.stderr.isatty(),
        backtrace=False,
        diagnose=False,
    )
