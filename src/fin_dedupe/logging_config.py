"""Logging setup for applications embedding the dedupe core."""

import logging

from .core.models import DedupeConfig

PACKAGE_LOGGER = "fin_dedupe"


def setup_logging(level: str | DedupeConfig = "INFO") -> None:
    """
    Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR) or a DedupeConfig,
            whose log_level is used; enable_logging=False silences the package
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)

    if isinstance(level, DedupeConfig):
        if not level.enable_logging:
            package_logger.setLevel(logging.CRITICAL + 1)
            return
        level = level.log_level

    package_logger.setLevel(logging.NOTSET)
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
