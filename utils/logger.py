"""
Shared logger utility for the enrichment pipeline.
Provides a consistent logger configuration for CLI runs and modules.
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _make_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def get_logger(name: str | None = None, level: int | str = logging.INFO) -> logging.Logger:
    """
    Returns a logger with the specified name, configured with a standard format.
    If no name is provided, returns the root logger.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_make_handler())
    logger.setLevel(level)
    return logger


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure the root logger once so every module logger propagates to it."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root = get_logger(None, level)
    # httpx logs every request at INFO; keep it quiet unless debugging
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return root
