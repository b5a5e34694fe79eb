"""
Logging configuration for Schema LLM.

Library modules only ever call ``get_logger(__name__)``.  Applications and
scripts call ``setup_logging()`` once at startup to attach a handler.

Usage:
    from schema_llm.utils.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
"""

import logging
import os
import sys
from typing import Optional, Union

ROOT_LOGGER_NAME = "schema_llm"
DEFAULT_FORMAT = (
    "%(asctime)s [%(levelname)s] [%(name)s:%(lineno)d - %(funcName)s] %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: Optional[Union[int, str]] = None,
    fmt: str = DEFAULT_FORMAT,
    stream=None,
) -> logging.Logger:
    """
    Configure the package root logger.

    Args:
        level: Log level name or number.  Defaults to ``SCHEMA_LLM_LOG_LEVEL``
               from the environment, falling back to ``INFO``.
        fmt: Log record format string.
        stream: Stream for the handler (default: stderr).

    Returns:
        The configured ``schema_llm`` logger.
    """
    if level is None:
        level = os.getenv("SCHEMA_LLM_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Calling setup_logging twice must not duplicate output
    for handler in list(logger.handlers):
        if getattr(handler, "_schema_llm_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DEFAULT_DATE_FORMAT))
    handler._schema_llm_handler = True
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the package root logger."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
