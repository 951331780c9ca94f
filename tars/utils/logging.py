"""Logging configuration."""

import logging
import os
import sys
from typing import Literal

from pydantic import BaseModel


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    # The terminal client renders to stdout, so it logs to stderr instead.
    stream: Literal["stdout", "stderr"] = "stdout"


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging configuration for the server or the terminal client."""
    if config is None:
        config = LogConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout if config.stream == "stdout" else sys.stderr,
        force=True,
    )
    # Module loggers carry their own level, so filter at the handler too.
    for handler in logging.getLogger().handlers:
        handler.setLevel(config.level.upper())

    # Third-party libraries are noisy at INFO
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, otherwise ``LOG_LEVEL`` or INFO

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger
