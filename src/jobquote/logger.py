"""Logging setup for the jobquote CLI and library callers.

Quotes and reports are written to stdout, so log records go to stderr and,
optionally, to a log file.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .config import LoggingConfig


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
    console_output: bool = True,
) -> None:
    """Replace the root logger's handlers.

    Args:
        level: Logging level for the root logger and every handler
        log_file: Also append records here; parent directories are created
        log_format: Format string, defaults to the ``LoggingConfig`` format
        console_output: Emit records on stderr
    """
    formatter = logging.Formatter(log_format or LoggingConfig().format)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if console_output:
        root_logger.addHandler(_handler(logging.StreamHandler(sys.stderr), level, formatter))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_handler(logging.FileHandler(log_file), level, formatter))

    logging.getLogger(__name__).debug(
        f"Logging at {logging.getLevelName(level)}" + (f", file {log_file}" if log_file else "")
    )


def setup_logging_from_config(
    logging_config: Union[LoggingConfig, Mapping[str, Any], None],
    verbose: bool = False,
) -> None:
    """Configure logging from the ``logging`` section of a loaded config.

    ``verbose`` (the CLI's ``-v``) forces DEBUG.
    """
    if not isinstance(logging_config, LoggingConfig):
        logging_config = LoggingConfig(**(logging_config or {}))

    level = logging.DEBUG if verbose else getattr(logging, logging_config.level)
    setup_logging(
        level=level,
        log_file=Path(logging_config.file) if logging_config.file else None,
        log_format=logging_config.format,
        console_output=logging_config.console_output,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
