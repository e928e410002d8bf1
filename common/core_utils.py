#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging setup shared by the merge pipeline and its command-line entry point.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from settings.config_models import SYMBOLS_DEFAULT, MergeSettings

module_logger = logging.getLogger(__name__)

SIMPLE_LOG_FORMAT_NO_PREFIX = (
    "%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
)

_LEVEL_SYMBOL_KEYS: Dict[int, str] = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "critical",
}


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log level.
    """

    def __init__(
        self, fmt=None, datefmt=None, style="%", validate=True, symbols=None
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record):
        key = _LEVEL_SYMBOL_KEYS.get(record.levelno)
        record.symbol = self.symbols.get(key, "") if key else ""
        return super().format(record)


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_prefix: Optional[str] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configure the root logger with console and/or file handlers.

    Parameters:
    log_level: int
        The logging level to configure. Defaults to logging.INFO.
    log_file: Optional[str]
        Path of a log file to append to. Its parent directory is created.
    log_to_console: bool
        Whether to log to stdout. If neither a file nor the console is
        requested, stdout is used anyway.
    log_prefix: Optional[str]
        Optional text placed in front of every log line.
    symbols: Optional[Dict[str, str]]
        Level symbols for SymbolFormatter.
    """
    handlers: List[logging.Handler] = []
    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file_path, mode="a"))
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    if log_to_console or not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )
    final_format_str = actual_prefix + SIMPLE_LOG_FORMAT_NO_PREFIX

    formatter = SymbolFormatter(
        fmt=final_format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
        symbols=symbols,
    )
    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    module_logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. Format: '{final_format_str}'"
    )


def setup_logging_from_settings(settings: MergeSettings) -> None:
    """Configure logging from the log_* fields of MergeSettings."""
    setup_logging(
        log_level=getattr(logging, settings.log_level, logging.INFO),
        log_file=str(settings.log_file) if settings.log_file else None,
        log_to_console=True,
        log_prefix=settings.log_prefix,
        symbols=settings.symbols,
    )
